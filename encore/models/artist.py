"""
Artist profiles. One user owns 1..10 artists, exactly one is_active.
"""

from sqlalchemy import Boolean, JSON
from sqlalchemy.orm import Mapped, mapped_column

from .base import UserScopedBase


class ArtistProfileRecord(UserScopedBase):
    __tablename__ = "artist_profiles"

    bio: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    achievements: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    events: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    releases: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    social: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

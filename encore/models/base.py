"""
Remote-tier rows owned by one user.

Memory (one row per user), knowledge documents and artist profiles all carry
`user_id`; every query in the services filters on it. Global knowledge
documents are the only rows read across users.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class UserScopedBase(Base):
    __abstract__ = True

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    # Auth subject (JWT `sub`), or "dev-user" when auth is off
    user_id: Mapped[str] = mapped_column(String, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

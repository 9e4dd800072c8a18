"""
Chat memory, remote tier. One row per user holding the whole memory state.

Written wholesale (upsert by user_id) by the debounced memory sync.
"""

from sqlalchemy import String, JSON
from sqlalchemy.orm import Mapped, mapped_column

from .base import UserScopedBase


class ChatMemoryRecord(UserScopedBase):
    __tablename__ = "chat_memory"

    user_id: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    insights: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    learned_facts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    preferences: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

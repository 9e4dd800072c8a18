"""
Knowledge documents (briefings, strategies, tone of voice...).

Full text stored directly. Scoped by user and optionally by artist.
is_global documents are admin-managed and feed every artist's context.
"""

from typing import Optional

from sqlalchemy import String, Text, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from .base import UserScopedBase


class KnowledgeDocumentRecord(UserScopedBase):
    __tablename__ = "knowledge_documents"

    artist_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False, default="other")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_global: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

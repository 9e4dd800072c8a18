"""
All database models. Imported here so Base.metadata sees them for create_all().
"""

from .base import UserScopedBase
from .memory import ChatMemoryRecord
from .knowledge import KnowledgeDocumentRecord
from .artist import ArtistProfileRecord

__all__ = [
    "UserScopedBase",
    "ChatMemoryRecord",
    "KnowledgeDocumentRecord",
    "ArtistProfileRecord",
]

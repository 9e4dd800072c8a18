"""
Content library: generated posts the operator chose to keep.

Local tier only, one list per user and artist, newest first. Export wraps
the list as {library, export_date, version}; import replaces the library
wholesale and leaves it untouched when the payload is invalid.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..core.errors import ValidationError
from ..core.storage import LocalStore, user_namespace
from .content import PLATFORM_CONFIGS

logger = logging.getLogger(__name__)

LOCAL_KEY = "items"
EXPORT_VERSION = "1.0"
RECENT_LIMIT = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SavedContent(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str
    content_type: str = "instagram"
    topic: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ContentLibrary:
    def __init__(self, local: LocalStore, user_id: str, artist_id: Optional[str] = None):
        self.local = local
        self.user_id = user_id
        self.artist_id = artist_id
        self._namespace = user_namespace(user_id, "library", artist_id)
        self.items: list[SavedContent] = self._read_local()

    def _read_local(self) -> list[SavedContent]:
        items = []
        for raw in self.local.read(self._namespace, LOCAL_KEY, default=[]) or []:
            try:
                items.append(SavedContent.model_validate(raw))
            except ValueError as e:
                logger.warning("Skipping unreadable library item: %s", e)
        return items

    def _write_local(self) -> None:
        self.local.write(self._namespace, LOCAL_KEY, [i.model_dump(mode="json") for i in self.items])

    # ── CRUD ─────────────────────────────────────────────────────────

    def save(self, content: str, content_type: str, topic: str = "",
             metadata: Optional[dict] = None) -> SavedContent:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Content is required.")

        item = SavedContent(
            content=content,
            content_type=(content_type or "instagram").lower(),
            topic=(topic or "").strip(),
            metadata=metadata or {},
        )
        self.items.insert(0, item)
        self._write_local()
        logger.info("Saved %s content for %s", item.content_type, self.user_id)
        return item

    def get(self, item_id: str) -> Optional[SavedContent]:
        return next((i for i in self.items if i.id == item_id), None)

    def update(self, item_id: str, content: str) -> Optional[SavedContent]:
        """Replace the text of a saved item. None when the id is unknown."""
        content = (content or "").strip()
        if not content:
            raise ValidationError("Content is required.")

        for index, current in enumerate(self.items):
            if current.id == item_id:
                updated = current.model_copy(update={"content": content, "updated_at": _utcnow()})
                self.items[index] = updated
                self._write_local()
                return updated
        return None

    def delete(self, item_id: str) -> bool:
        before = len(self.items)
        self.items = [i for i in self.items if i.id != item_id]
        if len(self.items) == before:
            return False
        self._write_local()
        return True

    def clear_all(self) -> int:
        removed = len(self.items)
        self.items = []
        self._write_local()
        return removed

    # ── Queries ──────────────────────────────────────────────────────

    def recent(self, limit: int = RECENT_LIMIT) -> list[SavedContent]:
        return self.items[:max(limit, 0)]

    def filter_by_type(self, content_type: str = "all") -> list[SavedContent]:
        if not content_type or content_type == "all":
            return list(self.items)
        return [i for i in self.items if i.content_type == content_type]

    def search(self, query: str = "", content_type: str = "all") -> list[SavedContent]:
        """Case-insensitive match on content or topic, optionally one type only."""
        results = self.filter_by_type(content_type)
        q = (query or "").strip().lower()
        if q:
            results = [i for i in results if q in i.content.lower() or q in i.topic.lower()]
        return results

    def stats(self) -> dict:
        by_type = {t: 0 for t in PLATFORM_CONFIGS}
        for item in self.items:
            by_type[item.content_type] = by_type.get(item.content_type, 0) + 1
        return {"total": len(self.items), "by_type": by_type}

    # ── Export / import ──────────────────────────────────────────────

    def export_json(self) -> str:
        data = {
            "library": [i.model_dump(mode="json") for i in self.items],
            "export_date": _utcnow().isoformat(),
            "version": EXPORT_VERSION,
        }
        return json.dumps(data, ensure_ascii=False, indent=2)

    def import_json(self, payload: str) -> int:
        """Replace the library with an export. Returns the item count, 0 if rejected."""
        try:
            data = json.loads(payload)
            items = [SavedContent.model_validate(i) for i in data["library"]]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Library import rejected: %s", e)
            return 0

        self.items = items
        self._write_local()
        return len(items)

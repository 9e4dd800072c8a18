"""
Knowledge base: briefings, strategies, tone of voice, campaigns...

Documents are owned by a user and optionally by one artist. Documents with no
artist are shared by every artist of their owner. Global documents are
admin-managed and visible to everyone, but only the context builder always
includes them; list/search views hide them from non-admins.

The local tier holds a mirror of every document this user has seen; the
remote tier (knowledge_documents) is the shared copy when connected.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.auth import AuthenticatedUser
from ..core.database import session_scope
from ..core.errors import NotFoundError, PermissionDeniedError, ValidationError
from ..core.storage import LocalStore, user_namespace
from ..models.knowledge import KnowledgeDocumentRecord

logger = logging.getLogger(__name__)

LOCAL_KEY = "documents"
CONTEXT_HEADER = "\n\n=== KNOWLEDGE BASE AND STRATEGIES ===\n"


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    priority: int


CATEGORIES: tuple[Category, ...] = (
    Category("strategy", "Marketing Strategy", 1),
    Category("briefing", "Campaign Briefing", 2),
    Category("voice", "Tone of Voice", 3),
    Category("campaign", "Active Campaign", 4),
    Category("release", "Release", 5),
    Category("audience", "Target Audience", 6),
    Category("hashtags", "Hashtags and Keywords", 7),
    Category("other", "Other", 10),
)

_CATEGORY_BY_ID = {c.id: c for c in CATEGORIES}


def category_by_id(category_id: str) -> Category:
    """Unknown categories fall back to `other`."""
    return _CATEGORY_BY_ID.get(category_id, _CATEGORY_BY_ID["other"])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KnowledgeDocument(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    category: str = "other"
    content: str
    is_global: bool = False
    user_id: Optional[str] = None
    artist_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_record(cls, record: KnowledgeDocumentRecord) -> "KnowledgeDocument":
        return cls(
            id=record.id,
            title=record.title,
            category=record.category,
            content=record.content,
            is_global=record.is_global,
            user_id=record.user_id,
            artist_id=record.artist_id,
            created_at=record.created_at or _utcnow(),
            updated_at=record.updated_at or _utcnow(),
        )


def _clean(title: str, content: str) -> tuple[str, str]:
    title = (title or "").strip()
    content = (content or "").strip()
    if not title:
        raise ValidationError("Document title is required.")
    if not content:
        raise ValidationError("Document content is required.")
    return title, content


def render_context(documents: list[KnowledgeDocument], max_length: int = 3000) -> str:
    """
    Deterministic context block: documents sorted by category priority,
    appended whole until the next one would overflow `max_length`.
    """
    if not documents:
        return ""

    ordered = sorted(documents, key=lambda d: category_by_id(d.category).priority)

    context = CONTEXT_HEADER
    for doc in ordered:
        block = f"\n[{category_by_id(doc.category).name}] {doc.title}:\n{doc.content}\n"
        if len(context) + len(block) > max_length:
            break
        context += block

    return context


class KnowledgeStore:
    def __init__(
        self,
        local: LocalStore,
        user: AuthenticatedUser,
        artist_id: Optional[str] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.local = local
        self.user = user
        self.artist_id = artist_id
        self.session_factory = session_factory
        self._namespace = user_namespace(user.user_id, "knowledge")
        self.documents: list[KnowledgeDocument] = [
            d for d in self._read_local() if self._in_scope(d)
        ]

    @property
    def connected(self) -> bool:
        return self.session_factory is not None

    # ── Local tier ───────────────────────────────────────────────────

    def _read_local(self) -> list[KnowledgeDocument]:
        raw = self.local.read(self._namespace, LOCAL_KEY, default=[])
        docs = []
        for item in raw or []:
            try:
                docs.append(KnowledgeDocument.model_validate(item))
            except ValueError as e:
                logger.warning("Skipping unreadable local document: %s", e)
        return docs

    def _write_local(self) -> None:
        """Replace this scope's entries in the local mirror, keep other artists' ones."""
        others = [d for d in self._read_local() if not self._in_scope(d)]
        payload = [d.model_dump(mode="json") for d in self.documents + others]
        self.local.write(self._namespace, LOCAL_KEY, payload)

    def _in_scope(self, doc: KnowledgeDocument) -> bool:
        if doc.is_global:
            return True
        if self.artist_id is None:
            return True
        return doc.artist_id in (self.artist_id, None)

    # ── Remote tier ──────────────────────────────────────────────────

    def _scope_filter(self):
        owned = KnowledgeDocumentRecord.user_id == self.user.user_id
        if self.artist_id:
            owned = and_(
                owned,
                or_(
                    KnowledgeDocumentRecord.artist_id == self.artist_id,
                    KnowledgeDocumentRecord.artist_id.is_(None),
                ),
            )
        return or_(owned, KnowledgeDocumentRecord.is_global == True)  # noqa: E712

    async def refresh(self) -> list[KnowledgeDocument]:
        """Reload from the remote tier (global documents included)."""
        if not self.connected:
            return self.documents
        try:
            async with session_scope(self.session_factory) as db:
                result = await db.execute(
                    select(KnowledgeDocumentRecord)
                    .where(self._scope_filter())
                    .order_by(KnowledgeDocumentRecord.created_at.desc())
                )
                records = result.scalars().all()
        except Exception as e:
            logger.warning("Knowledge refresh failed, keeping local copy: %s", e)
            return self.documents

        self.documents = [KnowledgeDocument.from_record(r) for r in records]
        self._write_local()
        logger.debug("Loaded %d knowledge documents for %s", len(self.documents), self.user.user_id)
        return self.documents

    async def _remote_insert(self, doc: KnowledgeDocument) -> None:
        if not self.connected:
            return
        try:
            async with session_scope(self.session_factory) as db:
                db.add(KnowledgeDocumentRecord(
                    id=doc.id,
                    user_id=self.user.user_id,
                    artist_id=doc.artist_id,
                    title=doc.title,
                    category=doc.category,
                    content=doc.content,
                    is_global=doc.is_global,
                    created_at=doc.created_at,
                    updated_at=doc.updated_at,
                ))
        except Exception as e:
            logger.warning("Knowledge remote insert failed (%s): %s", doc.id, e)

    async def _remote_update(self, doc_id: str, title: str, category: str, content: str,
                             global_only: bool = False) -> Optional[KnowledgeDocument]:
        """Update the remote row. Raises NotFoundError if it does not exist."""
        async with session_scope(self.session_factory) as db:
            query = select(KnowledgeDocumentRecord).where(KnowledgeDocumentRecord.id == doc_id)
            if global_only:
                query = query.where(KnowledgeDocumentRecord.is_global == True)  # noqa: E712
            result = await db.execute(query)
            record = result.scalar_one_or_none()
            if record is None or (not record.is_global and record.user_id != self.user.user_id):
                raise NotFoundError(f"Knowledge document {doc_id} not found")
            if record.is_global and not self.user.is_admin:
                raise PermissionDeniedError("Only administrators can edit global documents")
            record.title = title
            record.category = category
            record.content = content
            record.updated_at = _utcnow()
            await db.flush()
            return KnowledgeDocument.from_record(record)

    async def _remote_delete(self, doc_id: str, global_only: bool = False) -> bool:
        async with session_scope(self.session_factory) as db:
            query = delete(KnowledgeDocumentRecord).where(KnowledgeDocumentRecord.id == doc_id)
            if global_only:
                query = query.where(KnowledgeDocumentRecord.is_global == True)  # noqa: E712
            elif not self.user.is_admin:
                query = query.where(
                    KnowledgeDocumentRecord.user_id == self.user.user_id,
                    KnowledgeDocumentRecord.is_global == False,  # noqa: E712
                )
            result = await db.execute(query)
            return (result.rowcount or 0) > 0

    # ── CRUD ─────────────────────────────────────────────────────────

    def get(self, doc_id: str) -> Optional[KnowledgeDocument]:
        return next((d for d in self.documents if d.id == doc_id), None)

    def list_documents(self) -> list[KnowledgeDocument]:
        return self.search("")

    async def add(self, title: str, category: str, content: str) -> KnowledgeDocument:
        title, content = _clean(title, content)
        doc = KnowledgeDocument(
            title=title,
            category=category,
            content=content,
            user_id=self.user.user_id,
            artist_id=self.artist_id,
        )
        await self._remote_insert(doc)
        self.documents.insert(0, doc)
        self._write_local()
        logger.info("Knowledge document added: %s [%s]", doc.title, doc.category)
        return doc

    async def update(self, doc_id: str, title: str, category: str, content: str) -> Optional[KnowledgeDocument]:
        title, content = _clean(title, content)
        existing = self.get(doc_id)
        if existing and existing.is_global and not self.user.is_admin:
            raise PermissionDeniedError("Only administrators can edit global documents")

        updated: Optional[KnowledgeDocument] = None
        if self.connected:
            try:
                updated = await self._remote_update(doc_id, title, category, content)
            except (NotFoundError, PermissionDeniedError):
                raise
            except Exception as e:
                logger.warning("Knowledge remote update failed (%s): %s", doc_id, e)

        if updated is None:
            if existing is None:
                return None
            updated = existing.model_copy(update={
                "title": title,
                "category": category,
                "content": content,
                "updated_at": _utcnow(),
            })

        self._replace(updated)
        return updated

    async def delete(self, doc_id: str) -> bool:
        existing = self.get(doc_id)
        if existing and existing.is_global and not self.user.is_admin:
            raise PermissionDeniedError("Only administrators can delete global documents")

        removed_remote = False
        if self.connected:
            try:
                removed_remote = await self._remote_delete(doc_id)
            except Exception as e:
                logger.warning("Knowledge remote delete failed (%s): %s", doc_id, e)

        before = len(self.documents)
        self.documents = [d for d in self.documents if d.id != doc_id]
        removed_local = len(self.documents) < before
        self._write_local()
        return removed_local or removed_remote

    def _replace(self, doc: KnowledgeDocument) -> None:
        for index, current in enumerate(self.documents):
            if current.id == doc.id:
                self.documents[index] = doc
                break
        else:
            self.documents.insert(0, doc)
        self._write_local()

    # ── Global documents (admin) ─────────────────────────────────────

    def _require_admin(self, action: str) -> None:
        if not self.user.is_admin:
            raise PermissionDeniedError(f"Only administrators can {action} global documents")

    async def add_global(self, title: str, category: str, content: str) -> KnowledgeDocument:
        self._require_admin("create")
        title, content = _clean(title, content)
        doc = KnowledgeDocument(
            title=title,
            category=category,
            content=content,
            is_global=True,
            user_id=self.user.user_id,
        )
        await self._remote_insert(doc)
        self.documents.insert(0, doc)
        self._write_local()
        return doc

    async def update_global(self, doc_id: str, title: str, category: str, content: str) -> Optional[KnowledgeDocument]:
        self._require_admin("edit")
        existing = self.get(doc_id)
        if existing is not None and not existing.is_global:
            raise NotFoundError(f"Global document {doc_id} not found")
        if self.connected:
            title, content = _clean(title, content)
            updated = await self._remote_update(doc_id, title, category, content, global_only=True)
            self._replace(updated)
            return updated
        return await self.update(doc_id, title, category, content)

    async def delete_global(self, doc_id: str) -> bool:
        self._require_admin("delete")
        existing = self.get(doc_id)
        if existing is not None and not existing.is_global:
            return False
        return await self.delete(doc_id)

    # ── Search / context ─────────────────────────────────────────────

    def search(self, query: str = "", category_filter: str = "all",
               include_global: bool = False) -> list[KnowledgeDocument]:
        results = self.documents

        if not (self.user.is_admin or include_global):
            results = [d for d in results if not d.is_global]

        if category_filter and category_filter != "all":
            results = [d for d in results if d.category == category_filter]

        q = (query or "").strip().lower()
        if q:
            results = [d for d in results if q in d.title.lower() or q in d.content.lower()]

        return list(results)

    def context_block(self, max_length: int = 3000) -> str:
        return render_context(self.documents, max_length)

    # ── Stats / import / export ──────────────────────────────────────

    def categories(self) -> list[Category]:
        return list(CATEGORIES)

    def stats(self) -> dict:
        by_category: dict[str, int] = {}
        for d in self.documents:
            by_category[d.category] = by_category.get(d.category, 0) + 1
        return {
            "total": len(self.documents),
            "by_category": by_category,
            "total_characters": sum(len(d.content) for d in self.documents),
            "global_documents": sum(1 for d in self.documents if d.is_global),
        }

    def export_json(self) -> str:
        owned = [d for d in self.documents if not d.is_global]
        return json.dumps([d.model_dump(mode="json") for d in owned], ensure_ascii=False, indent=2)

    async def import_json(self, payload: str) -> int:
        """Import an exported list. Invalid payloads import nothing."""
        try:
            data = json.loads(payload)
        except ValueError:
            logger.warning("Knowledge import: payload is not JSON")
            return 0
        if not isinstance(data, list):
            return 0

        imported = 0
        for item in data:
            try:
                await self.add(item.get("title", ""), item.get("category", "other"), item.get("content", ""))
                imported += 1
            except (ValidationError, AttributeError) as e:
                logger.info("Knowledge import skipped an entry: %s", e)
        return imported

    async def clear_all(self) -> int:
        owned = [d.id for d in self.documents if not d.is_global]
        for doc_id in owned:
            await self.delete(doc_id)
        return len(owned)

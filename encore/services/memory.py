"""
Long-term chat memory: insights, learned facts and preferences.

Two tiers:
  - local tier (LocalStore) is written synchronously on every mutation and is
    what every read uses;
  - remote tier (chat_memory table) is written in the background through a
    debounced task, and read once at start-up to reconcile with other devices.

Reconciliation goes through a MergeStrategy. The default one adopts the
remote copy wholesale when it holds strictly more insights or more facts.
"""

import asyncio
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.database import session_scope
from ..core.storage import LocalStore, user_namespace
from ..models.memory import ChatMemoryRecord
from .scheduler import DebouncedTask

logger = logging.getLogger(__name__)

LOCAL_KEY = "chat_memory"

# Context block limits (most recent first)
CONTEXT_FACTS = 20
CONTEXT_INSIGHTS = 15

MIN_INSIGHT_LENGTH = 4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Insight(BaseModel):
    id: str
    category: str
    content: str
    created_at: datetime = Field(default_factory=_utcnow)


class MemoryState(BaseModel):
    insights: list[Insight] = Field(default_factory=list)
    learned_facts: list[str] = Field(default_factory=list)
    preferences: dict[str, Any] = Field(default_factory=dict)

    def to_record(self) -> dict:
        """Remote/local wire shape: {insights, learned_facts, preferences}."""
        return self.model_dump(mode="json")


# ── Merge strategies ─────────────────────────────────────────────────

class MergeStrategy(ABC):
    @abstractmethod
    def merge(self, local: MemoryState, remote: MemoryState) -> Optional[MemoryState]:
        """Return the state to adopt, or None to keep local as is."""
        ...


class LargerCollectionWins(MergeStrategy):
    """
    Remote replaces local when it has strictly more insights or facts.

    Newer-but-fewer local edits are discarded by this rule.
    """

    def merge(self, local: MemoryState, remote: MemoryState) -> Optional[MemoryState]:
        if (
            len(remote.insights) > len(local.insights)
            or len(remote.learned_facts) > len(local.learned_facts)
        ):
            return remote
        return None


# ── Insight extraction ───────────────────────────────────────────────

@dataclass(frozen=True)
class ExtractionRule:
    category: str
    pattern: re.Pattern
    group: int = 1  # 0 = whole match


_FRAGMENT = r"([^,.;!?\n]+)"

EXTRACTION_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule("Event", re.compile(r"show\s+(?:em|no|na)\s+" + _FRAGMENT, re.I)),
    ExtractionRule("Event", re.compile(r"show\s+(?:at|in)\s+" + _FRAGMENT, re.I)),
    ExtractionRule("Release", re.compile(r"lançamento\s+(?:do|da|de)\s+" + _FRAGMENT, re.I)),
    ExtractionRule("Release", re.compile(r"release\s+of\s+" + _FRAGMENT, re.I)),
    ExtractionRule("Music", re.compile(r"single\s+(?:chamad[oa]|called|named)?\s*\"?([^\"\n,.;!?]+)\"?", re.I)),
    ExtractionRule("Album", re.compile(r"[áa]lbum\s+(?:chamad[oa]|called|named)?\s*\"?([^\"\n,.;!?]+)\"?", re.I)),
    ExtractionRule("Collaboration", re.compile(r"parceria\s+com\s+" + _FRAGMENT, re.I)),
    ExtractionRule("Collaboration", re.compile(r"collab(?:oration)?\s+with\s+" + _FRAGMENT, re.I)),
    ExtractionRule("Metric", re.compile(r"(\d+)\s*(?:mil|k)\s*(?:seguidores|followers)", re.I), group=0),
)


def extract_candidates(text: str, rules: tuple[ExtractionRule, ...] = EXTRACTION_RULES) -> list[tuple[str, str]]:
    """Run every rule once against `text`. Returns (category, content) pairs."""
    found = []
    for rule in rules:
        match = rule.pattern.search(text)
        if not match:
            continue
        content = (match.group(rule.group) or "").strip()
        if len(content) < MIN_INSIGHT_LENGTH:
            continue
        found.append((rule.category, content))
    return found


# ── Remote tier queries ──────────────────────────────────────────────

async def fetch_memory(db: AsyncSession, user_id: str) -> Optional[MemoryState]:
    result = await db.execute(
        select(ChatMemoryRecord).where(ChatMemoryRecord.user_id == user_id)
    )
    record = result.scalar_one_or_none()
    if record is None:
        return None
    return MemoryState(
        insights=record.insights or [],
        learned_facts=record.learned_facts or [],
        preferences=record.preferences or {},
    )


async def upsert_memory(db: AsyncSession, user_id: str, state: MemoryState) -> None:
    data = state.to_record()
    result = await db.execute(
        select(ChatMemoryRecord).where(ChatMemoryRecord.user_id == user_id)
    )
    record = result.scalar_one_or_none()
    if record:
        record.insights = data["insights"]
        record.learned_facts = data["learned_facts"]
        record.preferences = data["preferences"]
        record.updated_at = _utcnow()
    else:
        db.add(ChatMemoryRecord(user_id=user_id, **data))
    await db.flush()


async def delete_memory(db: AsyncSession, user_id: str) -> None:
    await db.execute(delete(ChatMemoryRecord).where(ChatMemoryRecord.user_id == user_id))


# ── Store ────────────────────────────────────────────────────────────

class MemoryStore:
    def __init__(
        self,
        local: LocalStore,
        user_id: str,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        merge_strategy: Optional[MergeStrategy] = None,
        max_insights: int = 100,
        max_facts: int = 100,
        debounce_seconds: float = 2.0,
    ):
        self.local = local
        self.user_id = user_id
        self.session_factory = session_factory
        self.merge_strategy = merge_strategy or LargerCollectionWins()
        self.max_insights = max_insights
        self.max_facts = max_facts
        self._namespace = user_namespace(user_id, "memory")
        self._remote_write = DebouncedTask(
            self._push_remote, delay=debounce_seconds, name=f"memory-sync:{user_id}"
        )
        self._sync_task: Optional[asyncio.Task] = None
        self._last_id = 0
        self.state = self._load_local()

    # ── Persistence ──────────────────────────────────────────────────

    def _load_local(self) -> MemoryState:
        raw = self.local.read(self._namespace, LOCAL_KEY)
        if not raw:
            return MemoryState()
        try:
            return MemoryState.model_validate(raw)
        except ValueError as e:
            logger.warning("Discarding unreadable local memory for %s: %s", self.user_id, e)
            return MemoryState()

    def _save(self) -> None:
        self.local.write(self._namespace, LOCAL_KEY, self.state.to_record())
        if self.session_factory is not None:
            self._remote_write.schedule()

    async def _push_remote(self) -> None:
        async with session_scope(self.session_factory) as db:
            await upsert_memory(db, self.user_id, self.state)
        logger.debug("Memory synced to remote for %s", self.user_id)

    def start(self) -> Optional[asyncio.Task]:
        """Kick off the remote fetch in the background. Local state is already loaded."""
        if self.session_factory is None:
            return None
        if self._sync_task is None or self._sync_task.done():
            self._sync_task = asyncio.create_task(self.sync_from_remote())
            self._sync_task.add_done_callback(self._on_sync_done)
        return self._sync_task

    def _on_sync_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Memory background sync failed for %s: %s", self.user_id, error)

    async def sync_from_remote(self) -> bool:
        """Fetch the remote copy and let the merge strategy decide. True if adopted."""
        if self.session_factory is None:
            return False
        try:
            async with session_scope(self.session_factory) as db:
                remote = await fetch_memory(db, self.user_id)
        except Exception as e:
            logger.warning("Memory remote fetch failed for %s: %s", self.user_id, e)
            return False

        if remote is None:
            return False

        adopted = self.merge_strategy.merge(self.state, remote)
        if adopted is None:
            return False

        self.state = adopted
        self.local.write(self._namespace, LOCAL_KEY, self.state.to_record())
        logger.info("Memory synced from remote: %s", self.stats())
        return True

    async def flush(self) -> None:
        """Force any pending remote write. Called on shutdown."""
        await self._remote_write.flush()

    # ── Mutations ────────────────────────────────────────────────────

    def _next_id(self) -> str:
        self._last_id = max(time.time_ns(), self._last_id + 1)
        return str(self._last_id)

    def add_insight(self, category: str, content: str) -> bool:
        content = (content or "").strip()
        if not content:
            return False

        lowered = content.lower()
        if any(i.content.lower() == lowered for i in self.state.insights):
            return False

        insight = Insight(id=self._next_id(), category=category, content=content)
        self.state.insights.insert(0, insight)
        del self.state.insights[self.max_insights:]
        self._save()
        return True

    def add_fact(self, fact: str) -> None:
        # Exact-match dedupe, unlike insights
        if fact in self.state.learned_facts:
            return
        self.state.learned_facts.insert(0, fact)
        del self.state.learned_facts[self.max_facts:]
        self._save()

    def set_preference(self, key: str, value: Any) -> None:
        self.state.preferences[key] = value
        self._save()

    def extract_insights(self, user_text: str) -> int:
        """Heuristic extraction from a user message. Returns how many were stored."""
        added = 0
        for category, content in extract_candidates(user_text or ""):
            if self.add_insight(category, content):
                added += 1
        return added

    async def clear(self) -> None:
        self.state = MemoryState()
        self.local.write(self._namespace, LOCAL_KEY, self.state.to_record())
        # An upsert already running must land before the delete
        await self._remote_write.drain()

        if self.session_factory is None:
            return
        try:
            async with session_scope(self.session_factory) as db:
                await delete_memory(db, self.user_id)
        except Exception as e:
            logger.warning("Memory remote delete failed for %s: %s", self.user_id, e)

    # ── Reads ────────────────────────────────────────────────────────

    def context_block(self) -> str:
        context = ""

        if self.state.learned_facts:
            context += "\n\n# KNOWN FACTS ABOUT THE ARTIST\n"
            context += "\n".join(f"- {f}" for f in self.state.learned_facts[:CONTEXT_FACTS])

        if self.state.insights:
            context += "\n\n# INSIGHTS FROM PREVIOUS CONVERSATIONS\n"
            context += "\n".join(
                f"- [{i.category}] {i.content}" for i in self.state.insights[:CONTEXT_INSIGHTS]
            )

        if self.state.preferences:
            context += "\n\n# USER PREFERENCES\n"
            context += "\n".join(f"- {k}: {v}" for k, v in self.state.preferences.items())

        return context

    def stats(self) -> dict:
        return {
            "insight_count": len(self.state.insights),
            "fact_count": len(self.state.learned_facts),
            "preference_count": len(self.state.preferences),
        }

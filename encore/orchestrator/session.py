"""
Conversation session: one operator's chat thread with the assistant.

Two states: IDLE and AWAITING_RESPONSE. A send while a request is in flight
is rejected with BusyError; it is never queued and never reaches the gateway.

Per turn:
  1. append the user message (persisted in the local tier)
  2. extract memory insights from it (failures are logged, never raised)
  3. build a fresh system prompt from profile + knowledge + memory
  4. send the system prompt + the last `history_window` turns
  5. append the assistant reply only if the call succeeded
"""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import BusyError, EmptyInputError, TransportError
from ..core.storage import LocalStore, user_namespace
from ..services.content import manual_template
from ..services.knowledge import KnowledgeStore
from ..services.memory import MemoryStore
from ..services.profile import ProfileStore
from ..services.providers import ProviderGateway
from .prompt import DEFAULT_PLATFORM, build_system_prompt

logger = logging.getLogger(__name__)

QUICK_PROMPTS = [
    {"icon": "camera", "text": "Instagram Strategy", "prompt": "I need a strategic post for Instagram"},
    {"icon": "megaphone", "text": "Show/Event", "prompt": "I need to promote a show with a complete campaign"},
    {"icon": "lightbulb", "text": "Creative idea", "prompt": "Suggest creative content ideas for this week"},
    {"icon": "calendar", "text": "Calendar", "prompt": "Help me build a content calendar for the next 7 days"},
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: str
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


class ConversationSession:
    def __init__(
        self,
        session_id: str,
        user_id: str,
        local: LocalStore,
        gateway: ProviderGateway,
        memory: MemoryStore,
        profile: ProfileStore,
        knowledge: Optional[KnowledgeStore] = None,
        history_window: int = 12,
        timeout: float = 30.0,
        profile_limit: int = 2500,
        knowledge_limit: int = 6000,
        language: str = "Brazilian Portuguese",
    ):
        self.session_id = session_id
        self.user_id = user_id
        self.local = local
        self.gateway = gateway
        self.memory = memory
        self.profile = profile
        self.knowledge = knowledge
        self.history_window = history_window
        self.timeout = timeout
        self.profile_limit = profile_limit
        self.knowledge_limit = knowledge_limit
        self.language = language

        self.state = SessionState.IDLE
        self._namespace = user_namespace(user_id, "chat")
        self.messages: list[Message] = self._load_messages()

    # ── History persistence ──────────────────────────────────────────

    def _load_messages(self) -> list[Message]:
        raw = self.local.read(self._namespace, self.session_id, default=[])
        try:
            return [Message.model_validate(m) for m in raw or []]
        except ValueError as e:
            logger.warning("Discarding unreadable history for session %s: %s", self.session_id, e)
            return []

    def _save_messages(self) -> None:
        self.local.write(self._namespace, self.session_id, [m.model_dump(mode="json") for m in self.messages])

    def _append(self, role: str, content: str) -> Message:
        message = Message(role=role, content=content)
        self.messages.append(message)
        self._save_messages()
        return message

    def clear_messages(self) -> None:
        """Empty the turn history. Memory is left untouched."""
        self.messages = []
        self._save_messages()

    # ── Prompt ───────────────────────────────────────────────────────

    def system_prompt(self, platform: Optional[str] = None) -> str:
        knowledge_context = self.knowledge.context_block(self.knowledge_limit) if self.knowledge else ""
        return build_system_prompt(
            artist_name=self.profile.artist_name,
            profile_context=self.profile.formatted_context(),
            knowledge_context=knowledge_context,
            memory_context=self.memory.context_block(),
            platform=platform,
            language=self.language,
            profile_limit=self.profile_limit,
        )

    def _window(self) -> list[dict]:
        recent = self.messages[-self.history_window:] if self.history_window > 0 else []
        return [{"role": m.role, "content": m.content} for m in recent]

    # ── Turn ─────────────────────────────────────────────────────────

    async def send_message(self, text: str, platform: Optional[str] = None) -> str:
        """Send one user turn and return the assistant's reply text."""
        if not text or not text.strip():
            raise EmptyInputError("Message is empty.")
        if self.state is SessionState.AWAITING_RESPONSE:
            raise BusyError("A reply is still being generated for this session.")

        self.state = SessionState.AWAITING_RESPONSE
        try:
            self._append("user", text)

            try:
                self.memory.extract_insights(text)
            except Exception as e:
                logger.warning("Insight extraction failed for session %s: %s", self.session_id, e)

            if self.gateway.manual_mode:
                reply = manual_template(platform or DEFAULT_PLATFORM, text.strip())
            else:
                messages = [{"role": "system", "content": self.system_prompt(platform)}] + self._window()
                try:
                    response = await asyncio.wait_for(self.gateway.send(messages), timeout=self.timeout)
                except asyncio.TimeoutError:
                    logger.error("Provider call timed out after %.0fs (session %s)", self.timeout, self.session_id)
                    raise TransportError(f"The assistant did not answer within {self.timeout:.0f} seconds.")
                reply = response.content

            self._append("assistant", reply)
            return reply
        finally:
            self.state = SessionState.IDLE

    # ── Extras ───────────────────────────────────────────────────────

    def welcome_message(self, platform: Optional[str] = None) -> str:
        platform = (platform or DEFAULT_PLATFORM).lower()
        stats = self.memory.stats()

        lines = [
            "**Hi! I'm your music marketing strategist.**",
            "",
            f"**Platform:** {platform.capitalize()}",
        ]
        if stats["insight_count"] or stats["fact_count"]:
            lines.append(
                f"**Active memory:** {_plural(stats['insight_count'], 'insight')}, "
                f"{_plural(stats['fact_count'], 'learned fact')}"
            )
        lines.append("")
        lines.append("Tell me what you want to create! The more you use me, the more I learn about you.")
        return "\n".join(lines)

    @staticmethod
    def quick_prompts() -> list[dict]:
        return [dict(p) for p in QUICK_PROMPTS]

"""
Application context: everything built once at startup and handed to the
routes: settings, flags, local store, optional remote tier, provider gateway,
and one cached Workspace per user.

Optional collaborators are passed explicitly: when the remote tier is off,
`session_factory` is None and every store runs local-only.
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ..orchestrator.session import ConversationSession
from ..services.artists import ArtistRoster
from ..services.content import ContentGenerator
from ..services.knowledge import KnowledgeStore
from ..services.library import ContentLibrary
from ..services.memory import MemoryStore
from ..services.profile import ProfileStore
from ..services.providers import PreferenceStore, ProviderGateway
from .auth import AuthenticatedUser
from .config import Settings
from .database import close_db, create_engine, create_session_factory, init_db
from .flags import FeatureFlags
from .storage import LocalStore

logger = logging.getLogger(__name__)


class Workspace:
    """Per-user bundle of stores, bound to the user's active artist."""

    def __init__(self, ctx: "AppContext", user: AuthenticatedUser):
        self.ctx = ctx
        self.user = user
        s = ctx.settings

        self.memory = MemoryStore(
            ctx.local,
            user.user_id,
            session_factory=ctx.session_factory,
            max_insights=s.memory_max_insights,
            max_facts=s.memory_max_facts,
            debounce_seconds=s.memory_sync_debounce_seconds,
        )
        self.roster = ArtistRoster(ctx.local, user.user_id, ctx.session_factory)
        self.artist_id: Optional[str] = None
        self.profile = ProfileStore(ctx.local, user.user_id, None, ctx.session_factory)
        self.knowledge = KnowledgeStore(ctx.local, user, None, ctx.session_factory)
        self.library = ContentLibrary(ctx.local, user.user_id)
        self.sessions: dict[str, ConversationSession] = {}
        self._ready = False
        self._lock = asyncio.Lock()

    async def ensure_ready(self) -> "Workspace":
        """First use: start the memory sync and bind the active artist."""
        if self._ready:
            return self
        async with self._lock:
            if not self._ready:
                self.memory.start()
                await self.sync_active_artist()
                self._ready = True
        return self

    async def sync_active_artist(self) -> Optional[str]:
        active = await self.roster.active()
        artist_id = active.id if active else None
        if artist_id != self.artist_id or not self._ready:
            await self.bind_artist(artist_id)
        return artist_id

    async def bind_artist(self, artist_id: Optional[str]) -> None:
        """Swap the profile, knowledge and library stores to another artist."""
        sf = self.ctx.session_factory
        self.artist_id = artist_id
        self.profile = ProfileStore(self.ctx.local, self.user.user_id, artist_id, sf)
        self.knowledge = KnowledgeStore(self.ctx.local, self.user, artist_id, sf)
        self.library = ContentLibrary(self.ctx.local, self.user.user_id, artist_id)
        await self.profile.load()
        await self.knowledge.refresh()

        for session in self.sessions.values():
            session.profile = self.profile
            session.knowledge = self.knowledge
        logger.info("Workspace %s bound to artist %s", self.user.user_id, artist_id or "default")

    def session(self, session_id: str) -> ConversationSession:
        if session_id not in self.sessions:
            s = self.ctx.settings
            self.sessions[session_id] = ConversationSession(
                session_id=session_id,
                user_id=self.user.user_id,
                local=self.ctx.local,
                gateway=self.ctx.gateway,
                memory=self.memory,
                profile=self.profile,
                knowledge=self.knowledge,
                history_window=s.history_window,
                timeout=s.llm_timeout_seconds,
                profile_limit=s.profile_context_chars,
                knowledge_limit=s.knowledge_context_chars,
                language=s.response_language,
            )
        return self.sessions[session_id]

    def content_generator(self) -> ContentGenerator:
        return ContentGenerator(
            self.ctx.gateway, self.profile, self.knowledge, self.ctx.settings.response_language,
        )

    async def close(self) -> None:
        await self.memory.flush()


class AppContext:
    def __init__(
        self,
        settings: Settings,
        flags: FeatureFlags,
        local: LocalStore,
        gateway: ProviderGateway,
        engine: Optional[AsyncEngine] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.settings = settings
        self.flags = flags
        self.local = local
        self.gateway = gateway
        self.engine = engine
        self.session_factory = session_factory
        self._workspaces: dict[str, Workspace] = {}

    @classmethod
    def build(cls, settings: Settings, flags: FeatureFlags) -> "AppContext":
        local = LocalStore(settings.local_storage_path)
        preferences = PreferenceStore(local, flags.llm_provider, flags.manual_mode)
        gateway = ProviderGateway(settings, preferences)

        engine = None
        session_factory = None
        if flags.use_remote_store:
            engine = create_engine(settings.database_url, settings.debug)
            session_factory = create_session_factory(engine)
        else:
            logger.info("Remote store disabled, running local-only")

        return cls(settings, flags, local, gateway, engine, session_factory)

    async def startup(self) -> None:
        if self.engine is not None:
            await init_db(self.engine)

    async def workspace_for(self, user: AuthenticatedUser) -> Workspace:
        workspace = self._workspaces.get(user.user_id)
        if workspace is None:
            workspace = Workspace(self, user)
            self._workspaces[user.user_id] = workspace
        else:
            # Roles can change between tokens
            workspace.user = user
            workspace.knowledge.user = user
        return await workspace.ensure_ready()

    async def shutdown(self) -> None:
        for workspace in self._workspaces.values():
            await workspace.close()
        await self.gateway.aclose()
        if self.engine is not None:
            await close_db(self.engine)

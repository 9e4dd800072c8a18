"""
Artist roster: the 1..10 artists a user manages, exactly one active.

Activation always happens in one unit of work (remote) or one local write:
every other flag is cleared in the same step that sets the new one, so two
artists are never active at the same time.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.database import session_scope
from ..core.errors import LimitExceededError, NotFoundError, ValidationError
from ..core.storage import LocalStore, user_namespace
from ..models.artist import ArtistProfileRecord
from .profile import ArtistProfile, Bio, ProfileStore

logger = logging.getLogger(__name__)

MAX_ARTISTS = 10
LOCAL_KEY = "roster"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArtistSummary(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    genre: str = ""
    is_active: bool = False
    created_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_record(cls, record: ArtistProfileRecord) -> "ArtistSummary":
        bio = record.bio or {}
        return cls(
            id=record.id,
            name=bio.get("name") or "Unnamed artist",
            genre=bio.get("genre") or "",
            is_active=bool(record.is_active),
            created_at=record.created_at or _utcnow(),
        )


class ArtistRoster:
    def __init__(
        self,
        local: LocalStore,
        user_id: str,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.local = local
        self.user_id = user_id
        self.session_factory = session_factory
        self._namespace = user_namespace(user_id, "artists")

    # ── Local tier ───────────────────────────────────────────────────

    def _read_local(self) -> list[ArtistSummary]:
        raw = self.local.read(self._namespace, LOCAL_KEY, default=[])
        return [ArtistSummary.model_validate(a) for a in raw or []]

    def _write_local(self, artists: list[ArtistSummary]) -> None:
        self.local.write(self._namespace, LOCAL_KEY, [a.model_dump(mode="json") for a in artists])

    # ── Operations ───────────────────────────────────────────────────

    async def list(self) -> list[ArtistSummary]:
        if self.session_factory is None:
            return self._read_local()
        try:
            async with session_scope(self.session_factory) as db:
                result = await db.execute(
                    select(ArtistProfileRecord)
                    .where(ArtistProfileRecord.user_id == self.user_id)
                    .order_by(ArtistProfileRecord.created_at.asc())
                )
                artists = [ArtistSummary.from_record(r) for r in result.scalars().all()]
        except Exception as e:
            logger.warning("Failed to list remote artists, using local copy: %s", e)
            return self._read_local()

        self._write_local(artists)
        return artists

    async def active(self) -> Optional[ArtistSummary]:
        """The active artist; falls back to the oldest one and activates it."""
        artists = await self.list()
        if not artists:
            return None
        current = next((a for a in artists if a.is_active), None)
        if current:
            return current
        return await self.set_active(artists[0].id)

    async def set_active(self, artist_id: str) -> ArtistSummary:
        if self.session_factory is None:
            artists = self._read_local()
            if not any(a.id == artist_id for a in artists):
                raise NotFoundError(f"Artist {artist_id} not found")
            for a in artists:
                a.is_active = a.id == artist_id
            self._write_local(artists)
            return next(a for a in artists if a.id == artist_id)

        async with session_scope(self.session_factory) as db:
            result = await db.execute(
                select(ArtistProfileRecord).where(
                    ArtistProfileRecord.id == artist_id,
                    ArtistProfileRecord.user_id == self.user_id,
                )
            )
            record = result.scalar_one_or_none()
            if record is None:
                raise NotFoundError(f"Artist {artist_id} not found")

            await db.execute(
                update(ArtistProfileRecord)
                .where(
                    ArtistProfileRecord.user_id == self.user_id,
                    ArtistProfileRecord.id != artist_id,
                )
                .values(is_active=False)
            )
            record.is_active = True
            await db.flush()
            activated = ArtistSummary.from_record(record)

        logger.info("Active artist for %s is now %s", self.user_id, artist_id)
        return activated

    async def create(self, name: str, genre: str = "") -> ArtistSummary:
        name = (name or "").strip()
        genre = (genre or "").strip()
        if not name:
            raise ValidationError("Artist name is required.")

        profile = ArtistProfile(bio=Bio(name=name, genre=genre))

        if self.session_factory is None:
            artists = self._read_local()
            if len(artists) >= MAX_ARTISTS:
                raise LimitExceededError(f"Maximum of {MAX_ARTISTS} artists reached")
            artist = ArtistSummary(name=name, genre=genre, is_active=not artists)
            artists.append(artist)
            self._write_local(artists)
            # New artists start from their own bio, never the built-in template
            await ProfileStore(self.local, self.user_id, artist.id).save(profile)
            return artist

        async with session_scope(self.session_factory) as db:
            count = await db.scalar(
                select(func.count())
                .select_from(ArtistProfileRecord)
                .where(ArtistProfileRecord.user_id == self.user_id)
            )
            if (count or 0) >= MAX_ARTISTS:
                raise LimitExceededError(f"Maximum of {MAX_ARTISTS} artists reached")

            record = ArtistProfileRecord(
                user_id=self.user_id,
                is_active=(count or 0) == 0,
                **profile.model_dump(mode="json"),
            )
            db.add(record)
            await db.flush()
            artist = ArtistSummary.from_record(record)

        logger.info("Created artist %s (%s) for %s", artist.name, artist.id, self.user_id)
        return artist

    async def delete(self, artist_id: str) -> bool:
        """Delete an artist. The last one cannot be deleted."""
        artists = await self.list()
        target = next((a for a in artists if a.id == artist_id), None)
        if target is None:
            raise NotFoundError(f"Artist {artist_id} not found")
        if len(artists) <= 1:
            raise LimitExceededError("At least one artist is required")

        remaining = [a for a in artists if a.id != artist_id]

        if self.session_factory is None:
            if target.is_active:
                remaining[0].is_active = True
            self._write_local(remaining)
            return True

        async with session_scope(self.session_factory) as db:
            result = await db.execute(
                select(ArtistProfileRecord).where(
                    ArtistProfileRecord.id == artist_id,
                    ArtistProfileRecord.user_id == self.user_id,
                )
            )
            record = result.scalar_one_or_none()
            if record is not None:
                await db.delete(record)

        if target.is_active:
            await self.set_active(remaining[0].id)
        return True

"""
Artist profile: loads the structured profile of the active artist and
renders it into a block every prompt can include.

Usage:
    store = ProfileStore(local, user_id, artist_id)
    profile = await store.load()
    context = store.formatted_context()
"""

import logging
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.database import session_scope
from ..core.storage import LocalStore, user_namespace
from ..models.artist import ArtistProfileRecord

logger = logging.getLogger(__name__)

DEFAULT_KEY = "default"


class Bio(BaseModel):
    name: str = ""
    full_name: str = ""
    genre: str = ""
    description: str = ""
    location: str = ""
    years_active: str = ""


class Achievement(BaseModel):
    title: str = ""
    description: str = ""
    date: str = ""


class Event(BaseModel):
    title: str = ""
    venue: str = ""
    date: str = ""
    city: str = ""
    ticket_link: str = ""


class Release(BaseModel):
    title: str = ""
    type: str = "Single"
    release_date: str = ""
    description: str = ""
    platforms: dict[str, str] = Field(default_factory=dict)


class SocialLinks(BaseModel):
    instagram: str = ""
    facebook: str = ""
    twitter: str = ""
    tiktok: str = ""
    youtube: str = ""
    website: str = ""


class ArtistProfile(BaseModel):
    bio: Bio = Field(default_factory=Bio)
    achievements: list[Achievement] = Field(default_factory=list)
    events: list[Event] = Field(default_factory=list)
    releases: list[Release] = Field(default_factory=list)
    social: SocialLinks = Field(default_factory=SocialLinks)

    @classmethod
    def from_record(cls, record: ArtistProfileRecord) -> "ArtistProfile":
        return cls.model_validate({
            "bio": record.bio or {},
            "achievements": record.achievements or [],
            "events": record.events or [],
            "releases": record.releases or [],
            "social": record.social or {},
        })


DEFAULT_PROFILE = ArtistProfile(
    bio=Bio(
        name="THAMI",
        full_name="Thamires",
        genre="Pop, R&B, Soul",
        description=(
            "THAMI is a Brazilian artist known for a striking voice and heartfelt lyrics. "
            "Her influences run from pop to R&B, making songs that move people and make them dance."
        ),
        location="São Paulo, Brazil",
        years_active="2020 - Present",
    ),
    achievements=[
        Achievement(
            title="First Single",
            description="Debut single that reached 1 million streams",
            date="2020",
        ),
        Achievement(
            title="Breakthrough Award",
            description="Nominated as Breakthrough Artist of the Year at a national award show",
            date="2021",
        ),
    ],
    events=[
        Event(
            title="São Paulo Show",
            venue="Casa de Shows XYZ",
            date="2024-01-15",
            city="São Paulo, SP",
        ),
    ],
    releases=[
        Release(
            title="Latest Single",
            type="Single",
            release_date="2023-12-01",
            description="An emotional ballad about love and resilience",
            platforms={"spotify": "", "deezer": "", "apple_music": "", "youtube": ""},
        ),
    ],
    social=SocialLinks(
        instagram="@thami",
        facebook="thamioficial",
        twitter="@thami",
        tiktok="@thami",
        youtube="@thamioficial",
    ),
)


def format_profile_for_prompt(profile: ArtistProfile) -> str:
    """
    Fixed section order: Basic Info, Achievements, Events, Releases, Social.
    List sections are omitted when empty; Basic Info and Social always render.
    """
    bio = profile.bio
    parts = [f"# Artist Profile: {bio.name}\n"]

    parts.append("## Basic Info")
    parts.append(f"Name: {bio.name}")
    parts.append(f"Full Name: {bio.full_name}")
    parts.append(f"Genre: {bio.genre}")
    parts.append(f"Location: {bio.location}")
    parts.append(f"Years Active: {bio.years_active}\n")
    parts.append(f"Description: {bio.description}\n")

    if profile.achievements:
        parts.append("## Achievements")
        for a in profile.achievements:
            parts.append(f"- {a.title} ({a.date}): {a.description}")
        parts.append("")

    if profile.events:
        parts.append("## Upcoming Events")
        for e in profile.events:
            parts.append(f"- {e.title} at {e.venue}, {e.city} ({e.date})")
        parts.append("")

    if profile.releases:
        parts.append("## Recent Releases")
        for r in profile.releases:
            parts.append(f"- {r.title} ({r.type}) - {r.release_date}: {r.description}")
        parts.append("")

    social = profile.social
    parts.append("## Social")
    parts.append(f"Instagram: {social.instagram}")
    parts.append(f"Facebook: {social.facebook}")
    parts.append(f"Twitter: {social.twitter}")
    parts.append(f"TikTok: {social.tiktok}")
    parts.append(f"YouTube: {social.youtube}")
    if social.website:
        parts.append(f"Website: {social.website}")

    return "\n".join(parts) + "\n"


class ProfileStore:
    def __init__(
        self,
        local: LocalStore,
        user_id: str,
        artist_id: Optional[str] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.local = local
        self.user_id = user_id
        self.artist_id = artist_id
        self.session_factory = session_factory
        self._namespace = user_namespace(user_id, "profile")
        self._key = artist_id or DEFAULT_KEY
        self.profile: ArtistProfile = self._load_local() or DEFAULT_PROFILE.model_copy(deep=True)

    def _load_local(self) -> Optional[ArtistProfile]:
        raw = self.local.read(self._namespace, self._key)
        if not raw:
            return None
        try:
            return ArtistProfile.model_validate(raw)
        except ValueError as e:
            logger.warning("Unreadable local profile for %s/%s: %s", self.user_id, self._key, e)
            return None

    async def load(self) -> ArtistProfile:
        """Persisted profile, or the seeded default when nothing is stored."""
        if self.session_factory is not None and self.artist_id:
            try:
                async with session_scope(self.session_factory) as db:
                    result = await db.execute(
                        select(ArtistProfileRecord).where(
                            ArtistProfileRecord.id == self.artist_id,
                            ArtistProfileRecord.user_id == self.user_id,
                        )
                    )
                    record = result.scalar_one_or_none()
                if record is not None:
                    self.profile = ArtistProfile.from_record(record)
                    self.local.write(self._namespace, self._key, self.profile.model_dump(mode="json"))
                    return self.profile
            except Exception as e:
                logger.warning("Failed to load remote profile %s: %s", self.artist_id, e)

        self.profile = self._load_local() or DEFAULT_PROFILE.model_copy(deep=True)
        return self.profile

    async def save(self, profile: ArtistProfile) -> bool:
        try:
            self.local.write(self._namespace, self._key, profile.model_dump(mode="json"))
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error saving profile %s/%s: %s", self.user_id, self._key, e)
            return False

        self.profile = profile

        if self.session_factory is not None and self.artist_id:
            data = profile.model_dump(mode="json")
            try:
                async with session_scope(self.session_factory) as db:
                    result = await db.execute(
                        select(ArtistProfileRecord).where(
                            ArtistProfileRecord.id == self.artist_id,
                            ArtistProfileRecord.user_id == self.user_id,
                        )
                    )
                    record = result.scalar_one_or_none()
                    if record is None:
                        db.add(ArtistProfileRecord(id=self.artist_id, user_id=self.user_id, **data))
                    else:
                        for field_name, value in data.items():
                            setattr(record, field_name, value)
            except Exception as e:
                logger.warning("Failed to save remote profile %s: %s", self.artist_id, e)

        return True

    async def reset_to_default(self) -> ArtistProfile:
        profile = DEFAULT_PROFILE.model_copy(deep=True)
        await self.save(profile)
        return profile

    def formatted_context(self) -> str:
        return format_profile_for_prompt(self.profile)

    @property
    def artist_name(self) -> str:
        return self.profile.bio.name or "Artist"

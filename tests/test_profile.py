"""
Tests for ProfileStore and the profile prompt block.
"""

from unittest.mock import patch

import pytest

from encore.services.profile import (
    DEFAULT_PROFILE,
    Achievement,
    ArtistProfile,
    Bio,
    ProfileStore,
    SocialLinks,
    format_profile_for_prompt,
)


def custom_profile() -> ArtistProfile:
    return ArtistProfile(
        bio=Bio(name="Lia", genre="MPB", location="Recife"),
        achievements=[Achievement(title="Debut", description="First EP", date="2022")],
        social=SocialLinks(instagram="@lia", website="lia.com.br"),
    )


class TestFormatting:
    def test_fixed_section_order(self):
        text = format_profile_for_prompt(DEFAULT_PROFILE)

        positions = [text.index(h) for h in (
            "## Basic Info", "## Achievements", "## Upcoming Events", "## Recent Releases", "## Social",
        )]
        assert positions == sorted(positions)
        assert text.startswith("# Artist Profile: THAMI")

    def test_empty_lists_are_omitted(self):
        text = format_profile_for_prompt(ArtistProfile(bio=Bio(name="Solo")))

        assert "## Basic Info" in text
        assert "## Social" in text
        assert "## Achievements" not in text
        assert "## Upcoming Events" not in text
        assert "## Recent Releases" not in text

    def test_website_only_when_set(self):
        assert "Website:" not in format_profile_for_prompt(ArtistProfile())
        assert "Website: lia.com.br" in format_profile_for_prompt(custom_profile())


class TestLocalStore:
    @pytest.mark.asyncio
    async def test_load_returns_default_when_nothing_stored(self, local):
        store = ProfileStore(local, "u1")

        profile = await store.load()

        assert profile == DEFAULT_PROFILE
        assert profile is not DEFAULT_PROFILE

    @pytest.mark.asyncio
    async def test_save_then_load_round_trip(self, local):
        store = ProfileStore(local, "u1", artist_id="a1")
        assert await store.save(custom_profile()) is True

        loaded = await ProfileStore(local, "u1", artist_id="a1").load()

        assert loaded == custom_profile()

    @pytest.mark.asyncio
    async def test_reset_is_idempotent(self, local):
        store = ProfileStore(local, "u1")
        await store.save(custom_profile())

        first = await store.reset_to_default()
        second = await store.reset_to_default()

        assert first == second == DEFAULT_PROFILE
        assert (await ProfileStore(local, "u1").load()) == DEFAULT_PROFILE

    @pytest.mark.asyncio
    async def test_reset_does_not_share_the_template(self, local):
        store = ProfileStore(local, "u1")
        profile = await store.reset_to_default()
        profile.achievements.clear()

        assert DEFAULT_PROFILE.achievements

    @pytest.mark.asyncio
    async def test_save_returns_false_on_write_error(self, local):
        store = ProfileStore(local, "u1")

        with patch.object(local, "write", side_effect=OSError("disk full")):
            assert await store.save(custom_profile()) is False
        assert store.profile == DEFAULT_PROFILE

    def test_artist_name_and_context(self, local):
        store = ProfileStore(local, "u1")

        assert store.artist_name == "THAMI"
        assert "## Basic Info" in store.formatted_context()


class TestRemoteTier:
    @pytest.mark.asyncio
    async def test_profile_follows_the_artist_across_devices(self, tmp_path, session_factory):
        from encore.core.storage import LocalStore

        device_a = ProfileStore(LocalStore(str(tmp_path / "a")), "u1", "artist-1", session_factory)
        await device_a.save(custom_profile())

        device_b = ProfileStore(LocalStore(str(tmp_path / "b")), "u1", "artist-1", session_factory)
        assert await device_b.load() == custom_profile()

    @pytest.mark.asyncio
    async def test_other_user_cannot_read_profile(self, tmp_path, session_factory):
        from encore.core.storage import LocalStore

        await ProfileStore(LocalStore(str(tmp_path / "a")), "u1", "artist-1", session_factory).save(custom_profile())

        other = ProfileStore(LocalStore(str(tmp_path / "b")), "u2", "artist-1", session_factory)
        assert await other.load() == DEFAULT_PROFILE

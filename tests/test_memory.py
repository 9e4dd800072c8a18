"""
Tests for MemoryStore: bounds, dedupe, extraction, context block, two-tier sync.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from encore.core.database import session_scope
from encore.services.memory import (
    Insight,
    LargerCollectionWins,
    MemoryState,
    MemoryStore,
    extract_candidates,
    fetch_memory,
    upsert_memory,
)


class TestInsights:
    def test_add_insight_rejects_case_insensitive_duplicate(self, local):
        memory = MemoryStore(local, "u1")

        assert memory.add_insight("Event", "Show no Circo Voador") is True
        assert memory.add_insight("Event", "  show no circo voador ") is False
        assert len(memory.state.insights) == 1

    def test_insights_are_newest_first_and_bounded(self, local):
        memory = MemoryStore(local, "u1", max_insights=5)

        for i in range(8):
            memory.add_insight("Music", f"song number {i}")

        contents = [i.content for i in memory.state.insights]
        assert len(contents) == 5
        assert contents[0] == "song number 7"
        assert "song number 0" not in contents

    def test_insight_ids_are_unique(self, local):
        memory = MemoryStore(local, "u1")
        for i in range(20):
            memory.add_insight("Music", f"track {i}")

        ids = [i.id for i in memory.state.insights]
        assert len(set(ids)) == len(ids)

    def test_blank_insight_is_ignored(self, local):
        memory = MemoryStore(local, "u1")

        assert memory.add_insight("Event", "   ") is False
        assert memory.state.insights == []


class TestFacts:
    def test_fact_dedupe_is_exact_match(self, local):
        memory = MemoryStore(local, "u1")

        memory.add_fact("Plays guitar")
        memory.add_fact("Plays guitar")
        memory.add_fact("plays guitar")

        assert memory.state.learned_facts == ["plays guitar", "Plays guitar"]

    def test_facts_are_bounded(self, local):
        memory = MemoryStore(local, "u1", max_facts=3)

        for i in range(6):
            memory.add_fact(f"fact {i}")

        assert memory.state.learned_facts == ["fact 5", "fact 4", "fact 3"]


class TestExtraction:
    def test_show_and_metric(self, local):
        memory = MemoryStore(local, "u1")

        added = memory.extract_insights("Vou fazer um show em São Paulo, e já temos 50k followers")

        assert added == 2
        by_category = {i.category: i.content for i in memory.state.insights}
        assert by_category["Event"] == "São Paulo"
        assert by_category["Metric"] == "50k followers"

    def test_short_captures_are_discarded(self):
        assert extract_candidates("show em SP") == []

    def test_collaboration_and_release(self):
        found = extract_candidates("Lançamento do clipe novo. Parceria com Liniker no feat")

        assert ("Release", "clipe novo") in found
        assert ("Collaboration", "Liniker no feat") in found

    def test_each_rule_fires_once(self):
        found = extract_candidates("show em Recife, depois show em Salvador")

        assert [c for c in found if c[0] == "Event"] == [("Event", "Recife")]

    def test_plain_text_extracts_nothing(self, local):
        memory = MemoryStore(local, "u1")

        assert memory.extract_insights("Quero ideias para a semana") == 0


class TestContextBlock:
    def test_empty_memory_renders_nothing(self, local):
        assert MemoryStore(local, "u1").context_block() == ""

    def test_sections_and_limits(self, local):
        memory = MemoryStore(local, "u1")
        for i in range(25):
            memory.add_fact(f"fact {i}")
        for i in range(20):
            memory.add_insight("Music", f"single {i}")
        memory.set_preference("tone", "casual")

        block = memory.context_block()

        assert "# KNOWN FACTS ABOUT THE ARTIST" in block
        assert "# INSIGHTS FROM PREVIOUS CONVERSATIONS" in block
        assert "# USER PREFERENCES\n- tone: casual" in block
        assert block.count("- fact ") == 20
        assert block.count("- [Music] ") == 15
        assert "- fact 24" in block and "- fact 4\n" not in block
        assert block.index("KNOWN FACTS") < block.index("INSIGHTS") < block.index("PREFERENCES")

    def test_sections_are_omitted_when_empty(self, local):
        memory = MemoryStore(local, "u1")
        memory.set_preference("language", "pt-BR")

        block = memory.context_block()

        assert "KNOWN FACTS" not in block
        assert "INSIGHTS" not in block
        assert "language: pt-BR" in block


class TestLocalTier:
    def test_state_survives_a_new_store(self, local):
        memory = MemoryStore(local, "u1")
        memory.add_insight("Album", "Raízes")
        memory.add_fact("Born in Recife")
        memory.set_preference("tone", "warm")

        reloaded = MemoryStore(local, "u1")

        assert reloaded.stats() == {"insight_count": 1, "fact_count": 1, "preference_count": 1}

    @pytest.mark.asyncio
    async def test_clear_resets_everything(self, local):
        memory = MemoryStore(local, "u1")
        memory.add_insight("Album", "Raízes")
        memory.add_fact("Born in Recife")

        await memory.clear()

        assert memory.stats() == {"insight_count": 0, "fact_count": 0, "preference_count": 0}
        assert MemoryStore(local, "u1").stats()["insight_count"] == 0


class TestMergeStrategy:
    def _state(self, insights: int, facts: int) -> MemoryState:
        return MemoryState(
            insights=[Insight(id=str(i), category="c", content=f"i{i}") for i in range(insights)],
            learned_facts=[f"f{i}" for i in range(facts)],
        )

    def test_remote_with_more_insights_wins(self):
        remote = self._state(3, 0)
        assert LargerCollectionWins().merge(self._state(2, 5), remote) is remote

    def test_remote_with_more_facts_wins(self):
        remote = self._state(0, 2)
        assert LargerCollectionWins().merge(self._state(5, 1), remote) is remote

    def test_equal_or_smaller_remote_keeps_local(self):
        assert LargerCollectionWins().merge(self._state(2, 2), self._state(2, 2)) is None
        assert LargerCollectionWins().merge(self._state(3, 3), self._state(1, 1)) is None


class TestRemoteTier:
    @pytest.mark.asyncio
    async def test_flush_writes_remote(self, local, session_factory):
        memory = MemoryStore(local, "u1", session_factory=session_factory, debounce_seconds=10)
        memory.add_insight("Event", "Circo Voador")
        memory.add_fact("Independent label")

        await memory.flush()

        async with session_scope(session_factory) as db:
            remote = await fetch_memory(db, "u1")
        assert [i.content for i in remote.insights] == ["Circo Voador"]
        assert remote.learned_facts == ["Independent label"]

    @pytest.mark.asyncio
    async def test_larger_remote_replaces_local(self, local, session_factory):
        remote_state = MemoryState(
            insights=[Insight(id="1", category="Event", content="a"), Insight(id="2", category="Event", content="b")],
            learned_facts=["from another device"],
        )
        async with session_scope(session_factory) as db:
            await upsert_memory(db, "u1", remote_state)

        memory = MemoryStore(local, "u1", session_factory=session_factory)
        memory.add_insight("Music", "only local")

        assert await memory.sync_from_remote() is True
        assert [i.content for i in memory.state.insights] == ["a", "b"]
        assert MemoryStore(local, "u1").state.learned_facts == ["from another device"]
        memory._remote_write.cancel()

    @pytest.mark.asyncio
    async def test_smaller_remote_is_ignored(self, local, session_factory):
        async with session_scope(session_factory) as db:
            await upsert_memory(db, "u1", MemoryState(learned_facts=["old"]))

        memory = MemoryStore(local, "u1", session_factory=session_factory)
        memory.add_fact("new 1")
        memory.add_fact("new 2")

        assert await memory.sync_from_remote() is False
        assert memory.state.learned_facts == ["new 2", "new 1"]
        memory._remote_write.cancel()

    @pytest.mark.asyncio
    async def test_start_runs_remote_fetch_in_background(self, local, session_factory):
        async with session_scope(session_factory) as db:
            await upsert_memory(db, "u1", MemoryState(learned_facts=["remote"]))

        memory = MemoryStore(local, "u1", session_factory=session_factory)
        task = memory.start()

        assert await task is True
        assert memory.state.learned_facts == ["remote"]

    @pytest.mark.asyncio
    async def test_background_sync_failure_is_logged(self, local, session_factory, caplog):
        async with session_scope(session_factory) as db:
            await upsert_memory(db, "u1", MemoryState(learned_facts=["remote"]))
        strategy = MagicMock()
        strategy.merge.side_effect = RuntimeError("bad merge")
        memory = MemoryStore(local, "u1", session_factory=session_factory, merge_strategy=strategy)

        task = memory.start()
        await asyncio.wait([task])
        await asyncio.sleep(0)

        assert "Memory background sync failed" in caplog.text
        assert "bad merge" in caplog.text

    @pytest.mark.asyncio
    async def test_clear_deletes_remote_row(self, local, session_factory):
        memory = MemoryStore(local, "u1", session_factory=session_factory)
        memory.add_fact("to be removed")
        await memory.flush()

        await memory.clear()

        async with session_scope(session_factory) as db:
            assert await fetch_memory(db, "u1") is None

    @pytest.mark.asyncio
    async def test_clear_waits_for_write_in_progress(self, local, session_factory, monkeypatch):
        started = asyncio.Event()

        async def slow_upsert(db, user_id, state):
            started.set()
            await asyncio.sleep(0.05)
            await upsert_memory(db, user_id, state)

        monkeypatch.setattr("encore.services.memory.upsert_memory", slow_upsert)
        memory = MemoryStore(local, "u1", session_factory=session_factory, debounce_seconds=0.01)
        memory.add_fact("Fact that must be forgotten")
        await started.wait()

        await memory.clear()

        async with session_scope(session_factory) as db:
            assert await fetch_memory(db, "u1") is None
        reloaded = MemoryStore(local, "u1", session_factory=session_factory)
        assert await reloaded.sync_from_remote() is False
        assert reloaded.state.learned_facts == []

    @pytest.mark.asyncio
    async def test_remote_failures_are_swallowed(self, local):
        broken = MagicMock(side_effect=ConnectionError("db unreachable"))
        memory = MemoryStore(local, "u1", session_factory=broken)
        memory.add_fact("kept locally")

        assert await memory.sync_from_remote() is False
        await memory.flush()
        await memory.clear()

        assert memory.stats()["fact_count"] == 0

"""
Unit tests for the history store.
Tests retention cap, favorite/delete semantics, filters, observers and persistence.
"""
import json
from unittest.mock import MagicMock

import pytest

from contract_shield.models import OverallRisk
from contract_shield.services.history_store import STORAGE_KEY, HistoryStore
from contract_shield.services.normalizer import normalize
from contract_shield.storage import JSONFileStore, MemoryStore


def make_analysis(title="Contract", overall_risk="medium", clauses=2, red_flags=1):
    response = {
        "title": title,
        "overallRisk": overall_risk,
        "clauses": [{"title": f"Clause {i}", "riskLevel": "low"} for i in range(clauses)],
        "redFlags": [f"Flag {i}" for i in range(red_flags)],
    }
    return normalize(json.dumps(response), f"{title} text")


@pytest.fixture
def store():
    return HistoryStore(MemoryStore())


class TestAdd:
    """Tests for HistoryStore.add."""

    def test_add_prepends_summary_and_body(self, store):
        first = make_analysis("First")
        second = make_analysis("Second")
        store.add(first)
        store.add(second)

        assert [h.id for h in store.history] == [second.id, first.id]
        assert [a.id for a in store.analyses] == [second.id, first.id]

    def test_summary_counts_frozen_at_creation(self, store):
        analysis = make_analysis(clauses=3, red_flags=4)
        entry = store.add(analysis)

        assert entry.clause_count == 3
        assert entry.red_flag_count == 4
        assert entry.is_favorite is False
        assert entry.overall_risk is OverallRisk.MEDIUM
        assert entry.created_at == analysis.created_at

    def test_add_sets_current(self, store):
        analysis = make_analysis()
        store.add(analysis)
        assert store.current is analysis

    def test_retention_cap_evicts_oldest_bodies(self, store):
        added = [make_analysis(f"Contract {i}", clauses=0, red_flags=0) for i in range(55)]
        for analysis in added:
            store.add(analysis)

        assert len(store.history) == 55
        assert len(store.analyses) == 50
        newest_first = [a.id for a in reversed(added)]
        assert [a.id for a in store.analyses] == newest_first[:50]
        assert [h.id for h in store.history] == newest_first

    def test_evicted_analysis_is_summary_only(self, store):
        oldest = make_analysis("Oldest")
        store.add(oldest)
        for i in range(50):
            store.add(make_analysis(f"Newer {i}", clauses=0, red_flags=0))

        assert store.find(oldest.id) is None
        assert store.get_entry(oldest.id) is not None

    def test_history_covers_every_cached_analysis(self, store):
        for i in range(60):
            store.add(make_analysis(f"C{i}", clauses=0, red_flags=0))
        history_ids = {h.id for h in store.history}
        assert all(a.id in history_ids for a in store.analyses)


class TestToggleFavorite:
    """Tests for HistoryStore.toggle_favorite."""

    def test_toggle_twice_restores_value(self, store):
        analysis = make_analysis()
        store.add(analysis)

        assert store.toggle_favorite(analysis.id).is_favorite is True
        assert store.toggle_favorite(analysis.id).is_favorite is False
        assert store.get_entry(analysis.id).is_favorite is False

    def test_toggle_unknown_id_is_noop(self, store):
        store.add(make_analysis())
        before = store.to_snapshot()

        assert store.toggle_favorite("cs_missing") is None
        assert store.to_snapshot() == before

    def test_toggle_works_after_eviction(self, store):
        oldest = make_analysis("Oldest")
        store.add(oldest)
        for i in range(50):
            store.add(make_analysis(f"N{i}", clauses=0, red_flags=0))

        assert store.toggle_favorite(oldest.id).is_favorite is True


class TestDelete:
    """Tests for HistoryStore.delete."""

    def test_delete_removes_from_both(self, store):
        analysis = make_analysis()
        store.add(analysis)

        assert store.delete(analysis.id) is True
        assert store.find(analysis.id) is None
        assert all(h.id != analysis.id for h in store.history)

    def test_delete_clears_current(self, store):
        analysis = make_analysis()
        store.add(analysis)
        store.delete(analysis.id)
        assert store.current is None

    def test_delete_keeps_unrelated_current(self, store):
        first = make_analysis("First")
        second = make_analysis("Second")
        store.add(first)
        store.add(second)
        store.delete(first.id)
        assert store.current is second

    def test_delete_unknown_id_is_noop(self, store):
        store.add(make_analysis())
        assert store.delete("cs_missing") is False
        assert len(store.history) == 1

    def test_delete_evicted_entry_removes_summary(self, store):
        oldest = make_analysis("Oldest")
        store.add(oldest)
        for i in range(50):
            store.add(make_analysis(f"N{i}", clauses=0, red_flags=0))

        assert store.delete(oldest.id) is True
        assert store.get_entry(oldest.id) is None
        assert len(store.history) == 50


class TestQueries:
    """Tests for list_history, stats and status."""

    def test_filters(self, store):
        high = make_analysis("High", overall_risk="high")
        low = make_analysis("Low", overall_risk="low")
        medium = make_analysis("Medium", overall_risk="medium")
        for analysis in (high, low, medium):
            store.add(analysis)
        store.toggle_favorite(low.id)

        assert len(store.list_history('all')) == 3
        assert [h.id for h in store.list_history('favorites')] == [low.id]
        assert [h.id for h in store.list_history('high')] == [high.id]
        assert [h.id for h in store.list_history('medium')] == [medium.id]

    def test_unknown_filter_raises(self, store):
        with pytest.raises(ValueError):
            store.list_history('critical')

    def test_stats(self, store):
        store.add(make_analysis(overall_risk="high"))
        second = make_analysis(overall_risk="low")
        store.add(second)
        store.toggle_favorite(second.id)

        assert store.stats() == {'total': 2, 'favorites': 1, 'highRisk': 1, 'cached': 2}

    def test_set_analyzing_is_not_persisted(self):
        storage = MemoryStore()
        store = HistoryStore(storage)
        store.set_analyzing(True, 'Sending contract to AI...')

        assert store.is_analyzing is True
        assert store.analysis_progress == 'Sending contract to AI...'
        assert storage.get(STORAGE_KEY) is None


class TestObservers:
    """Tests for subscribe/unsubscribe."""

    def test_listener_called_on_mutations(self, store):
        listener = MagicMock()
        store.subscribe(listener)

        analysis = make_analysis()
        store.add(analysis)
        store.toggle_favorite(analysis.id)
        store.delete(analysis.id)

        assert listener.call_count == 3
        listener.assert_called_with(store)

    def test_noop_mutations_do_not_notify(self, store):
        listener = MagicMock()
        store.subscribe(listener)

        store.toggle_favorite("cs_missing")
        store.delete("cs_missing")

        listener.assert_not_called()

    def test_unsubscribe(self, store):
        listener = MagicMock()
        unsubscribe = store.subscribe(listener)
        unsubscribe()

        store.add(make_analysis())
        listener.assert_not_called()


class TestPersistence:
    """Tests for write-through persistence and reload."""

    def test_reload_from_json_files(self, tmp_path):
        storage = JSONFileStore(str(tmp_path))
        store = HistoryStore(storage)
        analysis = make_analysis("Persisted", overall_risk="high", clauses=2, red_flags=3)
        store.add(analysis)
        store.toggle_favorite(analysis.id)

        reloaded = HistoryStore(JSONFileStore(str(tmp_path)))

        assert reloaded.find(analysis.id) == analysis
        entry = reloaded.get_entry(analysis.id)
        assert entry.is_favorite is True
        assert entry.red_flag_count == 3
        assert reloaded.current is None

    def test_snapshot_uses_camel_case_keys(self, store):
        store.add(make_analysis())
        snapshot = store.to_snapshot()

        assert set(snapshot) == {'analyses', 'history'}
        assert 'redFlagCount' in snapshot['history'][0]
        assert 'overallRisk' in snapshot['analyses'][0]

    def test_invalid_snapshot_starts_empty(self):
        storage = MemoryStore()
        storage.set(STORAGE_KEY, {'history': [{'id': 'x'}], 'analyses': []})

        store = HistoryStore(storage)
        assert store.history == []
        assert store.analyses == []

    def test_orphan_cached_bodies_dropped_on_load(self):
        storage = MemoryStore()
        store = HistoryStore(storage)
        analysis = make_analysis()
        store.add(analysis)

        snapshot = store.to_snapshot()
        snapshot['history'] = []
        storage.set(STORAGE_KEY, snapshot)

        reloaded = HistoryStore(storage)
        assert reloaded.analyses == []


class FailingStore(MemoryStore):
    """MemoryStore whose writes raise OSError while `failing` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False

    def set(self, key, value):
        if self.failing:
            raise OSError("disk full")
        super().set(key, value)


class TestFailedWrites:
    """Tests that a failed write-through leaves memory and storage unchanged."""

    @pytest.fixture
    def storage(self):
        return FailingStore()

    @pytest.fixture
    def seeded(self, storage):
        history = HistoryStore(storage)
        history.add(make_analysis("Kept"))
        storage.failing = True
        return history

    def test_add_not_applied(self, seeded, storage):
        listener = MagicMock()
        seeded.subscribe(listener)
        before = storage.get(STORAGE_KEY)

        with pytest.raises(OSError):
            seeded.add(make_analysis("Lost"))

        assert [h.title for h in seeded.history] == ["Kept"]
        assert len(seeded.analyses) == 1
        assert seeded.current.title == "Kept"
        assert storage.get(STORAGE_KEY) == before
        listener.assert_not_called()

    def test_toggle_favorite_not_applied(self, seeded):
        analysis_id = seeded.history[0].id

        with pytest.raises(OSError):
            seeded.toggle_favorite(analysis_id)

        assert seeded.get_entry(analysis_id).is_favorite is False

    def test_delete_not_applied(self, seeded):
        analysis_id = seeded.history[0].id

        with pytest.raises(OSError):
            seeded.delete(analysis_id)

        assert seeded.get_entry(analysis_id) is not None
        assert seeded.find(analysis_id) is not None
        assert seeded.current.id == analysis_id

"""
Name: Event Store Unit Tests

Responsibilities:
  - Test CRUD and status changes of events
  - Verify read-through caching and explicit invalidation
  - Verify auto-expiry on every read path

Collaborators:
  - reward_engine.application.event_store.EventStore
  - InMemoryEventRepository (wrapped in a Mock to count calls)
  - InMemoryCacheBackend
"""

import logging
from datetime import timedelta
from unittest.mock import Mock

import pytest
from reward_engine.application.event_store import (
    EventStore,
    active_events_cache_key,
    event_cache_key,
)
from reward_engine.domain.entities import EventStatus
from reward_engine.domain.errors import (
    EventNotFoundError,
    InvalidStatusTransitionError,
    ValidationError,
)
from reward_engine.domain.repositories import EventFilter
from reward_engine.infrastructure.cache import InMemoryCacheBackend
from reward_engine.infrastructure.repositories.in_memory import InMemoryEventRepository


@pytest.fixture
def repo() -> Mock:
    return Mock(wraps=InMemoryEventRepository())


@pytest.fixture
def cache() -> InMemoryCacheBackend:
    return InMemoryCacheBackend()


@pytest.fixture
def store(repo, cache, clock) -> EventStore:
    return EventStore(repo, cache, cache_ttl_seconds=60, clock=clock)


def _create(store: EventStore, clock, *, days: int = 5, **overrides):
    kwargs = dict(
        name="Daily login",
        description="Log in once",
        condition_type="login",
        condition_params={"required_count": 1},
        start_date=clock() - timedelta(days=1),
        end_date=clock() + timedelta(days=days),
    )
    kwargs.update(overrides)
    return store.create(**kwargs)


@pytest.mark.unit
class TestEventStoreCommands:
    def test_create_persists_inactive_event(self, store, repo, clock):
        """R: Should persist new events as INACTIVE with the store clock."""
        event = _create(store, clock)

        stored = repo.find_by_id(event.id)
        assert stored.status is EventStatus.INACTIVE
        assert stored.created_at == clock()

    def test_create_rejects_invalid_event(self, store, repo, clock):
        """R: Should not persist events that fail validation."""
        with pytest.raises(ValidationError):
            _create(store, clock, condition_params={})

        repo.save.assert_not_called()

    def test_update_invalidates_cached_copy(self, store, clock):
        """R: Should serve the updated event after update()."""
        event = _create(store, clock)
        store.find_by_id(event.id)

        store.update(event.id, name="Renamed")

        assert store.find_by_id(event.id).name == "Renamed"

    def test_change_status_follows_state_machine(self, store, clock):
        """R: Should activate and then reject an invalid transition."""
        event = _create(store, clock)

        activated = store.change_status(event.id, "active")
        assert activated.status is EventStatus.ACTIVE

        with pytest.raises(InvalidStatusTransitionError):
            store.change_status(event.id, EventStatus.ACTIVE)

    def test_change_status_unknown_event(self, store):
        """R: Should raise EventNotFoundError for missing events."""
        with pytest.raises(EventNotFoundError):
            store.change_status("missing", EventStatus.ACTIVE)

    def test_delete_removes_event_and_cache(self, store, cache, clock):
        """R: Should delete from storage and drop the cached copy."""
        event = _create(store, clock)
        store.find_by_id(event.id)
        assert cache.exists(event_cache_key(event.id))

        store.delete(event.id)

        assert not cache.exists(event_cache_key(event.id))
        with pytest.raises(EventNotFoundError):
            store.find_by_id(event.id)

    def test_delete_missing_event(self, store):
        """R: Should raise EventNotFoundError when nothing was deleted."""
        with pytest.raises(EventNotFoundError):
            store.delete("missing")


@pytest.mark.unit
class TestEventStoreReads:
    def test_find_by_id_uses_cache(self, store, repo, clock):
        """R: Should hit the repository only once for repeated reads."""
        event = _create(store, clock)
        repo.find_by_id.reset_mock()

        first = store.find_by_id(event.id)
        second = store.find_by_id(event.id)

        assert first.id == second.id == event.id
        assert second.start_date == event.start_date
        assert repo.find_by_id.call_count == 1

    def test_find_by_id_without_cache_reads_repository(self, store, repo, clock):
        """R: Should bypass the cache when use_cache=False."""
        event = _create(store, clock)
        store.find_by_id(event.id)
        repo.find_by_id.reset_mock()

        store.find_by_id(event.id, use_cache=False)
        store.find_by_id(event.id, use_cache=False)

        assert repo.find_by_id.call_count == 2

    def test_find_by_id_missing(self, store):
        """R: Should raise EventNotFoundError for unknown ids."""
        with pytest.raises(EventNotFoundError):
            store.find_by_id("missing")

    def test_find_by_id_auto_expires_and_persists(self, store, repo, clock):
        """R: Should expire events past end_date and persist the correction."""
        event = _create(store, clock, days=1)
        store.change_status(event.id, "active")

        clock.advance(days=2)
        found = store.find_by_id(event.id)

        assert found.status is EventStatus.EXPIRED
        assert repo.find_by_id(event.id).status is EventStatus.EXPIRED

    def test_stale_cached_copy_is_reread_before_expiry(self, store, repo, clock):
        """R: Should re-read storage when the cached copy needs expiry."""
        event = _create(store, clock, days=1)
        store.change_status(event.id, "active")
        store.find_by_id(event.id)
        repo.find_by_id.reset_mock()

        clock.advance(days=2)
        found = store.find_by_id(event.id)

        assert found.status is EventStatus.EXPIRED
        repo.find_by_id.assert_called_once_with(event.id)

    def test_corrupt_cache_entry_falls_back_to_repository(self, store, cache, clock, caplog):
        """R: Should log, discard and replace unreadable cache payloads."""
        event = _create(store, clock)
        cache.set(event_cache_key(event.id), "{not json", 60)

        with caplog.at_level(logging.WARNING, logger="reward-engine"):
            found = store.find_by_id(event.id)

        assert found.id == event.id
        assert "Discarding unreadable cache entry" in caplog.text
        assert cache.get(event_cache_key(event.id)) != "{not json"

    def test_find_all_filters_and_expires(self, store, clock):
        """R: Should drop events that no longer match the status filter after expiry."""
        short = _create(store, clock, name="Short", days=1)
        long = _create(store, clock, name="Long", days=30)
        store.change_status(short.id, "active")
        store.change_status(long.id, "active")

        clock.advance(days=2)
        active = store.find_all(EventFilter(status=EventStatus.ACTIVE))
        everything = store.find_all()

        assert [e.id for e in active] == [long.id]
        statuses = {e.id: e.status for e in everything}
        assert statuses[short.id] is EventStatus.EXPIRED

    def test_find_all_filters_by_name_case_insensitive(self, store, clock):
        """R: Should match name filters as case-insensitive substrings."""
        _create(store, clock, name="Summer Login")
        _create(store, clock, name="Winter quiz", condition_type="custom", condition_params={"event_code": "quiz"})

        result = store.find_all(EventFilter(name="login"))

        assert [e.name for e in result] == ["Summer Login"]


@pytest.mark.unit
class TestEventStoreActiveList:
    def test_find_active_returns_only_valid_events(self, store, clock):
        """R: Should return ACTIVE events inside their period."""
        inactive = _create(store, clock, name="Inactive")
        active = _create(store, clock, name="Active")
        store.change_status(active.id, "active")

        result = store.find_active()

        assert [e.id for e in result] == [active.id]
        assert inactive.id not in [e.id for e in result]

    def test_empty_active_list_is_not_cached(self, store, cache, clock):
        """R: Should not cache an empty active list."""
        assert store.find_active() == []
        assert not cache.exists(active_events_cache_key(clock().date()))

    def test_active_list_is_invalidated_on_status_change(self, store, cache, clock):
        """R: Should refresh the daily active list after activate/deactivate."""
        event = _create(store, clock)
        store.change_status(event.id, "active")

        assert [e.id for e in store.find_active()] == [event.id]
        assert cache.exists(active_events_cache_key(clock().date()))

        store.change_status(event.id, "inactive")

        assert store.find_active() == []

    def test_cached_active_list_is_revalidated(self, store, repo, clock):
        """R: Should filter cached entries that stopped being valid."""
        event = _create(store, clock, days=0)
        store.change_status(event.id, "active")
        assert len(store.find_active()) == 1
        repo.find_active.reset_mock()

        clock.advance(hours=1)

        assert store.find_active() == []
        repo.find_active.assert_not_called()

"""
Name: Lock Manager Unit Tests

Responsibilities:
  - Test InMemoryLockManager exclusivity, TTL expiry, retries and sweeper
  - Test RedisLockManager SET NX PX and token-guarded release
"""

import time
from unittest.mock import Mock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from reward_engine.domain.locks import LockOptions
from reward_engine.infrastructure.locks import InMemoryLockManager, RedisLockManager

NO_RETRY = LockOptions(lock_ttl_seconds=10, retry_count=0, retry_delay_seconds=0)


class FakeTime:
    def __init__(self, start: float = 500.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.mark.unit
class TestInMemoryLockManager:
    def test_single_holder(self):
        """R: Should grant the lock to one holder at a time."""
        manager = InMemoryLockManager(default_options=NO_RETRY)

        first = manager.acquire_lock("claim:u:e")
        second = manager.acquire_lock("claim:u:e")

        assert first.success is True
        assert second.success is False
        assert manager.is_locked("claim:u:e")

        first.release()
        assert not manager.is_locked("claim:u:e")
        assert manager.acquire_lock("claim:u:e").success is True

    def test_release_is_idempotent(self):
        """R: Should allow calling release() more than once."""
        manager = InMemoryLockManager(default_options=NO_RETRY)
        handle = manager.acquire_lock("k")

        handle.release()
        handle.release()

        assert not manager.is_locked("k")

    def test_failed_handle_release_is_noop(self):
        """R: Should give failed acquisitions a harmless release()."""
        manager = InMemoryLockManager(default_options=NO_RETRY)
        holder = manager.acquire_lock("k")

        manager.acquire_lock("k").release()

        assert holder.success
        assert manager.is_locked("k")

    def test_expired_lock_can_be_taken_and_old_release_is_ignored(self):
        """R: Should expire locks after TTL and never release another holder's lock."""
        clock = FakeTime()
        manager = InMemoryLockManager(default_options=NO_RETRY, time_fn=clock)
        stale = manager.acquire_lock("k")

        clock.now += 10
        fresh = manager.acquire_lock("k")
        assert fresh.success is True

        stale.release()
        assert manager.is_locked("k")

    def test_retries_use_configured_delay(self):
        """R: Should try retry_count + 1 times, sleeping between attempts."""
        sleep = Mock()
        manager = InMemoryLockManager(sleep=sleep)
        manager.acquire_lock("k", NO_RETRY)

        options = LockOptions(lock_ttl_seconds=10, retry_count=3, retry_delay_seconds=0.25)
        handle = manager.acquire_lock("k", options)

        assert handle.success is False
        assert sleep.call_count == 3
        sleep.assert_called_with(0.25)

    def test_retry_succeeds_when_lock_expires(self):
        """R: Should acquire on a later attempt once the holder's TTL passes."""
        clock = FakeTime()

        def sleep(seconds: float) -> None:
            clock.now += 6

        manager = InMemoryLockManager(time_fn=clock, sleep=sleep)
        manager.acquire_lock("k", LockOptions(lock_ttl_seconds=10, retry_count=0))

        handle = manager.acquire_lock(
            "k", LockOptions(lock_ttl_seconds=10, retry_count=3, retry_delay_seconds=1)
        )

        assert handle.success is True

    def test_with_lock_returns_value_and_releases(self):
        """R: Should run fn under the lock and release afterwards."""
        manager = InMemoryLockManager(default_options=NO_RETRY)

        assert manager.with_lock("k", lambda: 42) == 42
        assert not manager.is_locked("k")

    def test_with_lock_returns_none_when_busy(self):
        """R: Should not run fn when the lock is taken."""
        manager = InMemoryLockManager(default_options=NO_RETRY)
        manager.acquire_lock("k")
        fn = Mock()

        assert manager.with_lock("k", fn) is None
        fn.assert_not_called()

    def test_with_lock_releases_on_exception(self):
        """R: Should release the lock when fn raises."""
        manager = InMemoryLockManager(default_options=NO_RETRY)

        def boom():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            manager.with_lock("k", boom)
        assert not manager.is_locked("k")

    def test_sweep_expired(self):
        """R: Should purge expired locks."""
        clock = FakeTime()
        manager = InMemoryLockManager(default_options=NO_RETRY, time_fn=clock)
        manager.acquire_lock("a")
        manager.acquire_lock("b", LockOptions(lock_ttl_seconds=100, retry_count=0))

        clock.now += 10

        assert manager.sweep_expired() == 1
        assert manager.is_locked("b")

    def test_sweeper_thread_start_and_close(self):
        """R: Should run the sweeper in background and stop it on close()."""
        manager = InMemoryLockManager(
            default_options=LockOptions(lock_ttl_seconds=0.01, retry_count=0),
            sweep_interval_seconds=0.01,
        )
        manager.acquire_lock("k")
        manager.start()
        manager.start()

        deadline = time.monotonic() + 2
        while manager._locks and time.monotonic() < deadline:
            time.sleep(0.01)
        manager.close()
        manager.close()

        assert manager._locks == {}
        assert manager._sweeper is None


@pytest.mark.unit
class TestRedisLockManager:
    def test_acquire_uses_set_nx_px(self, fake_redis):
        """R: Should store the token with NX and a millisecond TTL."""
        manager = RedisLockManager(fake_redis, default_options=NO_RETRY)

        handle = manager.acquire_lock("claim:u:e")

        assert handle.success is True
        assert "lock:claim:u:e" in fake_redis.store
        assert fake_redis.ttls["lock:claim:u:e"]["px"] == 10_000
        assert manager.acquire_lock("claim:u:e").success is False

    def test_release_only_deletes_own_token(self, fake_redis):
        """R: Should compare tokens before deleting."""
        manager = RedisLockManager(fake_redis, default_options=NO_RETRY)
        handle = manager.acquire_lock("k")
        fake_redis.store["lock:k"] = "someone-else"

        handle.release()

        assert fake_redis.store["lock:k"] == "someone-else"

    def test_release_deletes_key(self, fake_redis):
        """R: Should free the key on release."""
        manager = RedisLockManager(fake_redis, default_options=NO_RETRY)

        assert manager.with_lock("k", lambda: "done") == "done"
        assert "lock:k" not in fake_redis.store
        assert len(fake_redis.scripts) == 1

    def test_redis_error_counts_as_failed_attempt(self):
        """R: Should treat connection failures as not acquired."""
        client = Mock()
        client.set.side_effect = RedisConnectionError("down")
        sleep = Mock()
        manager = RedisLockManager(client, sleep=sleep)

        handle = manager.acquire_lock(
            "k", LockOptions(lock_ttl_seconds=1, retry_count=2, retry_delay_seconds=0.1)
        )

        assert handle.success is False
        assert client.set.call_count == 3
        assert sleep.call_count == 2

"""
Name: Unit test fixtures (fakes for external services)

Responsibilities:
  - Provide an in-process stand-in for the redis-py client surface used by
    RedisCacheBackend and RedisLockManager

Notes:
  - Only the commands the engine issues are implemented (GET, SET EX/PX/NX,
    DEL, EXISTS, SCAN, register_script)
  - TTLs are recorded, not enforced
"""

from fnmatch import fnmatchcase

import pytest


class FakeRedis:
    """Simple redis-py stub with call tracking."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, dict] = {}
        self.scripts: list[str] = []
        self.closed = False

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None, px=None, nx=False):
        if nx and key in self.store:
            return None
        self.store[key] = value
        self.ttls[key] = {"ex": ex, "px": px}
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def exists(self, *keys):
        return sum(1 for key in keys if key in self.store)

    def scan_iter(self, match=None, count=None):
        keys = [k for k in list(self.store) if match is None or fnmatchcase(k, match)]
        return iter(keys)

    def register_script(self, script):
        self.scripts.append(script)

        def run(keys=(), args=()):
            key, token = keys[0], args[0]
            if self.store.get(key) == token:
                del self.store[key]
                return 1
            return 0

        return run

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()

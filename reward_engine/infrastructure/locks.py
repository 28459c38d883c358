"""
============================================================
TARJETA CRC — infrastructure/locks.py
============================================================
Module: Lock Manager (exclusión mutua por clave con TTL)

Responsibilities:
  - Implementar domain.locks.LockManager:
      - InMemoryLockManager: dict + threading.Lock, sweeper en background
      - RedisLockManager: SET NX PX + release compare-and-delete (Lua)
  - Reintentos acotados (retry_count + 1 intentos, retry_delay fijo) vía tenacity.
  - Token opaco por holder: release() nunca borra el lock de otro holder.

Collaborators:
  - tenacity (Retrying / stop_after_attempt / wait_fixed / retry_if_result)
  - redis-py (cliente compartido con RedisCacheBackend)
  - crosscutting.logger

Constraints:
  - No adquirir NO es excepción: LockHandle(success=False).
  - release() idempotente; no-op si el lock ya no es nuestro o expiró.
  - Todas las claves se guardan como "lock:{key}".
============================================================
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional, TypeVar
from uuid import uuid4

from redis.exceptions import RedisError
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from ..crosscutting.logger import logger
from ..domain.locks import LockHandle, LockOptions

T = TypeVar("T")

LOCK_KEY_PREFIX = "lock:"


def _noop() -> None:
    return None


def _log_lock_retry(retry_state: RetryCallState) -> None:
    """R: before_sleep de tenacity: deja rastro de la contención."""
    lock_key = retry_state.args[0] if retry_state.args else None
    logger.debug(
        "Lock busy, retrying",
        extra={"lock_key": lock_key, "attempt": retry_state.attempt_number},
    )


class BaseLockManager(ABC):
    """
    Lógica común de adquisición/liberación.

    Las subclases solo implementan el “intento atómico” y el “release por token”.
    """

    def __init__(
        self,
        *,
        default_options: Optional[LockOptions] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._default_options = default_options or LockOptions()
        self._sleep = sleep

    @staticmethod
    def lock_key(key: str) -> str:
        return f"{LOCK_KEY_PREFIX}{key}"

    @abstractmethod
    def _try_acquire(self, lock_key: str, token: str, ttl_seconds: float) -> bool:
        """Un intento atómico; True si quedamos como holder."""
        raise NotImplementedError

    @abstractmethod
    def _release(self, lock_key: str, token: str) -> None:
        """Borra el lock SOLO si el token coincide."""
        raise NotImplementedError

    def _acquire_with_retry(
        self, lock_key: str, token: str, options: LockOptions
    ) -> bool:
        retrying = Retrying(
            stop=stop_after_attempt(options.retry_count + 1),
            wait=wait_fixed(options.retry_delay_seconds),
            retry=retry_if_result(lambda acquired: not acquired),
            retry_error_callback=lambda _state: False,
            before_sleep=_log_lock_retry,
            sleep=self._sleep,
            reraise=True,
        )
        return retrying(self._try_acquire, lock_key, token, options.lock_ttl_seconds)

    def _make_release(self, lock_key: str, token: str) -> Callable[[], None]:
        guard = threading.Lock()
        state = {"released": False}

        def release() -> None:
            with guard:
                if state["released"]:
                    return
                state["released"] = True
            self._release(lock_key, token)
            logger.debug("Lock released", extra={"lock_key": lock_key})

        return release

    def acquire_lock(
        self, key: str, options: Optional[LockOptions] = None
    ) -> LockHandle:
        opts = options or self._default_options
        lock_key = self.lock_key(key)
        token = uuid4().hex

        if not self._acquire_with_retry(lock_key, token, opts):
            logger.info(
                "Lock not acquired",
                extra={"lock_key": lock_key, "attempts": opts.retry_count + 1},
            )
            return LockHandle(success=False, release=_noop)

        logger.debug(
            "Lock acquired",
            extra={"lock_key": lock_key, "ttl_seconds": opts.lock_ttl_seconds},
        )
        return LockHandle(success=True, release=self._make_release(lock_key, token))

    def with_lock(
        self,
        key: str,
        fn: Callable[[], T],
        options: Optional[LockOptions] = None,
    ) -> Optional[T]:
        handle = self.acquire_lock(key, options)
        if not handle.success:
            return None
        try:
            return fn()
        finally:
            handle.release()


# ============================================================
# In-memory (un solo proceso)
# ============================================================
@dataclass(frozen=True)
class _HeldLock:
    token: str
    expires_at: float


class InMemoryLockManager(BaseLockManager):
    """
    Locks en memoria del proceso.

    - Un lock vencido se trata como inexistente al intentar adquirir.
    - Además, un sweeper (daemon thread) purga vencidos cada sweep_interval.
    """

    def __init__(
        self,
        *,
        default_options: Optional[LockOptions] = None,
        sweep_interval_seconds: float = 1.0,
        time_fn: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(default_options=default_options, sleep=sleep)
        self._time = time_fn
        self._locks: Dict[str, _HeldLock] = {}
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval_seconds
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def _try_acquire(self, lock_key: str, token: str, ttl_seconds: float) -> bool:
        now = self._time()
        with self._lock:
            held = self._locks.get(lock_key)
            if held is not None and held.expires_at > now:
                return False
            self._locks[lock_key] = _HeldLock(token=token, expires_at=now + ttl_seconds)
            return True

    def _release(self, lock_key: str, token: str) -> None:
        with self._lock:
            held = self._locks.get(lock_key)
            if held is not None and held.token == token:
                del self._locks[lock_key]

    def is_locked(self, key: str) -> bool:
        now = self._time()
        with self._lock:
            held = self._locks.get(self.lock_key(key))
            return held is not None and held.expires_at > now

    def sweep_expired(self) -> int:
        """Purga locks vencidos; devuelve cuántos borró."""
        now = self._time()
        with self._lock:
            expired = [k for k, held in self._locks.items() if held.expires_at <= now]
            for k in expired:
                del self._locks[k]
        if expired:
            logger.debug("Expired locks swept", extra={"count": len(expired)})
        return len(expired)

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self._sweep_interval):
            self.sweep_expired()

    def start(self) -> None:
        """Arranca el sweeper (idempotente)."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="lock-sweeper", daemon=True
        )
        self._sweeper.start()

    def close(self) -> None:
        """Detiene el sweeper (idempotente)."""
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=self._sweep_interval + 1)
            self._sweeper = None


# ============================================================
# Redis (multi-proceso)
# ============================================================
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


class RedisLockManager(BaseLockManager):
    """
    Locks compartidos vía Redis.

    - Adquirir: SET key token NX PX ttl (atómico, con expiración).
    - Liberar: script Lua compare-and-delete (solo si el token es nuestro).
    - RedisError durante un intento cuenta como intento fallido.
    """

    def __init__(
        self,
        client,
        *,
        default_options: Optional[LockOptions] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(default_options=default_options, sleep=sleep)
        self._client = client
        self._release_script = client.register_script(_RELEASE_SCRIPT)

    def _try_acquire(self, lock_key: str, token: str, ttl_seconds: float) -> bool:
        ttl_ms = max(1, int(ttl_seconds * 1000))
        try:
            return bool(self._client.set(lock_key, token, nx=True, px=ttl_ms))
        except RedisError as exc:
            logger.warning(
                "Redis lock attempt failed",
                extra={"lock_key": lock_key, "error": str(exc)},
            )
            return False

    def _release(self, lock_key: str, token: str) -> None:
        try:
            self._release_script(keys=[lock_key], args=[token])
        except RedisError as exc:
            # R: el TTL del lock garantiza que igual se libera al expirar.
            logger.warning(
                "Redis lock release failed",
                extra={"lock_key": lock_key, "error": str(exc)},
            )

    def close(self) -> None:
        return None

"""
============================================================
TARJETA CRC — infrastructure/cache.py
============================================================
Module: Cache clave/valor (Backends)

Responsibilities:
  - Implementar CachePort con dos backends:
      - InMemoryCacheBackend: LRU + TTL por entrada, thread-safe
      - RedisCacheBackend: TTL nativo (SET EX), namespace, SCAN para patrones
  - Exponer delete_many / delete_pattern (glob) / exists / get_or_set.
  - Métricas simples (hits / misses / errors) para observabilidad.

Collaborators:
  - domain.cache.CachePort (contrato)
  - application.event_store (read-through + invalidación)
  - redis-py (cliente inyectado; compartido con RedisLockManager)

Policy / Design Notes:
  - Cache es best-effort: si Redis falla, la operación se trata como miss
    (o no-op en escrituras) y se loguea un warning. Nunca se propaga.
  - En memoria el patrón glob se evalúa con fnmatch (misma semántica que
    MATCH de Redis para *, ? y [..]).
============================================================
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from fnmatch import fnmatchcase
from threading import Lock
from typing import Callable, Iterable, Optional

from redis.exceptions import RedisError

from ..crosscutting.logger import logger


# ============================================================
# Abstracción de backend (OCP / DIP)
# ============================================================
class CacheBackend(ABC):
    """Base de backends: get_or_set / delete_many se derivan de las primitivas."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete_pattern(self, pattern: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def exists(self, key: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> dict:
        raise NotImplementedError

    def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.delete(key)

    def get_or_set(
        self, key: str, factory: Callable[[], str], ttl_seconds: float
    ) -> str:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = factory()
        self.set(key, value, ttl_seconds)
        return value


# ============================================================
# Entry con TTL (in-memory)
# ============================================================
@dataclass(frozen=True, slots=True)
class CacheEntry:
    """
    Entrada de caché con instante de expiración.

    Invariante:
      - expires_at está en la escala del reloj del backend (monotonic).
    """

    value: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


# ============================================================
# In-memory backend (LRU + TTL)
# ============================================================
class InMemoryCacheBackend(CacheBackend):
    """
    Caché en memoria con:
      - TTL por entrada
      - Eviction LRU usando OrderedDict
      - Thread-safety con Lock

    Nota:
      - No comparte estado entre procesos (cada worker tiene su caché).
    """

    def __init__(
        self,
        *,
        max_size: int = 10_000,
        time_fn: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be > 0")

        self._max_size = int(max_size)
        self._time = time_fn
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = Lock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expired = 0

    def _live_entry(self, key: str, now: float) -> Optional[CacheEntry]:
        # R: debe llamarse con self._lock tomado
        entry = self._cache.get(key)
        if entry is None:
            return None
        if entry.is_expired(now):
            self._cache.pop(key, None)
            self._expired += 1
            return None
        return entry

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live_entry(key, self._time())
            if entry is None:
                self._misses += 1
                return None
            self._cache.move_to_end(key, last=True)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        entry = CacheEntry(value=value, expires_at=self._time() + float(ttl_seconds))

        with self._lock:
            if key in self._cache:
                self._cache[key] = entry
                self._cache.move_to_end(key, last=True)
                return

            if len(self._cache) >= self._max_size:
                self._cache.popitem(last=False)  # LRU
                self._evictions += 1

            self._cache[key] = entry

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def delete_many(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._cache.pop(key, None)

    def delete_pattern(self, pattern: str) -> None:
        with self._lock:
            for key in [k for k in self._cache if fnmatchcase(k, pattern)]:
                del self._cache[key]

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key, self._time()) is not None

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def stats(self) -> dict:
        with self._lock:
            total = self._hits + self._misses
            return {
                "backend": "in-memory",
                "size": len(self._cache),
                "max_size": self._max_size,
                "hits": self._hits,
                "misses": self._misses,
                "expired": self._expired,
                "evictions": self._evictions,
                "hit_rate": (self._hits / total) if total > 0 else 0.0,
            }


# ============================================================
# Redis backend (TTL nativo + namespace)
# ============================================================
class RedisCacheBackend(CacheBackend):
    """
    Caché Redis compartido entre workers.

    Nota:
      - El cliente se inyecta (decode_responses=True) para compartir conexión
        con el lock manager.
      - Toda RedisError se convierte en miss / no-op + warning.
    """

    _SCAN_BATCH = 500

    def __init__(self, client, *, key_prefix: str = "reward-engine:") -> None:
        self._client = client
        self._prefix = key_prefix

        self._hits = 0
        self._misses = 0
        self._errors = 0

    def _k(self, key: str) -> str:
        """Compone clave namespaced."""
        return f"{self._prefix}{key}"

    def _on_error(self, op: str, key: str, exc: Exception) -> None:
        self._errors += 1
        logger.warning(
            "Redis cache operation failed (degraded to miss)",
            extra={"op": op, "key": key, "error": str(exc)},
        )

    def get(self, key: str) -> Optional[str]:
        try:
            data = self._client.get(self._k(key))
        except RedisError as exc:
            self._on_error("get", key, exc)
            self._misses += 1
            return None

        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return data

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        ttl = max(1, int(round(ttl_seconds)))
        try:
            self._client.set(self._k(key), value, ex=ttl)
        except RedisError as exc:
            self._on_error("set", key, exc)

    def delete(self, key: str) -> None:
        try:
            self._client.delete(self._k(key))
        except RedisError as exc:
            self._on_error("delete", key, exc)

    def delete_many(self, keys: Iterable[str]) -> None:
        namespaced = [self._k(k) for k in keys]
        if not namespaced:
            return
        try:
            self._client.delete(*namespaced)
        except RedisError as exc:
            self._on_error("delete_many", ",".join(namespaced), exc)

    def delete_pattern(self, pattern: str) -> None:
        # R: SCAN (no KEYS) para no bloquear Redis con namespaces grandes.
        try:
            batch: list[str] = []
            for key in self._client.scan_iter(match=self._k(pattern), count=self._SCAN_BATCH):
                batch.append(key)
                if len(batch) >= self._SCAN_BATCH:
                    self._client.delete(*batch)
                    batch = []
            if batch:
                self._client.delete(*batch)
        except RedisError as exc:
            self._on_error("delete_pattern", pattern, exc)

    def exists(self, key: str) -> bool:
        try:
            return bool(self._client.exists(self._k(key)))
        except RedisError as exc:
            self._on_error("exists", key, exc)
            return False

    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "backend": "redis",
            "prefix": self._prefix,
            "hits": self._hits,
            "misses": self._misses,
            "errors": self._errors,
            "hit_rate": (self._hits / total) if total > 0 else 0.0,
        }

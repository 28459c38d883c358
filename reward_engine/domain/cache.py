"""
===============================================================================
TARJETA CRC — domain/cache.py
===============================================================================

Módulo:
    Puerto de Cache clave/valor (Dominio)

Responsabilidades:
    - Definir el contrato (Protocol) del cache usado por el Event Store.
    - Habilitar Inversión de Dependencias:
        * application depende de esta interfaz
        * infrastructure/cache implementa backends (memoria / Redis)

Colaboradores:
    - infrastructure/cache.py: InMemoryCacheBackend, RedisCacheBackend
    - application/event_store.py: read-through + invalidación explícita

Restricciones / Reglas:
    - Este módulo ES dominio: no importa Redis.
    - Valores son strings; la serialización tipada vive en infrastructure.
    - Best-effort: fallas del backend se degradan a miss; nunca se propagan.
===============================================================================
"""

from __future__ import annotations

from typing import Callable, Iterable, Protocol


class CachePort(Protocol):
    """
    Cache string → string con TTL por entrada.

    Semántica:
      - get(key) retorna None si no existe / expiró / el backend falló
      - delete_pattern usa glob ("event:*", "event:active:?-*")
    """

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def delete_many(self, keys: Iterable[str]) -> None:
        ...

    def delete_pattern(self, pattern: str) -> None:
        ...

    def exists(self, key: str) -> bool:
        ...

    def get_or_set(
        self, key: str, factory: Callable[[], str], ttl_seconds: float
    ) -> str:
        """Devuelve el valor cacheado o lo calcula con factory() y lo guarda."""
        ...

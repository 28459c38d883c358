"""
===============================================================================
TARJETA CRC — domain/locks.py
===============================================================================

Módulo:
    Puerto de Lock distribuido (Dominio)

Responsabilidades:
    - Definir el contrato LockManager (acquire_lock / with_lock).
    - Definir LockOptions (TTL + política de reintentos) y LockHandle.

Colaboradores:
    - infrastructure/locks.py: InMemoryLockManager, RedisLockManager
    - application/claim_processor.py: serializa create_claim por (user, event)

Reglas:
    - Un solo holder por clave; cada lock expira solo (TTL duro).
    - No adquirir NO es una excepción: LockHandle(success=False).
    - release() es idempotente y nunca libera el lock de otro holder.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class LockOptions:
    lock_ttl_seconds: float = 30.0
    retry_count: int = 3
    retry_delay_seconds: float = 0.2


@dataclass(frozen=True)
class LockHandle:
    """Resultado de acquire_lock(): éxito + función de liberación."""

    success: bool
    release: Callable[[], None]


class LockManager(Protocol):
    def acquire_lock(
        self, key: str, options: Optional[LockOptions] = None
    ) -> LockHandle:
        ...

    def with_lock(
        self,
        key: str,
        fn: Callable[[], T],
        options: Optional[LockOptions] = None,
    ) -> Optional[T]:
        """Ejecuta fn bajo el lock; None si no se pudo adquirir."""
        ...

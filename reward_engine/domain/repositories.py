"""
===============================================================================
TARJETA CRC — domain/repositories.py
===============================================================================

Módulo:
    Puertos de persistencia (Protocols) del motor de recompensas

Responsabilidades:
    - Definir contratos de acceso a datos para Event, Reward, RewardClaim
      y UserEvent.
    - Habilitar DIP: application depende de estos contratos; infrastructure
      (in_memory / postgres) los implementa.

Colaboradores:
    - domain.entities
    - infrastructure/repositories/*

Reglas:
    - Los repos NO aplican reglas de negocio (validez, transiciones).
    - find_by_id devuelve None si no existe; los stores traducen a NotFound.
    - Unicidad de storage:
        * RewardClaim: (user_id, event_id) y (user_id, reward_id) únicos
          -> DuplicateClaimError
        * UserEvent: idempotency_key única -> DuplicateIdempotencyKeyError
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol

from .entities import (
    ClaimStatus,
    ConditionType,
    Event,
    EventStatus,
    Reward,
    RewardClaim,
    UserEvent,
)


@dataclass(frozen=True)
class EventFilter:
    """Filtro opcional para listados de eventos (todos los campos son AND)."""

    name: Optional[str] = None
    status: Optional[EventStatus] = None
    condition_type: Optional[ConditionType] = None


class EventRepository(Protocol):
    def find_by_id(self, event_id: str) -> Optional[Event]:
        """Obtiene evento por ID (None si no existe)."""
        ...

    def find_all(self, event_filter: EventFilter | None = None) -> List[Event]:
        """Lista eventos (más recientes primero)."""
        ...

    def find_active(self, now: datetime) -> List[Event]:
        """Eventos ACTIVE con start_date ≤ now ≤ end_date, ordenados por start_date."""
        ...

    def save(self, event: Event) -> Event:
        """Inserta o reemplaza (upsert por id)."""
        ...

    def delete(self, event_id: str) -> bool:
        """Borra; True si existía."""
        ...


class RewardRepository(Protocol):
    def find_by_id(self, reward_id: str) -> Optional[Reward]:
        """Obtiene reward por ID (None si no existe)."""
        ...

    def find_all(self) -> List[Reward]:
        ...

    def find_by_event_id(self, event_id: str) -> List[Reward]:
        ...

    def save(self, reward: Reward) -> Reward:
        ...

    def delete(self, reward_id: str) -> bool:
        ...


class RewardClaimRepository(Protocol):
    def find_by_id(self, claim_id: str) -> Optional[RewardClaim]:
        """Obtiene claim por ID (None si no existe)."""
        ...

    def find_all(self) -> List[RewardClaim]:
        ...

    def save(self, claim: RewardClaim) -> RewardClaim:
        """
        Upsert por id.

        Raises:
            DuplicateClaimError: si es un claim nuevo y ya existe otro con el
                mismo (user_id, event_id) o (user_id, reward_id).
        """
        ...

    def delete(self, claim_id: str) -> bool:
        ...

    def find_by_user_id(self, user_id: str) -> List[RewardClaim]:
        ...

    def find_by_event_id(self, event_id: str) -> List[RewardClaim]:
        ...

    def find_by_status(self, status: ClaimStatus) -> List[RewardClaim]:
        ...

    def find_by_user_and_event(self, user_id: str, event_id: str) -> List[RewardClaim]:
        ...

    def find_by_user_and_reward(self, user_id: str, reward_id: str) -> List[RewardClaim]:
        ...


class UserEventRepository(Protocol):
    """Ledger append-only: no existe update ni delete."""

    def save(self, user_event: UserEvent) -> UserEvent:
        """
        Inserta una entrada nueva.

        Raises:
            DuplicateIdempotencyKeyError: si la idempotency_key ya existe.
        """
        ...

    def find_by_id(self, entry_id: str) -> Optional[UserEvent]:
        ...

    def find_by_idempotency_key(self, idempotency_key: str) -> Optional[UserEvent]:
        ...

    def find_by_user(
        self, user_id: str, event_type: str | None = None
    ) -> List[UserEvent]:
        """Entradas del usuario (más recientes primero), opcionalmente por tipo."""
        ...

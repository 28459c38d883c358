"""
===============================================================================
TARJETA CRC — application/user_event_ledger.py
===============================================================================

Class:
    UserEventLedger

Responsibilities:
    - Registrar comportamientos del usuario (append-only) como evidencia para
      el evaluador de condiciones.
    - Idempotencia por idempotency_key:
        1) si ya existe una entrada con esa key => devolverla sin cambios
        2) si la storage rechaza por unicidad (carrera entre dos requests)
           => releer y devolver la entrada ganadora
    - Consultas por usuario / id / idempotency_key.

Collaborators:
    - domain.repositories.UserEventRepository
    - domain.entities.UserEvent

Constraints:
    - No existe update ni delete.
===============================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..crosscutting.logger import logger
from ..domain.entities import UserEvent, utcnow
from ..domain.errors import DuplicateIdempotencyKeyError
from ..domain.repositories import UserEventRepository


class UserEventLedger:
    def __init__(
        self,
        repository: UserEventRepository,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._clock = clock

    def record(
        self,
        user_id: str,
        event_type: str,
        event_key: str,
        *,
        occurred_at: datetime | str | None = None,
        metadata: Dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> UserEvent:
        """Registra una entrada; con idempotency_key repetida devuelve la original."""
        if idempotency_key:
            existing = self._repository.find_by_idempotency_key(idempotency_key)
            if existing is not None:
                logger.info(
                    "Duplicate user event ignored (idempotency key)",
                    extra={"idempotency_key": idempotency_key, "entry_id": existing.id},
                )
                return existing

        entry = UserEvent.create(
            user_id=user_id,
            event_type=event_type,
            event_key=event_key,
            occurred_at=occurred_at,
            metadata=metadata,
            idempotency_key=idempotency_key,
            now=self._clock(),
        )

        try:
            saved = self._repository.save(entry)
        except DuplicateIdempotencyKeyError:
            winner = self._repository.find_by_idempotency_key(idempotency_key or "")
            if winner is None:
                raise
            logger.info(
                "Concurrent duplicate user event resolved to existing entry",
                extra={"idempotency_key": idempotency_key, "entry_id": winner.id},
            )
            return winner

        logger.info(
            "User event recorded",
            extra={
                "entry_id": saved.id,
                "user_id": saved.user_id,
                "event_type": saved.event_type,
                "event_key": saved.event_key,
            },
        )
        return saved

    def find_by_user(self, user_id: str, event_type: str | None = None) -> List[UserEvent]:
        return self._repository.find_by_user(user_id, event_type)

    def find_by_id(self, entry_id: str) -> Optional[UserEvent]:
        return self._repository.find_by_id(entry_id)

    def find_by_idempotency_key(self, idempotency_key: str) -> Optional[UserEvent]:
        return self._repository.find_by_idempotency_key(idempotency_key)

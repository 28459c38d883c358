"""
============================================================
TARJETA CRC — infrastructure/repositories/in_memory/user_events.py
============================================================
Class: InMemoryUserEventRepository

Responsibilities:
  - Ledger append-only en memoria.
  - Índice único por idempotency_key (sparse: None no participa).
  - Listado por usuario (occurred_at DESC), opcionalmente por event_type.

Collaborators:
  - domain.entities.UserEvent (frozen, pero metadata es un dict mutable:
    se guarda y se devuelve por copia)
  - domain.errors.DuplicateIdempotencyKeyError
============================================================
"""

from __future__ import annotations

import copy
from threading import Lock
from typing import Dict, List, Optional

from ....domain.entities import UserEvent
from ....domain.errors import DuplicateIdempotencyKeyError
from ....domain.repositories import UserEventRepository


class InMemoryUserEventRepository(UserEventRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._entries: Dict[str, UserEvent] = {}
        self._by_idempotency_key: Dict[str, str] = {}

    def save(self, user_event: UserEvent) -> UserEvent:
        with self._lock:
            key = user_event.idempotency_key
            if key is not None and key in self._by_idempotency_key:
                raise DuplicateIdempotencyKeyError(key)
            self._entries[user_event.id] = copy.deepcopy(user_event)
            if key is not None:
                self._by_idempotency_key[key] = user_event.id
        return user_event

    def find_by_id(self, entry_id: str) -> Optional[UserEvent]:
        with self._lock:
            entry = self._entries.get(entry_id)
            return copy.deepcopy(entry) if entry is not None else None

    def find_by_idempotency_key(self, idempotency_key: str) -> Optional[UserEvent]:
        with self._lock:
            entry_id = self._by_idempotency_key.get(idempotency_key)
            entry = self._entries.get(entry_id) if entry_id is not None else None
            return copy.deepcopy(entry) if entry is not None else None

    def find_by_user(
        self, user_id: str, event_type: str | None = None
    ) -> List[UserEvent]:
        with self._lock:
            values = [
                copy.deepcopy(e)
                for e in self._entries.values()
                if e.user_id == user_id
                and (event_type is None or e.event_type == event_type)
            ]
        return sorted(values, key=lambda e: e.occurred_at, reverse=True)

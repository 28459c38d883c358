"""
============================================================
TARJETA CRC — infrastructure/repositories/in_memory/events.py
============================================================
Class: InMemoryEventRepository

Responsibilities:
  - Almacenar eventos en memoria (tests / local dev).
  - Implementar find_by_id / find_all(filter) / find_active(now) / save / delete.
  - Ordering determinístico alineado con Postgres:
      find_all:    created_at DESC, name ASC
      find_active: start_date ASC

Collaborators:
  - domain.entities.Event
  - domain.repositories.EventRepository, EventFilter

Constraints / Notes:
  - Thread-safe: acceso protegido por Lock.
  - Copias defensivas: nunca se comparte la instancia almacenada.
============================================================
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Iterable, List, Optional

from ....domain.entities import Event, EventStatus
from ....domain.repositories import EventFilter, EventRepository

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class InMemoryEventRepository(EventRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._events: Dict[str, Event] = {}

    @staticmethod
    def _sorted(items: Iterable[Event]) -> List[Event]:
        return sorted(
            items,
            key=lambda e: (-(e.created_at or _EPOCH).timestamp(), e.name or ""),
        )

    @staticmethod
    def _matches(event: Event, event_filter: EventFilter | None) -> bool:
        if event_filter is None:
            return True
        if event_filter.name and event_filter.name.lower() not in event.name.lower():
            return False
        if event_filter.status is not None and event.status != event_filter.status:
            return False
        if (
            event_filter.condition_type is not None
            and event.condition_type != event_filter.condition_type
        ):
            return False
        return True

    def find_by_id(self, event_id: str) -> Optional[Event]:
        with self._lock:
            event = self._events.get(event_id)
            return copy.deepcopy(event) if event is not None else None

    def find_all(self, event_filter: EventFilter | None = None) -> List[Event]:
        with self._lock:
            values = [copy.deepcopy(e) for e in self._events.values()]
        return self._sorted(e for e in values if self._matches(e, event_filter))

    def find_active(self, now: datetime) -> List[Event]:
        with self._lock:
            values = [
                copy.deepcopy(e)
                for e in self._events.values()
                if e.status is EventStatus.ACTIVE and e.start_date <= now <= e.end_date
            ]
        return sorted(values, key=lambda e: e.start_date)

    def save(self, event: Event) -> Event:
        with self._lock:
            self._events[event.id] = copy.deepcopy(event)
        return event

    def delete(self, event_id: str) -> bool:
        with self._lock:
            return self._events.pop(event_id, None) is not None

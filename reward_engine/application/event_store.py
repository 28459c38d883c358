"""
===============================================================================
TARJETA CRC — application/event_store.py
===============================================================================

Class:
    EventStore

Responsibilities:
    - CRUD de eventos + cambios de estado validados por la máquina de estados.
    - Auto-expiración: toda lectura aplica Event.auto_update_status(now) y
      persiste la corrección antes de devolver.
    - Read-through cache con invalidación explícita:
        * event:{id}                  (TTL configurable, default 300 s)
        * event:active:{YYYY-MM-DD}   (solo listas no vacías)
      Todo save/delete invalida event:{id} y la lista activa del día.
    - Lecturas consistentes (use_cache=False) para el camino de escritura.

Collaborators:
    - domain.repositories.EventRepository (fuente de verdad)
    - domain.cache.CachePort (best-effort)
    - infrastructure.serialization (codec tipado: datetimes siguen siendo datetimes)

Notes:
    - Un valor corrupto en cache se loguea, se borra y se lee del repositorio.
    - La validez (is_valid) se recalcula siempre; nunca se confía en la cache
      para decidir transiciones.
===============================================================================
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from ..crosscutting.logger import logger
from ..domain.cache import CachePort
from ..domain.entities import ConditionType, Event, EventStatus, utcnow
from ..domain.errors import EventNotFoundError
from ..domain.repositories import EventFilter, EventRepository
from ..infrastructure.serialization import (
    CacheDecodeError,
    decode_event,
    decode_events,
    encode_event,
    encode_events,
)

EVENT_CACHE_PREFIX = "event:"
DEFAULT_EVENT_CACHE_TTL_SECONDS = 300


def event_cache_key(event_id: str) -> str:
    return f"{EVENT_CACHE_PREFIX}{event_id}"


def active_events_cache_key(day: date) -> str:
    return f"{EVENT_CACHE_PREFIX}active:{day.isoformat()}"


class EventStore:
    def __init__(
        self,
        repository: EventRepository,
        cache: CachePort,
        *,
        cache_ttl_seconds: float = DEFAULT_EVENT_CACHE_TTL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._ttl = cache_ttl_seconds
        self._clock = clock

    # =========================================================
    # Cache helpers (best-effort)
    # =========================================================
    def _read_cached(self, key: str, decoder):
        payload = self._cache.get(key)
        if payload is None:
            return None
        try:
            return decoder(payload)
        except CacheDecodeError as exc:
            logger.warning(
                "Discarding unreadable cache entry",
                extra={"cache_key": key, "error": str(exc)},
            )
            self._cache.delete(key)
            return None

    def _invalidate(self, event_id: str) -> None:
        self._cache.delete_many(
            [event_cache_key(event_id), active_events_cache_key(self._clock().date())]
        )

    def _persist(self, event: Event) -> Event:
        saved = self._repository.save(event)
        self._invalidate(event.id)
        return saved

    def _apply_auto_expiry(self, event: Event, now: datetime) -> bool:
        if not event.auto_update_status(now):
            return False
        logger.info(
            "Event auto-expired",
            extra={"event_id": event.id, "end_date": event.end_date.isoformat()},
        )
        self._persist(event)
        return True

    # =========================================================
    # Commands
    # =========================================================
    def create(
        self,
        *,
        name: str,
        description: str,
        condition_type: ConditionType | str,
        condition_params: Dict[str, Any] | None,
        start_date: datetime | str,
        end_date: datetime | str,
        metadata: Dict[str, Any] | None = None,
    ) -> Event:
        event = Event.create(
            name=name,
            description=description,
            condition_type=condition_type,
            condition_params=condition_params,
            start_date=start_date,
            end_date=end_date,
            metadata=metadata,
            now=self._clock(),
        )
        self._persist(event)
        logger.info(
            "Event created",
            extra={"event_id": event.id, "condition_type": event.condition_type.value},
        )
        return event

    def update(self, event_id: str, **changes: Any) -> Event:
        event = self.find_by_id(event_id, use_cache=False)
        event.update(now=self._clock(), **changes)
        self._persist(event)
        logger.info(
            "Event updated",
            extra={"event_id": event_id, "fields": sorted(k for k, v in changes.items() if v is not None)},
        )
        return event

    def change_status(self, event_id: str, new_status: EventStatus | str) -> Event:
        event = self.find_by_id(event_id, use_cache=False)
        previous = event.status
        event.change_status(new_status, now=self._clock())
        self._persist(event)
        logger.info(
            "Event status changed",
            extra={
                "event_id": event_id,
                "from_status": previous.value,
                "to_status": event.status.value,
            },
        )
        return event

    def delete(self, event_id: str) -> None:
        if not self._repository.delete(event_id):
            raise EventNotFoundError(event_id)
        self._invalidate(event_id)
        logger.info("Event deleted", extra={"event_id": event_id})

    # =========================================================
    # Queries
    # =========================================================
    def find_by_id(self, event_id: str, *, use_cache: bool = True) -> Event:
        """
        Obtiene un evento con auto-expiración aplicada.

        - use_cache=False lee siempre del repositorio (camino de escritura).
        - Si la copia cacheada necesita corrección, se relee del repositorio
          antes de corregir y persistir.
        """
        now = self._clock()
        key = event_cache_key(event_id)

        event: Optional[Event] = self._read_cached(key, decode_event) if use_cache else None
        if event is not None and now > event.end_date and event.status is not EventStatus.EXPIRED:
            event = None

        if event is not None:
            return event

        event = self._repository.find_by_id(event_id)
        if event is None:
            raise EventNotFoundError(event_id)

        self._apply_auto_expiry(event, now)
        self._cache.set(key, encode_event(event), self._ttl)
        return event

    def find_all(self, event_filter: EventFilter | None = None) -> List[Event]:
        now = self._clock()
        events = self._repository.find_all(event_filter)
        for event in events:
            self._apply_auto_expiry(event, now)

        if event_filter is not None and event_filter.status is not None:
            # R: un evento recién expirado ya no cumple el filtro de estado original
            events = [e for e in events if e.status is event_filter.status]
        return events

    def find_active(self) -> List[Event]:
        now = self._clock()
        key = active_events_cache_key(now.date())

        cached = self._read_cached(key, decode_events)
        if cached is not None:
            return [e for e in cached if e.is_valid(now)]

        events = [e for e in self._repository.find_active(now) if e.is_valid(now)]
        if events:
            self._cache.set(key, encode_events(events), self._ttl)
        return events

"""
============================================================
TARJETA CRC — infrastructure/serialization.py
============================================================
Module: Codec tipado de eventos para cache

Responsibilities:
  - Convertir Event <-> JSON preservando tipos temporales (datetime) y enums.
  - Validar el payload al decodificar: un valor corrupto o de un schema viejo
    falla con CacheDecodeError (el caller lo trata como miss).

Collaborators:
  - pydantic (BaseModel / TypeAdapter) para schema + parsing de datetimes
  - domain.entities.Event
  - application.event_store (único consumidor)

Notes:
  - El codec NO aplica reglas de negocio: Event se reconstruye con el
    constructor (no con Event.create) para no re-validar datos ya persistidos.
============================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..domain.entities import ConditionType, Event, EventStatus

# R: bump si cambia el schema; valores con otra versión se descartan.
SCHEMA_VERSION = 1


class CacheDecodeError(ValueError):
    """Payload de cache ilegible o con schema incompatible."""


class EventCacheRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    v: int = SCHEMA_VERSION
    id: str
    name: str
    description: str
    condition_type: ConditionType
    condition_params: Dict[str, Any]
    start_date: datetime
    end_date: datetime
    status: EventStatus
    metadata: Dict[str, Any]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, event: Event) -> "EventCacheRecord":
        return cls(
            id=event.id,
            name=event.name,
            description=event.description,
            condition_type=event.condition_type,
            condition_params=dict(event.condition_params),
            start_date=event.start_date,
            end_date=event.end_date,
            status=event.status,
            metadata=dict(event.metadata),
            created_at=event.created_at,
            updated_at=event.updated_at,
        )

    def to_entity(self) -> Event:
        return Event(
            id=self.id,
            name=self.name,
            description=self.description,
            condition_type=self.condition_type,
            condition_params=dict(self.condition_params),
            start_date=self.start_date,
            end_date=self.end_date,
            status=self.status,
            metadata=dict(self.metadata),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


_EVENT_LIST = TypeAdapter(List[EventCacheRecord])


def _check_version(records: List[EventCacheRecord]) -> None:
    for record in records:
        if record.v != SCHEMA_VERSION:
            raise CacheDecodeError(f"unsupported cache schema version {record.v}")


def encode_event(event: Event) -> str:
    return EventCacheRecord.from_entity(event).model_dump_json()


def decode_event(payload: str) -> Event:
    try:
        record = EventCacheRecord.model_validate_json(payload)
    except PydanticValidationError as exc:
        raise CacheDecodeError(str(exc)) from exc
    _check_version([record])
    return record.to_entity()


def encode_events(events: List[Event]) -> str:
    records = [EventCacheRecord.from_entity(e) for e in events]
    return _EVENT_LIST.dump_json(records).decode("utf-8")


def decode_events(payload: str) -> List[Event]:
    try:
        records = _EVENT_LIST.validate_json(payload)
    except PydanticValidationError as exc:
        raise CacheDecodeError(str(exc)) from exc
    _check_version(records)
    return [r.to_entity() for r in records]

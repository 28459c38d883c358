"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/events.py
============================================================
Class: PostgresEventRepository

Responsibilities:
- Persistir eventos en la tabla `events` (SQL crudo, parametrizado).
- find_active aplica la regla de validez en la query:
    status = 'active' AND start_date <= now AND end_date >= now

Collaborators:
- domain.entities.Event
- PostgresRepository (helpers de ejecución)

Constraints / Notes:
- Sin lógica de negocio aquí (auto-expiración vive en el Event Store).
- Ordenamiento determinístico en todos los listados.
============================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from psycopg.types.json import Jsonb

from ....domain.entities import Event, EventStatus
from ....domain.repositories import EventFilter
from ._base import PostgresRepository


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresEventRepository(PostgresRepository):
    """R: Implementación PostgreSQL del repositorio de eventos."""

    _SELECT_COLUMNS = """
        id, name, description, condition_type, condition_params,
        start_date, end_date, status, metadata, created_at, updated_at
    """

    _ORDER_BY = "ORDER BY created_at DESC NULLS LAST, name ASC"

    def _row_to_event(self, row: tuple) -> Event:
        (
            event_id,
            name,
            description,
            condition_type,
            condition_params,
            start_date,
            end_date,
            status,
            metadata,
            created_at,
            updated_at,
        ) = row

        return Event(
            id=event_id,
            name=name,
            description=description,
            condition_type=condition_type,
            condition_params=condition_params or {},
            start_date=start_date,
            end_date=end_date,
            status=status,
            metadata=metadata or {},
            created_at=created_at,
            updated_at=updated_at,
        )

    def find_by_id(self, event_id: str) -> Optional[Event]:
        row = self._fetchone(
            query=f"SELECT {self._SELECT_COLUMNS} FROM events WHERE id = %s",
            params=[event_id],
            context_msg="PostgresEventRepository: Failed to get event",
            extra={"event_id": event_id},
        )
        return self._row_to_event(row) if row else None

    def find_all(self, event_filter: EventFilter | None = None) -> List[Event]:
        conditions: list[str] = []
        params: list[object] = []

        if event_filter is not None:
            if event_filter.name:
                conditions.append("name ILIKE %s")
                params.append(f"%{_escape_like(event_filter.name)}%")
            if event_filter.status is not None:
                conditions.append("status = %s")
                params.append(event_filter.status.value)
            if event_filter.condition_type is not None:
                conditions.append("condition_type = %s")
                params.append(event_filter.condition_type.value)

        where_sql = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = self._fetchall(
            query=f"SELECT {self._SELECT_COLUMNS} FROM events {where_sql} {self._ORDER_BY}",
            params=params,
            context_msg="PostgresEventRepository: Failed to list events",
            extra={"where_sql": where_sql},
        )
        return [self._row_to_event(r) for r in rows]

    def find_active(self, now: datetime) -> List[Event]:
        rows = self._fetchall(
            query=f"""
                SELECT {self._SELECT_COLUMNS}
                FROM events
                WHERE status = %s AND start_date <= %s AND end_date >= %s
                ORDER BY start_date ASC, id ASC
            """,
            params=[EventStatus.ACTIVE.value, now, now],
            context_msg="PostgresEventRepository: Failed to list active events",
            extra={"now": now.isoformat()},
        )
        return [self._row_to_event(r) for r in rows]

    def save(self, event: Event) -> Event:
        self._execute(
            query="""
                INSERT INTO events (
                    id, name, description, condition_type, condition_params,
                    start_date, end_date, status, metadata, created_at, updated_at
                )
                VALUES (
                    %s, %s, %s, %s, %s, %s, %s, %s, %s,
                    COALESCE(%s, now()), COALESCE(%s, now())
                )
                ON CONFLICT (id) DO UPDATE SET
                    name = EXCLUDED.name,
                    description = EXCLUDED.description,
                    condition_type = EXCLUDED.condition_type,
                    condition_params = EXCLUDED.condition_params,
                    start_date = EXCLUDED.start_date,
                    end_date = EXCLUDED.end_date,
                    status = EXCLUDED.status,
                    metadata = EXCLUDED.metadata,
                    updated_at = EXCLUDED.updated_at
            """,
            params=[
                event.id,
                event.name,
                event.description,
                event.condition_type.value,
                Jsonb(event.condition_params),
                event.start_date,
                event.end_date,
                event.status.value,
                Jsonb(event.metadata),
                event.created_at,
                event.updated_at,
            ],
            context_msg="PostgresEventRepository: Failed to save event",
            extra={"event_id": event.id},
        )
        return event

    def delete(self, event_id: str) -> bool:
        deleted = self._execute(
            query="DELETE FROM events WHERE id = %s",
            params=[event_id],
            context_msg="PostgresEventRepository: Failed to delete event",
            extra={"event_id": event_id},
        )
        return deleted > 0

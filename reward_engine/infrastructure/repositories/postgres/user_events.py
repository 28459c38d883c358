"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/user_events.py
============================================================
Class: PostgresUserEventRepository

Responsibilities:
- Ledger append-only en `user_events` (solo INSERT / SELECT).
- Índice único parcial sobre idempotency_key (NULLs no participan):
  la violación se traduce a DuplicateIdempotencyKeyError para que el ledger
  devuelva la entrada ya registrada.
============================================================
"""

from __future__ import annotations

from typing import List, Optional

from psycopg.errors import UniqueViolation
from psycopg.types.json import Jsonb

from ....domain.entities import UserEvent
from ....domain.errors import DuplicateIdempotencyKeyError
from ._base import PostgresRepository


class PostgresUserEventRepository(PostgresRepository):
    """R: Implementación PostgreSQL del ledger de comportamiento."""

    _SELECT_COLUMNS = """
        id, user_id, event_type, event_key, occurred_at, metadata,
        idempotency_key, created_at
    """

    def _row_to_user_event(self, row: tuple) -> UserEvent:
        (
            entry_id,
            user_id,
            event_type,
            event_key,
            occurred_at,
            metadata,
            idempotency_key,
            created_at,
        ) = row

        return UserEvent(
            id=entry_id,
            user_id=user_id,
            event_type=event_type,
            event_key=event_key,
            occurred_at=occurred_at,
            metadata=metadata or {},
            idempotency_key=idempotency_key,
            created_at=created_at,
        )

    def save(self, user_event: UserEvent) -> UserEvent:
        try:
            self._execute(
                query="""
                    INSERT INTO user_events (
                        id, user_id, event_type, event_key, occurred_at, metadata,
                        idempotency_key, created_at
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, COALESCE(%s, now()))
                """,
                params=[
                    user_event.id,
                    user_event.user_id,
                    user_event.event_type,
                    user_event.event_key,
                    user_event.occurred_at,
                    Jsonb(user_event.metadata),
                    user_event.idempotency_key,
                    user_event.created_at,
                ],
                context_msg="PostgresUserEventRepository: Failed to save user event",
                extra={"entry_id": user_event.id, "user_id": user_event.user_id},
            )
        except UniqueViolation as exc:
            raise DuplicateIdempotencyKeyError(
                user_event.idempotency_key or user_event.id
            ) from exc
        return user_event

    def find_by_id(self, entry_id: str) -> Optional[UserEvent]:
        row = self._fetchone(
            query=f"SELECT {self._SELECT_COLUMNS} FROM user_events WHERE id = %s",
            params=[entry_id],
            context_msg="PostgresUserEventRepository: Failed to get user event",
            extra={"entry_id": entry_id},
        )
        return self._row_to_user_event(row) if row else None

    def find_by_idempotency_key(self, idempotency_key: str) -> Optional[UserEvent]:
        row = self._fetchone(
            query=f"SELECT {self._SELECT_COLUMNS} FROM user_events WHERE idempotency_key = %s",
            params=[idempotency_key],
            context_msg="PostgresUserEventRepository: Failed to get user event by idempotency key",
            extra={"idempotency_key": idempotency_key},
        )
        return self._row_to_user_event(row) if row else None

    def find_by_user(
        self, user_id: str, event_type: str | None = None
    ) -> List[UserEvent]:
        conditions = ["user_id = %s"]
        params: list[object] = [user_id]
        if event_type is not None:
            conditions.append("event_type = %s")
            params.append(event_type)

        rows = self._fetchall(
            query=f"""
                SELECT {self._SELECT_COLUMNS}
                FROM user_events
                WHERE {' AND '.join(conditions)}
                ORDER BY occurred_at DESC, id ASC
            """,
            params=params,
            context_msg="PostgresUserEventRepository: Failed to list user events",
            extra={"user_id": user_id, "event_type": event_type},
        )
        return [self._row_to_user_event(r) for r in rows]

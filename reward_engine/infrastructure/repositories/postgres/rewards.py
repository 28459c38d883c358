"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/rewards.py
============================================================
Class: PostgresRewardRepository

Responsibilities:
- CRUD de rewards en la tabla `rewards`; listado por evento.
- event_id nunca se actualiza en el upsert (inmutable).
============================================================
"""

from __future__ import annotations

from typing import List, Optional

from psycopg.types.json import Jsonb

from ....domain.entities import Reward
from ._base import PostgresRepository


class PostgresRewardRepository(PostgresRepository):
    """R: Implementación PostgreSQL del repositorio de rewards."""

    _SELECT_COLUMNS = """
        id, event_id, type, amount, description, requires_approval,
        metadata, created_at, updated_at
    """

    _ORDER_BY = "ORDER BY created_at ASC, id ASC"

    def _row_to_reward(self, row: tuple) -> Reward:
        (
            reward_id,
            event_id,
            reward_type,
            amount,
            description,
            requires_approval,
            metadata,
            created_at,
            updated_at,
        ) = row

        return Reward(
            id=reward_id,
            event_id=event_id,
            type=reward_type,
            amount=float(amount) if amount % 1 else int(amount),
            description=description or "",
            requires_approval=bool(requires_approval),
            metadata=metadata or {},
            created_at=created_at,
            updated_at=updated_at,
        )

    def _select(self, where_sql: str, params: list[object], context_msg: str) -> List[Reward]:
        rows = self._fetchall(
            query=f"SELECT {self._SELECT_COLUMNS} FROM rewards {where_sql} {self._ORDER_BY}",
            params=params,
            context_msg=context_msg,
            extra={"where_sql": where_sql},
        )
        return [self._row_to_reward(r) for r in rows]

    def find_by_id(self, reward_id: str) -> Optional[Reward]:
        row = self._fetchone(
            query=f"SELECT {self._SELECT_COLUMNS} FROM rewards WHERE id = %s",
            params=[reward_id],
            context_msg="PostgresRewardRepository: Failed to get reward",
            extra={"reward_id": reward_id},
        )
        return self._row_to_reward(row) if row else None

    def find_all(self) -> List[Reward]:
        return self._select("", [], "PostgresRewardRepository: Failed to list rewards")

    def find_by_event_id(self, event_id: str) -> List[Reward]:
        return self._select(
            "WHERE event_id = %s",
            [event_id],
            "PostgresRewardRepository: Failed to list rewards by event",
        )

    def save(self, reward: Reward) -> Reward:
        self._execute(
            query="""
                INSERT INTO rewards (
                    id, event_id, type, amount, description, requires_approval,
                    metadata, created_at, updated_at
                )
                VALUES (
                    %s, %s, %s, %s, %s, %s, %s,
                    COALESCE(%s, now()), COALESCE(%s, now())
                )
                ON CONFLICT (id) DO UPDATE SET
                    type = EXCLUDED.type,
                    amount = EXCLUDED.amount,
                    description = EXCLUDED.description,
                    requires_approval = EXCLUDED.requires_approval,
                    metadata = EXCLUDED.metadata,
                    updated_at = EXCLUDED.updated_at
            """,
            params=[
                reward.id,
                reward.event_id,
                reward.type.value,
                reward.amount,
                reward.description,
                reward.requires_approval,
                Jsonb(reward.metadata),
                reward.created_at,
                reward.updated_at,
            ],
            context_msg="PostgresRewardRepository: Failed to save reward",
            extra={"reward_id": reward.id},
        )
        return reward

    def delete(self, reward_id: str) -> bool:
        deleted = self._execute(
            query="DELETE FROM rewards WHERE id = %s",
            params=[reward_id],
            context_msg="PostgresRewardRepository: Failed to delete reward",
            extra={"reward_id": reward_id},
        )
        return deleted > 0

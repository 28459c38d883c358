"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/claims.py
============================================================
Class: PostgresRewardClaimRepository

Responsibilities:
- Persistir claims en `reward_claims`.
- Traducir violaciones de los índices únicos
    uq_reward_claims_user_event  (user_id, event_id)
    uq_reward_claims_user_reward (user_id, reward_id)
  a DuplicateClaimError (la DB es la última barrera contra duplicados).

Collaborators:
- domain.entities.RewardClaim, ClaimStatus
- domain.errors.DuplicateClaimError
- PostgresRepository
============================================================
"""

from __future__ import annotations

from typing import List, Optional

from psycopg.errors import UniqueViolation
from psycopg.types.json import Jsonb

from ....crosscutting.logger import logger
from ....domain.entities import ClaimStatus, RewardClaim
from ....domain.errors import DuplicateClaimError
from ._base import PostgresRepository

UQ_USER_EVENT = "uq_reward_claims_user_event"
UQ_USER_REWARD = "uq_reward_claims_user_reward"


class PostgresRewardClaimRepository(PostgresRepository):
    """R: Implementación PostgreSQL del repositorio de claims."""

    _SELECT_COLUMNS = """
        id, user_id, event_id, reward_id, status, request_date, process_date,
        approver_id, rejection_reason, metadata, created_at, updated_at
    """

    _ORDER_BY = "ORDER BY request_date DESC NULLS LAST, id ASC"

    def _row_to_claim(self, row: tuple) -> RewardClaim:
        (
            claim_id,
            user_id,
            event_id,
            reward_id,
            status,
            request_date,
            process_date,
            approver_id,
            rejection_reason,
            metadata,
            created_at,
            updated_at,
        ) = row

        return RewardClaim(
            id=claim_id,
            user_id=user_id,
            event_id=event_id,
            reward_id=reward_id,
            status=status,
            request_date=request_date,
            process_date=process_date,
            approver_id=approver_id,
            rejection_reason=rejection_reason,
            metadata=metadata or {},
            created_at=created_at,
            updated_at=updated_at,
        )

    def _select(
        self, where_sql: str, params: list[object], context_msg: str
    ) -> List[RewardClaim]:
        rows = self._fetchall(
            query=f"SELECT {self._SELECT_COLUMNS} FROM reward_claims {where_sql} {self._ORDER_BY}",
            params=params,
            context_msg=context_msg,
            extra={"where_sql": where_sql},
        )
        return [self._row_to_claim(r) for r in rows]

    def find_by_id(self, claim_id: str) -> Optional[RewardClaim]:
        row = self._fetchone(
            query=f"SELECT {self._SELECT_COLUMNS} FROM reward_claims WHERE id = %s",
            params=[claim_id],
            context_msg="PostgresRewardClaimRepository: Failed to get claim",
            extra={"claim_id": claim_id},
        )
        return self._row_to_claim(row) if row else None

    def find_all(self) -> List[RewardClaim]:
        return self._select("", [], "PostgresRewardClaimRepository: Failed to list claims")

    def save(self, claim: RewardClaim) -> RewardClaim:
        try:
            self._execute(
                query="""
                    INSERT INTO reward_claims (
                        id, user_id, event_id, reward_id, status, request_date,
                        process_date, approver_id, rejection_reason, metadata,
                        created_at, updated_at
                    )
                    VALUES (
                        %s, %s, %s, %s, %s, COALESCE(%s, now()), %s, %s, %s, %s,
                        COALESCE(%s, now()), COALESCE(%s, now())
                    )
                    ON CONFLICT (id) DO UPDATE SET
                        status = EXCLUDED.status,
                        process_date = EXCLUDED.process_date,
                        approver_id = EXCLUDED.approver_id,
                        rejection_reason = EXCLUDED.rejection_reason,
                        metadata = EXCLUDED.metadata,
                        updated_at = EXCLUDED.updated_at
                """,
                params=[
                    claim.id,
                    claim.user_id,
                    claim.event_id,
                    claim.reward_id,
                    claim.status.value,
                    claim.request_date,
                    claim.process_date,
                    claim.approver_id,
                    claim.rejection_reason,
                    Jsonb(claim.metadata),
                    claim.created_at,
                    claim.updated_at,
                ],
                context_msg="PostgresRewardClaimRepository: Failed to save claim",
                extra={"claim_id": claim.id},
            )
        except UniqueViolation as exc:
            constraint = getattr(exc.diag, "constraint_name", None)
            logger.warning(
                "Duplicate claim rejected by storage",
                extra={"claim_id": claim.id, "constraint": constraint},
            )
            if constraint == UQ_USER_REWARD:
                raise DuplicateClaimError(
                    "User has already claimed this reward",
                    details={"user_id": claim.user_id, "reward_id": claim.reward_id},
                    original_error=exc,
                ) from exc
            raise DuplicateClaimError(
                "User has already claimed a reward for this event",
                details={"user_id": claim.user_id, "event_id": claim.event_id},
                original_error=exc,
            ) from exc
        return claim

    def delete(self, claim_id: str) -> bool:
        deleted = self._execute(
            query="DELETE FROM reward_claims WHERE id = %s",
            params=[claim_id],
            context_msg="PostgresRewardClaimRepository: Failed to delete claim",
            extra={"claim_id": claim_id},
        )
        return deleted > 0

    def find_by_user_id(self, user_id: str) -> List[RewardClaim]:
        return self._select(
            "WHERE user_id = %s",
            [user_id],
            "PostgresRewardClaimRepository: Failed to list claims by user",
        )

    def find_by_event_id(self, event_id: str) -> List[RewardClaim]:
        return self._select(
            "WHERE event_id = %s",
            [event_id],
            "PostgresRewardClaimRepository: Failed to list claims by event",
        )

    def find_by_status(self, status: ClaimStatus) -> List[RewardClaim]:
        return self._select(
            "WHERE status = %s",
            [status.value],
            "PostgresRewardClaimRepository: Failed to list claims by status",
        )

    def find_by_user_and_event(self, user_id: str, event_id: str) -> List[RewardClaim]:
        return self._select(
            "WHERE user_id = %s AND event_id = %s",
            [user_id, event_id],
            "PostgresRewardClaimRepository: Failed to list claims by user and event",
        )

    def find_by_user_and_reward(self, user_id: str, reward_id: str) -> List[RewardClaim]:
        return self._select(
            "WHERE user_id = %s AND reward_id = %s",
            [user_id, reward_id],
            "PostgresRewardClaimRepository: Failed to list claims by user and reward",
        )

"""
===============================================================================
TARJETA CRC — application/claim_processor.py
===============================================================================

Class:
    ClaimProcessor

Business Goal:
    Procesar pedidos de recompensa garantizando:
      - evento existente, ACTIVE y dentro de su período
      - reward existente y perteneciente al evento
      - a lo sumo un claim por (user, event) y por (user, reward)
      - condición del evento cumplida (según el ledger)
      - ciclo de vida PENDING -> APPROVED -> COMPLETED / PENDING -> REJECTED

Responsibilities:
    - create_claim: pasos 1..7 (ver _create_claim) serializados por un lock
      con clave "claim:{user_id}:{event_id}" cuando hay LockManager.
    - approve / reject / complete: transiciones validadas por la entidad.
    - Consultas: por id, usuario, evento, estado; has_claimed_reward.

Collaborators:
    - domain.repositories.RewardClaimRepository (unicidad también en storage)
    - application.event_store.EventStore (lectura consistente, sin cache)
    - application.reward_store.RewardStore
    - application.condition_evaluator.ConditionEvaluator
    - domain.locks.LockManager (opcional)

Error Mapping:
    - NOT_FOUND: evento / reward / claim inexistente
    - VALIDATION_ERROR: evento no válido, reward de otro evento
    - DUPLICATE_CLAIM: ya existe claim para (user, event) o (user, reward)
    - CLAIM_IN_PROGRESS: no se pudo tomar el lock de (user, event)
    - EVENT_CONDITION_NOT_MET: evaluador => no elegible (details = metadata)
    - INVALID_STATUS_TRANSITION: approve/reject/complete fuera de orden
===============================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Optional

from ..crosscutting.logger import logger
from ..domain.entities import ClaimStatus, RewardClaim, parse_enum, utcnow
from ..domain.errors import (
    ClaimInProgressError,
    ClaimNotFoundError,
    DuplicateClaimError,
    EventConditionNotMetError,
    EventNotActiveError,
    RewardNotLinkedError,
)
from ..domain.locks import LockManager, LockOptions
from ..domain.repositories import RewardClaimRepository
from .condition_evaluator import ConditionEvaluator
from .event_store import EventStore
from .reward_store import RewardStore


def claim_lock_key(user_id: str, event_id: str) -> str:
    return f"claim:{user_id}:{event_id}"


class ClaimProcessor:
    def __init__(
        self,
        claims: RewardClaimRepository,
        events: EventStore,
        rewards: RewardStore,
        evaluator: ConditionEvaluator,
        *,
        lock_manager: Optional[LockManager] = None,
        lock_options: Optional[LockOptions] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._claims = claims
        self._events = events
        self._rewards = rewards
        self._evaluator = evaluator
        self._lock_manager = lock_manager
        self._lock_options = lock_options
        self._clock = clock

    # =========================================================
    # Creación
    # =========================================================
    def create_claim(self, user_id: str, event_id: str, reward_id: str) -> RewardClaim:
        if self._lock_manager is None:
            return self._create_claim(user_id, event_id, reward_id)

        key = claim_lock_key(user_id, event_id)
        claim = self._lock_manager.with_lock(
            key,
            lambda: self._create_claim(user_id, event_id, reward_id),
            self._lock_options,
        )
        if claim is None:
            logger.warning(
                "Claim creation rejected: lock busy",
                extra={"user_id": user_id, "event_id": event_id, "lock_key": key},
            )
            raise ClaimInProgressError(
                "Another claim for this user and event is being processed",
                details={"user_id": user_id, "event_id": event_id},
            )
        return claim

    def _create_claim(self, user_id: str, event_id: str, reward_id: str) -> RewardClaim:
        now = self._clock()

        # 1-2) Evento existente y válido (lectura consistente, sin cache)
        event = self._events.find_by_id(event_id, use_cache=False)
        if not event.is_valid(now):
            raise EventNotActiveError(
                "Event is not active or is outside its period",
                details={
                    "event_id": event_id,
                    "event_status": event.status.value,
                    "start_date": event.start_date.isoformat(),
                    "end_date": event.end_date.isoformat(),
                },
            )

        # 3) Reward existente y del mismo evento
        reward = self._rewards.find_by_id(reward_id)
        if reward.event_id != event_id:
            raise RewardNotLinkedError(
                "Reward does not belong to this event",
                details={"reward_id": reward_id, "event_id": event_id},
            )

        # 4) Duplicados
        if self._claims.find_by_user_and_event(user_id, event_id):
            raise DuplicateClaimError(
                "User has already claimed a reward for this event",
                details={"user_id": user_id, "event_id": event_id},
            )
        if self._claims.find_by_user_and_reward(user_id, reward_id):
            raise DuplicateClaimError(
                "User has already claimed this reward",
                details={"user_id": user_id, "reward_id": reward_id},
            )

        # 5) Condición del evento
        result = self._evaluator.validate(user_id, event_id)
        if not result.is_valid:
            logger.info(
                "Claim rejected: event condition not met",
                extra={"user_id": user_id, "event_id": event_id, "reason": result.error_message},
            )
            raise EventConditionNotMetError(
                result.error_message or "Event condition is not met",
                details=result.metadata,
            )

        # 6) Alta del claim
        status = ClaimStatus.PENDING if reward.needs_approval() else ClaimStatus.APPROVED
        claim = RewardClaim.create(
            user_id=user_id,
            event_id=event_id,
            reward_id=reward_id,
            status=status,
            metadata={
                "validation_result": result.metadata,
                "claimed_at": now.isoformat(),
            },
            now=now,
        )
        self._claims.save(claim)

        # 7) Sin aprobación manual => pago inmediato
        if status is ClaimStatus.APPROVED:
            claim.complete(now=self._clock())
            self._claims.save(claim)

        logger.info(
            "Claim created",
            extra={
                "claim_id": claim.id,
                "user_id": user_id,
                "event_id": event_id,
                "reward_id": reward_id,
                "status": claim.status.value,
            },
        )
        return claim

    # =========================================================
    # Transiciones
    # =========================================================
    def approve(self, claim_id: str, approver_id: str) -> RewardClaim:
        claim = self.find_by_id(claim_id)
        claim.approve(approver_id, now=self._clock())
        self._claims.save(claim)
        logger.info(
            "Claim approved", extra={"claim_id": claim_id, "approver_id": approver_id}
        )
        return claim

    def reject(self, claim_id: str, approver_id: str, reason: str) -> RewardClaim:
        claim = self.find_by_id(claim_id)
        claim.reject(approver_id, reason, now=self._clock())
        self._claims.save(claim)
        logger.info(
            "Claim rejected",
            extra={"claim_id": claim_id, "approver_id": approver_id, "reason": reason},
        )
        return claim

    def complete(self, claim_id: str) -> RewardClaim:
        claim = self.find_by_id(claim_id)
        claim.complete(now=self._clock())
        self._claims.save(claim)
        logger.info("Claim completed", extra={"claim_id": claim_id})
        return claim

    # =========================================================
    # Consultas
    # =========================================================
    def find_by_id(self, claim_id: str) -> RewardClaim:
        claim = self._claims.find_by_id(claim_id)
        if claim is None:
            raise ClaimNotFoundError(claim_id)
        return claim

    def find_all(self) -> List[RewardClaim]:
        return self._claims.find_all()

    def find_by_user_id(self, user_id: str) -> List[RewardClaim]:
        return self._claims.find_by_user_id(user_id)

    def find_by_event_id(self, event_id: str) -> List[RewardClaim]:
        self._events.find_by_id(event_id)
        return self._claims.find_by_event_id(event_id)

    def find_by_status(self, status: ClaimStatus | str) -> List[RewardClaim]:
        return self._claims.find_by_status(
            parse_enum(ClaimStatus, status, field_name="claim status")
        )

    def has_claimed_reward(self, user_id: str, event_id: str) -> bool:
        return len(self._claims.find_by_user_and_event(user_id, event_id)) > 0

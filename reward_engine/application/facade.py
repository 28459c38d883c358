"""
===============================================================================
TARJETA CRC — application/facade.py
===============================================================================

Class:
    RewardEngineFacade

Responsibilities:
    - Exponer la API pública del motor (eventos, rewards, claims, ledger,
      elegibilidad) como una sola superficie estable para la capa de transporte.
    - Orquestar flujos que cruzan componentes:
        * approve_claim: aprueba y, si auto_complete_on_approve, paga (COMPLETED)
        * activate_event / deactivate_event: atajos de change_event_status
    - Etiquetar el contexto de logging mientras dura cada comando
      (reward_engine.context.operation_context; se restaura al salir).

Collaborators:
    - EventStore, RewardStore, UserEventLedger, ConditionEvaluator, ClaimProcessor

Notes:
    - Sin lógica de negocio propia: delega en los componentes.
    - Los errores tipados (domain.errors) se propagan tal cual.
===============================================================================
"""


from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from ..context import operation_context
from ..domain.entities import (
    ClaimStatus,
    ConditionType,
    Event,
    EventStatus,
    Reward,
    RewardClaim,
    RewardType,
    UserEvent,
)
from ..domain.repositories import EventFilter
from .claim_processor import ClaimProcessor
from .condition_evaluator import ConditionEvaluator, ConditionValidationResult
from .event_store import EventStore
from .reward_store import RewardStore
from .user_event_ledger import UserEventLedger


class RewardEngineFacade:
    def __init__(
        self,
        *,
        events: EventStore,
        rewards: RewardStore,
        ledger: UserEventLedger,
        evaluator: ConditionEvaluator,
        claims: ClaimProcessor,
        auto_complete_on_approve: bool = True,
    ) -> None:
        self._events = events
        self._rewards = rewards
        self._ledger = ledger
        self._evaluator = evaluator
        self._claims = claims
        self._auto_complete_on_approve = auto_complete_on_approve

    # =========================================================
    # Events
    # =========================================================
    def create_event(
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
        with operation_context("create_event"):
            return self._events.create(
                name=name,
                description=description,
                condition_type=condition_type,
                condition_params=condition_params,
                start_date=start_date,
                end_date=end_date,
                metadata=metadata,
            )

    def update_event(self, event_id: str, **changes: Any) -> Event:
        with operation_context("update_event"):
            return self._events.update(event_id, **changes)

    def change_event_status(self, event_id: str, new_status: EventStatus | str) -> Event:
        with operation_context("change_event_status"):
            return self._events.change_status(event_id, new_status)

    def activate_event(self, event_id: str) -> Event:
        return self.change_event_status(event_id, EventStatus.ACTIVE)

    def deactivate_event(self, event_id: str) -> Event:
        return self.change_event_status(event_id, EventStatus.INACTIVE)

    def delete_event(self, event_id: str) -> None:
        with operation_context("delete_event"):
            self._events.delete(event_id)

    def find_active_events(self) -> List[Event]:
        return self._events.find_active()

    def find_event_by_id(self, event_id: str) -> Event:
        return self._events.find_by_id(event_id)

    def find_all_events(self, event_filter: EventFilter | None = None) -> List[Event]:
        return self._events.find_all(event_filter)

    # =========================================================
    # Rewards
    # =========================================================
    def create_reward(
        self,
        *,
        event_id: str,
        reward_type: RewardType | str,
        amount: float | None = None,
        description: str = "",
        requires_approval: bool = False,
        metadata: Dict[str, Any] | None = None,
    ) -> Reward:
        with operation_context("create_reward"):
            return self._rewards.create(
                event_id=event_id,
                reward_type=reward_type,
                amount=amount,
                description=description,
                requires_approval=requires_approval,
                metadata=metadata,
            )

    def update_reward(self, reward_id: str, **changes: Any) -> Reward:
        with operation_context("update_reward"):
            return self._rewards.update(reward_id, **changes)

    def delete_reward(self, reward_id: str) -> None:
        with operation_context("delete_reward"):
            self._rewards.delete(reward_id)

    def find_rewards_by_event_id(self, event_id: str) -> List[Reward]:
        return self._rewards.find_by_event_id(event_id)

    def find_reward_by_id(self, reward_id: str) -> Reward:
        return self._rewards.find_by_id(reward_id)

    def find_all_rewards(self) -> List[Reward]:
        return self._rewards.find_all()

    # =========================================================
    # Claims
    # =========================================================
    def create_claim(self, user_id: str, event_id: str, reward_id: str) -> RewardClaim:
        with operation_context("create_claim", user_id):
            return self._claims.create_claim(user_id, event_id, reward_id)

    def approve_claim(self, claim_id: str, approver_id: str) -> RewardClaim:
        """Aprueba un claim PENDING; con auto_complete_on_approve también lo paga."""
        with operation_context("approve_claim"):
            claim = self._claims.approve(claim_id, approver_id)
            if self._auto_complete_on_approve:
                claim = self._claims.complete(claim_id)
            return claim

    def reject_claim(self, claim_id: str, approver_id: str, reason: str) -> RewardClaim:
        with operation_context("reject_claim"):
            return self._claims.reject(claim_id, approver_id, reason)

    def complete_claim(self, claim_id: str) -> RewardClaim:
        with operation_context("complete_claim"):
            return self._claims.complete(claim_id)

    def find_claim_by_id(self, claim_id: str) -> RewardClaim:
        return self._claims.find_by_id(claim_id)

    def find_claims_by_user_id(self, user_id: str) -> List[RewardClaim]:
        return self._claims.find_by_user_id(user_id)

    def find_claims_by_event_id(self, event_id: str) -> List[RewardClaim]:
        return self._claims.find_by_event_id(event_id)

    def find_claims_by_status(self, status: ClaimStatus | str) -> List[RewardClaim]:
        return self._claims.find_by_status(status)

    def find_pending_claims(self) -> List[RewardClaim]:
        return self._claims.find_by_status(ClaimStatus.PENDING)

    def find_all_claims(self) -> List[RewardClaim]:
        return self._claims.find_all()

    # =========================================================
    # Ledger
    # =========================================================
    def record_user_event(
        self,
        user_id: str,
        event_type: str,
        event_key: str,
        *,
        occurred_at: datetime | str | None = None,
        metadata: Dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> UserEvent:
        with operation_context("record_user_event", user_id):
            return self._ledger.record(
                user_id,
                event_type,
                event_key,
                occurred_at=occurred_at,
                metadata=metadata,
                idempotency_key=idempotency_key,
            )

    def get_user_events(self, user_id: str, event_type: str | None = None) -> List[UserEvent]:
        return self._ledger.find_by_user(user_id, event_type)

    def get_user_event(self, entry_id: str) -> Optional[UserEvent]:
        return self._ledger.find_by_id(entry_id)

    # =========================================================
    # Eligibility
    # =========================================================
    def is_eligible_for_reward(self, user_id: str, event_id: str) -> bool:
        return self._evaluator.is_eligible_for_reward(user_id, event_id)

    def has_claimed_reward(self, user_id: str, event_id: str) -> bool:
        return self._claims.has_claimed_reward(user_id, event_id)

    def validate_event_conditions(
        self, user_id: str, event_id: str
    ) -> ConditionValidationResult:
        return self._evaluator.validate(user_id, event_id)

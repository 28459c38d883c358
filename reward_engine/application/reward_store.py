"""
===============================================================================
TARJETA CRC — application/reward_store.py
===============================================================================

Class:
    RewardStore

Responsibilities:
    - CRUD de rewards asociados a un evento existente.
    - Verificar que el evento exista al crear y al listar por evento.

Collaborators:
    - domain.repositories.RewardRepository
    - application.event_store.EventStore (existencia del evento)
===============================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List

from ..crosscutting.logger import logger
from ..domain.entities import Reward, RewardType, utcnow
from ..domain.errors import RewardNotFoundError
from ..domain.repositories import RewardRepository
from .event_store import EventStore


class RewardStore:
    def __init__(
        self,
        repository: RewardRepository,
        events: EventStore,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._events = events
        self._clock = clock

    def create(
        self,
        *,
        event_id: str,
        reward_type: RewardType | str,
        amount: float | None = None,
        description: str = "",
        requires_approval: bool = False,
        metadata: Dict[str, Any] | None = None,
    ) -> Reward:
        self._events.find_by_id(event_id)

        reward = Reward.create(
            event_id=event_id,
            reward_type=reward_type,
            amount=amount,
            description=description,
            requires_approval=requires_approval,
            metadata=metadata,
            now=self._clock(),
        )
        self._repository.save(reward)
        logger.info(
            "Reward created",
            extra={
                "reward_id": reward.id,
                "event_id": event_id,
                "reward_type": reward.type.value,
                "requires_approval": reward.requires_approval,
            },
        )
        return reward

    def find_by_id(self, reward_id: str) -> Reward:
        reward = self._repository.find_by_id(reward_id)
        if reward is None:
            raise RewardNotFoundError(reward_id)
        return reward

    def find_all(self) -> List[Reward]:
        return self._repository.find_all()

    def find_by_event_id(self, event_id: str) -> List[Reward]:
        self._events.find_by_id(event_id)
        return self._repository.find_by_event_id(event_id)

    def update(
        self,
        reward_id: str,
        *,
        reward_type: RewardType | str | None = None,
        amount: float | None = None,
        description: str | None = None,
        requires_approval: bool | None = None,
        metadata: Dict[str, Any] | None = None,
    ) -> Reward:
        reward = self.find_by_id(reward_id)
        reward.update(
            reward_type=reward_type,
            amount=amount,
            description=description,
            requires_approval=requires_approval,
            metadata=metadata,
            now=self._clock(),
        )
        self._repository.save(reward)
        logger.info("Reward updated", extra={"reward_id": reward_id})
        return reward

    def delete(self, reward_id: str) -> None:
        if not self._repository.delete(reward_id):
            raise RewardNotFoundError(reward_id)
        logger.info("Reward deleted", extra={"reward_id": reward_id})

"""
============================================================
TARJETA CRC — infrastructure/repositories/in_memory/claims.py
============================================================
Class: InMemoryRewardClaimRepository

Responsibilities:
  - Almacenar claims en memoria con los mismos índices únicos que Postgres:
      (user_id, event_id) y (user_id, reward_id)
  - Listados por usuario / evento / estado (request_date DESC).

Collaborators:
  - domain.entities.RewardClaim, ClaimStatus
  - domain.errors.DuplicateClaimError

Constraints / Notes:
  - El check de unicidad y la inserción ocurren bajo el mismo Lock
    (equivalente a la constraint UNIQUE de la DB).
============================================================
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, List, Optional

from ....domain.entities import ClaimStatus, RewardClaim
from ....domain.errors import DuplicateClaimError
from ....domain.repositories import RewardClaimRepository

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class InMemoryRewardClaimRepository(RewardClaimRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._claims: Dict[str, RewardClaim] = {}

    def _select(self, predicate: Callable[[RewardClaim], bool]) -> List[RewardClaim]:
        with self._lock:
            values = [copy.deepcopy(c) for c in self._claims.values() if predicate(c)]
        return sorted(
            values,
            key=lambda c: (-(c.request_date or _EPOCH).timestamp(), c.id),
        )

    def _assert_unique(self, claim: RewardClaim) -> None:
        # R: debe llamarse con self._lock tomado
        for other in self._claims.values():
            if other.id == claim.id or other.user_id != claim.user_id:
                continue
            if other.event_id == claim.event_id:
                raise DuplicateClaimError(
                    "User has already claimed a reward for this event",
                    details={"user_id": claim.user_id, "event_id": claim.event_id},
                )
            if other.reward_id == claim.reward_id:
                raise DuplicateClaimError(
                    "User has already claimed this reward",
                    details={"user_id": claim.user_id, "reward_id": claim.reward_id},
                )

    def find_by_id(self, claim_id: str) -> Optional[RewardClaim]:
        with self._lock:
            claim = self._claims.get(claim_id)
            return copy.deepcopy(claim) if claim is not None else None

    def find_all(self) -> List[RewardClaim]:
        return self._select(lambda c: True)

    def save(self, claim: RewardClaim) -> RewardClaim:
        with self._lock:
            self._assert_unique(claim)
            self._claims[claim.id] = copy.deepcopy(claim)
        return claim

    def delete(self, claim_id: str) -> bool:
        with self._lock:
            return self._claims.pop(claim_id, None) is not None

    def find_by_user_id(self, user_id: str) -> List[RewardClaim]:
        return self._select(lambda c: c.user_id == user_id)

    def find_by_event_id(self, event_id: str) -> List[RewardClaim]:
        return self._select(lambda c: c.event_id == event_id)

    def find_by_status(self, status: ClaimStatus) -> List[RewardClaim]:
        return self._select(lambda c: c.status is status)

    def find_by_user_and_event(self, user_id: str, event_id: str) -> List[RewardClaim]:
        return self._select(lambda c: c.user_id == user_id and c.event_id == event_id)

    def find_by_user_and_reward(self, user_id: str, reward_id: str) -> List[RewardClaim]:
        return self._select(
            lambda c: c.user_id == user_id and c.reward_id == reward_id
        )

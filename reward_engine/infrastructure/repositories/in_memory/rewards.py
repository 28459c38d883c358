"""
============================================================
TARJETA CRC — infrastructure/repositories/in_memory/rewards.py
============================================================
Class: InMemoryRewardRepository

Responsibilities:
  - CRUD de rewards en memoria, listados por evento.
  - Ordering: created_at ASC (mismo que Postgres).

Constraints / Notes:
  - Thread-safe (Lock) + copias defensivas.
============================================================
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional

from ....domain.entities import Reward
from ....domain.repositories import RewardRepository

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class InMemoryRewardRepository(RewardRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._rewards: Dict[str, Reward] = {}

    def _snapshot(self) -> List[Reward]:
        with self._lock:
            values = [copy.deepcopy(r) for r in self._rewards.values()]
        return sorted(values, key=lambda r: (r.created_at or _EPOCH, r.id))

    def find_by_id(self, reward_id: str) -> Optional[Reward]:
        with self._lock:
            reward = self._rewards.get(reward_id)
            return copy.deepcopy(reward) if reward is not None else None

    def find_all(self) -> List[Reward]:
        return self._snapshot()

    def find_by_event_id(self, event_id: str) -> List[Reward]:
        return [r for r in self._snapshot() if r.event_id == event_id]

    def save(self, reward: Reward) -> Reward:
        with self._lock:
            self._rewards[reward.id] = copy.deepcopy(reward)
        return reward

    def delete(self, reward_id: str) -> bool:
        with self._lock:
            return self._rewards.pop(reward_id, None) is not None

from .claims import InMemoryRewardClaimRepository
from .events import InMemoryEventRepository
from .rewards import InMemoryRewardRepository
from .user_events import InMemoryUserEventRepository

__all__ = [
    "InMemoryEventRepository",
    "InMemoryRewardRepository",
    "InMemoryRewardClaimRepository",
    "InMemoryUserEventRepository",
]

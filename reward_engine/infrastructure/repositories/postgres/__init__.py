from .claims import PostgresRewardClaimRepository
from .events import PostgresEventRepository
from .rewards import PostgresRewardRepository
from .user_events import PostgresUserEventRepository

__all__ = [
    "PostgresEventRepository",
    "PostgresRewardRepository",
    "PostgresRewardClaimRepository",
    "PostgresUserEventRepository",
]

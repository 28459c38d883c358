"""
Domain layer: entities, errors and ports of the reward engine.
"""

from .cache import CachePort
from .entities import (
    ClaimStatus,
    ConditionType,
    Event,
    EventStatus,
    Reward,
    RewardClaim,
    RewardType,
    UserEvent,
)
from .errors import (
    ClaimInProgressError,
    ClaimNotFoundError,
    ConflictError,
    DuplicateClaimError,
    DuplicateIdempotencyKeyError,
    EventConditionNotMetError,
    EventNotActiveError,
    EventNotFoundError,
    InvalidStatusTransitionError,
    NotFoundError,
    RewardEngineError,
    RewardNotFoundError,
    RewardNotLinkedError,
    ValidationError,
)
from .locks import LockHandle, LockManager, LockOptions
from .repositories import (
    EventFilter,
    EventRepository,
    RewardClaimRepository,
    RewardRepository,
    UserEventRepository,
)

__all__ = [
    # Entities
    "Event",
    "EventStatus",
    "ConditionType",
    "Reward",
    "RewardType",
    "RewardClaim",
    "ClaimStatus",
    "UserEvent",
    # Errors
    "RewardEngineError",
    "NotFoundError",
    "EventNotFoundError",
    "RewardNotFoundError",
    "ClaimNotFoundError",
    "ValidationError",
    "EventNotActiveError",
    "RewardNotLinkedError",
    "InvalidStatusTransitionError",
    "ConflictError",
    "DuplicateClaimError",
    "ClaimInProgressError",
    "DuplicateIdempotencyKeyError",
    "EventConditionNotMetError",
    # Ports
    "CachePort",
    "LockManager",
    "LockOptions",
    "LockHandle",
    "EventFilter",
    "EventRepository",
    "RewardRepository",
    "RewardClaimRepository",
    "UserEventRepository",
]

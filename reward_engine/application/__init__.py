from .claim_processor import ClaimProcessor, claim_lock_key
from .condition_evaluator import (
    ConditionEvaluator,
    ConditionValidationResult,
    CustomConditionHandler,
    LoginConditionHandler,
)
from .event_store import EventStore, active_events_cache_key, event_cache_key
from .facade import RewardEngineFacade
from .reward_store import RewardStore
from .user_event_ledger import UserEventLedger

__all__ = [
    "ClaimProcessor",
    "claim_lock_key",
    "ConditionEvaluator",
    "ConditionValidationResult",
    "CustomConditionHandler",
    "LoginConditionHandler",
    "EventStore",
    "event_cache_key",
    "active_events_cache_key",
    "RewardEngineFacade",
    "RewardStore",
    "UserEventLedger",
]

"""
Name: Pytest Configuration and Shared Fixtures

Responsibilities:
  - Provide reusable test fixtures (clock, in-memory engine, sample entities)
  - Configure test environment (no .env, APP_ENV=test)
  - Register custom markers

Collaborators:
  - pytest: Test framework
  - reward_engine.application: components wired with in-memory infrastructure

Notes:
  - Fixtures are auto-discovered by pytest
  - Every component receives the same FrozenClock, so time only moves when
    a test calls clock.advance()
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from reward_engine.crosscutting import config as app_config  # noqa: E402

app_config.Settings.model_config["env_file"] = None

from reward_engine.application import (  # noqa: E402
    ClaimProcessor,
    ConditionEvaluator,
    EventStore,
    RewardEngineFacade,
    RewardStore,
    UserEventLedger,
)
from reward_engine.domain.locks import LockOptions  # noqa: E402
from reward_engine.infrastructure.cache import InMemoryCacheBackend  # noqa: E402
from reward_engine.infrastructure.locks import InMemoryLockManager  # noqa: E402
from reward_engine.infrastructure.repositories.in_memory import (  # noqa: E402
    InMemoryEventRepository,
    InMemoryRewardClaimRepository,
    InMemoryRewardRepository,
    InMemoryUserEventRepository,
)

os.environ.setdefault("APP_ENV", "test")

BASE_NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (require PostgreSQL)"
    )


class FrozenClock:
    """Reloj controlable: callable que devuelve siempre el mismo instante."""

    def __init__(self, now: datetime = BASE_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


# ============================================================================
# Clock / Engine Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    """R: Frozen clock shared by every component of the engine."""
    return FrozenClock()


@pytest.fixture
def engine(clock: FrozenClock) -> SimpleNamespace:
    """R: Engine components wired with in-memory infrastructure."""
    event_repo = InMemoryEventRepository()
    reward_repo = InMemoryRewardRepository()
    claim_repo = InMemoryRewardClaimRepository()
    user_event_repo = InMemoryUserEventRepository()
    cache = InMemoryCacheBackend()
    lock_options = LockOptions(lock_ttl_seconds=5.0, retry_count=0, retry_delay_seconds=0)
    lock_manager = InMemoryLockManager(default_options=lock_options, sleep=lambda _s: None)

    events = EventStore(event_repo, cache, clock=clock)
    ledger = UserEventLedger(user_event_repo, clock=clock)
    rewards = RewardStore(reward_repo, events, clock=clock)
    evaluator = ConditionEvaluator(ledger, events, clock=clock)
    claims = ClaimProcessor(
        claim_repo,
        events,
        rewards,
        evaluator,
        lock_manager=lock_manager,
        lock_options=lock_options,
        clock=clock,
    )
    facade = RewardEngineFacade(
        events=events,
        rewards=rewards,
        ledger=ledger,
        evaluator=evaluator,
        claims=claims,
    )

    return SimpleNamespace(
        clock=clock,
        event_repo=event_repo,
        reward_repo=reward_repo,
        claim_repo=claim_repo,
        user_event_repo=user_event_repo,
        cache=cache,
        lock_manager=lock_manager,
        lock_options=lock_options,
        events=events,
        ledger=ledger,
        rewards=rewards,
        evaluator=evaluator,
        claims=claims,
        facade=facade,
    )


@pytest.fixture
def facade(engine: SimpleNamespace) -> RewardEngineFacade:
    return engine.facade


# ============================================================================
# Domain Entity Fixtures
# ============================================================================


@pytest.fixture
def login_event(engine: SimpleNamespace):
    """R: ACTIVE login event (3 logins) covering BASE_NOW ± 10 days."""
    event = engine.events.create(
        name="Login streak",
        description="Log in three times",
        condition_type="login",
        condition_params={"required_count": 3},
        start_date=BASE_NOW - timedelta(days=10),
        end_date=BASE_NOW + timedelta(days=10),
    )
    return engine.events.change_status(event.id, "active")


@pytest.fixture
def custom_event(engine: SimpleNamespace):
    """R: ACTIVE custom event that requires a 'register' action."""
    event = engine.events.create(
        name="Welcome",
        description="Register an account",
        condition_type="custom",
        condition_params={"eventCode": "register"},
        start_date=BASE_NOW - timedelta(days=1),
        end_date=BASE_NOW + timedelta(days=1),
    )
    return engine.events.change_status(event.id, "active")


@pytest.fixture
def point_reward(engine: SimpleNamespace, login_event):
    """R: Auto-approved 100 point reward linked to login_event."""
    return engine.rewards.create(
        event_id=login_event.id, reward_type="point", amount=100, description="100 pts"
    )


@pytest.fixture
def approval_reward(engine: SimpleNamespace, login_event):
    """R: Item reward that requires manual approval."""
    return engine.rewards.create(
        event_id=login_event.id,
        reward_type="item",
        description="Limited badge",
        requires_approval=True,
    )


@pytest.fixture
def record_logins(engine: SimpleNamespace):
    """R: Helper that appends N login entries to the ledger for a user."""

    def _record(user_id: str, count: int) -> None:
        for _ in range(count):
            engine.ledger.record(user_id, "login", "user-login")

    return _record

"""
===============================================================================
TARJETA CRC — reward_engine/container.py (Composition Root / DI manual)
===============================================================================

Responsabilidades:
  - Componer el motor (repositorios, cache, locks, componentes de aplicación)
    a partir de un Settings explícito.
  - Elegir backends según configuración:
        storage_backend: memory | postgres
        cache_backend:   memory | redis
        lock_backend:    memory | redis
  - Exponer get_reward_engine() como singleton lazy (lru_cache) para la capa
    de transporte.

Colaboradores:
  - crosscutting.config.Settings / get_settings
  - infrastructure.* (implementaciones)
  - application.* (componentes)

Notas:
  - Este archivo NO contiene lógica de negocio.
  - Los componentes nunca leen Settings; reciben valores por constructor.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from redis import Redis

from .application import (
    ClaimProcessor,
    ConditionEvaluator,
    EventStore,
    RewardEngineFacade,
    RewardStore,
    UserEventLedger,
)
from .crosscutting.config import Settings, get_settings
from .crosscutting.logger import logger
from .domain.cache import CachePort
from .domain.locks import LockOptions
from .infrastructure.cache import InMemoryCacheBackend, RedisCacheBackend
from .infrastructure.db.pool import close_pool, init_pool
from .infrastructure.locks import InMemoryLockManager, RedisLockManager
from .infrastructure.repositories.in_memory import (
    InMemoryEventRepository,
    InMemoryRewardClaimRepository,
    InMemoryRewardRepository,
    InMemoryUserEventRepository,
)
from .infrastructure.repositories.postgres import (
    PostgresEventRepository,
    PostgresRewardClaimRepository,
    PostgresRewardRepository,
    PostgresUserEventRepository,
)


@dataclass
class RewardEngine:
    """Motor armado + recursos que hay que cerrar al apagar."""

    facade: RewardEngineFacade
    lock_manager: InMemoryLockManager | RedisLockManager
    cache: CachePort
    redis_client: Optional[Redis] = None
    owns_redis_client: bool = False
    owns_pool: bool = False

    def close(self) -> None:
        self.lock_manager.close()
        # R: un cliente inyectado lo cierra quien lo creó
        if self.redis_client is not None and self.owns_redis_client:
            self.redis_client.close()
        if self.owns_pool:
            close_pool()


def lock_options_from_settings(settings: Settings) -> LockOptions:
    return LockOptions(
        lock_ttl_seconds=settings.lock_ttl_seconds,
        retry_count=settings.lock_retry_count,
        retry_delay_seconds=settings.lock_retry_delay_seconds,
    )


def _repositories(settings: Settings):
    if settings.storage_backend == "postgres":
        return (
            PostgresEventRepository(),
            PostgresRewardRepository(),
            PostgresRewardClaimRepository(),
            PostgresUserEventRepository(),
        )
    return (
        InMemoryEventRepository(),
        InMemoryRewardRepository(),
        InMemoryRewardClaimRepository(),
        InMemoryUserEventRepository(),
    )


def build_reward_engine(
    settings: Settings,
    *,
    redis_client: Optional[Redis] = None,
) -> RewardEngine:
    """
    Arma el motor completo.

    redis_client es inyectable; si hace falta y no se pasa, se crea desde
    settings.redis_url y el motor queda como dueño (lo cierra en close()).
    """
    uses_redis = "redis" in {settings.cache_backend, settings.lock_backend}
    owns_redis_client = False
    if uses_redis and redis_client is None:
        redis_client = Redis.from_url(settings.redis_url, decode_responses=True)
        owns_redis_client = True

    owns_pool = False
    if settings.storage_backend == "postgres":
        init_pool(
            settings.database_url,
            settings.db_pool_min_size,
            settings.db_pool_max_size,
            statement_timeout_ms=settings.db_statement_timeout_ms,
        )
        owns_pool = True

    event_repo, reward_repo, claim_repo, user_event_repo = _repositories(settings)

    cache: CachePort
    if settings.cache_backend == "redis":
        cache = RedisCacheBackend(redis_client, key_prefix=settings.redis_key_prefix)
    else:
        cache = InMemoryCacheBackend()

    lock_options = lock_options_from_settings(settings)
    if settings.lock_backend == "redis":
        lock_manager = RedisLockManager(redis_client, default_options=lock_options)
    else:
        lock_manager = InMemoryLockManager(
            default_options=lock_options,
            sweep_interval_seconds=settings.lock_sweep_interval_seconds,
        )
        lock_manager.start()

    events = EventStore(
        event_repo, cache, cache_ttl_seconds=settings.event_cache_ttl_seconds
    )
    ledger = UserEventLedger(user_event_repo)
    rewards = RewardStore(reward_repo, events)
    evaluator = ConditionEvaluator(ledger, events)
    claims = ClaimProcessor(
        claim_repo,
        events,
        rewards,
        evaluator,
        lock_manager=lock_manager if settings.claim_lock_enabled else None,
        lock_options=lock_options,
    )

    facade = RewardEngineFacade(
        events=events,
        rewards=rewards,
        ledger=ledger,
        evaluator=evaluator,
        claims=claims,
        auto_complete_on_approve=settings.auto_complete_on_approve,
    )

    logger.info(
        "Reward engine built",
        extra={
            "storage_backend": settings.storage_backend,
            "cache_backend": settings.cache_backend,
            "lock_backend": settings.lock_backend,
            "claim_lock_enabled": settings.claim_lock_enabled,
        },
    )
    return RewardEngine(
        facade=facade,
        lock_manager=lock_manager,
        cache=cache,
        redis_client=redis_client if uses_redis else None,
        owns_redis_client=owns_redis_client,
        owns_pool=owns_pool,
    )


@lru_cache(maxsize=1)
def get_reward_engine() -> RewardEngine:
    """Singleton del motor construido desde get_settings()."""
    return build_reward_engine(get_settings())


def get_reward_engine_facade() -> RewardEngineFacade:
    return get_reward_engine().facade


def shutdown_reward_engine() -> None:
    """Cierra recursos del singleton (idempotente)."""
    if get_reward_engine.cache_info().currsize:
        get_reward_engine().close()
        get_reward_engine.cache_clear()

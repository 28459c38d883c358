"""
Name: Reward Engine Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide defaults that match the engine's documented behavior

Collaborators:
  - container.py: reads settings to pick backends and tune components
  - crosscutting/logger.py: reads log level / format

Constraints:
  - Lives in crosscutting, NOT in domain/application
  - No business logic — pure configuration
  - Components never call get_settings(); they receive explicit values

Notes:
  - Uses pydantic-settings for env parsing and validation
  - Singleton via lru_cache for performance
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKENDS_STORAGE = {"memory", "postgres"}
_BACKENDS_SHARED = {"memory", "redis"}


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    Attributes:
        app_env: Application environment (development/test/production)
        log_level: Root level for the engine logger (default: INFO)
        log_json: Emit JSON log lines (default: True)
        storage_backend: memory | postgres
        database_url: PostgreSQL connection string (postgres backend)
        db_pool_min_size / db_pool_max_size: psycopg pool bounds
        db_statement_timeout_ms: statement_timeout applied per connection
        cache_backend: memory | redis
        lock_backend: memory | redis
        redis_url: Redis connection string (redis backends)
        redis_key_prefix: namespace for cache keys in Redis
        event_cache_ttl_seconds: TTL of cached events (default: 300)
        lock_ttl_seconds / lock_retry_count / lock_retry_delay_seconds: lock defaults
        lock_sweep_interval_seconds: in-memory lock sweeper period
        claim_lock_enabled: serialize create_claim per (user, event)
        auto_complete_on_approve: approve_claim also pays out the claim
    """

    app_env: str = "development"
    log_level: str = "INFO"
    log_json: bool = True

    # Storage
    storage_backend: str = "memory"
    database_url: str = ""
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10
    db_statement_timeout_ms: int = 30_000

    # Shared infrastructure (cache / locks)
    cache_backend: str = "memory"
    lock_backend: str = "memory"
    redis_url: str = ""
    redis_key_prefix: str = "reward-engine:"

    # Event cache
    event_cache_ttl_seconds: int = 300

    # Locks
    lock_ttl_seconds: float = 30.0
    lock_retry_count: int = 3
    lock_retry_delay_seconds: float = 0.2
    lock_sweep_interval_seconds: float = 1.0

    # Claims
    claim_lock_enabled: bool = True
    auto_complete_on_approve: bool = True

    @field_validator("storage_backend")
    @classmethod
    def storage_backend_valid(cls, v: str) -> str:
        backend = (v or "memory").strip().lower()
        if backend not in _BACKENDS_STORAGE:
            raise ValueError("storage_backend must be memory or postgres")
        return backend

    @field_validator("cache_backend", "lock_backend")
    @classmethod
    def shared_backend_valid(cls, v: str) -> str:
        backend = (v or "memory").strip().lower()
        if backend not in _BACKENDS_SHARED:
            raise ValueError("cache_backend and lock_backend must be memory or redis")
        return backend

    @field_validator("event_cache_ttl_seconds")
    @classmethod
    def cache_ttl_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("event_cache_ttl_seconds must be greater than 0")
        return v

    @field_validator("lock_ttl_seconds", "lock_sweep_interval_seconds")
    @classmethod
    def lock_durations_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("lock durations must be greater than 0")
        return v

    @field_validator("lock_retry_count")
    @classmethod
    def lock_retry_count_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("lock_retry_count must be >= 0")
        return v

    @field_validator("lock_retry_delay_seconds")
    @classmethod
    def lock_retry_delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("lock_retry_delay_seconds must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_backend_requirements(self):
        if self.storage_backend == "postgres" and not self.database_url.strip():
            raise ValueError("DATABASE_URL is required when STORAGE_BACKEND=postgres")

        uses_redis = "redis" in {self.cache_backend, self.lock_backend}
        if uses_redis and not self.redis_url.strip():
            raise ValueError(
                "REDIS_URL is required when CACHE_BACKEND or LOCK_BACKEND is redis"
            )
        return self

    @model_validator(mode="after")
    def validate_pool_bounds(self):
        if self.db_pool_min_size < 0 or self.db_pool_max_size < 1:
            raise ValueError("db pool sizes must be min >= 0 and max >= 1")
        if self.db_pool_min_size > self.db_pool_max_size:
            raise ValueError(
                f"db_pool_min_size ({self.db_pool_min_size}) must be <= "
                f"db_pool_max_size ({self.db_pool_max_size})"
            )
        return self

    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get singleton Settings instance.

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()

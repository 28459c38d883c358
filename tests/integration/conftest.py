"""
Name: Integration Test DB Setup

Responsibilities:
  - Run Alembic migrations once per test session
  - Own the psycopg pool lifecycle and clean tables between tests

Notes:
  - Only runs when RUN_INTEGRATION=1
  - Uses DATABASE_URL from environment (see alembic/env.py)
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from reward_engine.infrastructure.db.pool import close_pool, get_pool, init_pool

DB_USER = os.getenv("POSTGRES_USER", "postgres")
DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
DB_HOST = os.getenv("POSTGRES_HOST", "localhost")
DB_PORT = os.getenv("POSTGRES_HOST_PORT", "5432")
DB_NAME = os.getenv("POSTGRES_DB", "rewards")
DEFAULT_DATABASE_URL = (
    f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)
ROOT_DIR = Path(__file__).resolve().parents[2]

RUN_INTEGRATION = os.getenv("RUN_INTEGRATION") == "1"

if RUN_INTEGRATION:
    os.environ.setdefault("DATABASE_URL", DEFAULT_DATABASE_URL)


@pytest.fixture(scope="session", autouse=True)
def apply_migrations() -> None:
    """Run Alembic migrations for integration tests."""
    if not RUN_INTEGRATION:
        return

    config = Config(str(ROOT_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(ROOT_DIR / "alembic"))
    command.upgrade(config, "head")


@pytest.fixture(scope="session", autouse=True)
def init_db_pool(apply_migrations):
    if not RUN_INTEGRATION:
        yield
        return

    init_pool(database_url=os.environ["DATABASE_URL"], min_size=1, max_size=4)
    yield
    close_pool()


@pytest.fixture(autouse=True)
def clean_tables(init_db_pool):
    yield
    if not RUN_INTEGRATION:
        return
    with get_pool().connection() as conn:
        conn.execute("TRUNCATE reward_claims, rewards, user_events, events CASCADE")

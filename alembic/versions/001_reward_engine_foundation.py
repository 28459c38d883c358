"""Reward engine foundation: events, rewards, reward_claims, user_events.

Revision ID: 001_reward_engine_foundation
Revises:
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001_reward_engine_foundation"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def _jsonb_column(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.JSONB(astext_type=sa.Text()),
        nullable=False,
        server_default=sa.text("'{}'::jsonb"),
    )


def _timestamp_column(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("condition_type", sa.Text, nullable=False),
        _jsonb_column("condition_params"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status", sa.Text, nullable=False, server_default=sa.text("'inactive'")
        ),
        _jsonb_column("metadata"),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.CheckConstraint("start_date <= end_date", name="ck_events_period"),
        sa.CheckConstraint(
            "status IN ('inactive', 'active', 'expired')", name="ck_events_status"
        ),
    )
    op.create_index(
        "ix_events_status_period", "events", ["status", "start_date", "end_date"]
    )

    op.create_table(
        "rewards",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column(
            "event_id",
            sa.Text,
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.Text, nullable=False),
        sa.Column("amount", sa.Numeric, nullable=False, server_default=sa.text("1")),
        sa.Column("description", sa.Text, nullable=False, server_default=sa.text("''")),
        sa.Column(
            "requires_approval",
            sa.Boolean,
            nullable=False,
            server_default=sa.text("false"),
        ),
        _jsonb_column("metadata"),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.CheckConstraint("amount > 0", name="ck_rewards_amount_positive"),
    )
    op.create_index("ix_rewards_event_id", "rewards", ["event_id"])

    op.create_table(
        "reward_claims",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("event_id", sa.Text, nullable=False),
        sa.Column("reward_id", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column(
            "request_date",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("process_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approver_id", sa.Text, nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        _jsonb_column("metadata"),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.UniqueConstraint("user_id", "event_id", name="uq_reward_claims_user_event"),
        sa.UniqueConstraint("user_id", "reward_id", name="uq_reward_claims_user_reward"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'completed')",
            name="ck_reward_claims_status",
        ),
    )
    op.create_index("ix_reward_claims_event_id", "reward_claims", ["event_id"])
    op.create_index("ix_reward_claims_status", "reward_claims", ["status"])

    op.create_table(
        "user_events",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("event_type", sa.Text, nullable=False),
        sa.Column("event_key", sa.Text, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        _jsonb_column("metadata"),
        sa.Column("idempotency_key", sa.Text, nullable=True),
        _timestamp_column("created_at"),
    )
    op.create_index(
        "ix_user_events_user_type_occurred",
        "user_events",
        ["user_id", "event_type", "occurred_at"],
    )
    op.create_index(
        "uq_user_events_idempotency_key",
        "user_events",
        ["idempotency_key"],
        unique=True,
        postgresql_where=sa.text("idempotency_key IS NOT NULL"),
    )


def downgrade() -> None:
    op.drop_index("uq_user_events_idempotency_key", table_name="user_events")
    op.drop_index("ix_user_events_user_type_occurred", table_name="user_events")
    op.drop_table("user_events")

    op.drop_index("ix_reward_claims_status", table_name="reward_claims")
    op.drop_index("ix_reward_claims_event_id", table_name="reward_claims")
    op.drop_table("reward_claims")

    op.drop_index("ix_rewards_event_id", table_name="rewards")
    op.drop_table("rewards")

    op.drop_index("ix_events_status_period", table_name="events")
    op.drop_table("events")

"""Initial schema: health_samples, goals, notifications, raw_relay_responses

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamp_column(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def upgrade() -> None:
    # gen_random_uuid()
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "health_samples",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("metric_type", sa.String(32), nullable=False),
        sa.Column("sample_date", sa.Date, nullable=False),
        sa.Column("time_of_day", sa.Time, nullable=True),
        sa.Column("value", sa.Float, nullable=False),
        sa.Column("quality", sa.String(32), nullable=True),
        sa.Column("source", sa.String(32), nullable=False, server_default="manual"),
        sa.Column("fingerprint", sa.Text, nullable=True),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.UniqueConstraint("fingerprint", name="uq_health_samples_fingerprint"),
        sa.CheckConstraint("value >= 0", name="chk_health_samples_value"),
    )
    op.create_index(
        "idx_health_samples_user_metric_date",
        "health_samples",
        ["user_id", "metric_type", sa.text("sample_date DESC")],
    )

    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = now();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trg_health_samples_updated_at
            BEFORE UPDATE ON health_samples
            FOR EACH ROW
            EXECUTE FUNCTION update_updated_at_column();
    """)

    op.create_table(
        "goals",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("goal_type", sa.String(32), nullable=False),
        sa.Column("target_value", sa.Float, nullable=False),
        sa.Column("current_value", sa.Float, nullable=False, server_default="0"),
        sa.Column("time_frame", sa.String(16), nullable=False, server_default="daily"),
        sa.Column("is_completed", sa.Boolean, nullable=False, server_default=sa.text("FALSE")),
        sa.Column("icon", sa.String(16), nullable=False, server_default="🎯"),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.UniqueConstraint("user_id", "goal_type", name="uq_goals_user_type"),
        sa.CheckConstraint("target_value > 0", name="chk_goals_target_positive"),
        sa.CheckConstraint("current_value >= 0", name="chk_goals_current_non_negative"),
    )
    op.execute("""
        CREATE TRIGGER trg_goals_updated_at
            BEFORE UPDATE ON goals
            FOR EACH ROW
            EXECUTE FUNCTION update_updated_at_column();
    """)

    op.create_table(
        "notifications",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("notification_type", sa.String(32), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.text("FALSE")),
    )
    op.create_index(
        "idx_notifications_user_ts", "notifications", ["user_id", sa.text("timestamp DESC")]
    )

    op.create_table(
        "raw_relay_responses",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("metric_type", sa.String(32), nullable=False),
        sa.Column("response_body", postgresql.JSONB, nullable=False),
        sa.Column("http_status", sa.Integer, nullable=False),
        _timestamp_column("fetched_at"),
        sa.Column("batch_id", postgresql.UUID(as_uuid=True), nullable=True),
    )
    op.create_index(
        "idx_raw_relay_user_fetched",
        "raw_relay_responses",
        ["user_id", sa.text("fetched_at DESC")],
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_goals_updated_at ON goals")
    op.execute("DROP TRIGGER IF EXISTS trg_health_samples_updated_at ON health_samples")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column")
    op.drop_table("raw_relay_responses")
    op.drop_table("notifications")
    op.drop_table("goals")
    op.drop_table("health_samples")

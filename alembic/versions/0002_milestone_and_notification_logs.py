"""Add append-only milestone and notification delivery logs."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0002_milestone_and_notification_logs"
down_revision = "0001_clinic_core_schema"
branch_labels = None
depends_on = None

sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    """Create milestone_logs (unique per type/value) and notification_logs."""

    op.create_table(
        "milestone_logs",
        sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column(
            "reached_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint(
            "type IN ('users', 'suburbs', 'cities')",
            name="ck_milestone_logs_type",
        ),
        sa.UniqueConstraint("type", "value", name="uq_milestone_logs_type_value"),
    )
    op.create_index(
        "ix_milestone_logs_reached_at",
        "milestone_logs",
        ["reached_at"],
        unique=False,
    )

    op.create_table(
        "notification_logs",
        sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
        sa.Column("recipient", sa.Text(), nullable=False),
        sa.Column("channel", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column(
            "sent_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint(
            "channel IN ('email', 'sms')",
            name="ck_notification_logs_channel",
        ),
        sa.CheckConstraint(
            "status IN ('sent', 'failed')",
            name="ck_notification_logs_status",
        ),
    )
    op.create_index(
        "ix_notification_logs_sent_at",
        "notification_logs",
        ["sent_at"],
        unique=False,
    )
    op.create_index(
        "ix_notification_logs_recipient_sent_at",
        "notification_logs",
        ["recipient", "sent_at"],
        unique=False,
    )


def downgrade() -> None:
    """Drop milestone and notification logs."""

    op.drop_index("ix_notification_logs_recipient_sent_at", table_name="notification_logs")
    op.drop_index("ix_notification_logs_sent_at", table_name="notification_logs")
    op.drop_table("notification_logs")
    op.drop_index("ix_milestone_logs_reached_at", table_name="milestone_logs")
    op.drop_table("milestone_logs")

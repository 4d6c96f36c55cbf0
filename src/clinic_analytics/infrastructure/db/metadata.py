"""SQLAlchemy metadata definitions for clinic analytics tables."""

from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()
sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

users = sa.Table(
    "users",
    metadata,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("username", sa.Text(), nullable=False),
    sa.Column("email", sa.Text(), nullable=True),
    sa.Column("phone", sa.Text(), nullable=True),
    sa.Column("role", sa.Text(), nullable=False),
    sa.Column("suburb", sa.Text(), nullable=True),
    sa.Column("city", sa.Text(), nullable=True),
    sa.Column(
        "notify_method",
        sa.Text(),
        nullable=False,
        server_default=sa.text("'email'"),
    ),
    sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.CheckConstraint(
        "role IN ('admin', 'doctor', 'dentist', 'nurse', 'patient')",
        name="ck_users_role",
    ),
    sa.CheckConstraint("notify_method IN ('email', 'sms')", name="ck_users_notify_method"),
    sa.UniqueConstraint("username", name="uq_users_username"),
)

sa.Index("ix_users_role_created_at", users.c.role, users.c.created_at)

auth_tokens = sa.Table(
    "auth_tokens",
    metadata,
    sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
    sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("token_hash", sa.Text(), nullable=False),
    sa.Column(
        "issued_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    sa.UniqueConstraint("token_hash", name="uq_auth_tokens_token_hash"),
)

appointments = sa.Table(
    "appointments",
    metadata,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("patient_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("staff_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
    sa.Column("procedure_type", sa.Text(), nullable=False),
    sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
    sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
)

sa.Index("ix_appointments_created_at", appointments.c.created_at)
sa.Index("ix_appointments_staff_id", appointments.c.staff_id)

services = sa.Table(
    "services",
    metadata,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("role", sa.Text(), nullable=False),
    sa.Column("price", sa.Numeric(10, 2), nullable=False),
)

appointment_services = sa.Table(
    "appointment_services",
    metadata,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column(
        "appointment_id",
        sa.Integer(),
        sa.ForeignKey("appointments.id"),
        nullable=False,
    ),
    sa.Column("service_id", sa.Integer(), sa.ForeignKey("services.id"), nullable=False),
)

sa.Index("ix_appointment_services_appointment_id", appointment_services.c.appointment_id)

payments = sa.Table(
    "payments",
    metadata,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column(
        "appointment_id",
        sa.Integer(),
        sa.ForeignKey("appointments.id"),
        nullable=False,
    ),
    sa.Column("method", sa.Text(), nullable=False),
    sa.Column("amount", sa.Numeric(10, 2), nullable=False),
    sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
)

sa.Index("ix_payments_status_created_at", payments.c.status, payments.c.created_at)

milestone_logs = sa.Table(
    "milestone_logs",
    metadata,
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

sa.Index("ix_milestone_logs_reached_at", milestone_logs.c.reached_at)

notification_logs = sa.Table(
    "notification_logs",
    metadata,
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
    sa.CheckConstraint("channel IN ('email', 'sms')", name="ck_notification_logs_channel"),
    sa.CheckConstraint("status IN ('sent', 'failed')", name="ck_notification_logs_status"),
)

sa.Index("ix_notification_logs_sent_at", notification_logs.c.sent_at)
sa.Index(
    "ix_notification_logs_recipient_sent_at",
    notification_logs.c.recipient,
    notification_logs.c.sent_at,
)

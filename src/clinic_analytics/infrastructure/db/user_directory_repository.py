"""SQLAlchemy adapter for principal lookup and report-recipient resolution."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_analytics.application.ports.notification_channel_port import (
    NotificationChannel,
    Recipient,
)
from clinic_analytics.application.ports.principal_repository_port import (
    Principal,
    PrincipalRepositoryPort,
)
from clinic_analytics.application.ports.report_recipient_repository_port import (
    ReportRecipientRepositoryPort,
)
from clinic_analytics.domain.auth.roles import Role
from clinic_analytics.infrastructure.db.metadata import auth_tokens, users

logger = logging.getLogger(__name__)


class SqlAlchemyUserDirectoryRepository(PrincipalRepositoryPort, ReportRecipientRepositoryPort):
    """Read-only user queries backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_active_by_token_hash(self, *, token_hash: str) -> Principal | None:
        """Return the active user owning a live token hash, or None."""

        now = datetime.now(tz=UTC)
        statement = (
            sa.select(users.c.id, users.c.username, users.c.role)
            .select_from(auth_tokens.join(users, auth_tokens.c.user_id == users.c.id))
            .where(
                auth_tokens.c.token_hash == token_hash,
                auth_tokens.c.revoked_at.is_(None),
                auth_tokens.c.expires_at > now,
                users.c.is_active.is_(True),
            )
            .limit(1)
        )

        async with self._session_factory() as session:
            row = (await session.execute(statement)).mappings().first()

        if row is None:
            return None
        return Principal(
            user_id=int(row["id"]),
            username=str(row["username"]),
            role=Role(str(row["role"])),
        )

    async def list_report_recipients(self, *, roles: frozenset[Role]) -> list[Recipient]:
        """Return active users in `roles` reachable through their preferred channel."""

        statement = (
            sa.select(users.c.username, users.c.email, users.c.phone, users.c.notify_method)
            .where(
                users.c.role.in_(sorted(role.value for role in roles)),
                users.c.is_active.is_(True),
            )
            .order_by(users.c.id)
        )

        async with self._session_factory() as session:
            rows = (await session.execute(statement)).mappings().all()

        recipients: list[Recipient] = []
        for row in rows:
            channel = NotificationChannel(str(row["notify_method"]))
            address = row["phone"] if channel is NotificationChannel.SMS else row["email"]
            if not address:
                logger.warning(
                    "report_recipient_skipped username=%s channel=%s reason=missing_address",
                    row["username"],
                    channel.value,
                )
                continue
            recipients.append(Recipient(channel=channel, address=str(address)))
        return recipients

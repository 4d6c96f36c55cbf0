"""SQLAlchemy adapter for the append-only notification delivery log."""

from __future__ import annotations

from typing import Any

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_analytics.application.ports.notification_channel_port import NotificationChannel
from clinic_analytics.application.ports.notification_log_repository_port import (
    NotificationLogCreateInput,
    NotificationLogFilter,
    NotificationLogPage,
    NotificationLogRecord,
    NotificationLogRepositoryPort,
)
from clinic_analytics.infrastructure.db.metadata import notification_logs


class SqlAlchemyNotificationLogRepository(NotificationLogRepositoryPort):
    """Notification log repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, payload: NotificationLogCreateInput) -> int:
        """Insert one delivery attempt row and return its numeric id."""

        statement = sa.insert(notification_logs).values(
            recipient=payload.recipient,
            channel=payload.channel.value,
            message=payload.message,
            status=payload.status,
            detail=payload.detail,
            type=payload.log_type,
        ).returning(notification_logs.c.id)

        async with self._session_factory() as session:
            result = await session.execute(statement)
            await session.commit()

        inserted_id = result.scalar_one()
        return int(inserted_id)

    async def list_logs(self, filters: NotificationLogFilter) -> NotificationLogPage:
        """Return one filtered page ordered by send time, newest first."""

        conditions = _filter_conditions(filters)
        offset = (filters.page - 1) * filters.limit
        rows_statement = (
            sa.select(*notification_logs.c)
            .where(*conditions)
            .order_by(notification_logs.c.sent_at.desc(), notification_logs.c.id.desc())
            .limit(filters.limit)
            .offset(offset)
        )
        count_statement = (
            sa.select(sa.func.count()).select_from(notification_logs).where(*conditions)
        )

        async with self._session_factory() as session:
            total = int((await session.execute(count_statement)).scalar_one())
            rows = (await session.execute(rows_statement)).mappings().all()

        return NotificationLogPage(
            items=[_to_notification_log_record(row) for row in rows],
            page=filters.page,
            limit=filters.limit,
            total=total,
        )


def _filter_conditions(filters: NotificationLogFilter) -> list[Any]:
    conditions: list[Any] = []
    if filters.recipient:
        conditions.append(notification_logs.c.recipient == filters.recipient)
    if filters.start is not None:
        conditions.append(notification_logs.c.sent_at >= filters.start)
    if filters.end is not None:
        conditions.append(notification_logs.c.sent_at <= filters.end)
    if filters.search:
        conditions.append(notification_logs.c.message.ilike(f"%{filters.search}%"))
    if filters.status is not None:
        conditions.append(notification_logs.c.status == filters.status)
    if filters.channel is not None:
        conditions.append(notification_logs.c.channel == filters.channel.value)
    return conditions


def _to_notification_log_record(row: sa.RowMapping) -> NotificationLogRecord:
    return NotificationLogRecord(
        id=int(row["id"]),
        recipient=str(row["recipient"]),
        channel=NotificationChannel(str(row["channel"])),
        message=str(row["message"]),
        status=row["status"],
        detail=row["detail"],
        log_type=str(row["type"]),
        sent_at=row["sent_at"],
    )

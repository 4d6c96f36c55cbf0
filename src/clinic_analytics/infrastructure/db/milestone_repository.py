"""SQLAlchemy adapter for append-only milestone records."""

from __future__ import annotations

import logging
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_analytics.application.ports.milestone_repository_port import (
    MilestoneRecord,
    MilestoneRepositoryPort,
)
from clinic_analytics.domain.milestones import MilestoneMetric
from clinic_analytics.infrastructure.db.metadata import milestone_logs

logger = logging.getLogger(__name__)


def _is_duplicate_milestone_error(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return (
        "milestone_logs.type, milestone_logs.value" in message
        or "uq_milestone_logs_type_value" in message
    )


class SqlAlchemyMilestoneRepository(MilestoneRepositoryPort):
    """Milestone repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record_if_absent(
        self,
        *,
        metric: MilestoneMetric,
        threshold: int,
        reached_at: datetime,
    ) -> MilestoneRecord | None:
        """Insert one milestone unless it exists; a concurrent duplicate insert is a no-op."""

        existing_statement = sa.select(milestone_logs.c.id).where(
            milestone_logs.c.type == metric.value,
            milestone_logs.c.value == threshold,
        )
        insert_statement = (
            sa.insert(milestone_logs)
            .values(type=metric.value, value=threshold, reached_at=reached_at)
            .returning(*milestone_logs.c)
        )

        async with self._session_factory() as session:
            existing = (await session.execute(existing_statement)).first()
            if existing is not None:
                return None
            try:
                result = await session.execute(insert_statement)
                row = result.mappings().one()
                await session.commit()
            except IntegrityError as error:
                await session.rollback()
                if _is_duplicate_milestone_error(error):
                    logger.info(
                        "milestone_duplicate_ignored metric=%s threshold=%s",
                        metric.value,
                        threshold,
                    )
                    return None
                raise

        return _to_milestone_record(row)

    async def list_recent(self, *, limit: int) -> list[MilestoneRecord]:
        """Return milestones ordered by reach time, newest first."""

        statement = (
            sa.select(*milestone_logs.c)
            .order_by(milestone_logs.c.reached_at.desc(), milestone_logs.c.id.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [_to_milestone_record(row) for row in result.mappings().all()]


def _to_milestone_record(row: sa.RowMapping) -> MilestoneRecord:
    return MilestoneRecord(
        id=int(row["id"]),
        metric=MilestoneMetric(str(row["type"])),
        threshold=int(row["value"]),
        reached_at=row["reached_at"],
    )

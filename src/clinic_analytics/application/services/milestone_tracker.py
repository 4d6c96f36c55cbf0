"""Application service that records and announces newly crossed milestone tiers."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from clinic_analytics.application.ports.milestone_repository_port import (
    MilestoneRecord,
    MilestoneRepositoryPort,
)
from clinic_analytics.application.ports.notification_channel_port import Recipient
from clinic_analytics.application.services.notification_dispatcher import (
    NotificationDispatcher,
    NotificationMessage,
)
from clinic_analytics.domain.errors import AnalyticsValidationError
from clinic_analytics.domain.milestones import (
    MAXED,
    MilestoneMetric,
    MilestoneTiers,
    NextGoal,
    next_goal,
    reached_tiers,
)

NowCallable = Callable[[], datetime]
MILESTONE_LOG_TYPE = "milestone"
DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 500
logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class MilestoneProgress:
    """Current count, next goal and records newly created by one evaluation."""

    metric: MilestoneMetric
    current: int
    next_goal: NextGoal
    newly_reached: tuple[MilestoneRecord, ...] = ()

    @property
    def maxed(self) -> bool:
        return self.next_goal == MAXED


class MilestoneTracker:
    """Evaluate counts against tiers; every threshold is recorded and announced once."""

    def __init__(
        self,
        *,
        repository: MilestoneRepositoryPort,
        tiers: MilestoneTiers | None = None,
        dispatcher: NotificationDispatcher | None = None,
        recipients: Sequence[Recipient] = (),
        now: NowCallable = _utc_now,
    ) -> None:
        self._repository = repository
        self._tiers = tiers or MilestoneTiers()
        self._dispatcher = dispatcher
        self._recipients = tuple(recipients)
        self._now = now

    async def evaluate(self, *, metric: MilestoneMetric, current: int) -> MilestoneProgress:
        """Record every reached tier not yet stored and announce the new ones."""

        tiers = self._tiers.for_metric(metric)
        reached_at = self._now()
        newly_reached: list[MilestoneRecord] = []
        for threshold in reached_tiers(tiers, current):
            record = await self._repository.record_if_absent(
                metric=metric,
                threshold=threshold,
                reached_at=reached_at,
            )
            if record is None:
                continue
            logger.info(
                "milestone_recorded metric=%s threshold=%s current=%s",
                metric.value,
                threshold,
                current,
            )
            newly_reached.append(record)
            await self._announce(record)

        return MilestoneProgress(
            metric=metric,
            current=current,
            next_goal=next_goal(tiers, current),
            newly_reached=tuple(newly_reached),
        )

    async def fetch_history(self, *, limit: int = DEFAULT_HISTORY_LIMIT) -> list[MilestoneRecord]:
        """Return stored milestones, most recently reached first."""

        if limit < 1 or limit > MAX_HISTORY_LIMIT:
            raise AnalyticsValidationError(
                f"limit must be between 1 and {MAX_HISTORY_LIMIT}"
            )
        return await self._repository.list_recent(limit=limit)

    async def _announce(self, record: MilestoneRecord) -> None:
        if self._dispatcher is None or not self._recipients:
            return

        result = await self._dispatcher.dispatch(
            render_milestone_message(record),
            self._recipients,
        )
        if not result.any_delivered:
            logger.warning(
                "milestone_announcement_undelivered metric=%s threshold=%s attempted=%s",
                record.metric.value,
                record.threshold,
                len(result.outcomes),
            )


def render_milestone_message(record: MilestoneRecord) -> NotificationMessage:
    """Render the staff announcement for one newly reached milestone."""

    headline = f"{record.threshold} {record.metric.value}"
    return NotificationMessage(
        subject=f"Milestone Unlocked: {headline}",
        body=f"{headline} milestone reached.\n\nGreat job team! Check your dashboard for updates.",
        sms_body=f"Milestone reached: {headline}!\nCheck your dashboard for updates.",
        log_type=MILESTONE_LOG_TYPE,
    )

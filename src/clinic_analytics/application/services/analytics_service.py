"""Application service composing windowed aggregations for analytics surfaces."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from clinic_analytics.application.ports.analytics_query_port import (
    AggregationResult,
    AnalyticsQueryPort,
)
from clinic_analytics.application.services.milestone_tracker import (
    MilestoneProgress,
    MilestoneTracker,
)
from clinic_analytics.domain.auth.roles import Role
from clinic_analytics.domain.errors import AggregationFailedError, AnalyticsValidationError
from clinic_analytics.domain.metric_window import MetricKind, MetricWindow, ReportRange
from clinic_analytics.domain.milestones import MilestoneMetric

NowCallable = Callable[[], datetime]
DASHBOARD_POPULAR_LIMIT = 5
MAX_POPULAR_LIMIT = 50
logger = logging.getLogger(__name__)

_MILESTONE_SOURCES: dict[MilestoneMetric, MetricKind] = {
    MilestoneMetric.USERS: MetricKind.TOTAL_USERS,
    MilestoneMetric.SUBURBS: MetricKind.DISTINCT_SUBURBS,
    MilestoneMetric.CITIES: MetricKind.DISTINCT_CITIES,
}


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class RangeSummary:
    """Headline counters for one relative reporting range."""

    report_range: ReportRange
    total_appointments: int
    new_patients: int
    active_suburbs: int
    active_cities: int


@dataclass(frozen=True)
class PopularActivity:
    """Busiest weekday/hour slots and most common patient suburbs."""

    times: AggregationResult
    locations: AggregationResult


@dataclass(frozen=True)
class DashboardStats:
    appointments: int
    users: int
    procedures: int


@dataclass(frozen=True)
class DashboardComposite:
    """Dashboard payload: stats, popular activity and milestone progress."""

    stats: DashboardStats
    popular: PopularActivity
    milestones: dict[MilestoneMetric, MilestoneProgress]


class AnalyticsService:
    """Run aggregation batches; a batch either fully succeeds or fails as a whole."""

    def __init__(
        self,
        *,
        queries: AnalyticsQueryPort,
        milestone_tracker: MilestoneTracker,
        now: NowCallable = _utc_now,
    ) -> None:
        self._queries = queries
        self._milestone_tracker = milestone_tracker
        self._now = now

    def window_for_range(
        self,
        kind: MetricKind,
        report_range: ReportRange,
        *,
        role_filter: Role | None = None,
    ) -> MetricWindow:
        """Resolve a relative range against this service's clock."""

        return MetricWindow.for_range(
            kind,
            report_range,
            now=self._now(),
            role_filter=role_filter,
        )

    async def compute_summary(
        self,
        window: MetricWindow,
        *,
        limit: int | None = None,
    ) -> AggregationResult:
        """Execute one windowed aggregation."""

        if limit is not None and limit < 1:
            raise AnalyticsValidationError("limit must be positive")
        try:
            return await self._queries.aggregate(window, limit=limit)
        except (AggregationFailedError, AnalyticsValidationError):
            raise
        except Exception as error:
            logger.exception("aggregation_failed kind=%s", window.kind.value)
            raise AggregationFailedError(kind=window.kind.value) from error

    async def summarize_range(self, report_range: ReportRange) -> RangeSummary:
        """Return appointment, new-patient, suburb and city counts for one range."""

        kinds = (
            MetricKind.APPOINTMENT_COUNT,
            MetricKind.NEW_PATIENTS,
            MetricKind.DISTINCT_SUBURBS,
            MetricKind.DISTINCT_CITIES,
        )
        appointments, patients, suburbs, cities = await self._gather(
            *(self.window_for_range(kind, report_range) for kind in kinds)
        )
        return RangeSummary(
            report_range=report_range,
            total_appointments=int(appointments.scalar()),
            new_patients=int(patients.scalar()),
            active_suburbs=int(suburbs.scalar()),
            active_cities=int(cities.scalar()),
        )

    async def popular_activity(self, *, limit: int = 10) -> PopularActivity:
        """Return the busiest appointment slots and patient suburbs."""

        if limit < 1 or limit > MAX_POPULAR_LIMIT:
            raise AnalyticsValidationError(f"limit must be between 1 and {MAX_POPULAR_LIMIT}")
        times, locations = await self._gather(
            MetricWindow.all_time(MetricKind.POPULAR_TIMES),
            MetricWindow.all_time(MetricKind.POPULAR_LOCATIONS),
            limit=limit,
        )
        return PopularActivity(times=times, locations=locations)

    async def milestone_progress(self) -> dict[MilestoneMetric, MilestoneProgress]:
        """Count milestone metrics and evaluate them against their tiers."""

        results = await self._gather(
            *(MetricWindow.all_time(kind) for kind in _MILESTONE_SOURCES.values())
        )
        return await self._evaluate_milestones(
            dict(zip(_MILESTONE_SOURCES, results, strict=True))
        )

    async def compute_dashboard_composite(self) -> DashboardComposite:
        """Compute dashboard stats, popular activity and milestone progress together."""

        (
            appointments,
            users,
            procedures,
            popular_times,
            popular_locations,
            suburbs,
            cities,
        ) = await self._gather(
            MetricWindow.all_time(MetricKind.APPOINTMENT_COUNT),
            MetricWindow.all_time(MetricKind.TOTAL_USERS),
            MetricWindow.all_time(MetricKind.DISTINCT_PROCEDURES),
            MetricWindow.all_time(MetricKind.POPULAR_TIMES),
            MetricWindow.all_time(MetricKind.POPULAR_LOCATIONS),
            MetricWindow.all_time(MetricKind.DISTINCT_SUBURBS),
            MetricWindow.all_time(MetricKind.DISTINCT_CITIES),
            limit=DASHBOARD_POPULAR_LIMIT,
        )
        milestones = await self._evaluate_milestones(
            {
                MilestoneMetric.USERS: users,
                MilestoneMetric.SUBURBS: suburbs,
                MilestoneMetric.CITIES: cities,
            }
        )
        return DashboardComposite(
            stats=DashboardStats(
                appointments=int(appointments.scalar()),
                users=int(users.scalar()),
                procedures=int(procedures.scalar()),
            ),
            popular=PopularActivity(times=popular_times, locations=popular_locations),
            milestones=milestones,
        )

    async def _gather(
        self,
        *windows: MetricWindow,
        limit: int | None = None,
    ) -> list[AggregationResult]:
        """Run aggregations concurrently; the first failure cancels and fails the batch."""

        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(
                        self.compute_summary(window, limit=limit if _is_ranked(window) else None)
                    )
                    for window in windows
                ]
        except ExceptionGroup as failures:
            raise failures.exceptions[0]
        return [task.result() for task in tasks]

    async def _evaluate_milestones(
        self,
        counts: dict[MilestoneMetric, AggregationResult],
    ) -> dict[MilestoneMetric, MilestoneProgress]:
        progress: dict[MilestoneMetric, MilestoneProgress] = {}
        for metric, result in counts.items():
            progress[metric] = await self._milestone_tracker.evaluate(
                metric=metric,
                current=int(result.scalar()),
            )
        return progress


def _is_ranked(window: MetricWindow) -> bool:
    return window.kind in (MetricKind.POPULAR_TIMES, MetricKind.POPULAR_LOCATIONS)

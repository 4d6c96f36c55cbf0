from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from clinic_analytics.application.ports.analytics_query_port import (
    AggregationResult,
    AggregationRow,
)
from clinic_analytics.application.ports.milestone_repository_port import MilestoneRecord
from clinic_analytics.application.services.analytics_service import (
    DASHBOARD_POPULAR_LIMIT,
    AnalyticsService,
)
from clinic_analytics.application.services.milestone_tracker import MilestoneTracker
from clinic_analytics.domain.errors import AggregationFailedError, AnalyticsValidationError
from clinic_analytics.domain.metric_window import MetricKind, MetricWindow, ReportRange
from clinic_analytics.domain.milestones import MilestoneMetric

FIXED_NOW = datetime(2026, 5, 10, 8, 0, tzinfo=UTC)


def _scalar(kind: MetricKind, value: int) -> AggregationResult:
    return AggregationResult(
        kind=kind,
        dimensions=(),
        value_name="count",
        rows=(AggregationRow(labels=(), value=value),),
    )


def _grouped(kind: MetricKind, *pairs: tuple[str, int]) -> AggregationResult:
    return AggregationResult(
        kind=kind,
        dimensions=("label",),
        value_name="count",
        rows=tuple(AggregationRow(labels=(label,), value=value) for label, value in pairs),
    )


@dataclass
class FakeAnalyticsQueries:
    results: dict[MetricKind, AggregationResult] = field(default_factory=dict)
    failing: set[MetricKind] = field(default_factory=set)
    calls: list[tuple[MetricWindow, int | None]] = field(default_factory=list)

    async def aggregate(
        self,
        window: MetricWindow,
        *,
        limit: int | None = None,
    ) -> AggregationResult:
        self.calls.append((window, limit))
        if window.kind in self.failing:
            raise ConnectionError("database unavailable")
        return self.results.get(window.kind, _scalar(window.kind, 0))


@dataclass
class FakeMilestoneRepository:
    records: list[MilestoneRecord] = field(default_factory=list)

    async def record_if_absent(
        self,
        *,
        metric: MilestoneMetric,
        threshold: int,
        reached_at: datetime,
    ) -> MilestoneRecord | None:
        if any(item.metric is metric and item.threshold == threshold for item in self.records):
            return None
        record = MilestoneRecord(
            id=len(self.records) + 1,
            metric=metric,
            threshold=threshold,
            reached_at=reached_at,
        )
        self.records.append(record)
        return record

    async def list_recent(self, *, limit: int) -> list[MilestoneRecord]:
        return list(reversed(self.records))[:limit]


def _service(
    queries: FakeAnalyticsQueries,
    repository: FakeMilestoneRepository | None = None,
) -> AnalyticsService:
    return AnalyticsService(
        queries=queries,
        milestone_tracker=MilestoneTracker(repository=repository or FakeMilestoneRepository()),
        now=lambda: FIXED_NOW,
    )


@pytest.mark.asyncio
async def test_summarize_range_queries_four_counts_over_range_window() -> None:
    queries = FakeAnalyticsQueries(
        results={
            MetricKind.APPOINTMENT_COUNT: _scalar(MetricKind.APPOINTMENT_COUNT, 12),
            MetricKind.NEW_PATIENTS: _scalar(MetricKind.NEW_PATIENTS, 4),
            MetricKind.DISTINCT_SUBURBS: _scalar(MetricKind.DISTINCT_SUBURBS, 3),
            MetricKind.DISTINCT_CITIES: _scalar(MetricKind.DISTINCT_CITIES, 2),
        }
    )

    summary = await _service(queries).summarize_range(ReportRange.MONTHLY)

    assert (
        summary.total_appointments,
        summary.new_patients,
        summary.active_suburbs,
        summary.active_cities,
    ) == (12, 4, 3, 2)
    assert {window.start for window, _ in queries.calls} == {FIXED_NOW - timedelta(days=30)}


@pytest.mark.asyncio
async def test_compute_summary_wraps_store_failure() -> None:
    queries = FakeAnalyticsQueries(failing={MetricKind.STAFF_LOAD})

    with pytest.raises(AggregationFailedError) as exc_info:
        await _service(queries).compute_summary(MetricWindow.all_time(MetricKind.STAFF_LOAD))

    assert exc_info.value.kind == "staff-load"


@pytest.mark.asyncio
async def test_compute_summary_rejects_non_positive_limit() -> None:
    with pytest.raises(AnalyticsValidationError, match="limit must be positive"):
        await _service(FakeAnalyticsQueries()).compute_summary(
            MetricWindow.all_time(MetricKind.PROCEDURE_BREAKDOWN),
            limit=0,
        )


@pytest.mark.asyncio
async def test_dashboard_composite_combines_stats_popular_and_milestones() -> None:
    queries = FakeAnalyticsQueries(
        results={
            MetricKind.APPOINTMENT_COUNT: _scalar(MetricKind.APPOINTMENT_COUNT, 40),
            MetricKind.TOTAL_USERS: _scalar(MetricKind.TOTAL_USERS, 150),
            MetricKind.DISTINCT_PROCEDURES: _scalar(MetricKind.DISTINCT_PROCEDURES, 6),
            MetricKind.DISTINCT_SUBURBS: _scalar(MetricKind.DISTINCT_SUBURBS, 4),
            MetricKind.DISTINCT_CITIES: _scalar(MetricKind.DISTINCT_CITIES, 3),
            MetricKind.POPULAR_LOCATIONS: _grouped(
                MetricKind.POPULAR_LOCATIONS,
                ("Avondale", 9),
                ("Borrowdale", 4),
            ),
        }
    )
    repository = FakeMilestoneRepository()

    composite = await _service(queries, repository).compute_dashboard_composite()

    assert (composite.stats.appointments, composite.stats.users, composite.stats.procedures) == (
        40,
        150,
        6,
    )
    assert [row.label for row in composite.popular.locations.rows] == ["Avondale", "Borrowdale"]
    assert composite.milestones[MilestoneMetric.USERS].next_goal == 500
    assert composite.milestones[MilestoneMetric.SUBURBS].next_goal == 5
    assert composite.milestones[MilestoneMetric.CITIES].next_goal == 5
    assert sorted((item.metric.value, item.threshold) for item in repository.records) == [
        ("cities", 3),
        ("users", 100),
    ]
    limits = {window.kind: limit for window, limit in queries.calls}
    assert limits[MetricKind.POPULAR_TIMES] == DASHBOARD_POPULAR_LIMIT
    assert limits[MetricKind.POPULAR_LOCATIONS] == DASHBOARD_POPULAR_LIMIT
    assert limits[MetricKind.TOTAL_USERS] is None


@pytest.mark.asyncio
async def test_dashboard_composite_fails_as_a_whole_and_records_nothing() -> None:
    queries = FakeAnalyticsQueries(
        results={MetricKind.TOTAL_USERS: _scalar(MetricKind.TOTAL_USERS, 600)},
        failing={MetricKind.POPULAR_TIMES},
    )
    repository = FakeMilestoneRepository()

    with pytest.raises(AggregationFailedError):
        await _service(queries, repository).compute_dashboard_composite()

    assert repository.records == []


@pytest.mark.asyncio
async def test_popular_activity_validates_limit_range() -> None:
    service = _service(FakeAnalyticsQueries())

    with pytest.raises(AnalyticsValidationError, match="between 1 and 50"):
        await service.popular_activity(limit=51)


@pytest.mark.asyncio
async def test_milestone_progress_evaluates_each_metric() -> None:
    queries = FakeAnalyticsQueries(
        results={MetricKind.TOTAL_USERS: _scalar(MetricKind.TOTAL_USERS, 100)}
    )

    progress = await _service(queries).milestone_progress()

    assert set(progress) == set(MilestoneMetric)
    assert progress[MilestoneMetric.USERS].current == 100
    assert progress[MilestoneMetric.USERS].next_goal == 500
    assert progress[MilestoneMetric.CITIES].next_goal == 3


@dataclass
class StallingAnalyticsQueries:
    """Fails one kind immediately while every other query waits until cancelled."""

    failing_kind: MetricKind
    cancelled: list[MetricKind] = field(default_factory=list)

    async def aggregate(
        self,
        window: MetricWindow,
        *,
        limit: int | None = None,
    ) -> AggregationResult:
        if window.kind is self.failing_kind:
            raise ConnectionError("database unavailable")
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled.append(window.kind)
            raise
        return _scalar(window.kind, 0)


@pytest.mark.asyncio
async def test_failed_batch_cancels_sibling_queries() -> None:
    queries = StallingAnalyticsQueries(failing_kind=MetricKind.NEW_PATIENTS)
    service = AnalyticsService(
        queries=queries,
        milestone_tracker=MilestoneTracker(repository=FakeMilestoneRepository()),
        now=lambda: FIXED_NOW,
    )

    with pytest.raises(AggregationFailedError, match="new-patients") as failure:
        await service.summarize_range(ReportRange.WEEKLY)

    assert isinstance(failure.value.__cause__, ConnectionError)
    assert sorted(queries.cancelled) == sorted(
        [
            MetricKind.APPOINTMENT_COUNT,
            MetricKind.DISTINCT_SUBURBS,
            MetricKind.DISTINCT_CITIES,
        ]
    )

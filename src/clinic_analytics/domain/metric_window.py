"""Metric kinds, reporting ranges and immutable aggregation windows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Final

from clinic_analytics.domain.auth.roles import Role
from clinic_analytics.domain.errors import AnalyticsValidationError


class MetricKind(StrEnum):
    """Aggregations the analytics query layer knows how to compute."""

    APPOINTMENT_COUNT = "appointment-count"
    NEW_PATIENTS = "new-patients"
    DISTINCT_SUBURBS = "distinct-suburbs"
    DISTINCT_CITIES = "distinct-cities"
    PROCEDURE_BREAKDOWN = "procedure-breakdown"
    STAFF_LOAD = "staff-load"
    REVENUE_BY_ROLE = "revenue-by-role"
    TOTAL_USERS = "total-users"
    DISTINCT_PROCEDURES = "distinct-procedures"
    SERVICE_USAGE = "service-usage"
    PATIENT_TREND = "patient-trend"
    POPULAR_TIMES = "popular-times"
    POPULAR_LOCATIONS = "popular-locations"


class ReportRange(StrEnum):
    """Relative reporting ranges accepted from callers."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


RANGE_DURATIONS: Final[dict[ReportRange, timedelta]] = {
    ReportRange.WEEKLY: timedelta(days=7),
    ReportRange.MONTHLY: timedelta(days=30),
    ReportRange.YEARLY: timedelta(days=365),
}


def parse_report_range(token: str | None, *, default: ReportRange) -> ReportRange:
    """Parse one range token, falling back to `default` when omitted."""

    if token is None or not token.strip():
        return default
    try:
        return ReportRange(token.strip().lower())
    except ValueError as error:
        raise AnalyticsValidationError(f"unknown report range: {token}") from error


def parse_metric_kind(token: str) -> MetricKind:
    """Parse one metric-kind token or raise a validation error."""

    try:
        return MetricKind(token.strip().lower())
    except ValueError as error:
        raise AnalyticsValidationError(f"unknown metric kind: {token}") from error


@dataclass(frozen=True)
class MetricWindow:
    """One aggregation request: metric kind over `[start, end)` with optional role filter.

    A `None` start means the window is unbounded below; a `None` end means
    it runs up to the moment the query executes.
    """

    kind: MetricKind
    start: datetime | None = None
    end: datetime | None = None
    role_filter: Role | None = None
    report_range: ReportRange | None = None

    def __post_init__(self) -> None:
        if self.start is not None and self.start.tzinfo is None:
            raise AnalyticsValidationError("window start must be timezone-aware")
        if self.end is not None and self.end.tzinfo is None:
            raise AnalyticsValidationError("window end must be timezone-aware")
        if self.start is not None and self.end is not None and self.end < self.start:
            raise AnalyticsValidationError("window end must be greater than or equal to start")

    @classmethod
    def for_range(
        cls,
        kind: MetricKind,
        report_range: ReportRange,
        *,
        now: datetime | None = None,
        role_filter: Role | None = None,
    ) -> MetricWindow:
        """Resolve a relative range into an absolute lower bound computed from `now`."""

        resolved_now = now or datetime.now(tz=UTC)
        return cls(
            kind=kind,
            start=resolved_now - RANGE_DURATIONS[report_range],
            end=None,
            role_filter=role_filter,
            report_range=report_range,
        )

    @classmethod
    def all_time(cls, kind: MetricKind, *, role_filter: Role | None = None) -> MetricWindow:
        """Build an unbounded window over every stored observation."""

        return cls(kind=kind, role_filter=role_filter)

    @property
    def range_label(self) -> str:
        """Return a short human label for messages and filenames."""

        if self.report_range is not None:
            return self.report_range.value
        if self.start is None and self.end is None:
            return "all-time"
        start_text = self.start.date().isoformat() if self.start is not None else "start"
        end_text = self.end.date().isoformat() if self.end is not None else "now"
        return f"{start_text}_{end_text}"

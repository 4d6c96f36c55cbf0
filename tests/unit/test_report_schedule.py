from __future__ import annotations

from datetime import UTC, datetime

from clinic_analytics.domain.metric_window import ReportRange
from clinic_analytics.domain.report_schedule import next_run_at

HARARE = "Africa/Harare"


def test_weekly_report_runs_next_sunday_at_eight_local() -> None:
    # Wednesday 2026-03-11 10:00 UTC
    due = next_run_at(
        ReportRange.WEEKLY,
        after=datetime(2026, 3, 11, 10, 0, tzinfo=UTC),
        timezone_name=HARARE,
    )

    assert due == datetime(2026, 3, 15, 6, 0, tzinfo=UTC)


def test_weekly_report_skips_to_following_week_once_sunday_run_has_passed() -> None:
    due = next_run_at(
        ReportRange.WEEKLY,
        after=datetime(2026, 3, 15, 6, 0, tzinfo=UTC),
        timezone_name=HARARE,
    )

    assert due == datetime(2026, 3, 22, 6, 0, tzinfo=UTC)


def test_weekly_report_fires_same_sunday_before_eight_local() -> None:
    due = next_run_at(
        ReportRange.WEEKLY,
        after=datetime(2026, 3, 15, 5, 59, tzinfo=UTC),
        timezone_name=HARARE,
    )

    assert due == datetime(2026, 3, 15, 6, 0, tzinfo=UTC)


def test_monthly_report_runs_on_first_of_next_month() -> None:
    due = next_run_at(
        ReportRange.MONTHLY,
        after=datetime(2026, 12, 1, 7, 0, tzinfo=UTC),
        timezone_name=HARARE,
    )

    assert due == datetime(2027, 1, 1, 6, 0, tzinfo=UTC)


def test_yearly_report_runs_on_first_of_january() -> None:
    due = next_run_at(
        ReportRange.YEARLY,
        after=datetime(2026, 6, 30, 0, 0, tzinfo=UTC),
        timezone_name=HARARE,
    )

    assert due == datetime(2027, 1, 1, 6, 0, tzinfo=UTC)


def test_next_run_is_always_strictly_after_reference() -> None:
    reference = datetime(2026, 1, 1, 6, 0, tzinfo=UTC)
    for cadence in ReportRange:
        assert next_run_at(cadence, after=reference, timezone_name=HARARE) > reference

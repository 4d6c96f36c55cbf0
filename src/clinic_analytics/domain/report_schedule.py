"""Deterministic due-time calculation for periodic clinic reports."""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
from typing import Final
from zoneinfo import ZoneInfo

from clinic_analytics.domain.metric_window import ReportRange

REPORT_SEND_TIME: Final = time(hour=8, minute=0)
_SUNDAY: Final = 6


def next_run_at(cadence: ReportRange, *, after: datetime, timezone_name: str) -> datetime:
    """Return the first UTC run instant strictly after `after` for one cadence.

    Weekly reports run on Sundays, monthly reports on the 1st and yearly
    reports on 1 January, all at 08:00 local time.
    """

    timezone = ZoneInfo(timezone_name)
    local_after = after.astimezone(timezone)
    candidate_date = local_after.date()

    while True:
        candidate = datetime.combine(candidate_date, REPORT_SEND_TIME, tzinfo=timezone)
        if candidate > local_after and _matches(cadence, candidate):
            return candidate.astimezone(UTC)
        candidate_date = _advance(cadence, candidate_date)


def _matches(cadence: ReportRange, candidate: datetime) -> bool:
    if cadence is ReportRange.WEEKLY:
        return candidate.weekday() == _SUNDAY
    if cadence is ReportRange.MONTHLY:
        return candidate.day == 1
    return candidate.day == 1 and candidate.month == 1


def _advance(cadence: ReportRange, current: date) -> date:
    if cadence is ReportRange.WEEKLY:
        return current + timedelta(days=1)
    if current.month == 12:
        return current.replace(year=current.year + 1, month=1, day=1)
    if cadence is ReportRange.MONTHLY:
        return current.replace(month=current.month + 1, day=1)
    return current.replace(year=current.year + 1, month=1, day=1)

"""Polling runtime that fires weekly, monthly and yearly clinic reports when due."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime

from clinic_analytics.domain.metric_window import ReportRange
from clinic_analytics.domain.report_schedule import next_run_at

ReportSender = Callable[[ReportRange], Awaitable[object]]
SleepCallable = Callable[[float], Awaitable[None]]
NowCallable = Callable[[], datetime]
logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class ReportSchedulerRuntime:
    """Track the next due instant per cadence and send each report once per occurrence."""

    def __init__(
        self,
        *,
        send_report: ReportSender,
        timezone_name: str,
        cadences: Iterable[ReportRange] = tuple(ReportRange),
        poll_interval_seconds: float = 60.0,
        sleep: SleepCallable = asyncio.sleep,
        now: NowCallable = _utc_now,
    ) -> None:
        self._send_report = send_report
        self._timezone_name = timezone_name
        self._poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep
        self._now = now
        started_at = now()
        self._due_at: dict[ReportRange, datetime] = {
            cadence: next_run_at(cadence, after=started_at, timezone_name=timezone_name)
            for cadence in cadences
        }

    @property
    def due_at(self) -> dict[ReportRange, datetime]:
        return dict(self._due_at)

    async def run_once(self) -> list[ReportRange]:
        """Send every report whose due instant has passed, then sleep one interval."""

        current = self._now()
        fired: list[ReportRange] = []
        for cadence, due_at in self._due_at.items():
            if due_at > current:
                continue
            fired.append(cadence)
            logger.info("periodic_report_due range=%s due_at=%s", cadence.value, due_at)
            try:
                await self._send_report(cadence)
            except Exception:  # noqa: BLE001
                logger.exception("periodic_report_failed range=%s", cadence.value)
            self._due_at[cadence] = next_run_at(
                cadence,
                after=current,
                timezone_name=self._timezone_name,
            )

        await self._sleep(self._poll_interval_seconds)
        return fired

    async def run_until_stopped(self, stop_event: asyncio.Event) -> None:
        """Continuously run the scheduling loop until stop_event is set."""

        while not stop_event.is_set():
            await self.run_once()

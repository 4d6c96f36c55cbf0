"""report-scheduler entrypoint sending weekly, monthly and yearly clinic reports."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_analytics.application.ports.notification_channel_port import (
    EmailChannelPort,
    SmsChannelPort,
)
from clinic_analytics.application.services.analytics_service import AnalyticsService
from clinic_analytics.application.services.milestone_tracker import MilestoneTracker
from clinic_analytics.application.services.report_scheduler_runtime import ReportSchedulerRuntime
from clinic_analytics.application.services.report_service import ReportService
from clinic_analytics.config.settings import Settings, load_settings
from clinic_analytics.infrastructure.db.analytics_queries import SqlAlchemyAnalyticsQueries
from clinic_analytics.infrastructure.db.milestone_repository import SqlAlchemyMilestoneRepository
from clinic_analytics.infrastructure.db.session import create_session_factory
from clinic_analytics.infrastructure.db.user_directory_repository import (
    SqlAlchemyUserDirectoryRepository,
)
from clinic_analytics.infrastructure.logging import configure_logging
from clinic_analytics.infrastructure.notifications.factory import (
    build_email_channel,
    build_notification_dispatcher,
    build_sms_channel,
)
from clinic_analytics.infrastructure.reports.renderer import ReportRenderer

logger = logging.getLogger(__name__)


def build_report_service(
    *,
    session_factory: async_sessionmaker[AsyncSession],
    email_channel: EmailChannelPort,
    sms_channel: SmsChannelPort,
    export_tmp_dir: Path | None = None,
) -> ReportService:
    """Build the report service used for periodic fan-outs."""

    dispatcher = build_notification_dispatcher(
        session_factory,
        email_channel=email_channel,
        sms_channel=sms_channel,
    )
    analytics = AnalyticsService(
        queries=SqlAlchemyAnalyticsQueries(session_factory),
        milestone_tracker=MilestoneTracker(
            repository=SqlAlchemyMilestoneRepository(session_factory),
        ),
    )
    return ReportService(
        analytics=analytics,
        renderer=ReportRenderer(),
        dispatcher=dispatcher,
        recipients=SqlAlchemyUserDirectoryRepository(session_factory),
        artifact_dir=export_tmp_dir,
    )


def build_scheduler_runtime(*, settings: Settings) -> ReportSchedulerRuntime:
    """Build scheduler runtime wired to SQLAlchemy, SMTP and SMS adapters."""

    report_service = build_report_service(
        session_factory=create_session_factory(settings.database_url),
        email_channel=build_email_channel(settings),
        sms_channel=build_sms_channel(settings),
        export_tmp_dir=Path(settings.export_tmp_dir) if settings.export_tmp_dir else None,
    )
    return ReportSchedulerRuntime(
        send_report=report_service.send_periodic_report,
        timezone_name=settings.report_timezone,
        poll_interval_seconds=settings.scheduler_poll_interval_seconds,
    )


async def _run_scheduler() -> None:
    settings = load_settings()
    configure_logging(level=settings.log_level)
    runtime = build_scheduler_runtime(settings=settings)
    logger.info(
        "report_scheduler_starting timezone=%s poll_interval_seconds=%s next_runs=%s",
        settings.report_timezone,
        settings.scheduler_poll_interval_seconds,
        {cadence.value: due.isoformat() for cadence, due in runtime.due_at.items()},
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop_event.set)

    await runtime.run_until_stopped(stop_event)
    logger.info("report_scheduler_stopped")


def main() -> None:
    """Run the periodic report scheduler until interrupted."""

    asyncio.run(_run_scheduler())


if __name__ == "__main__":
    main()

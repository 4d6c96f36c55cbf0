"""analytics-api entrypoint and HTTP route wiring."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import uvicorn
from fastapi import FastAPI

from clinic_analytics.application.ports.notification_channel_port import (
    EmailChannelPort,
    Recipient,
    SmsChannelPort,
)
from clinic_analytics.application.services.analytics_service import AnalyticsService
from clinic_analytics.application.services.milestone_tracker import MilestoneTracker
from clinic_analytics.application.services.report_service import ReportService
from clinic_analytics.config.settings import load_settings
from clinic_analytics.domain.milestones import MilestoneTiers
from clinic_analytics.infrastructure.db.analytics_queries import SqlAlchemyAnalyticsQueries
from clinic_analytics.infrastructure.db.milestone_repository import SqlAlchemyMilestoneRepository
from clinic_analytics.infrastructure.db.notification_log_repository import (
    SqlAlchemyNotificationLogRepository,
)
from clinic_analytics.infrastructure.db.session import create_session_factory
from clinic_analytics.infrastructure.db.user_directory_repository import (
    SqlAlchemyUserDirectoryRepository,
)
from clinic_analytics.infrastructure.http.analytics_router import build_analytics_router
from clinic_analytics.infrastructure.http.auth_guard import AnalyticsAuthGuard
from clinic_analytics.infrastructure.http.error_handlers import register_error_handlers
from clinic_analytics.infrastructure.logging import configure_logging
from clinic_analytics.infrastructure.notifications.factory import (
    build_email_channel,
    build_milestone_recipients,
    build_notification_dispatcher,
    build_sms_channel,
)
from clinic_analytics.infrastructure.reports.renderer import ReportRenderer
from clinic_analytics.infrastructure.security.token_service import OpaqueTokenService

ANALYTICS_API_HOST = "0.0.0.0"
ANALYTICS_API_PORT = 8000
logger = logging.getLogger(__name__)


def create_app(
    *,
    database_url: str | None = None,
    email_channel: EmailChannelPort | None = None,
    sms_channel: SmsChannelPort | None = None,
    milestone_recipients: Sequence[Recipient] | None = None,
    milestone_tiers: MilestoneTiers | None = None,
    export_tmp_dir: Path | None = None,
    token_service: OpaqueTokenService | None = None,
) -> FastAPI:
    """Create FastAPI app exposing analytics endpoints and the health probe."""

    if database_url is None or email_channel is None or sms_channel is None:
        settings = load_settings()
        configure_logging(level=settings.log_level)
        database_url = database_url or settings.database_url
        email_channel = email_channel or build_email_channel(settings)
        sms_channel = sms_channel or build_sms_channel(settings)
        if milestone_recipients is None:
            milestone_recipients = build_milestone_recipients(settings)
        if export_tmp_dir is None and settings.export_tmp_dir is not None:
            export_tmp_dir = Path(settings.export_tmp_dir)

    session_factory = create_session_factory(database_url)
    dispatcher = build_notification_dispatcher(
        session_factory,
        email_channel=email_channel,
        sms_channel=sms_channel,
    )
    milestone_tracker = MilestoneTracker(
        repository=SqlAlchemyMilestoneRepository(session_factory),
        tiers=milestone_tiers,
        dispatcher=dispatcher,
        recipients=milestone_recipients or (),
    )
    analytics_service = AnalyticsService(
        queries=SqlAlchemyAnalyticsQueries(session_factory),
        milestone_tracker=milestone_tracker,
    )
    user_directory = SqlAlchemyUserDirectoryRepository(session_factory)
    report_service = ReportService(
        analytics=analytics_service,
        renderer=ReportRenderer(),
        dispatcher=dispatcher,
        recipients=user_directory,
        artifact_dir=export_tmp_dir,
    )
    auth_guard = AnalyticsAuthGuard(
        token_service=token_service or OpaqueTokenService(),
        principals=user_directory,
    )

    app = FastAPI(title="clinic-analytics")
    register_error_handlers(app)
    app.include_router(
        build_analytics_router(
            analytics_service=analytics_service,
            report_service=report_service,
            milestone_tracker=milestone_tracker,
            notification_logs=SqlAlchemyNotificationLogRepository(session_factory),
            auth_guard=auth_guard,
        )
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    logger.info("analytics_api_ready milestone_recipients=%s", len(milestone_recipients or ()))
    return app


def run_asgi_server(*, host: str = ANALYTICS_API_HOST, port: int = ANALYTICS_API_PORT) -> None:
    """Run analytics-api as a long-lived ASGI process using application factory mode."""

    uvicorn.run(
        "apps.analytics_api.main:create_app",
        host=host,
        port=port,
        factory=True,
    )


def main() -> None:
    """Run analytics-api runtime process."""

    run_asgi_server()


if __name__ == "__main__":
    main()

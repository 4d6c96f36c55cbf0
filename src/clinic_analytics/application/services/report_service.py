"""Application service for exporting, emailing and texting analytics reports."""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from clinic_analytics.application.ports.analytics_query_port import AggregationResult
from clinic_analytics.application.ports.notification_channel_port import (
    NotificationChannel,
    Recipient,
)
from clinic_analytics.application.ports.report_recipient_repository_port import (
    ReportRecipientRepositoryPort,
)
from clinic_analytics.application.ports.report_renderer_port import (
    RenderedReport,
    ReportRendererPort,
)
from clinic_analytics.application.services.access_guard_service import REPORT_RECIPIENT_ROLES
from clinic_analytics.application.services.analytics_service import AnalyticsService
from clinic_analytics.application.services.notification_dispatcher import (
    DispatchResult,
    NotificationDispatcher,
    NotificationMessage,
)
from clinic_analytics.domain.errors import AnalyticsValidationError
from clinic_analytics.domain.export_format import ExportFormat, parse_export_format
from clinic_analytics.domain.metric_window import MetricKind, MetricWindow, ReportRange

REPORT_TITLE = "Clinic Summary Report"
ON_DEMAND_LOG_TYPE = "on-demand"
logger = logging.getLogger(__name__)


class ReportService:
    """Render aggregation results and hand them to the notification dispatcher."""

    def __init__(
        self,
        *,
        analytics: AnalyticsService,
        renderer: ReportRendererPort,
        dispatcher: NotificationDispatcher,
        recipients: ReportRecipientRepositoryPort | None = None,
        artifact_dir: Path | None = None,
    ) -> None:
        self._analytics = analytics
        self._renderer = renderer
        self._dispatcher = dispatcher
        self._recipients = recipients
        self._artifact_dir = artifact_dir

    async def export_report(
        self,
        window: MetricWindow,
        format_token: str,
        *,
        allowed_formats: frozenset[ExportFormat] = frozenset(ExportFormat),
    ) -> RenderedReport:
        """Aggregate `window` and render it for direct download."""

        export_format = parse_export_format(format_token, allowed=allowed_formats)
        result = await self._analytics.compute_summary(window)
        rendered = self._render(result=result, window=window, export_format=export_format)
        logger.info(
            "report_exported kind=%s range=%s format=%s rows=%s",
            window.kind.value,
            window.range_label,
            export_format.value,
            len(result.rows),
        )
        return rendered

    async def email_report(
        self,
        window: MetricWindow,
        format_token: str,
        recipients: Sequence[str],
    ) -> DispatchResult:
        """Email the rendered report as an attachment; fails only if nobody received it."""

        export_format = parse_export_format(format_token)
        addresses = _require_addresses(recipients)
        result = await self._analytics.compute_summary(window)
        rendered = self._render(result=result, window=window, export_format=export_format)

        with transient_report_file(rendered, directory=self._artifact_dir) as attachment:
            dispatch = await self._dispatcher.dispatch(
                NotificationMessage(
                    subject=f"Clinic Report - {window.range_label}",
                    body=f"See attached {window.range_label} report.",
                    log_type=ON_DEMAND_LOG_TYPE,
                    attachment=attachment,
                ),
                [Recipient(channel=NotificationChannel.EMAIL, address=item) for item in addresses],
            )
        return dispatch.require_any_delivered()

    async def sms_report(self, window: MetricWindow, recipients: Sequence[str]) -> DispatchResult:
        """Text a one-line-per-category summary; fails only if nobody received it."""

        numbers = _require_addresses(recipients)
        result = await self._analytics.compute_summary(window)
        body = render_sms_summary(result=result, heading=f"Clinic Report ({window.range_label})")
        dispatch = await self._dispatcher.dispatch(
            NotificationMessage(
                subject=f"Clinic Report - {window.range_label}",
                body=body,
                log_type=ON_DEMAND_LOG_TYPE,
            ),
            [Recipient(channel=NotificationChannel.SMS, address=item) for item in numbers],
        )
        return dispatch.require_any_delivered()

    async def send_periodic_report(self, report_range: ReportRange) -> DispatchResult:
        """Send the procedure breakdown for one range to every report recipient."""

        if self._recipients is None:
            raise RuntimeError("periodic reports require a recipient repository")

        window = self._analytics.window_for_range(MetricKind.PROCEDURE_BREAKDOWN, report_range)
        result = await self._analytics.compute_summary(window)
        recipients = await self._recipients.list_report_recipients(roles=REPORT_RECIPIENT_ROLES)
        heading = f"{report_range.value.capitalize()} Clinic Report"
        rendered = self._render(result=result, window=window, export_format=ExportFormat.EXCEL)

        with transient_report_file(rendered, directory=self._artifact_dir) as attachment:
            dispatch = await self._dispatcher.dispatch(
                NotificationMessage(
                    subject=f"{report_range.value.upper()} Report",
                    body=f"See attached {report_range.value} report.",
                    sms_body=render_sms_summary(result=result, heading=heading),
                    log_type=report_range.value,
                    attachment=attachment,
                ),
                recipients,
            )

        if recipients and not dispatch.any_delivered:
            logger.warning(
                "periodic_report_undelivered range=%s attempted=%s",
                report_range.value,
                len(dispatch.outcomes),
            )
        return dispatch

    def _render(
        self,
        *,
        result: AggregationResult,
        window: MetricWindow,
        export_format: ExportFormat,
    ) -> RenderedReport:
        return self._renderer.render(
            result.as_records(),
            export_format,
            title=REPORT_TITLE,
            basename=f"clinic-report-{window.kind.value}-{window.range_label}",
        )


def render_sms_summary(*, result: AggregationResult, heading: str) -> str:
    """Render aggregation rows as `label: value` lines under a heading."""

    lines = [f"{row.label}: {_format_value(row.value)}" for row in result.rows]
    if not lines:
        lines = ["No activity recorded."]
    return "\n".join([f"{heading}:", "", *lines])


@contextmanager
def transient_report_file(
    rendered: RenderedReport,
    *,
    directory: Path | None = None,
) -> Iterator[Path]:
    """Write `rendered` to a temporary file that is removed on every exit path."""

    workdir = tempfile.mkdtemp(prefix="clinic-report-", dir=directory)
    path = Path(workdir) / rendered.filename
    try:
        path.write_bytes(rendered.content)
        yield path
    finally:
        path.unlink(missing_ok=True)
        Path(workdir).rmdir()


def _require_addresses(values: Sequence[str]) -> list[str]:
    addresses = [value.strip() for value in values if value and value.strip()]
    if not addresses:
        raise AnalyticsValidationError("at least one recipient is required")
    return addresses


def _format_value(value: float) -> str:
    if isinstance(value, float) and not value.is_integer():
        return f"{value:.2f}"
    return str(int(value))

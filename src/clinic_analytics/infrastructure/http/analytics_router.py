"""FastAPI router for analytics, milestone, report and notification-log endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Query, Request, Response

from clinic_analytics.application.dto.analytics_models import (
    AggregationResponse,
    DashboardResponse,
    DashboardStatsItem,
    DispatchResponse,
    EmailReportRequest,
    ExportRequest,
    MilestoneHistoryResponse,
    MilestoneProgressItem,
    MilestoneProgressResponse,
    MilestoneRecordItem,
    NotificationLogItem,
    NotificationLogListResponse,
    PopularActivityResponse,
    RangeSummaryResponse,
    RevenueExportRequest,
    SmsReportRequest,
)
from clinic_analytics.application.ports.notification_channel_port import NotificationChannel
from clinic_analytics.application.ports.notification_log_repository_port import (
    NotificationLogFilter,
    NotificationLogRepositoryPort,
)
from clinic_analytics.application.ports.report_renderer_port import RenderedReport
from clinic_analytics.application.services.access_guard_service import (
    ANALYTICS_READERS,
    ANY_AUTHENTICATED,
    AUDIT_READERS,
    REVENUE_READERS,
    SERVICE_USAGE_READERS,
)
from clinic_analytics.application.services.analytics_service import (
    AnalyticsService,
    PopularActivity,
)
from clinic_analytics.application.services.milestone_tracker import (
    DEFAULT_HISTORY_LIMIT,
    MilestoneTracker,
)
from clinic_analytics.application.services.report_service import ReportService
from clinic_analytics.domain.auth.roles import Role
from clinic_analytics.domain.errors import AnalyticsValidationError
from clinic_analytics.domain.export_format import ExportFormat
from clinic_analytics.domain.metric_window import (
    MetricKind,
    MetricWindow,
    ReportRange,
    parse_report_range,
)
from clinic_analytics.infrastructure.http.auth_guard import AnalyticsAuthGuard

REVENUE_EXPORT_FORMATS = frozenset({ExportFormat.EXCEL, ExportFormat.PDF})
MAX_LOG_PAGE_SIZE = 200


def build_analytics_router(
    *,
    analytics_service: AnalyticsService,
    report_service: ReportService,
    milestone_tracker: MilestoneTracker,
    notification_logs: NotificationLogRepositoryPort,
    auth_guard: AnalyticsAuthGuard,
) -> APIRouter:
    """Build router exposing analytics endpoints under `/analytics`."""

    router = APIRouter(prefix="/analytics", tags=["analytics"])

    async def authorize(request: Request, allowed: frozenset[Role]) -> None:
        await auth_guard.require_roles(
            authorization_header=request.headers.get("authorization"),
            allowed=allowed,
        )

    def ranged_window(
        kind: MetricKind,
        range_token: str | None,
        *,
        default: ReportRange | None,
        role: Role | None = None,
    ) -> MetricWindow:
        if range_token is None and default is None:
            return MetricWindow.all_time(kind, role_filter=role)
        report_range = parse_report_range(range_token, default=default or ReportRange.WEEKLY)
        return analytics_service.window_for_range(kind, report_range, role_filter=role)

    async def aggregation(window: MetricWindow) -> AggregationResponse:
        result = await analytics_service.compute_summary(window)
        return AggregationResponse.from_result(
            result,
            range_label=window.range_label,
            role=window.role_filter,
        )

    @router.get("/summary", response_model=RangeSummaryResponse)
    async def get_summary(request: Request, range: str | None = None) -> RangeSummaryResponse:
        await authorize(request, ANALYTICS_READERS)
        summary = await analytics_service.summarize_range(
            parse_report_range(range, default=ReportRange.WEEKLY)
        )
        return RangeSummaryResponse(
            range=summary.report_range,
            total_appointments=summary.total_appointments,
            new_patients=summary.new_patients,
            active_suburbs=summary.active_suburbs,
            active_cities=summary.active_cities,
        )

    @router.get("/chart/procedures", response_model=AggregationResponse)
    async def get_procedure_chart(
        request: Request,
        range: str | None = None,
    ) -> AggregationResponse:
        await authorize(request, ANALYTICS_READERS)
        return await aggregation(
            ranged_window(MetricKind.PROCEDURE_BREAKDOWN, range, default=None)
        )

    @router.get("/chart/patients", response_model=AggregationResponse)
    async def get_patient_chart(
        request: Request,
        range: str | None = None,
    ) -> AggregationResponse:
        await authorize(request, ANALYTICS_READERS)
        return await aggregation(
            ranged_window(MetricKind.PATIENT_TREND, range, default=ReportRange.WEEKLY)
        )

    @router.get("/chart/staff", response_model=AggregationResponse)
    async def get_staff_chart(
        request: Request,
        range: str | None = None,
        role: str | None = None,
    ) -> AggregationResponse:
        await authorize(request, ANALYTICS_READERS)
        return await aggregation(
            ranged_window(MetricKind.STAFF_LOAD, range, default=None, role=_parse_role(role))
        )

    @router.get("/popular", response_model=PopularActivityResponse)
    async def get_popular(
        request: Request,
        limit: int = Query(default=10),
    ) -> PopularActivityResponse:
        await authorize(request, ANALYTICS_READERS)
        return _popular_response(await analytics_service.popular_activity(limit=limit))

    @router.get("/milestones", response_model=MilestoneProgressResponse)
    async def get_milestones(request: Request) -> MilestoneProgressResponse:
        await authorize(request, ANY_AUTHENTICATED)
        progress = await analytics_service.milestone_progress()
        return MilestoneProgressResponse(
            milestones=[MilestoneProgressItem.from_progress(item) for item in progress.values()]
        )

    @router.get("/dashboard", response_model=DashboardResponse)
    async def get_dashboard(request: Request) -> DashboardResponse:
        await authorize(request, ANALYTICS_READERS)
        composite = await analytics_service.compute_dashboard_composite()
        return DashboardResponse(
            stats=DashboardStatsItem(
                appointments=composite.stats.appointments,
                users=composite.stats.users,
                procedures=composite.stats.procedures,
            ),
            popular=_popular_response(composite.popular),
            milestones=[
                MilestoneProgressItem.from_progress(item)
                for item in composite.milestones.values()
            ],
        )

    @router.get("/milestones/history", response_model=MilestoneHistoryResponse)
    async def get_milestone_history(
        request: Request,
        limit: int = Query(default=DEFAULT_HISTORY_LIMIT),
    ) -> MilestoneHistoryResponse:
        await authorize(request, AUDIT_READERS)
        records = await milestone_tracker.fetch_history(limit=limit)
        return MilestoneHistoryResponse(
            milestones=[MilestoneRecordItem.from_record(record) for record in records]
        )

    @router.get("/revenue", response_model=AggregationResponse)
    async def get_revenue(
        request: Request,
        range: str | None = None,
        role: str | None = None,
    ) -> AggregationResponse:
        await authorize(request, REVENUE_READERS)
        return await aggregation(
            ranged_window(
                MetricKind.REVENUE_BY_ROLE,
                range,
                default=ReportRange.MONTHLY,
                role=_parse_role(role),
            )
        )

    @router.post("/revenue/export")
    async def export_revenue(request: Request, payload: RevenueExportRequest) -> Response:
        await authorize(request, REVENUE_READERS)
        window = analytics_service.window_for_range(
            MetricKind.REVENUE_BY_ROLE,
            payload.range,
            role_filter=payload.role,
        )
        rendered = await report_service.export_report(
            window,
            payload.format,
            allowed_formats=REVENUE_EXPORT_FORMATS,
        )
        return _download(rendered)

    @router.get("/services/usage", response_model=AggregationResponse)
    async def get_service_usage(
        request: Request,
        range: str | None = None,
        role: str | None = None,
    ) -> AggregationResponse:
        await authorize(request, SERVICE_USAGE_READERS)
        return await aggregation(
            ranged_window(
                MetricKind.SERVICE_USAGE,
                range,
                default=ReportRange.MONTHLY,
                role=_parse_role(role),
            )
        )

    @router.post("/export")
    async def export_report(request: Request, payload: ExportRequest) -> Response:
        await authorize(request, ANALYTICS_READERS)
        window = analytics_service.window_for_range(
            payload.kind,
            payload.range,
            role_filter=payload.role,
        )
        rendered = await report_service.export_report(window, payload.format)
        return _download(rendered)

    @router.post("/email-report", response_model=DispatchResponse)
    async def email_report(request: Request, payload: EmailReportRequest) -> DispatchResponse:
        await authorize(request, ANALYTICS_READERS)
        window = analytics_service.window_for_range(
            payload.kind,
            payload.range,
            role_filter=payload.role,
        )
        result = await report_service.email_report(window, payload.format, payload.to)
        return DispatchResponse.from_result(result)

    @router.post("/sms-report", response_model=DispatchResponse)
    async def sms_report(request: Request, payload: SmsReportRequest) -> DispatchResponse:
        await authorize(request, ANALYTICS_READERS)
        window = analytics_service.window_for_range(payload.kind, payload.range)
        result = await report_service.sms_report(window, payload.to)
        return DispatchResponse.from_result(result)

    @router.get("/notification-logs", response_model=NotificationLogListResponse)
    async def list_notification_logs(
        request: Request,
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=50, ge=1, le=MAX_LOG_PAGE_SIZE),
        recipient: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        search: str | None = None,
        status: Literal["sent", "failed"] | None = None,
        channel: NotificationChannel | None = None,
    ) -> NotificationLogListResponse:
        await authorize(request, AUDIT_READERS)
        if start is not None and end is not None and end < start:
            raise AnalyticsValidationError("end must be greater than or equal to start")

        result = await notification_logs.list_logs(
            NotificationLogFilter(
                page=page,
                limit=limit,
                recipient=recipient,
                start=start,
                end=end,
                search=search,
                status=status,
                channel=channel,
            )
        )
        return NotificationLogListResponse(
            items=[
                NotificationLogItem(
                    id=item.id,
                    recipient=item.recipient,
                    channel=item.channel,
                    message=item.message,
                    status=item.status,
                    detail=item.detail,
                    type=item.log_type,
                    sent_at=item.sent_at,
                )
                for item in result.items
            ],
            page=result.page,
            limit=result.limit,
            total=result.total,
        )

    return router


def _parse_role(token: str | None) -> Role | None:
    if token is None or not token.strip():
        return None
    try:
        return Role(token.strip().lower())
    except ValueError as error:
        raise AnalyticsValidationError(f"unknown role: {token}") from error


def _popular_response(popular: PopularActivity) -> PopularActivityResponse:
    return PopularActivityResponse(
        times=AggregationResponse.from_result(popular.times, range_label="all-time"),
        locations=AggregationResponse.from_result(popular.locations, range_label="all-time"),
    )


def _download(rendered: RenderedReport) -> Response:
    return Response(
        content=rendered.content,
        media_type=rendered.media_type,
        headers={"Content-Disposition": f'attachment; filename="{rendered.filename}"'},
    )

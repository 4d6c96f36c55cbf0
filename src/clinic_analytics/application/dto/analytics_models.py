"""Pydantic request and response models for analytics HTTP endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from clinic_analytics.application.ports.analytics_query_port import AggregationResult
from clinic_analytics.application.ports.milestone_repository_port import MilestoneRecord
from clinic_analytics.application.ports.notification_channel_port import NotificationChannel
from clinic_analytics.application.services.milestone_tracker import MilestoneProgress
from clinic_analytics.application.services.notification_dispatcher import (
    DeliverySucceeded,
    DispatchResult,
)
from clinic_analytics.domain.auth.roles import Role
from clinic_analytics.domain.metric_window import MetricKind, ReportRange
from clinic_analytics.domain.milestones import MilestoneMetric


class StrictModel(BaseModel):
    """Base model with strict unknown-field rejection."""

    model_config = ConfigDict(extra="forbid")


class AggregationRowItem(StrictModel):
    labels: list[str]
    label: str
    value: int | float


class AggregationResponse(StrictModel):
    """One aggregation result; grouped kinds omit categories with no observations."""

    kind: MetricKind
    range: str
    role: str = "all"
    dimensions: list[str]
    value_name: str
    rows: list[AggregationRowItem]

    @classmethod
    def from_result(
        cls,
        result: AggregationResult,
        *,
        range_label: str,
        role: Role | None = None,
    ) -> AggregationResponse:
        return cls(
            kind=result.kind,
            range=range_label,
            role=role.value if role is not None else "all",
            dimensions=list(result.dimensions),
            value_name=result.value_name,
            rows=[
                AggregationRowItem(labels=list(row.labels), label=row.label, value=row.value)
                for row in result.rows
            ],
        )


class RangeSummaryResponse(StrictModel):
    range: ReportRange
    total_appointments: int = Field(ge=0)
    new_patients: int = Field(ge=0)
    active_suburbs: int = Field(ge=0)
    active_cities: int = Field(ge=0)


class PopularActivityResponse(StrictModel):
    times: AggregationResponse
    locations: AggregationResponse


class MilestoneRecordItem(StrictModel):
    id: int
    metric: MilestoneMetric
    threshold: int
    reached_at: datetime

    @classmethod
    def from_record(cls, record: MilestoneRecord) -> MilestoneRecordItem:
        return cls(
            id=record.id,
            metric=record.metric,
            threshold=record.threshold,
            reached_at=record.reached_at,
        )


class MilestoneProgressItem(StrictModel):
    """Progress toward the next tier; `next_goal` is `maxed` past the last tier."""

    metric: MilestoneMetric
    current: int = Field(ge=0)
    next_goal: int | Literal["maxed"]
    newly_reached: list[MilestoneRecordItem]

    @classmethod
    def from_progress(cls, progress: MilestoneProgress) -> MilestoneProgressItem:
        return cls(
            metric=progress.metric,
            current=progress.current,
            next_goal=progress.next_goal,
            newly_reached=[
                MilestoneRecordItem.from_record(record) for record in progress.newly_reached
            ],
        )


class MilestoneProgressResponse(StrictModel):
    milestones: list[MilestoneProgressItem]


class MilestoneHistoryResponse(StrictModel):
    milestones: list[MilestoneRecordItem]


class DashboardStatsItem(StrictModel):
    appointments: int = Field(ge=0)
    users: int = Field(ge=0)
    procedures: int = Field(ge=0)


class DashboardResponse(StrictModel):
    stats: DashboardStatsItem
    popular: PopularActivityResponse
    milestones: list[MilestoneProgressItem]


class ExportRequest(StrictModel):
    """Body for report export; `format` stays a raw token so unknown values map to 400."""

    kind: MetricKind = MetricKind.PROCEDURE_BREAKDOWN
    range: ReportRange = ReportRange.WEEKLY
    format: str = "excel"
    role: Role | None = None


class RevenueExportRequest(StrictModel):
    range: ReportRange = ReportRange.MONTHLY
    format: str = "excel"
    role: Role | None = None


class EmailReportRequest(ExportRequest):
    to: list[str] = Field(min_length=1)


class SmsReportRequest(StrictModel):
    kind: MetricKind = MetricKind.PROCEDURE_BREAKDOWN
    range: ReportRange = ReportRange.WEEKLY
    to: list[str] = Field(min_length=1)


class DeliveryOutcomeItem(StrictModel):
    recipient: str
    channel: NotificationChannel
    status: Literal["sent", "failed"]
    detail: str


class DispatchResponse(StrictModel):
    """Per-recipient outcomes of one best-effort fan-out."""

    delivered: int = Field(ge=0)
    failed: int = Field(ge=0)
    outcomes: list[DeliveryOutcomeItem]

    @classmethod
    def from_result(cls, result: DispatchResult) -> DispatchResponse:
        items: list[DeliveryOutcomeItem] = []
        for outcome in result.outcomes:
            if isinstance(outcome, DeliverySucceeded):
                status: Literal["sent", "failed"] = "sent"
                detail = outcome.status
            else:
                status = "failed"
                detail = outcome.reason
            items.append(
                DeliveryOutcomeItem(
                    recipient=outcome.recipient.address,
                    channel=outcome.recipient.channel,
                    status=status,
                    detail=detail,
                )
            )
        return cls(
            delivered=len(result.delivered),
            failed=len(result.failed),
            outcomes=items,
        )


class NotificationLogItem(StrictModel):
    id: int
    recipient: str
    channel: NotificationChannel
    message: str
    status: Literal["sent", "failed"]
    detail: str | None
    type: str
    sent_at: datetime


class NotificationLogListResponse(StrictModel):
    """Paginated notification delivery log response model."""

    items: list[NotificationLogItem]
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total: int = Field(ge=0)

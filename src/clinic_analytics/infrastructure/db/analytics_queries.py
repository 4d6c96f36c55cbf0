"""SQLAlchemy query adapter for windowed clinic analytics aggregations."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_analytics.application.ports.analytics_query_port import (
    AggregationResult,
    AggregationRow,
    AnalyticsQueryPort,
    Numeric,
)
from clinic_analytics.domain.auth.roles import Role
from clinic_analytics.domain.errors import AggregationFailedError, AnalyticsValidationError
from clinic_analytics.domain.metric_window import MetricKind, MetricWindow
from clinic_analytics.infrastructure.db.metadata import (
    appointment_services,
    appointments,
    payments,
    services,
    users,
)

logger = logging.getLogger(__name__)

CONFIRMED_PAYMENT_STATUS = "confirmed"
_WEEKDAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)
_ROLE_FILTERED_KINDS = frozenset(
    {MetricKind.STAFF_LOAD, MetricKind.REVENUE_BY_ROLE, MetricKind.SERVICE_USAGE}
)


@dataclass(frozen=True)
class _QueryPlan:
    """Statement plus the shape used to convert its rows into an aggregation result."""

    statement: sa.Select[Any]
    dimensions: tuple[str, ...]
    value_name: str
    label_formatters: tuple[Callable[[Any], str], ...] = ()


def _window_clauses(column: sa.ColumnElement[Any], window: MetricWindow) -> list[Any]:
    """Return bound-parameter clauses restricting `column` to `[start, end)`."""

    clauses: list[Any] = []
    if window.start is not None:
        clauses.append(column >= window.start)
    if window.end is not None:
        clauses.append(column < window.end)
    return clauses


def _text_label(value: Any) -> str:
    if value is None:
        return "unspecified"
    return str(value)


def _date_label(value: Any) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]


def _weekday_label(value: Any) -> str:
    return _WEEKDAY_NAMES[int(value) % 7]


def _hour_label(value: Any) -> str:
    return f"{int(value):02d}:00"


def _numeric(value: Any) -> Numeric:
    if value is None:
        return 0
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, float):
        return value
    return int(value)


class SqlAlchemyAnalyticsQueries(AnalyticsQueryPort):
    """Aggregate appointment, user and payment rows into labelled numeric series."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._planners: dict[MetricKind, Callable[[MetricWindow], _QueryPlan]] = {
            MetricKind.APPOINTMENT_COUNT: self._plan_appointment_count,
            MetricKind.NEW_PATIENTS: self._plan_new_patients,
            MetricKind.DISTINCT_SUBURBS: self._plan_distinct_suburbs,
            MetricKind.DISTINCT_CITIES: self._plan_distinct_cities,
            MetricKind.PROCEDURE_BREAKDOWN: self._plan_procedure_breakdown,
            MetricKind.STAFF_LOAD: self._plan_staff_load,
            MetricKind.REVENUE_BY_ROLE: self._plan_revenue_by_role,
            MetricKind.TOTAL_USERS: self._plan_total_users,
            MetricKind.DISTINCT_PROCEDURES: self._plan_distinct_procedures,
            MetricKind.SERVICE_USAGE: self._plan_service_usage,
            MetricKind.PATIENT_TREND: self._plan_patient_trend,
            MetricKind.POPULAR_TIMES: self._plan_popular_times,
            MetricKind.POPULAR_LOCATIONS: self._plan_popular_locations,
        }

    async def aggregate(
        self,
        window: MetricWindow,
        *,
        limit: int | None = None,
    ) -> AggregationResult:
        """Return rows for `window`; categories with no observations are omitted."""

        if window.role_filter is not None and window.kind not in _ROLE_FILTERED_KINDS:
            raise AnalyticsValidationError(
                f"role filter is not supported for metric: {window.kind.value}"
            )

        plan = self._planners[window.kind](window)
        statement = plan.statement
        if limit is not None and plan.dimensions:
            statement = statement.limit(limit)

        try:
            async with self._session_factory() as session:
                fetched = (await session.execute(statement)).all()
        except SQLAlchemyError as error:
            logger.exception("analytics_query_failed kind=%s", window.kind.value)
            raise AggregationFailedError(kind=window.kind.value) from error

        rows = tuple(_to_row(plan, row) for row in fetched)
        logger.debug("analytics_query_completed kind=%s rows=%s", window.kind.value, len(rows))
        return AggregationResult(
            kind=window.kind,
            dimensions=plan.dimensions,
            value_name=plan.value_name,
            rows=rows,
        )

    def _plan_appointment_count(self, window: MetricWindow) -> _QueryPlan:
        statement = sa.select(sa.func.count()).select_from(appointments).where(
            *_window_clauses(appointments.c.created_at, window)
        )
        return _QueryPlan(statement=statement, dimensions=(), value_name="total_appointments")

    def _plan_new_patients(self, window: MetricWindow) -> _QueryPlan:
        statement = sa.select(sa.func.count()).select_from(users).where(
            users.c.role == Role.PATIENT.value,
            *_window_clauses(users.c.created_at, window),
        )
        return _QueryPlan(statement=statement, dimensions=(), value_name="new_patients")

    def _plan_distinct_suburbs(self, window: MetricWindow) -> _QueryPlan:
        statement = sa.select(sa.func.count(sa.distinct(users.c.suburb))).where(
            users.c.suburb.is_not(None),
            *_window_clauses(users.c.created_at, window),
        )
        return _QueryPlan(statement=statement, dimensions=(), value_name="active_suburbs")

    def _plan_distinct_cities(self, window: MetricWindow) -> _QueryPlan:
        statement = sa.select(sa.func.count(sa.distinct(users.c.city))).where(
            users.c.city.is_not(None),
            *_window_clauses(users.c.created_at, window),
        )
        return _QueryPlan(statement=statement, dimensions=(), value_name="active_cities")

    def _plan_total_users(self, window: MetricWindow) -> _QueryPlan:
        statement = sa.select(sa.func.count()).select_from(users).where(
            *_window_clauses(users.c.created_at, window)
        )
        return _QueryPlan(statement=statement, dimensions=(), value_name="total_users")

    def _plan_distinct_procedures(self, window: MetricWindow) -> _QueryPlan:
        statement = sa.select(sa.func.count(sa.distinct(appointments.c.procedure_type))).where(
            *_window_clauses(appointments.c.created_at, window)
        )
        return _QueryPlan(statement=statement, dimensions=(), value_name="procedures")

    def _plan_procedure_breakdown(self, window: MetricWindow) -> _QueryPlan:
        count = sa.func.count().label("count")
        statement = (
            sa.select(appointments.c.procedure_type, count)
            .where(*_window_clauses(appointments.c.created_at, window))
            .group_by(appointments.c.procedure_type)
            .order_by(count.desc(), appointments.c.procedure_type)
        )
        return _QueryPlan(
            statement=statement,
            dimensions=("procedure_type",),
            value_name="count",
        )

    def _plan_staff_load(self, window: MetricWindow) -> _QueryPlan:
        count = sa.func.count(appointments.c.id).label("count")
        clauses = _window_clauses(appointments.c.created_at, window)
        if window.role_filter is not None:
            clauses.append(users.c.role == window.role_filter.value)
        statement = (
            sa.select(users.c.username, count)
            .select_from(appointments.join(users, appointments.c.staff_id == users.c.id))
            .where(*clauses)
            .group_by(users.c.username)
            .order_by(count.desc(), users.c.username)
        )
        return _QueryPlan(statement=statement, dimensions=("staff",), value_name="count")

    def _plan_revenue_by_role(self, window: MetricWindow) -> _QueryPlan:
        total = sa.func.sum(services.c.price).label("total_revenue")
        clauses = [
            payments.c.status == CONFIRMED_PAYMENT_STATUS,
            *_window_clauses(payments.c.created_at, window),
        ]
        if window.role_filter is not None:
            clauses.append(services.c.role == window.role_filter.value)
        joined = (
            payments.join(appointments, payments.c.appointment_id == appointments.c.id)
            .join(
                appointment_services,
                appointment_services.c.appointment_id == appointments.c.id,
            )
            .join(services, appointment_services.c.service_id == services.c.id)
        )
        statement = (
            sa.select(services.c.role, payments.c.method, total)
            .select_from(joined)
            .where(*clauses)
            .group_by(services.c.role, payments.c.method)
            .order_by(services.c.role, payments.c.method)
        )
        return _QueryPlan(
            statement=statement,
            dimensions=("role", "method"),
            value_name="total_revenue",
        )

    def _plan_service_usage(self, window: MetricWindow) -> _QueryPlan:
        usage = sa.func.count().label("usage_count")
        clauses = _window_clauses(appointments.c.created_at, window)
        if window.role_filter is not None:
            clauses.append(services.c.role == window.role_filter.value)
        joined = appointment_services.join(
            services,
            appointment_services.c.service_id == services.c.id,
        ).join(appointments, appointment_services.c.appointment_id == appointments.c.id)
        statement = (
            sa.select(services.c.name, services.c.role, usage)
            .select_from(joined)
            .where(*clauses)
            .group_by(services.c.id, services.c.name, services.c.role)
            .order_by(usage.desc(), services.c.name)
        )
        return _QueryPlan(
            statement=statement,
            dimensions=("service_name", "role"),
            value_name="usage_count",
        )

    def _plan_patient_trend(self, window: MetricWindow) -> _QueryPlan:
        day = sa.func.date(users.c.created_at).label("date")
        statement = (
            sa.select(day, sa.func.count().label("count"))
            .where(
                users.c.role == Role.PATIENT.value,
                *_window_clauses(users.c.created_at, window),
            )
            .group_by(day)
            .order_by(day.asc())
        )
        return _QueryPlan(
            statement=statement,
            dimensions=("date",),
            value_name="count",
            label_formatters=(_date_label,),
        )

    def _plan_popular_times(self, window: MetricWindow) -> _QueryPlan:
        weekday = sa.extract("dow", appointments.c.created_at).label("day")
        hour = sa.extract("hour", appointments.c.created_at).label("hour")
        count = sa.func.count().label("count")
        statement = (
            sa.select(weekday, hour, count)
            .where(*_window_clauses(appointments.c.created_at, window))
            .group_by(weekday, hour)
            .order_by(count.desc(), weekday, hour)
        )
        return _QueryPlan(
            statement=statement,
            dimensions=("day", "hour"),
            value_name="count",
            label_formatters=(_weekday_label, _hour_label),
        )

    def _plan_popular_locations(self, window: MetricWindow) -> _QueryPlan:
        count = sa.func.count().label("count")
        statement = (
            sa.select(users.c.suburb, count)
            .where(
                users.c.suburb.is_not(None),
                *_window_clauses(users.c.created_at, window),
            )
            .group_by(users.c.suburb)
            .order_by(count.desc(), users.c.suburb)
        )
        return _QueryPlan(statement=statement, dimensions=("suburb",), value_name="count")


def _to_row(plan: _QueryPlan, row: sa.Row[Any]) -> AggregationRow:
    values = tuple(row)
    label_values = values[: len(plan.dimensions)]
    formatters = plan.label_formatters or tuple(_text_label for _ in plan.dimensions)
    labels = tuple(
        formatter(value) for formatter, value in zip(formatters, label_values, strict=True)
    )
    return AggregationRow(labels=labels, value=_numeric(values[-1]))

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.config import Config

from alembic import command
from clinic_analytics.domain.auth.roles import Role
from clinic_analytics.domain.errors import AnalyticsValidationError
from clinic_analytics.domain.metric_window import MetricKind, MetricWindow, ReportRange
from clinic_analytics.infrastructure.db.analytics_queries import SqlAlchemyAnalyticsQueries
from clinic_analytics.infrastructure.db.metadata import (
    appointment_services,
    appointments,
    payments,
    services,
    users,
)
from clinic_analytics.infrastructure.db.session import create_session_factory

NOW = datetime(2026, 3, 20, 12, 0, tzinfo=UTC)


def _upgrade_head(tmp_path: Path, filename: str) -> tuple[str, str]:
    db_path = tmp_path / filename
    sync_url = f"sqlite+pysqlite:///{db_path}"
    async_url = f"sqlite+aiosqlite:///{db_path}"

    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", sync_url)
    command.upgrade(alembic_config, "head")

    return sync_url, async_url


def _seed_clinic(sync_url: str) -> None:
    engine = sa.create_engine(sync_url)
    recent = NOW - timedelta(days=2)
    old = NOW - timedelta(days=40)
    with engine.begin() as connection:
        connection.execute(
            sa.insert(users),
            [
                {"id": 1, "username": "dr-moyo", "role": "doctor", "created_at": old},
                {"id": 2, "username": "dent-ncube", "role": "dentist", "created_at": old},
                {
                    "id": 3,
                    "username": "p-one",
                    "role": "patient",
                    "suburb": "Avondale",
                    "city": "Harare",
                    "created_at": recent,
                },
                {
                    "id": 4,
                    "username": "p-two",
                    "role": "patient",
                    "suburb": "Borrowdale",
                    "city": "Harare",
                    "created_at": recent,
                },
                {
                    "id": 5,
                    "username": "p-old",
                    "role": "patient",
                    "suburb": "Avondale",
                    "city": "Bulawayo",
                    "created_at": old,
                },
            ],
        )
        connection.execute(
            sa.insert(appointments),
            [
                {
                    "id": 1,
                    "patient_id": 3,
                    "staff_id": 1,
                    "procedure_type": "consultation",
                    "created_at": recent,
                },
                {
                    "id": 2,
                    "patient_id": 4,
                    "staff_id": 1,
                    "procedure_type": "consultation",
                    "created_at": recent,
                },
                {
                    "id": 3,
                    "patient_id": 4,
                    "staff_id": 2,
                    "procedure_type": "extraction",
                    "created_at": recent,
                },
                {
                    "id": 4,
                    "patient_id": 5,
                    "staff_id": 2,
                    "procedure_type": "cleaning",
                    "created_at": old,
                },
            ],
        )
        connection.execute(
            sa.insert(services),
            [
                {"id": 1, "name": "General consult", "role": "doctor", "price": Decimal("40.00")},
                {"id": 2, "name": "Extraction", "role": "dentist", "price": Decimal("75.50")},
            ],
        )
        connection.execute(
            sa.insert(appointment_services),
            [
                {"appointment_id": 1, "service_id": 1},
                {"appointment_id": 2, "service_id": 1},
                {"appointment_id": 3, "service_id": 2},
            ],
        )
        connection.execute(
            sa.insert(payments),
            [
                {
                    "appointment_id": 1,
                    "method": "cash",
                    "amount": Decimal("40.00"),
                    "status": "confirmed",
                    "created_at": recent,
                },
                {
                    "appointment_id": 2,
                    "method": "ecocash",
                    "amount": Decimal("40.00"),
                    "status": "pending",
                    "created_at": recent,
                },
                {
                    "appointment_id": 3,
                    "method": "cash",
                    "amount": Decimal("75.50"),
                    "status": "confirmed",
                    "created_at": recent,
                },
            ],
        )


@pytest.mark.asyncio
async def test_scalar_counts_respect_window_lower_bound(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "analytics_scalar.db")
    _seed_clinic(sync_url)
    queries = SqlAlchemyAnalyticsQueries(create_session_factory(async_url))

    def weekly(kind: MetricKind) -> MetricWindow:
        return MetricWindow.for_range(kind, ReportRange.WEEKLY, now=NOW)

    assert (await queries.aggregate(weekly(MetricKind.APPOINTMENT_COUNT))).scalar() == 3
    assert (await queries.aggregate(weekly(MetricKind.NEW_PATIENTS))).scalar() == 2
    assert (await queries.aggregate(weekly(MetricKind.DISTINCT_SUBURBS))).scalar() == 2
    assert (await queries.aggregate(weekly(MetricKind.DISTINCT_CITIES))).scalar() == 1
    all_time = MetricWindow.all_time(MetricKind.APPOINTMENT_COUNT)
    assert (await queries.aggregate(all_time)).scalar() == 4


@pytest.mark.asyncio
async def test_procedure_breakdown_omits_categories_without_observations(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "analytics_breakdown.db")
    _seed_clinic(sync_url)
    queries = SqlAlchemyAnalyticsQueries(create_session_factory(async_url))

    result = await queries.aggregate(
        MetricWindow.for_range(MetricKind.PROCEDURE_BREAKDOWN, ReportRange.WEEKLY, now=NOW)
    )

    assert [(row.label, row.value) for row in result.rows] == [
        ("consultation", 2),
        ("extraction", 1),
    ]
    assert result.as_records() == [
        {"procedure_type": "consultation", "count": 2},
        {"procedure_type": "extraction", "count": 1},
    ]


@pytest.mark.asyncio
async def test_revenue_counts_only_confirmed_payments(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "analytics_revenue.db")
    _seed_clinic(sync_url)
    queries = SqlAlchemyAnalyticsQueries(create_session_factory(async_url))

    result = await queries.aggregate(
        MetricWindow.for_range(MetricKind.REVENUE_BY_ROLE, ReportRange.MONTHLY, now=NOW)
    )

    assert [(row.labels, row.value) for row in result.rows] == [
        (("dentist", "cash"), 75.5),
        (("doctor", "cash"), 40.0),
    ]


@pytest.mark.asyncio
async def test_role_filter_narrows_staff_load_and_service_usage(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "analytics_role_filter.db")
    _seed_clinic(sync_url)
    queries = SqlAlchemyAnalyticsQueries(create_session_factory(async_url))

    staff = await queries.aggregate(
        MetricWindow.all_time(MetricKind.STAFF_LOAD, role_filter=Role.DENTIST)
    )
    usage = await queries.aggregate(
        MetricWindow.all_time(MetricKind.SERVICE_USAGE, role_filter=Role.DOCTOR)
    )

    assert [(row.label, row.value) for row in staff.rows] == [("dent-ncube", 2)]
    assert [(row.labels, row.value) for row in usage.rows] == [
        (("General consult", "doctor"), 2),
    ]


@pytest.mark.asyncio
async def test_role_filter_on_unsupported_kind_is_rejected(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "analytics_role_reject.db")
    queries = SqlAlchemyAnalyticsQueries(create_session_factory(async_url))

    with pytest.raises(AnalyticsValidationError, match="role filter is not supported"):
        await queries.aggregate(
            MetricWindow.all_time(MetricKind.PROCEDURE_BREAKDOWN, role_filter=Role.DOCTOR)
        )


@pytest.mark.asyncio
async def test_patient_trend_groups_by_day_and_popular_locations_limit(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "analytics_trend.db")
    _seed_clinic(sync_url)
    queries = SqlAlchemyAnalyticsQueries(create_session_factory(async_url))

    trend = await queries.aggregate(
        MetricWindow.for_range(MetricKind.PATIENT_TREND, ReportRange.WEEKLY, now=NOW)
    )
    locations = await queries.aggregate(
        MetricWindow.all_time(MetricKind.POPULAR_LOCATIONS),
        limit=1,
    )

    assert [(row.label, row.value) for row in trend.rows] == [("2026-03-18", 2)]
    assert [(row.label, row.value) for row in locations.rows] == [("Avondale", 2)]


@pytest.mark.asyncio
async def test_empty_store_yields_zero_scalars_and_no_grouped_rows(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "analytics_empty.db")
    queries = SqlAlchemyAnalyticsQueries(create_session_factory(async_url))

    count = await queries.aggregate(MetricWindow.all_time(MetricKind.APPOINTMENT_COUNT))
    breakdown = await queries.aggregate(MetricWindow.all_time(MetricKind.PROCEDURE_BREAKDOWN))

    assert count.scalar() == 0
    assert breakdown.rows == ()

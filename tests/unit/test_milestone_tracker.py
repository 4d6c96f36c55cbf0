from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from clinic_analytics.application.ports.milestone_repository_port import MilestoneRecord
from clinic_analytics.application.ports.notification_channel_port import (
    NotificationChannel,
    Recipient,
)
from clinic_analytics.application.ports.notification_log_repository_port import (
    NotificationLogCreateInput,
)
from clinic_analytics.application.services.milestone_tracker import (
    MilestoneTracker,
    render_milestone_message,
)
from clinic_analytics.application.services.notification_dispatcher import NotificationDispatcher
from clinic_analytics.domain.errors import AnalyticsValidationError
from clinic_analytics.domain.milestones import MAXED, MilestoneMetric, MilestoneTiers

FIXED_NOW = datetime(2026, 4, 1, 9, 30, tzinfo=UTC)


@dataclass
class FakeMilestoneRepository:
    records: dict[tuple[MilestoneMetric, int], MilestoneRecord] = field(default_factory=dict)
    insert_attempts: int = 0

    async def record_if_absent(
        self,
        *,
        metric: MilestoneMetric,
        threshold: int,
        reached_at: datetime,
    ) -> MilestoneRecord | None:
        self.insert_attempts += 1
        key = (metric, threshold)
        if key in self.records:
            return None
        record = MilestoneRecord(
            id=len(self.records) + 1,
            metric=metric,
            threshold=threshold,
            reached_at=reached_at,
        )
        self.records[key] = record
        return record

    async def list_recent(self, *, limit: int) -> list[MilestoneRecord]:
        ordered = sorted(self.records.values(), key=lambda item: item.id, reverse=True)
        return ordered[:limit]


@dataclass
class FakeEmailChannel:
    fail: bool = False
    subjects: list[str] = field(default_factory=list)

    async def send(self, *, recipient: str, subject: str, body: str, attachment=None) -> str:
        if self.fail:
            raise RuntimeError("smtp down")
        self.subjects.append(subject)
        return "sent"


@dataclass
class FakeSmsChannel:
    bodies: list[str] = field(default_factory=list)

    async def send(self, *, recipient: str, body: str) -> str:
        self.bodies.append(body)
        return "Success"


@dataclass
class FakeNotificationLogRepository:
    rows: list[NotificationLogCreateInput] = field(default_factory=list)

    async def append(self, payload: NotificationLogCreateInput) -> int:
        self.rows.append(payload)
        return len(self.rows)


def _tracker(
    repository: FakeMilestoneRepository,
    *,
    email: FakeEmailChannel | None = None,
    sms: FakeSmsChannel | None = None,
    logs: FakeNotificationLogRepository | None = None,
) -> MilestoneTracker:
    dispatcher = NotificationDispatcher(
        email_channel=email or FakeEmailChannel(),
        sms_channel=sms or FakeSmsChannel(),
        log_repository=logs or FakeNotificationLogRepository(),
    )
    return MilestoneTracker(
        repository=repository,
        dispatcher=dispatcher,
        recipients=[
            Recipient(channel=NotificationChannel.EMAIL, address="owner@example.org"),
            Recipient(channel=NotificationChannel.SMS, address="+263770000001"),
        ],
        now=lambda: FIXED_NOW,
    )


@pytest.mark.asyncio
async def test_crossing_several_tiers_records_each_once_in_ascending_order() -> None:
    repository = FakeMilestoneRepository()
    email = FakeEmailChannel()

    progress = await _tracker(repository, email=email).evaluate(
        metric=MilestoneMetric.USERS,
        current=1200,
    )

    assert [record.threshold for record in progress.newly_reached] == [100, 500, 1000]
    assert progress.next_goal == 5000
    assert progress.maxed is False
    assert all(record.reached_at == FIXED_NOW for record in progress.newly_reached)
    assert email.subjects == [
        "Milestone Unlocked: 100 users",
        "Milestone Unlocked: 500 users",
        "Milestone Unlocked: 1000 users",
    ]


@pytest.mark.asyncio
async def test_repeated_evaluation_is_idempotent() -> None:
    repository = FakeMilestoneRepository()
    logs = FakeNotificationLogRepository()
    tracker = _tracker(repository, logs=logs)

    await tracker.evaluate(metric=MilestoneMetric.SUBURBS, current=12)
    second = await tracker.evaluate(metric=MilestoneMetric.SUBURBS, current=12)

    assert second.newly_reached == ()
    assert sorted(threshold for _, threshold in repository.records) == [5, 10]
    # two milestones, two recipients each
    assert len(logs.rows) == 4


@pytest.mark.asyncio
async def test_count_drop_never_removes_records() -> None:
    repository = FakeMilestoneRepository()
    tracker = _tracker(repository)

    await tracker.evaluate(metric=MilestoneMetric.CITIES, current=6)
    progress = await tracker.evaluate(metric=MilestoneMetric.CITIES, current=2)

    assert progress.next_goal == 3
    assert set(repository.records) == {
        (MilestoneMetric.CITIES, 3),
        (MilestoneMetric.CITIES, 5),
    }


@pytest.mark.asyncio
async def test_past_last_tier_reports_maxed() -> None:
    tracker = _tracker(FakeMilestoneRepository())

    progress = await tracker.evaluate(metric=MilestoneMetric.CITIES, current=25)

    assert progress.next_goal == MAXED
    assert progress.maxed is True


@pytest.mark.asyncio
async def test_failed_announcement_still_records_milestone() -> None:
    repository = FakeMilestoneRepository()
    tracker = MilestoneTracker(
        repository=repository,
        dispatcher=NotificationDispatcher(
            email_channel=FakeEmailChannel(fail=True),
            sms_channel=FakeSmsChannel(),
            log_repository=FakeNotificationLogRepository(),
        ),
        recipients=[Recipient(channel=NotificationChannel.EMAIL, address="owner@example.org")],
        now=lambda: FIXED_NOW,
    )

    progress = await tracker.evaluate(metric=MilestoneMetric.USERS, current=100)

    assert [record.threshold for record in progress.newly_reached] == [100]
    assert (MilestoneMetric.USERS, 100) in repository.records


@pytest.mark.asyncio
async def test_custom_tiers_are_injected() -> None:
    tracker = MilestoneTracker(
        repository=FakeMilestoneRepository(),
        tiers=MilestoneTiers(tiers_by_metric={MilestoneMetric.USERS: (2, 4)}),
    )

    progress = await tracker.evaluate(metric=MilestoneMetric.USERS, current=3)

    assert [record.threshold for record in progress.newly_reached] == [2]
    assert progress.next_goal == 4


@pytest.mark.asyncio
async def test_fetch_history_validates_limit() -> None:
    tracker = _tracker(FakeMilestoneRepository())

    with pytest.raises(AnalyticsValidationError, match="between 1 and 500"):
        await tracker.fetch_history(limit=0)
    with pytest.raises(AnalyticsValidationError):
        await tracker.fetch_history(limit=501)


@pytest.mark.asyncio
async def test_fetch_history_returns_newest_first() -> None:
    repository = FakeMilestoneRepository()
    tracker = _tracker(repository)
    await tracker.evaluate(metric=MilestoneMetric.CITIES, current=10)

    history = await tracker.fetch_history(limit=2)

    assert [record.threshold for record in history] == [10, 5]


def test_milestone_message_wording() -> None:
    message = render_milestone_message(
        MilestoneRecord(id=1, metric=MilestoneMetric.USERS, threshold=500, reached_at=FIXED_NOW)
    )

    assert message.subject == "Milestone Unlocked: 500 users"
    assert message.log_type == "milestone"
    assert message.body_for(NotificationChannel.SMS).startswith("Milestone reached: 500 users!")

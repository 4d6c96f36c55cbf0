"""Port for the append-only notification delivery log."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Protocol

from clinic_analytics.application.ports.notification_channel_port import NotificationChannel

DeliveryStatus = Literal["sent", "failed"]


@dataclass(frozen=True)
class NotificationLogCreateInput:
    """Input payload for one delivery attempt log row."""

    recipient: str
    channel: NotificationChannel
    message: str
    status: DeliveryStatus
    log_type: str
    detail: str | None = None


@dataclass(frozen=True)
class NotificationLogRecord:
    """Persisted delivery attempt."""

    id: int
    recipient: str
    channel: NotificationChannel
    message: str
    status: DeliveryStatus
    detail: str | None
    log_type: str
    sent_at: datetime


@dataclass(frozen=True)
class NotificationLogFilter:
    """Filters and pagination for notification log browsing."""

    page: int = 1
    limit: int = 50
    recipient: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    search: str | None = None
    status: DeliveryStatus | None = None
    channel: NotificationChannel | None = None


@dataclass(frozen=True)
class NotificationLogPage:
    """One page of notification log rows plus the unpaginated total."""

    items: list[NotificationLogRecord]
    page: int
    limit: int
    total: int


class NotificationLogRepositoryPort(Protocol):
    """Async notification log contract."""

    async def append(self, payload: NotificationLogCreateInput) -> int:
        """Append one attempt row and return its numeric id."""

    async def list_logs(self, filters: NotificationLogFilter) -> NotificationLogPage:
        """Return filtered log rows ordered newest first."""

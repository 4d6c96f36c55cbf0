"""Delivery channel contracts used by the notification dispatcher."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Protocol


class NotificationChannel(StrEnum):
    """Outbound delivery channels."""

    EMAIL = "email"
    SMS = "sms"


class DeliveryChannelError(RuntimeError):
    """Raised by channel adapters when one delivery attempt fails."""


@dataclass(frozen=True)
class Recipient:
    """One delivery target tagged with the channel used to reach it."""

    channel: NotificationChannel
    address: str


class EmailChannelPort(Protocol):
    """Transactional email sender."""

    async def send(
        self,
        *,
        recipient: str,
        subject: str,
        body: str,
        attachment: Path | None = None,
    ) -> str:
        """Send one email and return a provider status marker; raise on failure."""


class SmsChannelPort(Protocol):
    """SMS gateway sender."""

    async def send(self, *, recipient: str, body: str) -> str:
        """Send one SMS and return a provider status marker; raise on failure."""

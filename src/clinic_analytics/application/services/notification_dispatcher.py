"""Best-effort fan-out of report and milestone notifications over email and SMS."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from clinic_analytics.application.ports.notification_channel_port import (
    EmailChannelPort,
    NotificationChannel,
    Recipient,
    SmsChannelPort,
)
from clinic_analytics.application.ports.notification_log_repository_port import (
    NotificationLogCreateInput,
    NotificationLogRepositoryPort,
)
from clinic_analytics.domain.errors import NoDeliveriesSucceededError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationMessage:
    """Content delivered to every recipient of one fan-out.

    `sms_body` overrides `body` for SMS recipients; attachments are only
    sent over email.
    """

    subject: str
    body: str
    log_type: str
    sms_body: str | None = None
    attachment: Path | None = None

    def body_for(self, channel: NotificationChannel) -> str:
        if channel is NotificationChannel.SMS and self.sms_body is not None:
            return self.sms_body
        return self.body


@dataclass(frozen=True)
class DeliverySucceeded:
    """Recipient accepted by the channel."""

    recipient: Recipient
    status: str


@dataclass(frozen=True)
class DeliveryFailed:
    """Recipient delivery failed; the reason was logged."""

    recipient: Recipient
    reason: str


DeliveryOutcome = DeliverySucceeded | DeliveryFailed


@dataclass(frozen=True)
class DispatchResult:
    """Per-recipient outcomes for one fan-out, in recipient order."""

    outcomes: tuple[DeliveryOutcome, ...]

    @property
    def delivered(self) -> tuple[DeliverySucceeded, ...]:
        return tuple(item for item in self.outcomes if isinstance(item, DeliverySucceeded))

    @property
    def failed(self) -> tuple[DeliveryFailed, ...]:
        return tuple(item for item in self.outcomes if isinstance(item, DeliveryFailed))

    @property
    def any_delivered(self) -> bool:
        return bool(self.delivered)

    def require_any_delivered(self) -> DispatchResult:
        """Return self when at least one recipient succeeded, else raise."""

        if not self.any_delivered:
            raise NoDeliveriesSucceededError(attempted=len(self.outcomes))
        return self


class NotificationDispatcher:
    """Deliver one message to each recipient independently and log every attempt once."""

    def __init__(
        self,
        *,
        email_channel: EmailChannelPort,
        sms_channel: SmsChannelPort,
        log_repository: NotificationLogRepositoryPort,
    ) -> None:
        self._email_channel = email_channel
        self._sms_channel = sms_channel
        self._log_repository = log_repository

    async def dispatch(
        self,
        message: NotificationMessage,
        recipients: Sequence[Recipient],
    ) -> DispatchResult:
        """Send `message` to every recipient; failures are recorded, never raised."""

        outcomes: list[DeliveryOutcome] = []
        for recipient in recipients:
            outcome = await self._deliver(message=message, recipient=recipient)
            await self._log_attempt(message=message, outcome=outcome)
            outcomes.append(outcome)

        result = DispatchResult(outcomes=tuple(outcomes))
        logger.info(
            "notification_dispatch_completed log_type=%s attempted=%s delivered=%s failed=%s",
            message.log_type,
            len(result.outcomes),
            len(result.delivered),
            len(result.failed),
        )
        return result

    async def _deliver(
        self,
        *,
        message: NotificationMessage,
        recipient: Recipient,
    ) -> DeliveryOutcome:
        try:
            if recipient.channel is NotificationChannel.SMS:
                status = await self._sms_channel.send(
                    recipient=recipient.address,
                    body=message.body_for(NotificationChannel.SMS),
                )
            else:
                status = await self._email_channel.send(
                    recipient=recipient.address,
                    subject=message.subject,
                    body=message.body_for(NotificationChannel.EMAIL),
                    attachment=message.attachment,
                )
        except Exception as error:  # noqa: BLE001
            logger.warning(
                "notification_delivery_failed channel=%s recipient=%s log_type=%s error=%s",
                recipient.channel.value,
                recipient.address,
                message.log_type,
                error,
            )
            return DeliveryFailed(recipient=recipient, reason=str(error) or type(error).__name__)

        return DeliverySucceeded(recipient=recipient, status=status)

    async def _log_attempt(self, *, message: NotificationMessage, outcome: DeliveryOutcome) -> None:
        recipient = outcome.recipient
        if isinstance(outcome, DeliverySucceeded):
            status, detail = "sent", outcome.status
        else:
            status, detail = "failed", outcome.reason

        try:
            await self._log_repository.append(
                NotificationLogCreateInput(
                    recipient=recipient.address,
                    channel=recipient.channel,
                    message=message.body_for(recipient.channel),
                    status=status,
                    log_type=message.log_type,
                    detail=detail,
                )
            )
        except Exception:  # noqa: BLE001
            logger.exception(
                "notification_log_append_failed channel=%s recipient=%s log_type=%s",
                recipient.channel.value,
                recipient.address,
                message.log_type,
            )

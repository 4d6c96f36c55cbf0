"""Build notification channels and the dispatcher from runtime settings."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_analytics.application.ports.notification_channel_port import (
    EmailChannelPort,
    NotificationChannel,
    Recipient,
    SmsChannelPort,
)
from clinic_analytics.application.services.notification_dispatcher import NotificationDispatcher
from clinic_analytics.config.settings import Settings
from clinic_analytics.infrastructure.db.notification_log_repository import (
    SqlAlchemyNotificationLogRepository,
)
from clinic_analytics.infrastructure.notifications.africastalking_sms_channel import (
    AfricasTalkingSmsChannel,
)
from clinic_analytics.infrastructure.notifications.smtp_email_channel import SmtpEmailChannel

FALLBACK_SENDER = "clinic-analytics@localhost"
logger = logging.getLogger(__name__)


def build_email_channel(settings: Settings) -> SmtpEmailChannel:
    sender = settings.smtp_sender or settings.smtp_username or FALLBACK_SENDER
    return SmtpEmailChannel(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender=sender,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        timeout_seconds=settings.smtp_timeout_seconds,
    )


def build_sms_channel(settings: Settings) -> AfricasTalkingSmsChannel:
    if not settings.africastalking_api_key:
        logger.warning(
            "sms_channel_unconfigured username=%s reason=missing_api_key",
            settings.africastalking_username,
        )
    return AfricasTalkingSmsChannel(
        username=settings.africastalking_username,
        api_key=settings.africastalking_api_key or "",
        sender_id=settings.africastalking_sender_id,
        timeout_seconds=settings.africastalking_timeout_seconds,
    )


def build_milestone_recipients(settings: Settings) -> list[Recipient]:
    """Return configured milestone announcement targets, emails first."""

    return [
        *(
            Recipient(channel=NotificationChannel.EMAIL, address=address)
            for address in settings.milestone_notify_emails
        ),
        *(
            Recipient(channel=NotificationChannel.SMS, address=number)
            for number in settings.milestone_notify_phones
        ),
    ]


def build_notification_dispatcher(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    email_channel: EmailChannelPort,
    sms_channel: SmsChannelPort,
) -> NotificationDispatcher:
    return NotificationDispatcher(
        email_channel=email_channel,
        sms_channel=sms_channel,
        log_repository=SqlAlchemyNotificationLogRepository(session_factory),
    )

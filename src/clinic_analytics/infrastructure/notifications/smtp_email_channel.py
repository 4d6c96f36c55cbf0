"""SMTP email channel adapter."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import smtplib
import ssl
from email.message import EmailMessage
from pathlib import Path

from clinic_analytics.application.ports.notification_channel_port import (
    DeliveryChannelError,
    EmailChannelPort,
)

SENT_STATUS = "sent"
logger = logging.getLogger(__name__)


class SmtpEmailChannel(EmailChannelPort):
    """Send plain-text email with an optional attachment over SMTP."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout_seconds = timeout_seconds

    async def send(
        self,
        *,
        recipient: str,
        subject: str,
        body: str,
        attachment: Path | None = None,
    ) -> str:
        """Deliver one message in a worker thread; raise `DeliveryChannelError` on failure."""

        message = self._build_message(
            recipient=recipient,
            subject=subject,
            body=body,
            attachment=attachment,
        )
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as error:
            raise DeliveryChannelError(f"smtp delivery failed: {error}") from error

        logger.debug("smtp_message_sent host=%s recipient=%s", self._host, recipient)
        return SENT_STATUS

    def _build_message(
        self,
        *,
        recipient: str,
        subject: str,
        body: str,
        attachment: Path | None,
    ) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._sender
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)
        if attachment is not None:
            content_type, _ = mimetypes.guess_type(attachment.name)
            maintype, _, subtype = (content_type or "application/octet-stream").partition("/")
            message.add_attachment(
                attachment.read_bytes(),
                maintype=maintype,
                subtype=subtype,
                filename=attachment.name,
            )
        return message

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout_seconds) as server:
            if self._use_tls:
                server.starttls(context=ssl.create_default_context())
            if self._username and self._password:
                server.login(self._username, self._password)
            server.send_message(message)

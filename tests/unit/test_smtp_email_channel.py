from __future__ import annotations

import smtplib
from email.message import EmailMessage
from pathlib import Path
from typing import Any

import pytest

from clinic_analytics.application.ports.notification_channel_port import DeliveryChannelError
from clinic_analytics.infrastructure.notifications import smtp_email_channel
from clinic_analytics.infrastructure.notifications.smtp_email_channel import SmtpEmailChannel


class FakeSmtp:
    instances: list[FakeSmtp] = []
    fail_on_send = False

    def __init__(self, host: str, port: int, timeout: float) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.logged_in: tuple[str, str] | None = None
        self.messages: list[EmailMessage] = []
        FakeSmtp.instances.append(self)

    def __enter__(self) -> FakeSmtp:
        return self

    def __exit__(self, *args: Any) -> None:
        return None

    def starttls(self, *, context: Any) -> None:
        self.started_tls = True

    def login(self, username: str, password: str) -> None:
        self.logged_in = (username, password)

    def send_message(self, message: EmailMessage) -> None:
        if FakeSmtp.fail_on_send:
            raise smtplib.SMTPRecipientsRefused({message["To"]: (550, b"no such user")})
        self.messages.append(message)


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch: pytest.MonkeyPatch) -> None:
    FakeSmtp.instances = []
    FakeSmtp.fail_on_send = False
    monkeypatch.setattr(smtp_email_channel.smtplib, "SMTP", FakeSmtp)


def _channel(**overrides: Any) -> SmtpEmailChannel:
    options: dict[str, Any] = {
        "host": "smtp.example.org",
        "port": 587,
        "sender": "reports@example.org",
        "username": "reports@example.org",
        "password": "secret",
    }
    options.update(overrides)
    return SmtpEmailChannel(**options)


@pytest.mark.asyncio
async def test_send_uses_starttls_login_and_attaches_file(tmp_path: Path) -> None:
    attachment = tmp_path / "clinic-report.xlsx"
    attachment.write_bytes(b"xlsx-bytes")

    status = await _channel().send(
        recipient="doctor@example.org",
        subject="Clinic Report - weekly",
        body="See attached weekly report.",
        attachment=attachment,
    )

    assert status == "sent"
    server = FakeSmtp.instances[0]
    assert (server.host, server.port) == ("smtp.example.org", 587)
    assert server.started_tls is True
    assert server.logged_in == ("reports@example.org", "secret")
    message = server.messages[0]
    assert message["To"] == "doctor@example.org"
    assert message["Subject"] == "Clinic Report - weekly"
    attachments = list(message.iter_attachments())
    assert [item.get_filename() for item in attachments] == ["clinic-report.xlsx"]
    assert attachments[0].get_content() == b"xlsx-bytes"


@pytest.mark.asyncio
async def test_send_without_tls_or_credentials() -> None:
    await _channel(use_tls=False, username=None, password=None).send(
        recipient="doctor@example.org",
        subject="Milestone Unlocked: 100 users",
        body="100 users milestone reached.",
    )

    server = FakeSmtp.instances[0]
    assert server.started_tls is False
    assert server.logged_in is None
    assert list(server.messages[0].iter_attachments()) == []


@pytest.mark.asyncio
async def test_smtp_failure_is_normalized_to_delivery_error() -> None:
    FakeSmtp.fail_on_send = True

    with pytest.raises(DeliveryChannelError, match="smtp delivery failed"):
        await _channel().send(
            recipient="missing@example.org",
            subject="Clinic Report - weekly",
            body="See attached weekly report.",
        )

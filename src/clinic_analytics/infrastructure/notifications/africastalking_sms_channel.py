"""Africa's Talking SMS channel adapter."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from clinic_analytics.application.ports.notification_channel_port import (
    DeliveryChannelError,
    SmsChannelPort,
)

LIVE_MESSAGING_URL = "https://api.africastalking.com/version1/messaging"
SANDBOX_MESSAGING_URL = "https://api.sandbox.africastalking.com/version1/messaging"
SANDBOX_USERNAME = "sandbox"
SUCCESS_STATUS = "Success"
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SmsHttpResponse:
    """Normalized HTTP response data returned by transport implementations."""

    status_code: int
    body_bytes: bytes


class SmsHttpTransportPort(Protocol):
    """Transport protocol used by the SMS gateway adapter."""

    async def request(
        self,
        *,
        url: str,
        headers: dict[str, str],
        body: bytes,
        timeout_seconds: float,
    ) -> SmsHttpResponse:
        """Execute one form POST and return normalized response data."""


class UrllibSmsHttpTransport:
    """urllib-based async transport; the blocking call runs in a worker thread."""

    async def request(
        self,
        *,
        url: str,
        headers: dict[str, str],
        body: bytes,
        timeout_seconds: float,
    ) -> SmsHttpResponse:
        return await asyncio.to_thread(
            self._request_sync,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=timeout_seconds,
        )

    def _request_sync(
        self,
        *,
        url: str,
        headers: dict[str, str],
        body: bytes,
        timeout_seconds: float,
    ) -> SmsHttpResponse:
        request = Request(url=url, data=body, headers=headers, method="POST")
        try:
            with urlopen(request, timeout=timeout_seconds) as response:
                return SmsHttpResponse(
                    status_code=int(response.getcode()),
                    body_bytes=response.read(),
                )
        except HTTPError as error:
            return SmsHttpResponse(status_code=int(error.code), body_bytes=error.read())
        except URLError as error:
            raise DeliveryChannelError(f"sms transport connection failure: {error}") from error


class AfricasTalkingSmsChannel(SmsChannelPort):
    """Send SMS through the Africa's Talking bulk messaging endpoint."""

    def __init__(
        self,
        *,
        username: str,
        api_key: str,
        sender_id: str | None = None,
        transport: SmsHttpTransportPort | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        self._username = username
        self._api_key = api_key
        self._sender_id = sender_id
        self._transport = transport or UrllibSmsHttpTransport()
        self._timeout_seconds = timeout_seconds

    @property
    def endpoint(self) -> str:
        if self._username == SANDBOX_USERNAME:
            return SANDBOX_MESSAGING_URL
        return LIVE_MESSAGING_URL

    async def send(self, *, recipient: str, body: str) -> str:
        """Send one message and return the gateway's per-recipient status."""

        form = {"username": self._username, "to": recipient, "message": body}
        if self._sender_id:
            form["from"] = self._sender_id

        response = await self._transport.request(
            url=self.endpoint,
            headers={
                "apiKey": self._api_key,
                "Accept": "application/json",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            body=urlencode(form).encode("utf-8"),
            timeout_seconds=self._timeout_seconds,
        )
        if response.status_code >= 400:
            raise DeliveryChannelError(
                f"sms gateway returned status {response.status_code}"
            )

        status = _extract_recipient_status(response.body_bytes)
        if status != SUCCESS_STATUS:
            raise DeliveryChannelError(f"sms gateway rejected recipient: {status}")

        logger.debug("sms_message_sent recipient=%s status=%s", recipient, status)
        return status


def _extract_recipient_status(body_bytes: bytes) -> str:
    try:
        payload: Any = json.loads(body_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise DeliveryChannelError("sms gateway returned invalid json") from error

    if not isinstance(payload, dict):
        raise DeliveryChannelError("sms gateway returned unexpected payload")
    data = payload.get("SMSMessageData")
    recipients = data.get("Recipients") if isinstance(data, dict) else None
    if not isinstance(recipients, list) or not recipients:
        message = data.get("Message") if isinstance(data, dict) else None
        raise DeliveryChannelError(f"sms gateway accepted no recipients: {message}")

    first = recipients[0]
    if not isinstance(first, dict) or not isinstance(first.get("status"), str):
        raise DeliveryChannelError("sms gateway recipient status missing")
    return str(first["status"])

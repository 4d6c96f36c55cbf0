"""Port for resolving staff who receive periodic reports."""

from __future__ import annotations

from typing import Protocol

from clinic_analytics.application.ports.notification_channel_port import Recipient
from clinic_analytics.domain.auth.roles import Role


class ReportRecipientRepositoryPort(Protocol):
    """Read contract for report recipients."""

    async def list_report_recipients(self, *, roles: frozenset[Role]) -> list[Recipient]:
        """Return active users in `roles`, each reached through their preferred channel."""

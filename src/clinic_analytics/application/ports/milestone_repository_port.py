"""Port for append-only milestone records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from clinic_analytics.domain.milestones import MilestoneMetric


@dataclass(frozen=True)
class MilestoneRecord:
    """One reached threshold for one metric; at most one exists per pair."""

    id: int
    metric: MilestoneMetric
    threshold: int
    reached_at: datetime


class MilestoneRepositoryPort(Protocol):
    """Async milestone persistence contract."""

    async def record_if_absent(
        self,
        *,
        metric: MilestoneMetric,
        threshold: int,
        reached_at: datetime,
    ) -> MilestoneRecord | None:
        """Insert one milestone and return it, or return None when it already exists."""

    async def list_recent(self, *, limit: int) -> list[MilestoneRecord]:
        """Return most recently reached milestones, newest first."""

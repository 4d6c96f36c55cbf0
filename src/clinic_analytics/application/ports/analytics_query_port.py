"""Query port for windowed clinic analytics aggregations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from clinic_analytics.domain.metric_window import MetricKind, MetricWindow

Numeric = int | float


@dataclass(frozen=True)
class AggregationRow:
    """One `(label, value)` pair; compound labels keep one entry per dimension."""

    labels: tuple[str, ...]
    value: Numeric

    @property
    def label(self) -> str:
        return " / ".join(self.labels)


@dataclass(frozen=True)
class AggregationResult:
    """Ordered aggregation rows produced for one metric window."""

    kind: MetricKind
    dimensions: tuple[str, ...]
    value_name: str
    rows: tuple[AggregationRow, ...]

    def scalar(self) -> Numeric:
        """Return the value of an ungrouped aggregation, or zero when no row exists."""

        if not self.rows:
            return 0
        return self.rows[0].value

    def as_records(self) -> list[dict[str, object]]:
        """Return flat records keyed by dimension names followed by the value column."""

        records: list[dict[str, object]] = []
        for row in self.rows:
            record: dict[str, object] = dict(zip(self.dimensions, row.labels, strict=True))
            record[self.value_name] = row.value
            records.append(record)
        return records


class AnalyticsQueryPort(Protocol):
    """Async contract for executing one windowed aggregation against the store."""

    async def aggregate(
        self,
        window: MetricWindow,
        *,
        limit: int | None = None,
    ) -> AggregationResult:
        """Return grouped or scalar aggregation rows for `window`."""

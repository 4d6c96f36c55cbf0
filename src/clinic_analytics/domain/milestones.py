"""Milestone metrics, tier configuration and pure tier-progress helpers."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Final, Literal

MAXED: Final = "maxed"
NextGoal = int | Literal["maxed"]


class MilestoneMetric(StrEnum):
    """Metrics whose growth is tracked against fixed tiers."""

    USERS = "users"
    SUBURBS = "suburbs"
    CITIES = "cities"


class InvalidMilestoneTiersError(ValueError):
    """Raised when a tier list is empty, non-positive or not strictly ascending."""


def _validate_tiers(metric: MilestoneMetric, tiers: Sequence[int]) -> tuple[int, ...]:
    normalized = tuple(int(tier) for tier in tiers)
    if not normalized:
        raise InvalidMilestoneTiersError(f"tier list for {metric.value} cannot be empty")
    if normalized[0] <= 0:
        raise InvalidMilestoneTiersError(f"tiers for {metric.value} must be positive")
    for previous, current in zip(normalized, normalized[1:], strict=False):
        if current <= previous:
            raise InvalidMilestoneTiersError(
                f"tiers for {metric.value} must be strictly ascending"
            )
    return normalized


@dataclass(frozen=True)
class MilestoneTiers:
    """Immutable ordered tier lists keyed by milestone metric."""

    tiers_by_metric: Mapping[MilestoneMetric, tuple[int, ...]] = field(
        default_factory=lambda: DEFAULT_TIER_VALUES
    )

    def __post_init__(self) -> None:
        validated = {
            MilestoneMetric(metric): _validate_tiers(MilestoneMetric(metric), tiers)
            for metric, tiers in self.tiers_by_metric.items()
        }
        object.__setattr__(self, "tiers_by_metric", MappingProxyType(validated))

    def for_metric(self, metric: MilestoneMetric) -> tuple[int, ...]:
        """Return the ascending tier list for one metric."""

        try:
            return self.tiers_by_metric[metric]
        except KeyError as error:
            raise InvalidMilestoneTiersError(
                f"no tiers configured for {metric.value}"
            ) from error


DEFAULT_TIER_VALUES: Final[Mapping[MilestoneMetric, tuple[int, ...]]] = MappingProxyType(
    {
        MilestoneMetric.USERS: (100, 500, 1000, 5000, 10000, 50000, 100000),
        MilestoneMetric.SUBURBS: (5, 10, 25, 50, 100, 200),
        MilestoneMetric.CITIES: (3, 5, 10, 20),
    }
)


def next_goal(tiers: Sequence[int], current: int) -> NextGoal:
    """Return the smallest tier strictly greater than `current`, or `MAXED`."""

    for tier in tiers:
        if tier > current:
            return tier
    return MAXED


def reached_tiers(tiers: Sequence[int], current: int) -> tuple[int, ...]:
    """Return every tier less than or equal to `current`, in ascending order."""

    return tuple(tier for tier in tiers if tier <= current)

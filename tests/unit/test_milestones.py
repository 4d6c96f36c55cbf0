from __future__ import annotations

import pytest

from clinic_analytics.domain.milestones import (
    DEFAULT_TIER_VALUES,
    MAXED,
    InvalidMilestoneTiersError,
    MilestoneMetric,
    MilestoneTiers,
    next_goal,
    reached_tiers,
)

USER_TIERS = DEFAULT_TIER_VALUES[MilestoneMetric.USERS]


@pytest.mark.parametrize(
    ("current", "expected"),
    [
        (0, 100),
        (99, 100),
        (100, 500),
        (499, 500),
        (1200, 5000),
        (99999, 100000),
    ],
)
def test_next_goal_returns_smallest_tier_above_current(current: int, expected: int) -> None:
    assert next_goal(USER_TIERS, current) == expected


def test_next_goal_is_maxed_at_or_past_last_tier() -> None:
    assert next_goal(USER_TIERS, 100000) == MAXED
    assert next_goal(USER_TIERS, 250000) == MAXED


def test_next_goal_is_minimal_for_every_count_up_to_last_tier() -> None:
    for current in range(0, 1100):
        goal = next_goal(USER_TIERS, current)
        assert isinstance(goal, int)
        assert goal > current
        assert all(tier <= current or tier >= goal for tier in USER_TIERS)


def test_reached_tiers_are_ascending_and_inclusive() -> None:
    assert reached_tiers(USER_TIERS, 50) == ()
    assert reached_tiers(USER_TIERS, 100) == (100,)
    assert reached_tiers(USER_TIERS, 1200) == (100, 500, 1000)


def test_default_tiers_match_configured_values() -> None:
    tiers = MilestoneTiers()

    assert tiers.for_metric(MilestoneMetric.USERS) == (100, 500, 1000, 5000, 10000, 50000, 100000)
    assert tiers.for_metric(MilestoneMetric.SUBURBS) == (5, 10, 25, 50, 100, 200)
    assert tiers.for_metric(MilestoneMetric.CITIES) == (3, 5, 10, 20)


@pytest.mark.parametrize(
    ("tiers", "message"),
    [
        ((), "cannot be empty"),
        ((0, 5), "must be positive"),
        ((5, 5, 10), "strictly ascending"),
        ((10, 5), "strictly ascending"),
    ],
)
def test_milestone_tiers_reject_invalid_lists(tiers: tuple[int, ...], message: str) -> None:
    with pytest.raises(InvalidMilestoneTiersError, match=message):
        MilestoneTiers(tiers_by_metric={MilestoneMetric.CITIES: tiers})


def test_milestone_tiers_reject_missing_metric_lookup() -> None:
    tiers = MilestoneTiers(tiers_by_metric={MilestoneMetric.CITIES: (1, 2)})

    with pytest.raises(InvalidMilestoneTiersError, match="no tiers configured for users"):
        tiers.for_metric(MilestoneMetric.USERS)


def test_milestone_tiers_mapping_is_read_only() -> None:
    tiers = MilestoneTiers()

    with pytest.raises(TypeError):
        tiers.tiers_by_metric[MilestoneMetric.USERS] = (1,)  # type: ignore[index]

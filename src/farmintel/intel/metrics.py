"""Rolling-window metrics recomputed from a target's raid history."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence

from farmintel.models.farm_target import LootTrend, RaidEntry, TargetMetrics, TargetRecord

# A completed raid hauling less than this counts as empty
EMPTY_LOOT_THRESHOLD = 50

# Reference troop speed (tiles/hour) used only to normalize profit per hour
REFERENCE_SPEED = 19
MIN_ROUND_TRIP_HOURS = 0.5

TREND_WINDOW = 5
TREND_RISING_FACTOR = 1.2
TREND_DECLINING_FACTOR = 0.8


def round_half_up(value: float) -> int:
    """Round x.5 upwards instead of to the nearest even integer."""
    return math.floor(value + 0.5)


def count_trailing(entries: Sequence[RaidEntry], predicate: Callable[[RaidEntry], bool]) -> int:
    """Count entries from the newest backwards until one fails ``predicate``."""
    count = 0
    for entry in reversed(entries):
        if not predicate(entry):
            break
        count += 1
    return count


def loot_trend(completed: Sequence[RaidEntry]) -> LootTrend:
    """Compare the last five completed raids against the five before them."""
    if len(completed) < TREND_WINDOW * 2:
        return LootTrend.STABLE
    recent = sum(e.total_loot for e in completed[-TREND_WINDOW:])
    older = sum(e.total_loot for e in completed[-TREND_WINDOW * 2 : -TREND_WINDOW])
    if recent > older * TREND_RISING_FACTOR:
        return LootTrend.RISING
    if recent < older * TREND_DECLINING_FACTOR:
        return LootTrend.DECLINING
    return LootTrend.STABLE


def profit_per_hour(avg_loot: int, distance: float) -> int:
    if distance <= 0 or avg_loot <= 0:
        return 0
    round_trip_hours = distance * 2 / REFERENCE_SPEED
    return round_half_up(avg_loot / max(round_trip_hours, MIN_ROUND_TRIP_HOURS))


def recompute_metrics(target: TargetRecord) -> TargetMetrics:
    """Derive a fresh metrics block from the completed part of the history.

    Pending entries are ignored entirely. The result never depends on the
    previous metrics, so it can be recomputed at any time.
    """
    completed = target.completed_raids()
    if not completed:
        return TargetMetrics()

    avg = round_half_up(sum(e.total_loot for e in completed) / len(completed))
    return TargetMetrics(
        total_raids=len(completed),
        avg_loot_per_raid=avg,
        profit_per_hour=profit_per_hour(avg, target.distance),
        consecutive_empty=count_trailing(
            completed, lambda e: e.total_loot < EMPTY_LOOT_THRESHOLD
        ),
        consecutive_losses=count_trailing(completed, lambda e: e.total_losses > 0),
        last_raid_at=completed[-1].timestamp,
        loot_trend=loot_trend(completed),
    )

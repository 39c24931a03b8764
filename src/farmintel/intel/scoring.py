"""Population-relative 0-100 target scores."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from farmintel.intel.metrics import round_half_up
from farmintel.models.farm_target import TargetRecord

PROFIT_WEIGHT = 40
SAFETY_WEIGHT = 30
EFFICIENCY_WEIGHT = 30
SAFETY_PENALTY_PER_LOSS = 15


@dataclass(frozen=True)
class ScoreBasis:
    """Normalization maxima taken over the whole tracked population."""

    max_avg_loot: float = 1
    max_loot_per_distance: float = 1


@dataclass(frozen=True)
class ScoreBreakdown:
    profit: int
    safety: int
    efficiency: int

    @property
    def total(self) -> int:
        return self.profit + self.safety + self.efficiency


def loot_per_distance(target: TargetRecord) -> float:
    return target.metrics.avg_loot_per_raid / max(target.distance, 1)


class ScoreCalculator:
    """Scores targets against the best performers currently tracked.

    A target's score moves whenever any other target's metrics change, so
    callers recompute against a fresh :class:`ScoreBasis`.
    """

    @staticmethod
    def basis(population: Iterable[TargetRecord]) -> ScoreBasis:
        max_avg = 1.0
        max_ratio = 1.0
        for target in population:
            max_avg = max(max_avg, target.metrics.avg_loot_per_raid)
            max_ratio = max(max_ratio, loot_per_distance(target))
        return ScoreBasis(max_avg_loot=max_avg, max_loot_per_distance=max_ratio)

    @staticmethod
    def breakdown(target: TargetRecord, basis: ScoreBasis) -> ScoreBreakdown:
        m = target.metrics
        profit = round_half_up(m.avg_loot_per_raid / basis.max_avg_loot * PROFIT_WEIGHT)
        if m.consecutive_losses == 0:
            safety = SAFETY_WEIGHT
        else:
            safety = max(0, SAFETY_WEIGHT - m.consecutive_losses * SAFETY_PENALTY_PER_LOSS)
        efficiency = round_half_up(
            loot_per_distance(target) / basis.max_loot_per_distance * EFFICIENCY_WEIGHT
        )
        return ScoreBreakdown(profit=profit, safety=safety, efficiency=efficiency)

    def score(self, target: TargetRecord, population: Iterable[TargetRecord]) -> int:
        """Compute and store ``target.score`` relative to ``population``."""
        target.score = self.breakdown(target, self.basis(population)).total
        return target.score

    def score_all(self, population: list[TargetRecord]) -> None:
        basis = self.basis(population)
        for target in population:
            target.score = self.breakdown(target, basis).total

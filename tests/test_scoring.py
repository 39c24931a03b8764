"""Tests for population-relative target scoring."""

from __future__ import annotations

from datetime import datetime, timezone

from farmintel.intel.scoring import ScoreBasis, ScoreCalculator
from farmintel.models.farm_target import Coords, TargetMetrics, TargetRecord

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


def make_target(x, avg, distance, losses=0) -> TargetRecord:
    return TargetRecord(
        coords=Coords(x=x, y=0),
        distance=distance,
        metrics=TargetMetrics(avg_loot_per_raid=avg, consecutive_losses=losses),
        discovered_at=NOW,
    )


class TestScoreCalculator:
    def setup_method(self):
        self.calc = ScoreCalculator()
        self.a = make_target(1, avg=100, distance=10)
        self.b = make_target(2, avg=50, distance=5)
        self.population = [self.a, self.b]

    def test_basis_takes_population_maxima(self):
        basis = self.calc.basis(self.population)
        assert basis.max_avg_loot == 100
        assert basis.max_loot_per_distance == 10

    def test_breakdown_for_best_target(self):
        bd = self.calc.breakdown(self.a, self.calc.basis(self.population))
        assert (bd.profit, bd.safety, bd.efficiency) == (40, 30, 30)
        assert bd.total == 100

    def test_breakdown_for_weaker_target(self):
        bd = self.calc.breakdown(self.b, self.calc.basis(self.population))
        assert (bd.profit, bd.safety, bd.efficiency) == (20, 30, 30)
        assert bd.total == 80

    def test_score_stores_result(self):
        assert self.calc.score(self.b, self.population) == 80
        assert self.b.score == 80

    def test_score_all(self):
        self.calc.score_all(self.population)
        assert [t.score for t in self.population] == [100, 80]

    def test_score_depends_on_population(self):
        self.calc.score_all(self.population)
        best = make_target(3, avg=400, distance=10)
        self.calc.score(self.a, self.population + [best])
        assert self.a.score == 10 + 30 + 8

    def test_safety_penalty(self):
        basis = ScoreBasis()
        assert self.calc.breakdown(make_target(4, 0, 1, losses=1), basis).safety == 15
        assert self.calc.breakdown(make_target(4, 0, 1, losses=2), basis).safety == 0
        assert self.calc.breakdown(make_target(4, 0, 1, losses=5), basis).safety == 0

    def test_empty_population_floors_maxima(self):
        basis = self.calc.basis([])
        assert basis == ScoreBasis(max_avg_loot=1, max_loot_per_distance=1)
        target = make_target(5, avg=0, distance=0)
        assert self.calc.breakdown(target, basis).total == 30

    def test_distance_below_one_counts_as_one(self):
        near = make_target(6, avg=100, distance=0.5)
        basis = self.calc.basis([near])
        assert basis.max_loot_per_distance == 100
        assert self.calc.breakdown(near, basis).efficiency == 30

"""Pydantic data models for farm intelligence state."""

from farmintel.models.farm_target import (
    MAX_HISTORY,
    Coords,
    LootTrend,
    RaidEntry,
    RaidResult,
    TargetMetrics,
    TargetRecord,
    TargetStatus,
)
from farmintel.models.loot import Loot
from farmintel.models.stats import GlobalStats, IntelStats, ProfitReport

__all__ = [
    "MAX_HISTORY",
    "Coords",
    "GlobalStats",
    "IntelStats",
    "Loot",
    "LootTrend",
    "ProfitReport",
    "RaidEntry",
    "RaidResult",
    "TargetMetrics",
    "TargetRecord",
    "TargetStatus",
]

"""Aggregate statistics and report models."""

from __future__ import annotations

from datetime import timedelta

from pydantic import Field

from farmintel.models.base import IntelModel, Timestamp
from farmintel.models.loot import Loot


class GlobalStats(IntelModel):
    """Running totals across every target. Never decremented."""

    total_raids: int = 0
    total_loot: Loot = Field(default_factory=Loot)
    total_troop_losses: int = 0
    first_raid_at: Timestamp | None = None
    last_raid_at: Timestamp | None = None


class IntelStats(IntelModel):
    target_count: int = 0
    active: int = 0
    paused: int = 0
    blacklisted: int = 0
    global_stats: GlobalStats = Field(default_factory=GlobalStats)


class ProfitReport(IntelModel):
    loot: Loot = Field(default_factory=Loot)
    raids: int = 0
    losses: int = 0
    period: timedelta = timedelta(hours=24)

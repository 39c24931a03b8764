"""Farm target tracking models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import ConfigDict, Field, field_validator

from farmintel.models.base import IntelModel, Timestamp
from farmintel.models.loot import Loot

MAX_HISTORY = 20


class TargetStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    BLACKLISTED = "blacklisted"


class LootTrend(StrEnum):
    RISING = "rising"
    DECLINING = "declining"
    STABLE = "stable"


class Coords(IntelModel):
    """Map tile coordinates, hashable so they can key the target map."""

    model_config = ConfigDict(frozen=True)

    x: int
    y: int

    @property
    def key(self) -> str:
        return f"{self.x}|{self.y}"

    def __str__(self) -> str:
        return f"({self.x}|{self.y})"


class RaidEntry(IntelModel):
    timestamp: Timestamp
    troops_sent: dict[str, int] = Field(default_factory=dict)
    loot: Loot | None = None  # None until the result arrives
    total_loot: int = 0
    troops_lost: dict[str, int] = Field(default_factory=dict)
    total_losses: int = 0
    bounty_full: bool = False
    source: str = "farmList"
    pending: bool = True


class RaidResult(IntelModel):
    """Outcome of a raid as reported by a battle report or farm list scan."""

    loot: Loot = Field(default_factory=Loot)
    troops_lost: dict[str, int] = Field(default_factory=dict)
    bounty_full: bool = False

    @field_validator("loot", "troops_lost", "bounty_full", mode="before")
    @classmethod
    def _null_as_default(cls, value, info):
        # Reports without loot or losses still resolve the raid
        if value is None:
            return {"loot": Loot(), "troops_lost": {}, "bounty_full": False}[info.field_name]
        return value


class TargetMetrics(IntelModel):
    total_raids: int = 0  # completed raids in the rolling window
    avg_loot_per_raid: int = 0
    profit_per_hour: int = 0
    consecutive_empty: int = 0
    consecutive_losses: int = 0
    last_raid_at: Timestamp | None = None
    loot_trend: LootTrend = LootTrend.STABLE


class TargetRecord(IntelModel):
    coords: Coords
    name: str = ""
    population: int = 0
    distance: float = 0
    status: TargetStatus = TargetStatus.ACTIVE
    pause_reason: str | None = None
    pause_until: Timestamp | None = None
    raid_history: list[RaidEntry] = Field(default_factory=list)
    metrics: TargetMetrics = Field(default_factory=TargetMetrics)
    score: int = 0
    discovered_at: Timestamp
    discovery_source: str = "farmList"

    @property
    def key(self) -> str:
        return self.coords.key

    def completed_raids(self) -> list[RaidEntry]:
        return [entry for entry in self.raid_history if not entry.pending]

    def last_activity(self) -> datetime:
        """Last completed raid, or discovery time for never-raided targets."""
        return self.metrics.last_raid_at or self.discovered_at

    def label(self) -> str:
        return f"{self.coords.key} ({self.name})" if self.name else self.coords.key

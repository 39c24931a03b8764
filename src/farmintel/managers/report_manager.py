"""Read-side queries over farm intelligence for dashboards and automation."""

from __future__ import annotations

from datetime import timedelta

from farmintel.managers.farm_intel import FarmIntelligence
from farmintel.models.farm_target import TargetRecord, TargetStatus
from farmintel.models.loot import Loot
from farmintel.models.stats import IntelStats, ProfitReport

DEFAULT_REPORT_WINDOW = timedelta(hours=24)


class IntelReporter:
    """Aggregates and ranks tracked targets. Returns copies, never live records."""

    def __init__(self, intel: FarmIntelligence) -> None:
        self.intel = intel

    def get_active_targets(self) -> list[TargetRecord]:
        """Active targets in discovery order, resuming expired pauses first."""
        with self.intel.locked():
            self.intel.resume_expired_pauses()
            return [
                t.model_copy(deep=True)
                for t in self.intel.targets()
                if t.status == TargetStatus.ACTIVE
            ]

    def get_ranked_targets(self, n: int | None = None) -> list[TargetRecord]:
        """Active targets by score, best first. Equal scores keep discovery order."""
        ranked = sorted(self.get_active_targets(), key=lambda t: t.score, reverse=True)
        return ranked[:n] if n else ranked

    def get_target(self, x: int, y: int) -> TargetRecord | None:
        with self.intel.locked():
            target = self.intel.find(x, y)
            return target.model_copy(deep=True) if target else None

    def is_blacklisted(self, x: int, y: int) -> bool:
        with self.intel.locked():
            target = self.intel.find(x, y)
            return target is not None and target.status == TargetStatus.BLACKLISTED

    def get_stats(self) -> IntelStats:
        with self.intel.locked():
            targets = self.intel.targets()
            counts = {status: 0 for status in TargetStatus}
            for t in targets:
                counts[t.status] += 1
            return IntelStats(
                target_count=len(targets),
                active=counts[TargetStatus.ACTIVE],
                paused=counts[TargetStatus.PAUSED],
                blacklisted=counts[TargetStatus.BLACKLISTED],
                global_stats=self.intel.global_stats(),
            )

    def get_profit_report(self, window: timedelta = DEFAULT_REPORT_WINDOW) -> ProfitReport:
        """Loot, raids and losses from completed raids inside ``window``."""
        report = ProfitReport(period=window)
        with self.intel.locked():
            cutoff = self.intel.now() - window
            loot = Loot()
            for target in self.intel.targets():
                for entry in target.raid_history:
                    if entry.pending or entry.loot is None or entry.timestamp < cutoff:
                        continue
                    loot = loot + entry.loot
                    report.raids += 1
                    report.losses += entry.total_losses
        report.loot = loot
        return report

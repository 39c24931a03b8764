"""Active / paused / blacklisted lifecycle for farm targets."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from farmintel.core.config import IntelSettings
from farmintel.core.logging import get_logger
from farmintel.models.farm_target import TargetRecord, TargetStatus

log = get_logger("intel.status")

REASON_DRY = "dry"
REASON_LOSSES = "losses"
REASON_MANUAL = "manual"


@dataclass(frozen=True)
class StatusChange:
    rule: str
    old: TargetStatus
    new: TargetStatus


class StatusManager:
    """Evaluates the auto-management rules against freshly computed metrics.

    Rules run in order and the first one that matches wins:

    1. blacklist after ``max_losses_before_blacklist`` lossy raids in a row
    2. pause an active target after ``max_empty_before_pause`` empty raids
    3. resume a paused target once ``pause_until`` has passed
    4. resume a target paused for losses once a raid came back clean
    """

    def __init__(
        self,
        settings: IntelSettings,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self.log = logger or log

    def evaluate(self, target: TargetRecord, now: datetime) -> StatusChange | None:
        m = target.metrics
        s = self.settings
        old = target.status

        if m.consecutive_losses >= s.max_losses_before_blacklist:
            if target.status == TargetStatus.BLACKLISTED:
                return None
            target.status = TargetStatus.BLACKLISTED
            target.pause_reason = REASON_LOSSES
            self.log.warning(
                "target_blacklisted",
                target=target.label(),
                consecutive_losses=m.consecutive_losses,
            )
            return StatusChange("losses", old, target.status)

        if target.status == TargetStatus.ACTIVE and m.consecutive_empty >= s.max_empty_before_pause:
            target.status = TargetStatus.PAUSED
            target.pause_reason = REASON_DRY
            target.pause_until = now + timedelta(hours=s.dry_pause_hours)
            self.log.info(
                "target_paused",
                target=target.label(),
                consecutive_empty=m.consecutive_empty,
                resume_in_hours=s.dry_pause_hours,
            )
            return StatusChange("dry", old, target.status)

        if self.resume_if_expired(target, now):
            return StatusChange("pause_expired", old, target.status)

        if (
            target.status == TargetStatus.PAUSED
            and target.pause_reason == REASON_LOSSES
            and m.consecutive_losses == 0
        ):
            self._activate(target)
            self.log.info("target_reactivated", target=target.label(), reason="clean_raid")
            return StatusChange("clean_raid", old, target.status)

        return None

    def resume_if_expired(self, target: TargetRecord, now: datetime) -> bool:
        """Reactivate a paused target whose pause has run out."""
        if (
            target.status == TargetStatus.PAUSED
            and target.pause_until is not None
            and now >= target.pause_until
        ):
            self._activate(target)
            self.log.info("target_reactivated", target=target.label(), reason="pause_expired")
            return True
        return False

    # -- Manual transitions (bypass the rules) --

    @staticmethod
    def pause(
        target: TargetRecord,
        now: datetime,
        reason: str = REASON_MANUAL,
        duration: timedelta | None = None,
    ) -> None:
        target.status = TargetStatus.PAUSED
        target.pause_reason = reason or REASON_MANUAL
        target.pause_until = now + duration if duration else None

    @staticmethod
    def blacklist(target: TargetRecord, reason: str = REASON_MANUAL) -> None:
        target.status = TargetStatus.BLACKLISTED
        target.pause_reason = reason or REASON_MANUAL

    @classmethod
    def reactivate(cls, target: TargetRecord) -> None:
        cls._activate(target)
        # Reset streaks so the rules don't fire again on the next result
        target.metrics.consecutive_empty = 0
        target.metrics.consecutive_losses = 0

    @staticmethod
    def _activate(target: TargetRecord) -> None:
        target.status = TargetStatus.ACTIVE
        target.pause_reason = None
        target.pause_until = None

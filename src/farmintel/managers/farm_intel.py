"""Persistent per-target raid intelligence.

Owns every tracked :class:`TargetRecord`, records raids as they are sent and
resolved, and drives the metrics -> status -> score pipeline for a target
whenever one of its raids completes. State is persisted as a single blob per
game server through a :class:`KeyValueStore`.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from pydantic import Field, ValidationError

from farmintel.core.config import IntelSettings
from farmintel.core.database import KeyValueStore
from farmintel.core.exceptions import PersistenceError, SchemaVersionError
from farmintel.core.logging import get_logger
from farmintel.intel.metrics import recompute_metrics
from farmintel.intel.scoring import ScoreCalculator
from farmintel.intel.status import StatusManager
from farmintel.models.base import IntelModel, as_utc
from farmintel.models.farm_target import (
    MAX_HISTORY,
    Coords,
    RaidEntry,
    RaidResult,
    TargetRecord,
)
from farmintel.models.stats import GlobalStats

log = get_logger("intel.farm")

SCHEMA_VERSION = 1
STORAGE_PREFIX = "farm_data__"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IntelBlob(IntelModel):
    """Shape of the persisted snapshot for one server."""

    version: int
    targets: dict[str, TargetRecord] = Field(default_factory=dict)
    global_stats: GlobalStats = Field(default_factory=GlobalStats)
    settings: dict[str, Any] | None = None


def encode_blob(
    targets: Mapping[Coords, TargetRecord],
    global_stats: GlobalStats,
    settings: IntelSettings,
) -> dict[str, Any]:
    return {
        "version": SCHEMA_VERSION,
        "targets": {
            coords.key: target.model_dump(mode="json", by_alias=True)
            for coords, target in targets.items()
        },
        "globalStats": global_stats.model_dump(mode="json", by_alias=True),
        "settings": settings.model_dump(mode="json", by_alias=True),
    }


def decode_blob(
    blob: Any, baseline: IntelSettings
) -> tuple[dict[Coords, TargetRecord], GlobalStats, IntelSettings]:
    """Inverse of :func:`encode_blob`.

    Raises :class:`SchemaVersionError` for an unknown version and pydantic's
    ``ValidationError`` for any other malformed payload.
    """
    version = blob.get("version") if isinstance(blob, Mapping) else None
    if version != SCHEMA_VERSION:
        raise SchemaVersionError(f"Unsupported schema version {version!r}")

    parsed = IntelBlob.model_validate(blob)
    targets = {target.coords: target for target in parsed.targets.values()}
    settings = baseline.merged(parsed.settings)
    return targets, parsed.global_stats, settings


class FarmIntelligence:
    """Record store and auto-management engine for farm targets.

    All mutating operations are synchronous and serialized by one re-entrant
    lock. Only :meth:`load` and :meth:`persist` touch the store.
    """

    def __init__(
        self,
        server_key: str,
        store: KeyValueStore,
        settings: IntelSettings | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.server_key = server_key
        self.store = store
        self.log = logger or log
        self.clock = clock
        self._baseline = settings or IntelSettings()
        self._status = StatusManager(self._baseline.model_copy(), logger=self.log)
        self._scorer = ScoreCalculator()
        self._targets: dict[Coords, TargetRecord] = {}
        self._global_stats = GlobalStats()
        self._lock = threading.RLock()
        self._dirty = False
        self._generation = 0
        self.loaded = False

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def storage_key(self) -> str:
        return f"{STORAGE_PREFIX}{self.server_key}"

    @property
    def settings(self) -> IntelSettings:
        return self._status.settings

    @property
    def dirty(self) -> bool:
        return self._dirty

    def now(self) -> datetime:
        return as_utc(self.clock())

    @contextmanager
    def locked(self) -> Iterator[None]:
        with self._lock:
            yield

    def find(self, x: int, y: int) -> TargetRecord | None:
        return self._targets.get(Coords(x=x, y=y))

    def targets(self) -> list[TargetRecord]:
        """Live records in discovery order. Hold :meth:`locked` while using them."""
        return list(self._targets.values())

    def global_stats(self) -> GlobalStats:
        with self._lock:
            return self._global_stats.model_copy(deep=True)

    def _mark_dirty(self) -> None:
        self._dirty = True
        self._generation += 1

    def _ensure_target(self, coords: Coords, source: str | None = None) -> TargetRecord:
        target = self._targets.get(coords)
        if target is None:
            target = TargetRecord(coords=coords, discovered_at=self.now())
            if source:
                target.discovery_source = source
            self._targets[coords] = target
            self.log.debug("target_discovered", target=coords.key, source=target.discovery_source)
        return target

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Load persisted data. Never raises; falls back to what is in memory."""
        try:
            blob = await self.store.get(self.storage_key)
        except PersistenceError as e:
            self.log.warning("intel_load_failed", server=self.server_key, error=str(e))
            self.loaded = True
            return

        state: tuple[dict[Coords, TargetRecord], GlobalStats, IntelSettings] | None = None
        if blob is None:
            self.log.info("intel_no_existing_data", server=self.server_key)
        else:
            try:
                state = decode_blob(blob, self._baseline)
            except (SchemaVersionError, ValidationError) as e:
                self.log.warning("intel_discarding_stored_data", server=self.server_key, error=str(e))

        with self._lock:
            if state is None:
                self._targets = {}
                self._global_stats = GlobalStats()
                self._status.settings = self._baseline.model_copy()
            else:
                self._targets, self._global_stats, self._status.settings = state
                self.log.info("intel_loaded", server=self.server_key, targets=len(self._targets))
            self._dirty = False
            self.loaded = True

    async def persist(self) -> bool:
        """Write the full snapshot if anything changed. Returns True if written."""
        with self._lock:
            if not self._dirty:
                return False
            blob = encode_blob(self._targets, self._global_stats, self.settings)
            generation = self._generation

        try:
            await self.store.set(self.storage_key, blob)
        except PersistenceError as e:
            self.log.warning("intel_persist_failed", server=self.server_key, error=str(e))
            return False

        with self._lock:
            # Changes made while the write was in flight still need saving
            if self._generation == generation:
                self._dirty = False
        self.log.debug("intel_persisted", server=self.server_key, targets=len(blob["targets"]))
        return True

    def cleanup(self) -> int:
        """Drop targets with no activity for ``cleanup_days``. Returns count removed."""
        with self._lock:
            cutoff = self.now() - timedelta(days=self.settings.cleanup_days)
            stale = [c for c, t in self._targets.items() if t.last_activity() < cutoff]
            for coords in stale:
                del self._targets[coords]
            if stale:
                self._mark_dirty()
                self.log.info("intel_cleanup", removed=len(stale), remaining=len(self._targets))
            return len(stale)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_raid_sent(
        self,
        x: int,
        y: int,
        troops_sent: Mapping[str, int] | None = None,
        timestamp: datetime | None = None,
        source: str = "farmList",
    ) -> None:
        """Add a pending history entry; creates the target on first sight."""
        ts = as_utc(timestamp) if timestamp else self.now()
        with self._lock:
            target = self._ensure_target(Coords(x=x, y=y), source)
            history = target.raid_history
            history.append(
                RaidEntry(timestamp=ts, troops_sent=dict(troops_sent or {}), source=source)
            )
            if len(history) > MAX_HISTORY:
                del history[: len(history) - MAX_HISTORY]

            gs = self._global_stats
            gs.total_raids += 1
            gs.last_raid_at = ts
            if gs.first_raid_at is None:
                gs.first_raid_at = ts
            self._mark_dirty()

    def record_raid_result(self, x: int, y: int, result: RaidResult | Mapping[str, Any]) -> bool:
        """Resolve the newest pending raid on a target and re-evaluate it.

        Results for untracked targets or targets without a pending raid are
        ignored. Returns True when an entry was resolved.
        """
        if not isinstance(result, RaidResult):
            result = RaidResult.model_validate(result)

        with self._lock:
            target = self.find(x, y)
            entry = None
            if target is not None:
                entry = next((e for e in reversed(target.raid_history) if e.pending), None)
            if target is None or entry is None:
                self.log.debug("raid_result_ignored", target=f"{x}|{y}", tracked=target is not None)
                return False

            entry.loot = result.loot.model_copy()
            entry.total_loot = result.loot.total
            entry.troops_lost = dict(result.troops_lost)
            entry.total_losses = sum(result.troops_lost.values())
            entry.bounty_full = result.bounty_full
            entry.pending = False

            gs = self._global_stats
            gs.total_loot = gs.total_loot + entry.loot
            gs.total_troop_losses += entry.total_losses

            self._refresh(target)
            self._mark_dirty()
            return True

    def _refresh(self, target: TargetRecord) -> None:
        target.metrics = recompute_metrics(target)
        change = self._status.evaluate(target, self.now())
        if change is not None:
            self.log.debug(
                "target_status_changed",
                target=target.label(),
                rule=change.rule,
                old=str(change.old),
                new=str(change.new),
            )
        self._scorer.score(target, self._targets.values())

    def update_target_info(
        self,
        x: int,
        y: int,
        name: str | None = None,
        population: int | None = None,
        distance: float | None = None,
        discovery_source: str | None = None,
    ) -> None:
        """Update metadata from farm list or map scans without recording a raid."""
        with self._lock:
            target = self._ensure_target(Coords(x=x, y=y))
            if name is not None:
                target.name = name
            if population is not None:
                target.population = population
            if distance is not None:
                target.distance = distance
            if discovery_source:
                target.discovery_source = discovery_source
            self._mark_dirty()

    def update_settings(self, **changes: Any) -> IntelSettings:
        with self._lock:
            self._status.settings = self.settings.merged(changes)
            self._mark_dirty()
            self.log.info("intel_settings_updated", **self.settings.model_dump())
            return self.settings

    def recompute_all_scores(self) -> None:
        """Rescore every target in one pass, e.g. after batch metadata updates."""
        with self._lock:
            self._scorer.score_all(self.targets())
            self._mark_dirty()

    def resume_expired_pauses(self) -> int:
        """Reactivate every target whose pause has run out."""
        with self._lock:
            now = self.now()
            resumed = sum(
                1 for t in self._targets.values() if self._status.resume_if_expired(t, now)
            )
            if resumed:
                self._mark_dirty()
            return resumed

    # ------------------------------------------------------------------
    # Manual status management
    # ------------------------------------------------------------------

    def pause_target(
        self, x: int, y: int, reason: str = "manual", duration: timedelta | None = None
    ) -> bool:
        with self._lock:
            target = self.find(x, y)
            if target is None:
                return False
            self._status.pause(target, self.now(), reason, duration)
            self._mark_dirty()
            self.log.info("target_paused", target=target.label(), reason=target.pause_reason)
            return True

    def blacklist_target(self, x: int, y: int, reason: str = "manual") -> bool:
        with self._lock:
            target = self.find(x, y)
            if target is None:
                return False
            self._status.blacklist(target, reason)
            self._mark_dirty()
            self.log.info("target_blacklisted", target=target.label(), reason=target.pause_reason)
            return True

    def reactivate_target(self, x: int, y: int) -> bool:
        with self._lock:
            target = self.find(x, y)
            if target is None:
                return False
            self._status.reactivate(target)
            self._mark_dirty()
            self.log.info("target_reactivated", target=target.label(), reason="manual")
            return True

"""Application wiring - config, logging, storage and the intelligence layer."""

from __future__ import annotations

import json
import os
from datetime import timedelta
from pathlib import Path
from typing import Any

from farmintel.core.config import AppConfig, IntelSettings, load_config
from farmintel.core.database import Database
from farmintel.core.exceptions import ConfigError, PersistenceError
from farmintel.core.logging import get_logger, setup_logging
from farmintel.managers.farm_intel import FarmIntelligence
from farmintel.managers.report_manager import IntelReporter

log = get_logger("app")

PROJECT_ROOT = Path(os.environ.get("FARMINTEL_ROOT", Path.cwd()))


def apply_config_settings(intel: FarmIntelligence, configured: IntelSettings) -> bool:
    """Apply settings set explicitly in the config file over the stored ones.

    Only values that differ are applied, so an unchanged config leaves the
    store clean. Returns True if anything changed.
    """
    explicit = configured.model_dump(include=configured.model_fields_set)
    current = intel.settings.model_dump()
    changes = {k: v for k, v in explicit.items() if current.get(k) != v}
    if not changes:
        return False
    intel.update_settings(**changes)
    return True


class Application:
    """Loads one server's intelligence, runs a single command, saves changes."""

    def __init__(self, profile: str = "default", config_path: Path | None = None) -> None:
        self.profile = profile
        # Config: config/<profile>.toml, fallback to config/config.toml
        self.config_dir = PROJECT_ROOT / "config"
        self.config_file = config_path or self.config_dir / f"{profile}.toml"
        if config_path is None and not self.config_file.exists():
            self.config_file = self.config_dir / "config.toml"
        self.data_dir = PROJECT_ROOT / "data" / profile
        self.log_dir = PROJECT_ROOT / "logs" / profile

        self.config: AppConfig | None = None
        self.db: Database | None = None
        self.intel: FarmIntelligence | None = None
        self.reporter: IntelReporter | None = None

    async def _initialize(self) -> None:
        self.config = load_config(self.config_file)
        setup_logging(
            self.log_dir,
            console_level=self.config.logging.console_level,
            file_level=self.config.logging.file_level,
        )
        db_path = self.config.storage.db_path or self.data_dir / "farmintel.db"
        self.db = Database(db_path)
        await self.db.init()

        self.intel = FarmIntelligence(self.config.server_key, self.db)
        await self.intel.load()
        apply_config_settings(self.intel, self.config.intel)
        self.reporter = IntelReporter(self.intel)

    async def run(self, command: str, **options: Any) -> int:
        """Execute ``command`` and print its result as JSON. Returns exit code."""
        try:
            await self._initialize()
        except (ConfigError, PersistenceError) as e:
            log.error("startup_failed", error=str(e))
            return 1

        try:
            result = self._dispatch(command, **options)
            print(json.dumps(result, indent=2, default=str))
            await self.intel.persist()
        finally:
            await self.db.close()
        return 0

    def _dispatch(self, command: str, **options: Any) -> Any:
        if command == "stats":
            return self.reporter.get_stats().model_dump(mode="json")
        if command == "ranked":
            return [
                {
                    "coords": t.coords.key,
                    "name": t.name,
                    "score": t.score,
                    "avg_loot": t.metrics.avg_loot_per_raid,
                    "profit_per_hour": t.metrics.profit_per_hour,
                    "trend": t.metrics.loot_trend,
                }
                for t in self.reporter.get_ranked_targets(options.get("limit"))
            ]
        if command == "report":
            window = timedelta(hours=options.get("hours") or 24)
            return self.reporter.get_profit_report(window).model_dump(mode="json")
        if command == "cleanup":
            return {"removed": self.intel.cleanup()}
        raise ValueError(f"Unknown command: {command}")

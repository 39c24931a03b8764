"""Tests for loading and persisting intelligence blobs."""

from __future__ import annotations

import asyncio
from datetime import timedelta

from farmintel.core.config import IntelSettings
from farmintel.core.database import Database
from farmintel.managers.farm_intel import SCHEMA_VERSION, FarmIntelligence
from farmintel.managers.report_manager import IntelReporter


def populate(intel: FarmIntelligence, clock) -> None:
    intel.update_target_info(10, 20, name="Oasis", population=80, distance=7.5)
    intel.record_raid_sent(10, 20, {"tt": 10})
    clock.advance(minutes=20)
    intel.record_raid_result(
        10, 20, {"loot": {"wood": 300, "clay": 200, "iron": 100, "crop": 50}}
    )
    intel.record_raid_sent(-3, 4, {"tt": 2}, source="map")
    intel.pause_target(-3, 4, duration=timedelta(hours=1))
    intel.update_settings(cleanup_days=7)


def snapshot(intel: FarmIntelligence):
    with intel.locked():
        return (
            {t.key: t.model_dump() for t in intel.targets()},
            intel.global_stats().model_dump(),
            intel.settings.model_dump(),
        )


class TestRoundTrip:
    def test_memory_store_round_trip(self, memory_store, clock):
        intel = FarmIntelligence("ts1", memory_store, clock=clock)
        populate(intel, clock)
        assert asyncio.run(intel.persist()) is True

        restored = FarmIntelligence("ts1", memory_store, clock=clock)
        asyncio.run(restored.load())
        assert snapshot(restored) == snapshot(intel)
        assert restored.loaded
        assert not restored.dirty

    def test_sqlite_round_trip(self, tmp_path, clock):
        async def scenario():
            db = Database(tmp_path / "intel.db")
            await db.init()
            intel = FarmIntelligence("ts1", db, clock=clock)
            populate(intel, clock)
            await intel.persist()
            # Second write updates the existing row
            intel.record_raid_sent(1, 1)
            await intel.persist()
            await db.close()

            db2 = Database(tmp_path / "intel.db")
            restored = FarmIntelligence("ts1", db2, clock=clock)
            await restored.load()
            await db2.close()
            return intel, restored

        intel, restored = asyncio.run(scenario())
        assert snapshot(restored) == snapshot(intel)
        assert IntelReporter(restored).get_target(1, 1) is not None

    def test_blob_layout(self, memory_store, clock):
        intel = FarmIntelligence("ts1", memory_store, clock=clock)
        populate(intel, clock)
        asyncio.run(intel.persist())
        blob = memory_store.data["farm_data__ts1"]
        assert blob["version"] == SCHEMA_VERSION
        assert set(blob["targets"]) == {"10|20", "-3|4"}
        target = blob["targets"]["10|20"]
        assert target["raidHistory"][0]["totalLoot"] == 650
        assert target["status"] == "active"
        assert blob["globalStats"]["totalRaids"] == 2
        assert blob["settings"]["cleanupDays"] == 7

    def test_servers_are_isolated(self, memory_store, clock):
        intel = FarmIntelligence("ts1", memory_store, clock=clock)
        populate(intel, clock)
        asyncio.run(intel.persist())
        other = FarmIntelligence("ts2", memory_store, clock=clock)
        asyncio.run(other.load())
        assert other.targets() == []


class TestDirtyTracking:
    def test_clean_store_skips_write(self, memory_store, clock):
        intel = FarmIntelligence("ts1", memory_store, clock=clock)
        assert asyncio.run(intel.persist()) is False
        intel.record_raid_sent(1, 1)
        assert asyncio.run(intel.persist()) is True
        assert asyncio.run(intel.persist()) is False
        assert memory_store.writes == 1

    def test_failed_write_stays_dirty_and_retries(self, memory_store, clock):
        intel = FarmIntelligence("ts1", memory_store, clock=clock)
        intel.record_raid_sent(1, 1)
        memory_store.fail_writes = True
        assert asyncio.run(intel.persist()) is False
        assert intel.dirty
        memory_store.fail_writes = False
        assert asyncio.run(intel.persist()) is True
        assert not intel.dirty

    def test_change_during_write_keeps_dirty(self, memory_store, clock):
        intel = FarmIntelligence("ts1", memory_store, clock=clock)
        intel.record_raid_sent(1, 1)
        original_set = memory_store.set

        async def racing_set(key, blob):
            intel.record_raid_sent(2, 2)
            await original_set(key, blob)

        memory_store.set = racing_set
        assert asyncio.run(intel.persist()) is True
        assert intel.dirty
        assert "2|2" not in memory_store.data["farm_data__ts1"]["targets"]


class TestLoadFallbacks:
    def test_missing_blob_starts_empty(self, memory_store, clock):
        intel = FarmIntelligence("ts1", memory_store, clock=clock)
        asyncio.run(intel.load())
        assert intel.loaded
        assert intel.targets() == []
        assert intel.settings == IntelSettings()

    def test_wrong_version_starts_fresh(self, memory_store, clock):
        memory_store.data["farm_data__ts1"] = {"version": 2, "targets": {"1|1": {}}}
        intel = FarmIntelligence("ts1", memory_store, clock=clock)
        intel.record_raid_sent(5, 5)
        asyncio.run(intel.load())
        assert intel.targets() == []
        assert intel.global_stats().total_raids == 0

    def test_malformed_blob_starts_fresh(self, memory_store, clock):
        memory_store.data["farm_data__ts1"] = {
            "version": 1,
            "targets": {"1|1": {"coords": "nope"}},
        }
        intel = FarmIntelligence("ts1", memory_store, clock=clock)
        asyncio.run(intel.load())
        assert intel.loaded
        assert intel.targets() == []

    def test_read_failure_keeps_memory_state(self, memory_store, clock):
        intel = FarmIntelligence("ts1", memory_store, clock=clock)
        intel.record_raid_sent(5, 5)
        memory_store.fail_reads = True
        asyncio.run(intel.load())
        assert intel.loaded
        assert IntelReporter(intel).get_target(5, 5) is not None

    def test_partial_settings_merge_over_defaults(self, memory_store, clock):
        memory_store.data["farm_data__ts1"] = {
            "version": 1,
            "targets": {},
            "settings": {"maxEmptyBeforePause": 6},
        }
        intel = FarmIntelligence("ts1", memory_store, clock=clock)
        asyncio.run(intel.load())
        assert intel.settings.max_empty_before_pause == 6
        assert intel.settings.cleanup_days == 14
        assert intel.settings.dry_pause_hours == 2


class TestMalformedBlobs:
    def load_blob(self, memory_store, clock, blob):
        memory_store.data["farm_data__ts1"] = blob
        intel = FarmIntelligence("ts1", memory_store, clock=clock)
        intel.record_raid_sent(5, 5)
        asyncio.run(intel.load())
        return intel

    def test_targets_as_list(self, memory_store, clock):
        intel = self.load_blob(
            memory_store, clock, {"version": 1, "targets": [{"coords": {"x": 1, "y": 1}}]}
        )
        assert intel.loaded
        assert intel.targets() == []

    def test_blob_not_a_dict(self, memory_store, clock):
        intel = self.load_blob(memory_store, clock, ["not", "a", "dict"])
        assert intel.loaded
        assert intel.targets() == []

    def test_global_stats_wrong_type(self, memory_store, clock):
        intel = self.load_blob(memory_store, clock, {"version": 1, "globalStats": 5})
        assert intel.targets() == []
        assert intel.global_stats().total_raids == 0

    def test_settings_wrong_type(self, memory_store, clock):
        intel = self.load_blob(
            memory_store, clock, {"version": 1, "settings": {"cleanupDays": "soon"}}
        )
        assert intel.settings == IntelSettings()

    def test_naive_stored_timestamps_loaded_as_utc(self, memory_store, clock):
        memory_store.data["farm_data__ts1"] = {
            "version": 1,
            "targets": {
                "1|1": {
                    "coords": {"x": 1, "y": 1},
                    "discoveredAt": "2025-03-01T10:00:00",
                    "raidHistory": [
                        {"timestamp": "2025-03-01T11:00:00", "totalLoot": 80, "pending": False}
                    ],
                }
            },
        }
        intel = FarmIntelligence("ts1", memory_store, clock=clock)
        asyncio.run(intel.load())
        assert intel.cleanup() == 0
        target = IntelReporter(intel).get_target(1, 1)
        assert target.discovered_at.tzinfo is not None
        assert target.raid_history[0].timestamp.tzinfo is not None

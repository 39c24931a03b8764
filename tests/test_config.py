"""Tests for config loading and settings merging."""

from __future__ import annotations

import pytest

from farmintel.core.config import AppConfig, IntelSettings, load_config
from farmintel.core.exceptions import ConfigError


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.toml")
        assert config == AppConfig()
        assert config.intel.cleanup_days == 14

    def test_partial_intel_section(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            'server_key = "de250"\n\n[intel]\nmax_losses_before_blacklist = 4\n',
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.server_key == "de250"
        assert config.intel.max_losses_before_blacklist == 4
        assert config.intel.max_empty_before_pause == 3
        assert config.intel.model_fields_set == {"max_losses_before_blacklist"}

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[intel\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[intel]\ncleanup_days = -1\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)


class TestIntelSettingsMerge:
    def test_merge_keeps_unspecified(self):
        merged = IntelSettings().merged({"dry_pause_hours": 4})
        assert merged.dry_pause_hours == 4
        assert merged.max_empty_before_pause == 3

    def test_merge_accepts_camel_case(self):
        merged = IntelSettings().merged({"cleanupDays": 30, "maxLossesBeforeBlacklist": 5})
        assert merged.cleanup_days == 30
        assert merged.max_losses_before_blacklist == 5

    def test_merge_ignores_unknown_and_none(self):
        base = IntelSettings(cleanup_days=9)
        merged = base.merged({"bogus": 1, "cleanup_days": None})
        assert merged == base

    def test_merge_validates(self):
        with pytest.raises(ValueError):
            IntelSettings().merged({"max_empty_before_pause": 0})

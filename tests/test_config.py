"""Tests for the configuration system."""

import os
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from barrules.bars import BarDriver
from barrules.config import BarrulesConfig, DriverConfig, RuleConfig
from barrules.errors import ConfigurationError
from barrules.rules import AlignedTimeRule, VolumeRule


class TestRuleConfig:
    def test_defaults(self):
        cfg = RuleConfig(spec="volume_100")
        assert cfg.spec == "volume_100"
        assert cfg.enabled is True
        assert cfg.origin is None

    def test_build(self):
        rule = RuleConfig(spec="volume_100").build()
        assert isinstance(rule, VolumeRule)

    def test_build_uses_configured_origin(self):
        origin = datetime(2026, 1, 1, 9, 30, tzinfo=UTC)
        rule = RuleConfig(spec="aligned_5m", origin=origin).build()
        assert isinstance(rule, AlignedTimeRule)
        assert rule.origin == origin

    def test_explicit_origin_overrides_config(self):
        configured = datetime(2026, 1, 1, 9, 30, tzinfo=UTC)
        explicit = datetime(2026, 1, 1, tzinfo=UTC)
        rule = RuleConfig(spec="aligned_5m", origin=configured).build(origin=explicit)
        assert rule.origin == explicit

    def test_naive_origin_rejected(self):
        with pytest.raises(ValidationError):
            RuleConfig(spec="aligned_5m", origin=datetime(2026, 1, 1))

    def test_invalid_spec_fails_on_build(self):
        with pytest.raises(ConfigurationError):
            RuleConfig(spec="tick_500").build()


class TestDriverConfig:
    def test_defaults(self):
        cfg = DriverConfig()
        assert cfg.skip_out_of_order is False
        assert cfg.flush_on_end is True

    def test_build(self):
        rule = VolumeRule(10)
        driver = DriverConfig(skip_out_of_order=True).build(rule)
        assert isinstance(driver, BarDriver)
        assert driver.rule is rule


class TestBarrulesConfig:
    def test_defaults(self):
        cfg = BarrulesConfig()
        assert cfg.driver.skip_out_of_order is False
        assert cfg.rules == []

    def test_from_toml(self, tmp_path):
        toml_content = """\
[driver]
skip_out_of_order = true
flush_on_end = false

[[rules]]
spec = "aligned_5m"
origin = 2026-02-10T09:30:00Z

[[rules]]
spec = "volume_250"
enabled = false
"""
        toml_file = tmp_path / "test.toml"
        toml_file.write_text(toml_content)

        cfg = BarrulesConfig.from_toml(toml_file)
        assert cfg.driver.skip_out_of_order is True
        assert cfg.driver.flush_on_end is False
        assert len(cfg.rules) == 2
        assert cfg.rules[0].origin == datetime(2026, 2, 10, 9, 30, tzinfo=UTC)
        assert cfg.rules[1].enabled is False
        assert cfg.rules[0].enabled is True

        rule = cfg.rules[0].build()
        assert rule.window_for(datetime(2026, 2, 10, 9, 37, tzinfo=UTC))[0] == datetime(
            2026, 2, 10, 9, 35, tzinfo=UTC
        )
        assert rule.duration == timedelta(minutes=5)

    def test_rule_config_lookup(self):
        cfg = BarrulesConfig(rules=[RuleConfig(spec="time_1m"), RuleConfig(spec="volume_10")])
        assert cfg.rule_config("volume_10").spec == "volume_10"
        assert cfg.rule_config("aligned_1h") is None

    def test_from_toml_minimal(self, tmp_path):
        toml_file = tmp_path / "min.toml"
        toml_file.write_text('[[rules]]\nspec = "time_1m"\n')
        cfg = BarrulesConfig.from_toml(toml_file)
        assert cfg.driver.flush_on_end is True
        assert len(cfg.rules) == 1

    def test_find_and_load_explicit_path(self, tmp_path):
        toml_file = tmp_path / "explicit.toml"
        toml_file.write_text('[[rules]]\nspec = "volume_5"\n')
        cfg = BarrulesConfig.find_and_load(str(toml_file))
        assert cfg is not None
        assert cfg.rules[0].spec == "volume_5"

    def test_find_and_load_env_var(self, tmp_path):
        toml_file = tmp_path / "env.toml"
        toml_file.write_text('[[rules]]\nspec = "time_30s"\n')
        with patch.dict(os.environ, {"BARRULES_CONFIG": str(toml_file)}):
            cfg = BarrulesConfig.find_and_load()
        assert cfg is not None
        assert cfg.rules[0].spec == "time_30s"

    def test_find_and_load_returns_none_when_missing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("BARRULES_CONFIG", raising=False)
        assert BarrulesConfig.find_and_load() is None

    def test_find_and_load_cwd_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("BARRULES_CONFIG", raising=False)
        (tmp_path / "barrules.toml").write_text('[[rules]]\nspec = "aligned_1h"\n')
        cfg = BarrulesConfig.find_and_load()
        assert cfg is not None
        assert cfg.rules[0].spec == "aligned_1h"

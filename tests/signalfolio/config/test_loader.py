"""Tests for signalfolio.config.loader — YAML strategy config."""

from __future__ import annotations

import logging

import pytest
import yaml

from signalfolio.config.loader import (
    CombinationSettings,
    _deep_merge,
    combination_settings,
    generator_config_for,
    load_strategy_config,
    performance_settings,
    strategy_allocations,
    strategy_weights,
)


def _write(tmp_path, data):
    path = tmp_path / "strategies.yml"
    path.write_text(yaml.safe_dump(data, sort_keys=False))
    return path


SAMPLE = {
    "default": {
        "strategies": {
            "insider": {
                "weight": 1.0,
                "capital_weight": 0.6,
                "generator": {"lookback_days": 30, "sizing_mode": "role_weighted"},
            },
            "congress": {"weight": 0.3, "capital_weight": 0.4},
        },
        "combination": {"merge_mode": "additive", "max_position_pct": 0.2},
        "performance": {"risk_free_rate": 0.04},
    },
    "paper": {"combination": {"min_position_value": 50}},
    "live": {"strategies": {"congress": {"enabled": False}}},
}


class TestLoadStrategyConfig:
    def test_default_section(self, tmp_path):
        config = load_strategy_config(path=_write(tmp_path, SAMPLE))
        assert set(config["strategies"]) == {"insider", "congress"}
        assert "min_position_value" not in config["combination"]

    def test_environment_deep_merged(self, tmp_path):
        config = load_strategy_config("paper", path=_write(tmp_path, SAMPLE))
        assert config["combination"] == {
            "merge_mode": "additive",
            "max_position_pct": 0.2,
            "min_position_value": 50,
        }

    def test_overrides_applied_last(self, tmp_path):
        config = load_strategy_config(
            "paper",
            path=_write(tmp_path, SAMPLE),
            overrides={"combination": {"min_position_value": 10}},
        )
        assert config["combination"]["min_position_value"] == 10

    def test_unknown_env(self, tmp_path):
        with pytest.raises(ValueError, match="env must be one of"):
            load_strategy_config("staging", path=_write(tmp_path, SAMPLE))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_strategy_config(path=path) == {}

    def test_repo_config_loads(self):
        config = load_strategy_config("live")
        assert "contracts" not in strategy_weights(config)
        assert sum(a.capital_weight for a in strategy_allocations(config)) <= 1.0


class TestDeepMerge:
    def test_does_not_mutate_base(self):
        base = {"a": {"b": 1}}
        merged = _deep_merge(base, {"a": {"c": 2}})
        assert merged == {"a": {"b": 1, "c": 2}}
        assert base == {"a": {"b": 1}}


class TestStrategySections:
    def test_weights_skip_disabled(self, tmp_path):
        config = load_strategy_config("live", path=_write(tmp_path, SAMPLE))
        assert strategy_weights(config) == {"insider": 1.0}

    def test_generator_config(self, tmp_path):
        config = load_strategy_config(path=_write(tmp_path, SAMPLE))
        cfg = generator_config_for(config, "insider")
        assert cfg.sizing_mode == "role_weighted"
        assert generator_config_for(config, "congress").lookback_days == 30

    def test_generator_config_unknown_strategy(self, tmp_path):
        config = load_strategy_config(path=_write(tmp_path, SAMPLE))
        with pytest.raises(KeyError, match="Unknown strategy"):
            generator_config_for(config, "options_flow")

    def test_allocations(self, tmp_path):
        config = load_strategy_config(path=_write(tmp_path, SAMPLE))
        allocations = strategy_allocations(config)
        assert [(a.name, a.capital_weight) for a in allocations] == [
            ("insider", 0.6),
            ("congress", 0.4),
        ]


class TestCombinationSettings:
    def test_from_config(self, tmp_path):
        config = load_strategy_config(path=_write(tmp_path, SAMPLE))
        settings = combination_settings(config)
        assert settings.max_position_pct == 0.2
        assert settings.enable_shorts is False

    def test_unknown_keys_warned(self, caplog):
        with caplog.at_level(logging.WARNING):
            settings = combination_settings({"combination": {"rebalance_hour": 9}})
        assert settings == CombinationSettings()
        assert "rebalance_hour" in caplog.text

    def test_invalid_merge_mode(self):
        with pytest.raises(ValueError, match="merge_mode"):
            CombinationSettings(merge_mode="median")


class TestPerformanceSettings:
    def test_from_config(self, tmp_path):
        config = load_strategy_config(path=_write(tmp_path, SAMPLE))
        assert performance_settings(config).risk_free_rate == 0.04

    def test_overrides(self, caplog):
        with caplog.at_level(logging.INFO):
            settings = performance_settings(
                {"performance": {"risk_free_rate": 0.04}},
                {"min_risk_samples": 10, "sortino_target": 0.0},
            )
        assert settings.min_risk_samples == 10
        assert settings.risk_free_rate == 0.04
        assert "Performance overrides applied: min_risk_samples=10" in caplog.text
        assert "sortino_target" in caplog.text

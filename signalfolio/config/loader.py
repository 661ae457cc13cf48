"""Strategy config loader — YAML defaults, environment sections, overrides.

configs/strategies.yml holds a ``default`` section plus optional ``paper``
and ``live`` sections deep-merged on top. Netting weights are read from the
enabled strategies only and handed to the netter explicitly; nothing here
is cached in process state.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from signalfolio.eval.performance import PerformanceSettings
from signalfolio.portfolio.combine import StrategyAllocation
from signalfolio.portfolio.generator import GeneratorConfig

logger = logging.getLogger(__name__)

_STRATEGIES_YML = Path(__file__).resolve().parents[2] / "configs" / "strategies.yml"

_VALID_ENVIRONMENTS = {"default", "paper", "live", "test"}

_PERFORMANCE_FIELDS = {f.name for f in fields(PerformanceSettings)}


@dataclass(frozen=True)
class CombinationSettings:
    merge_mode: str = "additive"
    max_position_pct: float | None = None
    min_position_value: float = 0.0
    enable_shorts: bool = False

    def __post_init__(self):
        if self.merge_mode not in ("additive", "max", "average"):
            raise ValueError(
                f"merge_mode must be 'additive', 'max' or 'average', got '{self.merge_mode}'"
            )
        if self.max_position_pct is not None and not 0 < self.max_position_pct <= 1:
            raise ValueError("max_position_pct must be in (0, 1]")
        if self.min_position_value < 0:
            raise ValueError("min_position_value must be >= 0")


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base; override wins."""
    result = copy.deepcopy(base)
    for key, val in override.items():
        if isinstance(val, Mapping) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = copy.deepcopy(val)
    return result


def load_strategy_config(
    env: str = "default",
    path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Load the merged strategy config for an environment.

    Args:
        env: 'default', 'paper', 'live' or 'test'.
        path: Alternate YAML file (defaults to configs/strategies.yml).
        overrides: Nested mapping merged last (e.g. from a CLI).
    """
    if env not in _VALID_ENVIRONMENTS:
        raise ValueError(f"env must be one of {sorted(_VALID_ENVIRONMENTS)}, got '{env}'")

    p = path or _STRATEGIES_YML
    with open(p, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    config = copy.deepcopy(raw.get("default") or {})
    if env != "default" and raw.get(env):
        config = _deep_merge(config, raw[env])
        logger.info("Applied '%s' environment overrides from %s", env, p)

    if overrides:
        config = _deep_merge(config, overrides)
        logger.info("Config overrides applied: %s", ", ".join(sorted(overrides)))
    return config


def strategy_weights(config: Mapping[str, Any]) -> dict[str, float]:
    """Netting weights of enabled strategies."""
    weights: dict[str, float] = {}
    for name, entry in (config.get("strategies") or {}).items():
        if not entry.get("enabled", True):
            continue
        weights[name] = float(entry.get("weight", 1.0))
    return weights


def generator_config_for(config: Mapping[str, Any], strategy: str) -> GeneratorConfig:
    strategies = config.get("strategies") or {}
    if strategy not in strategies:
        raise KeyError(f"Unknown strategy '{strategy}'; configured: {sorted(strategies)}")
    return GeneratorConfig.from_dict(strategies[strategy].get("generator") or {})


def strategy_allocations(config: Mapping[str, Any]) -> list[StrategyAllocation]:
    """Capital allocations of enabled strategies, in config order."""
    allocations = []
    for name, entry in (config.get("strategies") or {}).items():
        if not entry.get("enabled", True):
            continue
        allocations.append(
            StrategyAllocation(
                name=name,
                capital_weight=float(entry.get("capital_weight", 0.0)),
                generator=GeneratorConfig.from_dict(entry.get("generator") or {}),
            )
        )
    return allocations


def combination_settings(config: Mapping[str, Any]) -> CombinationSettings:
    raw = dict(config.get("combination") or {})
    known = {f.name for f in fields(CombinationSettings)}
    ignored = sorted(set(raw) - known)
    if ignored:
        logger.warning("Combination settings ignored (unknown fields): %s", ", ".join(ignored))
    return CombinationSettings(**{k: v for k, v in raw.items() if k in known})


def performance_settings(
    config: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> PerformanceSettings:
    """PerformanceSettings from the ``performance`` section plus overrides.

    Only known fields are applied; unknown keys are logged and ignored.
    """
    kwargs = {
        k: v for k, v in (config.get("performance") or {}).items() if k in _PERFORMANCE_FIELDS
    }
    if not overrides:
        return PerformanceSettings(**kwargs)

    applied: list[str] = []
    ignored: list[str] = []
    for key, val in overrides.items():
        if key in _PERFORMANCE_FIELDS:
            kwargs[key] = val
            applied.append(key)
        else:
            ignored.append(key)

    if applied:
        logger.info(
            "Performance overrides applied: %s",
            ", ".join(f"{k}={overrides[k]}" for k in applied),
        )
    if ignored:
        logger.warning(
            "Performance overrides ignored (unknown fields): %s",
            ", ".join(ignored),
        )
    return PerformanceSettings(**kwargs)

"""Multi-strategy combination — capital-weighted union of target positions.

Each strategy generates against its own carved-out share of equity, so no
strategy can exceed its capital cap. Conflicting symbols are then merged,
summed by default, before the union goes to the rebalancer.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping, Sequence

from signalfolio.errors import InvalidInputError
from signalfolio.portfolio.events import TradeEvent
from signalfolio.portfolio.generator import GenerationResult, GeneratorConfig, generate
from signalfolio.portfolio.target import TargetPosition, to_decimal
from signalfolio.sizing.base import require_equity
from signalfolio.sizing.fundamentals import FundamentalDataProvider

logger = logging.getLogger(__name__)

_VALID_MERGE_MODES = {"additive", "max", "average"}
_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class StrategyAllocation:
    """A strategy's generator config and its share of total equity."""

    name: str
    capital_weight: float
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)

    def __post_init__(self):
        if not self.name:
            raise ValueError("strategy name must be non-empty")
        if not 0 <= self.capital_weight <= 1:
            raise ValueError(
                f"capital_weight for '{self.name}' must be in [0, 1], got {self.capital_weight}"
            )


@dataclass(frozen=True)
class BlendedPortfolio:
    target_positions: tuple[TargetPosition, ...]
    strategy_results: Mapping[str, GenerationResult]
    exposure: Mapping[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_positions": [p.to_dict() for p in self.target_positions],
            "strategies": {
                name: result.stats.to_dict() for name, result in self.strategy_results.items()
            },
            "exposure": dict(self.exposure),
        }


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def combine_positions(
    position_lists: Mapping[str, Sequence[TargetPosition]] | Sequence[Sequence[TargetPosition]],
    *,
    merge_mode: str = "additive",
    max_position_pct: float | None = None,
    total_equity: Any = None,
    min_position_value: float = 0.0,
) -> list[TargetPosition]:
    """Union per-strategy position lists into one position per symbol.

    Args:
        position_lists: Strategy name → positions, or a plain sequence of lists.
        merge_mode: 'additive' sums values, 'max' keeps the largest magnitude,
            'average' takes the mean.
        max_position_pct: Optional cap on |value| as a fraction of total_equity.
        total_equity: Required when max_position_pct is set.
        min_position_value: Merged positions below this magnitude are dropped.
    """
    if merge_mode not in _VALID_MERGE_MODES:
        raise InvalidInputError(
            f"merge_mode must be one of {sorted(_VALID_MERGE_MODES)}, got '{merge_mode}'"
        )
    cap: Decimal | None = None
    if max_position_pct is not None:
        equity = require_equity(total_equity)
        cap = equity * to_decimal(max_position_pct)

    if isinstance(position_lists, Mapping):
        labelled = list(position_lists.items())
    else:
        labelled = [(f"strategy_{i}", lst) for i, lst in enumerate(position_lists)]

    by_symbol: dict[str, list[tuple[str, TargetPosition]]] = defaultdict(list)
    for label, positions in labelled:
        for position in positions:
            by_symbol[position.symbol].append((label, position))

    minimum = to_decimal(min_position_value)
    merged: list[TargetPosition] = []
    for symbol in sorted(by_symbol):
        entries = by_symbol[symbol]
        values = [p.target_value for _, p in entries]
        if merge_mode == "additive":
            value = sum(values, Decimal(0))
        elif merge_mode == "max":
            value = max(values, key=abs)
        else:
            value = sum(values, Decimal(0)) / len(values)

        was_capped = False
        if cap is not None and abs(value) > cap:
            value = cap if value > 0 else -cap
            was_capped = True

        if value == 0 or abs(value) < minimum:
            continue

        first = entries[0][1]
        merged.append(
            TargetPosition(
                symbol=symbol,
                target_value=value,
                asset_type=first.asset_type,
                details={
                    "sources": [label for label, _ in entries],
                    "consensus_count": len(entries),
                    "original_values": {label: float(p.target_value) for label, p in entries},
                    "merge_mode": merge_mode,
                    "was_capped": was_capped,
                },
            )
        )

    capped = sum(1 for p in merged if p.details["was_capped"])
    if capped:
        logger.info("Capped %d position(s) at %s", capped, cap)
    merged.sort(key=lambda p: (-abs(p.target_value), p.symbol))
    return merged


def exposure_stats(positions: Iterable[TargetPosition], total_equity: Any) -> dict[str, Any]:
    """Long/short/gross/net exposure in dollars and as percent of equity."""
    equity = require_equity(total_equity)
    long_exposure = Decimal(0)
    short_exposure = Decimal(0)
    count = 0
    for p in positions:
        count += 1
        if p.target_value > 0:
            long_exposure += p.target_value
        else:
            short_exposure += -p.target_value
    gross = long_exposure + short_exposure
    net = long_exposure - short_exposure

    def pct(value: Decimal) -> float:
        return float((value / equity * _HUNDRED).quantize(Decimal("0.01")))

    return {
        "position_count": count,
        "long_exposure": float(long_exposure),
        "short_exposure": float(short_exposure),
        "gross_exposure": float(gross),
        "net_exposure": float(net),
        "long_exposure_pct": pct(long_exposure),
        "short_exposure_pct": pct(short_exposure),
        "gross_exposure_pct": pct(gross),
        "net_exposure_pct": pct(net),
    }


# ---------------------------------------------------------------------------
# Blended multi-strategy portfolio
# ---------------------------------------------------------------------------


def build_blended_portfolio(
    raw_events: Iterable[TradeEvent | Mapping[str, Any]],
    strategies: Sequence[StrategyAllocation],
    total_equity: Any,
    *,
    as_of: date | None = None,
    fundamentals: FundamentalDataProvider | None = None,
    merge_mode: str = "additive",
    max_position_pct: float | None = None,
    min_position_value: float = 0.0,
    enable_shorts: bool = False,
) -> BlendedPortfolio:
    """Generate every strategy on its equity share and merge the results.

    A structural failure in any strategy (missing capital, unsupported asset
    type) propagates; no partial blend is returned.
    """
    equity = require_equity(total_equity)
    names = [s.name for s in strategies]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise InvalidInputError(f"Duplicate strategy names in allocation: {duplicates}")
    total_weight = sum(s.capital_weight for s in strategies)
    if total_weight > 1 + 1e-9:
        raise InvalidInputError(
            f"Strategy capital weights sum to {total_weight:.4f}; must not exceed 1.0"
        )

    events = [e if isinstance(e, TradeEvent) else TradeEvent.from_record(e) for e in raw_events]

    results: dict[str, GenerationResult] = {}
    for strategy in strategies:
        if strategy.capital_weight == 0:
            logger.info("Skipping strategy '%s' with zero capital weight", strategy.name)
            continue
        allocated = equity * to_decimal(strategy.capital_weight)
        results[strategy.name] = generate(
            events,
            strategy.generator,
            allocated,
            as_of=as_of,
            fundamentals=fundamentals,
            strategy_name=strategy.name,
        )
        logger.info(
            "Strategy '%s': %d positions on $%.2f",
            strategy.name,
            len(results[strategy.name].target_positions),
            allocated,
        )

    merged = combine_positions(
        {name: result.target_positions for name, result in results.items()},
        merge_mode=merge_mode,
        max_position_pct=max_position_pct,
        total_equity=equity,
        min_position_value=min_position_value,
    )
    if not enable_shorts:
        shorts = [p for p in merged if p.target_value < 0]
        if shorts:
            logger.info("Dropping %d short position(s) (shorts disabled)", len(shorts))
        merged = [p for p in merged if p.target_value > 0]

    exposure = exposure_stats(merged, equity)
    exposure["strategy_contributions"] = {
        name: len(result.target_positions) for name, result in results.items()
    }
    exposure["strategy_allocations"] = {
        s.name: float(equity * to_decimal(s.capital_weight)) for s in strategies
    }
    exposure["positions_capped"] = sum(1 for p in merged if p.details.get("was_capped"))

    return BlendedPortfolio(
        target_positions=tuple(merged),
        strategy_results=results,
        exposure=exposure,
    )

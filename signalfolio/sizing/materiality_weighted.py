"""Materiality-weighted sizing for contract-award style events.

materiality_pct = contract_value / annual_revenue × 100

A symbol's weight is the sum of its awards' materiality. Missing revenue
must not zero out a real award, so items with unknown materiality count as
``unknown_weight`` (neutral by default) unless excluded. When nothing in
the set has a known materiality the policy cannot rank symbols and falls
back to equal weight.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Sequence

from signalfolio.portfolio.target import TargetPosition, to_decimal
from signalfolio.sizing.base import (
    allocate,
    event_details,
    group_by_ticker,
    require_equity,
    require_stock_items,
)
from signalfolio.sizing.equal_weight import EqualWeightSizer
from signalfolio.sizing.fundamentals import (
    FundamentalDataProvider,
    StaticFundamentals,
    compute_materiality_pct,
)

logger = logging.getLogger(__name__)


def event_materiality(event: Any, fundamentals: FundamentalDataProvider) -> Decimal | None:
    """Materiality percent for one event; a precomputed metadata value wins."""
    precomputed = event.metadata.get("materiality_pct") if event.metadata else None
    if precomputed is not None:
        return to_decimal(precomputed)
    return compute_materiality_pct(event.size_usd, fundamentals.annual_revenue(event.ticker))


class MaterialityWeightedSizer:
    """Weight symbols by how material their awards are to the company."""

    mode = "materiality_weighted"

    def __init__(
        self,
        fundamentals: FundamentalDataProvider | None = None,
        *,
        include_unknown: bool = True,
        unknown_weight: float = 1.0,
    ) -> None:
        self._fundamentals = fundamentals or StaticFundamentals()
        self._include_unknown = include_unknown
        self._unknown_weight = to_decimal(unknown_weight)

    def size(self, items: Sequence[Any], total_equity: Any) -> list[TargetPosition]:
        equity = require_equity(total_equity)
        require_stock_items(items)

        scored = [(e, event_materiality(e, self._fundamentals)) for e in items]
        unknown = [e.ticker for e, m in scored if m is None]
        if unknown:
            logger.warning(
                "Revenue unknown for %d event(s) (%s); %s",
                len(unknown),
                ", ".join(sorted(set(unknown))),
                "weighting neutrally" if self._include_unknown else "excluding",
            )
        if not self._include_unknown:
            scored = [(e, m) for e, m in scored if m is not None]

        if scored and all(m is None for _, m in scored):
            logger.info("No materiality known; falling back to equal weight")
            positions = EqualWeightSizer().size([e for e, _ in scored], equity)
            return [_relabel(p) for p in positions]

        materiality = {id(e): m for e, m in scored}
        weights: dict[str, Decimal] = {}
        details: dict[str, dict[str, Any]] = {}
        for ticker, events in group_by_ticker([e for e, _ in scored]).items():
            weight = Decimal(0)
            known: list[Decimal] = []
            for event in events:
                m = materiality[id(event)]
                if m is not None:
                    known.append(m)
                weight += (m if m is not None else self._unknown_weight) * event.direction
            weights[ticker] = weight
            details[ticker] = {
                **event_details(events),
                "materiality_pct": float(sum(known, Decimal(0))) if known else None,
                "contract_value": float(
                    sum((e.size_usd for e in events if e.size_usd is not None), Decimal(0))
                ),
                "agencies": sorted({e.agency for e in events if e.agency}),
            }

        return allocate(weights, equity, mode=self.mode, details=details)


def _relabel(position: TargetPosition) -> TargetPosition:
    details = {
        **position.details,
        "sizing_mode": MaterialityWeightedSizer.mode,
        "fallback": "equal_weight",
    }
    return TargetPosition(
        symbol=position.symbol,
        target_value=position.target_value,
        asset_type=position.asset_type,
        details=details,
    )

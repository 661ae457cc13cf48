"""Rebalancer — diff live positions against targets into order instructions.

For every symbol in either set:

    delta = target_value - current_value   (shorts count negative)

delta > 0 emits a buy, delta < 0 a sell, each with notional = |delta|.
Sells come before buys so that freed cash is available for purchases;
within each side instructions are ordered by symbol. The function keeps no
state, so identical inputs always yield identical instructions.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from signalfolio.portfolio.target import (
    CurrentPosition,
    TargetPosition,
    require_supported,
    to_decimal,
)

logger = logging.getLogger(__name__)


class OrderSide(enum.Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class OrderInstruction:
    """Intent to trade ``notional`` dollars of ``symbol``; submission is external."""

    symbol: str
    side: OrderSide
    notional: Decimal

    def __post_init__(self):
        object.__setattr__(self, "notional", to_decimal(self.notional))
        if self.notional < 0:
            raise ValueError(f"notional must be >= 0, got {self.notional}")
        if not isinstance(self.side, OrderSide):
            object.__setattr__(self, "side", OrderSide(self.side))

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "side": self.side.value,
            "notional": str(self.notional),
        }


def rebalance(
    target_positions: Iterable[TargetPosition],
    current_positions: Iterable[CurrentPosition],
    *,
    min_order_notional: Any = 0,
) -> list[OrderInstruction]:
    """Compute the orders that move current holdings onto the targets.

    Args:
        target_positions: Desired signed notionals.
        current_positions: One point-in-time snapshot from the broker.
        min_order_notional: Deltas with magnitude below this are skipped.

    Raises:
        UnsupportedAssetType: any target or current position is not a stock.
            Raised before any instruction is built.
    """
    targets = list(target_positions)
    current = list(current_positions)

    for position in [*targets, *current]:
        require_supported(position.asset_type, position.symbol)

    target_values: dict[str, Decimal] = {}
    for t in targets:
        target_values[t.symbol] = target_values.get(t.symbol, Decimal(0)) + t.target_value
    current_values: dict[str, Decimal] = {}
    for c in current:
        current_values[c.symbol] = current_values.get(c.symbol, Decimal(0)) + c.signed_value

    threshold = to_decimal(min_order_notional)
    sells: list[OrderInstruction] = []
    buys: list[OrderInstruction] = []
    for symbol in sorted(set(target_values) | set(current_values)):
        delta = target_values.get(symbol, Decimal(0)) - current_values.get(symbol, Decimal(0))
        if delta == 0:
            continue
        if abs(delta) < threshold:
            logger.debug("Skipping %s: delta $%.2f below minimum", symbol, delta)
            continue
        side = OrderSide.BUY if delta > 0 else OrderSide.SELL
        instruction = OrderInstruction(symbol=symbol, side=side, notional=abs(delta))
        (buys if side is OrderSide.BUY else sells).append(instruction)
        logger.info("Rebalance → Order: %s %s $%.2f", side.value, symbol, abs(delta))

    return sells + buys

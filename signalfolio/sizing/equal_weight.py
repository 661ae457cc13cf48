"""Equal-weight sizing — total_equity / N per qualifying symbol.

Loadable by name as 'equal_weight'. Direction per symbol comes from the net
of its events (purchases +1, sales -1); symbols that net to zero are dropped.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Sequence

from signalfolio.portfolio.target import TargetPosition
from signalfolio.sizing.base import (
    allocate,
    event_details,
    group_by_ticker,
    require_equity,
    require_stock_items,
)


class EqualWeightSizer:
    """Uniform allocation across qualifying symbols."""

    mode = "equal_weight"

    def size(self, items: Sequence[Any], total_equity: Any) -> list[TargetPosition]:
        equity = require_equity(total_equity)
        require_stock_items(items)

        weights: dict[str, Decimal] = {}
        details: dict[str, dict[str, Any]] = {}
        for ticker, events in group_by_ticker(items).items():
            net_direction = sum(e.direction for e in events)
            if net_direction == 0:
                continue
            weights[ticker] = Decimal(1 if net_direction > 0 else -1)
            details[ticker] = event_details(events)

        return allocate(weights, equity, mode=self.mode, details=details)

"""Value-weighted sizing — allocate in proportion to disclosed trade size."""

from __future__ import annotations

import logging
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

logger = logging.getLogger(__name__)


class ValueWeightedSizer:
    """Weight = signed sum of event dollar sizes per symbol."""

    mode = "value_weighted"

    def size(self, items: Sequence[Any], total_equity: Any) -> list[TargetPosition]:
        equity = require_equity(total_equity)
        require_stock_items(items)

        weights: dict[str, Decimal] = {}
        details: dict[str, dict[str, Any]] = {}
        for ticker, events in group_by_ticker(items).items():
            sized = [e for e in events if e.size_usd is not None]
            if len(sized) < len(events):
                logger.warning(
                    "%d %s event(s) without a size ignored for value weighting",
                    len(events) - len(sized),
                    ticker,
                )
            total = sum((e.signed_size for e in sized), Decimal(0))
            weights[ticker] = total
            details[ticker] = {**event_details(events), "total_event_value": float(total)}

        return allocate(weights, equity, mode=self.mode, details=details)

"""Conviction-weighted sizing from netted scores.

Items carry ``ticker`` and ``score`` (Signals or NetConvictions). A plain
``{ticker: score}`` mapping is accepted too. Score sign sets the side and
magnitude sets the share; a zero score is not actionable and gets no
position.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from signalfolio.portfolio.target import TargetPosition, to_decimal
from signalfolio.sizing.base import allocate, require_equity, require_stock_items


class ConvictionWeightedSizer:
    """Allocate in proportion to netted conviction scores."""

    mode = "conviction_weighted"

    def size(self, items: Any, total_equity: Any) -> list[TargetPosition]:
        equity = require_equity(total_equity)
        if isinstance(items, Mapping):
            scores = {ticker: to_decimal(score) for ticker, score in items.items()}
        else:
            require_stock_items(items)
            scores = {}
            for item in items:
                scores[item.ticker] = scores.get(item.ticker, Decimal(0)) + to_decimal(
                    item.score
                )

        details = {ticker: {"score": float(score)} for ticker, score in scores.items()}
        return allocate(scores, equity, mode=self.mode, details=details)

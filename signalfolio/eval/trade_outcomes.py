"""Realized round-trip P&L from executed fills.

Average-cost accounting per symbol, long and short legs. A round trip ends
when the position returns to flat; its accumulated realized P&L is one
outcome. Fills that flip the position through zero close the current leg
and open the opposite one at the fill price.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Iterable

from signalfolio.eval.history import Fill

_FLAT = Decimal("1e-9")


def realized_trade_outcomes(fills: Iterable[Fill]) -> list[float]:
    """Realized P&L of every completed round trip, grouped by symbol."""
    by_symbol: dict[str, list[Fill]] = defaultdict(list)
    for fill in sorted(fills, key=lambda f: f.time):
        by_symbol[fill.symbol].append(fill)

    outcomes: list[float] = []
    for symbol in sorted(by_symbol):
        outcomes.extend(_round_trips(by_symbol[symbol]))
    return outcomes


def _round_trips(fills: list[Fill]) -> list[float]:
    position = Decimal(0)  # signed quantity
    avg_price = Decimal(0)
    realized = Decimal(0)
    outcomes: list[float] = []

    for fill in fills:
        qty, price = fill.qty, fill.price
        signed = qty if fill.side == "buy" else -qty

        if position == 0 or (position > 0) == (signed > 0):
            # Opening or adding to the current leg
            new_abs = abs(position) + qty
            avg_price = (avg_price * abs(position) + price * qty) / new_abs
            position += signed
        else:
            closing = min(qty, abs(position))
            if position > 0:
                realized += closing * (price - avg_price)
            else:
                realized += closing * (avg_price - price)
            position += closing if signed > 0 else -closing
            leftover = qty - closing
            if leftover > 0:
                # Flip: current leg is closed, the remainder opens a new one
                outcomes.append(float(realized))
                realized = Decimal(0)
                position = leftover if signed > 0 else -leftover
                avg_price = price
                continue

        if abs(position) < _FLAT:
            if realized != 0:
                outcomes.append(float(realized))
            realized = Decimal(0)
            avg_price = Decimal(0)
            position = Decimal(0)

    return outcomes

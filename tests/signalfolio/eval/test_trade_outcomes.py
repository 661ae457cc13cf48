"""Tests for signalfolio.eval.trade_outcomes — realized round trips."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from signalfolio.errors import ValidationError
from signalfolio.eval.history import Fill
from signalfolio.eval.trade_outcomes import realized_trade_outcomes

T0 = datetime(2025, 6, 2, 14, 30, tzinfo=timezone.utc)


def _fills(*specs):
    return [
        Fill(symbol, side, qty, price, T0 + timedelta(minutes=i))
        for i, (symbol, side, qty, price) in enumerate(specs)
    ]


class TestRealizedTradeOutcomes:
    def test_single_round_trip(self):
        fills = _fills(("AAPL", "buy", 10, 100), ("AAPL", "sell", 10, 105))
        assert realized_trade_outcomes(fills) == [pytest.approx(50.0)]

    def test_average_cost_with_partial_exits(self):
        fills = _fills(
            ("AAPL", "buy", 10, 100),
            ("AAPL", "buy", 10, 110),     # avg 105
            ("AAPL", "sell", 5, 100),     # -25
            ("AAPL", "sell", 15, 110),    # +75
        )
        assert realized_trade_outcomes(fills) == [pytest.approx(50.0)]

    def test_short_round_trip(self):
        fills = _fills(("TSLA", "sell", 4, 250), ("TSLA", "buy", 4, 200))
        assert realized_trade_outcomes(fills) == [pytest.approx(200.0)]

    def test_open_position_has_no_outcome(self):
        assert realized_trade_outcomes(_fills(("AAPL", "buy", 10, 100))) == []

    def test_flip_closes_leg_and_opens_opposite(self):
        fills = _fills(
            ("AAPL", "buy", 10, 100),
            ("AAPL", "sell", 15, 110),    # closes long for +100, opens 5 short at 110
            ("AAPL", "buy", 5, 100),      # closes short for +50
        )
        assert realized_trade_outcomes(fills) == [pytest.approx(100.0), pytest.approx(50.0)]

    def test_break_even_not_counted(self):
        fills = _fills(("AAPL", "buy", 10, 100), ("AAPL", "sell", 10, 100))
        assert realized_trade_outcomes(fills) == []

    def test_fills_sorted_by_time(self):
        fills = _fills(("AAPL", "buy", 10, 100), ("AAPL", "sell", 10, 90))
        assert realized_trade_outcomes(list(reversed(fills))) == [pytest.approx(-100.0)]

    def test_symbols_grouped(self):
        fills = _fills(
            ("MSFT", "buy", 1, 300),
            ("AAPL", "buy", 1, 100),
            ("MSFT", "sell", 1, 310),
            ("AAPL", "sell", 1, 90),
        )
        assert realized_trade_outcomes(fills) == [pytest.approx(-10.0), pytest.approx(10.0)]


class TestFill:
    def test_invalid_side(self):
        with pytest.raises(ValidationError):
            Fill("AAPL", "hold", 1, 100, T0)

    def test_non_positive_qty(self):
        with pytest.raises(ValidationError):
            Fill("AAPL", "buy", 0, 100, T0)

"""Tests for signalfolio.portfolio.combine — multi-strategy merging."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from signalfolio.errors import InvalidInputError
from signalfolio.portfolio.combine import (
    StrategyAllocation,
    build_blended_portfolio,
    combine_positions,
    exposure_stats,
)
from signalfolio.portfolio.events import EventType, TradeEvent
from signalfolio.portfolio.generator import GeneratorConfig
from signalfolio.portfolio.target import TargetPosition

AS_OF = date(2025, 6, 30)


def _pos(symbol: str, value) -> TargetPosition:
    return TargetPosition(symbol, Decimal(str(value)))


class TestCombinePositions:
    def test_additive_sums_overlap(self):
        merged = combine_positions(
            {"insider": [_pos("AAPL", 500), _pos("MSFT", 300)], "congress": [_pos("AAPL", 200)]}
        )
        values = {p.symbol: p.target_value for p in merged}
        assert values == {"AAPL": Decimal(700), "MSFT": Decimal(300)}
        aapl = merged[0]
        assert aapl.details["consensus_count"] == 2
        assert aapl.details["sources"] == ["insider", "congress"]
        assert aapl.details["original_values"] == {"insider": 500.0, "congress": 200.0}

    def test_max_mode_keeps_largest_magnitude(self):
        merged = combine_positions(
            [[_pos("AAPL", 500)], [_pos("AAPL", -800)]], merge_mode="max"
        )
        assert merged[0].target_value == Decimal(-800)
        assert merged[0].details["sources"] == ["strategy_0", "strategy_1"]

    def test_average_mode(self):
        merged = combine_positions([[_pos("AAPL", 500)], [_pos("AAPL", 300)]], merge_mode="average")
        assert merged[0].target_value == Decimal(400)

    def test_offsetting_positions_dropped(self):
        merged = combine_positions([[_pos("AAPL", 500)], [_pos("AAPL", -500)]])
        assert merged == []

    def test_cap_preserves_sign(self):
        merged = combine_positions(
            [[_pos("AAPL", 5000), _pos("TSLA", -5000), _pos("MSFT", 1000)]],
            max_position_pct=0.15,
            total_equity=10_000,
        )
        values = {p.symbol: p.target_value for p in merged}
        assert values["AAPL"] == Decimal(1500)
        assert values["TSLA"] == Decimal(-1500)
        assert values["MSFT"] == Decimal(1000)
        assert merged[0].details["was_capped"] is True

    def test_cap_requires_equity(self):
        with pytest.raises(InvalidInputError):
            combine_positions([[_pos("AAPL", 1)]], max_position_pct=0.1)

    def test_min_position_value(self):
        merged = combine_positions([[_pos("AAPL", 500), _pos("PENNY", 50)]], min_position_value=100)
        assert [p.symbol for p in merged] == ["AAPL"]

    def test_unknown_merge_mode(self):
        with pytest.raises(InvalidInputError, match="merge_mode"):
            combine_positions([], merge_mode="median")


class TestExposureStats:
    def test_long_short_split(self):
        stats = exposure_stats([_pos("AAPL", 600), _pos("TSLA", -200)], 1000)
        assert stats["position_count"] == 2
        assert stats["long_exposure"] == 600.0
        assert stats["short_exposure"] == 200.0
        assert stats["gross_exposure"] == 800.0
        assert stats["net_exposure"] == 400.0
        assert stats["gross_exposure_pct"] == 80.0

    def test_empty(self):
        stats = exposure_stats([], 1000)
        assert stats["position_count"] == 0
        assert stats["net_exposure_pct"] == 0.0


class TestStrategyAllocation:
    @pytest.mark.parametrize("weight", [-0.1, 1.5])
    def test_weight_out_of_range(self, weight):
        with pytest.raises(ValueError, match="capital_weight"):
            StrategyAllocation("insider", weight)


class TestBuildBlendedPortfolio:
    def _events(self):
        def ev(ticker, source, role=None):
            return TradeEvent(
                ticker, date(2025, 6, 20), EventType.PURCHASE,
                size_usd=Decimal(50_000), source=source, role=role,
            )

        return [
            ev("AAPL", "insider", "CEO"),
            ev("MSFT", "insider", "CFO"),
            ev("AAPL", "congress"),
            ev("NVDA", "congress"),
        ]

    def _strategies(self, insider_weight=0.5, congress_weight=0.3):
        return [
            StrategyAllocation(
                "insider_mimicry",
                insider_weight,
                GeneratorConfig(sources=("insider",), sizing_mode="role_weighted"),
            ),
            StrategyAllocation("congressional", congress_weight, GeneratorConfig(sources=("congress",))),
        ]

    def test_each_strategy_sized_on_its_share(self):
        blended = build_blended_portfolio(
            self._events(), self._strategies(), Decimal(10_000), as_of=AS_OF
        )
        insider = blended.strategy_results["insider_mimicry"]
        congress = blended.strategy_results["congressional"]
        assert float(sum(p.target_value for p in insider.target_positions)) == pytest.approx(5000)
        assert sum(p.target_value for p in congress.target_positions) == Decimal(3000)

        values = {p.symbol: p.target_value for p in blended.target_positions}
        # insider: AAPL 2.0 / MSFT 1.5 of $5000; congress: AAPL/NVDA $1500 each
        assert float(values["AAPL"]) == pytest.approx(5000 * 2.0 / 3.5 + 1500)
        assert float(values["MSFT"]) == pytest.approx(5000 * 1.5 / 3.5)
        assert values["NVDA"] == Decimal(1500)
        assert blended.exposure["strategy_contributions"] == {
            "insider_mimicry": 2,
            "congressional": 2,
        }
        assert blended.exposure["strategy_allocations"] == {
            "insider_mimicry": 5000.0,
            "congressional": 3000.0,
        }

    def test_weights_over_one_rejected(self):
        with pytest.raises(InvalidInputError, match="capital weights"):
            build_blended_portfolio(
                self._events(), self._strategies(0.8, 0.4), 10_000, as_of=AS_OF
            )

    def test_duplicate_strategy_names_rejected(self):
        strategies = [StrategyAllocation("insider", 0.5), StrategyAllocation("insider", 0.5)]
        with pytest.raises(InvalidInputError, match="Duplicate strategy names"):
            build_blended_portfolio(self._events(), strategies, 1000, as_of=AS_OF)

    def test_zero_weight_strategy_skipped(self):
        blended = build_blended_portfolio(
            self._events(), self._strategies(congress_weight=0.0), 10_000, as_of=AS_OF
        )
        assert set(blended.strategy_results) == {"insider_mimicry"}
        assert {p.symbol for p in blended.target_positions} == {"AAPL", "MSFT"}

    def test_shorts_dropped_unless_enabled(self):
        events = self._events() + [
            TradeEvent("TSLA", date(2025, 6, 21), EventType.SALE,
                       size_usd=Decimal(10_000), source="congress"),
        ]
        strategies = [
            StrategyAllocation(
                "congressional", 0.5, GeneratorConfig(sources=("congress",), include_sales=True)
            )
        ]
        blended = build_blended_portfolio(events, strategies, 9000, as_of=AS_OF)
        assert "TSLA" not in {p.symbol for p in blended.target_positions}

        with_shorts = build_blended_portfolio(
            events, strategies, 9000, as_of=AS_OF, enable_shorts=True
        )
        tsla = next(p for p in with_shorts.target_positions if p.symbol == "TSLA")
        assert tsla.target_value == Decimal(-1500)
        assert with_shorts.exposure["short_exposure"] == 1500.0

    def test_cap_applied_to_blend(self):
        blended = build_blended_portfolio(
            self._events(), self._strategies(), 10_000, as_of=AS_OF, max_position_pct=0.15
        )
        assert all(abs(p.target_value) <= Decimal(1500) for p in blended.target_positions)
        assert blended.exposure["positions_capped"] == 2

    def test_to_dict(self):
        out = build_blended_portfolio(
            self._events(), self._strategies(), 10_000, as_of=AS_OF
        ).to_dict()
        assert set(out) == {"target_positions", "strategies", "exposure"}
        assert out["strategies"]["congressional"]["total_trades"] == 2

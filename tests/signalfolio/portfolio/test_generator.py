"""Tests for signalfolio.portfolio.generator — per-strategy generation pipeline."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from signalfolio.errors import InvalidInputError, UnsupportedAssetType
from signalfolio.portfolio.events import EventType, TradeEvent
from signalfolio.portfolio.generator import GeneratorConfig, generate
from signalfolio.portfolio.target import AssetType
from signalfolio.sizing.fundamentals import StaticFundamentals

AS_OF = date(2025, 6, 30)


def _event(
    ticker: str,
    days_ago: int = 1,
    event_type: EventType = EventType.PURCHASE,
    size: float | None = 50_000,
    **kwargs,
) -> TradeEvent:
    return TradeEvent(
        ticker=ticker,
        event_date=AS_OF - timedelta(days=days_ago),
        event_type=event_type,
        size_usd=Decimal(str(size)) if size is not None else None,
        source=kwargs.pop("source", "insider"),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class TestGeneratorConfig:
    def test_defaults(self):
        cfg = GeneratorConfig()
        assert cfg.lookback_days == 30
        assert cfg.allowed_types == frozenset({EventType.PURCHASE})

    def test_include_sales_adds_sale_type(self):
        cfg = GeneratorConfig(include_sales=True)
        assert EventType.SALE in cfg.allowed_types

    def test_sales_excluded_unless_enabled(self):
        cfg = GeneratorConfig(event_types=("purchase", "sale"))
        assert EventType.SALE not in cfg.allowed_types

    @pytest.mark.parametrize(
        "kwargs,match",
        [
            ({"lookback_days": 0}, "lookback_days"),
            ({"event_types": ("gift",)}, "event_types"),
            ({"min_event_size": -1}, "min_event_size"),
            ({"sizing_mode": "conviction_weighted"}, "sizing_mode"),
            ({"max_positions": 0}, "max_positions"),
        ],
    )
    def test_invalid(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            GeneratorConfig(**kwargs)

    def test_lists_become_tuples(self):
        cfg = GeneratorConfig(event_types=["purchase"], qualifying_roles=["CEO"])
        assert cfg.event_types == ("purchase",)
        assert cfg.qualifying_roles == ("CEO",)

    def test_from_dict_ignores_unknown_keys(self):
        cfg = GeneratorConfig.from_dict({"lookback_days": 7, "holding_period_days": 5})
        assert cfg.lookback_days == 7


# ---------------------------------------------------------------------------
# Filter pipeline
# ---------------------------------------------------------------------------


class TestGenerate:
    def test_window_boundary_inclusive(self):
        events = [_event("EDGE", days_ago=30), _event("OLD", days_ago=31)]
        result = generate(events, GeneratorConfig(lookback_days=30), 1000, as_of=AS_OF)
        assert [p.symbol for p in result.target_positions] == ["EDGE"]
        assert result.stats.total_trades == 1

    def test_future_events_excluded(self):
        events = [_event("NEXT", days_ago=-1), _event("NOW", days_ago=0)]
        result = generate(events, GeneratorConfig(), 1000, as_of=AS_OF)
        assert [p.symbol for p in result.target_positions] == ["NOW"]

    def test_sales_dropped_by_default(self):
        events = [_event("AAPL"), _event("TSLA", event_type=EventType.SALE)]
        result = generate(events, GeneratorConfig(), 1000, as_of=AS_OF)
        assert [p.symbol for p in result.target_positions] == ["AAPL"]
        assert result.stats.total_trades == 1

    def test_sales_enabled_map_to_short(self):
        events = [_event("AAPL"), _event("TSLA", event_type=EventType.SALE)]
        result = generate(events, GeneratorConfig(include_sales=True), 1000, as_of=AS_OF)
        values = {p.symbol: p.target_value for p in result.target_positions}
        assert values == {"AAPL": Decimal(500), "TSLA": Decimal(-500)}

    def test_role_filter(self):
        events = [
            _event("AAPL", role="Chief Executive Officer"),
            _event("MSFT", role="Director"),
            _event("NVDA", role=None),
        ]
        cfg = GeneratorConfig(qualifying_roles=("ceo", "chief", "president"))
        result = generate(events, cfg, 1000, as_of=AS_OF)
        assert [p.symbol for p in result.target_positions] == ["AAPL"]
        assert result.stats.total_trades == 3
        assert result.stats.trades_after_filters == 1

    def test_min_size_filter_drops_unsized(self):
        events = [_event("BIG", size=20_000), _event("SMALL", size=5_000), _event("NONE", size=None)]
        result = generate(events, GeneratorConfig(min_event_size=10_000), 1000, as_of=AS_OF)
        assert [p.symbol for p in result.target_positions] == ["BIG"]

    def test_source_filter(self):
        events = [_event("AAPL", source="insider"), _event("MSFT", source="congress")]
        cfg = GeneratorConfig(sources=("Congress",))
        result = generate(events, cfg, 1000, as_of=AS_OF)
        assert [p.symbol for p in result.target_positions] == ["MSFT"]

    def test_stats_consistent(self):
        events = [
            _event("AAPL", role="CEO"),
            _event("AAPL", role="CFO"),
            _event("MSFT", role="CEO"),
            _event("MSFT", role="Director"),
            _event("OLD", days_ago=90, role="CEO"),
        ]
        cfg = GeneratorConfig(qualifying_roles=("CEO", "CFO"), sizing_mode="role_weighted")
        stats = generate(events, cfg, 1000, as_of=AS_OF).stats
        assert stats.total_trades == 4
        assert stats.trades_after_filters == 3
        assert stats.unique_tickers == 2
        assert stats.unique_tickers <= stats.trades_after_filters <= stats.total_trades

    def test_empty_result_is_success(self):
        result = generate([], GeneratorConfig(), 1000, as_of=AS_OF)
        assert result.target_positions == ()
        assert result.stats.total_trades == 0

    def test_accepts_raw_records(self):
        records = [{"ticker": "AAPL", "date": "2025-06-25", "type": "purchase", "value": "$20,000"}]
        result = generate(records, GeneratorConfig(), 1000, as_of=AS_OF)
        assert result.target_positions[0].symbol == "AAPL"

    def test_budget_respected(self):
        events = [_event(t) for t in ("A", "B", "C", "D", "E", "F", "G")]
        result = generate(events, GeneratorConfig(), Decimal("25000"), as_of=AS_OF)
        total = sum(abs(p.target_value) for p in result.target_positions)
        assert abs(total - Decimal("25000")) < Decimal("0.000001")

    def test_missing_equity_fails_even_with_no_events(self):
        with pytest.raises(InvalidInputError):
            generate([], GeneratorConfig(), 0, as_of=AS_OF)

    def test_non_stock_event_fails(self):
        events = [_event("AAPL"), _event("AAPL240621C00200000", asset_type=AssetType.OPTION)]
        with pytest.raises(UnsupportedAssetType):
            generate(events, GeneratorConfig(), 1000, as_of=AS_OF)

    def test_strategy_name_recorded(self):
        result = generate([_event("AAPL")], GeneratorConfig(), 1000, as_of=AS_OF,
                          strategy_name="insider_mimicry")
        assert result.target_positions[0].details["strategy"] == "insider_mimicry"

    def test_filters_applied_echoed(self):
        result = generate([], GeneratorConfig(lookback_days=45), 1000, as_of=AS_OF)
        assert result.filters_applied["lookback_days"] == 45
        assert result.filters_applied["as_of"] == "2025-06-30"
        assert result.to_dict()["total_value"] == "1000"


# ---------------------------------------------------------------------------
# Top-N limit
# ---------------------------------------------------------------------------


class TestMaxPositions:
    def test_keeps_strongest_and_resizes(self):
        events = [
            _event("AAPL", role="CEO"),
            _event("AAPL", role="CFO"),
            _event("MSFT", role="CEO"),
            _event("NVDA", role="Director"),
        ]
        cfg = GeneratorConfig(sizing_mode="role_weighted", max_positions=2)
        result = generate(events, cfg, Decimal("5500"), as_of=AS_OF)

        values = {p.symbol: p.target_value for p in result.target_positions}
        assert set(values) == {"AAPL", "MSFT"}
        assert float(values["AAPL"]) == pytest.approx(3500)
        assert float(values["MSFT"]) == pytest.approx(2000)
        assert result.stats.tickers_before_limit == 3
        assert result.stats.tickers_after_limit == 2

    def test_limit_stats_absent_without_cap(self):
        stats = generate([_event("AAPL")], GeneratorConfig(), 1000, as_of=AS_OF).stats
        assert "tickers_before_limit" not in stats.to_dict()


# ---------------------------------------------------------------------------
# Contract awards
# ---------------------------------------------------------------------------


class TestContractFilters:
    def _award(self, ticker, value, agency="Department of Defense"):
        return _event(
            ticker,
            event_type=EventType.CONTRACT_AWARD,
            size=value,
            source="contracts",
            agency=agency,
        )

    def _fundamentals(self):
        return StaticFundamentals(
            {
                "SMALLDEF": {"revenue": 2_000_000_000, "industry": "Aerospace & Defense"},
                "BIGTECH": {"revenue": 100_000_000_000, "sector": "Technology"},
                "SVC": {"revenue": 1_000_000_000, "sector": "Industrials"},
            },
            use_fallback=False,
        )

    def _config(self, **kwargs):
        base = dict(
            lookback_days=7,
            event_types=("contract_award",),
            min_event_size=10_000_000,
            min_materiality_pct=1.0,
            sizing_mode="materiality_weighted",
        )
        base.update(kwargs)
        return GeneratorConfig(**base)

    def test_materiality_threshold(self):
        events = [
            self._award("SMALLDEF", 40_000_000),   # 2%
            self._award("BIGTECH", 500_000_000),   # 0.5%
        ]
        result = generate(events, self._config(), 1000, as_of=AS_OF,
                          fundamentals=self._fundamentals())
        assert [p.symbol for p in result.target_positions] == ["SMALLDEF"]

    def test_sector_threshold_override(self):
        events = [self._award("BIGTECH", 500_000_000)]  # 0.5%
        cfg = self._config(sector_thresholds={"technology": 0.25})
        result = generate(events, cfg, 1000, as_of=AS_OF, fundamentals=self._fundamentals())
        assert [p.symbol for p in result.target_positions] == ["BIGTECH"]

    def test_unknown_revenue_included_by_default(self):
        events = [self._award("SMALLDEF", 40_000_000), self._award("PRIVATE", 40_000_000)]
        result = generate(events, self._config(), 1000, as_of=AS_OF,
                          fundamentals=self._fundamentals())
        assert {p.symbol for p in result.target_positions} == {"SMALLDEF", "PRIVATE"}

    def test_unknown_revenue_excluded_when_configured(self):
        events = [self._award("SMALLDEF", 40_000_000), self._award("PRIVATE", 40_000_000)]
        cfg = self._config(include_unknown_revenue=False)
        result = generate(events, cfg, 1000, as_of=AS_OF, fundamentals=self._fundamentals())
        assert [p.symbol for p in result.target_positions] == ["SMALLDEF"]

    def test_preferred_agencies(self):
        events = [
            self._award("SMALLDEF", 40_000_000),
            self._award("SVC", 40_000_000, agency="Department of Veterans Affairs"),
        ]
        cfg = self._config(preferred_agencies=("defense",))
        result = generate(events, cfg, 1000, as_of=AS_OF, fundamentals=self._fundamentals())
        assert [p.symbol for p in result.target_positions] == ["SMALLDEF"]

    def test_min_contract_value(self):
        events = [self._award("SVC", 5_000_000)]  # 0.5% and below min size
        result = generate(events, self._config(min_materiality_pct=None), 1000,
                          as_of=AS_OF, fundamentals=self._fundamentals())
        assert result.target_positions == ()
        assert result.stats.total_trades == 1
        assert result.stats.trades_after_filters == 0

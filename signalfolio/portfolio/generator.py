"""Per-strategy portfolio generation from raw trade events.

Pipeline, in this order:

1. time window: ``as_of - lookback_days <= event_date <= as_of``
2. event subtype (purchases unless sales are enabled) and source
3. qualifying roles, when configured
4. minimum size, preferred agencies and materiality thresholds
5. sizing via the configured policy
6. optional ``max_positions`` cap (top N by magnitude, re-sized)

``total_trades`` counts events surviving steps 1-2, ``trades_after_filters``
those surviving step 4. An empty filtered set is a successful empty result.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Iterable, Mapping

from signalfolio.portfolio.events import EventType, TradeEvent
from signalfolio.portfolio.target import TargetPosition, to_decimal
from signalfolio.sizing.base import require_equity
from signalfolio.sizing.fundamentals import FundamentalDataProvider, StaticFundamentals
from signalfolio.sizing.materiality_weighted import event_materiality
from signalfolio.sizing.registry import build_sizer

logger = logging.getLogger(__name__)

# Modes that size raw events (conviction_weighted sizes netted scores)
EVENT_SIZING_MODES = {
    "equal_weight",
    "role_weighted",
    "value_weighted",
    "materiality_weighted",
}

THIN_PORTFOLIO_THRESHOLD = 5


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GeneratorConfig:
    lookback_days: int = 30
    event_types: tuple[str, ...] = ("purchase",)
    include_sales: bool = False
    sources: tuple[str, ...] | None = None
    qualifying_roles: tuple[str, ...] | None = None
    min_event_size: float = 0.0
    preferred_agencies: tuple[str, ...] | None = None
    min_materiality_pct: float | None = None
    sector_thresholds: Mapping[str, float] = field(default_factory=dict)
    include_unknown_revenue: bool = True
    sizing_mode: str = "equal_weight"
    sizing_params: Mapping[str, Any] = field(default_factory=dict)
    max_positions: int | None = None

    def __post_init__(self):
        if self.lookback_days <= 0:
            raise ValueError(f"lookback_days must be > 0, got {self.lookback_days}")
        for name in ("event_types", "sources", "qualifying_roles", "preferred_agencies"):
            value = getattr(self, name)
            if isinstance(value, str):
                object.__setattr__(self, name, (value,))
            elif value is not None:
                object.__setattr__(self, name, tuple(value))
        valid_types = {t.value for t in EventType}
        unknown = set(self.event_types) - valid_types
        if unknown:
            raise ValueError(
                f"event_types must be drawn from {sorted(valid_types)}, got {sorted(unknown)}"
            )
        if self.min_event_size < 0:
            raise ValueError("min_event_size must be >= 0")
        if self.min_materiality_pct is not None and self.min_materiality_pct < 0:
            raise ValueError("min_materiality_pct must be >= 0")
        for sector, threshold in self.sector_thresholds.items():
            if threshold < 0:
                raise ValueError(f"sector_thresholds['{sector}'] must be >= 0")
        if self.sizing_mode not in EVENT_SIZING_MODES:
            raise ValueError(
                f"sizing_mode must be one of {sorted(EVENT_SIZING_MODES)}, "
                f"got '{self.sizing_mode}'"
            )
        if self.max_positions is not None and self.max_positions <= 0:
            raise ValueError("max_positions must be > 0")

    @property
    def allowed_types(self) -> frozenset[EventType]:
        types = {EventType(t) for t in self.event_types}
        if self.include_sales:
            types.add(EventType.SALE)
        else:
            types.discard(EventType.SALE)
        return frozenset(types)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GeneratorConfig:
        known = {f for f in cls.__dataclass_fields__}
        kwargs = {k: v for k, v in data.items() if k in known}
        ignored = sorted(set(data) - known)
        if ignored:
            logger.warning("Generator config keys ignored (unknown): %s", ", ".join(ignored))
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["sector_thresholds"] = dict(self.sector_thresholds)
        out["sizing_params"] = dict(self.sizing_params)
        return out


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GenerationStats:
    total_trades: int
    trades_after_filters: int
    unique_tickers: int
    tickers_before_limit: int | None = None
    tickers_after_limit: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        return {k: v for k, v in out.items() if v is not None}


@dataclass(frozen=True)
class GenerationResult:
    target_positions: tuple[TargetPosition, ...]
    stats: GenerationStats
    filters_applied: Mapping[str, Any]
    total_value: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_positions": [p.to_dict() for p in self.target_positions],
            "stats": self.stats.to_dict(),
            "filters_applied": dict(self.filters_applied),
            "total_value": str(self.total_value),
        }


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def generate(
    raw_events: Iterable[TradeEvent | Mapping[str, Any]],
    config: GeneratorConfig,
    total_equity: Any,
    *,
    as_of: date | None = None,
    fundamentals: FundamentalDataProvider | None = None,
    strategy_name: str | None = None,
) -> GenerationResult:
    """Filter raw events and size the survivors into target positions.

    Args:
        raw_events: TradeEvents, or upstream record dicts.
        config: Filter and sizing configuration.
        total_equity: Capital allocated to this strategy.
        as_of: Reference date for the lookback window (defaults to today).
        fundamentals: Revenue/sector lookup for materiality filters and sizing.
        strategy_name: Recorded in each position's details when given.

    Raises:
        InvalidInputError: total_equity missing or non-positive.
        UnsupportedAssetType: a non-stock event survived the filters.
    """
    equity = require_equity(total_equity)
    reference = as_of or date.today()
    provider = fundamentals or StaticFundamentals()

    events = [e if isinstance(e, TradeEvent) else TradeEvent.from_record(e) for e in raw_events]

    # 1. time window (inclusive boundary)
    cutoff = reference - timedelta(days=config.lookback_days)
    windowed = [e for e in events if cutoff <= e.event_date <= reference]

    # 2. subtype and source
    allowed = config.allowed_types
    typed = [e for e in windowed if e.event_type in allowed]
    if config.sources is not None:
        wanted = {s.lower() for s in config.sources}
        typed = [e for e in typed if e.source.lower() in wanted]
    total_trades = len(typed)

    # 3. qualifying roles
    filtered = typed
    if config.qualifying_roles:
        roles = [r.lower() for r in config.qualifying_roles]
        filtered = [
            e for e in filtered if e.role and any(r in e.role.lower() for r in roles)
        ]

    # 4. size, agency and materiality thresholds
    if config.min_event_size > 0:
        minimum = to_decimal(config.min_event_size)
        filtered = [e for e in filtered if e.size_usd is not None and e.size_usd >= minimum]
    if config.preferred_agencies:
        agencies = [a.lower() for a in config.preferred_agencies]
        filtered = [
            e for e in filtered if e.agency and any(a in e.agency.lower() for a in agencies)
        ]
    if config.min_materiality_pct is not None or config.sector_thresholds:
        filtered = [e for e in filtered if _passes_materiality(e, config, provider)]

    trades_after_filters = len(filtered)
    unique_tickers = len({e.ticker for e in filtered})

    # 5. sizing
    params = {
        "include_unknown_revenue": config.include_unknown_revenue,
        **dict(config.sizing_params),
    }
    sizer = build_sizer(config.sizing_mode, params, fundamentals=provider)
    positions = sizer.size(filtered, equity)

    # 6. top-N cap, re-sized over the kept symbols so the budget is still used
    before_limit = after_limit = None
    if config.max_positions is not None:
        before_limit = len(positions)
        if len(positions) > config.max_positions:
            keep = {p.symbol for p in positions[: config.max_positions]}
            positions = sizer.size([e for e in filtered if e.ticker in keep], equity)
            logger.info(
                "Limited positions from %d to %d (max_positions)",
                before_limit,
                len(positions),
            )
        after_limit = len(positions)

    if strategy_name:
        positions = [_tag(p, strategy_name) for p in positions]

    if not positions:
        logger.warning(
            "No positions generated (%d trades, %d after filters)",
            total_trades,
            trades_after_filters,
        )
    elif len(positions) < THIN_PORTFOLIO_THRESHOLD:
        logger.warning(
            "Only %d position(s) generated; portfolio is thinly diversified",
            len(positions),
        )
    else:
        logger.info("Generated %d target positions", len(positions))

    stats = GenerationStats(
        total_trades=total_trades,
        trades_after_filters=trades_after_filters,
        unique_tickers=unique_tickers,
        tickers_before_limit=before_limit,
        tickers_after_limit=after_limit,
    )
    filters = {**config.to_dict(), "as_of": reference.isoformat()}
    return GenerationResult(
        target_positions=tuple(positions),
        stats=stats,
        filters_applied=filters,
        total_value=equity,
    )


def _passes_materiality(
    event: TradeEvent,
    config: GeneratorConfig,
    fundamentals: FundamentalDataProvider,
) -> bool:
    materiality = event_materiality(event, fundamentals)
    if materiality is None:
        if config.include_unknown_revenue:
            logger.warning(
                "Including %s award without revenue data (materiality unknown)",
                event.ticker,
            )
        return config.include_unknown_revenue

    threshold = config.min_materiality_pct
    sector = fundamentals.sector(event.ticker)
    if sector is not None and sector in config.sector_thresholds:
        threshold = config.sector_thresholds[sector]
    if threshold is None:
        return True
    return materiality >= to_decimal(threshold)


def _tag(position: TargetPosition, strategy_name: str) -> TargetPosition:
    return TargetPosition(
        symbol=position.symbol,
        target_value=position.target_value,
        asset_type=position.asset_type,
        details={**position.details, "strategy": strategy_name},
    )

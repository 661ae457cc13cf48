"""Performance engine — cash-flow-aware returns and risk for one period.

Two profit figures are kept apart:

- headline: ``net_profit = equity_end - lifetime_net_contributions`` where
  lifetime contributions are every deposit minus every withdrawal up to the
  end date, regardless of the requested start;
- period: a time-weighted return anchored on the first in-window equity
  sample. Transfers on or before that sample are already part of its value
  and are not counted again.

Daily returns are flow-adjusted so deposits and withdrawals do not show up
as gains or losses. Statistics that cannot be computed are None plus a
warning; every reported metric is quantized and bounded before it leaves
this module.
"""

from __future__ import annotations

import bisect
import logging
import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Sequence

import pandas as pd

from signalfolio.errors import InvalidInputError
from signalfolio.eval.benchmark import annualize_daily_returns, compute_alpha, compute_beta
from signalfolio.eval.history import CashTransfer, EquitySample, Fill
from signalfolio.eval.metrics import (
    DEFAULT_MIN_RISK_SAMPLES,
    DEFAULT_RISK_FREE_RATE,
    compute_annualized_return,
    compute_calmar,
    compute_compound_return,
    compute_daily_returns,
    compute_max_drawdown_pct,
    compute_sharpe,
    compute_volatility,
    compute_win_rate,
)
from signalfolio.eval.trade_outcomes import realized_trade_outcomes
from signalfolio.portfolio.target import to_decimal

logger = logging.getLogger(__name__)

# decimal(10, 4) storage column
MAX_METRIC_ABS = 999_999.9999
METRIC_SCALE = 4

_CENT = Decimal("0.01")
_HUNDRED = Decimal(100)


# ---------------------------------------------------------------------------
# Settings and report
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PerformanceSettings:
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE
    min_risk_samples: int = DEFAULT_MIN_RISK_SAMPLES
    limited_data_days: int = 30
    max_metric_abs: float = MAX_METRIC_ABS
    metric_scale: int = METRIC_SCALE

    def __post_init__(self):
        if self.min_risk_samples < 2:
            raise ValueError("min_risk_samples must be >= 2")
        if self.limited_data_days < 0:
            raise ValueError("limited_data_days must be >= 0")
        if self.max_metric_abs <= 0:
            raise ValueError("max_metric_abs must be > 0")
        if not 0 <= self.metric_scale <= 10:
            raise ValueError("metric_scale must be in [0, 10]")


@dataclass(frozen=True)
class PerformanceReport:
    start_date: date
    end_date: date
    twr_start_date: date
    equity_start: Decimal | None
    equity_end: Decimal | None
    total_pnl: Decimal | None

    # Headline (lifetime cash in/out)
    net_contributions: Decimal
    net_profit: Decimal | None
    net_profit_pct: Decimal | None

    # Period (anchored on the first in-window sample)
    period_net_contributions: Decimal
    period_net_profit: Decimal | None
    period_net_profit_pct: Decimal | None
    period_return_pct: Decimal | None
    annualized_return: Decimal | None

    # Risk
    sharpe_ratio: Decimal | None
    volatility: Decimal | None
    max_drawdown_pct: Decimal | None
    calmar_ratio: Decimal | None
    trading_days: int

    # Trades
    total_trades: int | None = None
    winning_trades: int | None = None
    losing_trades: int | None = None
    win_rate: Decimal | None = None

    # Benchmark
    benchmark_return_pct: Decimal | None = None
    alpha_pct: Decimal | None = None
    beta: Decimal | None = None

    warnings: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            if isinstance(value, Decimal):
                value = float(value)
            elif isinstance(value, date):
                value = value.isoformat()
            elif isinstance(value, tuple):
                value = list(value)
            out[name] = value
        return out


# ---------------------------------------------------------------------------
# Precision guard
# ---------------------------------------------------------------------------


def sanitize_metric(
    value: Any,
    *,
    max_abs: float = MAX_METRIC_ABS,
    scale: int = METRIC_SCALE,
) -> Decimal | None:
    """Quantize a metric to the storage scale, or None when unstorable.

    NaN, infinities and values whose magnitude exceeds ``max_abs`` after
    quantization become None.
    """
    if value is None:
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        number = to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not number.is_finite():
        return None
    limit = to_decimal(max_abs)
    # quantize() raises once the digits exceed the context precision
    if abs(number) > limit + 1:
        return None
    try:
        quantized = number.quantize(Decimal(1).scaleb(-scale))
    except InvalidOperation:
        return None
    if abs(quantized) > limit:
        return None
    return quantized


class _Guard:
    """Applies sanitize_metric and records a warning for every value it nulls."""

    def __init__(self, settings: PerformanceSettings, warnings: list[str]) -> None:
        self._settings = settings
        self._warnings = warnings

    def __call__(self, name: str, value: Any) -> Decimal | None:
        clean = sanitize_metric(
            value,
            max_abs=self._settings.max_metric_abs,
            scale=self._settings.metric_scale,
        )
        if clean is None and value is not None:
            logger.warning("Metric %s out of storable range (%s); storing null", name, value)
            self._warnings.append(f"{name} out of storable range ({value}); reported as null")
        return clean


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def evaluate(
    equity_samples: Iterable[EquitySample],
    cash_transfers: Iterable[CashTransfer],
    start_date: date,
    end_date: date,
    *,
    current_equity: Any = None,
    fills: Sequence[Fill] | None = None,
    total_trades: int | None = None,
    benchmark_returns: Sequence[float] | None = None,
    settings: PerformanceSettings | None = None,
) -> PerformanceReport:
    """Build a performance report for ``[start_date, end_date]``.

    Args:
        equity_samples: Account equity history (any order; one snapshot).
        cash_transfers: Every recorded transfer, including those before the
            window; lifetime contributions need all of them.
        start_date: First day of the report window.
        end_date: Last day of the report window (inclusive).
        current_equity: Live equity, used only when the window has no samples.
            Without either, equity and profit figures are None.
        fills: Executed fills in the window, for realized win/loss stats.
        total_trades: Filled order count when it differs from ``len(fills)``.
        benchmark_returns: Benchmark daily returns aligned with the window.
        settings: Risk-free rate, sample minimums and storage bounds.

    Raises:
        InvalidInputError: start_date after end_date, or negative equity.
    """
    if start_date is None or end_date is None:
        raise InvalidInputError("start_date and end_date are required")
    if start_date > end_date:
        raise InvalidInputError(f"start_date {start_date} is after end_date {end_date}")
    settings = settings or PerformanceSettings()
    warnings: list[str] = []
    guard = _Guard(settings, warnings)

    by_day = _daily_equity(equity_samples, start_date, end_date)
    days = sorted(by_day)

    equity_known = True
    if not days:
        if current_equity is None:
            equity_known = False
            fallback = Decimal(0)
            logger.warning(
                "No equity history between %s and %s and no current equity; "
                "profit figures unavailable",
                start_date,
                end_date,
            )
            warnings.append("No equity history in period and no current equity; "
                            "profit reported as null")
        else:
            fallback = to_decimal(current_equity)
            if fallback < 0:
                raise InvalidInputError(f"current_equity must be >= 0, got {current_equity}")
            logger.warning(
                "No equity history between %s and %s; using current equity without a baseline",
                start_date,
                end_date,
            )
            warnings.append("No equity history in period; P&L reported as zero")
        by_day = {end_date: fallback}
        days = [end_date]

    equity = pd.Series([float(by_day[d]) for d in days], index=pd.Index(days))
    twr_start = days[0]
    first_equity = by_day[twr_start]
    equity_end = by_day[days[-1]]
    equity_start = next((by_day[d] for d in days if by_day[d] > 0), equity_end)
    total_pnl = equity_end - equity_start

    # Cash flows
    transfers = [t for t in cash_transfers if t.date <= end_date]
    lifetime_contributions = sum((t.signed_amount for t in transfers), Decimal(0))
    in_period = _period_transfers(transfers, start_date, twr_start)
    period_contributions = sum((t.signed_amount for t in in_period), Decimal(0))

    net_profit = equity_end - lifetime_contributions
    period_net_profit = equity_end - first_equity - period_contributions

    returns = compute_daily_returns(equity, _flows_by_sample_day(in_period, days))
    n_returns = len(returns)

    twr = compute_compound_return(returns)
    annualized = compute_annualized_return(twr, n_returns)

    volatility = compute_volatility(returns, min_samples=settings.min_risk_samples)
    sharpe = compute_sharpe(
        returns,
        risk_free_rate=settings.risk_free_rate,
        min_samples=settings.min_risk_samples,
    )
    max_dd = compute_max_drawdown_pct(equity)
    calmar = compute_calmar(annualized, max_dd)

    if n_returns < settings.limited_data_days:
        warnings.append(f"Limited data available ({n_returns} days)")
    if n_returns < settings.min_risk_samples:
        warnings.append(
            f"Volatility and Sharpe ratio need {settings.min_risk_samples} daily returns, "
            f"have {n_returns}"
        )
    elif sharpe is None:
        warnings.append("Sharpe ratio undefined (zero return variance)")
    if max_dd == 0 and n_returns > 0:
        warnings.append("Calmar ratio undefined (no drawdown in period)")

    # Trades
    winning = losing = None
    win_rate = None
    trades = total_trades
    if fills is not None:
        trades = len(fills) if total_trades is None else total_trades
        outcomes = realized_trade_outcomes(fills)
        if outcomes:
            winning = sum(1 for pnl in outcomes if pnl > 0)
            losing = sum(1 for pnl in outcomes if pnl <= 0)
            win_rate = compute_win_rate(outcomes)
    if trades is not None:
        if trades == 0:
            warnings.append("No trades executed in this period")
        elif win_rate is None:
            warnings.append("Trade-level P&L unavailable; win/loss stats omitted")

    # Benchmark
    benchmark_pct = alpha_pct = beta = None
    if benchmark_returns is not None:
        benchmark_annual = annualize_daily_returns(benchmark_returns)
        alpha = compute_alpha(annualized, benchmark_annual)
        benchmark_pct = benchmark_annual * 100 if benchmark_annual is not None else None
        alpha_pct = alpha * 100 if alpha is not None else None
        beta = compute_beta(returns.to_numpy(), benchmark_returns)
        if beta is None:
            warnings.append("Benchmark beta unavailable (series length mismatch or zero variance)")

    def cents(value: Decimal) -> Decimal | None:
        return value.quantize(_CENT) if equity_known else None

    report = PerformanceReport(
        start_date=start_date,
        end_date=end_date,
        twr_start_date=twr_start,
        equity_start=cents(equity_start),
        equity_end=cents(equity_end),
        total_pnl=cents(total_pnl),
        net_contributions=lifetime_contributions.quantize(_CENT),
        net_profit=cents(net_profit),
        net_profit_pct=guard(
            "net_profit_pct",
            _pct(net_profit, lifetime_contributions) if equity_known else None,
        ),
        period_net_contributions=period_contributions.quantize(_CENT),
        period_net_profit=cents(period_net_profit),
        period_net_profit_pct=guard(
            "period_net_profit_pct", _pct(period_net_profit, period_contributions)
        ),
        period_return_pct=guard("period_return_pct", twr * 100 if twr is not None else None),
        annualized_return=guard("annualized_return", annualized),
        sharpe_ratio=guard("sharpe_ratio", sharpe),
        volatility=guard("volatility", volatility),
        max_drawdown_pct=guard("max_drawdown_pct", max_dd),
        calmar_ratio=guard("calmar_ratio", calmar),
        trading_days=n_returns,
        total_trades=trades,
        winning_trades=winning,
        losing_trades=losing,
        win_rate=guard("win_rate", win_rate),
        benchmark_return_pct=guard("benchmark_return_pct", benchmark_pct),
        alpha_pct=guard("alpha_pct", alpha_pct),
        beta=guard("beta", beta),
        warnings=tuple(warnings),
    )
    logger.info(
        "Performance %s..%s: net_profit=%s period_return_pct=%s warnings=%d",
        start_date,
        end_date,
        report.net_profit,
        report.period_return_pct,
        len(report.warnings),
    )
    return report


def _pct(numerator: Decimal, denominator: Decimal) -> Decimal | None:
    if denominator == 0:
        return None
    return (numerator / denominator * _HUNDRED).quantize(_CENT)


def _flows_by_sample_day(transfers: Sequence[CashTransfer], days: list[date]) -> pd.Series:
    """Attribute each transfer to the first equity sample on or after its date.

    Transfers landing on non-sample days (weekends, holidays) still adjust
    the next observed return. Transfers after the last sample adjust nothing.
    """
    flows: dict[date, float] = {}
    for transfer in transfers:
        idx = bisect.bisect_left(days, transfer.date)
        if idx >= len(days):
            continue
        day = days[idx]
        flows[day] = flows.get(day, 0.0) + float(transfer.signed_amount)
    return pd.Series(flows, dtype=float)


def _daily_equity(
    equity_samples: Iterable[EquitySample], start_date: date, end_date: date
) -> dict[date, Decimal]:
    """One equity value per in-window day, last sample of the day wins."""
    by_day: dict[date, Decimal] = {}
    for sample in sorted(equity_samples, key=lambda s: s.timestamp):
        if start_date <= sample.timestamp <= end_date:
            by_day[sample.timestamp] = sample.equity
    return by_day


def _period_transfers(
    transfers: Iterable[CashTransfer], start_date: date, twr_start: date
) -> list[CashTransfer]:
    # Transfers on or before the anchor sample are already in its value
    return [t for t in transfers if t.date >= start_date and t.date > twr_start]


def period_series(
    equity_samples: Iterable[EquitySample],
    cash_transfers: Iterable[CashTransfer],
    start_date: date,
    end_date: date,
) -> tuple[pd.Series, pd.Series]:
    """Daily equity curve and flow-adjusted daily returns for the window.

    Uses the same per-day dedup and transfer attribution as ``evaluate`` so
    exported series agree with the report. Both are empty without history.
    """
    by_day = _daily_equity(equity_samples, start_date, end_date)
    days = sorted(by_day)
    if not days:
        return pd.Series(dtype=float), pd.Series(dtype=float)
    equity = pd.Series([float(by_day[d]) for d in days], index=pd.Index(days))
    transfers = [t for t in cash_transfers if t.date <= end_date]
    in_period = _period_transfers(transfers, start_date, days[0])
    return equity, compute_daily_returns(equity, _flows_by_sample_day(in_period, days))

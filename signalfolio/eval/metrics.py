"""Return and risk metrics from equity and daily return series.

Every metric is nullable: a statistic that cannot be computed from the data
at hand (too few samples, zero variance, zero drawdown) is None, never 0.0,
inf or NaN.
"""

from __future__ import annotations

import math

import numpy as np
import pandas as pd

ANNUALIZATION_FACTOR = 252
DEFAULT_RISK_FREE_RATE = 0.045
DEFAULT_MIN_RISK_SAMPLES = 20

_ZERO_STD = 1e-15


def _finite_or_none(value: float) -> float | None:
    return float(value) if math.isfinite(value) else None


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------


def compute_daily_returns(
    equity: pd.Series,
    flows: pd.Series | None = None,
) -> pd.Series:
    """Cash-flow-adjusted daily returns.

    r_t = (equity_t - flow_t - equity_{t-1}) / equity_{t-1}

    ``flows`` is indexed like ``equity`` (missing dates mean no flow).
    Steps whose previous equity is zero or negative have no defined return
    and are dropped.
    """
    if len(equity) < 2:
        return pd.Series(dtype=float)

    values = equity.astype(float)
    flow = (
        flows.reindex(values.index, fill_value=0.0).astype(float)
        if flows is not None
        else pd.Series(0.0, index=values.index)
    )
    prev = values.shift(1)
    returns = (values - flow - prev) / prev
    return returns[prev > 0]


def compute_compound_return(returns: pd.Series) -> float | None:
    """Time-weighted return: product of (1 + r) minus one."""
    if len(returns) == 0:
        return None
    return _finite_or_none(float(np.prod(1.0 + returns.to_numpy(dtype=float)) - 1.0))


def compute_annualized_return(total_return: float | None, n_days: int) -> float | None:
    """Annualize a total return over n trading days."""
    if total_return is None or n_days <= 0:
        return None
    growth = 1.0 + total_return
    if growth <= 0:
        return -1.0
    years = n_days / ANNUALIZATION_FACTOR
    try:
        return _finite_or_none(growth ** (1.0 / years) - 1.0)
    except OverflowError:
        return None


# ---------------------------------------------------------------------------
# Risk
# ---------------------------------------------------------------------------


def compute_volatility(
    returns: pd.Series,
    *,
    min_samples: int = DEFAULT_MIN_RISK_SAMPLES,
) -> float | None:
    """Annualized volatility: stdev(daily returns) × √252."""
    if len(returns) < max(min_samples, 2):
        return None
    return _finite_or_none(float(returns.std() * np.sqrt(ANNUALIZATION_FACTOR)))


def compute_sharpe(
    returns: pd.Series,
    *,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    min_samples: int = DEFAULT_MIN_RISK_SAMPLES,
) -> float | None:
    """Annualized Sharpe ratio of daily excess returns over a daily risk-free rate."""
    if len(returns) < max(min_samples, 2):
        return None
    std = returns.std()
    if not math.isfinite(std) or std < _ZERO_STD:
        return None
    excess = returns - risk_free_rate / ANNUALIZATION_FACTOR
    return _finite_or_none(float(excess.mean() / std * np.sqrt(ANNUALIZATION_FACTOR)))


def compute_drawdown_series(equity: pd.Series) -> pd.Series:
    """Fractional drawdown from the running peak (0 where no positive peak yet)."""
    values = equity.astype(float)
    running_max = values.cummax()
    return ((values - running_max) / running_max.where(running_max > 0)).fillna(0.0)


def compute_max_drawdown_pct(equity: pd.Series) -> float:
    """Largest peak-to-trough decline as a negative percentage (4 dp).

    0.0 for an empty, single-point or non-decreasing series. Points before
    the first positive peak cannot be in drawdown.
    """
    if len(equity) < 2:
        return 0.0
    max_dd = float(compute_drawdown_series(equity).min()) * 100
    return round(max_dd, 4) if max_dd < 0 else 0.0


def compute_calmar(annualized_return: float | None, max_drawdown_pct: float | None) -> float | None:
    """Calmar ratio: annualized return / |max drawdown| (as a fraction).

    Undefined, hence None, when there has been no drawdown.
    """
    if annualized_return is None or max_drawdown_pct is None or max_drawdown_pct == 0:
        return None
    return _finite_or_none(annualized_return / abs(max_drawdown_pct / 100.0))


def compute_win_rate(outcomes: list[float]) -> float | None:
    """Percent of known trade outcomes that were profitable."""
    if not outcomes:
        return None
    winning = sum(1 for pnl in outcomes if pnl > 0)
    return round(winning / len(outcomes) * 100, 4)

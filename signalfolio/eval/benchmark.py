"""Benchmark comparison — alpha and beta against a reference index (SPY)."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
import pandas as pd

from signalfolio.eval.metrics import ANNUALIZATION_FACTOR

BENCHMARK_SYMBOL = "SPY"


def close_to_returns(closes: Sequence[float]) -> list[float]:
    """Simple daily returns from consecutive closes; zero closes are skipped."""
    out = []
    for prev, curr in zip(closes, closes[1:]):
        if prev is None or curr is None or prev == 0:
            continue
        out.append((curr - prev) / prev)
    return out


def annualize_daily_returns(returns: Sequence[float]) -> float | None:
    """Geometric-mean daily return, compounded over a trading year."""
    if len(returns) == 0:
        return None
    growth = np.prod([1.0 + r for r in returns])
    if growth <= 0:
        return -1.0
    geometric_mean = growth ** (1.0 / len(returns)) - 1.0
    value = (1.0 + geometric_mean) ** ANNUALIZATION_FACTOR - 1.0
    return float(value) if math.isfinite(value) else None


def compute_alpha(portfolio_return: float | None, benchmark_return: float | None) -> float | None:
    if portfolio_return is None or benchmark_return is None:
        return None
    return round(portfolio_return - benchmark_return, 4)


def compute_beta(
    portfolio_returns: Sequence[float] | pd.Series,
    benchmark_returns: Sequence[float] | pd.Series,
) -> float | None:
    """Population covariance / benchmark variance; None on mismatch or zero variance."""
    p = np.asarray(portfolio_returns, dtype=float)
    b = np.asarray(benchmark_returns, dtype=float)
    if len(p) == 0 or len(p) != len(b):
        return None
    variance = float(np.var(b))
    if variance == 0 or not math.isfinite(variance):
        return None
    covariance = float(np.mean((p - p.mean()) * (b - b.mean())))
    return round(covariance / variance, 4)

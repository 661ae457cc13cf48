"""Time series output for performance reports.

JSON-ready equity curve, drawdown series and daily return series.
"""

from __future__ import annotations

from typing import Any

import pandas as pd

from signalfolio.eval.metrics import compute_drawdown_series


def build_timeseries_output(
    equity_curve: pd.Series,
    daily_returns: pd.Series,
) -> dict[str, Any]:
    """Build the timeseries.json structure.

    Returns:
        Dict with equity_curve, drawdown_series, daily_returns — all
        serializable (dates as ISO strings, values as floats).
    """
    return {
        "equity_curve": _series_to_records(equity_curve),
        "drawdown_series": _series_to_records(compute_drawdown_series(equity_curve)),
        "daily_returns": _series_to_records(daily_returns),
    }


def _series_to_records(s: pd.Series) -> list[dict[str, Any]]:
    """Convert a date-indexed Series to list of {date, value} records."""
    records = []
    for idx, val in s.items():
        records.append({
            "date": _date_str(idx),
            "value": float(val) if pd.notna(val) else None,
        })
    return records


def _date_str(idx: Any) -> str:
    if hasattr(idx, "isoformat"):
        return idx.isoformat()
    return str(idx)

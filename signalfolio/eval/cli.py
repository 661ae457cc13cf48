"""CLI entry point for performance reports.

Usage:
    python -m signalfolio.eval.cli report --equity equity.csv --start 2025-01-02 \
        --end 2025-03-31 [--transfers transfers.csv] [--fills fills.csv] \
        [--benchmark spy.csv] [--current-equity 1941.42] [--env paper] \
        [--output report.json] [--timeseries timeseries.json]

CSV columns:
    equity:     date, equity
    transfers:  date, amount[, type]   (amount signed when type is absent)
    fills:      symbol, side, qty, price, time
    benchmark:  date, close
"""

from __future__ import annotations

import argparse
import json
import logging
from datetime import date
from pathlib import Path

import pandas as pd

from signalfolio.config.loader import load_strategy_config, performance_settings
from signalfolio.eval.benchmark import close_to_returns
from signalfolio.eval.history import CashTransfer, EquitySample, Fill
from signalfolio.eval.performance import evaluate, period_series
from signalfolio.eval.timeseries import build_timeseries_output

logger = logging.getLogger(__name__)


def _load_equity(path: Path) -> list[EquitySample]:
    df = pd.read_csv(path, parse_dates=["date"])
    return [
        EquitySample(timestamp=row.date.date(), equity=str(row.equity))
        for row in df.itertuples(index=False)
        if pd.notna(row.equity)
    ]


def _load_transfers(path: Path | None) -> list[CashTransfer]:
    if path is None:
        return []
    df = pd.read_csv(path, dtype={"amount": str})
    return [CashTransfer.from_dict(record) for record in df.to_dict(orient="records")]


def _load_fills(path: Path | None) -> list[Fill] | None:
    if path is None:
        return None
    df = pd.read_csv(path, parse_dates=["time"], dtype={"qty": str, "price": str})
    return [
        Fill(symbol=r.symbol, side=r.side, qty=r.qty, price=r.price, time=r.time.to_pydatetime())
        for r in df.itertuples(index=False)
    ]


def _load_benchmark(path: Path | None) -> list[float] | None:
    if path is None:
        return None
    df = pd.read_csv(path, parse_dates=["date"]).sort_values("date")
    return close_to_returns(df["close"].astype(float).tolist())


def cmd_report(args: argparse.Namespace) -> None:
    """Compute a performance report and print it as JSON."""
    config = load_strategy_config(args.env)
    settings = performance_settings(config)

    samples = _load_equity(Path(args.equity))
    transfers = _load_transfers(Path(args.transfers) if args.transfers else None)
    start = date.fromisoformat(args.start)
    end = date.fromisoformat(args.end)

    report = evaluate(
        samples,
        transfers,
        start,
        end,
        current_equity=args.current_equity,
        fills=_load_fills(Path(args.fills) if args.fills else None),
        benchmark_returns=_load_benchmark(Path(args.benchmark) if args.benchmark else None),
        settings=settings,
    )
    output = report.to_dict()

    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(output, indent=2), encoding="utf-8")
        output["report_path"] = str(out_path)

    if args.timeseries:
        equity, returns = period_series(samples, transfers, start, end)
        ts_path = Path(args.timeseries)
        ts_path.parent.mkdir(parents=True, exist_ok=True)
        ts_path.write_text(
            json.dumps(build_timeseries_output(equity, returns), indent=2),
            encoding="utf-8",
        )
        output["timeseries_path"] = str(ts_path)

    print(json.dumps(output))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="signalfolio.eval.cli")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    p_report = sub.add_parser("report")
    p_report.add_argument("--equity", required=True, help="Equity history CSV")
    p_report.add_argument("--transfers", help="Cash transfers CSV (all time)")
    p_report.add_argument("--fills", help="Executed fills CSV")
    p_report.add_argument("--benchmark", help="Benchmark closes CSV")
    p_report.add_argument("--start", required=True, help="Start date (YYYY-MM-DD)")
    p_report.add_argument("--end", required=True, help="End date (YYYY-MM-DD)")
    p_report.add_argument("--current-equity", type=float, default=None)
    p_report.add_argument("--env", default="default", help="Config environment")
    p_report.add_argument("--output", help="Write report JSON here")
    p_report.add_argument("--timeseries", help="Write equity/drawdown series JSON here")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "report":
        cmd_report(args)


if __name__ == "__main__":
    main()

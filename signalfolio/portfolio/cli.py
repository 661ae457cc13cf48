"""CLI entry points for netting, generation and rebalancing.

Usage:
    python -m signalfolio.portfolio.cli net --signals signals.json [--env paper]
    python -m signalfolio.portfolio.cli generate --events events.json --equity 100000 \
        --strategy insider_mimicry [--as-of 2025-06-30]
    python -m signalfolio.portfolio.cli blend --events events.json --equity 100000
    python -m signalfolio.portfolio.cli rebalance --targets targets.json \
        --positions positions.json [--min-order 1.00] [--decision-log decisions.jsonl]

All inputs are JSON lists of records; output is printed as JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any

from signalfolio.config.loader import (
    combination_settings,
    generator_config_for,
    load_strategy_config,
    strategy_allocations,
    strategy_weights,
)
from signalfolio.execution.decision_log import DecisionLog
from signalfolio.execution.rebalancer import rebalance
from signalfolio.portfolio.combine import build_blended_portfolio
from signalfolio.portfolio.generator import generate
from signalfolio.portfolio.target import CurrentPosition, TargetPosition
from signalfolio.signals.netting import net_signals
from signalfolio.signals.signal import Signal

logger = logging.getLogger(__name__)


def _read_json(path: str) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _as_of(args: argparse.Namespace) -> date | None:
    return date.fromisoformat(args.as_of) if getattr(args, "as_of", None) else None


def cmd_net(args: argparse.Namespace) -> None:
    config = load_strategy_config(args.env)
    signals = []
    for record in _read_json(args.signals):
        ts = record.get("timestamp")
        extra = {"timestamp": datetime.fromisoformat(ts)} if ts else {}
        signals.append(
            Signal(
                ticker=record["ticker"],
                strategy_name=record["strategy_name"],
                score=record["score"],
                metadata=record.get("metadata") or {},
                **extra,
            )
        )
    print(json.dumps({"scores": net_signals(signals, strategy_weights(config))}))


def cmd_generate(args: argparse.Namespace) -> None:
    config = load_strategy_config(args.env)
    result = generate(
        _read_json(args.events),
        generator_config_for(config, args.strategy),
        args.equity,
        as_of=_as_of(args),
        strategy_name=args.strategy,
    )
    output = result.to_dict()
    if args.decision_log:
        log = DecisionLog(Path(args.decision_log))
        output["decision_id"] = log.record_targets(args.strategy, result.target_positions)
    print(json.dumps(output))


def cmd_blend(args: argparse.Namespace) -> None:
    config = load_strategy_config(args.env)
    combination = combination_settings(config)
    blended = build_blended_portfolio(
        _read_json(args.events),
        strategy_allocations(config),
        args.equity,
        as_of=_as_of(args),
        merge_mode=combination.merge_mode,
        max_position_pct=combination.max_position_pct,
        min_position_value=combination.min_position_value,
        enable_shorts=combination.enable_shorts,
    )
    output = blended.to_dict()
    if args.decision_log:
        log = DecisionLog(Path(args.decision_log))
        output["decision_id"] = log.record_targets("blended", blended.target_positions)
    print(json.dumps(output))


def cmd_rebalance(args: argparse.Namespace) -> None:
    targets = [TargetPosition.from_dict(r) for r in _read_json(args.targets)]
    current = [CurrentPosition.from_dict(r) for r in _read_json(args.positions)]
    instructions = rebalance(targets, current, min_order_notional=args.min_order)
    output: dict[str, Any] = {"orders": [i.to_dict() for i in instructions]}
    if args.decision_log:
        log = DecisionLog(Path(args.decision_log))
        output["decision_id"] = log.record_orders(instructions)
    print(json.dumps(output))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="signalfolio.portfolio.cli")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    p_net = sub.add_parser("net")
    p_net.add_argument("--signals", required=True, help="Signals JSON")
    p_net.add_argument("--env", default="default")

    p_gen = sub.add_parser("generate")
    p_gen.add_argument("--events", required=True, help="Trade events JSON")
    p_gen.add_argument("--equity", required=True, type=float, help="Strategy equity")
    p_gen.add_argument("--strategy", required=True, help="Strategy name in config")
    p_gen.add_argument("--as-of", help="Window reference date (YYYY-MM-DD)")
    p_gen.add_argument("--env", default="default")
    p_gen.add_argument("--decision-log", help="Append decisions to this JSONL file")

    p_blend = sub.add_parser("blend")
    p_blend.add_argument("--events", required=True, help="Trade events JSON")
    p_blend.add_argument("--equity", required=True, type=float, help="Total equity")
    p_blend.add_argument("--as-of", help="Window reference date (YYYY-MM-DD)")
    p_blend.add_argument("--env", default="default")
    p_blend.add_argument("--decision-log", help="Append decisions to this JSONL file")

    p_reb = sub.add_parser("rebalance")
    p_reb.add_argument("--targets", required=True, help="Target positions JSON")
    p_reb.add_argument("--positions", required=True, help="Current positions JSON")
    p_reb.add_argument("--min-order", default="0", help="Minimum order notional")
    p_reb.add_argument("--decision-log", help="Append decisions to this JSONL file")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "net":
        cmd_net(args)
    elif args.command == "generate":
        cmd_generate(args)
    elif args.command == "blend":
        cmd_blend(args)
    elif args.command == "rebalance":
        cmd_rebalance(args)


if __name__ == "__main__":
    main()

"""Tests for signalfolio.execution.decision_log — JSONL decision records."""

from __future__ import annotations

import json
from decimal import Decimal

import numpy as np

from signalfolio.execution.decision_log import DecisionLog
from signalfolio.execution.rebalancer import OrderInstruction, OrderSide
from signalfolio.portfolio.target import TargetPosition


class TestDecisionLog:
    def test_creates_parent_dir(self, tmp_path):
        log = DecisionLog(tmp_path / "nested" / "decisions.jsonl")
        assert log.path.parent.exists()
        assert log.read() == []

    def test_record_targets_and_orders(self, tmp_path):
        log = DecisionLog(tmp_path / "decisions.jsonl")
        parent = log.record_targets(
            "insider_mimicry",
            [TargetPosition("AAPL", Decimal("1234.50"), details={"weight": 2.0})],
        )
        log.record_orders(
            [OrderInstruction("AAPL", OrderSide.BUY, Decimal("234.50"))], parent_id=parent
        )

        records = log.read()
        assert [r["kind"] for r in records] == ["target_positions", "order_instructions"]
        assert records[0]["decision_id"] == parent
        assert records[0]["strategy"] == "insider_mimicry"
        assert records[0]["positions"][0]["target_value"] == "1234.50"
        assert records[1]["parent_id"] == parent
        assert records[1]["orders"] == [{"symbol": "AAPL", "side": "buy", "notional": "234.50"}]
        assert "recorded_at" in records[1]

    def test_appends_across_instances(self, tmp_path):
        path = tmp_path / "decisions.jsonl"
        DecisionLog(path).record("note", {"text": "first"})
        DecisionLog(path).record("note", {"text": "second"}, decision_id="fixed")

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[1])["decision_id"] == "fixed"

    def test_serializes_decimal_and_numpy(self, tmp_path):
        log = DecisionLog(tmp_path / "decisions.jsonl")
        log.record("stats", {"value": Decimal("1.5"), "count": np.int64(3), "mean": np.float64(0.25)})
        record = log.read()[0]
        assert record["value"] == "1.5"
        assert record["count"] == 3
        assert record["mean"] == 0.25

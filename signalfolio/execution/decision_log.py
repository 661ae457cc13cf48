"""Decision log — append target positions and order instructions to JSONL.

Each line is one decision record for the audit collaborator to pick up.
At-most-once submission is that collaborator's job; this file only makes
the decisions durable and replayable.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from signalfolio.execution.rebalancer import OrderInstruction
from signalfolio.portfolio.target import TargetPosition

logger = logging.getLogger(__name__)


class DecisionLog:
    """Append-only JSONL writer for portfolio decisions.

    The file is opened in append mode for every record so concurrent runs
    for different strategies can share a directory without coordination.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def record(self, kind: str, payload: dict[str, Any], *, decision_id: str | None = None) -> str:
        """Append one decision record and return its id."""
        decision_id = decision_id or uuid.uuid4().hex
        entry = {
            "decision_id": decision_id,
            "kind": kind,
            "recorded_at": datetime.now(timezone.utc).isoformat(),
            **payload,
        }
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=_json_default) + "\n")
        return decision_id

    def record_targets(self, strategy: str, positions: Iterable[TargetPosition]) -> str:
        items = [p.to_dict() for p in positions]
        logger.info("Recording %d target positions for %s", len(items), strategy)
        return self.record("target_positions", {"strategy": strategy, "positions": items})

    def record_orders(self, instructions: Iterable[OrderInstruction], *, parent_id: str | None = None) -> str:
        items = [i.to_dict() for i in instructions]
        logger.info("Recording %d order instructions", len(items))
        return self.record("order_instructions", {"parent_id": parent_id, "orders": items})

    def read(self) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []
        with open(self._path, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]


def _json_default(obj: Any) -> Any:
    """JSON serialization fallback for Decimal, dates, enums and numpy types."""
    import numpy as np

    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")

"""Per-strategy conviction signal.

A Signal is one strategy's view on one ticker: a score in [-1.0, 1.0]
where negative is bearish. Signals are discarded once netted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from signalfolio.errors import ValidationError

SCORE_MIN = -1.0
SCORE_MAX = 1.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Signal:
    """Conviction of a single strategy about a single ticker."""

    ticker: str
    strategy_name: str
    score: float
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not self.ticker:
            raise ValidationError("ticker must be non-empty")
        if not self.strategy_name:
            raise ValidationError("strategy_name must be non-empty")
        score = float(self.score)
        if math.isnan(score) or not (SCORE_MIN <= score <= SCORE_MAX):
            raise ValidationError(
                f"score must be between {SCORE_MIN} and {SCORE_MAX}, got {self.score}"
            )
        object.__setattr__(self, "score", score)

    @property
    def bullish(self) -> bool:
        return self.score > 0

    @property
    def bearish(self) -> bool:
        return self.score < 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "strategy_name": self.strategy_name,
            "score": self.score,
            "metadata": dict(self.metadata),
            "timestamp": self.timestamp.isoformat(),
        }

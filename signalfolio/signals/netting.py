"""Signal netting — combine per-strategy signals into one score per ticker.

net score = Σ(score_i × w(strategy_i)) / Σ w(strategy_i)

Only signals whose strategy carries a positive weight contribute. Signals
from unknown or zero-weight strategies are skipped (logged, never raised).
A ticker left with no contributing weight is excluded from the result
instead of being reported as 0.0, so a 0.0 in the output always means
"signals exist and cancel out".

Strategy weights are passed in on every call; nothing is read from process
state.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Mapping

from signalfolio.errors import InvalidInputError
from signalfolio.signals.signal import Signal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NetConviction:
    """Netted consensus for one ticker, with the signals that produced it."""

    ticker: str
    score: float
    signals: tuple[Signal, ...]
    total_weight: float

    @property
    def strategies(self) -> tuple[str, ...]:
        return tuple(sorted({s.strategy_name for s in self.signals}))


def validate_weights(weights: Mapping[str, float]) -> None:
    """Reject negative or non-finite strategy weights."""
    for name, weight in weights.items():
        w = float(weight)
        if math.isnan(w) or math.isinf(w) or w < 0:
            raise InvalidInputError(
                f"Strategy weight for '{name}' must be a finite value >= 0, got {weight}"
            )


def net_convictions(
    signals: Iterable[Signal],
    weights: Mapping[str, float],
) -> dict[str, NetConviction]:
    """Net signals per ticker, keeping the contributing signals.

    Returns a dict keyed by ticker, ordered alphabetically so the result
    does not depend on input order.
    """
    validate_weights(weights)

    by_ticker: dict[str, list[Signal]] = defaultdict(list)
    for signal in signals:
        by_ticker[signal.ticker].append(signal)

    result: dict[str, NetConviction] = {}
    for ticker in sorted(by_ticker):
        contributing: list[Signal] = []
        weighted_sum = 0.0
        total_weight = 0.0

        # Sort so float accumulation order is input-order independent
        group = sorted(
            by_ticker[ticker], key=lambda s: (s.strategy_name, s.score, s.timestamp)
        )
        for signal in group:
            weight = float(weights.get(signal.strategy_name, 0.0))
            if weight <= 0:
                if signal.strategy_name not in weights:
                    logger.warning(
                        "Skipping %s signal from unknown strategy '%s'",
                        ticker,
                        signal.strategy_name,
                    )
                else:
                    logger.warning(
                        "Skipping %s signal from zero-weight strategy '%s'",
                        ticker,
                        signal.strategy_name,
                    )
                continue
            weighted_sum += signal.score * weight
            total_weight += weight
            contributing.append(signal)

        if total_weight == 0:
            logger.info("No weighted signals for %s; excluded from netting", ticker)
            continue

        score = weighted_sum / total_weight
        # Guard float drift at the range edges
        score = max(-1.0, min(1.0, score))
        result[ticker] = NetConviction(
            ticker=ticker,
            score=score,
            signals=tuple(contributing),
            total_weight=total_weight,
        )

    return result


def net_signals(
    signals: Iterable[Signal],
    weights: Mapping[str, float],
) -> dict[str, float]:
    """Net signals into a ticker → consensus score mapping.

    Args:
        signals: Signals from any number of strategies.
        weights: Strategy name → non-negative netting weight.

    Returns:
        Ticker → weighted-average score in [-1.0, 1.0]. Tickers with no
        positively-weighted signal are absent.
    """
    return {
        ticker: conviction.score
        for ticker, conviction in net_convictions(signals, weights).items()
    }

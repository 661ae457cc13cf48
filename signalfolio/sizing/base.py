"""Sizing policy interface and the shared weight → notional allocation.

Every policy turns qualifying items into per-symbol signed weights and hands
them to :func:`allocate`:

    target_value(s) = total_equity × w(s) / Σ|w|

so the magnitudes of a generation always sum to the equity budget. Symbols
whose net weight is zero get no position. Results are ordered by descending
magnitude, then symbol.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, Mapping, Protocol, Sequence

from signalfolio.errors import InvalidInputError
from signalfolio.portfolio.target import (
    AssetType,
    TargetPosition,
    require_supported,
    to_decimal,
)

_HUNDRED = Decimal(100)
_CENT = Decimal("0.01")


class PositionSizer(Protocol):
    """One capability: size qualifying items against an equity budget."""

    mode: str

    def size(self, items: Sequence[Any], total_equity: Any) -> list[TargetPosition]: ...


def require_equity(total_equity: Any) -> Decimal:
    """Validate the capital base; None, non-finite or <= 0 is rejected."""
    if total_equity is None:
        raise InvalidInputError("total_equity is required for sizing")
    try:
        equity = to_decimal(total_equity)
    except (ArithmeticError, TypeError, ValueError) as exc:
        raise InvalidInputError(f"total_equity is not numeric: {total_equity!r}") from exc
    if not equity.is_finite() or equity <= 0:
        raise InvalidInputError(f"total_equity must be > 0, got {total_equity}")
    return equity


def require_stock_items(items: Iterable[Any]) -> None:
    """Fail fast on any non-equity item before any weight is computed."""
    for item in items:
        asset_type = getattr(item, "asset_type", AssetType.STOCK)
        require_supported(asset_type, getattr(item, "ticker", None))


def allocate(
    weights: Mapping[str, Decimal],
    total_equity: Decimal,
    *,
    mode: str,
    details: Mapping[str, Mapping[str, Any]] | None = None,
) -> list[TargetPosition]:
    """Convert signed per-symbol weights into target positions."""
    active = {symbol: w for symbol, w in weights.items() if w != 0}
    if not active:
        return []

    denominator = sum((abs(w) for w in active.values()), Decimal(0))
    extra = details or {}

    positions: list[TargetPosition] = []
    for symbol, weight in active.items():
        fraction = abs(weight) / denominator
        position_details: dict[str, Any] = {
            "sizing_mode": mode,
            "weight": float(weight),
            "allocation_percent": float((fraction * _HUNDRED).quantize(_CENT)),
        }
        position_details.update(extra.get(symbol, {}))
        positions.append(
            TargetPosition(
                symbol=symbol,
                target_value=total_equity * weight / denominator,
                details=position_details,
            )
        )

    positions.sort(key=lambda p: (-abs(p.target_value), p.symbol))
    return positions


def group_by_ticker(items: Iterable[Any]) -> dict[str, list[Any]]:
    grouped: dict[str, list[Any]] = {}
    for item in items:
        grouped.setdefault(item.ticker, []).append(item)
    return grouped


def event_details(events: Sequence[Any]) -> dict[str, Any]:
    """Diagnostics common to every event-driven position."""
    sources = sorted({e.source for e in events if getattr(e, "source", "")})
    return {
        "event_count": len(events),
        "source": sources[0] if len(sources) == 1 else sources,
        "latest_event_date": max(e.event_date for e in events).isoformat(),
    }

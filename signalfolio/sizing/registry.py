"""Sizing policy registry — build a PositionSizer by mode name.

Adding a mode means adding an entry here; the generator, rebalancer and
performance engine never look at the mode.
"""

from __future__ import annotations

from typing import Any, Callable

from signalfolio.errors import InvalidInputError
from signalfolio.sizing.base import PositionSizer
from signalfolio.sizing.conviction_weighted import ConvictionWeightedSizer
from signalfolio.sizing.equal_weight import EqualWeightSizer
from signalfolio.sizing.fundamentals import FundamentalDataProvider
from signalfolio.sizing.materiality_weighted import MaterialityWeightedSizer
from signalfolio.sizing.role_weighted import RoleWeightedSizer
from signalfolio.sizing.value_weighted import ValueWeightedSizer


def _materiality(
    params: dict[str, Any], fundamentals: FundamentalDataProvider | None
) -> PositionSizer:
    return MaterialityWeightedSizer(
        fundamentals,
        include_unknown=bool(params.get("include_unknown_revenue", True)),
        unknown_weight=float(params.get("unknown_materiality_weight", 1.0)),
    )


_SIZERS: dict[str, Callable[[dict[str, Any], FundamentalDataProvider | None], PositionSizer]] = {
    "equal_weight": lambda params, _: EqualWeightSizer(),
    "role_weighted": lambda params, _: RoleWeightedSizer(
        role_weights=params.get("role_weights"),
        default_weight=float(params.get("default_role_weight", 1.0)),
    ),
    "value_weighted": lambda params, _: ValueWeightedSizer(),
    "materiality_weighted": _materiality,
    "conviction_weighted": lambda params, _: ConvictionWeightedSizer(),
}

SIZING_MODES = frozenset(_SIZERS)


def build_sizer(
    mode: str,
    params: dict[str, Any] | None = None,
    *,
    fundamentals: FundamentalDataProvider | None = None,
) -> PositionSizer:
    """Instantiate the sizing policy registered under ``mode``."""
    if mode not in _SIZERS:
        raise InvalidInputError(
            f"Unknown sizing_mode '{mode}', must be one of {sorted(SIZING_MODES)}"
        )
    return _SIZERS[mode](dict(params or {}), fundamentals)

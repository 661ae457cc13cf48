"""Role-weighted sizing — insider seniority scales conviction.

Each event contributes the weight of the first role in the table that its
role string contains (case-insensitive), or ``default_weight``. A symbol's
weight is the signed sum of its events' weights, so repeated buying by
insiders only ever adds conviction.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping, Sequence

from signalfolio.errors import InvalidInputError
from signalfolio.portfolio.target import TargetPosition, to_decimal
from signalfolio.sizing.base import (
    allocate,
    event_details,
    group_by_ticker,
    require_equity,
    require_stock_items,
)

logger = logging.getLogger(__name__)

# Order matters: "Chief Financial Officer" must hit CFO before Chief
DEFAULT_ROLE_WEIGHTS: dict[str, float] = {
    "CEO": 2.0,
    "Chief Executive": 2.0,
    "CFO": 1.5,
    "Chief Financial": 1.5,
    "President": 1.5,
    "COO": 1.5,
    "Chief": 1.5,
    "Director": 1.0,
}


class RoleWeightedSizer:
    """Weight symbols by the sum of their insiders' role weights."""

    mode = "role_weighted"

    def __init__(
        self,
        role_weights: Mapping[str, float] | None = None,
        default_weight: float = 1.0,
    ) -> None:
        table = dict(DEFAULT_ROLE_WEIGHTS if role_weights is None else role_weights)
        for role, weight in table.items():
            if float(weight) < 0:
                raise InvalidInputError(f"Role weight for '{role}' must be >= 0, got {weight}")
        if float(default_weight) < 0:
            raise InvalidInputError(f"default_weight must be >= 0, got {default_weight}")
        self._role_weights = [(role.lower(), to_decimal(w)) for role, w in table.items()]
        self._default_weight = to_decimal(default_weight)

    def role_weight(self, role: str | None) -> Decimal:
        if role:
            lowered = role.lower()
            for key, weight in self._role_weights:
                if key in lowered:
                    return weight
        return self._default_weight

    def size(self, items: Sequence[Any], total_equity: Any) -> list[TargetPosition]:
        equity = require_equity(total_equity)
        require_stock_items(items)

        weights: dict[str, Decimal] = {}
        details: dict[str, dict[str, Any]] = {}
        for ticker, events in group_by_ticker(items).items():
            weight = sum(
                (self.role_weight(e.role) * e.direction for e in events), Decimal(0)
            )
            weights[ticker] = weight
            details[ticker] = {
                **event_details(events),
                "roles": sorted({e.role for e in events if e.role}),
            }

        positions = allocate(weights, equity, mode=self.mode, details=details)
        logger.debug("Role-weighted sizing produced %d positions", len(positions))
        return positions

"""Fundamental data lookup for materiality sizing.

The core never fetches fundamentals itself. A provider is a cached,
symbol-keyed lookup whose loader is supplied by the host; the freshness
policy (TTL) belongs to the provider, not to the sizing code.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Mapping, Protocol

from signalfolio.portfolio.target import to_decimal

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 24 * 3600  # 30 days

# Annual revenue of large defense contractors, used when the loader has
# nothing for them.
FALLBACK_REVENUE: dict[str, Decimal] = {
    "LMT": Decimal("67000000000"),
    "NOC": Decimal("41000000000"),
    "RTX": Decimal("69000000000"),
    "BA": Decimal("77000000000"),
    "GD": Decimal("42000000000"),
    "HII": Decimal("11000000000"),
}

SECTOR_DEFENSE = "defense"
SECTOR_TECHNOLOGY = "technology"
SECTOR_SERVICES = "services"

_DEFENSE_KEYWORDS = ("aerospace", "defense", "defence", "military", "weapons")
_TECHNOLOGY_KEYWORDS = ("technology", "software", "semiconductor", "computer", "internet")


class FundamentalDataProvider(Protocol):
    def annual_revenue(self, symbol: str) -> Decimal | None: ...

    def sector(self, symbol: str) -> str | None: ...


@dataclass(frozen=True)
class Fundamentals:
    symbol: str
    annual_revenue: Decimal | None = None
    sector: str | None = None
    industry: str | None = None


def classify_sector(sector: str | None, industry: str | None = None) -> str:
    """Map raw sector/industry strings to defense, technology or services."""
    text = f"{sector or ''} {industry or ''}".lower()
    if any(k in text for k in _DEFENSE_KEYWORDS):
        return SECTOR_DEFENSE
    if any(k in text for k in _TECHNOLOGY_KEYWORDS):
        return SECTOR_TECHNOLOGY
    return SECTOR_SERVICES


class StaticFundamentals:
    """In-memory provider with a per-symbol TTL cache over a loader.

    Args:
        data: Preloaded fundamentals keyed by symbol.
        loader: Optional callable ``symbol -> Fundamentals | None`` consulted
            on cache miss or expiry.
        ttl_seconds: Cache freshness window.
        use_fallback: Fall back to the built-in revenue table when neither
            the data nor the loader knows a symbol's revenue.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        data: Mapping[str, Fundamentals | Mapping[str, Any]] | None = None,
        *,
        loader: Callable[[str], Fundamentals | None] | None = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        use_fallback: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl = ttl_seconds
        self._use_fallback = use_fallback
        self._clock = clock
        self._cache: dict[str, tuple[float, Fundamentals | None]] = {}
        self._static: dict[str, Fundamentals] = {}
        for symbol, value in (data or {}).items():
            self._static[symbol.upper()] = _coerce(symbol.upper(), value)

    def lookup(self, symbol: str) -> Fundamentals | None:
        key = symbol.upper()
        if key in self._static:
            return self._static[key]
        if self._loader is None:
            return None

        now = self._clock()
        cached = self._cache.get(key)
        if cached is not None and now - cached[0] < self._ttl:
            return cached[1]

        found = self._loader(key)
        self._cache[key] = (now, found)
        return found

    def annual_revenue(self, symbol: str) -> Decimal | None:
        found = self.lookup(symbol)
        revenue = found.annual_revenue if found else None
        if revenue is None and self._use_fallback:
            revenue = FALLBACK_REVENUE.get(symbol.upper())
            if revenue is not None:
                logger.info("Using fallback revenue for %s", symbol)
        return revenue

    def sector(self, symbol: str) -> str | None:
        found = self.lookup(symbol)
        if found is None or (found.sector is None and found.industry is None):
            return SECTOR_DEFENSE if symbol.upper() in FALLBACK_REVENUE else None
        return classify_sector(found.sector, found.industry)


def _coerce(symbol: str, value: Fundamentals | Mapping[str, Any]) -> Fundamentals:
    if isinstance(value, Fundamentals):
        return value
    revenue = value.get("annual_revenue", value.get("revenue"))
    return Fundamentals(
        symbol=symbol,
        annual_revenue=to_decimal(revenue) if revenue is not None else None,
        sector=value.get("sector"),
        industry=value.get("industry"),
    )


def compute_materiality_pct(
    contract_value: Decimal | None,
    annual_revenue: Decimal | None,
) -> Decimal | None:
    """Contract value as a percent of annual revenue; None when unknowable."""
    if contract_value is None or annual_revenue is None or annual_revenue <= 0:
        return None
    return contract_value / annual_revenue * 100

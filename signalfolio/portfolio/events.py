"""Raw trading/disclosure events consumed by the portfolio generator.

Events arrive already ingested and deduplicated; this module only gives them
a typed shape. ``TradeEvent.from_record`` accepts the loosely-typed dicts
upstream sources produce (dollar strings, ISO dates).
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from signalfolio.errors import ValidationError
from signalfolio.portfolio.target import AssetType, parse_asset_type, to_decimal

logger = logging.getLogger(__name__)

_AMOUNT_STRIP = re.compile(r"[$,\s]")


class EventType(enum.Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    CONTRACT_AWARD = "contract_award"


@dataclass(frozen=True)
class TradeEvent:
    """A single qualifying-event candidate (insider trade, contract award, ...)."""

    ticker: str
    event_date: date
    event_type: EventType
    size_usd: Decimal | None = None
    source: str = ""
    role: str | None = None
    trader_name: str | None = None
    agency: str | None = None
    asset_type: AssetType = AssetType.STOCK
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not self.ticker:
            raise ValidationError("ticker must be non-empty")
        if isinstance(self.event_date, datetime):
            object.__setattr__(self, "event_date", self.event_date.date())
        if not isinstance(self.event_type, EventType):
            object.__setattr__(self, "event_type", EventType(self.event_type))
        if self.size_usd is not None:
            object.__setattr__(self, "size_usd", to_decimal(self.size_usd))
        if not isinstance(self.asset_type, AssetType):
            object.__setattr__(self, "asset_type", parse_asset_type(self.asset_type, self.ticker))

    @property
    def direction(self) -> int:
        """+1 for purchases and awards, -1 for sales."""
        return -1 if self.event_type is EventType.SALE else 1

    @property
    def signed_size(self) -> Decimal | None:
        if self.size_usd is None:
            return None
        return self.size_usd * self.direction

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> TradeEvent:
        """Build an event from an upstream record dict.

        Recognized keys: ticker, date (or event_date/transaction_date),
        type (or event_type/transaction_type), size_usd (or value/amount),
        source, role (or trader_source), trader_name, agency, asset_type.
        """
        raw_date = (
            record.get("event_date")
            or record.get("date")
            or record.get("transaction_date")
        )
        raw_type = (
            record.get("event_type")
            or record.get("type")
            or record.get("transaction_type")
            or "purchase"
        )
        raw_size = record.get("size_usd", record.get("value", record.get("amount")))
        known = {
            "ticker", "event_date", "date", "transaction_date", "event_type",
            "type", "transaction_type", "size_usd", "value", "amount", "source",
            "role", "trader_source", "trader_name", "agency", "asset_type",
        }
        return cls(
            ticker=str(record["ticker"]).upper(),
            event_date=parse_date(raw_date),
            event_type=EventType(str(raw_type).lower()),
            size_usd=parse_amount(raw_size),
            source=str(record.get("source") or ""),
            role=record.get("role") or record.get("trader_source"),
            trader_name=record.get("trader_name"),
            agency=record.get("agency"),
            asset_type=parse_asset_type(record.get("asset_type") or "stock", record["ticker"]),
            metadata={k: v for k, v in record.items() if k not in known},
        )


def parse_date(value: Any) -> date:
    """Parse a date/datetime/ISO string into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        return date.fromisoformat(value[:10])
    raise ValidationError(f"Unparseable event date: {value!r}")


def parse_amount(value: Any) -> Decimal | None:
    """Parse a dollar amount like ``"$1,250,000"``; None when absent or bad."""
    if value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        return to_decimal(value)
    cleaned = _AMOUNT_STRIP.sub("", str(value))
    if not cleaned:
        return None
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        logger.warning("Unparseable trade amount %r; treating as unknown", value)
        return None
    return amount if amount.is_finite() else None

"""Account history inputs: equity samples, cash transfers and fills."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from signalfolio.errors import ValidationError
from signalfolio.portfolio.events import parse_date
from signalfolio.portfolio.target import to_decimal


class TransferType(enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


@dataclass(frozen=True)
class EquitySample:
    timestamp: date
    equity: Decimal

    def __post_init__(self):
        if isinstance(self.timestamp, datetime):
            object.__setattr__(self, "timestamp", self.timestamp.date())
        object.__setattr__(self, "equity", to_decimal(self.equity))
        if self.equity < 0:
            raise ValidationError(f"equity must be >= 0, got {self.equity}")

    @property
    def day(self) -> date:
        return self.timestamp


@dataclass(frozen=True)
class CashTransfer:
    """Owner deposit or withdrawal.

    ``amount`` may be given signed or as a magnitude; ``signed_amount`` is
    always positive for deposits and negative for withdrawals.
    """

    date: date
    type: TransferType
    amount: Decimal

    def __post_init__(self):
        if isinstance(self.date, datetime):
            object.__setattr__(self, "date", self.date.date())
        if not isinstance(self.type, TransferType):
            object.__setattr__(self, "type", TransferType(self.type))
        object.__setattr__(self, "amount", to_decimal(self.amount))

    @property
    def signed_amount(self) -> Decimal:
        magnitude = abs(self.amount)
        return -magnitude if self.type is TransferType.WITHDRAWAL else magnitude

    @classmethod
    def from_signed(cls, day: date, amount: Any) -> CashTransfer:
        value = to_decimal(amount)
        kind = TransferType.WITHDRAWAL if value < 0 else TransferType.DEPOSIT
        return cls(date=day, type=kind, amount=abs(value))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CashTransfer:
        day = parse_date(data["date"])
        kind = data.get("type")
        if isinstance(kind, str) and kind:
            return cls(date=day, type=TransferType(kind.lower()), amount=data["amount"])
        return cls.from_signed(day, data["amount"])


@dataclass(frozen=True)
class Fill:
    """An executed fill, used for realized round-trip outcomes."""

    symbol: str
    side: str  # "buy" or "sell"
    qty: Decimal
    price: Decimal
    time: datetime

    def __post_init__(self):
        side = str(getattr(self.side, "value", self.side)).lower()
        if side not in ("buy", "sell"):
            raise ValidationError(f"side must be 'buy' or 'sell', got '{self.side}'")
        object.__setattr__(self, "side", side)
        object.__setattr__(self, "qty", to_decimal(self.qty))
        object.__setattr__(self, "price", to_decimal(self.price))
        if self.qty <= 0:
            raise ValidationError(f"fill qty must be > 0, got {self.qty}")

"""Position value types: desired targets and live broker snapshots."""

from __future__ import annotations

import enum
import numbers
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping

from signalfolio.errors import UnsupportedAssetType, ValidationError


class AssetType(enum.Enum):
    STOCK = "stock"
    OPTION = "option"
    CRYPTO = "crypto"
    FUTURE = "future"


class PositionSide(enum.Enum):
    LONG = "long"
    SHORT = "short"


SUPPORTED_ASSET_TYPES = frozenset({AssetType.STOCK})


def to_decimal(value: Any) -> Decimal:
    """Convert numbers to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, numbers.Integral):
        return Decimal(int(value))
    if isinstance(value, numbers.Real):
        return Decimal(repr(float(value)))
    return Decimal(value)


def require_supported(asset_type: AssetType, symbol: str | None = None) -> None:
    """Raise UnsupportedAssetType unless the instrument is an equity."""
    if asset_type not in SUPPORTED_ASSET_TYPES:
        raise UnsupportedAssetType(asset_type, symbol)


def parse_asset_type(value: Any, symbol: str | None = None) -> AssetType:
    """AssetType from its string value; unknown values are unsupported, not invalid."""
    if isinstance(value, AssetType):
        return value
    try:
        return AssetType(str(value).lower())
    except ValueError:
        raise UnsupportedAssetType(value, symbol) from None


@dataclass(frozen=True)
class TargetPosition:
    """Desired signed notional for one symbol.

    Positive target_value is long, negative is short. ``details`` carries
    diagnostics and forward-compatible fields (e.g. an option strike); it
    takes part in equality but not in hashing.
    """

    symbol: str
    target_value: Decimal
    asset_type: AssetType = AssetType.STOCK
    details: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not self.symbol:
            raise ValidationError("symbol must be non-empty")
        object.__setattr__(self, "target_value", to_decimal(self.target_value))
        if not self.target_value.is_finite():
            raise ValidationError(
                f"target_value for {self.symbol} must be finite, got {self.target_value}"
            )
        if not isinstance(self.asset_type, AssetType):
            object.__setattr__(self, "asset_type", parse_asset_type(self.asset_type, self.symbol))

    @property
    def side(self) -> PositionSide:
        return PositionSide.SHORT if self.target_value < 0 else PositionSide.LONG

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "asset_type": self.asset_type.value,
            "target_value": str(self.target_value),
            "details": dict(self.details),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TargetPosition:
        return cls(
            symbol=data["symbol"],
            target_value=to_decimal(data["target_value"]),
            asset_type=parse_asset_type(data.get("asset_type", "stock"), data["symbol"]),
            details=dict(data.get("details") or {}),
        )


@dataclass(frozen=True)
class CurrentPosition:
    """Read-only snapshot of a live brokerage position."""

    symbol: str
    quantity: Decimal
    market_value: Decimal
    side: PositionSide = PositionSide.LONG
    asset_type: AssetType = AssetType.STOCK

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", to_decimal(self.quantity))
        object.__setattr__(self, "market_value", to_decimal(self.market_value))
        if not isinstance(self.side, PositionSide):
            object.__setattr__(self, "side", PositionSide(self.side))
        if not isinstance(self.asset_type, AssetType):
            object.__setattr__(self, "asset_type", parse_asset_type(self.asset_type, self.symbol))

    @property
    def signed_value(self) -> Decimal:
        """Market value signed by side; shorts contribute negative value.

        Brokers report short market value either negative or as a magnitude,
        so the magnitude is re-signed from ``side``.
        """
        magnitude = abs(self.market_value)
        return -magnitude if self.side is PositionSide.SHORT else magnitude

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CurrentPosition:
        return cls(
            symbol=data["symbol"],
            quantity=to_decimal(data.get("quantity", data.get("qty", 0))),
            market_value=to_decimal(data["market_value"]),
            side=PositionSide(str(data.get("side", "long")).lower()),
            asset_type=parse_asset_type(data.get("asset_type", "stock"), data["symbol"]),
        )

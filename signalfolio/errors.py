"""Error taxonomy shared by the netting, sizing, rebalancing and reporting stages.

Structural problems (bad capital base, unsupported instruments, malformed
ranges) are raised and always propagate to the caller. Statistical
degeneracy is never raised: it becomes a null field plus a warning string in
the performance report.
"""

from __future__ import annotations


class SignalfolioError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(SignalfolioError, ValueError):
    """A value object was constructed with out-of-range fields."""


class InvalidInputError(SignalfolioError, ValueError):
    """An operation received input it cannot compute on.

    Missing or non-positive capital base, start date after end date,
    negative strategy weights, unknown sizing modes.
    """


class UnsupportedAssetType(SignalfolioError, NotImplementedError):
    """A non-stock instrument reached a stage that only handles equities."""

    def __init__(self, asset_type: object, symbol: str | None = None) -> None:
        value = getattr(asset_type, "value", asset_type)
        where = f" for {symbol}" if symbol else ""
        super().__init__(
            f"Asset type '{value}'{where} is not supported (stock only)"
        )
        self.asset_type = asset_type
        self.symbol = symbol

"""Brokerage adapter — positions, account history and order placement.

The core only consumes snapshots from this adapter; callers fetch once per
rebalance/report cycle and pass the results in.

AlpacaBrokerageAdapter:
- Positions and market orders via alpaca-py TradingClient
- Portfolio history and cash activities via the REST API (requests)
- Paper/live endpoint separation (refuses live unless production tier)
"""

from __future__ import annotations

import logging
import os
import time
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Iterable, Protocol

import requests

from signalfolio.eval.history import CashTransfer, EquitySample, TransferType
from signalfolio.execution.rebalancer import OrderInstruction, OrderSide
from signalfolio.portfolio.target import AssetType, CurrentPosition, PositionSide

logger = logging.getLogger(__name__)

RETRY_DELAYS = [1, 5, 30]  # seconds, exponential backoff
ACTIVITY_PAGE_SIZE = 100

_ASSET_CLASSES = {
    "us_equity": AssetType.STOCK,
    "us_option": AssetType.OPTION,
    "crypto": AssetType.CRYPTO,
}


class BrokerError(Exception):
    """Normalized broker error."""

    def __init__(self, message: str, *, code: str = "", retryable: bool = False):
        super().__init__(message)
        self.code = code
        self.retryable = retryable


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class BrokerageAdapter(Protocol):
    def current_positions(self) -> list[CurrentPosition]: ...

    def account_equity_history(self, start: date, end: date) -> list[EquitySample]: ...

    def cash_transfers(self, start: date | None, end: date) -> list[CashTransfer]: ...

    def place_order(
        self,
        symbol: str,
        side: OrderSide,
        notional: Any,
        client_order_id: str | None = None,
    ) -> str: ...


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

PAPER_BASE_URL = "https://paper-api.alpaca.markets"
LIVE_BASE_URL = "https://api.alpaca.markets"


@dataclass(frozen=True)
class AlpacaBrokerageConfig:
    """Credentials come from APCA_API_KEY_ID / APCA_API_SECRET_KEY."""

    api_key: str = ""
    api_secret: str = ""
    paper: bool = True
    production_tier: bool = False  # Must be True to allow live endpoint
    max_retries: int = 3
    timeout: float = 30.0

    @property
    def base_url(self) -> str:
        return PAPER_BASE_URL if self.paper else LIVE_BASE_URL

    def __post_init__(self) -> None:
        if not self.paper and not self.production_tier:
            raise ValueError(
                "Refusing live endpoint: production_tier must be True "
                "to use live trading. Set paper=True for paper trading."
            )
        if not 1 <= self.max_retries <= len(RETRY_DELAYS):
            raise ValueError(f"max_retries must be in [1, {len(RETRY_DELAYS)}]")

    @classmethod
    def from_env(
        cls,
        *,
        paper: bool = True,
        production_tier: bool = False,
    ) -> AlpacaBrokerageConfig:
        return cls(
            api_key=os.environ.get("APCA_API_KEY_ID", ""),
            api_secret=os.environ.get("APCA_API_SECRET_KEY", ""),
            paper=paper,
            production_tier=production_tier,
        )


# ---------------------------------------------------------------------------
# Alpaca adapter
# ---------------------------------------------------------------------------


class AlpacaBrokerageAdapter:
    """Alpaca Trading API implementation of BrokerageAdapter."""

    def __init__(self, config: AlpacaBrokerageConfig, *, client: Any = None) -> None:
        self._config = config
        self._validate_credentials()
        self._client = client if client is not None else self._create_client()

    def _validate_credentials(self) -> None:
        if not self._config.api_key or not self._config.api_secret:
            raise BrokerError(
                "Missing Alpaca credentials: set APCA_API_KEY_ID and "
                "APCA_API_SECRET_KEY environment variables",
                code="AUTH_MISSING",
            )

    def _create_client(self) -> Any:
        """Create alpaca-py TradingClient."""
        from alpaca.trading.client import TradingClient

        return TradingClient(
            api_key=self._config.api_key,
            secret_key=self._config.api_secret,
            paper=self._config.paper,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "APCA-API-KEY-ID": self._config.api_key,
            "APCA-API-SECRET-KEY": self._config.api_secret,
        }

    def _request_with_retry(self, path: str, params: dict[str, Any]) -> Any:
        """GET with backoff on transport errors and 429 responses."""
        url = f"{self._config.base_url}{path}"
        delays = RETRY_DELAYS[: self._config.max_retries]
        last_exc: Exception | None = None
        for attempt, delay in enumerate(delays):
            try:
                resp = requests.get(
                    url, headers=self._headers(), params=params, timeout=self._config.timeout
                )
                if resp.status_code == 429:
                    retry_after = int(resp.headers.get("Retry-After", delay))
                    logger.warning(
                        "Rate limited (429), waiting %ds (attempt %d/%d)",
                        retry_after,
                        attempt + 1,
                        len(delays),
                    )
                    time.sleep(retry_after)
                    continue
                resp.raise_for_status()
                return resp.json()
            except requests.RequestException as exc:
                last_exc = exc
                if attempt < len(delays) - 1:
                    logger.warning(
                        "Request failed (attempt %d/%d): %s — retrying in %ds",
                        attempt + 1,
                        len(delays),
                        exc,
                        delay,
                    )
                    time.sleep(delay)
        raise BrokerError(
            f"Alpaca API request {path} failed after {len(delays)} attempts: {last_exc}",
            code="REQUEST_FAILED",
            retryable=True,
        ) from last_exc

    # -- positions ----------------------------------------------------------

    def current_positions(self) -> list[CurrentPosition]:
        try:
            raw = self._client.get_all_positions()
        except Exception as exc:
            raise BrokerError(
                f"Failed to get positions: {exc}",
                code="POSITIONS_FAILED",
                retryable=True,
            ) from exc
        return [_position_from_alpaca(p) for p in raw]

    # -- history ------------------------------------------------------------

    def account_equity_history(self, start: date, end: date) -> list[EquitySample]:
        """Daily equity between start and end (inclusive); null points skipped."""
        data = self._request_with_retry(
            "/v2/account/portfolio/history",
            {
                "start": f"{start.isoformat()}T00:00:00Z",
                "end": f"{end.isoformat()}T23:59:59Z",
                "timeframe": "1D",
            },
        )
        samples: list[EquitySample] = []
        for ts, equity in zip(data.get("timestamp") or [], data.get("equity") or []):
            if equity is None:
                continue
            day = datetime.fromtimestamp(int(ts), tz=timezone.utc).date()
            samples.append(EquitySample(timestamp=day, equity=str(equity)))
        logger.info("Fetched %d equity samples (%s to %s)", len(samples), start, end)
        return samples

    def cash_transfers(self, start: date | None, end: date) -> list[CashTransfer]:
        """Deposits (CSD) and withdrawals (CSW), oldest first.

        ``start=None`` fetches the whole account lifetime, which lifetime
        contribution totals require.
        """
        params: dict[str, Any] = {
            "activity_types": "CSD,CSW",
            "until": f"{end.isoformat()}T23:59:59Z",
            "direction": "asc",
            "page_size": ACTIVITY_PAGE_SIZE,
        }
        if start is not None:
            params["after"] = f"{start.isoformat()}T00:00:00Z"

        transfers: list[CashTransfer] = []
        while True:
            page = self._request_with_retry("/v2/account/activities", params) or []
            for activity in page:
                transfers.append(_transfer_from_activity(activity))
            if len(page) < ACTIVITY_PAGE_SIZE:
                break
            params = {**params, "page_token": page[-1]["id"]}

        logger.info("Fetched %d cash transfers", len(transfers))
        return transfers

    # -- orders -------------------------------------------------------------

    def place_order(
        self,
        symbol: str,
        side: OrderSide,
        notional: Any,
        client_order_id: str | None = None,
    ) -> str:
        """Submit a notional market order; returns the broker order id.

        Every attempt carries the same ``client_order_id`` so a retry after
        an ambiguous failure cannot create a second order. When the broker
        reports the id as already used, the earlier order is returned.
        """
        from alpaca.trading.enums import OrderSide as AlpacaSide
        from alpaca.trading.enums import TimeInForce
        from alpaca.trading.requests import MarketOrderRequest

        client_order_id = client_order_id or uuid.uuid4().hex
        alpaca_side = AlpacaSide.BUY if side == OrderSide.BUY else AlpacaSide.SELL
        order_req = MarketOrderRequest(
            symbol=symbol,
            notional=round(float(notional), 2),
            side=alpaca_side,
            time_in_force=TimeInForce.DAY,
            client_order_id=client_order_id,
        )

        last_exc: Exception | None = None
        delays = RETRY_DELAYS[: self._config.max_retries]
        for attempt, delay in enumerate(delays):
            try:
                order = self._client.submit_order(order_data=order_req)
                logger.info("Submitted %s %s $%.2f (order %s)", side.value, symbol, float(notional), order.id)
                return str(order.id)
            except Exception as exc:
                last_exc = exc
                error_str = str(exc).lower()
                if "insufficient" in error_str:
                    raise BrokerError(
                        f"Insufficient funds: {exc}",
                        code="INSUFFICIENT_FUNDS",
                    ) from exc
                if "forbidden" in error_str:
                    raise BrokerError(f"Forbidden: {exc}", code="FORBIDDEN") from exc
                if attempt > 0 and "client_order_id" in error_str:
                    order = self._client.get_order_by_client_id(client_order_id)
                    logger.info(
                        "Order %s already accepted as %s", client_order_id, order.id
                    )
                    return str(order.id)
                if attempt < len(delays) - 1:
                    logger.warning(
                        "Order submit failed (attempt %d/%d): %s, retrying in %ds",
                        attempt + 1,
                        len(delays),
                        exc,
                        delay,
                    )
                    time.sleep(delay)

        raise BrokerError(
            f"Order submission failed after {len(delays)} attempts: {last_exc}",
            code="SUBMIT_FAILED",
        ) from last_exc

    def submit_instructions(
        self,
        instructions: Iterable[OrderInstruction],
        *,
        decision_id: str | None = None,
    ) -> list[str]:
        """Place each instruction in order; stops at the first broker error.

        With a ``decision_id`` the client order ids are ``<decision_id>-<n>``,
        so resubmitting the same decision reuses the same ids.
        """
        order_ids = []
        for n, instruction in enumerate(instructions):
            client_order_id = f"{decision_id}-{n}" if decision_id else None
            order_ids.append(
                self.place_order(
                    instruction.symbol,
                    instruction.side,
                    instruction.notional,
                    client_order_id=client_order_id,
                )
            )
        return order_ids


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value)).lower()


def _position_from_alpaca(position: Any) -> CurrentPosition:
    asset_class = _enum_value(getattr(position, "asset_class", "us_equity"))
    if asset_class not in _ASSET_CLASSES:
        raise BrokerError(
            f"Unknown asset class '{asset_class}' for {position.symbol}",
            code="UNKNOWN_ASSET_CLASS",
        )
    return CurrentPosition(
        symbol=position.symbol,
        quantity=str(position.qty),
        market_value=str(position.market_value or 0),
        side=PositionSide.SHORT if _enum_value(position.side) == "short" else PositionSide.LONG,
        asset_type=_ASSET_CLASSES[asset_class],
    )


def _transfer_from_activity(activity: dict[str, Any]) -> CashTransfer:
    kind = (
        TransferType.WITHDRAWAL
        if activity.get("activity_type") == "CSW"
        else TransferType.DEPOSIT
    )
    return CashTransfer(
        date=date.fromisoformat(str(activity["date"])[:10]),
        type=kind,
        amount=abs(float(activity.get("net_amount", 0))),
    )

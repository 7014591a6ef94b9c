"""
Gemini REST API Client.

Typed access to the endpoints the trading code needs:
- Public ticker
- Account balances
- Active order status
- Session order cancellation
- Limit order placement

Private calls go through SignedRequestDispatcher. Prices and amounts are
decoded as Decimal from the exchange's decimal strings.
"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, List, Optional, Any, Union

from config.settings import GeminiConfig
from .auth import GeminiCredentials, load_credentials_from_env
from .dispatcher import SignedRequestDispatcher
from .errors import ConfigurationError, DecodeError, classify_and_raise
from .symbols import Number, format_amount, format_price

logger = logging.getLogger(__name__)


class OrderSide(Enum):
    """Order side (buy/sell)."""
    BUY = "buy"
    SELL = "sell"


EXCHANGE_LIMIT = "exchange limit"


def _decimal(data: Dict[str, Any], key: str) -> Decimal:
    value = data[key]
    if isinstance(value, (bool, dict, list)) or value is None:
        raise ValueError(f"{key} is not a decimal: {value!r}")
    return Decimal(str(value))


def _optional_decimal(data: Dict[str, Any], key: str) -> Optional[Decimal]:
    if data.get(key) in (None, ""):
        return None
    return _decimal(data, key)


def _bool(data: Dict[str, Any], key: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise ValueError(f"{key} is not a boolean: {value!r}")
    return value


@dataclass
class Ticker:
    """Best bid/ask and last trade price for a pair."""
    bid: Decimal
    ask: Decimal
    last: Decimal

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Ticker":
        return cls(
            bid=_decimal(data, "bid"),
            ask=_decimal(data, "ask"),
            last=_decimal(data, "last"),
        )


@dataclass
class Fund:
    """Balance of one currency in one account type."""
    type: str
    currency: str
    amount: Decimal
    available: Decimal
    available_for_withdrawal: Decimal

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Fund":
        return cls(
            type=str(data["type"]),
            currency=str(data["currency"]),
            amount=_decimal(data, "amount"),
            available=_decimal(data, "available"),
            available_for_withdrawal=_decimal(data, "availableForWithdrawal"),
        )


@dataclass
class Order:
    """Order as returned by order placement and order status."""
    order_id: str
    client_order_id: Optional[str]
    symbol: str
    price: Optional[Decimal]
    avg_execution_price: Decimal
    side: str
    type: str
    timestamp: int
    timestampms: int
    is_live: bool
    is_cancelled: bool
    executed_amount: Decimal
    remaining_amount: Decimal
    original_amount: Decimal

    @property
    def is_filled(self) -> bool:
        """Check if the order has no remaining amount."""
        return self.remaining_amount == 0 and not self.is_cancelled

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Order":
        client_order_id = data.get("client_order_id")
        return cls(
            order_id=str(data["order_id"]),
            client_order_id=str(client_order_id) if client_order_id is not None else None,
            symbol=str(data["symbol"]),
            price=_optional_decimal(data, "price"),
            avg_execution_price=_decimal(data, "avg_execution_price"),
            side=str(data["side"]),
            type=str(data["type"]),
            timestamp=int(str(data["timestamp"])),
            timestampms=int(str(data["timestampms"])),
            is_live=_bool(data, "is_live"),
            is_cancelled=_bool(data, "is_cancelled"),
            executed_amount=_decimal(data, "executed_amount"),
            remaining_amount=_decimal(data, "remaining_amount"),
            original_amount=_decimal(data, "original_amount"),
        )


_DECODE_ERRORS = (KeyError, TypeError, ValueError, InvalidOperation)


class GeminiClient:
    """
    Client for the Gemini REST API.

    Usage:
        # From environment variables
        client = GeminiClient.from_env()

        # With explicit config and credentials
        client = GeminiClient.from_config(
            GeminiConfig(sandbox=True),
            GeminiCredentials("key", "secret"),
        )

        ticker = client.get_ticker("btcusd")
        order = client.place_limit_order(
            side=OrderSide.BUY,
            symbol="btcusd",
            client_order_id="grid-1",
            amount=0.1,
            price=10123.5,
        )
    """

    TICKER_PATH = "/v1/pubticker/{pair}"
    BALANCES_PATH = "/v1/balances"
    ORDERS_PATH = "/v1/orders"
    CANCEL_SESSION_PATH = "/v1/order/cancel/session"
    NEW_ORDER_PATH = "/v1/order/new"

    def __init__(self, dispatcher: SignedRequestDispatcher):
        """
        Initialize Gemini client.

        Args:
            dispatcher: Dispatcher owning credentials and the nonce counter
        """
        self._dispatcher = dispatcher

    @classmethod
    def from_env(cls, config: Optional[GeminiConfig] = None, **kwargs) -> "GeminiClient":
        """
        Create client from environment variables.

        Expects GEMINI_API_KEY and GEMINI_API_SECRET.
        """
        credentials = load_credentials_from_env()
        return cls.from_config(config or GeminiConfig(), credentials, **kwargs)

    @classmethod
    def from_config(
        cls,
        config: GeminiConfig,
        credentials: GeminiCredentials,
        **kwargs,
    ) -> "GeminiClient":
        """Create client from config and credentials."""
        return cls(SignedRequestDispatcher.from_config(config, credentials, **kwargs))

    @property
    def dispatcher(self) -> SignedRequestDispatcher:
        return self._dispatcher

    def _decode_json(self, route: str, body: bytes) -> Any:
        """Parse a JSON body, raising DecodeError with the raw body kept."""
        try:
            data = json.loads(body)
        except ValueError as e:
            logger.error(f"Invalid JSON from {route}: {e}")
            raise DecodeError(route, body, str(e)) from e

        if isinstance(data, dict) and data.get("result") == "error":
            classify_and_raise(route, None, body)

        return data

    # ==========================================
    # MARKET DATA
    # ==========================================

    def get_ticker(self, pair: str) -> Ticker:
        """
        Get the current ticker for a pair.

        Args:
            pair: Trading pair (e.g., "btcusd")

        Returns:
            Ticker with bid, ask and last price
        """
        route = self.TICKER_PATH.format(pair=pair)
        body = self._dispatcher.get(route)
        data = self._decode_json(route, body)

        try:
            return Ticker.from_json(data)
        except _DECODE_ERRORS as e:
            logger.error(f"Failed to decode ticker for {pair}: {e}")
            raise DecodeError(route, body, f"bad ticker: {e}") from e

    # ==========================================
    # ACCOUNT
    # ==========================================

    def get_funds(self) -> List[Fund]:
        """
        Get balances for all currencies.

        Returns:
            List of Fund records
        """
        route = self.BALANCES_PATH
        body = self._dispatcher.dispatch(route)
        data = self._decode_json(route, body)

        if not isinstance(data, list):
            raise DecodeError(route, body, "expected a list of balances")
        try:
            funds = [Fund.from_json(item) for item in data]
        except _DECODE_ERRORS as e:
            logger.error(f"Failed to decode balances: {e}")
            raise DecodeError(route, body, f"bad balance: {e}") from e

        logger.debug(f"Got balance for {len(funds)} currencies")
        return funds

    # ==========================================
    # ORDERS
    # ==========================================

    def get_order_status(self) -> List[Order]:
        """
        Get all active orders.

        Returns:
            List of Order records
        """
        route = self.ORDERS_PATH
        body = self._dispatcher.dispatch(route)
        data = self._decode_json(route, body)

        if not isinstance(data, list):
            raise DecodeError(route, body, "expected a list of orders")
        try:
            orders = [Order.from_json(item) for item in data]
        except _DECODE_ERRORS as e:
            logger.error(f"Failed to decode order status: {e}")
            raise DecodeError(route, body, f"bad order: {e}") from e

        logger.debug(f"Got {len(orders)} active orders")
        return orders

    def cancel_all(self) -> None:
        """
        Cancel all open orders placed in this session.

        The response body is not inspected, but transport and exchange
        errors still propagate.
        """
        self._dispatcher.dispatch(self.CANCEL_SESSION_PATH)
        logger.info("Requested cancel of all session orders")

    def place_limit_order(
        self,
        side: Union[OrderSide, str],
        symbol: str,
        client_order_id: str,
        amount: Number,
        price: Number,
    ) -> Order:
        """
        Place an exchange limit order.

        Args:
            side: Buy or sell
            symbol: Trading pair (btcusd, ethusd or ethbtc)
            client_order_id: Caller supplied order identifier
            amount: Order amount in base currency
            price: Limit price in quote currency

        Returns:
            The accepted Order

        Raises:
            ConfigurationError: If the symbol, side, amount or price is invalid
                (no request is sent)
            TransportError: If the exchange could not be reached
            DecodeError: If the response is not an order
        """
        try:
            side_value = OrderSide(side.lower() if isinstance(side, str) else side).value
        except ValueError:
            raise ConfigurationError(f"Invalid order side: {side!r}") from None

        fields = {
            "symbol": symbol.lower(),
            "amount": format_amount(amount),
            "price": format_price(symbol, price),
            "side": side_value,
            "type": EXCHANGE_LIMIT,
            "client_order_id": client_order_id,
        }

        route = self.NEW_ORDER_PATH
        body = self._dispatcher.dispatch(route, fields)
        data = self._decode_json(route, body)

        try:
            order = Order.from_json(data)
        except _DECODE_ERRORS as e:
            logger.error(f"Failed to decode order placement response: {e}")
            raise DecodeError(route, body, f"bad order: {e}") from e

        logger.info(
            f"Order placed: {order.order_id} {side_value} {fields['amount']} "
            f"{symbol} @ {fields['price']}"
        )
        return order

    # ==========================================
    # UTILITY METHODS
    # ==========================================

    def close(self) -> None:
        """Close the underlying dispatcher."""
        self._dispatcher.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

"""
Gemini API Module.

Provides clients and utilities for interacting with the Gemini exchange:
- Authentication (HMAC-SHA384 payload signing, nonce sequencing)
- Signed request dispatch (raw bytes in, raw bytes out)
- Typed REST client (ticker, balances, orders)
- Error taxonomy (configuration, transport, decode, exchange)

Usage:
    from gemini_client.api import GeminiClient, OrderSide

    client = GeminiClient.from_env()  # Uses GEMINI_API_KEY, GEMINI_API_SECRET
    funds = client.get_funds()
    order = client.place_limit_order(
        side=OrderSide.BUY,
        symbol="btcusd",
        client_order_id="my-order-1",
        amount=0.1,
        price=10123.5,
    )
"""

# Authentication
from .auth import (
    GeminiAuth,
    GeminiCredentials,
    NonceManager,
    load_credentials_from_env,
    load_credentials_from_file,
)

# Error handling
from .errors import (
    GeminiError,
    ConfigurationError,
    TransportError,
    DecodeError,
    ExchangeError,
    RateLimitError,
    AuthenticationError,
    InsufficientFundsError,
    OrderError,
    ErrorInfo,
    ErrorCategory,
    ErrorSeverity,
    classify_and_raise,
)

# Request dispatch
from .dispatcher import SignedRequestDispatcher

# Order formatting
from .symbols import (
    PRICE_DECIMALS,
    format_amount,
    format_price,
)

# REST API
from .rest_client import (
    GeminiClient,
    Ticker,
    Fund,
    Order,
    OrderSide,
)


__all__ = [
    # Authentication
    "GeminiAuth",
    "GeminiCredentials",
    "NonceManager",
    "load_credentials_from_env",
    "load_credentials_from_file",
    # Errors
    "GeminiError",
    "ConfigurationError",
    "TransportError",
    "DecodeError",
    "ExchangeError",
    "RateLimitError",
    "AuthenticationError",
    "InsufficientFundsError",
    "OrderError",
    "ErrorInfo",
    "ErrorCategory",
    "ErrorSeverity",
    "classify_and_raise",
    # Dispatch
    "SignedRequestDispatcher",
    # Formatting
    "PRICE_DECIMALS",
    "format_amount",
    "format_price",
    # Client
    "GeminiClient",
    "Ticker",
    "Fund",
    "Order",
    "OrderSide",
]

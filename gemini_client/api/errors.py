"""
Gemini API Error Handling.

Error taxonomy for the REST client:
- ConfigurationError: invalid client-side request (e.g. unsupported pair)
- TransportError: the exchange could not be reached
- DecodeError: the response body is not the JSON we expected
- ExchangeError: the exchange answered with an error result

Every error carries the route it was raised for. Nothing here retries;
retry policy belongs to the caller.

Gemini error reasons reference:
- InvalidSignature / InvalidNonce / InvalidApiKey - authentication
- RateLimit - too many requests
- InsufficientFunds - not enough balance for the order
- InvalidPrice / InvalidQuantity / OrderNotFound - order errors
- Maintenance / System - exchange side problems
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Dict, Any, Union

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    LOW = auto()       # Informational, can continue
    MEDIUM = auto()    # Warning, may need attention
    HIGH = auto()      # Error, operation failed
    CRITICAL = auto()  # Critical, stop trading


class ErrorCategory(Enum):
    """Categories of Gemini API errors."""
    RATE_LIMIT = "rate_limit"
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    ORDER = "order"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    MARKET_CLOSED = "market_closed"
    INVALID_PARAMETER = "invalid_parameter"
    SERVER = "server"
    UNKNOWN = "unknown"


@dataclass
class ErrorInfo:
    """Classification of an exchange error reason."""
    reason: str
    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    recoverable: bool = True


def _info(
    reason: str,
    message: str,
    category: ErrorCategory,
    severity: ErrorSeverity,
    recoverable: bool,
) -> ErrorInfo:
    return ErrorInfo(reason, message, category, severity, recoverable)


# Error reason mappings
ERROR_MAPPINGS: Dict[str, ErrorInfo] = {
    # Rate limiting
    "RateLimit": _info(
        "RateLimit", "API rate limit exceeded",
        ErrorCategory.RATE_LIMIT, ErrorSeverity.MEDIUM, True,
    ),

    # Authentication errors
    "InvalidSignature": _info(
        "InvalidSignature", "Invalid API signature",
        ErrorCategory.AUTHENTICATION, ErrorSeverity.CRITICAL, False,
    ),
    "InvalidNonce": _info(
        "InvalidNonce", "Nonce was not greater than the previous nonce",
        ErrorCategory.AUTHENTICATION, ErrorSeverity.MEDIUM, True,
    ),
    "InvalidApiKey": _info(
        "InvalidApiKey", "Invalid API key",
        ErrorCategory.AUTHENTICATION, ErrorSeverity.CRITICAL, False,
    ),
    "MissingApikeyHeader": _info(
        "MissingApikeyHeader", "X-API-KEY header was missing",
        ErrorCategory.AUTHENTICATION, ErrorSeverity.CRITICAL, False,
    ),
    "MissingPayloadHeader": _info(
        "MissingPayloadHeader", "X-API-PAYLOAD header was missing",
        ErrorCategory.AUTHENTICATION, ErrorSeverity.CRITICAL, False,
    ),
    "MissingSignatureHeader": _info(
        "MissingSignatureHeader", "X-API-SIGNATURE header was missing",
        ErrorCategory.AUTHENTICATION, ErrorSeverity.CRITICAL, False,
    ),

    # Permission errors
    "InvalidApiKeyRole": _info(
        "InvalidApiKeyRole", "API key lacks the required role",
        ErrorCategory.PERMISSION, ErrorSeverity.HIGH, False,
    ),
    "AccountClosed": _info(
        "AccountClosed", "Account is closed",
        ErrorCategory.PERMISSION, ErrorSeverity.CRITICAL, False,
    ),

    # Order errors
    "InsufficientFunds": _info(
        "InsufficientFunds", "Insufficient funds for order",
        ErrorCategory.INSUFFICIENT_FUNDS, ErrorSeverity.MEDIUM, False,
    ),
    "InvalidPrice": _info(
        "InvalidPrice", "Order price is invalid for this symbol",
        ErrorCategory.ORDER, ErrorSeverity.LOW, False,
    ),
    "InvalidQuantity": _info(
        "InvalidQuantity", "Order amount is invalid for this symbol",
        ErrorCategory.ORDER, ErrorSeverity.LOW, False,
    ),
    "InvalidSide": _info(
        "InvalidSide", "Order side must be buy or sell",
        ErrorCategory.ORDER, ErrorSeverity.LOW, False,
    ),
    "InvalidOrderType": _info(
        "InvalidOrderType", "Order type is not supported",
        ErrorCategory.ORDER, ErrorSeverity.LOW, False,
    ),
    "OrderNotFound": _info(
        "OrderNotFound", "Order not found",
        ErrorCategory.ORDER, ErrorSeverity.LOW, False,
    ),

    # General errors
    "InvalidSymbol": _info(
        "InvalidSymbol", "Unknown trading symbol",
        ErrorCategory.INVALID_PARAMETER, ErrorSeverity.MEDIUM, False,
    ),
    "InvalidJson": _info(
        "InvalidJson", "Request payload was not valid JSON",
        ErrorCategory.INVALID_PARAMETER, ErrorSeverity.HIGH, False,
    ),
    "MarketNotOpen": _info(
        "MarketNotOpen", "Market is not open for trading",
        ErrorCategory.MARKET_CLOSED, ErrorSeverity.MEDIUM, True,
    ),
    "Maintenance": _info(
        "Maintenance", "Exchange is down for maintenance",
        ErrorCategory.SERVER, ErrorSeverity.HIGH, True,
    ),
    "System": _info(
        "System", "Exchange internal error",
        ErrorCategory.SERVER, ErrorSeverity.MEDIUM, True,
    ),
}


def classify_reason(reason: str) -> ErrorInfo:
    """Map an exchange error reason to its ErrorInfo."""
    if reason in ERROR_MAPPINGS:
        return ERROR_MAPPINGS[reason]

    return ErrorInfo(
        reason=reason,
        message=f"Unknown error: {reason}",
        category=ErrorCategory.UNKNOWN,
        severity=ErrorSeverity.MEDIUM,
        recoverable=True,
    )


class GeminiError(Exception):
    """Base exception for all client errors."""

    def __init__(self, message: str, route: Optional[str] = None):
        self.route = route
        super().__init__(f"{message} (route={route})" if route else message)


class ConfigurationError(GeminiError):
    """Raised for requests the client refuses to send, e.g. unsupported pairs."""
    pass


class TransportError(GeminiError):
    """Raised when the exchange could not be reached (connection, DNS, timeout)."""

    def __init__(self, route: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(f"Transport failure: {cause}", route)


class DecodeError(GeminiError):
    """Raised when a response body is not valid JSON or has the wrong shape."""

    def __init__(self, route: str, body: bytes, detail: str = ""):
        self.body = body
        self.detail = detail
        super().__init__(f"Failed to decode response: {detail}", route)


class ExchangeError(GeminiError):
    """Raised when the exchange answers with an error result."""

    def __init__(
        self,
        route: str,
        reason: str,
        message: str = "",
        status_code: Optional[int] = None,
        body: bytes = b"",
        error_info: Optional[ErrorInfo] = None,
    ):
        self.reason = reason
        self.message = message
        self.status_code = status_code
        self.body = body
        self.error_info = error_info or classify_reason(reason)
        super().__init__(
            f"Gemini API error [HTTP {status_code}] {reason}: {message}",
            route,
        )

    @property
    def is_recoverable(self) -> bool:
        """Check if error is recoverable."""
        return self.error_info.recoverable

    @property
    def category(self) -> ErrorCategory:
        """Get error category."""
        return self.error_info.category


class RateLimitError(ExchangeError):
    """Specific exception for rate limit errors."""
    pass


class AuthenticationError(ExchangeError):
    """Specific exception for authentication errors."""
    pass


class InsufficientFundsError(ExchangeError):
    """Specific exception for insufficient funds."""
    pass


class OrderError(ExchangeError):
    """Specific exception for order-related errors."""
    pass


_CATEGORY_EXCEPTIONS = {
    ErrorCategory.RATE_LIMIT: RateLimitError,
    ErrorCategory.AUTHENTICATION: AuthenticationError,
    ErrorCategory.INSUFFICIENT_FUNDS: InsufficientFundsError,
    ErrorCategory.ORDER: OrderError,
}


def classify_and_raise(
    route: str,
    status_code: Optional[int],
    body: Union[bytes, str],
) -> None:
    """
    Classify an error response and raise the matching exception type.

    Gemini error bodies look like
    ``{"result": "error", "reason": "InvalidNonce", "message": "..."}``.
    Bodies that are not JSON still raise an ExchangeError with reason
    ``"Unknown"`` so the caller always gets the route and the raw body.

    Args:
        route: API route the request was sent to
        status_code: HTTP status code (None if not an HTTP error)
        body: Raw response body

    Raises:
        Appropriate ExchangeError subclass
    """
    if isinstance(body, str):
        body = body.encode("utf-8")

    reason = "Unknown"
    message = ""
    try:
        data: Any = json.loads(body)
    except ValueError:
        data = None

    if isinstance(data, dict):
        reason = str(data.get("reason") or reason)
        message = str(data.get("message") or "")
    elif body:
        message = body.decode("utf-8", errors="replace")[:200]

    error_info = classify_reason(reason)
    exc_class = _CATEGORY_EXCEPTIONS.get(error_info.category, ExchangeError)

    logger.warning(
        f"Exchange error on {route}: HTTP {status_code} {reason} {message}"
    )
    raise exc_class(
        route=route,
        reason=reason,
        message=message,
        status_code=status_code,
        body=body,
        error_info=error_info,
    )

"""
Order formatting rules per trading pair.

Amounts are always sent with 6 decimals. Price precision depends on the
quote currency: fiat-quoted pairs use cents, ethbtc uses 5 decimals.

Values go through ``Decimal(str(value))`` and are rounded half-to-even.
For floats this rounds the shortest repr, not the binary value, so
``1.015`` formats as ``"1.02"`` where ``"%.2f" % 1.015`` gives ``"1.01"``.
Pass ``Decimal`` or ``str`` to control the exact digits sent.

Only finite, positive values are accepted. A value that rounds to zero
at the required precision is rejected too.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Dict, Union

from .errors import ConfigurationError

Number = Union[Decimal, float, int, str]

AMOUNT_DECIMALS = 6

PRICE_DECIMALS: Dict[str, int] = {
    "btcusd": 2,
    "ethusd": 2,
    "ethbtc": 5,
}


def _quantize(value: Number, decimals: int) -> str:
    quantum = Decimal(1).scaleb(-decimals)
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(f"Invalid numeric value: {value!r}") from None

    if not number.is_finite():
        raise ConfigurationError(f"Numeric value must be finite: {value!r}")

    rounded = number.quantize(quantum, rounding=ROUND_HALF_EVEN)
    if rounded <= 0:
        raise ConfigurationError(
            f"Numeric value must be positive at {decimals} decimals: {value!r}"
        )
    return str(rounded)


def price_decimals(symbol: str) -> int:
    """
    Get the price precision for a symbol.

    Raises:
        ConfigurationError: If orders on the symbol are not supported
    """
    try:
        return PRICE_DECIMALS[symbol.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported symbol for placing orders: {symbol!r}"
        ) from None


def format_price(symbol: str, price: Number) -> str:
    """Format a price with the precision of the symbol."""
    return _quantize(price, price_decimals(symbol))


def format_amount(amount: Number) -> str:
    """Format an order amount with 6 decimals."""
    return _quantize(amount, AMOUNT_DECIMALS)

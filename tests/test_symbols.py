"""Tests for per-pair order formatting."""

from decimal import Decimal
import pytest

from gemini_client.api.errors import ConfigurationError
from gemini_client.api.symbols import (
    format_amount,
    format_price,
    price_decimals,
)


class TestFormatPrice:
    """Tests for price formatting."""

    @pytest.mark.parametrize("symbol", ["btcusd", "ethusd", "BTCUSD"])
    def test_fiat_pairs_use_two_decimals(self, symbol):
        assert format_price(symbol, 10123.5) == "10123.50"

    def test_crypto_pair_uses_five_decimals(self):
        assert format_price("ethbtc", 0.03125) == "0.03125"
        assert format_price("ethbtc", "0.1") == "0.10000"

    def test_rounds_half_even(self):
        assert format_price("btcusd", Decimal("1.005")) == "1.00"
        assert format_price("btcusd", Decimal("1.015")) == "1.02"

    def test_float_rounds_from_shortest_repr(self):
        """1.015 is stored as 1.01499..., but its repr is what gets rounded."""
        assert "%.2f" % 1.015 == "1.01"
        assert format_price("btcusd", 1.015) == "1.02"

    def test_unsupported_pair(self):
        with pytest.raises(ConfigurationError, match="ltcusd"):
            format_price("ltcusd", 100)

    def test_invalid_number(self):
        with pytest.raises(ConfigurationError):
            format_price("btcusd", "abc")

    def test_price_decimals(self):
        assert price_decimals("ETHBTC") == 5


class TestFormatAmount:
    """Tests for amount formatting."""

    def test_six_decimals(self):
        assert format_amount(0.1) == "0.100000"
        assert format_amount(2) == "2.000000"
        assert format_amount("0.0000006") == "0.000001"

    def test_rounds_to_zero_rejected(self):
        """An amount below the smallest unit would be sent as 0.000000."""
        with pytest.raises(ConfigurationError, match="positive"):
            format_amount("0.0000004")


class TestRejectedValues:
    """Tests for values that must never reach the exchange."""

    @pytest.mark.parametrize("value", [float("nan"), "NaN", Decimal("sNaN")])
    def test_nan(self, value):
        with pytest.raises(ConfigurationError, match="finite"):
            format_price("btcusd", value)
        with pytest.raises(ConfigurationError, match="finite"):
            format_amount(value)

    @pytest.mark.parametrize("value", [float("inf"), "-Infinity"])
    def test_infinity(self, value):
        with pytest.raises(ConfigurationError, match="finite"):
            format_amount(value)

    @pytest.mark.parametrize("value", [-1, "-0.5", Decimal("-100")])
    def test_negative(self, value):
        with pytest.raises(ConfigurationError, match="positive"):
            format_price("btcusd", value)
        with pytest.raises(ConfigurationError, match="positive"):
            format_amount(value)

    @pytest.mark.parametrize("value", [0, "0", 0.0, Decimal("-0")])
    def test_zero(self, value):
        with pytest.raises(ConfigurationError, match="positive"):
            format_price("ethbtc", value)
        with pytest.raises(ConfigurationError, match="positive"):
            format_amount(value)

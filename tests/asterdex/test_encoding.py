"""
Parameter Encoding Tests.

============================================================
PURPOSE
============================================================
Tests for wire-level parameter encoding.

TEST CATEGORIES:
- Cleaning: None / empty-string removal
- Stringification: Scalar, Decimal, Enum and sequence coercion
- Query strings: Sorting and percent-encoding

============================================================
"""

import pytest
from decimal import Decimal

from asterdex.constants import HttpMethod
from asterdex.encoding import (
    build_query_string,
    clean_params,
    encode_component,
    is_empty,
    stringify_params,
    stringify_value,
)


# ============================================================
# CLEANING TESTS
# ============================================================

class TestCleanParams:
    """Tests for clean_params."""

    def test_drops_none_and_empty_string(self):
        """Test that None and "" are removed."""
        cleaned = clean_params({"a": 1, "b": None, "c": "", "d": "x"})

        assert cleaned == {"a": 1, "d": "x"}

    def test_keeps_falsy_values(self):
        """Test that 0 and False survive cleaning."""
        cleaned = clean_params({"zero": 0, "flag": False, "list": []})

        assert cleaned == {"zero": 0, "flag": False, "list": []}

    def test_none_params(self):
        """Test that missing params give an empty dict."""
        assert clean_params(None) == {}

    def test_is_empty(self):
        """Test is_empty classification."""
        assert is_empty(None)
        assert is_empty("")
        assert not is_empty(0)
        assert not is_empty(" ")


# ============================================================
# STRINGIFICATION TESTS
# ============================================================

class TestStringifyValue:
    """Tests for stringify_value."""

    def test_booleans(self):
        """Test booleans are lower-case words."""
        assert stringify_value(True) == "true"
        assert stringify_value(False) == "false"

    def test_integers(self):
        """Test integer formatting."""
        assert stringify_value(42) == "42"
        assert stringify_value(-7) == "-7"

    def test_integral_float(self):
        """Test integral floats lose the fraction."""
        assert stringify_value(1.0) == "1"
        assert stringify_value(50000.0) == "50000"

    def test_fractional_float(self):
        """Test fractional floats."""
        assert stringify_value(0.1) == "0.1"
        assert stringify_value(0.000001) == "0.000001"

    def test_float_exponent_forms(self):
        """Test very small and very large floats use exponent form."""
        assert stringify_value(1e-7) == "1e-7"
        assert stringify_value(1e21) == "1e+21"

    def test_float_special_values(self):
        """Test NaN and infinities."""
        assert stringify_value(float("nan")) == "NaN"
        assert stringify_value(float("inf")) == "Infinity"
        assert stringify_value(float("-inf")) == "-Infinity"

    def test_decimal(self):
        """Test Decimal keeps its exact digits."""
        assert stringify_value(Decimal("0.00100")) == "0.00100"
        assert stringify_value(Decimal("1E-8")) == "0.00000001"

    def test_enum(self):
        """Test Enum members use their value."""
        assert stringify_value(HttpMethod.POST) == "POST"

    def test_sequence(self):
        """Test sequences are comma-joined."""
        assert stringify_value([1, "a", True]) == "1,a,true"
        assert stringify_value((1, None, 2)) == "1,,2"

    def test_none(self):
        """Test None stringifies to null."""
        assert stringify_value(None) == "null"

    def test_stringify_params(self):
        """Test stringify_params cleans and coerces every value."""
        result = stringify_params({"quantity": 1.5, "reduceOnly": True, "skip": None})

        assert result == {"quantity": "1.5", "reduceOnly": "true"}


# ============================================================
# QUERY STRING TESTS
# ============================================================

class TestQueryString:
    """Tests for build_query_string."""

    def test_sorted_keys(self):
        """Test keys are sorted by raw string comparison."""
        query = build_query_string({"symbol": "BTCUSDT", "side": "BUY", "Z": 1})

        assert query == "Z=1&side=BUY&symbol=BTCUSDT"

    def test_drops_empty_values(self):
        """Test None and empty values never reach the query."""
        query = build_query_string({"symbol": "BTCUSDT", "limit": None, "fromId": ""})

        assert query == "symbol=BTCUSDT"

    def test_percent_encoding(self):
        """Test reserved characters are percent-encoded."""
        assert encode_component("a b&c=d") == "a%20b%26c%3Dd"
        assert encode_component("!*'()-_.~") == "!*'()-_.~"

    def test_list_values(self):
        """Test list values are joined then encoded."""
        assert build_query_string({"ids": [1, 2]}) == "ids=1%2C2"

    def test_empty(self):
        """Test empty params give an empty string."""
        assert build_query_string({}) == ""
        assert build_query_string(None) == ""

    @pytest.mark.parametrize("value,expected", [
        (True, "flag=true"),
        (0, "flag=0"),
        (Decimal("2.50"), "flag=2.50"),
    ])
    def test_value_forms(self, value, expected):
        """Test value coercion inside the query string."""
        assert build_query_string({"flag": value}) == expected

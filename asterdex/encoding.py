"""
AsterDEX Client - Parameter Encoding.

============================================================
PURPOSE
============================================================
Canonical string forms shared by signing and transport.

- Value coercion follows JavaScript String() semantics, which is
  what the exchange recomputes server-side (true -> "true", 1.0 -> "1")
- Query strings are key-sorted and percent-encoded the way
  encodeURIComponent does it, so the signed string equals the sent one

============================================================
"""

import math
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote


# Characters encodeURIComponent leaves untouched besides alphanumerics and "-_.~"
_URI_COMPONENT_SAFE = "!*'()"


def is_empty(value: Any) -> bool:
    """None and empty string are dropped from every parameter set."""
    return value is None or (isinstance(value, str) and value == "")


def clean_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Copy params without None/empty-string entries, preserving order."""
    if not params:
        return {}
    return {key: value for key, value in params.items() if not is_empty(value)}


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))

    text = repr(value)
    if "e" not in text:
        return text

    mantissa, exponent = text.split("e")
    exp = int(exponent)
    if -7 < exp < 21:
        return format(Decimal(text), "f")
    sign = "-" if exp < 0 else "+"
    return f"{mantissa}e{sign}{abs(exp)}"


def stringify_value(value: Any) -> str:
    """
    Coerce a parameter value to its wire string.

    Args:
        value: Any scalar, Decimal, Enum or sequence

    Returns:
        String identical to JavaScript String(value)
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return stringify_value(value.value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (list, tuple)):
        return ",".join("" if item is None else stringify_value(item) for item in value)
    return str(value)


def encode_component(text: str) -> str:
    """Percent-encode like encodeURIComponent."""
    return quote(text, safe=_URI_COMPONENT_SAFE)


def build_query_string(params: Optional[Mapping[str, Any]]) -> str:
    """
    Canonical query string.

    Keys sorted by raw string comparison, empty entries dropped,
    keys and values percent-encoded, pairs joined by '&'.
    """
    cleaned = clean_params(params)
    return "&".join(
        f"{encode_component(key)}={encode_component(stringify_value(cleaned[key]))}"
        for key in sorted(cleaned)
    )


def stringify_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Cleaned params with every value coerced to its wire string."""
    return {key: stringify_value(value) for key, value in clean_params(params).items()}

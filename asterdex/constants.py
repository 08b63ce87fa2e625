"""
AsterDEX Client - Constants.

============================================================
PURPOSE
============================================================
Static values shared by the REST and stream layers:
- Base URLs and API path prefixes
- Default timeouts, windows and limits
- Authentication tiers and signing schemes
- Exchange error-code table

============================================================
"""

from enum import Enum
from typing import Dict, Tuple


# ============================================================
# BASE URLS
# ============================================================

DEFAULT_SPOT_URL = "https://sapi.asterdex.com"
DEFAULT_FUTURES_URL = "https://fapi.asterdex.com"
DEFAULT_WEBSOCKET_URL = "wss://fstream.asterdex.com"

SPOT_API_V1 = "/api/v1"
FUTURES_API_V1 = "/fapi/v1"
FUTURES_API_V3 = "/fapi/v3"

USER_AGENT = "asterdex-python/1.0.0"


# ============================================================
# DEFAULTS
# ============================================================

DEFAULT_TIMEOUT_MS = 60000
DEFAULT_RECV_WINDOW = 5000
MAX_RECV_WINDOW = 60000
DEFAULT_WEB3_RECV_WINDOW = 50000

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 1000
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_MAX_RETRY_DELAY_MS = 30000

MAX_REQUESTS_PER_MINUTE = 1200
RATE_LIMIT_WINDOW_MS = 60000

MAX_BATCH_ORDERS = 5


# ============================================================
# WEBSOCKET
# ============================================================

WS_MAX_SUBSCRIPTIONS = 1024
WS_PING_INTERVAL_MS = 180000
WS_PONG_TIMEOUT_MS = 600000
WS_RECONNECT_INTERVAL_MS = 5000
WS_MAX_RECONNECT_ATTEMPTS = 5
WS_REQUEST_TIMEOUT_MS = 10000

WS_CLOSE_NORMAL = 1000
WS_CLOSE_ABNORMAL = 1006
WS_CLOSE_POLICY_VIOLATION = 1008


# ============================================================
# ENUMS
# ============================================================

class Environment(Enum):
    """Deployment environment."""

    MAINNET = "mainnet"
    TESTNET = "testnet"


class HttpMethod(Enum):
    """Supported HTTP verbs."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class AuthType(Enum):
    """Authentication tier declared by each endpoint."""

    NONE = "NONE"
    MARKET_DATA = "MARKET_DATA"
    USER_STREAM = "USER_STREAM"
    TRADE = "TRADE"
    USER_DATA = "USER_DATA"
    SIGNED = "SIGNED"

    @property
    def requires_signature(self) -> bool:
        """Whether the tier carries a signed parameter set."""
        return self in (AuthType.TRADE, AuthType.USER_DATA, AuthType.SIGNED)

    @property
    def requires_api_key(self) -> bool:
        """Whether the tier sends the API key header."""
        return self is not AuthType.NONE


class SigningScheme(Enum):
    """Which signer produces the signed parameter set."""

    HMAC = "HMAC"
    WEB3 = "WEB3"


# ============================================================
# EXCHANGE ERROR CODES
# ============================================================

# code -> (name, category value); category values match errors.ErrorCategory
ASTER_ERROR_CODES: Dict[int, Tuple[str, str]] = {
    -1000: ("UNKNOWN", "EXCHANGE_ERROR"),
    -1001: ("DISCONNECTED", "EXCHANGE_ERROR"),
    -1002: ("UNAUTHORIZED", "AUTHENTICATION"),
    -1003: ("TOO_MANY_REQUESTS", "RATE_LIMIT"),
    -1004: ("DUPLICATE_IP", "INVALID_REQUEST"),
    -1005: ("NO_SUCH_IP", "INVALID_REQUEST"),
    -1006: ("UNEXPECTED_RESP", "EXCHANGE_ERROR"),
    -1007: ("TIMEOUT", "TIMEOUT"),
    -1014: ("UNKNOWN_ORDER_COMPOSITION", "INVALID_ORDER"),
    -1015: ("TOO_MANY_ORDERS", "RATE_LIMIT"),
    -1016: ("SERVICE_SHUTTING_DOWN", "EXCHANGE_ERROR"),
    -1020: ("UNSUPPORTED_OPERATION", "INVALID_REQUEST"),
    -1021: ("INVALID_TIMESTAMP", "AUTHENTICATION"),
    -1022: ("INVALID_SIGNATURE", "AUTHENTICATION"),
    -1023: ("START_TIME_GREATER_THAN_END_TIME", "INVALID_REQUEST"),
    -1100: ("ILLEGAL_CHARS", "INVALID_REQUEST"),
    -1101: ("TOO_MANY_PARAMETERS", "INVALID_REQUEST"),
    -1102: ("MANDATORY_PARAM_EMPTY_OR_MALFORMED", "INVALID_REQUEST"),
    -1103: ("UNKNOWN_PARAM", "INVALID_REQUEST"),
    -1104: ("UNREAD_PARAMETERS", "INVALID_REQUEST"),
    -1105: ("PARAM_EMPTY", "INVALID_REQUEST"),
    -1106: ("PARAM_NOT_REQUIRED", "INVALID_REQUEST"),
    -1111: ("BAD_PRECISION", "INVALID_ORDER"),
    -1112: ("NO_DEPTH", "INVALID_ORDER"),
    -1114: ("TIF_NOT_REQUIRED", "INVALID_ORDER"),
    -1115: ("INVALID_TIF", "INVALID_ORDER"),
    -1116: ("INVALID_ORDER_TYPE", "INVALID_ORDER"),
    -1117: ("INVALID_SIDE", "INVALID_ORDER"),
    -1118: ("EMPTY_NEW_CL_ORD_ID", "INVALID_ORDER"),
    -1119: ("EMPTY_ORG_CL_ORD_ID", "INVALID_ORDER"),
    -1120: ("BAD_INTERVAL", "INVALID_REQUEST"),
    -1121: ("BAD_SYMBOL", "INVALID_REQUEST"),
    -1125: ("INVALID_LISTEN_KEY", "AUTHENTICATION"),
    -1127: ("MORE_THAN_XX_HOURS", "INVALID_REQUEST"),
    -1128: ("OPTIONAL_PARAMS_BAD_COMBO", "INVALID_REQUEST"),
    -1130: ("INVALID_PARAMETER", "INVALID_REQUEST"),
    -1136: ("INVALID_NEW_ORDER_RESP_TYPE", "INVALID_REQUEST"),
    -2010: ("NEW_ORDER_REJECTED", "INVALID_ORDER"),
    -2011: ("CANCEL_REJECTED", "ORDER_NOT_FOUND"),
    -2013: ("NO_SUCH_ORDER", "ORDER_NOT_FOUND"),
    -2014: ("BAD_API_KEY_FMT", "AUTHENTICATION"),
    -2015: ("REJECTED_MBX_KEY", "AUTHENTICATION"),
    -2016: ("NO_TRADING_WINDOW", "INVALID_ORDER"),
    -2018: ("BALANCE_NOT_SUFFICIENT", "INSUFFICIENT_FUNDS"),
    -2020: ("UNABLE_TO_FILL", "INVALID_ORDER"),
    -2021: ("ORDER_WOULD_IMMEDIATELY_TRIGGER", "INVALID_ORDER"),
    -2022: ("REDUCE_ONLY_REJECT", "INVALID_ORDER"),
    -2024: ("POSITION_NOT_SUFFICIENT", "INSUFFICIENT_FUNDS"),
    -2025: ("MAX_OPEN_ORDER_EXCEEDED", "INVALID_ORDER"),
    -2026: ("REDUCE_ONLY_ORDER_TYPE_NOT_SUPPORTED", "INVALID_ORDER"),
    -4000: ("INVALID_ORDER_STATUS", "INVALID_ORDER"),
    -4001: ("PRICE_LESS_THAN_ZERO", "INVALID_ORDER"),
    -4002: ("PRICE_GREATER_THAN_MAX_PRICE", "INVALID_ORDER"),
    -4003: ("QTY_LESS_THAN_ZERO", "INVALID_ORDER"),
    -4004: ("QTY_LESS_THAN_MIN_QTY", "INVALID_ORDER"),
    -4005: ("QTY_GREATER_THAN_MAX_QTY", "INVALID_ORDER"),
    -4164: ("MIN_NOTIONAL", "INVALID_ORDER"),
    -4165: ("INVALID_TIME_INTERVAL", "INVALID_REQUEST"),
}

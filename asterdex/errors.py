"""
AsterDEX Client - Error Taxonomy.

============================================================
PURPOSE
============================================================
Typed errors for every failure the client can surface:
- Unified exception hierarchy rooted at AsterError
- Exchange error-code classification
- Retry eligibility for the transport

============================================================
ERROR KINDS
============================================================
1. ConfigError        - Bad static configuration
2. AuthError          - Missing/invalid credentials, signing failure
3. ValidationError    - Missing/malformed caller parameters
4. NetworkError       - Transport-level failure (wraps cause)
5. ApiResponseError   - Non-2xx response from the exchange
6. RateLimitError     - 429/418 responses, carries retry-after
7. WebSocketError     - Stream-level failure, optional close code

============================================================
"""

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from asterdex.constants import ASTER_ERROR_CODES, WS_CLOSE_POLICY_VIOLATION


logger = logging.getLogger(__name__)


# ============================================================
# CLASSIFICATION
# ============================================================

class ErrorCategory(Enum):
    """Standardized error categories."""

    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    RATE_LIMIT = "RATE_LIMIT"
    AUTHENTICATION = "AUTHENTICATION"
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_ORDER = "INVALID_ORDER"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    EXCHANGE_ERROR = "EXCHANGE_ERROR"
    UNKNOWN = "UNKNOWN"


class RetryEligibility(Enum):
    """Whether error is eligible for retry."""

    RETRY = "RETRY"           # Safe to retry
    NO_RETRY = "NO_RETRY"     # Should not retry
    BACKOFF = "BACKOFF"       # Retry with exponential backoff


def classify_exchange_code(
    code: Optional[int],
    status_code: Optional[int] = None,
) -> ErrorCategory:
    """
    Map an exchange error code (or HTTP status) to a category.

    Args:
        code: Exchange error code from the response body
        status_code: HTTP status code

    Returns:
        ErrorCategory for the failure
    """
    if code is not None and code in ASTER_ERROR_CODES:
        return ErrorCategory(ASTER_ERROR_CODES[code][1])
    if status_code in (429, 418):
        return ErrorCategory.RATE_LIMIT
    if status_code in (401, 403):
        return ErrorCategory.AUTHENTICATION
    if status_code is not None and status_code >= 500:
        return ErrorCategory.EXCHANGE_ERROR
    if status_code is not None and 400 <= status_code < 500:
        return ErrorCategory.INVALID_REQUEST
    return ErrorCategory.UNKNOWN


# ============================================================
# EXCEPTIONS
# ============================================================

class AsterError(Exception):
    """Base exception for all client errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.timestamp = datetime.now(timezone.utc)

    @property
    def retry_eligibility(self) -> RetryEligibility:
        """Retry eligibility of this error."""
        return RetryEligibility.NO_RETRY

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "retry_eligibility": self.retry_eligibility.value,
        }

    def __str__(self) -> str:
        return self.message


class ConfigError(AsterError):
    """Invalid static configuration."""
    pass


class AuthError(AsterError):
    """Missing or invalid credentials, or a signing failure."""
    pass


class ValidationError(AsterError):
    """Missing or malformed caller parameter."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["field"] = self.field
        return result


class NetworkError(AsterError):
    """Transport-level failure."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    @property
    def retry_eligibility(self) -> RetryEligibility:
        return RetryEligibility.RETRY

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["cause"] = repr(self.cause) if self.cause else None
        return result


class RequestTimeoutError(NetworkError):
    """Request did not complete within its timeout."""

    def __init__(
        self,
        timeout_ms: int,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(f"Request timed out after {timeout_ms}ms", cause)
        self.timeout_ms = timeout_ms


class ApiResponseError(AsterError):
    """Non-2xx response from the exchange."""

    def __init__(
        self,
        message: str,
        status_code: int,
        code: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.headers: Dict[str, str] = dict(headers or {})
        self.body = body
        self.category = classify_exchange_code(code, status_code)

    @property
    def is_client_error(self) -> bool:
        """4xx response."""
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        """5xx response."""
        return self.status_code >= 500

    @property
    def retry_eligibility(self) -> RetryEligibility:
        if self.is_server_error:
            return RetryEligibility.RETRY
        return RetryEligibility.NO_RETRY

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            "status_code": self.status_code,
            "code": self.code,
            "category": self.category.value,
        })
        return result


class RateLimitError(ApiResponseError):
    """429/418 response from the exchange."""

    def __init__(
        self,
        message: str,
        status_code: int = 429,
        code: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, status_code, code, headers, body)
        # Seconds, from the Retry-After header
        self.retry_after = retry_after

    @property
    def retry_eligibility(self) -> RetryEligibility:
        return RetryEligibility.BACKOFF

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["retry_after"] = self.retry_after
        return result


class WebSocketError(AsterError):
    """Stream-level failure."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code

    @property
    def retry_eligibility(self) -> RetryEligibility:
        if self.code == WS_CLOSE_POLICY_VIOLATION:
            return RetryEligibility.NO_RETRY
        return RetryEligibility.RETRY

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["code"] = self.code
        return result


# ============================================================
# FACTORIES
# ============================================================

def _parse_retry_after(headers: Mapping[str, str]) -> Optional[float]:
    """Read Retry-After (seconds) from response headers."""
    for key, value in headers.items():
        if key.lower() == "retry-after":
            try:
                return float(value)
            except (TypeError, ValueError):
                logger.debug(f"Ignoring non-numeric Retry-After: {value!r}")
                return None
    return None


def error_from_http_response(
    status_code: int,
    body_text: Optional[str],
    headers: Optional[Mapping[str, str]] = None,
    status_text: str = "",
) -> ApiResponseError:
    """
    Build a typed error from a non-2xx response.

    Structured bodies of the form {"code": int, "msg": str} produce the
    message "<msg> (Code: <code>)".

    Args:
        status_code: HTTP status code
        body_text: Raw response body
        headers: Response headers
        status_text: HTTP reason phrase

    Returns:
        ApiResponseError, or RateLimitError for 429/418
    """
    headers = dict(headers or {})
    body: Any = body_text
    code: Optional[int] = None
    message = f"HTTP {status_code}" + (f": {status_text}" if status_text else "")

    if body_text:
        try:
            body = json.loads(body_text)
        except ValueError:
            body = body_text

    if isinstance(body, dict):
        raw_code = body.get("code")
        raw_msg = body.get("msg")
        if isinstance(raw_code, int) and not isinstance(raw_code, bool):
            code = raw_code
        if isinstance(raw_msg, str):
            message = f"{raw_msg} (Code: {code})" if code is not None else raw_msg

    if status_code in (429, 418):
        return RateLimitError(
            message,
            status_code=status_code,
            code=code,
            headers=headers,
            body=body,
            retry_after=_parse_retry_after(headers),
        )

    return ApiResponseError(message, status_code, code, headers, body)


# ============================================================
# RETRY HELPERS
# ============================================================

def is_retryable_error(error: BaseException) -> bool:
    """
    Check whether the transport may retry after this error.

    Rate limits, 5xx responses and network failures are retryable.
    Stream errors are retryable unless closed for policy violation.
    """
    if isinstance(error, AsterError):
        return error.retry_eligibility in (RetryEligibility.RETRY, RetryEligibility.BACKOFF)
    return False


def get_retry_delay_ms(error: BaseException, default_ms: float) -> float:
    """Retry delay honouring Retry-After on rate-limit errors."""
    if isinstance(error, RateLimitError) and error.retry_after is not None:
        return error.retry_after * 1000
    return default_ms


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "ErrorCategory",
    "RetryEligibility",
    "classify_exchange_code",
    "AsterError",
    "ConfigError",
    "AuthError",
    "ValidationError",
    "NetworkError",
    "RequestTimeoutError",
    "ApiResponseError",
    "RateLimitError",
    "WebSocketError",
    "error_from_http_response",
    "is_retryable_error",
    "get_retry_delay_ms",
]

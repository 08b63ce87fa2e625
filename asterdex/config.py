"""
AsterDEX Client - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the client, consumed at construction time.

- Credentials (HMAC and Web3)
- Base URLs per service
- Timeout, recv window, rate limiting, retry tuning
- Stream heartbeat and reconnect tuning

Values can be read from ASTERDEX_* environment variables, optionally
loaded from a .env file.

============================================================
"""

import os
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Optional

from dotenv import load_dotenv

from asterdex.constants import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_FUTURES_URL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY_MS,
    DEFAULT_RECV_WINDOW,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_SPOT_URL,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_WEBSOCKET_URL,
    MAX_RECV_WINDOW,
    MAX_REQUESTS_PER_MINUTE,
    RATE_LIMIT_WINDOW_MS,
    WS_MAX_RECONNECT_ATTEMPTS,
    WS_MAX_SUBSCRIPTIONS,
    WS_PING_INTERVAL_MS,
    WS_PONG_TIMEOUT_MS,
    WS_RECONNECT_INTERVAL_MS,
    WS_REQUEST_TIMEOUT_MS,
    Environment,
)
from asterdex.errors import ConfigError


# ============================================================
# RETRY CONFIGURATION
# ============================================================

@dataclass
class RetryConfig:
    """
    Retry configuration for the transport.

    Delay for attempt n is retry_delay_ms * backoff_multiplier ** n,
    capped at max_delay_ms.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    """Maximum number of retry attempts."""

    retry_delay_ms: float = DEFAULT_RETRY_DELAY_MS
    """Delay before the first retry."""

    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    """Exponential backoff multiplier."""

    max_delay_ms: float = DEFAULT_MAX_RETRY_DELAY_MS
    """Maximum delay between retries."""

    def delay_for(self, attempt: int) -> float:
        """Backoff delay in ms for a zero-based retry attempt."""
        return min(self.retry_delay_ms * (self.backoff_multiplier ** attempt), self.max_delay_ms)


# ============================================================
# RATE LIMIT CONFIGURATION
# ============================================================

@dataclass
class RateLimitConfig:
    """Sliding-window rate limit shared by one client instance."""

    max_requests: int = MAX_REQUESTS_PER_MINUTE
    """Maximum requests admitted per window."""

    window_ms: int = RATE_LIMIT_WINDOW_MS
    """Window length."""


# ============================================================
# WEBSOCKET CONFIGURATION
# ============================================================

@dataclass
class WebSocketConfig:
    """Stream connection configuration."""

    # Reconnection
    reconnect: bool = True
    reconnect_interval_ms: int = WS_RECONNECT_INTERVAL_MS
    max_reconnect_attempts: int = WS_MAX_RECONNECT_ATTEMPTS

    # Heartbeat
    ping_interval_ms: int = WS_PING_INTERVAL_MS
    pong_timeout_ms: int = WS_PONG_TIMEOUT_MS

    # Request correlation
    request_timeout_ms: int = WS_REQUEST_TIMEOUT_MS
    max_subscriptions: int = WS_MAX_SUBSCRIPTIONS


# ============================================================
# CLIENT CONFIGURATION
# ============================================================

@dataclass
class ClientConfig:
    """
    Complete client configuration.

    Both credential sets are optional; calls that need a missing set
    fail with AuthError at call time.
    """

    # HMAC credentials
    api_key: Optional[str] = None
    api_secret: Optional[str] = None

    # Web3 credentials
    user_address: Optional[str] = None
    signer_address: Optional[str] = None
    private_key: Optional[str] = None

    environment: str = Environment.MAINNET.value

    # Endpoints
    spot_url: str = DEFAULT_SPOT_URL
    futures_url: str = DEFAULT_FUTURES_URL
    websocket_url: str = DEFAULT_WEBSOCKET_URL

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    """Per-request transport timeout."""

    recv_window: int = DEFAULT_RECV_WINDOW
    """Validity window sent with HMAC-signed requests."""

    enable_rate_limiting: bool = True
    """Whether calls pass through the shared rate limiter."""

    retry: RetryConfig = field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    websocket: WebSocketConfig = field(default_factory=WebSocketConfig)

    def __post_init__(self) -> None:
        self.validate()

    # --------------------------------------------------------
    # VALIDATION
    # --------------------------------------------------------

    def validate(self) -> None:
        """
        Validate configuration.

        Raises:
            ConfigError: On the first invalid value
        """
        valid_environments = {e.value for e in Environment}
        if self.environment not in valid_environments:
            raise ConfigError(
                f"Invalid environment '{self.environment}', "
                f"expected one of {sorted(valid_environments)}"
            )

        if self.timeout_ms <= 0:
            raise ConfigError("Timeout must be greater than 0")

        if not 0 < self.recv_window <= MAX_RECV_WINDOW:
            raise ConfigError(f"recvWindow must be between 1 and {MAX_RECV_WINDOW}")

        if self.retry.max_retries < 0:
            raise ConfigError("max_retries must not be negative")
        if self.retry.retry_delay_ms < 0:
            raise ConfigError("retry_delay_ms must not be negative")
        if self.retry.backoff_multiplier < 1:
            raise ConfigError("backoff_multiplier must be at least 1")

        if self.rate_limit.max_requests <= 0 or self.rate_limit.window_ms <= 0:
            raise ConfigError("Rate limit window and max_requests must be positive")

        for name in ("spot_url", "futures_url"):
            value = getattr(self, name)
            if not value.startswith(("http://", "https://")):
                raise ConfigError(f"{name} must be an http(s) URL: {value}")
        if not self.websocket_url.startswith(("ws://", "wss://")):
            raise ConfigError(f"websocket_url must be a ws(s) URL: {self.websocket_url}")

        if bool(self.api_key) != bool(self.api_secret):
            raise ConfigError("api_key and api_secret must be provided together")

    # --------------------------------------------------------
    # ACCESSORS
    # --------------------------------------------------------

    @property
    def has_hmac_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret)

    @property
    def has_web3_credentials(self) -> bool:
        return bool(self.user_address and self.signer_address and self.private_key)

    def with_updates(self, **changes: Any) -> "ClientConfig":
        """Return a validated copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Non-secret view of the configuration."""
        return {
            "environment": self.environment,
            "spot_url": self.spot_url,
            "futures_url": self.futures_url,
            "websocket_url": self.websocket_url,
            "timeout_ms": self.timeout_ms,
            "recv_window": self.recv_window,
            "enable_rate_limiting": self.enable_rate_limiting,
            "has_hmac_credentials": self.has_hmac_credentials,
            "has_web3_credentials": self.has_web3_credentials,
        }

    # --------------------------------------------------------
    # ENVIRONMENT
    # --------------------------------------------------------

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **overrides: Any) -> "ClientConfig":
        """
        Build configuration from ASTERDEX_* environment variables.

        Args:
            env_file: Optional .env file to load first (existing
                variables are not overridden)
            **overrides: Explicit values taking precedence over the environment

        Raises:
            ConfigError: If a numeric/boolean variable cannot be parsed
        """
        load_dotenv(env_file)

        retry = RetryConfig(
            max_retries=_env_value("ASTERDEX_MAX_RETRIES", int, DEFAULT_MAX_RETRIES),
            retry_delay_ms=_env_value("ASTERDEX_RETRY_DELAY", float, DEFAULT_RETRY_DELAY_MS),
            backoff_multiplier=_env_value(
                "ASTERDEX_BACKOFF_MULTIPLIER", float, DEFAULT_BACKOFF_MULTIPLIER
            ),
        )

        values: Dict[str, Any] = {
            "api_key": os.getenv("ASTERDEX_API_KEY") or None,
            "api_secret": os.getenv("ASTERDEX_API_SECRET") or None,
            "user_address": os.getenv("ASTERDEX_USER_ADDRESS") or None,
            "signer_address": os.getenv("ASTERDEX_SIGNER_ADDRESS") or None,
            "private_key": os.getenv("ASTERDEX_PRIVATE_KEY") or None,
            "environment": os.getenv("ASTERDEX_ENVIRONMENT", Environment.MAINNET.value),
            "spot_url": os.getenv("ASTERDEX_SPOT_URL", DEFAULT_SPOT_URL),
            "futures_url": os.getenv("ASTERDEX_FUTURES_URL", DEFAULT_FUTURES_URL),
            "websocket_url": os.getenv("ASTERDEX_WEBSOCKET_URL", DEFAULT_WEBSOCKET_URL),
            "timeout_ms": _env_value("ASTERDEX_TIMEOUT", int, DEFAULT_TIMEOUT_MS),
            "recv_window": _env_value("ASTERDEX_RECV_WINDOW", int, DEFAULT_RECV_WINDOW),
            "enable_rate_limiting": _env_value("ASTERDEX_ENABLE_RATE_LIMITING", _parse_bool, True),
            "retry": retry,
        }
        values.update(overrides)
        return cls(**values)


# ============================================================
# HELPERS
# ============================================================

def _parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(raw)


def _env_value(name: str, parse: Callable[[str], Any], default: Any) -> Any:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return parse(raw)
    except ValueError:
        raise ConfigError(f"Invalid value for {name}: {raw!r}")

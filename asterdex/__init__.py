"""
AsterDEX Client.

============================================================
PURPOSE
============================================================
Async Python client for the AsterDEX spot and futures APIs.

COMPONENTS:
- AsterDEX: Facade wiring auth, rate limiting and transports
- SpotClient / FuturesClient: REST routing tables
- StreamConnection: WebSocket state machine with heartbeat,
  reconnect and subscription replay
- AuthManager: HMAC and Web3 request signing

ERROR HANDLING:
- AsterError: Base of every library error
- ApiResponseError / RateLimitError: Non-2xx responses
- NetworkError / RequestTimeoutError: Transport failures
- WebSocketError: Stream failures

============================================================
"""

# Facade
from .client import AsterDEX

# Configuration
from .config import ClientConfig, RateLimitConfig, RetryConfig, WebSocketConfig
from .constants import AuthType, Environment, HttpMethod, SigningScheme

# Auth
from .auth import AuthManager, HmacSigner, NonceGenerator, Web3SignatureEngine

# Transport
from .transport import HttpRequest, HttpResponse, HttpTransport, RateLimiter

# REST
from .rest import (
    Endpoint,
    FuturesClient,
    FuturesEndpoints,
    FuturesOrderRequest,
    OrderSide,
    OrderType,
    PositionSide,
    SpotClient,
    SpotEndpoints,
    SpotOrderRequest,
    TimeInForce,
    TransferRequest,
)

# Streams
from .streams import (
    ConnectionState,
    EventKind,
    EventRouter,
    StreamConnection,
    StreamEvent,
    StreamEventHandlers,
    StreamNames,
)

# Errors
from .errors import (
    ApiResponseError,
    AsterError,
    AuthError,
    ConfigError,
    ErrorCategory,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    ValidationError,
    WebSocketError,
    is_retryable_error,
)

# Time
from .clock import ManualScheduler, MockClock, SystemClock


__version__ = "1.0.0"

__all__ = [
    "AsterDEX",
    "ClientConfig",
    "RateLimitConfig",
    "RetryConfig",
    "WebSocketConfig",
    "AuthType",
    "Environment",
    "HttpMethod",
    "SigningScheme",
    "AuthManager",
    "HmacSigner",
    "NonceGenerator",
    "Web3SignatureEngine",
    "HttpRequest",
    "HttpResponse",
    "HttpTransport",
    "RateLimiter",
    "Endpoint",
    "FuturesClient",
    "FuturesEndpoints",
    "FuturesOrderRequest",
    "OrderSide",
    "OrderType",
    "PositionSide",
    "SpotClient",
    "SpotEndpoints",
    "SpotOrderRequest",
    "TimeInForce",
    "TransferRequest",
    "ConnectionState",
    "EventKind",
    "EventRouter",
    "StreamConnection",
    "StreamEvent",
    "StreamEventHandlers",
    "StreamNames",
    "ApiResponseError",
    "AsterError",
    "AuthError",
    "ConfigError",
    "ErrorCategory",
    "NetworkError",
    "RateLimitError",
    "RequestTimeoutError",
    "ValidationError",
    "WebSocketError",
    "is_retryable_error",
    "ManualScheduler",
    "MockClock",
    "SystemClock",
]

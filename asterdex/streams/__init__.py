"""
AsterDEX Client - Streams.

WebSocket connection state machine, event routing and stream names.
"""

from asterdex.streams.connection import ConnectionState, StreamConnection
from asterdex.streams.names import StreamNames
from asterdex.streams.router import (
    EVENT_TYPE_MAP,
    EventKind,
    EventRouter,
    StreamEvent,
    StreamEventHandlers,
    classify,
)
from asterdex.streams.socket import (
    AiohttpSocket,
    SocketEvent,
    SocketEventKind,
    StreamSocket,
    aiohttp_socket_factory,
)


__all__ = [
    "ConnectionState",
    "StreamConnection",
    "StreamNames",
    "EVENT_TYPE_MAP",
    "EventKind",
    "EventRouter",
    "StreamEvent",
    "StreamEventHandlers",
    "classify",
    "AiohttpSocket",
    "SocketEvent",
    "SocketEventKind",
    "StreamSocket",
    "aiohttp_socket_factory",
]

"""
AsterDEX Client - Stream Socket.

============================================================
PURPOSE
============================================================
The socket contract the stream connection depends on, and its
aiohttp implementation.

A socket is a pull interface: receive() returns the next
SocketEvent (message, pong, close or error). Pings from the server
are answered inside the socket and never surface.

============================================================
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

import aiohttp

from asterdex.constants import WS_CLOSE_ABNORMAL, WS_CLOSE_NORMAL


logger = logging.getLogger(__name__)


# ============================================================
# EVENTS
# ============================================================

class SocketEventKind(Enum):
    MESSAGE = "MESSAGE"
    PONG = "PONG"
    CLOSE = "CLOSE"
    ERROR = "ERROR"


@dataclass
class SocketEvent:
    """One inbound socket event."""

    kind: SocketEventKind
    data: Union[str, bytes, None] = None
    code: Optional[int] = None
    reason: str = ""
    error: Optional[BaseException] = None

    @classmethod
    def message(cls, data: Union[str, bytes]) -> "SocketEvent":
        return cls(SocketEventKind.MESSAGE, data=data)

    @classmethod
    def pong(cls) -> "SocketEvent":
        return cls(SocketEventKind.PONG)

    @classmethod
    def close(cls, code: Optional[int] = None, reason: str = "") -> "SocketEvent":
        return cls(SocketEventKind.CLOSE, code=code, reason=reason)

    @classmethod
    def failure(cls, error: BaseException) -> "SocketEvent":
        return cls(SocketEventKind.ERROR, error=error)


# ============================================================
# CONTRACT
# ============================================================

class StreamSocket(ABC):
    """An open WebSocket."""

    @abstractmethod
    async def send(self, text: str) -> None:
        """Send a text frame."""
        pass

    @abstractmethod
    async def ping(self) -> None:
        """Send a ping control frame."""
        pass

    @abstractmethod
    async def close(self, code: int = WS_CLOSE_NORMAL, reason: str = "") -> None:
        """Close with a close handshake."""
        pass

    @abstractmethod
    async def terminate(self) -> None:
        """Drop the connection without a close handshake."""
        pass

    @abstractmethod
    async def receive(self) -> SocketEvent:
        """Wait for the next inbound event."""
        pass


SocketFactory = Callable[[str], Awaitable[StreamSocket]]


# ============================================================
# AIOHTTP IMPLEMENTATION
# ============================================================

class AiohttpSocket(StreamSocket):
    """
    StreamSocket over aiohttp's client WebSocket.

    Automatic ping handling is disabled so pongs reach the connection's
    heartbeat; server pings are answered here.
    """

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize socket.

        Args:
            ws: Connected aiohttp WebSocket
            session: Session owned by this socket, closed with it
        """
        self._ws = ws
        self._session = session

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def send(self, text: str) -> None:
        await self._ws.send_str(text)

    async def ping(self) -> None:
        await self._ws.ping()

    async def close(self, code: int = WS_CLOSE_NORMAL, reason: str = "") -> None:
        try:
            await self._ws.close(code=code, message=reason.encode("utf-8"))
        finally:
            await self._close_session()

    async def terminate(self) -> None:
        # Closing the owning session drops the transport without a handshake
        await self._close_session()

    async def _close_session(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def receive(self) -> SocketEvent:
        while True:
            msg = await self._ws.receive()

            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                return SocketEvent.message(msg.data)

            if msg.type == aiohttp.WSMsgType.PING:
                await self._ws.pong(msg.data)
                continue

            if msg.type == aiohttp.WSMsgType.PONG:
                return SocketEvent.pong()

            if msg.type == aiohttp.WSMsgType.ERROR:
                return SocketEvent.failure(self._ws.exception() or msg.data)

            if msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                code = self._ws.close_code or WS_CLOSE_ABNORMAL
                reason = msg.extra if isinstance(msg.extra, str) else ""
                return SocketEvent.close(code, reason)

            logger.debug(f"Ignoring WebSocket frame of type {msg.type}")


async def aiohttp_socket_factory(url: str) -> StreamSocket:
    """
    Open url with a dedicated aiohttp session.

    Raises:
        aiohttp.ClientError: If the handshake fails
    """
    session = aiohttp.ClientSession()
    try:
        ws = await session.ws_connect(url, autoping=False, heartbeat=None)
    except BaseException:
        await session.close()
        raise
    return AiohttpSocket(ws, session=session)


__all__ = [
    "SocketEventKind",
    "SocketEvent",
    "StreamSocket",
    "SocketFactory",
    "AiohttpSocket",
    "aiohttp_socket_factory",
]

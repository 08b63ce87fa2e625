"""
AsterDEX Client - Stream Connection.

============================================================
PURPOSE
============================================================
One WebSocket connection as an explicit state machine.

    CONNECTING -> OPEN -> CLOSING -> CLOSED
    CLOSED -> CONNECTING            (automatic reconnect)

FEATURES:
- Id-correlated SUBSCRIBE / UNSUBSCRIBE / LIST_SUBSCRIPTIONS /
  SET_PROPERTY / GET_PROPERTY requests with a per-request timeout
- Heartbeat: ping on an interval, terminate when no pong arrives
  before the pong deadline
- Reconnect after abnormal close with a fixed interval and an attempt
  ceiling; the subscription set is replayed after reconnecting
- Data frames routed through the EventRouter from a dispatcher task,
  so callbacks may await requests on the same connection while the
  reader keeps resolving replies and pongs

All timers (ping, pong deadline, reconnect, request timeouts) go
through an injected scheduler and are cancelled together whenever the
connection leaves OPEN.

============================================================
USAGE
============================================================
```python
conn = StreamConnection(
    "wss://fstream.asterdex.com/ws",
    handlers=StreamEventHandlers(on_trade=print),
)
await conn.connect()
await conn.subscribe(["btcusdt@trade"])
```

============================================================
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from asterdex.clock import LoopScheduler, SchedulerProtocol, TimerHandle
from asterdex.config import WebSocketConfig
from asterdex.constants import WS_CLOSE_ABNORMAL, WS_CLOSE_NORMAL
from asterdex.encoding import stringify_value
from asterdex.errors import AsterError, NetworkError, WebSocketError
from asterdex.streams.router import (
    Callback,
    EventKind,
    EventRouter,
    StreamEventHandlers,
    invoke_callback,
)
from asterdex.streams.socket import (
    SocketEventKind,
    SocketFactory,
    StreamSocket,
    aiohttp_socket_factory,
)


logger = logging.getLogger(__name__)


# ============================================================
# CONNECTION STATE
# ============================================================

class ConnectionState(Enum):
    """Stream connection states."""

    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


def _as_list(streams: Union[str, Iterable[str]]) -> List[str]:
    if isinstance(streams, str):
        return [streams]
    return list(streams)


def _is_request_id(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ============================================================
# STREAM CONNECTION
# ============================================================

class StreamConnection:
    """
    WebSocket connection with heartbeat, reconnect and replay.

    Events from a superseded socket are discarded: each successful
    open bumps a generation counter and every socket-driven callback
    checks it.
    """

    def __init__(
        self,
        url: str,
        config: Optional[WebSocketConfig] = None,
        handlers: Optional[StreamEventHandlers] = None,
        socket_factory: Optional[SocketFactory] = None,
        scheduler: Optional[SchedulerProtocol] = None,
        router: Optional[EventRouter] = None,
    ):
        """
        Initialize connection.

        Args:
            url: Full stream URL (base URL plus /ws, /stream or /ws/<listenKey>)
            config: Heartbeat, reconnect and request settings
            handlers: Lifecycle and event callbacks
            socket_factory: Coroutine opening a StreamSocket for a URL
            scheduler: Timer scheduler (LoopScheduler by default)
            router: Event router (created when omitted)
        """
        self._url = url
        self._config = config or WebSocketConfig()
        self._handlers = handlers or StreamEventHandlers()
        self._socket_factory = socket_factory or aiohttp_socket_factory
        self._scheduler = scheduler or LoopScheduler()
        self._router = router or EventRouter()
        self._handlers.register(self._router)

        # Connection state
        self._state = ConnectionState.CLOSED
        self._socket: Optional[StreamSocket] = None
        self._generation = 0
        self._receive_task: Optional[asyncio.Task] = None
        self._dispatch_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

        # Reconnection
        self._should_reconnect = self._config.reconnect
        self._reconnect_attempts = 0

        # Timers
        self._ping_timer: Optional[TimerHandle] = None
        self._pong_timer: Optional[TimerHandle] = None
        self._reconnect_timer: Optional[TimerHandle] = None

        # Request correlation
        self._next_request_id = 1
        self._pending: Dict[int, asyncio.Future] = {}

        # Subscriptions
        self._subscriptions: Set[str] = set()

        logger.debug(f"Stream connection for {url} with {self._handlers.describe()}")

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.OPEN

    @property
    def subscriptions(self) -> Set[str]:
        """Copy of the current subscription set."""
        return set(self._subscriptions)

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def router(self) -> EventRouter:
        return self._router

    def on(self, kind: EventKind, callback: Callback) -> None:
        """Register an additional event callback."""
        self._router.on(kind, callback)

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        """
        Open the connection.

        No-op when already OPEN or CONNECTING. A failed initial open
        raises and does not start the reconnect cycle.

        Raises:
            NetworkError: If the socket could not be opened
        """
        if self._state in (ConnectionState.OPEN, ConnectionState.CONNECTING):
            return
        self._should_reconnect = self._config.reconnect
        await self._open()
        self._reconnect_attempts = 0

    async def disconnect(self) -> None:
        """Close the connection and stop reconnecting."""
        self._should_reconnect = False
        self._clear_timers()

        socket = self._socket
        if self._state is ConnectionState.OPEN and socket is not None:
            self._state = ConnectionState.CLOSING
            generation = self._generation
            try:
                await socket.close(WS_CLOSE_NORMAL, "Client disconnect")
            except Exception as e:
                logger.warning(f"Error closing WebSocket: {e}")
            await self._handle_close(generation, WS_CLOSE_NORMAL, "Client disconnect")
        else:
            # Invalidates a handshake still in flight
            self._generation += 1
            self._state = ConnectionState.CLOSED

        self._subscriptions.clear()
        logger.info(f"WebSocket disconnected: {self._url}")

    async def __aenter__(self) -> "StreamConnection":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    async def _open(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

        self._generation += 1
        generation = self._generation
        self._state = ConnectionState.CONNECTING

        try:
            socket = await self._socket_factory(self._url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation == self._generation:
                self._state = ConnectionState.CLOSED
            error = NetworkError(f"WebSocket connection failed: {e}", cause=e)
            logger.error(f"WebSocket connection failed: {self._url}: {e}")
            await invoke_callback(self._handlers.on_error, error)
            raise error

        if generation != self._generation:
            await self._close_quietly(socket)
            raise WebSocketError("Disconnected while connecting")

        self._socket = socket
        self._state = ConnectionState.OPEN
        dispatch_queue: asyncio.Queue = asyncio.Queue()
        self._receive_task = self._spawn(self._receive_loop(socket, generation, dispatch_queue))
        self._dispatch_task = self._spawn(self._dispatch_loop(dispatch_queue, generation))
        self._schedule_ping()

        logger.info(f"WebSocket connected: {self._url}")
        await invoke_callback(self._handlers.on_open)

    @staticmethod
    async def _close_quietly(socket: StreamSocket) -> None:
        try:
            await socket.close(WS_CLOSE_NORMAL, "Client disconnect")
        except Exception as e:
            logger.debug(f"Error closing superseded socket: {e}")

    async def _handle_close(self, generation: int, code: int, reason: str) -> None:
        if generation != self._generation or self._state is ConnectionState.CLOSED:
            return

        self._generation += 1
        self._state = ConnectionState.CLOSED
        self._socket = None
        self._clear_timers()

        current = asyncio.current_task()
        for task in (self._receive_task, self._dispatch_task):
            if task is not None and task is not current:
                task.cancel()
        self._receive_task = None
        self._dispatch_task = None

        self._fail_pending(WebSocketError(f"Connection closed: {reason or code}", code))

        if code == WS_CLOSE_NORMAL:
            logger.info(f"WebSocket closed: {code} {reason}")
        else:
            logger.warning(f"WebSocket closed abnormally: {code} {reason}")

        await invoke_callback(self._handlers.on_close, code, reason)

        if not self._should_reconnect:
            return
        if self._reconnect_attempts < self._config.max_reconnect_attempts:
            self._schedule_reconnect()
        else:
            logger.error("Max reconnection attempts reached")

    # --------------------------------------------------------
    # RECONNECTION
    # --------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        self._reconnect_attempts += 1
        interval = self._config.reconnect_interval_ms
        logger.info(
            f"Reconnecting in {interval}ms "
            f"(attempt {self._reconnect_attempts}/{self._config.max_reconnect_attempts})"
        )
        self._reconnect_timer = self._scheduler.call_later(interval, self._on_reconnect_timer)

    def _on_reconnect_timer(self) -> None:
        self._reconnect_timer = None
        if not self._should_reconnect or self._state is not ConnectionState.CLOSED:
            return
        self._spawn(self._reconnect())

    async def _reconnect(self) -> None:
        attempt = self._reconnect_attempts
        try:
            await self._open()
        except AsterError as e:
            logger.warning(f"Reconnect attempt {attempt} failed: {e}")
            if not self._should_reconnect or self._state is not ConnectionState.CLOSED:
                return
            if self._reconnect_attempts < self._config.max_reconnect_attempts:
                self._schedule_reconnect()
            else:
                logger.error("Max reconnection attempts reached")
            return

        generation = self._generation
        try:
            await self._replay_subscriptions()
        except AsterError as e:
            logger.warning(f"Subscription replay failed: {e}")
            await invoke_callback(self._handlers.on_error, e)
            # Replay again on a fresh socket
            socket = self._socket
            if generation == self._generation and socket is not None:
                await self._terminate(socket, generation, "Subscription replay failed")
            return

        if generation == self._generation:
            self._reconnect_attempts = 0

    async def _replay_subscriptions(self) -> None:
        if not self._subscriptions:
            return
        streams = sorted(self._subscriptions)
        logger.info(f"Replaying {len(streams)} subscriptions")
        await self._request("SUBSCRIBE", streams)

    # --------------------------------------------------------
    # HEARTBEAT
    # --------------------------------------------------------

    def _schedule_ping(self) -> None:
        self._ping_timer = self._scheduler.call_later(
            self._config.ping_interval_ms, self._on_ping_timer
        )

    def _on_ping_timer(self) -> None:
        self._ping_timer = None
        socket = self._socket
        if self._state is not ConnectionState.OPEN or socket is None:
            return

        # The deadline runs from the oldest unanswered ping
        if self._pong_timer is None:
            self._pong_timer = self._scheduler.call_later(
                self._config.pong_timeout_ms, self._on_pong_timeout
            )
        self._schedule_ping()
        self._spawn(self._send_ping(socket))

    @staticmethod
    async def _send_ping(socket: StreamSocket) -> None:
        try:
            await socket.ping()
        except Exception as e:
            logger.warning(f"Ping failed: {e}")

    def _handle_pong(self) -> None:
        if self._pong_timer is not None:
            self._pong_timer.cancel()
            self._pong_timer = None

    def _on_pong_timeout(self) -> None:
        self._pong_timer = None
        socket = self._socket
        if self._state is not ConnectionState.OPEN or socket is None:
            return
        logger.warning("Pong timeout, terminating connection")
        self._spawn(self._terminate(socket, self._generation, "Pong timeout"))

    async def _terminate(self, socket: StreamSocket, generation: int, reason: str) -> None:
        try:
            await socket.terminate()
        except Exception as e:
            logger.debug(f"Error terminating socket: {e}")
        await self._handle_close(generation, WS_CLOSE_ABNORMAL, reason)

    def _clear_timers(self) -> None:
        for timer in (self._ping_timer, self._pong_timer, self._reconnect_timer):
            if timer is not None:
                timer.cancel()
        self._ping_timer = None
        self._pong_timer = None
        self._reconnect_timer = None

    # --------------------------------------------------------
    # MESSAGE HANDLING
    # --------------------------------------------------------

    async def _receive_loop(
        self,
        socket: StreamSocket,
        generation: int,
        dispatch_queue: asyncio.Queue,
    ) -> None:
        """
        Read the socket until it closes.

        Replies and pongs are handled here. Anything that runs caller
        code is queued for the dispatcher, so a callback awaiting a
        request never blocks the read that would resolve it.
        """
        while generation == self._generation:
            try:
                event = await socket.receive()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await self._handle_close(generation, WS_CLOSE_ABNORMAL, f"Receive failed: {e}")
                return

            if generation != self._generation:
                return

            if event.kind is SocketEventKind.MESSAGE:
                self._handle_frame(event.data, dispatch_queue)
            elif event.kind is SocketEventKind.PONG:
                self._handle_pong()
            elif event.kind is SocketEventKind.ERROR:
                error = WebSocketError(f"WebSocket error: {event.error}")
                logger.error(str(error))
                dispatch_queue.put_nowait((invoke_callback, (self._handlers.on_error, error)))
            elif event.kind is SocketEventKind.CLOSE:
                await self._handle_close(
                    generation, event.code or WS_CLOSE_ABNORMAL, event.reason
                )
                return

    def _handle_frame(self, raw: Union[str, bytes, None], dispatch_queue: asyncio.Queue) -> None:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="replace")
        if not raw or not raw.strip():
            return

        try:
            payload = json.loads(raw)
        except ValueError as e:
            error = WebSocketError(f"Failed to parse message: {e}")
            logger.warning(f"{error}: {raw[:100]}")
            dispatch_queue.put_nowait((invoke_callback, (self._handlers.on_error, error)))
            return

        if isinstance(payload, dict) and _is_request_id(payload.get("id")):
            self._resolve_request(payload)
            return

        dispatch_queue.put_nowait((self._router.route, (payload,)))

    async def _dispatch_loop(self, dispatch_queue: asyncio.Queue, generation: int) -> None:
        while generation == self._generation:
            callback, args = await dispatch_queue.get()
            if generation != self._generation:
                return
            await callback(*args)

    def _resolve_request(self, response: Dict[str, Any]) -> None:
        request_id = response["id"]
        future = self._pending.get(request_id)
        if future is None or future.done():
            logger.debug(f"Response for unknown request id {request_id}")
            return

        error = response.get("error")
        if error:
            if isinstance(error, dict):
                future.set_exception(
                    WebSocketError(error.get("msg", "Request failed"), error.get("code"))
                )
            else:
                future.set_exception(WebSocketError(str(error)))
        else:
            future.set_result(response)

    # --------------------------------------------------------
    # REQUESTS
    # --------------------------------------------------------

    async def _request(self, method: str, params: Optional[List[Any]] = None) -> Dict[str, Any]:
        socket = self._socket
        if self._state is not ConnectionState.OPEN or socket is None:
            raise WebSocketError("WebSocket is not connected")

        request_id = self._next_request_id
        self._next_request_id += 1

        message: Dict[str, Any] = {"method": method}
        if params is not None:
            message["params"] = [stringify_value(param) for param in params]
        message["id"] = request_id

        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        timer = self._scheduler.call_later(
            self._config.request_timeout_ms, lambda: self._on_request_timeout(request_id)
        )

        try:
            try:
                await socket.send(json.dumps(message))
            except Exception as e:
                raise WebSocketError(f"Failed to send {method} request: {e}") from e
            return await future
        finally:
            timer.cancel()
            self._pending.pop(request_id, None)

    def _on_request_timeout(self, request_id: int) -> None:
        future = self._pending.get(request_id)
        if future is not None and not future.done():
            future.set_exception(WebSocketError("Request timeout"))

    def _fail_pending(self, error: WebSocketError) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)

    # --------------------------------------------------------
    # SUBSCRIPTIONS
    # --------------------------------------------------------

    async def subscribe(self, streams: Union[str, Iterable[str]]) -> None:
        """
        Subscribe to one or more streams.

        Raises:
            WebSocketError: Over the subscription ceiling, not connected,
                timed out, or rejected by the server
        """
        names = _as_list(streams)
        limit = self._config.max_subscriptions
        if len(self._subscriptions) + len(names) > limit:
            raise WebSocketError(f"Cannot subscribe to more than {limit} streams")

        await self._request("SUBSCRIBE", names)
        self._subscriptions.update(names)

    async def unsubscribe(self, streams: Union[str, Iterable[str]]) -> None:
        names = _as_list(streams)
        await self._request("UNSUBSCRIBE", names)
        self._subscriptions.difference_update(names)

    async def list_subscriptions(self) -> List[str]:
        """Streams the server reports for this connection."""
        response = await self._request("LIST_SUBSCRIPTIONS")
        return response.get("result") or []

    async def set_property(self, name: str, value: Any) -> None:
        """Set a connection property (e.g. "combined")."""
        await self._request("SET_PROPERTY", [name, value])

    async def get_property(self, name: str) -> Any:
        response = await self._request("GET_PROPERTY", [name])
        return response.get("result")

    # --------------------------------------------------------
    # TASKS
    # --------------------------------------------------------

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Stream task failed: {error}", exc_info=error)


__all__ = [
    "ConnectionState",
    "StreamConnection",
]

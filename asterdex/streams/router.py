"""
AsterDEX Client - Stream Event Router.

============================================================
PURPOSE
============================================================
Classifies inbound stream frames and dispatches them to callbacks.

- Combined-stream envelopes {stream, data} are unwrapped
- The event-type field "e" is looked up in one table
- Book tickers carry no "e" and are recognised by shape
- Anything unclassified goes to the catch-all (UNKNOWN) channel

Callbacks may be plain functions or coroutine functions. A failing
callback is logged and never propagates into the connection.

============================================================
"""

import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Callable, DefaultDict, Dict, List, Optional, Tuple


logger = logging.getLogger(__name__)


Callback = Callable[..., Any]


# ============================================================
# EVENT KINDS
# ============================================================

class EventKind(Enum):
    """Stream event categories."""

    TICKER = "ticker"
    MINI_TICKER = "miniTicker"
    TRADE = "trade"
    AGG_TRADE = "aggTrade"
    KLINE = "kline"
    DEPTH_UPDATE = "depthUpdate"
    BOOK_TICKER = "bookTicker"
    ACCOUNT_UPDATE = "accountUpdate"
    EXECUTION_REPORT = "executionReport"

    # Futures
    MARK_PRICE = "markPrice"
    LIQUIDATION = "liquidation"
    FUTURES_ACCOUNT_UPDATE = "futuresAccountUpdate"
    ORDER_TRADE_UPDATE = "orderTradeUpdate"
    ACCOUNT_CONFIG_UPDATE = "accountConfigUpdate"

    UNKNOWN = "data"


EVENT_TYPE_MAP: Dict[str, EventKind] = {
    "24hrTicker": EventKind.TICKER,
    "24hrMiniTicker": EventKind.MINI_TICKER,
    "trade": EventKind.TRADE,
    "aggTrade": EventKind.AGG_TRADE,
    "kline": EventKind.KLINE,
    "depthUpdate": EventKind.DEPTH_UPDATE,
    "outboundAccountPosition": EventKind.ACCOUNT_UPDATE,
    "executionReport": EventKind.EXECUTION_REPORT,
    "markPriceUpdate": EventKind.MARK_PRICE,
    "forceOrder": EventKind.LIQUIDATION,
    "ACCOUNT_UPDATE": EventKind.FUTURES_ACCOUNT_UPDATE,
    "ORDER_TRADE_UPDATE": EventKind.ORDER_TRADE_UPDATE,
    "ACCOUNT_CONFIG_UPDATE": EventKind.ACCOUNT_CONFIG_UPDATE,
}

_BOOK_TICKER_FIELDS = ("u", "s", "b", "a")


def unwrap(frame: Any) -> Tuple[Optional[str], Any]:
    """Split a combined-stream envelope into (stream name, payload)."""
    if isinstance(frame, dict) and "stream" in frame and "data" in frame:
        return frame["stream"], frame["data"]
    return None, frame


def classify(payload: Any) -> EventKind:
    """
    Event kind of an (unwrapped) payload.

    Arrays from all-market streams are classified by their first element.
    """
    if isinstance(payload, list):
        return classify(payload[0]) if payload else EventKind.UNKNOWN

    if not isinstance(payload, dict):
        return EventKind.UNKNOWN

    event_type = payload.get("e")
    if isinstance(event_type, str):
        return EVENT_TYPE_MAP.get(event_type, EventKind.UNKNOWN)

    if all(payload.get(key) not in (None, "") for key in _BOOK_TICKER_FIELDS):
        return EventKind.BOOK_TICKER

    return EventKind.UNKNOWN


@dataclass
class StreamEvent:
    """A classified stream frame."""

    kind: EventKind
    data: Any
    stream: Optional[str] = None
    """Stream name when the frame arrived in a combined envelope."""


async def invoke_callback(callback: Optional[Callback], *args: Any) -> None:
    """Call a sync or async callback, logging any exception it raises."""
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        name = getattr(callback, "__name__", repr(callback))
        logger.error(f"Stream callback {name} failed: {e}", exc_info=True)


# ============================================================
# ROUTER
# ============================================================

class EventRouter:
    """
    Dispatches classified events to registered callbacks.

    Usage:
        router = EventRouter()
        router.on(EventKind.TRADE, handle_trade)
        await router.route(frame)
    """

    def __init__(self):
        self._callbacks: DefaultDict[EventKind, List[Callback]] = defaultdict(list)

    def on(self, kind: EventKind, callback: Callback) -> None:
        """Register a callback for an event kind."""
        self._callbacks[kind].append(callback)

    def off(self, kind: EventKind, callback: Optional[Callback] = None) -> None:
        """Remove one callback, or every callback for kind when omitted."""
        if callback is None:
            self._callbacks.pop(kind, None)
            return
        listeners = self._callbacks.get(kind)
        if listeners and callback in listeners:
            listeners.remove(callback)

    def has_callbacks(self, kind: EventKind) -> bool:
        return bool(self._callbacks.get(kind))

    async def route(self, frame: Any) -> StreamEvent:
        """
        Classify a parsed frame and dispatch its payload.

        Returns:
            The classified event
        """
        stream, payload = unwrap(frame)
        event = StreamEvent(kind=classify(payload), data=payload, stream=stream)

        listeners = list(self._callbacks.get(event.kind, ()))
        if not listeners and event.kind is not EventKind.UNKNOWN:
            logger.debug(f"No callback for {event.kind.value} event")

        for callback in listeners:
            await invoke_callback(callback, event.data)

        return event


# ============================================================
# HANDLER SET
# ============================================================

@dataclass
class StreamEventHandlers:
    """
    Callbacks for one stream connection.

    Lifecycle callbacks: on_open(), on_close(code, reason), on_error(error).
    Event callbacks receive the event payload. on_data receives
    payloads no other kind matched.
    """

    on_open: Optional[Callback] = None
    on_close: Optional[Callback] = None
    on_error: Optional[Callback] = None

    on_ticker: Optional[Callback] = None
    on_mini_ticker: Optional[Callback] = None
    on_trade: Optional[Callback] = None
    on_agg_trade: Optional[Callback] = None
    on_kline: Optional[Callback] = None
    on_depth_update: Optional[Callback] = None
    on_book_ticker: Optional[Callback] = None
    on_account_update: Optional[Callback] = None
    on_execution_report: Optional[Callback] = None
    on_mark_price: Optional[Callback] = None
    on_liquidation: Optional[Callback] = None
    on_futures_account_update: Optional[Callback] = None
    on_order_trade_update: Optional[Callback] = None
    on_account_config_update: Optional[Callback] = None

    on_data: Optional[Callback] = None

    def event_callbacks(self) -> Dict[EventKind, Callback]:
        """Non-empty event callbacks keyed by kind."""
        mapping = {
            EventKind.TICKER: self.on_ticker,
            EventKind.MINI_TICKER: self.on_mini_ticker,
            EventKind.TRADE: self.on_trade,
            EventKind.AGG_TRADE: self.on_agg_trade,
            EventKind.KLINE: self.on_kline,
            EventKind.DEPTH_UPDATE: self.on_depth_update,
            EventKind.BOOK_TICKER: self.on_book_ticker,
            EventKind.ACCOUNT_UPDATE: self.on_account_update,
            EventKind.EXECUTION_REPORT: self.on_execution_report,
            EventKind.MARK_PRICE: self.on_mark_price,
            EventKind.LIQUIDATION: self.on_liquidation,
            EventKind.FUTURES_ACCOUNT_UPDATE: self.on_futures_account_update,
            EventKind.ORDER_TRADE_UPDATE: self.on_order_trade_update,
            EventKind.ACCOUNT_CONFIG_UPDATE: self.on_account_config_update,
            EventKind.UNKNOWN: self.on_data,
        }
        return {kind: callback for kind, callback in mapping.items() if callback is not None}

    def register(self, router: EventRouter) -> None:
        for kind, callback in self.event_callbacks().items():
            router.on(kind, callback)

    def describe(self) -> List[str]:
        """Names of the callbacks that are set."""
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]


__all__ = [
    "EventKind",
    "EVENT_TYPE_MAP",
    "StreamEvent",
    "EventRouter",
    "StreamEventHandlers",
    "classify",
    "unwrap",
    "invoke_callback",
]

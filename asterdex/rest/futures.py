"""
AsterDEX Client - Futures REST Client.

============================================================
PURPOSE
============================================================
Futures operations across two signing families:

- /fapi/v1 public market data and HMAC-signed account calls
- /fapi/v3 Web3-signed trading, balance and listen-key calls

Web3 calls need the user / signer / private-key credential set;
HMAC calls need the API key and secret. Either set can be rotated
on the shared AuthManager without rebuilding this client.

============================================================
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from asterdex.constants import (
    FUTURES_API_V1,
    FUTURES_API_V3,
    AuthType,
    HttpMethod,
    SigningScheme,
)
from asterdex.errors import ValidationError
from asterdex.rest.base import BaseRestClient, Endpoint, with_optional
from asterdex.rest.params import (
    ParamsLike,
    as_params,
    as_params_list,
    require_order_reference,
    validate_batch_orders,
    validate_futures_order,
)


logger = logging.getLogger(__name__)


GET = HttpMethod.GET
POST = HttpMethod.POST
PUT = HttpMethod.PUT
DELETE = HttpMethod.DELETE

SIGNED = AuthType.SIGNED
WEB3 = SigningScheme.WEB3


def _v1(path: str) -> str:
    return f"{FUTURES_API_V1}{path}"


def _v3(path: str) -> str:
    return f"{FUTURES_API_V3}{path}"


# ============================================================
# ROUTING TABLE
# ============================================================

class FuturesEndpoints:
    """Futures routing table."""

    # Market data
    PING = Endpoint(GET, _v1("/ping"))
    SERVER_TIME = Endpoint(GET, _v1("/time"))
    EXCHANGE_INFO = Endpoint(GET, _v1("/exchangeInfo"))
    ORDER_BOOK = Endpoint(GET, _v1("/depth"), required=("symbol",))
    RECENT_TRADES = Endpoint(GET, _v1("/trades"), required=("symbol",))
    HISTORICAL_TRADES = Endpoint(GET, _v1("/historicalTrades"), required=("symbol",))
    AGG_TRADES = Endpoint(GET, _v1("/aggTrades"), required=("symbol",))
    KLINES = Endpoint(GET, _v1("/klines"), required=("symbol", "interval"))
    INDEX_PRICE_KLINES = Endpoint(GET, _v1("/indexPriceKlines"), required=("pair", "interval"))
    MARK_PRICE_KLINES = Endpoint(GET, _v1("/markPriceKlines"), required=("symbol", "interval"))
    PREMIUM_INDEX = Endpoint(GET, _v1("/premiumIndex"))
    FUNDING_RATE = Endpoint(GET, _v1("/fundingRate"))
    TICKER_24HR = Endpoint(GET, _v1("/ticker/24hr"))
    TICKER_PRICE = Endpoint(GET, _v1("/ticker/price"))
    BOOK_TICKER = Endpoint(GET, _v1("/ticker/bookTicker"))

    # HMAC account / trading
    GET_POSITION_MODE = Endpoint(GET, _v1("/positionSide/dual"), SIGNED)
    SET_POSITION_MODE = Endpoint(
        POST, _v1("/positionSide/dual"), SIGNED, required=("dualSidePosition",)
    )
    GET_MULTI_ASSETS_MODE = Endpoint(GET, _v1("/multiAssetsMargin"), SIGNED)
    SET_MULTI_ASSETS_MODE = Endpoint(
        POST, _v1("/multiAssetsMargin"), SIGNED, required=("multiAssetsMargin",)
    )
    QUERY_ORDER = Endpoint(GET, _v3("/order"), SIGNED, required=("symbol",))
    CANCEL_ORDER = Endpoint(DELETE, _v3("/order"), SIGNED, required=("symbol",))
    CANCEL_ALL_OPEN_ORDERS = Endpoint(DELETE, _v1("/allOpenOrders"), SIGNED, required=("symbol",))
    CANCEL_BATCH_ORDERS = Endpoint(DELETE, _v1("/batchOrders"), SIGNED, required=("symbol",))
    COUNTDOWN_CANCEL_ALL = Endpoint(
        POST, _v1("/countdownCancelAll"), SIGNED, required=("symbol", "countdownTime")
    )
    OPEN_ORDER = Endpoint(GET, _v1("/openOrder"), SIGNED, required=("symbol",))
    ALL_ORDERS = Endpoint(GET, _v1("/allOrders"), SIGNED, required=("symbol",))
    POSITION_MARGIN = Endpoint(
        POST, _v1("/positionMargin"), SIGNED, required=("symbol", "amount", "type")
    )
    POSITION_MARGIN_HISTORY = Endpoint(
        GET, _v1("/positionMargin/history"), SIGNED, required=("symbol",)
    )
    USER_TRADES = Endpoint(GET, _v1("/userTrades"), SIGNED, required=("symbol",))

    # Web3 trading / account
    NEW_ORDER = Endpoint(POST, _v3("/order"), SIGNED, WEB3)
    NEW_BATCH_ORDERS = Endpoint(POST, _v3("/batchOrders"), SIGNED, WEB3, required=("batchOrders",))
    TRANSFER = Endpoint(
        POST,
        _v3("/asset/wallet/transfer"),
        SIGNED,
        WEB3,
        required=("amount", "asset", "clientTranId", "kindType"),
    )
    OPEN_ORDERS = Endpoint(GET, _v3("/openOrders"), SIGNED, WEB3)
    BALANCE = Endpoint(GET, _v3("/balance"), SIGNED, WEB3)
    ACCOUNT = Endpoint(GET, _v3("/account"), SIGNED, WEB3)
    LEVERAGE = Endpoint(POST, _v3("/leverage"), SIGNED, WEB3, required=("symbol", "leverage"))
    MARGIN_TYPE = Endpoint(
        POST, _v3("/marginType"), SIGNED, WEB3, required=("symbol", "marginType")
    )
    POSITION_RISK = Endpoint(GET, _v3("/positionRisk"), SIGNED, WEB3)
    INCOME = Endpoint(GET, _v3("/income"), SIGNED, WEB3)
    LEVERAGE_BRACKET = Endpoint(GET, _v3("/leverageBracket"), SIGNED, WEB3)
    ADL_QUANTILE = Endpoint(GET, _v3("/adlQuantile"), SIGNED, WEB3)
    FORCE_ORDERS = Endpoint(GET, _v3("/forceOrders"), SIGNED, WEB3)
    COMMISSION_RATE = Endpoint(GET, _v3("/commissionRate"), SIGNED, WEB3, required=("symbol",))

    # User data stream
    START_USER_STREAM = Endpoint(POST, _v3("/listenKey"), SIGNED, WEB3)
    KEEPALIVE_USER_STREAM = Endpoint(
        PUT, _v3("/listenKey"), SIGNED, WEB3, required=("listenKey",)
    )
    CLOSE_USER_STREAM = Endpoint(
        DELETE, _v3("/listenKey"), SIGNED, WEB3, required=("listenKey",)
    )


def _symbol_params(symbol: Optional[str]) -> Dict[str, Any]:
    return {"symbol": symbol} if symbol else {}


def _json_list(values: Sequence[Any]) -> str:
    return json.dumps(list(values), separators=(",", ":"))


# ============================================================
# CLIENT
# ============================================================

class FuturesClient(BaseRestClient):
    """
    AsterDEX futures REST client.

    Usage:
        futures = FuturesClient(base_url, auth, transport, rate_limiter)
        await futures.new_order(FuturesOrderRequest(
            symbol="BTCUSDT", side="BUY", type="MARKET", quantity="0.01",
        ))
    """

    service = "futures"

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def ping(self) -> Dict[str, Any]:
        """Test connectivity."""
        return await self.request(FuturesEndpoints.PING)

    async def get_server_time(self) -> Dict[str, Any]:
        return await self.request(FuturesEndpoints.SERVER_TIME)

    async def get_exchange_info(self) -> Dict[str, Any]:
        return await self.request(FuturesEndpoints.EXCHANGE_INFO)

    async def get_order_book(self, symbol: str, limit: Optional[int] = None) -> Dict[str, Any]:
        params = with_optional({"symbol": symbol}, limit=limit)
        return await self.request(FuturesEndpoints.ORDER_BOOK, params)

    async def get_recent_trades(self, symbol: str, limit: Optional[int] = None) -> Any:
        params = with_optional({"symbol": symbol}, limit=limit)
        return await self.request(FuturesEndpoints.RECENT_TRADES, params)

    async def get_historical_trades(
        self,
        symbol: str,
        limit: Optional[int] = None,
        from_id: Optional[int] = None,
    ) -> Any:
        params = with_optional({"symbol": symbol}, limit=limit, fromId=from_id)
        return await self.request(FuturesEndpoints.HISTORICAL_TRADES, params)

    async def get_aggregated_trades(
        self,
        symbol: str,
        from_id: Optional[int] = None,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        params = with_optional(
            {"symbol": symbol},
            fromId=from_id,
            startTime=start_time,
            endTime=end_time,
            limit=limit,
        )
        return await self.request(FuturesEndpoints.AGG_TRADES, params)

    async def get_klines(
        self,
        symbol: str,
        interval: str,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        params = with_optional(
            {"symbol": symbol, "interval": interval},
            startTime=start_time,
            endTime=end_time,
            limit=limit,
        )
        return await self.request(FuturesEndpoints.KLINES, params)

    async def get_index_price_klines(
        self,
        pair: str,
        interval: str,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        params = with_optional(
            {"pair": pair, "interval": interval},
            startTime=start_time,
            endTime=end_time,
            limit=limit,
        )
        return await self.request(FuturesEndpoints.INDEX_PRICE_KLINES, params)

    async def get_mark_price_klines(
        self,
        symbol: str,
        interval: str,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        params = with_optional(
            {"symbol": symbol, "interval": interval},
            startTime=start_time,
            endTime=end_time,
            limit=limit,
        )
        return await self.request(FuturesEndpoints.MARK_PRICE_KLINES, params)

    async def get_mark_price(self, symbol: Optional[str] = None) -> Any:
        """Mark price and funding rate (premiumIndex)."""
        return await self.request(FuturesEndpoints.PREMIUM_INDEX, _symbol_params(symbol))

    async def get_funding_rate(
        self,
        symbol: Optional[str] = None,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        params = with_optional(
            {}, symbol=symbol, startTime=start_time, endTime=end_time, limit=limit
        )
        return await self.request(FuturesEndpoints.FUNDING_RATE, params)

    async def get_24hr_ticker(self, symbol: Optional[str] = None) -> Any:
        return await self.request(FuturesEndpoints.TICKER_24HR, _symbol_params(symbol))

    async def get_price(self, symbol: Optional[str] = None) -> Any:
        return await self.request(FuturesEndpoints.TICKER_PRICE, _symbol_params(symbol))

    async def get_book_ticker(self, symbol: Optional[str] = None) -> Any:
        return await self.request(FuturesEndpoints.BOOK_TICKER, _symbol_params(symbol))

    # --------------------------------------------------------
    # ACCOUNT MODES (HMAC)
    # --------------------------------------------------------

    async def get_position_mode(self) -> Dict[str, Any]:
        return await self.request(FuturesEndpoints.GET_POSITION_MODE)

    async def change_position_mode(self, dual_side_position: bool) -> Dict[str, Any]:
        """Switch between hedge mode (True) and one-way mode (False)."""
        return await self.request(
            FuturesEndpoints.SET_POSITION_MODE, {"dualSidePosition": dual_side_position}
        )

    async def get_multi_assets_mode(self) -> Dict[str, Any]:
        return await self.request(FuturesEndpoints.GET_MULTI_ASSETS_MODE)

    async def change_multi_assets_mode(self, multi_assets_margin: bool) -> Dict[str, Any]:
        return await self.request(
            FuturesEndpoints.SET_MULTI_ASSETS_MODE, {"multiAssetsMargin": multi_assets_margin}
        )

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    async def new_order(self, order: ParamsLike) -> Dict[str, Any]:
        """
        Place a futures order (Web3-signed).

        Args:
            order: FuturesOrderRequest or a camelCase mapping

        Raises:
            ValidationError: If a field required by the order type is missing
            AuthError: If Web3 credentials are not configured
        """
        params = as_params(order)
        validate_futures_order(params)
        return await self.request(FuturesEndpoints.NEW_ORDER, params)

    async def new_batch_orders(self, orders: Sequence[ParamsLike]) -> List[Dict[str, Any]]:
        """
        Place up to five orders in one call (Web3-signed).

        Raises:
            ValidationError: If the batch is empty, too large, or an order is invalid
        """
        batch = as_params_list(orders) if isinstance(orders, (list, tuple)) else orders
        validate_batch_orders(batch)
        return await self.request(FuturesEndpoints.NEW_BATCH_ORDERS, {"batchOrders": batch})

    async def get_order(
        self,
        symbol: str,
        order_id: Optional[int] = None,
        orig_client_order_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        require_order_reference(order_id, orig_client_order_id)
        params = with_optional(
            {"symbol": symbol}, orderId=order_id, origClientOrderId=orig_client_order_id
        )
        return await self.request(FuturesEndpoints.QUERY_ORDER, params)

    async def cancel_order(
        self,
        symbol: str,
        order_id: Optional[int] = None,
        orig_client_order_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        require_order_reference(order_id, orig_client_order_id)
        params = with_optional(
            {"symbol": symbol}, orderId=order_id, origClientOrderId=orig_client_order_id
        )
        return await self.request(FuturesEndpoints.CANCEL_ORDER, params)

    async def cancel_all_open_orders(self, symbol: str) -> Dict[str, Any]:
        return await self.request(FuturesEndpoints.CANCEL_ALL_OPEN_ORDERS, {"symbol": symbol})

    async def cancel_batch_orders(
        self,
        symbol: str,
        order_id_list: Optional[Sequence[int]] = None,
        orig_client_order_id_list: Optional[Sequence[str]] = None,
    ) -> Any:
        """
        Cancel several orders; the id lists travel as JSON arrays.

        Raises:
            ValidationError: If neither list is given
        """
        if not order_id_list and not orig_client_order_id_list:
            raise ValidationError(
                "Either orderIdList or origClientOrderIdList must be provided",
                field="orderIdList",
            )
        params: Dict[str, Any] = {"symbol": symbol}
        if order_id_list:
            params["orderIdList"] = _json_list(order_id_list)
        if orig_client_order_id_list:
            params["origClientOrderIdList"] = _json_list(orig_client_order_id_list)
        return await self.request(FuturesEndpoints.CANCEL_BATCH_ORDERS, params)

    async def countdown_cancel_all(self, symbol: str, countdown_time: int) -> Dict[str, Any]:
        """Auto-cancel all open orders after countdown_time ms (0 cancels the timer)."""
        return await self.request(
            FuturesEndpoints.COUNTDOWN_CANCEL_ALL,
            {"symbol": symbol, "countdownTime": countdown_time},
        )

    async def get_current_open_order(
        self,
        symbol: str,
        order_id: Optional[int] = None,
        orig_client_order_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        require_order_reference(order_id, orig_client_order_id)
        params = with_optional(
            {"symbol": symbol}, orderId=order_id, origClientOrderId=orig_client_order_id
        )
        return await self.request(FuturesEndpoints.OPEN_ORDER, params)

    async def get_open_orders(self, symbol: Optional[str] = None) -> Any:
        return await self.request(FuturesEndpoints.OPEN_ORDERS, _symbol_params(symbol))

    async def get_all_orders(
        self,
        symbol: str,
        order_id: Optional[int] = None,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        params = with_optional(
            {"symbol": symbol},
            orderId=order_id,
            startTime=start_time,
            endTime=end_time,
            limit=limit,
        )
        return await self.request(FuturesEndpoints.ALL_ORDERS, params)

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    async def transfer_asset(self, transfer: ParamsLike) -> Dict[str, Any]:
        return await self.request(FuturesEndpoints.TRANSFER, as_params(transfer))

    async def get_balance(self) -> Any:
        return await self.request(FuturesEndpoints.BALANCE)

    async def get_account(self) -> Dict[str, Any]:
        return await self.request(FuturesEndpoints.ACCOUNT)

    async def change_leverage(self, symbol: str, leverage: int) -> Dict[str, Any]:
        return await self.request(
            FuturesEndpoints.LEVERAGE, {"symbol": symbol, "leverage": leverage}
        )

    async def change_margin_type(self, symbol: str, margin_type: str) -> Dict[str, Any]:
        """margin_type is ISOLATED or CROSSED."""
        return await self.request(
            FuturesEndpoints.MARGIN_TYPE, {"symbol": symbol, "marginType": margin_type}
        )

    async def modify_position_margin(
        self,
        symbol: str,
        amount: Any,
        type: int,
        position_side: Optional[str] = None,
    ) -> Dict[str, Any]:
        """type 1 adds margin, 2 reduces it."""
        params = with_optional(
            {"symbol": symbol, "amount": amount, "type": type}, positionSide=position_side
        )
        return await self.request(FuturesEndpoints.POSITION_MARGIN, params)

    async def get_position_margin_history(
        self,
        symbol: str,
        type: Optional[int] = None,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        params = with_optional(
            {"symbol": symbol}, type=type, startTime=start_time, endTime=end_time, limit=limit
        )
        return await self.request(FuturesEndpoints.POSITION_MARGIN_HISTORY, params)

    async def get_position_risk(self, symbol: Optional[str] = None) -> Any:
        return await self.request(FuturesEndpoints.POSITION_RISK, _symbol_params(symbol))

    async def get_user_trades(
        self,
        symbol: str,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        from_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        params = with_optional(
            {"symbol": symbol},
            startTime=start_time,
            endTime=end_time,
            fromId=from_id,
            limit=limit,
        )
        return await self.request(FuturesEndpoints.USER_TRADES, params)

    async def get_income_history(self, options: Optional[Mapping[str, Any]] = None) -> Any:
        """Income records; options are passed through (symbol, incomeType, startTime, ...)."""
        return await self.request(FuturesEndpoints.INCOME, dict(options or {}))

    async def get_leverage_bracket(self, symbol: Optional[str] = None) -> Any:
        return await self.request(FuturesEndpoints.LEVERAGE_BRACKET, _symbol_params(symbol))

    async def get_adl_quantile(self, symbol: Optional[str] = None) -> Any:
        return await self.request(FuturesEndpoints.ADL_QUANTILE, _symbol_params(symbol))

    async def get_force_orders(self, options: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request(FuturesEndpoints.FORCE_ORDERS, dict(options or {}))

    async def get_commission_rate(self, symbol: str) -> Dict[str, Any]:
        return await self.request(FuturesEndpoints.COMMISSION_RATE, {"symbol": symbol})

    # --------------------------------------------------------
    # USER DATA STREAM
    # --------------------------------------------------------

    async def start_user_data_stream(self) -> Dict[str, Any]:
        """Create a listen key for the user data stream."""
        return await self.request(FuturesEndpoints.START_USER_STREAM)

    async def keep_alive_user_data_stream(self, listen_key: str) -> Dict[str, Any]:
        return await self.request(
            FuturesEndpoints.KEEPALIVE_USER_STREAM, {"listenKey": listen_key}
        )

    async def close_user_data_stream(self, listen_key: str) -> Dict[str, Any]:
        return await self.request(FuturesEndpoints.CLOSE_USER_STREAM, {"listenKey": listen_key})

"""
AsterDEX Client - Spot REST Client.

============================================================
PURPOSE
============================================================
Spot operations under /api/v1.

All signed spot calls use HMAC (query-string signature plus the
X-MBX-APIKEY header). historicalTrades and the listen-key calls need
only the API key.

============================================================
"""

import logging
from typing import Any, Dict, Mapping, Optional

from asterdex.constants import SPOT_API_V1, AuthType, HttpMethod
from asterdex.rest.base import BaseRestClient, Endpoint, with_optional
from asterdex.rest.params import (
    ParamsLike,
    as_params,
    require_order_reference,
    validate_spot_order,
)


logger = logging.getLogger(__name__)


GET = HttpMethod.GET
POST = HttpMethod.POST
PUT = HttpMethod.PUT
DELETE = HttpMethod.DELETE


# ============================================================
# ROUTING TABLE
# ============================================================

class SpotEndpoints:
    """Spot routing table."""

    # Market data
    PING = Endpoint(GET, f"{SPOT_API_V1}/ping")
    SERVER_TIME = Endpoint(GET, f"{SPOT_API_V1}/time")
    EXCHANGE_INFO = Endpoint(GET, f"{SPOT_API_V1}/exchangeInfo")
    ORDER_BOOK = Endpoint(GET, f"{SPOT_API_V1}/depth", required=("symbol",))
    RECENT_TRADES = Endpoint(GET, f"{SPOT_API_V1}/trades", required=("symbol",))
    HISTORICAL_TRADES = Endpoint(
        GET, f"{SPOT_API_V1}/historicalTrades", AuthType.MARKET_DATA, required=("symbol",)
    )
    AGG_TRADES = Endpoint(GET, f"{SPOT_API_V1}/aggTrades", required=("symbol",))
    KLINES = Endpoint(GET, f"{SPOT_API_V1}/klines", required=("symbol", "interval"))
    TICKER_24HR = Endpoint(GET, f"{SPOT_API_V1}/ticker/24hr")
    TICKER_PRICE = Endpoint(GET, f"{SPOT_API_V1}/ticker/price")
    BOOK_TICKER = Endpoint(GET, f"{SPOT_API_V1}/ticker/bookTicker")

    # Trading
    COMMISSION_RATE = Endpoint(
        GET, f"{SPOT_API_V1}/commissionRate", AuthType.TRADE, required=("symbol",)
    )
    NEW_ORDER = Endpoint(POST, f"{SPOT_API_V1}/order", AuthType.TRADE)
    CANCEL_ORDER = Endpoint(DELETE, f"{SPOT_API_V1}/order", AuthType.TRADE, required=("symbol",))

    # Account
    QUERY_ORDER = Endpoint(GET, f"{SPOT_API_V1}/order", AuthType.USER_DATA, required=("symbol",))
    OPEN_ORDERS = Endpoint(GET, f"{SPOT_API_V1}/openOrders", AuthType.USER_DATA)
    ALL_ORDERS = Endpoint(
        GET, f"{SPOT_API_V1}/allOrders", AuthType.USER_DATA, required=("symbol",)
    )
    ACCOUNT = Endpoint(GET, f"{SPOT_API_V1}/account", AuthType.USER_DATA)
    USER_TRADES = Endpoint(GET, f"{SPOT_API_V1}/userTrades", AuthType.USER_DATA)

    # Wallet
    TRANSFER = Endpoint(
        POST,
        f"{SPOT_API_V1}/asset/wallet/transfer",
        AuthType.TRADE,
        required=("amount", "asset", "clientTranId", "kindType"),
    )
    SEND_TO_ADDRESS = Endpoint(
        POST,
        f"{SPOT_API_V1}/asset/sendToAddress",
        AuthType.TRADE,
        required=("amount", "asset", "toAddress"),
    )
    WITHDRAW_FEE = Endpoint(
        GET, f"{SPOT_API_V1}/aster/withdraw/estimateFee", required=("chainId", "asset")
    )
    WITHDRAW = Endpoint(
        POST,
        f"{SPOT_API_V1}/aster/user-withdraw",
        AuthType.USER_DATA,
        required=("chainId", "asset", "amount", "fee", "receiver", "nonce", "userSignature"),
    )
    GET_NONCE = Endpoint(
        POST, f"{SPOT_API_V1}/getNonce", required=("address", "userOperationType")
    )
    CREATE_API_KEY = Endpoint(
        POST,
        f"{SPOT_API_V1}/createApiKey",
        AuthType.TRADE,
        required=("address", "userOperationType", "userSignature", "desc"),
    )

    # User data stream
    START_USER_STREAM = Endpoint(POST, f"{SPOT_API_V1}/listenKey", AuthType.USER_STREAM)
    KEEPALIVE_USER_STREAM = Endpoint(
        PUT, f"{SPOT_API_V1}/listenKey", AuthType.USER_STREAM, required=("listenKey",)
    )
    CLOSE_USER_STREAM = Endpoint(
        DELETE, f"{SPOT_API_V1}/listenKey", AuthType.USER_STREAM, required=("listenKey",)
    )


def _symbol_params(symbol: Optional[str]) -> Dict[str, Any]:
    return {"symbol": symbol} if symbol else {}


# ============================================================
# CLIENT
# ============================================================

class SpotClient(BaseRestClient):
    """
    AsterDEX spot REST client.

    Usage:
        spot = SpotClient(base_url, auth, transport, rate_limiter)
        book = await spot.get_order_book("BTCUSDT", limit=10)
    """

    service = "spot"

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def ping(self) -> Dict[str, Any]:
        """Test connectivity."""
        return await self.request(SpotEndpoints.PING)

    async def get_server_time(self) -> Dict[str, Any]:
        """Server time as {"serverTime": ms}."""
        return await self.request(SpotEndpoints.SERVER_TIME)

    async def get_exchange_info(self) -> Dict[str, Any]:
        return await self.request(SpotEndpoints.EXCHANGE_INFO)

    async def get_order_book(self, symbol: str, limit: Optional[int] = None) -> Dict[str, Any]:
        params = with_optional({"symbol": symbol}, limit=limit)
        return await self.request(SpotEndpoints.ORDER_BOOK, params)

    async def get_recent_trades(self, symbol: str, limit: Optional[int] = None) -> Any:
        params = with_optional({"symbol": symbol}, limit=limit)
        return await self.request(SpotEndpoints.RECENT_TRADES, params)

    async def get_historical_trades(
        self,
        symbol: str,
        limit: Optional[int] = None,
        from_id: Optional[int] = None,
    ) -> Any:
        """Older trades; needs an API key."""
        params = with_optional({"symbol": symbol}, limit=limit, fromId=from_id)
        return await self.request(SpotEndpoints.HISTORICAL_TRADES, params)

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
        return await self.request(SpotEndpoints.AGG_TRADES, params)

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
        return await self.request(SpotEndpoints.KLINES, params)

    async def get_24hr_ticker(self, symbol: Optional[str] = None) -> Any:
        """24h statistics for one symbol, or all symbols when omitted."""
        return await self.request(SpotEndpoints.TICKER_24HR, _symbol_params(symbol))

    async def get_price(self, symbol: Optional[str] = None) -> Any:
        return await self.request(SpotEndpoints.TICKER_PRICE, _symbol_params(symbol))

    async def get_book_ticker(self, symbol: Optional[str] = None) -> Any:
        return await self.request(SpotEndpoints.BOOK_TICKER, _symbol_params(symbol))

    # --------------------------------------------------------
    # TRADING
    # --------------------------------------------------------

    async def get_commission_rate(self, symbol: str) -> Dict[str, Any]:
        return await self.request(SpotEndpoints.COMMISSION_RATE, {"symbol": symbol})

    async def new_order(self, order: ParamsLike) -> Dict[str, Any]:
        """
        Place a spot order.

        Args:
            order: SpotOrderRequest or a camelCase mapping

        Raises:
            ValidationError: If a field required by the order type is missing
        """
        params = as_params(order)
        validate_spot_order(params)
        return await self.request(SpotEndpoints.NEW_ORDER, params)

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
        return await self.request(SpotEndpoints.CANCEL_ORDER, params)

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

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
        return await self.request(SpotEndpoints.QUERY_ORDER, params)

    async def get_open_orders(self, symbol: Optional[str] = None) -> Any:
        return await self.request(SpotEndpoints.OPEN_ORDERS, _symbol_params(symbol))

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
        return await self.request(SpotEndpoints.ALL_ORDERS, params)

    async def get_account(self) -> Dict[str, Any]:
        return await self.request(SpotEndpoints.ACCOUNT)

    async def get_my_trades(
        self,
        symbol: Optional[str] = None,
        order_id: Optional[int] = None,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        from_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        params = with_optional(
            {},
            symbol=symbol,
            orderId=order_id,
            startTime=start_time,
            endTime=end_time,
            fromId=from_id,
            limit=limit,
        )
        return await self.request(SpotEndpoints.USER_TRADES, params)

    # --------------------------------------------------------
    # WALLET
    # --------------------------------------------------------

    async def transfer_asset(self, transfer: ParamsLike) -> Dict[str, Any]:
        """Move an asset between the spot and futures wallets."""
        return await self.request(SpotEndpoints.TRANSFER, as_params(transfer))

    async def send_to_address(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        return await self.request(SpotEndpoints.SEND_TO_ADDRESS, dict(params))

    async def get_withdraw_fee(self, chain_id: str, asset: str) -> Dict[str, Any]:
        return await self.request(
            SpotEndpoints.WITHDRAW_FEE, {"chainId": chain_id, "asset": asset}
        )

    async def withdraw(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        """Submit a withdrawal signed by the user's wallet (userSignature)."""
        return await self.request(SpotEndpoints.WITHDRAW, dict(params))

    async def get_nonce(
        self,
        address: str,
        user_operation_type: str,
        network: Optional[str] = None,
    ) -> Any:
        params = with_optional(
            {"address": address, "userOperationType": user_operation_type},
            network=network,
        )
        return await self.request(SpotEndpoints.GET_NONCE, params)

    async def create_api_key(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        return await self.request(SpotEndpoints.CREATE_API_KEY, dict(params))

    # --------------------------------------------------------
    # USER DATA STREAM
    # --------------------------------------------------------

    async def start_user_data_stream(self) -> Dict[str, Any]:
        """Create a listen key."""
        return await self.request(SpotEndpoints.START_USER_STREAM)

    async def keep_alive_user_data_stream(self, listen_key: str) -> Dict[str, Any]:
        return await self.request(SpotEndpoints.KEEPALIVE_USER_STREAM, {"listenKey": listen_key})

    async def close_user_data_stream(self, listen_key: str) -> Dict[str, Any]:
        return await self.request(SpotEndpoints.CLOSE_USER_STREAM, {"listenKey": listen_key})

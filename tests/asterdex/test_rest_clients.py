"""
REST Client Tests.

============================================================
PURPOSE
============================================================
Tests for the spot and futures routing tables.

TEST CATEGORIES:
- Order parameter tests: Typed requests and per-type validation
- Spot tests: Auth tiers and parameter placement
- Futures tests: HMAC vs. Web3 families, batch operations

============================================================
"""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from asterdex.auth import AuthManager
from asterdex.auth.hmac_signer import API_KEY_HEADER
from asterdex.clock import MockClock
from asterdex.constants import HttpMethod
from asterdex.errors import AuthError, ValidationError
from asterdex.rest import (
    FuturesClient,
    FuturesOrderRequest,
    OrderSide,
    OrderType,
    PositionSide,
    SpotClient,
    SpotOrderRequest,
    TimeInForce,
    TransferRequest,
    validate_batch_orders,
    validate_futures_order,
    validate_spot_order,
)
from asterdex.rest.params import require_order_reference
from asterdex.transport import HttpResponse, RateLimiter


SIGNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
SIGNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
USER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


def make_transport(data=None):
    transport = MagicMock()
    transport.request = AsyncMock(
        return_value=HttpResponse(data=data if data is not None else {}, status=200, status_text="OK", headers={})
    )
    transport.close = AsyncMock()
    return transport


def sent_request(transport):
    return transport.request.await_args.args[0]


@pytest.fixture
def auth():
    """Auth manager holding both credential sets."""
    return AuthManager(
        api_key="test-key",
        api_secret="test-secret",
        user_address=USER_ADDRESS,
        signer_address=SIGNER_ADDRESS,
        private_key=SIGNER_KEY,
        recv_window=5000,
        clock=MockClock(initial_ms=1700000000000),
    )


@pytest.fixture
def transport():
    return make_transport()


@pytest.fixture
def spot(auth, transport):
    return SpotClient("https://sapi.test/", auth, transport)


@pytest.fixture
def futures(auth, transport):
    return FuturesClient("https://fapi.test", auth, transport)


def market_order(**changes):
    order = {"symbol": "BTCUSDT", "side": "BUY", "type": "MARKET", "quantity": "0.01"}
    order.update(changes)
    return order


# ============================================================
# ORDER PARAMETER TESTS
# ============================================================

class TestOrderParams:
    """Tests for typed order requests and validators."""

    def test_spot_request_to_params(self):
        """Test typed spot order becomes camelCase params."""
        order = SpotOrderRequest(
            symbol="BTCUSDT",
            side=OrderSide.BUY,
            type=OrderType.LIMIT,
            quantity="0.01",
            price="50000",
            time_in_force=TimeInForce.GTC,
            extra={"newOrderRespType": "FULL"},
        )

        assert order.to_params() == {
            "symbol": "BTCUSDT",
            "side": "BUY",
            "type": "LIMIT",
            "quantity": "0.01",
            "price": "50000",
            "timeInForce": "GTC",
            "newOrderRespType": "FULL",
        }

    def test_futures_request_to_params(self):
        """Test typed futures order omits unset fields."""
        order = FuturesOrderRequest(
            symbol="BTCUSDT",
            side=OrderSide.SELL,
            type=OrderType.STOP_MARKET,
            stop_price="48000",
            position_side=PositionSide.LONG,
            close_position=True,
        )

        assert order.to_params() == {
            "symbol": "BTCUSDT",
            "side": "SELL",
            "type": "STOP_MARKET",
            "stopPrice": "48000",
            "positionSide": "LONG",
            "closePosition": True,
        }

    def test_transfer_request_to_params(self):
        """Test transfer request field names."""
        transfer = TransferRequest("USDT", "10", "SPOT_FUTURE", "tx-1")

        assert transfer.to_params() == {
            "asset": "USDT",
            "amount": "10",
            "kindType": "SPOT_FUTURE",
            "clientTranId": "tx-1",
        }

    def test_spot_limit_requires_price(self):
        """Test LIMIT orders need timeInForce, quantity and price."""
        with pytest.raises(ValidationError) as exc_info:
            validate_spot_order(market_order(type="LIMIT", timeInForce="GTC"))

        assert exc_info.value.field == "price"

    def test_spot_market_accepts_quote_quantity(self):
        """Test MARKET orders accept quoteOrderQty instead of quantity."""
        validate_spot_order(market_order(quantity=None, quoteOrderQty="100"))

        with pytest.raises(ValidationError, match="quoteOrderQty"):
            validate_spot_order(market_order(quantity=None))

    def test_base_fields_required(self):
        """Test symbol, side and type are always required."""
        with pytest.raises(ValidationError) as exc_info:
            validate_futures_order({"symbol": "BTCUSDT", "type": "MARKET", "quantity": "1"})

        assert exc_info.value.field == "side"

    def test_futures_close_position_skips_quantity(self):
        """Test conditional market orders may close the position without quantity."""
        validate_futures_order(
            market_order(type="STOP_MARKET", quantity=None, stopPrice="1", closePosition="true")
        )

        with pytest.raises(ValidationError) as exc_info:
            validate_futures_order(market_order(type="STOP_MARKET", quantity=None, stopPrice="1"))
        assert exc_info.value.field == "quantity"

    def test_trailing_stop_requires_callback_rate(self):
        """Test TRAILING_STOP_MARKET needs callbackRate."""
        with pytest.raises(ValidationError) as exc_info:
            validate_futures_order(market_order(type="TRAILING_STOP_MARKET"))

        assert exc_info.value.field == "callbackRate"

    def test_batch_limits(self):
        """Test batch size bounds."""
        validate_batch_orders([market_order()] * 5)

        with pytest.raises(ValidationError, match="Maximum 5 orders"):
            validate_batch_orders([market_order()] * 6)
        with pytest.raises(ValidationError, match="non-empty list"):
            validate_batch_orders([])

    def test_order_reference_required(self):
        """Test lookups need an order id or client order id."""
        require_order_reference(1, None)
        require_order_reference(None, "my-order")

        with pytest.raises(ValidationError, match="Either orderId or origClientOrderId"):
            require_order_reference(None, None)


# ============================================================
# SPOT TESTS
# ============================================================

class TestSpotClient:
    """Tests for SpotClient."""

    @pytest.mark.asyncio
    async def test_public_get(self, spot, transport):
        """Test public endpoint sends unsigned query params."""
        await spot.get_order_book("BTCUSDT", limit=5)

        request = sent_request(transport)
        assert request.method is HttpMethod.GET
        assert request.url == "https://sapi.test/api/v1/depth"
        assert request.params == {"symbol": "BTCUSDT", "limit": "5"}
        assert request.form is None
        assert API_KEY_HEADER not in request.headers

    @pytest.mark.asyncio
    async def test_required_field_checked_before_io(self, spot, transport):
        """Test missing required field raises without a request."""
        with pytest.raises(ValidationError) as exc_info:
            await spot.get_klines("BTCUSDT", "")

        assert exc_info.value.field == "interval"
        transport.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_market_data_tier(self, spot, transport):
        """Test MARKET_DATA sends the API key without signing."""
        await spot.get_historical_trades("BTCUSDT", from_id=10)

        request = sent_request(transport)
        assert request.headers[API_KEY_HEADER] == "test-key"
        assert request.params == {"symbol": "BTCUSDT", "fromId": "10"}

    @pytest.mark.asyncio
    async def test_signed_post_uses_query(self, spot, transport):
        """Test HMAC-signed POST carries params in the query string."""
        await spot.new_order(SpotOrderRequest(
            symbol="BTCUSDT",
            side=OrderSide.BUY,
            type=OrderType.LIMIT,
            quantity="0.01",
            price="50000",
            time_in_force=TimeInForce.GTC,
        ))

        request = sent_request(transport)
        assert request.method is HttpMethod.POST
        assert request.url == "https://sapi.test/api/v1/order"
        assert request.form is None
        assert request.params["timestamp"] == "1700000000000"
        assert request.params["recvWindow"] == "5000"
        assert len(request.params["signature"]) == 64
        assert request.headers[API_KEY_HEADER] == "test-key"

    @pytest.mark.asyncio
    async def test_invalid_order_not_sent(self, spot, transport):
        """Test order validation happens before any I/O."""
        with pytest.raises(ValidationError):
            await spot.new_order(market_order(quantity=None))

        transport.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_credentials(self, transport):
        """Test signed calls without credentials raise AuthError before I/O."""
        spot = SpotClient("https://sapi.test", AuthManager(), transport)

        with pytest.raises(AuthError):
            await spot.get_account()

        transport.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unsigned_post_uses_form(self, spot, transport):
        """Test public POST sends a form body."""
        await spot.get_nonce("0xabc", "CREATE_API_KEY")

        request = sent_request(transport)
        assert request.url == "https://sapi.test/api/v1/getNonce"
        assert request.params is None
        assert request.form == {"address": "0xabc", "userOperationType": "CREATE_API_KEY"}

    @pytest.mark.asyncio
    async def test_listen_key_keepalive(self, spot, transport):
        """Test USER_STREAM PUT sends the key header and a form body."""
        await spot.keep_alive_user_data_stream("listen-123")

        request = sent_request(transport)
        assert request.method is HttpMethod.PUT
        assert request.form == {"listenKey": "listen-123"}
        assert request.headers[API_KEY_HEADER] == "test-key"

    @pytest.mark.asyncio
    async def test_cancel_requires_reference(self, spot, transport):
        """Test cancel without order reference raises."""
        with pytest.raises(ValidationError):
            await spot.cancel_order("BTCUSDT")

        transport.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_optional_symbol_omitted(self, spot, transport):
        """Test all-symbol variants send no symbol."""
        await spot.get_price()

        assert sent_request(transport).params == {}

    @pytest.mark.asyncio
    async def test_rate_limiter_records(self, auth, transport):
        """Test each call is recorded on the shared limiter."""
        limiter = RateLimiter(max_requests=10, window_ms=1000, clock=MockClock(initial_ms=0))
        spot = SpotClient("https://sapi.test", auth, transport, limiter)

        await spot.ping()
        await spot.get_server_time()

        assert limiter.get_status()["used"] == 2

    @pytest.mark.asyncio
    async def test_missing_credentials_keep_rate_limit_slot(self, transport):
        """Test calls rejected for missing credentials use no limiter slot."""
        limiter = RateLimiter(max_requests=10, window_ms=1000, clock=MockClock(initial_ms=0))
        spot = SpotClient("https://sapi.test", AuthManager(), transport, limiter)
        futures = FuturesClient("https://fapi.test", AuthManager(), transport, limiter)

        with pytest.raises(AuthError):
            await spot.get_account()
        with pytest.raises(AuthError):
            await futures.new_order(market_order())

        assert limiter.get_status()["used"] == 0
        transport.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_signed_after_rate_limit_wait(self, transport):
        """Test the signature timestamp is taken after waiting for a slot."""
        clock = MockClock(initial_ms=1700000000000)

        async def fake_sleep(seconds):
            clock.advance(seconds=seconds)

        limiter = RateLimiter(max_requests=1, window_ms=1000, clock=clock, sleep=fake_sleep)
        auth = AuthManager(api_key="test-key", api_secret="test-secret", clock=clock)
        spot = SpotClient("https://sapi.test", auth, transport, limiter)

        await spot.get_account()
        await spot.get_account()

        assert sent_request(transport).params["timestamp"] == "1700000001000"

    @pytest.mark.asyncio
    async def test_returns_response_data(self, auth):
        """Test the parsed body is returned."""
        spot = SpotClient("https://sapi.test", auth, make_transport({"serverTime": 42}))

        assert await spot.get_server_time() == {"serverTime": 42}


# ============================================================
# FUTURES TESTS
# ============================================================

class TestFuturesClient:
    """Tests for FuturesClient."""

    @pytest.mark.asyncio
    async def test_web3_order(self, futures, transport):
        """Test new orders are Web3-signed into a v3 form body."""
        await futures.new_order(FuturesOrderRequest(
            symbol="BTCUSDT",
            side=OrderSide.BUY,
            type=OrderType.MARKET,
            quantity="0.01",
            reduce_only=False,
        ))

        request = sent_request(transport)
        assert request.method is HttpMethod.POST
        assert request.url == "https://fapi.test/fapi/v3/order"
        assert request.params is None
        assert request.form["reduceOnly"] == "false"
        assert request.form["user"] == USER_ADDRESS
        assert request.form["signer"] == SIGNER_ADDRESS
        assert request.form["signature"].startswith("0x")
        assert API_KEY_HEADER not in request.headers

    @pytest.mark.asyncio
    async def test_web3_get_uses_query(self, futures, transport):
        """Test Web3-signed GET carries params in the query string."""
        await futures.get_position_risk("BTCUSDT")

        request = sent_request(transport)
        assert request.url == "https://fapi.test/fapi/v3/positionRisk"
        assert request.form is None
        assert request.params["symbol"] == "BTCUSDT"
        assert "nonce" in request.params

    @pytest.mark.asyncio
    async def test_batch_orders(self, futures, transport):
        """Test batch orders are signed as a JSON array."""
        await futures.new_batch_orders([
            FuturesOrderRequest(symbol="BTCUSDT", side="BUY", type="MARKET", quantity="0.01"),
            market_order(symbol="ETHUSDT"),
        ])

        request = sent_request(transport)
        assert request.url == "https://fapi.test/fapi/v3/batchOrders"
        items = json.loads(request.form["batchOrders"])
        assert len(items) == 2
        assert json.loads(items[1])["symbol"] == "ETHUSDT"

    @pytest.mark.asyncio
    async def test_batch_too_large(self, futures, transport):
        """Test more than five orders is rejected before I/O."""
        with pytest.raises(ValidationError):
            await futures.new_batch_orders([market_order()] * 6)

        transport.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_hmac_order_query(self, futures, transport):
        """Test order lookup is HMAC-signed on the v3 path."""
        await futures.get_order("BTCUSDT", order_id=123)

        request = sent_request(transport)
        assert request.url == "https://fapi.test/fapi/v3/order"
        assert request.params["orderId"] == "123"
        assert len(request.params["signature"]) == 64
        assert request.headers[API_KEY_HEADER] == "test-key"

    @pytest.mark.asyncio
    async def test_hmac_post_uses_query(self, futures, transport):
        """Test HMAC-signed POST keeps params in the query string."""
        await futures.change_position_mode(True)

        request = sent_request(transport)
        assert request.url == "https://fapi.test/fapi/v1/positionSide/dual"
        assert request.form is None
        assert request.params["dualSidePosition"] == "true"

    @pytest.mark.asyncio
    async def test_cancel_batch_json_lists(self, futures, transport):
        """Test id lists are sent as compact JSON arrays."""
        await futures.cancel_batch_orders("BTCUSDT", order_id_list=[1, 2])

        request = sent_request(transport)
        assert request.method is HttpMethod.DELETE
        assert request.url == "https://fapi.test/fapi/v1/batchOrders"
        assert request.params["orderIdList"] == "[1,2]"

    @pytest.mark.asyncio
    async def test_cancel_batch_requires_list(self, futures):
        """Test batch cancel without ids raises."""
        with pytest.raises(ValidationError, match="orderIdList"):
            await futures.cancel_batch_orders("BTCUSDT")

    @pytest.mark.asyncio
    async def test_change_leverage(self, futures, transport):
        """Test leverage change is a Web3 form POST."""
        await futures.change_leverage("BTCUSDT", 20)

        request = sent_request(transport)
        assert request.url == "https://fapi.test/fapi/v3/leverage"
        assert request.form["leverage"] == "20"

    @pytest.mark.asyncio
    async def test_public_index_klines(self, futures, transport):
        """Test index price klines use the pair parameter."""
        await futures.get_index_price_klines("BTCUSDT", "1m", limit=10)

        request = sent_request(transport)
        assert request.url == "https://fapi.test/fapi/v1/indexPriceKlines"
        assert request.params == {"pair": "BTCUSDT", "interval": "1m", "limit": "10"}

    @pytest.mark.asyncio
    async def test_countdown_cancel_all(self, futures, transport):
        """Test countdown cancel is HMAC-signed."""
        await futures.countdown_cancel_all("BTCUSDT", 0)

        request = sent_request(transport)
        assert request.params["countdownTime"] == "0"
        assert "signature" in request.params

    @pytest.mark.asyncio
    async def test_web3_without_credentials(self, transport):
        """Test Web3 endpoints need Web3 credentials."""
        futures = FuturesClient(
            "https://fapi.test", AuthManager(api_key="k", api_secret="s"), transport
        )

        with pytest.raises(AuthError):
            await futures.get_balance()

        transport.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_releases_transport(self, futures, transport):
        """Test close() closes the transport."""
        await futures.close()

        transport.close.assert_awaited_once()

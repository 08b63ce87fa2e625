"""
Transport Tests.

============================================================
PURPOSE
============================================================
Tests for the HTTP transport and the sliding-window rate limiter.

TEST CATEGORIES:
- Request tests: URL, body and header preparation
- Retry tests: Backoff, Retry-After, non-retryable failures
- Failure mapping tests: Timeouts and network errors
- Rate limiter tests: Window admission and waiting

============================================================
"""

import pytest
import asyncio
from unittest.mock import AsyncMock

import aiohttp

from asterdex.clock import MockClock
from asterdex.config import RetryConfig
from asterdex.constants import HttpMethod
from asterdex.errors import (
    ApiResponseError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
)
from asterdex.metrics import MetricType
from asterdex.transport import HttpRequest, HttpTransport, RateLimiter


# ============================================================
# FAKE SESSION
# ============================================================

class FakeResponse:
    """aiohttp-shaped response."""

    def __init__(self, status=200, text="{}", headers=None, reason="OK"):
        self.status = status
        self.reason = reason
        self.headers = headers or {}
        self._text = text

    async def text(self):
        return self._text


class FakeRequestContext:
    """Async context manager returned by FakeSession.request()."""

    def __init__(self, outcome):
        self._outcome = outcome

    async def __aenter__(self):
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        return self._outcome

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Session replaying scripted responses or exceptions."""

    closed = False

    def __init__(self, *outcomes):
        self._outcomes = list(outcomes)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": str(url), **kwargs})
        return FakeRequestContext(self._outcomes.pop(0))


def make_transport(session, max_retries=3, sleep=None):
    return HttpTransport(
        timeout_ms=1000,
        retry=RetryConfig(max_retries=max_retries, retry_delay_ms=100, backoff_multiplier=2),
        session=session,
        sleep=sleep or AsyncMock(),
        service="test",
    )


# ============================================================
# REQUEST TESTS
# ============================================================

class TestHttpRequest:
    """Tests for request preparation."""

    def test_full_url_sorted_query(self):
        """Test query string is key-sorted and cleaned."""
        request = HttpRequest(
            HttpMethod.GET,
            "https://sapi.asterdex.com/api/v1/depth",
            params={"symbol": "BTCUSDT", "limit": 5, "skip": None},
        )

        assert request.full_url() == "https://sapi.asterdex.com/api/v1/depth?limit=5&symbol=BTCUSDT"

    def test_full_url_without_params(self):
        """Test URL is unchanged without params."""
        request = HttpRequest("get", "https://sapi.asterdex.com/api/v1/ping")

        assert request.full_url() == "https://sapi.asterdex.com/api/v1/ping"
        assert request.method_name == "GET"

    @pytest.mark.asyncio
    async def test_get_parses_json(self):
        """Test successful GET returns parsed JSON."""
        session = FakeSession(FakeResponse(200, '{"serverTime": 1}'))
        transport = make_transport(session)

        response = await transport.request(
            HttpRequest(HttpMethod.GET, "https://x.test/api/v1/time", headers={"A": "1"})
        )

        assert response.data == {"serverTime": 1}
        assert response.status == 200
        assert session.calls[0]["method"] == "GET"
        assert session.calls[0]["headers"] == {"A": "1"}
        assert session.calls[0]["data"] is None

    @pytest.mark.asyncio
    async def test_post_form_body(self):
        """Test POST form params become an encoded body."""
        session = FakeSession(FakeResponse(200, '{"ok": true}'))
        transport = make_transport(session)

        await transport.request(HttpRequest(
            HttpMethod.POST,
            "https://x.test/api/v1/order",
            form={"symbol": "BTCUSDT", "price": "50000", "note": "a b"},
        ))

        call = session.calls[0]
        assert call["url"] == "https://x.test/api/v1/order"
        assert call["data"] == "note=a%20b&price=50000&symbol=BTCUSDT"
        assert call["headers"]["Content-Type"] == "application/x-www-form-urlencoded"

    @pytest.mark.asyncio
    async def test_empty_and_text_bodies(self):
        """Test empty body gives {} and non-JSON body is returned as text."""
        session = FakeSession(FakeResponse(200, ""), FakeResponse(200, "pong"))
        transport = make_transport(session)

        first = await transport.request(HttpRequest(HttpMethod.GET, "https://x.test/a"))
        second = await transport.request(HttpRequest(HttpMethod.GET, "https://x.test/b"))

        assert first.data == {}
        assert second.data == "pong"


# ============================================================
# RETRY TESTS
# ============================================================

class TestRetry:
    """Tests for retry behavior."""

    @pytest.mark.asyncio
    async def test_server_errors_retried_with_backoff(self):
        """Test two 503s then success retries exactly twice."""
        sleep = AsyncMock()
        session = FakeSession(
            FakeResponse(503, "", reason="Service Unavailable"),
            FakeResponse(503, "", reason="Service Unavailable"),
            FakeResponse(200, '{"ok": true}'),
        )
        transport = make_transport(session, sleep=sleep)

        response = await transport.request(HttpRequest(HttpMethod.GET, "https://x.test/a"))

        assert response.data == {"ok": True}
        assert len(session.calls) == 3
        assert [call.args[0] for call in sleep.await_args_list] == [0.1, 0.2]
        assert transport.metrics.count(MetricType.RETRY) == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        """Test 400 raises immediately with the exchange message."""
        sleep = AsyncMock()
        session = FakeSession(
            FakeResponse(400, '{"code": -1102, "msg": "Mandatory parameter missing"}'),
        )
        transport = make_transport(session, sleep=sleep)

        with pytest.raises(ApiResponseError) as exc_info:
            await transport.request(HttpRequest(HttpMethod.GET, "https://x.test/a"))

        assert exc_info.value.status_code == 400
        assert exc_info.value.code == -1102
        assert str(exc_info.value) == "Mandatory parameter missing (Code: -1102)"
        assert len(session.calls) == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retry_after_honoured(self):
        """Test 429 waits for Retry-After seconds."""
        sleep = AsyncMock()
        session = FakeSession(
            FakeResponse(429, '{"code": -1003, "msg": "Too many requests"}', {"Retry-After": "2"}),
            FakeResponse(200, "{}"),
        )
        transport = make_transport(session, sleep=sleep)

        await transport.request(HttpRequest(HttpMethod.GET, "https://x.test/a"))

        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        """Test the last error is raised after max_retries."""
        session = FakeSession(
            FakeResponse(500, ""),
            FakeResponse(500, ""),
            FakeResponse(500, ""),
        )
        transport = make_transport(session, max_retries=2)

        with pytest.raises(ApiResponseError) as exc_info:
            await transport.request(HttpRequest(HttpMethod.GET, "https://x.test/a"))

        assert exc_info.value.status_code == 500
        assert len(session.calls) == 3

    @pytest.mark.asyncio
    async def test_rate_limit_error_type(self):
        """Test 418 surfaces as RateLimitError when retries are disabled."""
        session = FakeSession(FakeResponse(418, '{"code": -1003, "msg": "Banned"}'))
        transport = make_transport(session, max_retries=0)

        with pytest.raises(RateLimitError):
            await transport.request(HttpRequest(HttpMethod.GET, "https://x.test/a"))


# ============================================================
# FAILURE MAPPING TESTS
# ============================================================

class TestFailureMapping:
    """Tests for transport failure mapping."""

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test asyncio timeout becomes RequestTimeoutError."""
        session = FakeSession(asyncio.TimeoutError())
        transport = make_transport(session, max_retries=0)

        with pytest.raises(RequestTimeoutError) as exc_info:
            await transport.request(HttpRequest(HttpMethod.GET, "https://x.test/a"))

        assert exc_info.value.timeout_ms == 1000

    @pytest.mark.asyncio
    async def test_network_error_wraps_cause(self):
        """Test aiohttp client errors become NetworkError."""
        cause = aiohttp.ClientConnectionError("connection refused")
        session = FakeSession(cause)
        transport = make_transport(session, max_retries=0)

        with pytest.raises(NetworkError) as exc_info:
            await transport.request(HttpRequest(HttpMethod.GET, "https://x.test/a"))

        assert exc_info.value.cause is cause

    @pytest.mark.asyncio
    async def test_network_error_retried(self):
        """Test network failures are retried."""
        session = FakeSession(
            aiohttp.ClientConnectionError("reset"),
            FakeResponse(200, '{"ok": true}'),
        )
        transport = make_transport(session)

        response = await transport.request(HttpRequest(HttpMethod.GET, "https://x.test/a"))

        assert response.data == {"ok": True}

    @pytest.mark.asyncio
    async def test_metrics_summary(self):
        """Test success and failure are counted."""
        session = FakeSession(FakeResponse(200, "{}"), FakeResponse(404, ""))
        transport = make_transport(session, max_retries=0)

        await transport.request(HttpRequest(HttpMethod.GET, "https://x.test/a"))
        with pytest.raises(ApiResponseError):
            await transport.request(HttpRequest(HttpMethod.GET, "https://x.test/b"))

        summary = transport.metrics.get_summary()
        assert summary["requests"]["success"] == 1
        assert summary["requests"]["failure"] == 1
        assert summary["errors"]["by_status"] == {200: 1, 404: 1}

    @pytest.mark.asyncio
    async def test_injected_session_not_closed(self):
        """Test close() leaves an external session open."""
        session = FakeSession()
        session.close = AsyncMock()
        transport = make_transport(session)

        await transport.close()

        session.close.assert_not_awaited()


# ============================================================
# RATE LIMITER TESTS
# ============================================================

class TestRateLimiter:
    """Tests for RateLimiter."""

    def test_admits_up_to_limit(self):
        """Test requests are admitted until the window is full."""
        limiter = RateLimiter(max_requests=5, window_ms=1000, clock=MockClock(initial_ms=0))

        for _ in range(5):
            assert limiter.can_make_request()
            limiter.record_request()

        assert not limiter.can_make_request()

    def test_window_expiry(self):
        """Test entries leave the window after window_ms."""
        clock = MockClock(initial_ms=0)
        limiter = RateLimiter(max_requests=5, window_ms=1000, clock=clock)
        for _ in range(5):
            limiter.record_request()

        clock.advance(ms=999)
        assert not limiter.can_make_request()
        assert limiter.get_time_until_reset() == 1

        clock.advance(ms=1)
        assert limiter.can_make_request()
        assert limiter.get_time_until_reset() == 0

    @pytest.mark.asyncio
    async def test_wait_until_ready(self):
        """Test waiting sleeps until the oldest entry expires."""
        clock = MockClock(initial_ms=0)
        slept = []

        async def fake_sleep(seconds):
            slept.append(seconds)
            clock.advance(seconds=seconds)

        limiter = RateLimiter(max_requests=2, window_ms=1000, clock=clock, sleep=fake_sleep)
        limiter.record_request()
        limiter.record_request()
        clock.advance(ms=200)

        await limiter.wait_until_ready()

        assert slept == [0.8]
        assert limiter.can_make_request()

    @pytest.mark.asyncio
    async def test_no_wait_when_free(self):
        """Test wait_until_ready returns at once with free capacity."""
        sleep = AsyncMock()
        limiter = RateLimiter(max_requests=2, window_ms=1000, clock=MockClock(0), sleep=sleep)

        await limiter.wait_until_ready()

        sleep.assert_not_awaited()

    def test_status_and_reset(self):
        """Test status report and reset."""
        limiter = RateLimiter(max_requests=3, window_ms=1000, clock=MockClock(initial_ms=0))
        limiter.record_request()

        status = limiter.get_status()
        assert status["used"] == 1
        assert status["limit"] == 3
        assert status["reset_in_ms"] == 1000

        limiter.reset()
        assert limiter.get_status()["used"] == 0

    def test_invalid_limits(self):
        """Test non-positive limits are rejected."""
        with pytest.raises(ValueError):
            RateLimiter(max_requests=0, window_ms=1000)

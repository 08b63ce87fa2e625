"""
AsterDEX Client - HTTP Transport.

============================================================
PURPOSE
============================================================
Performs fully prepared requests over aiohttp.

- Per-request timeout
- Retry with exponential backoff on 5xx, 429/418 and network failures
- Retry-After honoured on rate-limit responses
- 4xx (other than 429/418) and auth failures never retried
- Query strings key-sorted and percent-encoded exactly as signed

============================================================
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

import aiohttp
from yarl import URL

from asterdex.config import RetryConfig
from asterdex.constants import DEFAULT_TIMEOUT_MS, HttpMethod
from asterdex.encoding import build_query_string
from asterdex.errors import (
    AsterError,
    NetworkError,
    RequestTimeoutError,
    error_from_http_response,
    get_retry_delay_ms,
    is_retryable_error,
)
from asterdex.logging_utils import RequestLogger
from asterdex.metrics import TransportMetrics


logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"


# ============================================================
# REQUEST / RESPONSE
# ============================================================

@dataclass
class HttpRequest:
    """A fully prepared request."""

    method: Union[HttpMethod, str]
    url: str
    headers: Dict[str, str] = field(default_factory=dict)

    params: Optional[Mapping[str, Any]] = None
    """Query parameters, serialized key-sorted."""

    form: Optional[Mapping[str, Any]] = None
    """Form body for POST/PUT (application/x-www-form-urlencoded)."""

    json_body: Any = None
    """JSON body for POST/PUT when no form is given."""

    timeout_ms: Optional[int] = None
    """Overrides the transport default."""

    @property
    def method_name(self) -> str:
        return self.method.value if isinstance(self.method, HttpMethod) else self.method.upper()

    def full_url(self) -> str:
        query = build_query_string(self.params)
        if not query:
            return self.url
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}{query}"


@dataclass
class HttpResponse:
    """Parsed response."""

    data: Any
    status: int
    status_text: str
    headers: Dict[str, str]


# ============================================================
# TRANSPORT
# ============================================================

class HttpTransport:
    """
    aiohttp-based transport with retry/backoff.

    The session is created lazily inside the running loop unless one
    is injected.
    """

    def __init__(
        self,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        retry: Optional[RetryConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        service: str = "asterdex",
        metrics: Optional[TransportMetrics] = None,
    ):
        """
        Initialize transport.

        Args:
            timeout_ms: Default per-request timeout
            retry: Retry policy
            session: Externally owned aiohttp session
            sleep: Coroutine taking seconds, used between retries
            service: Label for logs and metrics
            metrics: Metrics collector (created when omitted)
        """
        self._timeout_ms = timeout_ms
        self._retry = retry or RetryConfig()
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep or asyncio.sleep
        self._log = RequestLogger(service)
        self._metrics = metrics or TransportMetrics(service)

    @property
    def metrics(self) -> TransportMetrics:
        return self._metrics

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry

    # --------------------------------------------------------
    # SESSION
    # --------------------------------------------------------

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the session if this transport created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None if self._owns_session else self._session

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --------------------------------------------------------
    # REQUEST
    # --------------------------------------------------------

    async def request(self, request: HttpRequest) -> HttpResponse:
        """
        Perform a request, retrying retryable failures.

        Raises:
            ApiResponseError: Non-2xx response (RateLimitError for 429/418)
            RequestTimeoutError: Timeout after all retries
            NetworkError: Network failure after all retries
        """
        attempt = 0
        while True:
            try:
                return await self._send_once(request, attempt)
            except AsterError as e:
                if attempt >= self._retry.max_retries or not is_retryable_error(e):
                    if attempt > 0:
                        self._log.log_give_up(request.method_name, request.url, attempt, e)
                    raise

                delay_ms = get_retry_delay_ms(e, self._retry.delay_for(attempt))
                self._metrics.record_retry()
                self._log.log_retry(
                    request.method_name,
                    request.url,
                    delay_ms,
                    attempt + 1,
                    self._retry.max_retries,
                    e,
                )
                await self._sleep(delay_ms / 1000)
                attempt += 1

    async def _send_once(self, request: HttpRequest, attempt: int) -> HttpResponse:
        method = request.method_name
        url = request.full_url()
        headers = dict(request.headers)
        body: Optional[str] = None

        if method in ("POST", "PUT"):
            if request.form is not None:
                body = build_query_string(request.form)
                headers.setdefault("Content-Type", FORM_CONTENT_TYPE)
            elif request.json_body is not None:
                body = json.dumps(request.json_body)
                headers.setdefault("Content-Type", JSON_CONTENT_TYPE)

        timeout_ms = request.timeout_ms or self._timeout_ms
        request_id = self._log.log_request(
            method, url, headers=headers, body=body, attempt=attempt
        )
        endpoint = URL(request.url).path
        started = time.monotonic()

        try:
            async with self._get_session().request(
                method,
                URL(url, encoded=True),
                headers=headers,
                data=body,
                timeout=aiohttp.ClientTimeout(total=timeout_ms / 1000),
            ) as response:
                text = await response.text()
                status = response.status
                status_text = response.reason or ""
                response_headers = dict(response.headers)
        except asyncio.TimeoutError as e:
            error = RequestTimeoutError(timeout_ms, cause=e)
            self._record_failure(endpoint, request_id, started, None, error)
            raise error
        except aiohttp.ClientError as e:
            error = NetworkError(f"Network error: {e}", cause=e)
            self._record_failure(endpoint, request_id, started, None, error)
            raise error

        latency_ms = (time.monotonic() - started) * 1000

        if not 200 <= status < 300:
            error = error_from_http_response(status, text, response_headers, status_text)
            self._record_failure(endpoint, request_id, started, status, error)
            raise error

        data = _parse_body(text)
        self._metrics.record_request(endpoint, latency_ms, True, status_code=status)
        self._log.log_response(request_id, status, latency_ms, body=data)
        return HttpResponse(data=data, status=status, status_text=status_text, headers=response_headers)

    def _record_failure(
        self,
        endpoint: str,
        request_id: str,
        started: float,
        status: Optional[int],
        error: AsterError,
    ) -> None:
        latency_ms = (time.monotonic() - started) * 1000
        error_type = error.__class__.__name__
        self._metrics.record_request(
            endpoint, latency_ms, False, status_code=status, error_type=error_type
        )
        self._log.log_response(request_id, status, latency_ms, error=error)


def _parse_body(text: str) -> Any:
    if not text:
        return {}
    try:
        return json.loads(text)
    except ValueError:
        return text

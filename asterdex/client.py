"""
AsterDEX Client - Facade.

============================================================
PURPOSE
============================================================
Top-level entry point wiring configuration, authentication, rate
limiting, transports and the spot / futures / stream clients.

- One AuthManager shared by both REST clients, so credential
  rotation takes effect without rebuilding anything
- One RateLimiter shared by every REST call of this instance
- One HTTP transport per service, closed by close()

============================================================
USAGE
============================================================
```python
async with AsterDEX.from_env() as client:
    await client.ping()
    book = await client.spot.get_order_book("BTCUSDT", limit=5)

    stream = client.create_stream(StreamEventHandlers(on_trade=print))
    await stream.connect()
    await stream.subscribe(StreamNames.trade("BTCUSDT"))
```

============================================================
"""

import logging
from typing import Any, Dict, Optional

import aiohttp

from asterdex.auth.manager import AuthManager
from asterdex.clock import ClockProtocol, SchedulerProtocol, SystemClock
from asterdex.config import ClientConfig
from asterdex.rest.futures import FuturesClient
from asterdex.rest.spot import SpotClient
from asterdex.streams.connection import StreamConnection
from asterdex.streams.router import StreamEventHandlers
from asterdex.streams.socket import SocketFactory
from asterdex.transport.http import HttpTransport
from asterdex.transport.rate_limiter import RateLimiter


logger = logging.getLogger(__name__)


class AsterDEX:
    """
    AsterDEX exchange client.

    Attributes:
        spot: Spot REST client
        futures: Futures REST client
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Optional[ClockProtocol] = None,
        scheduler: Optional[SchedulerProtocol] = None,
        socket_factory: Optional[SocketFactory] = None,
    ):
        """
        Initialize client.

        Args:
            config: Client configuration (defaults, no credentials)
            session: Externally owned aiohttp session for REST calls
            clock: Time source for signing and rate limiting
            scheduler: Timer scheduler handed to stream connections
            socket_factory: Socket opener handed to stream connections
        """
        self._config = config or ClientConfig()
        self._clock = clock or SystemClock()
        self._scheduler = scheduler
        self._socket_factory = socket_factory

        self._auth = AuthManager(
            api_key=self._config.api_key,
            api_secret=self._config.api_secret,
            user_address=self._config.user_address,
            signer_address=self._config.signer_address,
            private_key=self._config.private_key,
            recv_window=self._config.recv_window,
            clock=self._clock,
        )

        self._rate_limiter: Optional[RateLimiter] = None
        if self._config.enable_rate_limiting:
            self._rate_limiter = RateLimiter(
                max_requests=self._config.rate_limit.max_requests,
                window_ms=self._config.rate_limit.window_ms,
                clock=self._clock,
            )

        self.spot = SpotClient(
            self._config.spot_url,
            self._auth,
            self._make_transport("spot", session),
            self._rate_limiter,
        )
        self.futures = FuturesClient(
            self._config.futures_url,
            self._auth,
            self._make_transport("futures", session),
            self._rate_limiter,
        )

        logger.info(
            f"AsterDEX client initialized ({self._config.environment}, "
            f"hmac={self._auth.has_hmac_credentials}, web3={self._auth.has_web3_credentials})"
        )

    def _make_transport(
        self,
        service: str,
        session: Optional[aiohttp.ClientSession],
    ) -> HttpTransport:
        return HttpTransport(
            timeout_ms=self._config.timeout_ms,
            retry=self._config.retry,
            session=session,
            service=service,
        )

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **kwargs: Any) -> "AsterDEX":
        """
        Build a client from ASTERDEX_* environment variables.

        Args:
            env_file: Optional .env file
            **kwargs: Forwarded to the constructor (session, clock, ...)
        """
        return cls(ClientConfig.from_env(env_file), **kwargs)

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def auth(self) -> AuthManager:
        return self._auth

    @property
    def rate_limiter(self) -> Optional[RateLimiter]:
        return self._rate_limiter

    # --------------------------------------------------------
    # CREDENTIALS
    # --------------------------------------------------------

    def update_credentials(self, api_key: Optional[str], api_secret: Optional[str]) -> None:
        """Rotate the HMAC credential set for all REST clients."""
        self._auth.update_credentials(api_key, api_secret)

    def update_web3_credentials(
        self,
        user_address: Optional[str],
        signer_address: Optional[str],
        private_key: Optional[str],
    ) -> None:
        """
        Rotate the Web3 credential set for all REST clients.

        Raises:
            AuthError: If the new set is incomplete or malformed
        """
        self._auth.update_web3_credentials(user_address, signer_address, private_key)

    # --------------------------------------------------------
    # CONNECTIVITY
    # --------------------------------------------------------

    async def ping(self) -> Dict[str, Any]:
        """Test spot API connectivity."""
        return await self.spot.ping()

    async def get_server_time(self) -> int:
        """Spot server time in ms."""
        response = await self.spot.get_server_time()
        return int(response["serverTime"])

    # --------------------------------------------------------
    # STREAMS
    # --------------------------------------------------------

    def create_stream(
        self,
        handlers: Optional[StreamEventHandlers] = None,
        path: str = "/ws",
    ) -> StreamConnection:
        """Raw-stream connection at websocket_url + path (not yet connected)."""
        url = f"{self._config.websocket_url.rstrip('/')}{path}"
        return StreamConnection(
            url,
            config=self._config.websocket,
            handlers=handlers,
            socket_factory=self._socket_factory,
            scheduler=self._scheduler,
        )

    def create_combined_stream(
        self,
        handlers: Optional[StreamEventHandlers] = None,
    ) -> StreamConnection:
        """Combined-stream connection; frames arrive as {stream, data}."""
        return self.create_stream(handlers, path="/stream")

    def create_user_data_stream(
        self,
        listen_key: str,
        handlers: Optional[StreamEventHandlers] = None,
    ) -> StreamConnection:
        """User data stream for a listen key from start_user_data_stream()."""
        return self.create_stream(handlers, path=f"/ws/{listen_key}")

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def close(self) -> None:
        """Release HTTP sessions owned by the REST transports."""
        await self.spot.close()
        await self.futures.close()

    async def __aenter__(self) -> "AsterDEX":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

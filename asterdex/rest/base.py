"""
AsterDEX Client - REST Base Client.

============================================================
PURPOSE
============================================================
Routing-table core shared by the spot and futures clients.

Every operation is an Endpoint (method, path, auth tier, signing
scheme, required fields). request() validates, waits on the shared
rate limiter, signs through the Auth Manager and hands the prepared
request to the transport.

============================================================
PARAMETER PLACEMENT
============================================================
- HMAC-signed tiers      -> query string (all verbs)
- GET/DELETE otherwise   -> query string
- POST/PUT otherwise     -> form body

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple

from asterdex.auth.manager import AuthManager
from asterdex.constants import AuthType, HttpMethod, SigningScheme
from asterdex.encoding import is_empty
from asterdex.errors import ValidationError
from asterdex.transport.http import HttpRequest, HttpTransport
from asterdex.transport.rate_limiter import RateLimiter


logger = logging.getLogger(__name__)


# ============================================================
# ENDPOINT
# ============================================================

@dataclass(frozen=True)
class Endpoint:
    """One row of a routing table."""

    method: HttpMethod
    path: str
    auth: AuthType = AuthType.NONE
    scheme: SigningScheme = SigningScheme.HMAC
    required: Tuple[str, ...] = ()

    @property
    def signs_into_query(self) -> bool:
        return self.auth.requires_signature and self.scheme is SigningScheme.HMAC


def validate_required(params: Optional[Mapping[str, Any]], fields: Iterable[str]) -> None:
    """
    Check that every field is present and non-empty.

    Raises:
        ValidationError: Naming the first missing field
    """
    params = params or {}
    for name in fields:
        if name not in params or is_empty(params[name]):
            raise ValidationError(f"Missing required parameter: {name}", field=name)


def with_optional(params: dict, **optional: Any) -> dict:
    """Add keyword values that are not None to params (camelCase keys)."""
    for key, value in optional.items():
        if value is not None:
            params[key] = value
    return params


# ============================================================
# BASE CLIENT
# ============================================================

class BaseRestClient:
    """Dispatches routing-table endpoints through auth and transport."""

    service = "rest"

    def __init__(
        self,
        base_url: str,
        auth: AuthManager,
        transport: HttpTransport,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """
        Initialize client.

        Args:
            base_url: Service root URL
            auth: Shared auth manager
            transport: HTTP transport
            rate_limiter: Shared limiter; None disables rate limiting
        """
        self._base_url = base_url.rstrip("/")
        self._auth = auth
        self._transport = transport
        self._rate_limiter = rate_limiter

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def auth(self) -> AuthManager:
        return self._auth

    @property
    def transport(self) -> HttpTransport:
        return self._transport

    async def request(
        self,
        endpoint: Endpoint,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Call an endpoint.

        Args:
            endpoint: Routing-table row
            params: Caller parameters

        Returns:
            Parsed response body

        Raises:
            ValidationError: Before any I/O when a required field is missing
            AuthError: Before any I/O when credentials are missing
            ApiResponseError / NetworkError: From the transport
        """
        validate_required(params, endpoint.required)
        self._auth.ensure_credentials(endpoint.auth, endpoint.scheme)

        if self._rate_limiter is not None:
            await self._rate_limiter.wait_until_ready()
            self._rate_limiter.record_request()

        # Signed after the limiter wait so the timestamp is fresh
        prepared = self._auth.prepare(endpoint.auth, params, endpoint.scheme)
        url = f"{self._base_url}{endpoint.path}"

        if endpoint.signs_into_query or endpoint.method in (HttpMethod.GET, HttpMethod.DELETE):
            http_request = HttpRequest(
                endpoint.method, url, headers=prepared.headers, params=prepared.params
            )
        else:
            http_request = HttpRequest(
                endpoint.method, url, headers=prepared.headers, form=prepared.params
            )

        logger.debug(f"{self.service}: {endpoint.method.value} {endpoint.path} ({endpoint.auth.value})")
        response = await self._transport.request(http_request)
        return response.data

    async def close(self) -> None:
        await self._transport.close()

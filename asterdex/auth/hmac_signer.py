"""
AsterDEX Client - HMAC Signer.

============================================================
PURPOSE
============================================================
Symmetric-key signatures for spot-style endpoints.

- HMAC-SHA256 over the UTF-8 canonical query string
- Lowercase hex digest sent as the `signature` parameter
- API key sent in the X-MBX-APIKEY header

============================================================
"""

import hashlib
import hmac
import logging
from typing import Any, Dict, Mapping, Optional

from asterdex.clock import ClockProtocol, SystemClock
from asterdex.constants import DEFAULT_RECV_WINDOW
from asterdex.encoding import build_query_string, stringify_params
from asterdex.errors import AuthError


logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-MBX-APIKEY"


class HmacSigner:
    """Signs parameter sets with a shared secret."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize signer.

        Args:
            api_key: API key sent in the header
            api_secret: Shared secret used for HMAC

        Raises:
            AuthError: If the key or secret is missing
        """
        if not api_key or not api_secret:
            raise AuthError("API key and secret are required for HMAC signing")
        self._api_key = api_key
        self._api_secret = api_secret
        self._clock = clock or SystemClock()

    @property
    def api_key(self) -> str:
        return self._api_key

    # --------------------------------------------------------
    # SIGNING
    # --------------------------------------------------------

    @staticmethod
    def build_query_string(params: Optional[Mapping[str, Any]]) -> str:
        """Canonical query string the signature is computed over."""
        return build_query_string(params)

    def sign(self, query_string: str) -> str:
        """HMAC-SHA256 hex digest of the query string."""
        return hmac.new(
            self._api_secret.encode("utf-8"),
            query_string.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def sign_params(self, params: Optional[Mapping[str, Any]]) -> str:
        """Signature over the canonical form of params."""
        return self.sign(build_query_string(params))

    def sign_request(
        self,
        params: Optional[Mapping[str, Any]] = None,
        recv_window: Optional[int] = None,
    ) -> Dict[str, str]:
        """
        Produce the signed parameter set for a request.

        Args:
            params: Caller parameters
            recv_window: Optional validity window in ms

        Returns:
            String params including timestamp, recvWindow (if given)
            and signature
        """
        signed: Dict[str, Any] = dict(params or {})
        signed["timestamp"] = self._clock.now_ms()
        if recv_window is not None:
            signed["recvWindow"] = recv_window

        result = stringify_params(signed)
        result["signature"] = self.sign_params(result)
        return result

    def create_headers(self) -> Dict[str, str]:
        return {API_KEY_HEADER: self._api_key}

    # --------------------------------------------------------
    # VALIDATION
    # --------------------------------------------------------

    def validate_timestamp(self, timestamp: int, window_ms: int = DEFAULT_RECV_WINDOW) -> bool:
        """Whether abs(now - timestamp) is within the window."""
        return abs(self._clock.now_ms() - timestamp) <= window_ms

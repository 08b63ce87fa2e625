"""
AsterDEX Client - Auth Manager.

============================================================
PURPOSE
============================================================
Selects HMAC vs. Web3 vs. no authentication per call.

- Holds at most one HMAC and one Web3 credential set
- Produces headers and signed parameter sets per auth tier
- Credentials live in one immutable cell that is swapped whole,
  so a signing call never observes a half-updated state

============================================================
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

from asterdex.auth.hmac_signer import HmacSigner
from asterdex.auth.web3_signer import Web3SignatureEngine
from asterdex.clock import ClockProtocol, SystemClock
from asterdex.constants import USER_AGENT, AuthType, SigningScheme
from asterdex.encoding import stringify_params
from asterdex.errors import AuthError, ConfigError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CredentialCell:
    """Snapshot of all credentials; replaced, never mutated."""

    hmac: Optional[HmacSigner] = None
    web3: Optional[Web3SignatureEngine] = None


@dataclass(frozen=True)
class PreparedAuth:
    """Headers and wire params for one request."""

    headers: Dict[str, str]
    params: Dict[str, str]
    signed: bool


class AuthManager:
    """
    Produces authenticated request material.

    Usage:
        auth = AuthManager(api_key="...", api_secret="...")
        prepared = auth.prepare(AuthType.TRADE, {"symbol": "BTCUSDT"})
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        user_address: Optional[str] = None,
        signer_address: Optional[str] = None,
        private_key: Optional[str] = None,
        recv_window: Optional[int] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize auth manager.

        Args:
            api_key: HMAC API key
            api_secret: HMAC secret
            user_address: Web3 user (main wallet) address
            signer_address: Web3 signer (API wallet) address
            private_key: Web3 signer private key
            recv_window: recvWindow attached to HMAC-signed requests
            clock: Time source for timestamps and nonces
        """
        self._clock = clock or SystemClock()
        self._recv_window = recv_window
        self._cell = _CredentialCell()

        if api_key or api_secret:
            self.update_credentials(api_key, api_secret)
        if user_address or signer_address or private_key:
            self.update_web3_credentials(user_address, signer_address, private_key)

    # --------------------------------------------------------
    # CREDENTIALS
    # --------------------------------------------------------

    @property
    def has_api_key(self) -> bool:
        return self._cell.hmac is not None

    @property
    def has_hmac_credentials(self) -> bool:
        return self._cell.hmac is not None

    @property
    def has_web3_credentials(self) -> bool:
        return self._cell.web3 is not None

    @property
    def web3_engine(self) -> Optional[Web3SignatureEngine]:
        return self._cell.web3

    def update_credentials(
        self,
        api_key: Optional[str],
        api_secret: Optional[str],
    ) -> None:
        """
        Replace the HMAC credential set.

        Passing a missing key or secret clears the set.
        """
        signer = None
        if api_key and api_secret:
            signer = HmacSigner(api_key, api_secret, clock=self._clock)
        self._cell = replace(self._cell, hmac=signer)
        logger.info(f"HMAC credentials {'updated' if signer else 'cleared'}")

    def update_web3_credentials(
        self,
        user_address: Optional[str],
        signer_address: Optional[str],
        private_key: Optional[str],
    ) -> None:
        """
        Replace the Web3 credential set.

        Passing all three as None clears the set; a partial set raises.

        Raises:
            AuthError: If the new credentials are incomplete or malformed
        """
        engine = None
        if user_address or signer_address or private_key:
            engine = Web3SignatureEngine(
                user_address, signer_address, private_key, clock=self._clock
            )
        self._cell = replace(self._cell, web3=engine)
        logger.info(f"Web3 credentials {'updated' if engine else 'cleared'}")

    # --------------------------------------------------------
    # HEADERS
    # --------------------------------------------------------

    def create_headers(
        self,
        auth_type: AuthType,
        scheme: SigningScheme = SigningScheme.HMAC,
    ) -> Dict[str, str]:
        """
        Headers for an auth tier.

        Raises:
            AuthError: If the tier needs an API key and none is set
            ConfigError: If auth_type is not an AuthType
        """
        return self._headers(self._cell, auth_type, scheme)

    @staticmethod
    def _headers(
        cell: _CredentialCell,
        auth_type: AuthType,
        scheme: SigningScheme,
    ) -> Dict[str, str]:
        if not isinstance(auth_type, AuthType):
            raise ConfigError(f"Unknown auth type: {auth_type!r}")

        headers = {"User-Agent": USER_AGENT}
        if auth_type is AuthType.NONE or scheme is SigningScheme.WEB3:
            return headers

        if cell.hmac is None:
            raise AuthError(f"API key required for {auth_type.value} endpoints")
        headers.update(cell.hmac.create_headers())
        return headers

    # --------------------------------------------------------
    # SIGNING
    # --------------------------------------------------------

    def sign_hmac(self, params: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
        """HMAC-signed params with timestamp and the configured recvWindow."""
        signer = self._cell.hmac
        if signer is None:
            raise AuthError("API key and secret are required for signed endpoints")
        return signer.sign_request(params, recv_window=self._recv_window)

    def sign_web3(self, params: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
        """Web3-signed params."""
        engine = self._cell.web3
        if engine is None:
            raise AuthError("Web3 credentials (user, signer, private key) are required")
        return engine.sign_request(params)

    def ensure_credentials(
        self,
        auth_type: AuthType,
        scheme: SigningScheme = SigningScheme.HMAC,
    ) -> None:
        """
        Check a tier can be served without signing anything.

        Raises:
            AuthError: If the required credential set is absent
        """
        cell = self._cell
        self._headers(cell, auth_type, scheme)
        if auth_type.requires_signature:
            self._require_signer(cell, scheme)

    @staticmethod
    def _require_signer(cell: _CredentialCell, scheme: SigningScheme) -> None:
        if scheme is SigningScheme.WEB3:
            if cell.web3 is None:
                raise AuthError("Web3 credentials (user, signer, private key) are required")
        elif cell.hmac is None:
            raise AuthError("API key and secret are required for signed endpoints")

    def prepare(
        self,
        auth_type: AuthType,
        params: Optional[Mapping[str, Any]] = None,
        scheme: SigningScheme = SigningScheme.HMAC,
    ) -> PreparedAuth:
        """
        Headers and wire params for a request.

        Signed tiers are signed by HMAC or Web3 depending on the
        endpoint family's scheme; other tiers only stringify params.

        Raises:
            AuthError: If the required credential set is absent
        """
        cell = self._cell
        headers = self._headers(cell, auth_type, scheme)

        if not auth_type.requires_signature:
            return PreparedAuth(headers=headers, params=stringify_params(params), signed=False)

        self._require_signer(cell, scheme)
        if scheme is SigningScheme.WEB3:
            signed = cell.web3.sign_request(params)
        else:
            signed = cell.hmac.sign_request(params, recv_window=self._recv_window)

        return PreparedAuth(headers=headers, params=signed, signed=True)

"""
AsterDEX Client - Web3 Signature Engine.

============================================================
PURPOSE
============================================================
Asymmetric signatures required by the futures v3 endpoints.

The signature binds (params, user, signer, nonce) and is verified
server-side by recovering the signer address.

============================================================
SIGNING PIPELINE
============================================================
1. CANONICALIZE - inject timestamp/recvWindow, drop empty values,
                  stringify every value, key-sorted JSON, strip whitespace
2. ABI ENCODE   - (string, address, address, uint256)
3. HASH         - Keccak-256 of the encoded bytes
4. SIGN         - personal-sign ("\\x19Ethereum Signed Message:\\n32")
                  over the 32-byte hash, 0x + 130 hex output

Every stage failure is raised as AuthError naming the stage.

============================================================
"""

import json
import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from eth_abi import encode as abi_encode
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak, to_checksum_address

from asterdex.clock import ClockProtocol, SystemClock
from asterdex.constants import DEFAULT_WEB3_RECV_WINDOW
from asterdex.encoding import clean_params, stringify_value
from asterdex.errors import AuthError


logger = logging.getLogger(__name__)


ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")
PRIVATE_KEY_PATTERN = re.compile(r"(0x)?[a-fA-F0-9]{64}")
SIGNATURE_PATTERN = re.compile(r"0x[a-fA-F0-9]{130}")

ABI_TYPES = ["string", "address", "address", "uint256"]

_WHITESPACE = re.compile(r"\s")
_COMPACT = (",", ":")


# ============================================================
# CANONICALIZATION
# ============================================================

def _dumps(value: Any, sort_keys: bool = False) -> str:
    return json.dumps(value, separators=_COMPACT, ensure_ascii=False, sort_keys=sort_keys)


def trim_value(value: Any) -> str:
    """
    Recursively stringify a parameter value.

    Mappings become inner JSON strings; sequences become a JSON array of
    strings, where mapping items are themselves inner JSON strings.
    """
    if isinstance(value, Mapping):
        return _dumps(trim_mapping(value))
    if isinstance(value, (list, tuple)):
        items = [
            _dumps(trim_mapping(item)) if isinstance(item, Mapping) else stringify_value(item)
            for item in value
        ]
        return _dumps(items)
    return stringify_value(value)


def trim_mapping(mapping: Mapping[str, Any]) -> Dict[str, str]:
    """Stringify every value of a mapping, preserving key order."""
    return {key: trim_value(value) for key, value in mapping.items()}


def build_canonical_json(params: Mapping[str, Any]) -> str:
    """
    Canonical JSON signed by the engine.

    Args:
        params: Parameters including timestamp and recvWindow

    Returns:
        Key-sorted JSON of stringified values with all whitespace removed
    """
    trimmed = trim_mapping(clean_params(params))
    text = _dumps(trimmed, sort_keys=True)
    return _WHITESPACE.sub("", text).replace("'", '"')


# ============================================================
# NONCE
# ============================================================

class NonceGenerator:
    """
    Strictly increasing microsecond nonces.

    Based on milliseconds * 1000; calls landing in the same millisecond
    (or after a clock step backwards) take last + 1.
    """

    def __init__(self, clock: Optional[ClockProtocol] = None):
        self._clock = clock or SystemClock()
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            nonce = max(self._clock.now_ms() * 1000, self._last + 1)
            self._last = nonce
            return nonce

    @property
    def last(self) -> int:
        return self._last


# ============================================================
# SIGNATURE RESULT
# ============================================================

@dataclass(frozen=True)
class Web3Signature:
    """Authentication fields attached to a Web3-signed request."""

    user: str
    signer: str
    nonce: int
    signature: str
    timestamp: int
    recv_window: int

    def to_params(self) -> Dict[str, str]:
        """Wire form of the authentication fields."""
        return {
            "user": self.user,
            "signer": self.signer,
            "nonce": str(self.nonce),
            "signature": self.signature,
            "timestamp": str(self.timestamp),
            "recvWindow": str(self.recv_window),
        }


# ============================================================
# ENGINE
# ============================================================

class Web3SignatureEngine:
    """
    Produces Ethereum personal-sign signatures over request parameters.

    One engine holds one (user, signer, private key) triple and its own
    nonce sequence.
    """

    def __init__(
        self,
        user_address: str,
        signer_address: str,
        private_key: str,
        clock: Optional[ClockProtocol] = None,
        nonce_generator: Optional[NonceGenerator] = None,
    ):
        """
        Initialize engine.

        Args:
            user_address: Main account wallet address
            signer_address: API wallet address
            private_key: Signer private key, with or without 0x

        Raises:
            AuthError: If any credential is missing or malformed
        """
        if not user_address or not signer_address or not private_key:
            raise AuthError("User address, signer address and private key are required")
        if not self.validate_addresses(user_address, signer_address):
            raise AuthError("Invalid user or signer address format")
        if not self.validate_private_key(private_key):
            raise AuthError("Invalid private key format")

        try:
            self._account = Account.from_key(_normalize_key(private_key))
        except ValueError as e:
            raise AuthError(f"Invalid private key: {e}")

        self._user = user_address
        self._signer = signer_address
        self._clock = clock or SystemClock()
        self._nonces = nonce_generator or NonceGenerator(self._clock)

        if self._account.address.lower() != signer_address.lower():
            logger.warning(
                f"Private key address {self._account.address} does not match "
                f"signer {signer_address}"
            )

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def user_address(self) -> str:
        return self._user

    @property
    def signer_address(self) -> str:
        return self._signer

    @property
    def account_address(self) -> str:
        """Address derived from the private key."""
        return self._account.address

    # --------------------------------------------------------
    # PIPELINE STAGES
    # --------------------------------------------------------

    @staticmethod
    def encode_payload(canonical_json: str, user: str, signer: str, nonce: int) -> bytes:
        """ABI-encode (string, address, address, uint256)."""
        try:
            return abi_encode(
                ABI_TYPES,
                [canonical_json, to_checksum_address(user), to_checksum_address(signer), nonce],
            )
        except Exception as e:
            raise AuthError(f"Web3 signing failed at ABI encoding: {e}")

    @staticmethod
    def hash_payload(encoded: bytes) -> bytes:
        """Keccak-256 of the encoded payload."""
        digest = keccak(encoded)
        if len(digest) != 32:
            raise AuthError(f"Web3 signing failed at hashing: expected 32 bytes, got {len(digest)}")
        return digest

    def sign_hash(self, digest: bytes) -> str:
        """Personal-sign a 32-byte hash, returning 0x + 130 hex."""
        try:
            signed = self._account.sign_message(encode_defunct(primitive=digest))
        except Exception as e:
            raise AuthError(f"Web3 signing failed at message signing: {e}")

        signature = "0x" + bytes(signed.signature).hex()
        if not SIGNATURE_PATTERN.fullmatch(signature):
            raise AuthError(f"Web3 signing failed at message signing: malformed signature {signature[:10]}...")
        return signature

    @staticmethod
    def recover_address(digest: bytes, signature: str) -> str:
        """Address that produced a personal-sign signature over digest."""
        return Account.recover_message(encode_defunct(primitive=digest), signature=signature)

    # --------------------------------------------------------
    # PUBLIC OPERATIONS
    # --------------------------------------------------------

    def generate_signature(
        self,
        params: Optional[Mapping[str, Any]] = None,
        nonce: Optional[int] = None,
        timestamp: Optional[int] = None,
    ) -> Web3Signature:
        """
        Sign a parameter set.

        Args:
            params: Caller parameters
            nonce: Fixed nonce (generated when omitted)
            timestamp: Fixed timestamp in ms (current time when omitted)

        Returns:
            Web3Signature with all authentication fields

        Raises:
            AuthError: If any pipeline stage fails
        """
        params = dict(params or {})
        if timestamp is None:
            timestamp = self._clock.now_ms()
        recv_window = params.get("recvWindow") or DEFAULT_WEB3_RECV_WINDOW
        sign_params = {**params, "timestamp": timestamp, "recvWindow": recv_window}

        try:
            canonical = build_canonical_json(sign_params)
        except (TypeError, ValueError) as e:
            raise AuthError(f"Web3 signing failed at canonicalization: {e}")

        if nonce is None:
            nonce = self._nonces.next()

        encoded = self.encode_payload(canonical, self._user, self._signer, nonce)
        digest = self.hash_payload(encoded)
        signature = self.sign_hash(digest)

        logger.debug(f"Web3 signature generated for nonce {nonce}")

        return Web3Signature(
            user=self._user,
            signer=self._signer,
            nonce=nonce,
            signature=signature,
            timestamp=int(timestamp),
            recv_window=int(recv_window),
        )

    def sign_request(self, params: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
        """
        Signed wire parameters.

        Caller values are sent exactly as they were signed (stringified),
        followed by the authentication fields.
        """
        cleaned = clean_params(params)
        auth = self.generate_signature(cleaned)
        result = trim_mapping(cleaned)
        result.update(auth.to_params())
        return result

    # --------------------------------------------------------
    # VALIDATORS
    # --------------------------------------------------------

    @staticmethod
    def validate_addresses(user_address: str, signer_address: str) -> bool:
        """Both addresses must be 0x + exactly 40 hex characters."""
        return all(
            isinstance(address, str) and ADDRESS_PATTERN.fullmatch(address) is not None
            for address in (user_address, signer_address)
        )

    @staticmethod
    def validate_private_key(private_key: str) -> bool:
        """64 hex characters, with or without 0x."""
        return isinstance(private_key, str) and PRIVATE_KEY_PATTERN.fullmatch(private_key) is not None


def _normalize_key(private_key: str) -> str:
    return private_key if private_key.startswith("0x") else f"0x{private_key}"

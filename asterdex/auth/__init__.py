"""
AsterDEX Client - Authentication.

HMAC signing for spot-style endpoints, Web3 signing for futures v3
endpoints, and the manager that picks between them per auth tier.
"""

from asterdex.auth.hmac_signer import API_KEY_HEADER, HmacSigner
from asterdex.auth.manager import AuthManager, PreparedAuth
from asterdex.auth.web3_signer import (
    NonceGenerator,
    Web3Signature,
    Web3SignatureEngine,
    build_canonical_json,
)


__all__ = [
    "API_KEY_HEADER",
    "HmacSigner",
    "AuthManager",
    "PreparedAuth",
    "NonceGenerator",
    "Web3Signature",
    "Web3SignatureEngine",
    "build_canonical_json",
]

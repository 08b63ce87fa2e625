"""
AsterDEX Client - Request Logging.

============================================================
PURPOSE
============================================================
Log lines for REST traffic that never carry credentials.

What gets redacted:
- The X-MBX-APIKEY header
- HMAC `signature`, Web3 `signature` / `userSignature`, `privateKey`,
  `apiSecret` and `listenKey` values, whether they sit in a URL query
  or a form-encoded body
- Anything shaped like an ECDSA signature (130 hex) or a private key /
  HMAC digest (64 hex) inside free text such as server error messages

Addresses (40 hex) are left readable: `user` and `signer` are needed
to tell requests apart and are public.

============================================================
"""

import logging
import re
from typing import Any, Mapping, Optional


logger = logging.getLogger(__name__)


# ============================================================
# REDACTION RULES
# ============================================================

REDACTED = "****"

SECRET_HEADERS = frozenset({"x-mbx-apikey"})

SECRET_FIELDS = frozenset({
    "signature",
    "usersignature",
    "privatekey",
    "apisecret",
    "secret",
    "listenkey",
})

_ECDSA_SIGNATURE = re.compile(r"\b(?:0x)?[0-9a-fA-F]{130}\b")
_HEX_SECRET = re.compile(r"\b(?:0x)?[0-9a-fA-F]{64}\b")

PREVIEW_CHARS = 200


def redact(value: Any, keep: int = 4) -> str:
    """
    Hide a secret, keeping a short prefix when the value is long enough
    that the prefix does not give it away.
    """
    text = "" if value is None else str(value)
    if len(text) <= keep * 2:
        return REDACTED
    return f"{text[:keep]}{REDACTED}"


def scrub_text(text: str) -> str:
    """Replace signature- and key-shaped hex runs in free text."""
    if not text:
        return text
    text = _ECDSA_SIGNATURE.sub("<sig>", text)
    return _HEX_SECRET.sub("<hex64>", text)


def redact_headers(headers: Optional[Mapping[str, str]]) -> dict:
    if not headers:
        return {}
    return {
        name: redact(value) if name.lower() in SECRET_HEADERS else value
        for name, value in headers.items()
    }


def redact_query(query: Optional[str]) -> str:
    """
    Redact secret fields in an encoded `k=v&k=v` string.

    The string is not decoded and re-encoded, so non-secret pairs stay
    byte-identical to what went on the wire.
    """
    if not query:
        return ""
    pairs = []
    for pair in query.split("&"):
        name, sep, value = pair.partition("=")
        if sep and name.lower() in SECRET_FIELDS:
            pairs.append(f"{name}={REDACTED}")
        else:
            pairs.append(scrub_text(pair))
    return "&".join(pairs)


def redact_url(url: str) -> str:
    base, sep, query = url.partition("?")
    if not sep:
        return url
    return f"{base}?{redact_query(query)}"


def _preview(body: Any) -> str:
    text = body if isinstance(body, str) else repr(body)
    if len(text) > PREVIEW_CHARS:
        text = text[:PREVIEW_CHARS] + "..."
    return scrub_text(text)


# ============================================================
# REQUEST LOGGER
# ============================================================

class RequestLogger:
    """
    Per-transport request logger.

    Each request gets a `<service>-<n>` id so a request line can be
    matched with its response line and with retry warnings.
    """

    def __init__(self, service: str, logger_name: Optional[str] = None):
        self._service = service
        self._logger = logging.getLogger(logger_name or f"asterdex.transport.{service}")
        self._sequence = 0

    @property
    def service(self) -> str:
        return self._service

    def log_request(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
        attempt: int = 0,
    ) -> str:
        """
        Log an outgoing request at DEBUG.

        Args:
            method: HTTP method
            url: Full URL including the (possibly signed) query
            headers: Request headers
            body: Form-encoded body for POST/PUT
            attempt: Retry attempt, 0 for the first send

        Returns:
            Request id used by the matching log_response call
        """
        self._sequence += 1
        request_id = f"{self._service}-{self._sequence}"

        if self._logger.isEnabledFor(logging.DEBUG):
            line = f"[{request_id}] {method} {redact_url(url)}"
            if attempt:
                line += f" attempt={attempt}"
            if headers:
                line += f" headers={redact_headers(headers)}"
            if body:
                line += f" body={redact_query(body)}"
            self._logger.debug(line)
        return request_id

    def log_response(
        self,
        request_id: str,
        status: Optional[int],
        latency_ms: float,
        body: Any = None,
        error: Optional[BaseException] = None,
    ) -> None:
        """Log a response at DEBUG, or a failed call at WARNING."""
        status_text = status if status is not None else "-"
        if error is None:
            if self._logger.isEnabledFor(logging.DEBUG):
                self._logger.debug(
                    f"[{request_id}] {status_text} in {latency_ms:.1f}ms {_preview(body)}"
                )
            return

        self._logger.warning(
            f"[{request_id}] {status_text} in {latency_ms:.1f}ms "
            f"{error.__class__.__name__}: {scrub_text(str(error))}"
        )

    def log_retry(
        self,
        method: str,
        url: str,
        delay_ms: float,
        attempt: int,
        max_retries: int,
        error: BaseException,
    ) -> None:
        self._logger.warning(
            f"[{self._service}] Retrying {method} {redact_url(url)} in {delay_ms:.0f}ms "
            f"(attempt {attempt}/{max_retries}): {scrub_text(str(error))}"
        )

    def log_give_up(self, method: str, url: str, retries: int, error: BaseException) -> None:
        self._logger.error(
            f"[{self._service}] Giving up on {method} {redact_url(url)} "
            f"after {retries} retries: {scrub_text(str(error))}"
        )


__all__ = [
    "RequestLogger",
    "redact",
    "redact_headers",
    "redact_query",
    "redact_url",
    "scrub_text",
]

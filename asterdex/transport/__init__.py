"""
AsterDEX Client - Transport.

Rate limiting and HTTP delivery of prepared requests.
"""

from asterdex.transport.http import HttpRequest, HttpResponse, HttpTransport
from asterdex.transport.rate_limiter import RateLimiter


__all__ = [
    "HttpRequest",
    "HttpResponse",
    "HttpTransport",
    "RateLimiter",
]

"""
AsterDEX Client - Transport Metrics.

============================================================
PURPOSE
============================================================
Metrics collection for one client's transport.

METRICS TRACKED:
- Request latency (overall and by endpoint)
- Request success/failure counts
- Retries and rate-limit hits
- Timeouts and connection errors

============================================================
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)


# ============================================================
# METRIC TYPES
# ============================================================

class MetricType(Enum):
    """Types of counted events."""

    REQUEST_SUCCESS = "request_success"
    REQUEST_FAILURE = "request_failure"
    RETRY = "retry"
    RATE_LIMIT_HIT = "rate_limit_hit"
    CONNECTION_ERROR = "connection_error"
    TIMEOUT = "timeout"


@dataclass
class LatencyStats:
    """Latency statistics."""

    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        """Average latency in ms."""
        return self.total_ms / self.count if self.count > 0 else 0.0

    def record(self, latency_ms: float) -> None:
        """Record a latency measurement."""
        self.count += 1
        self.total_ms += latency_ms
        self.min_ms = min(self.min_ms, latency_ms)
        self.max_ms = max(self.max_ms, latency_ms)

    def to_dict(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "avg_ms": self.avg_ms,
            "min_ms": self.min_ms if self.min_ms != float("inf") else 0,
            "max_ms": self.max_ms,
        }


# ============================================================
# TRANSPORT METRICS
# ============================================================

class TransportMetrics:
    """Metrics collector for one transport instance."""

    def __init__(self, service: str, max_recent: int = 100):
        """
        Initialize metrics.

        Args:
            service: Service label
            max_recent: Number of recent requests kept for debugging
        """
        self._service = service
        self._start_time = datetime.now(timezone.utc)
        self._latency: Dict[str, LatencyStats] = defaultdict(LatencyStats)
        self._counters: Dict[MetricType, int] = {mt: 0 for mt in MetricType}
        self._status_codes: Dict[int, int] = defaultdict(int)
        self._recent_requests: List[Dict[str, Any]] = []
        self._max_recent = max_recent

    # --------------------------------------------------------
    # RECORDING
    # --------------------------------------------------------

    def record_request(
        self,
        endpoint: str,
        latency_ms: float,
        success: bool,
        status_code: Optional[int] = None,
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record a completed request attempt.

        Args:
            endpoint: URL path
            latency_ms: Request latency in ms
            success: Whether request succeeded
            status_code: HTTP status code, if a response arrived
            error_type: Error class name if failed
        """
        self._latency[endpoint].record(latency_ms)
        self._latency["_all"].record(latency_ms)

        if status_code is not None:
            self._status_codes[status_code] += 1

        if success:
            self._counters[MetricType.REQUEST_SUCCESS] += 1
        else:
            self._counters[MetricType.REQUEST_FAILURE] += 1
            if error_type == "RateLimitError":
                self._counters[MetricType.RATE_LIMIT_HIT] += 1
            elif error_type == "RequestTimeoutError":
                self._counters[MetricType.TIMEOUT] += 1
            elif error_type == "NetworkError":
                self._counters[MetricType.CONNECTION_ERROR] += 1

        self._recent_requests.append({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "endpoint": endpoint,
            "latency_ms": latency_ms,
            "success": success,
            "status_code": status_code,
            "error_type": error_type,
        })
        if len(self._recent_requests) > self._max_recent:
            self._recent_requests.pop(0)

    def record_retry(self) -> None:
        """Record a retry decision."""
        self._counters[MetricType.RETRY] += 1

    # --------------------------------------------------------
    # REPORTING
    # --------------------------------------------------------

    def count(self, metric: MetricType) -> int:
        return self._counters[metric]

    def get_summary(self) -> Dict[str, Any]:
        """
        Get metrics summary.

        Returns:
            Dict with all metrics
        """
        uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()
        success = self._counters[MetricType.REQUEST_SUCCESS]
        failure = self._counters[MetricType.REQUEST_FAILURE]
        total = success + failure

        return {
            "service": self._service,
            "uptime_seconds": uptime,
            "requests": {
                "total": total,
                "success": success,
                "failure": failure,
                "success_rate": success / total if total > 0 else 1.0,
                "retries": self._counters[MetricType.RETRY],
            },
            "latency": self._latency.get("_all", LatencyStats()).to_dict(),
            "errors": {
                "rate_limit_hits": self._counters[MetricType.RATE_LIMIT_HIT],
                "timeouts": self._counters[MetricType.TIMEOUT],
                "connection_errors": self._counters[MetricType.CONNECTION_ERROR],
                "by_status": dict(self._status_codes),
            },
        }

    def get_latency_by_endpoint(self) -> Dict[str, Dict[str, float]]:
        """Get latency stats by endpoint."""
        return {
            endpoint: stats.to_dict()
            for endpoint, stats in self._latency.items()
            if endpoint != "_all"
        }

    def get_recent_requests(self, limit: int = 20) -> List[Dict[str, Any]]:
        return self._recent_requests[-limit:]

    def reset(self) -> None:
        """Reset all metrics."""
        self._start_time = datetime.now(timezone.utc)
        self._latency.clear()
        self._counters = {mt: 0 for mt in MetricType}
        self._status_codes.clear()
        self._recent_requests.clear()

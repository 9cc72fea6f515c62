"""
Upstream call metrics

Every HTTPSource call lands here: Movement fullnode, GraphQL indexer,
DefiLlama (TVL + yields), Pyth, CoinGecko and the transaction relayer.

Per service we keep counters, latency, the failing endpoints and a health
state derived from consecutive failures:

    healthy   last call succeeded
    degraded  1..DOWN_AFTER-1 failures in a row
    down      DOWN_AFTER or more failures in a row
"""

import time
from collections import Counter, defaultdict, deque
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

FAILURE_STATUSES = ("error", "timeout", "rate_limited")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class UpstreamCall:
    service: str
    endpoint: str
    status: str  # success | error | timeout | rate_limited
    response_time_ms: float
    timestamp: str
    error_message: Optional[str] = None
    status_code: Optional[int] = None


@dataclass
class UpstreamStats:
    calls: int = 0
    successes: int = 0
    errors: int = 0
    timeouts: int = 0
    rate_limited: int = 0
    consecutive_failures: int = 0
    max_response_time_ms: float = 0.0
    last_error: Optional[str] = None
    last_error_time: Optional[str] = None
    last_success_time: Optional[str] = None
    failing_endpoints: Counter = field(default_factory=Counter)
    latencies: Deque[float] = field(default_factory=lambda: deque(maxlen=100))

    @property
    def failures(self) -> int:
        return self.errors + self.timeouts + self.rate_limited

    @property
    def avg_response_time_ms(self) -> float:
        return sum(self.latencies) / len(self.latencies) if self.latencies else 0.0


class APIMetricsTracker:
    """
    Usage:
        start = time.time()
        response = await client.get(url)
        api_metrics.record_call("defillama", "/protocols", "success", time.time() - start)
    """

    SLOW_CALL_MS = 2000
    DOWN_AFTER = 3

    def __init__(self, max_recent_calls: int = 500):
        self._stats: Dict[str, UpstreamStats] = defaultdict(UpstreamStats)
        self._recent: Deque[Dict[str, Any]] = deque(maxlen=max_recent_calls)
        self._start_time = time.time()

    def record_call(
        self,
        service: str,
        endpoint: str,
        status: str,
        response_time_s: float,
        error_message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        service = service.lower()
        elapsed_ms = round(response_time_s * 1000, 2)
        now = _now_iso()

        self._recent.append(asdict(UpstreamCall(
            service=service,
            endpoint=endpoint,
            status=status,
            response_time_ms=elapsed_ms,
            timestamp=now,
            error_message=error_message,
            status_code=status_code,
        )))

        stats = self._stats[service]
        stats.calls += 1
        stats.latencies.append(elapsed_ms)
        stats.max_response_time_ms = max(stats.max_response_time_ms, elapsed_ms)

        if status == "success":
            if stats.consecutive_failures >= self.DOWN_AFTER:
                logger.info(f"[APIMetrics] {service} recovered after {stats.consecutive_failures} failures")
            stats.successes += 1
            stats.consecutive_failures = 0
            stats.last_success_time = now
        else:
            if status == "timeout":
                stats.timeouts += 1
            elif status == "rate_limited":
                stats.rate_limited += 1
            else:
                stats.errors += 1
            stats.consecutive_failures += 1
            stats.failing_endpoints[endpoint] += 1
            stats.last_error = error_message or status
            stats.last_error_time = now
            if stats.consecutive_failures == self.DOWN_AFTER:
                logger.warning(f"[APIMetrics] {service} marked down: {self.DOWN_AFTER} failures in a row")

        if elapsed_ms > self.SLOW_CALL_MS:
            logger.warning(f"[APIMetrics] Slow call: {service} {endpoint} took {elapsed_ms:.0f}ms")

    def _health(self, stats: UpstreamStats) -> str:
        if stats.consecutive_failures == 0:
            return "healthy"
        if stats.consecutive_failures < self.DOWN_AFTER:
            return "degraded"
        return "down"

    def get_service_stats(self, service: str) -> Dict[str, Any]:
        stats = self._stats.get(service.lower())
        if not stats:
            return {"service": service, "status": "no_data", "total_calls": 0, "error_count": 0}

        return {
            "service": service,
            "status": self._health(stats),
            "total_calls": stats.calls,
            "success_count": stats.successes,
            "error_count": stats.errors,
            "timeout_count": stats.timeouts,
            "rate_limit_count": stats.rate_limited,
            "consecutive_failures": stats.consecutive_failures,
            "success_rate": round(stats.successes / stats.calls * 100, 1),
            "avg_response_ms": round(stats.avg_response_time_ms, 1),
            "max_response_ms": round(stats.max_response_time_ms, 1),
            "failing_endpoints": dict(stats.failing_endpoints.most_common(5)),
            "last_error": stats.last_error,
            "last_error_time": stats.last_error_time,
            "last_success_time": stats.last_success_time,
        }

    def get_all_stats(self) -> Dict[str, Any]:
        services = {name: self.get_service_stats(name) for name in self._stats}
        total_calls = sum(s.calls for s in self._stats.values())
        total_failures = sum(s.failures for s in self._stats.values())

        return {
            "uptime_seconds": round(time.time() - self._start_time, 0),
            "total_api_calls": total_calls,
            "total_errors": total_failures,
            "overall_success_rate": round((total_calls - total_failures) / total_calls * 100, 1) if total_calls else 100,
            "services": services,
        }

    def get_unhealthy_services(self) -> Dict[str, str]:
        """service -> 'degraded' | 'down' for every upstream whose last call failed"""
        return {
            name: self._health(stats)
            for name, stats in self._stats.items()
            if stats.consecutive_failures > 0
        }

    def get_recent_errors(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Failed calls, newest first"""
        errors = [c for c in reversed(self._recent) if c["status"] in FAILURE_STATUSES]
        return errors[:limit]

    def reset(self):
        self._stats.clear()
        self._recent.clear()


# Global instance
api_metrics = APIMetricsTracker()

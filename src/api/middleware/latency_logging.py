"""Request latency logging middleware with in-memory stats."""

import logging
import time
from collections import defaultdict, deque
from typing import Callable

from fastapi import Request, Response

logger = logging.getLogger(__name__)

# Thresholds for log levels (in milliseconds)
SLOW_REQUEST_THRESHOLD_MS = 1000
VERY_SLOW_REQUEST_THRESHOLD_MS = 3000

# The client polls these; successful GETs are logged at debug only
QUIET_PATHS = ("/health", "/api/v1/assistant/messages")


def _percentile(ordered: list[float], fraction: float) -> float:
    return round(ordered[min(int(len(ordered) * fraction), len(ordered) - 1)], 2)


def _summarize(latencies: list[float]) -> dict:
    ordered = sorted(latencies)
    return {
        "count": len(ordered),
        "avg_ms": round(sum(ordered) / len(ordered), 2),
        "p50_ms": _percentile(ordered, 0.5),
        "p95_ms": _percentile(ordered, 0.95),
        "p99_ms": _percentile(ordered, 0.99),
    }


class LatencyStats:
    """Rolling window of (path, latency_ms) samples.

    Health checks are not recorded.
    """

    def __init__(self, max_samples: int = 1000):
        self._samples: deque[tuple[str, float]] = deque(maxlen=max_samples)

    def record(self, path: str, latency_ms: float) -> None:
        self._samples.append((path, latency_ms))

    def get_stats(self) -> dict:
        """Aggregate over every recorded request."""
        if not self._samples:
            return {"total_requests": 0, "avg_ms": 0, "p50_ms": 0, "p95_ms": 0, "p99_ms": 0}

        summary = _summarize([latency for _, latency in self._samples])
        summary["total_requests"] = summary.pop("count")
        return summary

    def get_stats_by_path(self) -> dict:
        """Aggregate per request path."""
        by_path: dict[str, list[float]] = defaultdict(list)
        for path, latency in self._samples:
            by_path[path].append(latency)
        return {path: _summarize(latencies) for path, latencies in by_path.items()}


_latency_stats: LatencyStats | None = None


def get_latency_stats() -> LatencyStats:
    """Get or create the global latency stats instance."""
    global _latency_stats
    if _latency_stats is None:
        _latency_stats = LatencyStats()
    return _latency_stats


async def latency_logging_with_stats_middleware(
    request: Request, call_next: Callable
) -> Response:
    """Log each request's latency and record it for /health/metrics.

    Args:
        request: The incoming request.
        call_next: The next middleware/handler in the chain.

    Returns:
        Response: The response from the handler.
    """
    start_time = time.perf_counter()
    method = request.method
    path = request.url.path
    response = None

    try:
        response = await call_next(request)
        return response
    finally:
        latency_ms = (time.perf_counter() - start_time) * 1000
        status_code = response.status_code if response is not None else 500

        if not path.startswith("/health"):
            get_latency_stats().record(path, latency_ms)

        log_msg = f"{method} {path} - {status_code} - {latency_ms:.2f}ms"
        if status_code >= 500:
            logger.error(log_msg)
        elif latency_ms > VERY_SLOW_REQUEST_THRESHOLD_MS:
            logger.error(f"VERY SLOW REQUEST: {log_msg}")
        elif latency_ms > SLOW_REQUEST_THRESHOLD_MS:
            logger.warning(f"SLOW REQUEST: {log_msg}")
        elif status_code >= 400:
            logger.warning(log_msg)
        elif method == "GET" and path.startswith(QUIET_PATHS):
            logger.debug(log_msg)
        else:
            logger.info(log_msg)

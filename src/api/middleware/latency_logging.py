"""Request latency logging middleware for performance monitoring."""

import logging
import re
import time
from collections import defaultdict, deque
from threading import Lock
from typing import Callable

from fastapi import Request, Response

logger = logging.getLogger(__name__)

# Thresholds for log levels (in milliseconds)
SLOW_REQUEST_THRESHOLD_MS = 1000
VERY_SLOW_REQUEST_THRESHOLD_MS = 3000

# Polled endpoints logged at debug level only
QUIET_PATHS = ("/health", "/health/ready")

_UUID_PATTERN = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE)


class LatencyStats:
    """Rolling window of request latencies keyed by normalized path.

    Order ids are folded into ``{id}`` so per-path stats stay bounded.
    """

    def __init__(self, max_samples: int = 1000):
        self._samples: deque[tuple[str, float]] = deque(maxlen=max_samples)
        self._lock = Lock()

    def record(self, path: str, latency_ms: float) -> None:
        with self._lock:
            self._samples.append((_UUID_PATTERN.sub("{id}", path), latency_ms))

    def get_stats(self) -> dict:
        """Overall count, mean and p95 plus the per-path breakdown."""
        with self._lock:
            samples = list(self._samples)

        latencies = sorted(latency for _, latency in samples)
        total = len(latencies)
        if not total:
            return {"total_requests": 0, "avg_latency_ms": 0, "p95_latency_ms": 0, "by_path": {}}

        return {
            "total_requests": total,
            "avg_latency_ms": round(sum(latencies) / total, 2),
            "p95_latency_ms": round(latencies[min(int(total * 0.95), total - 1)], 2),
            "by_path": _group_by_path(samples),
        }

    def get_stats_by_path(self) -> dict:
        with self._lock:
            return _group_by_path(list(self._samples))

    def reset(self) -> None:
        with self._lock:
            self._samples.clear()


def _group_by_path(samples: list[tuple[str, float]]) -> dict:
    by_path: dict[str, list[float]] = defaultdict(list)
    for path, latency in samples:
        by_path[path].append(latency)
    return {
        path: {"count": len(values), "avg_ms": round(sum(values) / len(values), 2)}
        for path, values in by_path.items()
    }


# Global stats instance
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
    """Log request timing and record it for the admin metrics endpoint.

    Slow requests and server errors are logged at elevated levels.
    """
    start_time = time.perf_counter()

    method = request.method
    path = request.url.path
    is_quiet = path in QUIET_PATHS

    response = None
    error_occurred = False

    try:
        response = await call_next(request)
        return response
    except Exception:
        error_occurred = True
        raise
    finally:
        latency_ms = (time.perf_counter() - start_time) * 1000

        if not is_quiet:
            get_latency_stats().record(path, latency_ms)

        status_code = response.status_code if response else 500

        if is_quiet:
            logger.debug("%s %s - %d - %.2fms", method, path, status_code, latency_ms)
        elif error_occurred or status_code >= 500:
            logger.error("%s %s - %d - %.2fms", method, path, status_code, latency_ms)
        elif latency_ms > VERY_SLOW_REQUEST_THRESHOLD_MS:
            logger.error("VERY SLOW REQUEST: %s %s - %d - %.2fms", method, path, status_code, latency_ms)
        elif latency_ms > SLOW_REQUEST_THRESHOLD_MS:
            logger.warning("SLOW REQUEST: %s %s - %d - %.2fms", method, path, status_code, latency_ms)
        elif status_code >= 400:
            logger.warning("%s %s - %d - %.2fms", method, path, status_code, latency_ms)
        else:
            logger.info("%s %s - %d - %.2fms", method, path, status_code, latency_ms)

"""In-process counters for payment lifecycle outcomes."""

import time
from collections import Counter
from threading import Lock


class LifecycleMetrics:
    """Tracks payment lifecycle events for monitoring.

    Confirmed and assumed deposits are counted separately so operators can
    tell real matches from timeouts that were marked paid anyway.
    """

    def __init__(self, max_samples: int = 500):
        self._counts: Counter[str] = Counter()
        self._samples: list[dict] = []
        self._max_samples = max_samples
        self._lock = Lock()

    def record(self, event: str, order_id: str | None = None) -> None:
        """Record a single lifecycle event."""
        with self._lock:
            self._counts[event] += 1
            self._samples.append(
                {"event": event, "order_id": order_id, "timestamp": time.time()}
            )
            if len(self._samples) > self._max_samples:
                self._samples = self._samples[-self._max_samples:]

    def count(self, event: str) -> int:
        with self._lock:
            return self._counts[event]

    def get_stats(self) -> dict:
        """Get aggregated counts and the most recent events."""
        with self._lock:
            return {
                "counts": dict(self._counts),
                "recent_events": list(self._samples[-20:]),
            }

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
            self._samples.clear()


# Global metrics instance
_lifecycle_metrics: LifecycleMetrics | None = None


def get_lifecycle_metrics() -> LifecycleMetrics:
    """Get or create the global lifecycle metrics instance."""
    global _lifecycle_metrics
    if _lifecycle_metrics is None:
        _lifecycle_metrics = LifecycleMetrics()
    return _lifecycle_metrics

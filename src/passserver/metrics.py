"""Lightweight observability metrics for cache rebuilds and requests.

This module provides in-process metrics collection without external dependencies.
Metrics are best-effort in multi-worker environments (each worker has its own state).
"""

import threading
from dataclasses import dataclass, field
from typing import Any

from passserver.config import ServerConfig, get_config


@dataclass
class MetricsCollector:
    """In-memory metrics collector for observability.

    Thread-safe; each worker process maintains its own metrics state.
    """

    # Counters for rebuild outcomes (ok, error)
    rebuild_outcomes: dict[str, int] = field(default_factory=dict)

    # Rebuild latency samples (in milliseconds)
    rebuild_latencies: list[float] = field(default_factory=list)

    # Number of external encryption invocations
    encryption_calls: int = 0

    # Counters keyed by "<endpoint>:<outcome>"
    request_outcomes: dict[str, int] = field(default_factory=dict)

    _lock: threading.Lock = field(default_factory=threading.Lock)

    def record_rebuild(self, outcome: str, latency_ms: float) -> None:
        """Record the outcome of one cache rebuild.

        Args:
            outcome: "ok" or "error"
            latency_ms: Wall time of the rebuild in milliseconds
        """
        with self._lock:
            self.rebuild_outcomes[outcome] = self.rebuild_outcomes.get(outcome, 0) + 1
            self.rebuild_latencies.append(latency_ms)

    def record_encryption(self) -> None:
        with self._lock:
            self.encryption_calls += 1

    def record_request(self, endpoint: str, outcome: str) -> None:
        """Record a request outcome (ok, invalid, not_found, unavailable)."""
        key = f"{endpoint}:{outcome}"
        with self._lock:
            self.request_outcomes[key] = self.request_outcomes.get(key, 0) + 1

    def _calculate_percentile(self, sorted_values: list[float], percentile: float) -> float | None:
        if not sorted_values:
            return None

        n = len(sorted_values)
        idx = int(n * percentile)
        return sorted_values[min(idx, n - 1)]

    def get_snapshot(self) -> dict[str, Any]:
        """Get a snapshot of current metrics.

        Returns:
            Dictionary with all metrics including latency percentiles.
        """
        with self._lock:
            sorted_latencies = sorted(self.rebuild_latencies)
            return {
                "rebuild_outcomes": dict(self.rebuild_outcomes),
                "rebuild_latency_ms": {
                    "p50": self._calculate_percentile(sorted_latencies, 0.5),
                    "p95": self._calculate_percentile(sorted_latencies, 0.95),
                    "count": len(sorted_latencies),
                },
                "encryption_calls": self.encryption_calls,
                "request_outcomes": dict(self.request_outcomes),
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self.rebuild_outcomes.clear()
            self.rebuild_latencies.clear()
            self.encryption_calls = 0
            self.request_outcomes.clear()


# Global metrics collector instance
_metrics_collector: MetricsCollector | None = None
_metrics_lock = threading.Lock()


def get_metrics_collector() -> MetricsCollector:
    """Get or create the global metrics collector instance."""
    global _metrics_collector
    with _metrics_lock:
        if _metrics_collector is None:
            _metrics_collector = MetricsCollector()
        return _metrics_collector


def is_metrics_enabled(config: ServerConfig | None = None) -> bool:
    """Check if metrics are enabled (PASS_SERVER_ENABLE_METRICS).

    Args:
        config: Server configuration (defaults to the cached environment config)

    Returns:
        True if the metrics endpoint should be served, False otherwise.
    """
    config = config or get_config()
    return config.enable_metrics

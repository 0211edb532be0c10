"""
In-process metrics for the reservation gateway.

Tracks:
- Gateway operations (started, succeeded, failed) per operation name
- Failure outcomes keyed by error type (conflict, not_found, transport_error, ...)
- Latency samples per stage ("operation.reserve", "upstream.custom.set_reserva_db")

Nothing is persisted; counters start from zero with the process.
"""

import statistics
from collections import Counter, defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Deque, Dict, Iterable, Optional


MAX_SAMPLES = 1000


def _p95(samples: Iterable[float]) -> float:
    ordered = sorted(samples)
    if not ordered:
        return 0.0
    return ordered[min(int(len(ordered) * 0.95), len(ordered) - 1)]


@dataclass
class OperationCounters:
    """Started/succeeded/failed counts for one operation name."""
    started: int = 0
    succeeded: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {"started": self.started, "succeeded": self.succeeded, "failed": self.failed}


@dataclass
class LatencySamples:
    """Most recent samples for one stage."""
    samples: Deque[float] = field(default_factory=lambda: deque(maxlen=MAX_SAMPLES))

    def add(self, duration_ms: float) -> None:
        self.samples.append(duration_ms)

    def stats(self) -> Dict[str, float]:
        return {
            "average_ms": statistics.mean(self.samples) if self.samples else 0.0,
            "p95_ms": _p95(self.samples),
        }


class MetricsCollector:
    """
    Thread-safe metrics collector.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_operation_started("reserve")
        metrics.record_operation_failed("reserve", "conflict", duration_ms=84.0)
    """

    _instance: Optional["MetricsCollector"] = None
    _instance_lock = Lock()

    def __init__(self):
        self.started_at = datetime.now(timezone.utc)
        self.operations: Dict[str, OperationCounters] = defaultdict(OperationCounters)
        self.outcomes: Counter = Counter()
        self.latency: Dict[str, LatencySamples] = defaultdict(LatencySamples)
        self.overall = LatencySamples()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Process-wide collector."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # =========================================================================
    # Recording
    # =========================================================================

    def _sample(self, stage: str, duration_ms: Optional[float]) -> None:
        if duration_ms is None:
            return
        self.latency[stage].add(duration_ms)
        self.overall.add(duration_ms)

    def record_operation_started(self, operation: str):
        with self._lock:
            self.operations[operation].started += 1

    def record_operation_succeeded(self, operation: str, duration_ms: float = None):
        with self._lock:
            self.operations[operation].succeeded += 1
            self._sample(f"operation.{operation}", duration_ms)

    def record_operation_failed(self, operation: str, error_type: str, duration_ms: float = None):
        """Count a failure under its error type (conflict, transport_error, ...)."""
        with self._lock:
            self.operations[operation].failed += 1
            self.outcomes[error_type] += 1
            self._sample(f"operation.{operation}", duration_ms)

    def record_processing_time(self, stage: str, duration_ms: float):
        with self._lock:
            self._sample(stage, duration_ms)

    # =========================================================================
    # Reading
    # =========================================================================

    def get_timing_stats(self, stage: str = None) -> Dict[str, float]:
        """Average/p95 for one stage, or across all stages when omitted."""
        with self._lock:
            samples = self.overall if stage is None else self.latency.get(stage, LatencySamples())
            return {**samples.stats(), "sample_count": len(samples.samples)}

    def get_summary(self) -> Dict[str, Any]:
        with self._lock:
            counters = list(self.operations.values())
            return {
                "started_at": self.started_at.isoformat(),
                "operations": {
                    "started": sum(c.started for c in counters),
                    "succeeded": sum(c.succeeded for c in counters),
                    "failed": sum(c.failed for c in counters),
                    "by_name": {name: c.as_dict() for name, c in self.operations.items()},
                    "outcomes": dict(self.outcomes),
                },
                "timings": {
                    "overall": self.overall.stats(),
                    "by_stage": {stage: s.stats() for stage, s in self.latency.items()},
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    return MetricsCollector.instance()


def record_operation_started(operation: str):
    get_metrics().record_operation_started(operation)


def record_operation_succeeded(operation: str, duration_ms: float = None):
    get_metrics().record_operation_succeeded(operation, duration_ms)


def record_operation_failed(operation: str, error_type: str, duration_ms: float = None):
    get_metrics().record_operation_failed(operation, error_type, duration_ms)


def record_processing_time(stage: str, duration_ms: float):
    get_metrics().record_processing_time(stage, duration_ms)

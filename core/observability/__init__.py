"""
Observability Module for the Reservation Gateway

Provides:
- Structured logging with correlation IDs (request, unit, operation)
- Metrics collection (operations, outcomes, upstream latency)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
    record_operation_started,
    record_operation_succeeded,
    record_operation_failed,
    record_processing_time,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "record_operation_started",
    "record_operation_succeeded",
    "record_operation_failed",
    "record_processing_time",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]

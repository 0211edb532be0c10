"""
Correlated logging for the gateway.

Every log line emitted while a gateway call is in flight carries:
- request_id: the inbound HTTP request (X-Request-ID)
- unit_id: the inventory unit being read or changed
- operation: lookup, get_status, reserve, release or mark_sold
- connector: the ERP connector handling the call

Usage:
    from core.observability.logging import get_logger, with_correlation

    logger = get_logger(__name__)

    with with_correlation(unit_id="RV-001", operation="reserve"):
        logger.info("Reserving unit", extra_fields={"agent": "Ana"})
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional


GATEWAY_LOGGERS = ("api", "connectors", "core", "reservation")

# Chatty third-party loggers kept at WARNING
QUIET_LOGGERS = ("aiohttp", "uvicorn.access")


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass(frozen=True)
class CorrelationContext:
    """Identifiers shared by all log lines of one gateway call."""
    request_id: Optional[str] = None
    unit_id: Optional[str] = None
    operation: Optional[str] = None
    connector: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **ids: Optional[str]) -> "CorrelationContext":
        """New context; None values leave the current id in place."""
        return replace(self, **{k: v for k, v in ids.items() if v is not None})

    def short_label(self) -> str:
        parts = []
        if self.request_id:
            parts.append(self.request_id[:8])
        if self.unit_id:
            parts.append(self.unit_id)
        if self.operation:
            parts.append(self.operation)
        return "/".join(parts) or "-"


_correlation_context: ContextVar[CorrelationContext] = ContextVar(
    "correlation_context",
    default=CorrelationContext(),
)


def get_correlation_context() -> CorrelationContext:
    return _correlation_context.get()


@contextmanager
def with_correlation(**ids: Optional[str]) -> Iterator[CorrelationContext]:
    """Bind correlation ids for the duration of the block.

    Each asyncio task has its own copy, so concurrent requests never see
    each other's ids.
    """
    token = _correlation_context.set(get_correlation_context().merge(**ids))
    try:
        yield _correlation_context.get()
    finally:
        _correlation_context.reset(token)


# =============================================================================
# Formatters
# =============================================================================

def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line.

    {"timestamp": "2024-01-09T12:00:00.123Z", "level": "INFO",
     "logger": "reservation.gateway", "message": "Operation completed: reserve",
     "request_id": "5b0c...", "unit_id": "RV-001", "duration_ms": 84.2}
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _record_time(record).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(get_correlation_context().to_dict())
        payload.update(getattr(record, "extra_fields", None) or {})

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """
    Console format for local runs.

    2024-01-09 12:00:00 [INFO ] reservation.gateway [5b0c1f2a/RV-001/reserve]: Operation completed: reserve duration_ms=84.2
    """

    def format(self, record: logging.LogRecord) -> str:
        line = "{time} [{level:5}] {name} [{label}]: {message}".format(
            time=_record_time(record).strftime("%Y-%m-%d %H:%M:%S"),
            level=record.levelname,
            name=record.name,
            label=get_correlation_context().short_label(),
            message=record.getMessage(),
        )

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            line += " " + " ".join(f"{k}={v}" for k, v in extra_fields.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


# =============================================================================
# Logger with extra_fields support
# =============================================================================

class CorrelatedLogger(logging.LoggerAdapter):
    """Logger accepting ``extra_fields={...}`` on every call.

    Correlation ids are added by the formatters, so a plain logging.Logger
    further up the hierarchy sees the same fields.
    """

    def __init__(self, logger: logging.Logger):
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        extra_fields = kwargs.pop("extra_fields", None) or {}
        extra = dict(kwargs.get("extra") or {})
        extra["extra_fields"] = extra_fields
        kwargs["extra"] = extra
        return msg, kwargs


# =============================================================================
# Setup
# =============================================================================

_loggers: Dict[str, CorrelatedLogger] = {}
_handler: Optional[logging.Handler] = None


def configure_logging(level: int = logging.INFO, json_format: bool = False, force: bool = False) -> None:
    """
    Install the gateway handler on the root logger.

    Repeated calls are no-ops unless ``force`` is set, in which case the
    previous handler is replaced (the API calls this again at startup with
    the configured level and format).
    """
    global _handler

    if _handler is not None and not force:
        return

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stdout)
    _handler.setLevel(level)
    _handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    root.setLevel(level)
    root.addHandler(_handler)

    for name in GATEWAY_LOGGERS:
        logging.getLogger(name).setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> CorrelatedLogger:
    """Correlated logger for ``name`` (typically __name__)."""
    if name not in _loggers:
        configure_logging()
        _loggers[name] = CorrelatedLogger(logging.getLogger(name))
    return _loggers[name]


# =============================================================================
# Gateway operation helpers
# =============================================================================

def _operation_logger(operation: str) -> CorrelatedLogger:
    return get_logger(f"reservation.{operation}")


def log_operation_start(operation: str, **fields):
    _operation_logger(operation).debug(f"Operation started: {operation}", extra_fields=fields)


def log_operation_complete(operation: str, duration_ms: Optional[float] = None, **fields):
    if duration_ms is not None:
        fields = {"duration_ms": round(duration_ms, 1), **fields}
    _operation_logger(operation).info(f"Operation completed: {operation}", extra_fields=fields)


def log_operation_error(operation: str, error: str, **fields):
    # Conflicts and not-found are normal outcomes, so WARNING rather than ERROR
    _operation_logger(operation).warning(f"Operation failed: {operation} - {error}", extra_fields=fields)

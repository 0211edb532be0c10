"""Gateway error taxonomy.

Every gateway operation either returns one success payload or raises exactly
one of these errors. Errors carry enough context (unit id, attempted
transition, raw upstream message) for the API layer to build a response
without re-inspecting the upstream body.
"""

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base exception for reservation gateway errors."""

    error_type = "gateway_error"

    def __init__(
        self,
        message: str,
        unit_id: Optional[str] = None,
        transition: Optional[str] = None,
        upstream_message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.unit_id = unit_id
        self.transition = transition
        self.upstream_message = upstream_message
        self.status_code = status_code

    def bind(self, unit_id: Optional[str] = None, transition: Optional[str] = None) -> "GatewayError":
        """Fill in call context the raising layer did not know about."""
        if self.unit_id is None:
            self.unit_id = unit_id
        if self.transition is None:
            self.transition = transition
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "error_type": self.error_type,
            "unit_id": self.unit_id,
            "transition": self.transition,
            "upstream_message": self.upstream_message,
            "upstream_status_code": self.status_code,
        }


class ConfigurationError(GatewayError):
    """Bad or missing base URL, or unusable credentials. Fatal until fixed."""
    error_type = "configuration_error"


class ValidationError(GatewayError):
    """Bad caller input. Rejected before any network call."""
    error_type = "validation_error"


class TransportError(GatewayError):
    """Network-level failure (timeout, connection refused, DNS)."""
    error_type = "transport_error"


class UpstreamError(GatewayError):
    """Failure reported by the ERP itself."""
    error_type = "upstream_error"


class NotFoundError(UpstreamError):
    """The ERP has no unit with the requested identifier."""
    error_type = "not_found"


class ConflictError(GatewayError):
    """The requested transition did not reach the expected state.

    Raised even when the upstream answered with a 2xx: the reported
    post-call status is what decides, not the transport code.
    """
    error_type = "conflict"

    def __init__(
        self,
        message: str,
        actual_status: Optional[str] = None,
        upstream_status: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.actual_status = actual_status
        self.upstream_status = upstream_status

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["actual_status"] = self.actual_status
        data["upstream_status"] = self.upstream_status
        return data

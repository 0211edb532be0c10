"""ERP-neutral connector contract and normalized unit types.

Nothing here knows about Frappe field names or method paths. A connector owns
its HTTP session, turns gateway operations (lookup, reserve/release,
mark-sold) into ERP remote calls, and hands back UpstreamResult objects.

The connector reports what the ERP said. Deciding whether that is a
success, a conflict or an error is the gateway's job.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, Field

from core.errors import ConfigurationError
from core.security.credentials import ERPCredentials, UpstreamEndpoint


# =============================================================================
# Enums
# =============================================================================

class UnitStatus(str, Enum):
    """Sale status of an inventory unit as exposed by the gateway.

    AVAILABLE, RESERVED and SOLD are the closed output set. Anything else the
    ERP reports becomes UNKNOWN; the raw value travels alongside it.
    """
    AVAILABLE = "Available"
    RESERVED = "Reserved"
    SOLD = "Sold"
    UNKNOWN = "Unknown"


class ERPConnectionStatus(str, Enum):
    """Connection status to ERP system."""
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    FAILED = "FAILED"


# =============================================================================
# Normalized Models (ERP-Agnostic)
# =============================================================================

class HolderMetadata(BaseModel):
    """Who holds a reservation.

    Every field is optional and may be an empty string; unknown keys are
    rejected so a malformed record never reaches the ERP.
    """
    agent_name: Optional[str] = Field(default=None, description="Agent/broker holding the reservation")
    client_name: Optional[str] = Field(default=None)
    client_contact: Optional[str] = Field(default=None, description="Phone or e-mail")
    client_document: Optional[str] = Field(default=None, description="Client ID document number")
    notes: Optional[str] = Field(default=None)

    class Config:
        frozen = True
        extra = "forbid"

    def is_empty(self) -> bool:
        return not any(self.model_dump(exclude_none=True).values())


class UnitRecord(BaseModel):
    """Normalized inventory unit as reported by the ERP.

    IMPORTANT: status is relayed from the ERP, never derived locally.
    - status: Gateway status (Available/Reserved/Sold/Unknown)
    - upstream_status: The ERP's own value, verbatim
    - attributes: Technical/pricing fields mirrored from the ERP, read-only
    """
    unit_id: str = Field(..., description="Opaque ERP row identifier")
    status: UnitStatus = Field(..., description="Normalized sale status")
    upstream_status: Optional[str] = Field(default=None, description="Raw status string from the ERP")
    docname: Optional[str] = Field(default=None, description="Parent ERP document")
    holder: Optional[HolderMetadata] = None
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Mirrored ERP fields")

    class Config:
        frozen = True


@dataclass
class UpstreamResponse:
    """Raw ERP HTTP exchange, status code passed through verbatim."""
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)
    raw_text: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass
class UpstreamResult:
    """ERP response normalized by a connector.

    Attributes:
        status_code: ERP HTTP status code
        body: Parsed body (unparseable bodies arrive as {"message": <text>})
        unit: Unit as reported after the call, None when the body carries
            no recognizable status field
        ok: Explicit success/failure flag sent by the ERP, None when absent
        message: Human-readable ERP message, if any
        not_found: ERP indicated the unit does not exist
    """
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)
    unit: Optional[UnitRecord] = None
    ok: Optional[bool] = None
    message: Optional[str] = None
    not_found: bool = False

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class ERPConfig:
    """Configuration for an ERP connector.

    Built once at startup from GatewayConfig; holds only sanitized values.
    """
    connector_type: str                     # "frappe", ...
    endpoint: UpstreamEndpoint = field(default_factory=UpstreamEndpoint)
    credentials: ERPCredentials = field(default_factory=ERPCredentials)
    timeout_seconds: float = 10.0
    session_id: str = ""                    # Session cookie when no token is set
    custom_settings: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Abstract Connector Interface
# =============================================================================

class ReservationConnector(ABC):
    """Base class every ERP connector implements.

    Methods return what the ERP reported, never a judgement on it.

    Implementations:
    - connectors/frappe/frappe_connector.py
    """

    def __init__(self, config: ERPConfig):
        """Initialize connector with configuration."""
        self.config = config
        self._connection_status = ERPConnectionStatus.DISCONNECTED

    # =========================================================================
    # Connection Management
    # =========================================================================

    @abstractmethod
    async def connect(self) -> None:
        """Open the HTTP session used for ERP calls."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the HTTP session."""
        pass

    @property
    def connection_status(self) -> ERPConnectionStatus:
        """Get current connection status."""
        return self._connection_status

    # =========================================================================
    # Unit Operations
    # =========================================================================

    @abstractmethod
    async def lookup_unit(self, unit_id: str) -> UpstreamResult:
        """Read the full unit record.

        Raises:
            TransportError: Network-level failure
        """
        pass

    @abstractmethod
    async def set_reservation(
        self,
        unit_id: str,
        reserved: bool,
        holder: Optional[HolderMetadata] = None,
    ) -> UpstreamResult:
        """Ask the ERP to reserve or release a unit.

        The ERP alone decides the resulting status; the result reports it.
        """
        pass

    @abstractmethod
    async def set_sold(self, unit_id: str) -> UpstreamResult:
        """Ask the ERP to mark a unit as sold."""
        pass

    async def get_status(self, unit_id: str) -> UpstreamResult:
        """Read the unit status.

        Default implementation is lookup_unit; the gateway projects the status.
        """
        return await self.lookup_unit(unit_id)

    # -------------------------------------------------------------------------
    # Utilities
    # -------------------------------------------------------------------------

    def get_connector_name(self) -> str:
        """Get the name of this connector."""
        return self.config.connector_type

    async def __aenter__(self) -> "ReservationConnector":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()


# =============================================================================
# Connector Registry
# =============================================================================

_connectors: Dict[str, Type[ReservationConnector]] = {}


def register_connector(connector_type: str):
    """Class decorator adding a connector under ``connector_type``."""
    def decorator(cls: Type[ReservationConnector]) -> Type[ReservationConnector]:
        _connectors[connector_type.lower()] = cls
        return cls
    return decorator


def create_connector(config: ERPConfig) -> ReservationConnector:
    """Instantiate the connector named by ``config.connector_type``.

    Raises:
        ConfigurationError: ERP_CONNECTOR names no registered connector
    """
    try:
        connector_class = _connectors[config.connector_type.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown ERP connector {config.connector_type!r}; "
            f"registered: {', '.join(sorted(_connectors)) or 'none'}"
        )
    return connector_class(config)


def list_available_connectors() -> List[str]:
    return sorted(_connectors)

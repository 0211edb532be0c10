"""ERP Connectors - Pluggable ERP system integrations.

This package contains the abstract connector interface and concrete
implementations for specific ERP systems (Frappe/ERPNext, ...).

The reservation gateway is ERP-neutral. This package handles:
- ERP-specific authentication headers
- Translating unit operations into ERP remote calls
- Normalizing ERP responses (including non-JSON bodies)

Key Design Principle:
- The gateway and API routes depend ONLY on the ReservationConnector interface
- All methods return NORMALIZED types (UnitRecord, UpstreamResult)
- No Frappe-specific types should leak through the interface

To add a new ERP:
1. Create a new folder (e.g., odoo/)
2. Implement ReservationConnector interface
3. Register using @register_connector decorator
"""

from connectors.erp_base import (
    # Core interface
    ReservationConnector,
    ERPConfig,
    ERPConnectionStatus,

    # Normalized types (ERP-agnostic)
    UnitStatus,
    UnitRecord,
    HolderMetadata,
    UpstreamResponse,
    UpstreamResult,

    # Factory functions
    create_connector,
    register_connector,
    list_available_connectors,
)

# Registers the "frappe" connector
from connectors import frappe  # noqa: F401

__all__ = [
    # Core interface
    "ReservationConnector",
    "ERPConfig",
    "ERPConnectionStatus",

    # Normalized types
    "UnitStatus",
    "UnitRecord",
    "HolderMetadata",
    "UpstreamResponse",
    "UpstreamResult",

    # Factory
    "create_connector",
    "register_connector",
    "list_available_connectors",
]

"""Frappe/ERPNext Connector.

Provides integration with a Frappe server exposing the custom real-estate
unit methods (get_unidade_by_rowname, set_reserva_db, set_vendido).

Usage:
    from connectors.frappe import FrappeReservationConnector
    from connectors.erp_base import ERPConfig

    config = ERPConfig(
        connector_type="frappe",
        endpoint=UpstreamEndpoint.from_raw("https://erp.example.com"),
        credentials=ERPCredentials.from_raw("api-key", "api-secret"),
    )

    connector = FrappeReservationConnector(config)
    async with connector:
        result = await connector.lookup_unit("RV-001")
"""

from connectors.frappe.frappe_client import FrappeApiClient, parse_body
from connectors.frappe.frappe_connector import FrappeReservationConnector
from connectors.frappe.frappe_models import (
    FrappeUnit,
    extract_message,
    normalize_status,
)

__all__ = [
    "FrappeApiClient",
    "FrappeReservationConnector",
    "FrappeUnit",
    "extract_message",
    "normalize_status",
    "parse_body",
]

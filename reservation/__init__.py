"""Reservation Gateway Package.

Mediates unit reservations between callers and the ERP:
- Validates caller input before any network call
- Delegates to the configured ERP connector
- Interprets ERP answers against the Available/Reserved/Sold state machine
"""

from reservation.gateway import ReservationGateway, build_erp_config
from reservation.models import (
    ReservationRequest,
    StatusResult,
    Transition,
)

__all__ = [
    "ReservationGateway",
    "build_erp_config",
    "ReservationRequest",
    "StatusResult",
    "Transition",
]

"""Reservation gateway models.

Transient request/response values. Nothing here outlives a single call.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from connectors.erp_base import HolderMetadata, UnitRecord, UnitStatus
from core.errors import ValidationError


class Transition(str, Enum):
    """Gateway operation, recorded on errors and in logs."""
    LOOKUP = "lookup"
    GET_STATUS = "get_status"
    RESERVE = "reserve"
    RELEASE = "release"
    MARK_SOLD = "mark_sold"


# State each write operation must observe afterwards to count as success
EXPECTED_STATUS = {
    Transition.RESERVE: UnitStatus.RESERVED,
    Transition.RELEASE: UnitStatus.AVAILABLE,
    Transition.MARK_SOLD: UnitStatus.SOLD,
}


class ReservationRequest(BaseModel):
    """One caller action against one unit."""
    unit_id: str
    requested_state: UnitStatus
    holder_metadata: Optional[HolderMetadata] = None

    class Config:
        frozen = True


class StatusResult(BaseModel):
    """Status reported by the ERP after a call."""
    unit_id: str
    status: UnitStatus
    upstream_status: Optional[str] = Field(default=None, description="Raw ERP status string")

    class Config:
        frozen = True

    @classmethod
    def from_unit(cls, unit_id: str, unit: UnitRecord) -> "StatusResult":
        return cls(unit_id=unit_id, status=unit.status, upstream_status=unit.upstream_status)


def validate_unit_id(raw: Any) -> str:
    """Return the trimmed unit id or raise ValidationError."""
    if raw is None:
        raise ValidationError("unit_id is required")
    if not isinstance(raw, str):
        raise ValidationError("unit_id must be a string")
    unit_id = raw.strip()
    if not unit_id:
        raise ValidationError("unit_id is required")
    return unit_id


def coerce_holder_metadata(raw: Any) -> Optional[HolderMetadata]:
    """Accept None, a HolderMetadata, or a mapping that validates into one."""
    if raw is None or isinstance(raw, HolderMetadata):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError("holder_metadata must be an object")
    try:
        return HolderMetadata.model_validate(raw)
    except PydanticValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ValidationError(f"holder_metadata is malformed: {fields}")


def build_request(transition: Transition, unit_id: str, holder_metadata: Any = None) -> ReservationRequest:
    return ReservationRequest(
        unit_id=unit_id,
        requested_state=EXPECTED_STATUS[transition],
        holder_metadata=coerce_holder_metadata(holder_metadata),
    )

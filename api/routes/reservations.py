"""Reservation gateway endpoints.

Stable HTTP surface over ReservationGateway. Status codes are the contract:
400 validation, 404 unknown unit, 409 conflict, 500 configuration/transport,
otherwise the ERP's own error code. The one exception is a 2xx from the ERP
whose body holds no usable unit (an HTML error page, say): that answers 502,
since passing the 2xx through would tell the caller the operation succeeded.
"""

import json
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from connectors.erp_base import UnitRecord
from core.errors import ValidationError
from core.observability.metrics import get_metrics
from reservation import ReservationGateway, StatusResult


router = APIRouter()

# Body keys that are never holder metadata
REQUEST_KEYS = {"unit_id", "rowname", "reservado", "holder_metadata"}


def get_gateway(request: Request) -> ReservationGateway:
    """Gateway built at startup and stored on the application."""
    return request.app.state.gateway


async def read_json_body(request: Request) -> Dict[str, Any]:
    """Parse the request body, turning malformed JSON into a 400."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def unit_id_from(body: Dict[str, Any]) -> Any:
    # "rowname" is what older front-ends send
    if "unit_id" in body:
        return body["unit_id"]
    return body.get("rowname")


def holder_metadata_from(body: Dict[str, Any]) -> Any:
    if "holder_metadata" in body:
        return body["holder_metadata"]
    flat = {k: v for k, v in body.items() if k not in REQUEST_KEYS}
    return flat or None


@router.get("/unit", response_model=UnitRecord)
async def lookup_unit(
    unit_id: Optional[str] = None,
    rowname: Optional[str] = None,
    gateway: ReservationGateway = Depends(get_gateway),
) -> UnitRecord:
    """Full unit record from the ERP."""
    return await gateway.lookup_unit(unit_id if unit_id is not None else rowname)


@router.get("/unit/status", response_model=StatusResult)
async def unit_status(
    unit_id: Optional[str] = None,
    rowname: Optional[str] = None,
    gateway: ReservationGateway = Depends(get_gateway),
) -> StatusResult:
    """Current unit status from the ERP."""
    return await gateway.get_status(unit_id if unit_id is not None else rowname)


@router.post("/reserve", response_model=StatusResult)
async def reserve_unit(
    request: Request,
    gateway: ReservationGateway = Depends(get_gateway),
) -> StatusResult:
    """Reserve a unit. 409 when the ERP reports it did not become Reserved."""
    body = await read_json_body(request)
    return await gateway.reserve(unit_id_from(body), holder_metadata_from(body))


@router.post("/release", response_model=StatusResult)
async def release_unit(
    request: Request,
    gateway: ReservationGateway = Depends(get_gateway),
) -> StatusResult:
    """Release a reservation. Releasing an available unit succeeds."""
    body = await read_json_body(request)
    return await gateway.release(unit_id_from(body))


@router.post("/sold", response_model=StatusResult)
async def mark_unit_sold(
    request: Request,
    gateway: ReservationGateway = Depends(get_gateway),
) -> StatusResult:
    """Mark a unit as sold."""
    body = await read_json_body(request)
    return await gateway.mark_sold(unit_id_from(body))


@router.get("/metrics")
async def gateway_metrics() -> Dict[str, Any]:
    """Operation counters and upstream latency."""
    return get_metrics().get_summary()

"""Frappe ERP Connector.

Implements the ReservationConnector interface for a Frappe/ERPNext server
exposing the custom real-estate unit methods.
"""

from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from connectors.erp_base import (
    ERPConfig,
    ERPConnectionStatus,
    HolderMetadata,
    ReservationConnector,
    UpstreamResponse,
    UpstreamResult,
    register_connector,
)
from connectors.frappe.frappe_client import FrappeApiClient
from connectors.frappe.frappe_models import (
    GET_UNIT_METHOD,
    SET_RESERVATION_METHOD,
    SET_SOLD_METHOD,
    FrappeUnit,
    build_reservation_payload,
    build_sold_payload,
    extract_message,
    parse_ok_flag,
)
from core.observability.logging import get_logger

logger = get_logger(__name__)

NOT_FOUND_EXC_TYPES = {"DoesNotExistError"}


@register_connector("frappe")
class FrappeReservationConnector(ReservationConnector):
    """Frappe connector implementation.

    Required configuration:
    - endpoint: ERP base URL

    Optional configuration:
    - credentials: API key/secret (token auth)
    - session_id: ``sid`` cookie (session auth when no token is set)
    - timeout_seconds: per-call timeout
    """

    def __init__(self, config: ERPConfig, client: Optional[FrappeApiClient] = None):
        super().__init__(config)
        self._client = client or FrappeApiClient(
            endpoint=config.endpoint,
            credentials=config.credentials,
            timeout_seconds=config.timeout_seconds,
            session_id=config.session_id,
        )

    # =========================================================================
    # Connection Management
    # =========================================================================

    async def connect(self) -> None:
        await self._client.connect()
        self._connection_status = ERPConnectionStatus.CONNECTED

    async def disconnect(self) -> None:
        await self._client.disconnect()
        self._connection_status = ERPConnectionStatus.DISCONNECTED

    # =========================================================================
    # Unit Operations
    # =========================================================================

    async def lookup_unit(self, unit_id: str) -> UpstreamResult:
        response = await self._client.get_method(GET_UNIT_METHOD, {"rowname": unit_id})
        return self._normalize(unit_id, response, lookup=True)

    async def set_reservation(
        self,
        unit_id: str,
        reserved: bool,
        holder: Optional[HolderMetadata] = None,
    ) -> UpstreamResult:
        payload = build_reservation_payload(unit_id, reserved, holder)
        response = await self._client.post_method(SET_RESERVATION_METHOD, payload)
        return self._normalize(unit_id, response)

    async def set_sold(self, unit_id: str) -> UpstreamResult:
        response = await self._client.post_method(SET_SOLD_METHOD, build_sold_payload(unit_id))
        return self._normalize(unit_id, response)

    # =========================================================================
    # Response Normalization
    # =========================================================================

    def _normalize(self, unit_id: str, response: UpstreamResponse, lookup: bool = False) -> UpstreamResult:
        """Turn a raw Frappe exchange into an UpstreamResult.

        Only reports what the ERP said; the gateway decides what it means.
        """
        body = response.body
        result = UpstreamResult(
            status_code=response.status_code,
            body=body,
            message=extract_message(body),
            ok=parse_ok_flag(body.get("ok")),
        )

        if response.status_code == 404 or body.get("exc_type") in NOT_FOUND_EXC_TYPES:
            result.not_found = True
            return result

        if not response.is_success:
            return result

        record = body.get("message")
        if record is None and lookup:
            # Whitelisted method returned None ({} or {"message": null}): no such row
            result.not_found = True
            return result

        if isinstance(record, dict):
            result.unit = self._parse_unit(unit_id, record)
            if result.ok is None:
                result.ok = parse_ok_flag(record.get("ok"))
            # A dict payload is data, not a human message
            result.message = extract_message({k: v for k, v in body.items() if k != "message"})
            if result.message is None and isinstance(record.get("message"), str):
                result.message = record["message"]

        return result

    def _parse_unit(self, unit_id: str, record: Dict[str, Any]):
        try:
            return FrappeUnit.model_validate(record).to_unit_record(unit_id)
        except PydanticValidationError as e:
            logger.warning(
                f"Unparseable unit record from ERP: {e.error_count()} errors",
                extra_fields={"unit_id": unit_id},
            )
            return None

"""Reservation Gateway.

Exposes the stable unit operations (lookup, reserve, release, mark-sold,
status) to callers and interprets ERP answers against the unit state
machine:

    Available --reserve--> Reserved --release--> Available
    Available | Reserved --mark_sold--> Sold   (terminal)

The gateway holds no unit state and takes no locks. The ERP's conditional
update is the only point of commit; the gateway's job is to read the
post-call status correctly. A 2xx whose reported status is not the target
state is a ConflictError, never a success.
"""

import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from connectors import ERPConfig, ReservationConnector, UnitRecord, UpstreamResult, create_connector
from connectors.erp_base import UnitStatus
from core.config import GatewayConfig
from core.errors import (
    ConfigurationError,
    ConflictError,
    GatewayError,
    NotFoundError,
    UpstreamError,
)
from core.observability.logging import (
    get_logger,
    log_operation_complete,
    log_operation_error,
    log_operation_start,
    with_correlation,
)
from core.observability.metrics import (
    record_operation_failed,
    record_operation_started,
    record_operation_succeeded,
)
from reservation.models import (
    EXPECTED_STATUS,
    ReservationRequest,
    StatusResult,
    Transition,
    build_request,
    validate_unit_id,
)

logger = get_logger(__name__)

T = TypeVar("T")


def build_erp_config(config: GatewayConfig) -> ERPConfig:
    """Derive connector configuration from the gateway configuration."""
    return ERPConfig(
        connector_type=config.connector_type,
        endpoint=config.endpoint,
        credentials=config.credentials,
        timeout_seconds=config.timeout_seconds,
        session_id=config.session_id,
    )


class ReservationGateway:
    """State-transition orchestrator in front of the ERP.

    Usage:
        gateway = ReservationGateway(GatewayConfig.from_env())
        async with gateway:
            result = await gateway.reserve("RV-001", {"agent_name": "Ana"})
    """

    def __init__(self, config: GatewayConfig, connector: Optional[ReservationConnector] = None):
        self.config = config
        self._connector = connector
        if self._connector is None and config.is_configured:
            self._connector = create_connector(build_erp_config(config))

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured and self._connector is not None

    @property
    def connector(self) -> Optional[ReservationConnector]:
        return self._connector

    async def start(self) -> None:
        if self._connector is not None:
            await self._connector.connect()

    async def close(self) -> None:
        if self._connector is not None:
            await self._connector.disconnect()

    async def __aenter__(self) -> "ReservationGateway":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # =========================================================================
    # Public Operations
    # =========================================================================

    async def lookup_unit(self, unit_id: Any) -> UnitRecord:
        """Full unit record as reported by the ERP. No side effects."""
        async def action(clean_id: str) -> UnitRecord:
            result = await self._require_connector().lookup_unit(clean_id)
            return self._interpret_read(clean_id, result)

        return await self._run(Transition.LOOKUP, unit_id, action)

    async def get_status(self, unit_id: Any) -> StatusResult:
        """Unit status only; same access path as lookup_unit."""
        async def action(clean_id: str) -> StatusResult:
            result = await self._require_connector().get_status(clean_id)
            return StatusResult.from_unit(clean_id, self._interpret_read(clean_id, result))

        return await self._run(Transition.GET_STATUS, unit_id, action)

    async def reserve(self, unit_id: Any, holder_metadata: Any = None) -> StatusResult:
        """Available -> Reserved.

        Raises ConflictError when the ERP reports any status other than
        Reserved afterwards, or flags the update as not applied (ok=false).
        """
        async def action(clean_id: str) -> StatusResult:
            request = build_request(Transition.RESERVE, clean_id, holder_metadata)
            connector = self._require_connector()
            result = await connector.set_reservation(clean_id, True, request.holder_metadata)
            return self._interpret_write(request, Transition.RESERVE, result)

        return await self._run(Transition.RESERVE, unit_id, action)

    async def release(self, unit_id: Any) -> StatusResult:
        """Reserved -> Available. Releasing an Available unit is a no-op success."""
        async def action(clean_id: str) -> StatusResult:
            request = build_request(Transition.RELEASE, clean_id)
            result = await self._require_connector().set_reservation(clean_id, False)
            return self._interpret_write(request, Transition.RELEASE, result)

        return await self._run(Transition.RELEASE, unit_id, action)

    async def mark_sold(self, unit_id: Any) -> StatusResult:
        """Available | Reserved -> Sold. Terminal."""
        async def action(clean_id: str) -> StatusResult:
            request = build_request(Transition.MARK_SOLD, clean_id)
            result = await self._require_connector().set_sold(clean_id)
            return self._interpret_write(request, Transition.MARK_SOLD, result)

        return await self._run(Transition.MARK_SOLD, unit_id, action)

    # =========================================================================
    # Execution
    # =========================================================================

    def _require_connector(self) -> ReservationConnector:
        if not self.config.is_configured or self._connector is None:
            raise ConfigurationError(
                "ERP_BASE_URL is missing or empty after removing invisible characters"
            )
        return self._connector

    async def _run(
        self,
        transition: Transition,
        raw_unit_id: Any,
        action: Callable[[str], Awaitable[T]],
    ) -> T:
        """Validate, call, and account for one gateway operation."""
        operation = transition.value
        hint = raw_unit_id.strip() if isinstance(raw_unit_id, str) else None
        started = time.monotonic()
        record_operation_started(operation)

        with with_correlation(
            unit_id=hint or None,
            operation=operation,
            connector=self.config.connector_type,
        ):
            log_operation_start(operation)
            try:
                unit_id = validate_unit_id(raw_unit_id)
                result = await action(unit_id)
            except GatewayError as e:
                e.bind(unit_id=hint or None, transition=operation)
                duration_ms = (time.monotonic() - started) * 1000
                record_operation_failed(operation, e.error_type, duration_ms)
                log_operation_error(
                    operation,
                    e.message,
                    error_type=e.error_type,
                    upstream_status_code=e.status_code,
                )
                raise
            except Exception as e:
                duration_ms = (time.monotonic() - started) * 1000
                record_operation_failed(operation, "unexpected", duration_ms)
                log_operation_error(operation, str(e) or type(e).__name__, error_type="unexpected")
                raise

            duration_ms = (time.monotonic() - started) * 1000
            record_operation_succeeded(operation, duration_ms)
            log_operation_complete(operation, duration_ms)
            return result

    # =========================================================================
    # Interpretation
    # =========================================================================

    def _raise_for_failure(self, unit_id: str, result: UpstreamResult) -> None:
        """Raise for not-found and non-2xx answers."""
        if result.not_found:
            raise NotFoundError(
                result.message or f"Unit {unit_id} not found in ERP",
                upstream_message=result.message,
                status_code=result.status_code,
            )
        if not result.is_success:
            raise UpstreamError(
                result.message or f"ERP returned HTTP {result.status_code}",
                upstream_message=result.message,
                status_code=result.status_code,
            )

    def _interpret_read(self, unit_id: str, result: UpstreamResult) -> UnitRecord:
        self._raise_for_failure(unit_id, result)

        if result.ok is False or result.unit is None:
            raise UpstreamError(
                result.message or "ERP response carries no recognizable unit status",
                upstream_message=result.message,
                status_code=result.status_code,
            )

        return result.unit

    def _interpret_write(
        self,
        request: ReservationRequest,
        transition: Transition,
        result: UpstreamResult,
    ) -> StatusResult:
        self._raise_for_failure(request.unit_id, result)

        unit = result.unit
        if unit is None:
            raise UpstreamError(
                result.message or "ERP response carries no recognizable unit status",
                upstream_message=result.message,
                status_code=result.status_code,
            )

        expected = EXPECTED_STATUS[transition]
        # ok=false on release/mark_sold is a no-op; only a reserve loser is flagged by it
        not_applied = transition == Transition.RESERVE and result.ok is False
        if unit.status != expected or not_applied:
            logger.info(
                f"{transition.value} did not take effect: unit is {unit.upstream_status}",
                extra_fields={"expected": expected.value, "actual": unit.status.value},
            )
            raise ConflictError(
                result.message or self._conflict_message(request.unit_id, transition, unit),
                actual_status=unit.status.value,
                upstream_status=unit.upstream_status,
                upstream_message=result.message,
                status_code=result.status_code,
            )

        return StatusResult.from_unit(request.unit_id, unit)

    @staticmethod
    def _conflict_message(unit_id: str, transition: Transition, unit: UnitRecord) -> str:
        if unit.status == UnitStatus.SOLD:
            return f"Unit {unit_id} is already sold"
        if transition == Transition.RESERVE and unit.status == UnitStatus.RESERVED:
            return f"Unit {unit_id} is already reserved"
        return f"Unit {unit_id} is {unit.upstream_status or unit.status.value}; {transition.value} did not take effect"

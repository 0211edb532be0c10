"""
Shared test fixtures.

- StubERP: a small aiohttp app speaking the ERP's whitelisted-method
  protocol, with a conditional update on reservations (a unit is only
  reserved if it is Available at commit time).
- InMemoryConnector: a ReservationConnector that never touches the network,
  for API-level tests.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from connectors.erp_base import (
    ERPConfig,
    ERPConnectionStatus,
    HolderMetadata,
    ReservationConnector,
    UnitRecord,
    UnitStatus,
    UpstreamResult,
)
from connectors.frappe.frappe_models import normalize_status
from core.config import GatewayConfig
from core.security.credentials import UpstreamEndpoint
from reservation import ReservationGateway


AVAILABLE = "Disponível"
RESERVED = "Reservado"
SOLD = "Vendido"


def default_units() -> Dict[str, Dict[str, Any]]:
    return {
        "RV-001": {"status_vendas": AVAILABLE, "docname": "EMP-0001", "bloco": "A", "andar": 3},
        "RV-002": {"status_vendas": RESERVED, "docname": "EMP-0001", "reservado_por": "Carlos Lima"},
        "RV-003": {"status_vendas": SOLD, "docname": "EMP-0001"},
        "RV-004": {"status_vendas": "Em negociação", "docname": "EMP-0002"},
    }


# =============================================================================
# Stub ERP over HTTP
# =============================================================================

class StubERP:
    """In-process ERP exposing the custom unit methods."""

    def __init__(self):
        self.units = default_units()
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.authorization_headers: List[Optional[str]] = []
        self.raw_response: Optional[Tuple[int, str]] = None
        self.delay = 0.0
        self.base_url = ""
        self._lock = asyncio.Lock()

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/method/custom.get_unidade_by_rowname", self.get_unit)
        app.router.add_post("/api/method/custom.set_reserva_db", self.set_reservation)
        app.router.add_post("/api/method/custom.set_vendido", self.set_sold)
        return app

    def method_calls(self, method: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.calls if name == method]

    async def _before(self, request: web.Request, method: str, payload: Dict[str, Any]) -> Optional[web.Response]:
        self.calls.append((method, payload))
        self.authorization_headers.append(request.headers.get("Authorization"))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raw_response is not None:
            status, text = self.raw_response
            return web.Response(status=status, text=text)
        rowname = payload.get("rowname")
        if rowname not in self.units:
            return web.json_response(
                {
                    "exc_type": "DoesNotExistError",
                    "exception": f"frappe.exceptions.DoesNotExistError: Unidade {rowname} not found",
                },
                status=404,
            )
        return None

    def _unit_body(self, rowname: str, **extra) -> Dict[str, Any]:
        return {"message": {"rowname": rowname, **self.units[rowname], **extra}}

    async def get_unit(self, request: web.Request) -> web.Response:
        payload = dict(request.query)
        early = await self._before(request, "get_unit", payload)
        if early is not None:
            return early
        return web.json_response(self._unit_body(payload["rowname"]))

    async def set_reservation(self, request: web.Request) -> web.Response:
        payload = await request.json()
        early = await self._before(request, "set_reservation", payload)
        if early is not None:
            return early

        rowname = payload["rowname"]
        async with self._lock:
            unit = self.units[rowname]
            current = normalize_status(unit["status_vendas"])
            ok = False
            if payload.get("reservado"):
                if current == UnitStatus.AVAILABLE:
                    unit["status_vendas"] = RESERVED
                    for key, value in payload.items():
                        if key not in ("rowname", "reservado"):
                            unit[key] = value
                    ok = True
            elif current in (UnitStatus.AVAILABLE, UnitStatus.RESERVED):
                unit["status_vendas"] = AVAILABLE
                unit.pop("reservado_por", None)
                ok = True

        return web.json_response(self._unit_body(rowname, ok=ok))

    async def set_sold(self, request: web.Request) -> web.Response:
        payload = await request.json()
        early = await self._before(request, "set_sold", payload)
        if early is not None:
            return early

        rowname = payload["rowname"]
        async with self._lock:
            self.units[rowname]["status_vendas"] = SOLD
        return web.json_response(self._unit_body(rowname, ok=True))


@pytest.fixture
async def stub_erp():
    erp = StubERP()
    server = TestServer(erp.build_app())
    await server.start_server()
    erp.base_url = str(server.make_url("/"))
    yield erp
    await server.close()


@pytest.fixture
def erp_env(stub_erp):
    return {
        "ERP_BASE_URL": stub_erp.base_url,
        "ERP_TOKEN_KEY": "api-key",
        "ERP_TOKEN_SECRET": "api-secret",
        "ERP_TIMEOUT_SECONDS": "5",
    }


@pytest.fixture
async def gateway(erp_env):
    async with ReservationGateway(GatewayConfig.from_mapping(erp_env)) as gw:
        yield gw


# =============================================================================
# In-memory connector
# =============================================================================

class InMemoryConnector(ReservationConnector):
    """Connector over a dict of unit statuses, with the same conditional update."""

    def __init__(self, units: Optional[Dict[str, UnitStatus]] = None):
        super().__init__(ERPConfig(connector_type="memory", endpoint=UpstreamEndpoint("http://erp.test")))
        self.units = dict(units or {})
        self.calls: List[Tuple[str, str]] = []
        self.next_result: Optional[UpstreamResult] = None
        self.fail_with: Optional[Exception] = None

    async def connect(self) -> None:
        self._connection_status = ERPConnectionStatus.CONNECTED

    async def disconnect(self) -> None:
        self._connection_status = ERPConnectionStatus.DISCONNECTED

    def _result(self, unit_id: str, ok: bool = True) -> UpstreamResult:
        status = self.units[unit_id]
        return UpstreamResult(
            status_code=200,
            ok=ok,
            unit=UnitRecord(unit_id=unit_id, status=status, upstream_status=status.value),
        )

    def _intercept(self, call: str, unit_id: str) -> Optional[UpstreamResult]:
        self.calls.append((call, unit_id))
        if self.fail_with is not None:
            raise self.fail_with
        if self.next_result is not None:
            result, self.next_result = self.next_result, None
            return result
        if unit_id not in self.units:
            return UpstreamResult(status_code=404, not_found=True, message=f"Unidade {unit_id} not found")
        return None

    async def lookup_unit(self, unit_id: str) -> UpstreamResult:
        return self._intercept("lookup", unit_id) or self._result(unit_id)

    async def set_reservation(
        self,
        unit_id: str,
        reserved: bool,
        holder: Optional[HolderMetadata] = None,
    ) -> UpstreamResult:
        early = self._intercept("reserve" if reserved else "release", unit_id)
        if early is not None:
            return early
        current = self.units[unit_id]
        if reserved and current == UnitStatus.AVAILABLE:
            self.units[unit_id] = UnitStatus.RESERVED
            return self._result(unit_id)
        if not reserved and current in (UnitStatus.AVAILABLE, UnitStatus.RESERVED):
            self.units[unit_id] = UnitStatus.AVAILABLE
            return self._result(unit_id)
        return self._result(unit_id, ok=False)

    async def set_sold(self, unit_id: str) -> UpstreamResult:
        early = self._intercept("sold", unit_id)
        if early is not None:
            return early
        self.units[unit_id] = UnitStatus.SOLD
        return self._result(unit_id)


@pytest.fixture
def memory_connector():
    return InMemoryConnector({
        "RV-001": UnitStatus.AVAILABLE,
        "RV-002": UnitStatus.RESERVED,
        "RV-003": UnitStatus.SOLD,
    })


@pytest.fixture
def memory_gateway(memory_connector):
    config = GatewayConfig.from_mapping({"ERP_BASE_URL": "http://erp.test"})
    return ReservationGateway(config, connector=memory_connector)

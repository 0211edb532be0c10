"""
Frappe Connector Tests

Covers the ERP-facing half of the gateway:
1. Body parsing never fails, even on HTML error pages
2. Message extraction priority (message, exception, _server_messages)
3. Status normalization (Portuguese/English, accents, unknown values)
4. Request payloads for the custom methods
5. Transport failures become TransportError
6. Raw exchanges are normalized into UpstreamResult
"""

import json

import pytest

from connectors import create_connector, list_available_connectors
from connectors.erp_base import ERPConfig, HolderMetadata, UnitStatus, UpstreamResponse
from connectors.frappe import FrappeReservationConnector
from connectors.frappe.frappe_client import FrappeApiClient, parse_body
from connectors.frappe.frappe_models import (
    FrappeUnit,
    build_reservation_payload,
    build_sold_payload,
    extract_message,
    normalize_status,
    parse_ok_flag,
)
from core.errors import ConfigurationError, TransportError
from core.security.credentials import ERPCredentials, UpstreamEndpoint


def server_messages(*messages: str) -> str:
    """Frappe's doubly encoded _server_messages value."""
    return json.dumps([json.dumps({"message": m}) for m in messages])


def make_connector(base_url: str = "http://erp.test", key: str = "key", secret: str = "secret", timeout: float = 5.0):
    config = ERPConfig(
        connector_type="frappe",
        endpoint=UpstreamEndpoint.from_raw(base_url),
        credentials=ERPCredentials.from_raw(key, secret),
        timeout_seconds=timeout,
    )
    return FrappeReservationConnector(config)


class TestParseBody:
    """Test lenient body parsing."""

    def test_json_object(self):
        assert parse_body('{"message": {"status_vendas": "Reservado"}}') == {
            "message": {"status_vendas": "Reservado"}
        }

    def test_empty_body(self):
        assert parse_body("") == {}

    def test_plain_text_is_wrapped(self):
        assert parse_body("Internal error page") == {"message": "Internal error page"}

    def test_html_is_wrapped(self):
        html = "<html><body>502 Bad Gateway</body></html>"
        assert parse_body(html) == {"message": html}

    def test_non_object_json_is_wrapped(self):
        assert parse_body("[1, 2]") == {"message": [1, 2]}


class TestExtractMessage:
    """Test the message priority rules."""

    def test_message_wins(self):
        body = {"message": "primary", "exception": "secondary", "_server_messages": server_messages("third")}
        assert extract_message(body) == "primary"

    def test_exception_before_server_messages(self):
        body = {"exception": "frappe.exceptions.ValidationError: bad", "_server_messages": server_messages("x")}
        assert extract_message(body) == "frappe.exceptions.ValidationError: bad"

    def test_server_messages_decoded(self):
        body = {"_server_messages": server_messages("Not permitted", "Contact admin")}
        assert extract_message(body) == "Not permitted; Contact admin"

    def test_dict_message_is_not_text(self):
        assert extract_message({"message": {"status_vendas": "Vendido"}}) is None

    def test_nothing(self):
        assert extract_message({}) is None


class TestFrappeModels:
    """Test status normalization and payload construction."""

    @pytest.mark.parametrize("raw,expected", [
        ("Disponível", UnitStatus.AVAILABLE),
        ("disponivel", UnitStatus.AVAILABLE),
        ("Available", UnitStatus.AVAILABLE),
        ("RESERVADO", UnitStatus.RESERVED),
        ("Reserved", UnitStatus.RESERVED),
        ("Vendido", UnitStatus.SOLD),
        (" vendida ", UnitStatus.SOLD),
        ("Em negociação", UnitStatus.UNKNOWN),
        (None, UnitStatus.UNKNOWN),
    ])
    def test_normalize_status(self, raw, expected):
        assert normalize_status(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        (True, True),
        (0, False),
        (1, True),
        ("true", True),
        ("0", False),
        (None, None),
    ])
    def test_parse_ok_flag(self, raw, expected):
        assert parse_ok_flag(raw) is expected

    def test_reservation_payload_maps_holder_fields(self):
        holder = HolderMetadata(agent_name="Ana Souza", client_name="João", notes="")
        payload = build_reservation_payload("RV-001", True, holder)
        assert payload == {
            "rowname": "RV-001",
            "reservado": 1,
            "reservado_por": "Ana Souza",
            "cliente_nome": "João",
            "observacao_reserva": "",
        }

    def test_release_payload_has_no_holder(self):
        holder = HolderMetadata(agent_name="Ana Souza")
        assert build_reservation_payload("RV-001", False, holder) == {"rowname": "RV-001", "reservado": 0}

    def test_sold_payload(self):
        assert build_sold_payload("RV-001") == {"rowname": "RV-001"}

    def test_unit_record_from_row(self):
        row = {
            "rowname": "RV-002",
            "docname": "EMP-0001",
            "status_vendas": "Reservado",
            "reservado_por": "Carlos Lima",
            "ok": 1,
            "bloco": "B",
            "valor": 350000,
        }
        record = FrappeUnit.model_validate(row).to_unit_record("ignored")
        assert record.unit_id == "RV-002"
        assert record.status == UnitStatus.RESERVED
        assert record.upstream_status == "Reservado"
        assert record.docname == "EMP-0001"
        assert record.holder.agent_name == "Carlos Lima"
        assert record.attributes == {"bloco": "B", "valor": 350000}

    def test_unit_record_falls_back_to_status_field(self):
        record = FrappeUnit.model_validate({"status": "Vendido"}).to_unit_record("RV-009")
        assert record.unit_id == "RV-009"
        assert record.status == UnitStatus.SOLD

    def test_row_without_status_is_not_a_unit(self):
        assert FrappeUnit.model_validate({"rowname": "RV-001"}).to_unit_record("RV-001") is None


class TestFrappeApiClient:
    """Test the HTTP client."""

    def test_token_header(self):
        client = FrappeApiClient(UpstreamEndpoint.from_raw("http://erp.test"), ERPCredentials.from_raw("k", "s"))
        headers = client._get_headers(has_body=True)
        assert headers["Authorization"] == "token k:s"
        assert headers["Content-Type"] == "application/json"

    def test_no_token_no_authorization_header(self):
        client = FrappeApiClient(UpstreamEndpoint.from_raw("http://erp.test"), ERPCredentials.from_raw("", ""))
        headers = client._get_headers()
        assert "Authorization" not in headers
        assert "Content-Type" not in headers

    async def test_token_sent_to_erp(self, stub_erp):
        async with make_connector(stub_erp.base_url, "api-key", "api-secret") as connector:
            await connector.lookup_unit("RV-001")
        assert stub_erp.authorization_headers == ["token api-key:api-secret"]

    async def test_lookup_sends_rowname_query(self, stub_erp):
        async with make_connector(stub_erp.base_url) as connector:
            await connector.lookup_unit("RV-001")
        assert stub_erp.method_calls("get_unit") == [{"rowname": "RV-001"}]

    async def test_timeout_is_transport_error(self, stub_erp):
        stub_erp.delay = 1.0
        async with make_connector(stub_erp.base_url, timeout=0.1) as connector:
            with pytest.raises(TransportError):
                await connector.lookup_unit("RV-001")

    async def test_connection_refused_is_transport_error(self):
        async with make_connector("http://127.0.0.1:1") as connector:
            with pytest.raises(TransportError):
                await connector.set_sold("RV-001")

    async def test_empty_base_url_is_configuration_error(self):
        async with make_connector("\u200e") as connector:
            with pytest.raises(ConfigurationError):
                await connector.lookup_unit("RV-001")


class TestNormalization:
    """Test how raw exchanges become UpstreamResult."""

    def setup_method(self):
        self.connector = make_connector()

    def normalize(self, status_code, text, lookup=False):
        response = UpstreamResponse(status_code=status_code, body=parse_body(text), raw_text=text)
        return self.connector._normalize("RV-001", response, lookup=lookup)

    def test_unit_row(self):
        result = self.normalize(200, json.dumps({"message": {"rowname": "RV-001", "status_vendas": "Reservado", "ok": True}}))
        assert result.is_success
        assert result.ok is True
        assert result.unit.status == UnitStatus.RESERVED
        assert result.message is None

    def test_not_applied_flag(self):
        result = self.normalize(200, json.dumps({"message": {"ok": 0, "status_vendas": "Reservado"}}))
        assert result.ok is False
        assert result.unit.status == UnitStatus.RESERVED

    def test_non_json_success_keeps_text(self):
        result = self.normalize(200, "Internal error page", lookup=True)
        assert result.unit is None
        assert not result.not_found
        assert result.message == "Internal error page"
        assert result.body == {"message": "Internal error page"}

    def test_404(self):
        result = self.normalize(404, json.dumps({"exc_type": "DoesNotExistError", "exception": "gone"}))
        assert result.not_found
        assert result.message == "gone"

    def test_does_not_exist_on_other_status(self):
        result = self.normalize(417, json.dumps({"exc_type": "DoesNotExistError"}))
        assert result.not_found

    def test_empty_lookup_is_not_found(self):
        assert self.normalize(200, json.dumps({"message": None}), lookup=True).not_found
        assert self.normalize(200, "", lookup=True).not_found

    def test_error_status_passes_through(self):
        result = self.normalize(403, json.dumps({
            "exc_type": "PermissionError",
            "_server_messages": server_messages("Not permitted"),
        }))
        assert result.status_code == 403
        assert not result.is_success
        assert result.message == "Not permitted"


class TestConnectorRegistry:
    """Test connector registration."""

    def test_frappe_registered(self):
        assert "frappe" in list_available_connectors()

    def test_create_frappe_connector(self):
        connector = create_connector(ERPConfig(connector_type="Frappe"))
        assert isinstance(connector, FrappeReservationConnector)
        assert connector.get_connector_name() == "Frappe"

    def test_unknown_connector(self):
        with pytest.raises(ConfigurationError):
            create_connector(ERPConfig(connector_type="sap"))

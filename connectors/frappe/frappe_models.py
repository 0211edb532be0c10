"""Frappe data models.

These are Frappe-specific models that map to the ERP's custom whitelisted
methods for real-estate units. They are separate from the normalized models
in connectors/erp_base.py.

Remote methods:
    custom.get_unidade_by_rowname   GET  ?rowname=<id>
    custom.set_reserva_db           POST {rowname, reservado, holder fields}
    custom.set_vendido              POST {rowname}

Whitelisted methods wrap their return value as {"message": <value>}.
Failures come back as {"exc_type", "exception", "_server_messages"}.
"""

import json
import unicodedata
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from connectors.erp_base import HolderMetadata, UnitRecord, UnitStatus


GET_UNIT_METHOD = "custom.get_unidade_by_rowname"
SET_RESERVATION_METHOD = "custom.set_reserva_db"
SET_SOLD_METHOD = "custom.set_vendido"

# HolderMetadata field -> Frappe field
HOLDER_FIELD_MAP = {
    "agent_name": "reservado_por",
    "client_name": "cliente_nome",
    "client_contact": "cliente_contato",
    "client_document": "cliente_documento",
    "notes": "observacao_reserva",
}

STATUS_FIELDS = ("status_vendas", "status")

# Keys that describe the call itself rather than the unit
ENVELOPE_FIELDS = {"ok", "rowname", "docname", "name", "message"}

STATUS_ALIASES = {
    "disponivel": UnitStatus.AVAILABLE,
    "available": UnitStatus.AVAILABLE,
    "livre": UnitStatus.AVAILABLE,
    "reservado": UnitStatus.RESERVED,
    "reservada": UnitStatus.RESERVED,
    "reserved": UnitStatus.RESERVED,
    "vendido": UnitStatus.SOLD,
    "vendida": UnitStatus.SOLD,
    "sold": UnitStatus.SOLD,
}


def normalize_status(raw: Optional[str]) -> UnitStatus:
    """Map a Frappe status string to UnitStatus (case/accent-insensitive)."""
    if raw is None:
        return UnitStatus.UNKNOWN
    folded = unicodedata.normalize("NFKD", str(raw))
    folded = "".join(c for c in folded if not unicodedata.combining(c)).strip().lower()
    return STATUS_ALIASES.get(folded, UnitStatus.UNKNOWN)


def extract_message(body: Dict[str, Any]) -> Optional[str]:
    """Pick the human-readable message from a Frappe body.

    Priority: explicit string ``message``, then ``exception``, then
    ``_server_messages``. First present wins.
    """
    message = body.get("message")
    if isinstance(message, str) and message:
        return message

    exception = body.get("exception")
    if isinstance(exception, str) and exception:
        return exception

    server_messages = body.get("_server_messages")
    if server_messages:
        return _decode_server_messages(server_messages)

    return None


def _decode_server_messages(raw: Any) -> str:
    """Decode Frappe's doubly JSON-encoded message list, best effort."""
    items = raw
    if isinstance(raw, str):
        try:
            items = json.loads(raw)
        except ValueError:
            return raw

    if not isinstance(items, list):
        return str(items)

    messages = []
    for item in items:
        if isinstance(item, str):
            try:
                item = json.loads(item)
            except ValueError:
                messages.append(item)
                continue
        if isinstance(item, dict):
            messages.append(str(item.get("message", "")))
        else:
            messages.append(str(item))

    return "; ".join(m for m in messages if m) or str(raw)


def parse_ok_flag(value: Any) -> Optional[bool]:
    """Frappe sends ok as bool or 0/1."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return None


class FrappeBaseModel(BaseModel):
    """Base model for Frappe payloads."""

    class Config:
        populate_by_name = True
        extra = "allow"


class FrappeUnit(FrappeBaseModel):
    """Unit row as returned by the ERP.

    Maps to: custom.get_unidade_by_rowname / custom.set_reserva_db results
    """
    # Loosely typed: the ERP is not consistent about strings vs numbers here
    rowname: Optional[Any] = Field(None, alias="rowname")
    docname: Optional[Any] = Field(None, alias="docname")
    status_vendas: Optional[Any] = Field(None, alias="status_vendas")
    status: Optional[Any] = Field(None, alias="status")
    ok: Optional[Any] = Field(None, alias="ok")
    reservado_por: Optional[Any] = Field(None, alias="reservado_por")
    cliente_nome: Optional[Any] = Field(None, alias="cliente_nome")
    cliente_contato: Optional[Any] = Field(None, alias="cliente_contato")
    cliente_documento: Optional[Any] = Field(None, alias="cliente_documento")
    observacao_reserva: Optional[Any] = Field(None, alias="observacao_reserva")

    @property
    def raw_status(self) -> Optional[str]:
        for name in STATUS_FIELDS:
            value = getattr(self, name)
            if value is not None:
                return str(value)
        return None

    def holder(self) -> Optional[HolderMetadata]:
        values = {
            field_name: getattr(self, frappe_name)
            for field_name, frappe_name in HOLDER_FIELD_MAP.items()
            if isinstance(getattr(self, frappe_name), str)
        }
        if not any(values.values()):
            return None
        return HolderMetadata(**values)

    def to_unit_record(self, fallback_unit_id: str) -> Optional[UnitRecord]:
        """Normalize, or None when no status field is present."""
        raw_status = self.raw_status
        if raw_status is None:
            return None

        known = set(HOLDER_FIELD_MAP.values()) | set(STATUS_FIELDS) | ENVELOPE_FIELDS
        attributes = {
            key: value
            for key, value in (self.model_extra or {}).items()
            if key not in known
        }

        return UnitRecord(
            unit_id=str(self.rowname) if self.rowname else fallback_unit_id,
            status=normalize_status(raw_status),
            upstream_status=raw_status,
            docname=str(self.docname) if self.docname else None,
            holder=self.holder(),
            attributes=attributes,
        )


def build_reservation_payload(
    unit_id: str,
    reserved: bool,
    holder: Optional[HolderMetadata] = None,
) -> Dict[str, Any]:
    """Body for custom.set_reserva_db."""
    payload: Dict[str, Any] = {"rowname": unit_id, "reservado": 1 if reserved else 0}
    if reserved and holder is not None:
        for field_name, value in holder.model_dump(exclude_none=True).items():
            payload[HOLDER_FIELD_MAP[field_name]] = value
    return payload


def build_sold_payload(unit_id: str) -> Dict[str, Any]:
    """Body for custom.set_vendido."""
    return {"rowname": unit_id}

"""Gateway configuration.

Built once at process start from environment variables (optionally loaded
from a ``.env`` file) and passed explicitly to the gateway and the API.
All string values go through the credential sanitizer before first use.

Usage:
    config = GatewayConfig.from_env()
    gateway = ReservationGateway(config)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from core.errors import ConfigurationError
from core.security.credentials import (
    ERPCredentials,
    UpstreamEndpoint,
    sanitize_config_value,
)


REPO_ROOT = Path(__file__).resolve().parents[1]

DEFAULT_CONNECTOR = "frappe"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_ALLOWED_ORIGIN = "*"
DEFAULT_ALLOWED_HEADERS = "Content-Type"


def _parse_timeout(raw: str) -> float:
    if not raw:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"ERP_TIMEOUT_SECONDS must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError("ERP_TIMEOUT_SECONDS must be positive")
    return value


def _parse_bool(raw: str) -> bool:
    return raw.lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class GatewayConfig:
    """Immutable gateway configuration.

    Attributes:
        endpoint: Sanitized ERP base URL
        credentials: Sanitized token key/secret and composed token
        connector_type: Registered connector name (default "frappe")
        session_id: Optional ERP session id sent as the ``sid`` cookie
            when no token is configured
        timeout_seconds: Upper bound for every upstream call
        allowed_origin: Access-Control-Allow-Origin value
        allowed_headers: Access-Control-Allow-Headers value
        log_level: Logging level name
        json_logs: Emit JSON log lines instead of human-readable ones
    """
    endpoint: UpstreamEndpoint = field(default_factory=UpstreamEndpoint)
    credentials: ERPCredentials = field(default_factory=ERPCredentials)
    connector_type: str = DEFAULT_CONNECTOR
    session_id: str = ""
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    allowed_origin: str = DEFAULT_ALLOWED_ORIGIN
    allowed_headers: str = DEFAULT_ALLOWED_HEADERS
    log_level: str = "INFO"
    json_logs: bool = False

    def __post_init__(self):
        # Unsafe tokens are rejected here so the failure shows up at startup,
        # not as an encoding error on the first request.
        self.credentials.validate()

    @classmethod
    def from_mapping(cls, env: Mapping[str, str]) -> "GatewayConfig":
        """Build configuration from an environment-like mapping."""
        def get(name: str, default: str = "") -> str:
            return sanitize_config_value(env.get(name, default))

        return cls(
            endpoint=UpstreamEndpoint.from_raw(env.get("ERP_BASE_URL")),
            credentials=ERPCredentials.from_raw(
                env.get("ERP_TOKEN_KEY"),
                env.get("ERP_TOKEN_SECRET"),
            ),
            connector_type=(get("ERP_CONNECTOR") or DEFAULT_CONNECTOR).lower(),
            session_id=get("ERP_SESSION_ID"),
            timeout_seconds=_parse_timeout(get("ERP_TIMEOUT_SECONDS")),
            allowed_origin=get("ALLOWED_ORIGIN") or DEFAULT_ALLOWED_ORIGIN,
            allowed_headers=get("ALLOWED_HEADERS") or DEFAULT_ALLOWED_HEADERS,
            log_level=(get("LOG_LEVEL") or "INFO").upper(),
            json_logs=_parse_bool(get("LOG_JSON")),
        )

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "GatewayConfig":
        """Load ``.env`` (if present) and build configuration from os.environ."""
        env_path = env_file or REPO_ROOT / ".env"
        if env_path.exists():
            load_dotenv(env_path)
        return cls.from_mapping(os.environ)

    @property
    def is_configured(self) -> bool:
        return self.endpoint.is_configured

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)

    def describe(self) -> Dict[str, Any]:
        """Redacted summary safe for logs and operator output."""
        return {
            "erp_base_url": self.endpoint.base_url or None,
            "connector": self.connector_type,
            "auth": "token" if self.credentials.has_token else (
                "session" if self.session_id else "none"
            ),
            "token_key": self.credentials.key or None,
            "timeout_seconds": self.timeout_seconds,
            "allowed_origin": self.allowed_origin,
            "allowed_headers": self.allowed_headers,
        }

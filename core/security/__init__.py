"""Security utilities.

Provides:
- Sanitization of configuration-provided credentials and URLs
- Immutable credential and endpoint values composed once at startup
"""

from core.security.credentials import (
    ERPCredentials,
    UpstreamEndpoint,
    compose_token,
    contains_forbidden_characters,
    sanitize_base_url,
    sanitize_config_value,
)

__all__ = [
    "ERPCredentials",
    "UpstreamEndpoint",
    "compose_token",
    "contains_forbidden_characters",
    "sanitize_base_url",
    "sanitize_config_value",
]

"""Credential and endpoint sanitization.

Configuration values pasted into deployment dashboards regularly pick up
invisible characters (U+200E left-to-right marks, zero-width spaces, stray
newlines). HTTP header values must be plain ASCII, so such a character in the
token turns every call into an opaque transport failure. Everything read from
configuration passes through here once, at startup.
"""

import re
from dataclasses import dataclass
from typing import Optional

from core.errors import ConfigurationError


# C0 controls, DEL, and everything above '~'
FORBIDDEN_CHARACTERS = re.compile(r"[\x00-\x1f\x7f-\U0010ffff]")


def sanitize_config_value(raw: Optional[str]) -> str:
    """Strip control and non-ASCII characters, then surrounding whitespace."""
    if raw is None:
        return ""
    return FORBIDDEN_CHARACTERS.sub("", str(raw)).strip()


def sanitize_base_url(raw: Optional[str]) -> str:
    """Sanitize a base URL and drop a trailing slash."""
    value = sanitize_config_value(raw)
    if value.endswith("/"):
        value = value[:-1]
    return value


def contains_forbidden_characters(value: str) -> bool:
    return bool(FORBIDDEN_CHARACTERS.search(value or ""))


def compose_token(key: Optional[str], secret: Optional[str]) -> str:
    """Build the ERP token header value.

    Returns ``token <key>:<secret>`` only when both parts survive
    sanitization; an empty string means no token auth.
    """
    clean_key = sanitize_config_value(key)
    clean_secret = sanitize_config_value(secret)
    if not clean_key or not clean_secret:
        return ""
    return f"token {clean_key}:{clean_secret}"


@dataclass(frozen=True)
class ERPCredentials:
    """Sanitized key/secret pair and the composed token."""
    key: str = ""
    secret: str = ""
    token: str = ""

    @classmethod
    def from_raw(cls, key: Optional[str], secret: Optional[str]) -> "ERPCredentials":
        clean_key = sanitize_config_value(key)
        clean_secret = sanitize_config_value(secret)
        return cls(
            key=clean_key,
            secret=clean_secret,
            token=compose_token(clean_key, clean_secret),
        )

    @property
    def has_token(self) -> bool:
        return bool(self.token)

    @property
    def authorization_header(self) -> Optional[str]:
        """Header value, or None when session auth should be used."""
        return self.token or None

    def validate(self) -> None:
        """Fail closed if the token could still break header encoding."""
        if contains_forbidden_characters(self.token):
            raise ConfigurationError(
                "ERP token contains invisible or non-ASCII characters; "
                "fix ERP_TOKEN_KEY/ERP_TOKEN_SECRET"
            )

    def __repr__(self) -> str:
        return f"ERPCredentials(key={self.key!r}, secret='***', token={'set' if self.token else 'unset'})"


@dataclass(frozen=True)
class UpstreamEndpoint:
    """Sanitized ERP base URL."""
    base_url: str = ""

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "UpstreamEndpoint":
        return cls(base_url=sanitize_base_url(raw))

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    def require(self) -> str:
        """Return the base URL or raise if it is unusable."""
        if not self.base_url:
            raise ConfigurationError(
                "ERP_BASE_URL is missing or empty after removing invisible characters"
            )
        return self.base_url

    def method_url(self, method_name: str) -> str:
        """URL of a whitelisted ERP method, e.g. ``custom.set_reserva_db``."""
        return f"{self.require()}/api/method/{method_name}"

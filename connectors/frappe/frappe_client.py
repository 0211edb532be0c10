"""Frappe HTTP Client.

Low-level HTTP client for calls to whitelisted Frappe methods.
Handles authentication headers, timeouts, body parsing and transport errors.

Upstream status codes are passed through untouched; only network-level
failures are turned into exceptions. There is no retry here: callers decide
whether a TransportError is worth repeating.
"""

import asyncio
import json
import time
from typing import Any, Dict, Optional

import aiohttp

from connectors.erp_base import UpstreamResponse
from core.errors import TransportError
from core.observability.logging import get_logger
from core.observability.metrics import record_processing_time
from core.security.credentials import ERPCredentials, UpstreamEndpoint

logger = get_logger(__name__)


def parse_body(text: str) -> Dict[str, Any]:
    """Parse an ERP body without ever failing.

    Non-JSON bodies (proxy error pages, HTML login redirects) are wrapped
    as ``{"message": <text>}`` so they stay visible to whoever debugs the
    upstream.
    """
    if not text:
        return {}
    try:
        data = json.loads(text)
    except ValueError:
        return {"message": text}
    if isinstance(data, dict):
        return data
    return {"message": data}


class FrappeApiClient:
    """HTTP client for Frappe whitelisted methods.

    Provides:
    - Token auth header when credentials are configured, session cookie otherwise
    - Per-call timeout
    - Lenient body parsing

    Usage:
        client = FrappeApiClient(endpoint, credentials, timeout_seconds=10)
        await client.connect()
        response = await client.get_method("custom.get_unidade_by_rowname", {"rowname": "RV-001"})
    """

    def __init__(
        self,
        endpoint: UpstreamEndpoint,
        credentials: ERPCredentials,
        timeout_seconds: float = 10.0,
        session_id: str = "",
    ):
        """Initialize API client.

        Args:
            endpoint: Sanitized ERP base URL
            credentials: Sanitized token credentials (may carry no token)
            timeout_seconds: Upper bound for each call
            session_id: ERP ``sid`` cookie used when there is no token
        """
        self.endpoint = endpoint
        self.credentials = credentials
        self.timeout_seconds = timeout_seconds
        self.session_id = session_id
        self._session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        """Initialize the HTTP session."""
        if self._session is not None and not self._session.closed:
            return
        cookies = {"sid": self.session_id} if self.session_id and not self.credentials.has_token else None
        self._session = aiohttp.ClientSession(cookies=cookies)

    async def disconnect(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    @property
    def is_connected(self) -> bool:
        return self._session is not None and not self._session.closed

    def _get_headers(self, has_body: bool = False) -> Dict[str, str]:
        """Get headers for API requests."""
        headers = {"Accept": "application/json"}
        if has_body:
            headers["Content-Type"] = "application/json"
        auth_header = self.credentials.authorization_header
        if auth_header:
            headers["Authorization"] = auth_header
        return headers

    async def _request(
        self,
        http_method: str,
        method_name: str,
        params: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> UpstreamResponse:
        """Call a whitelisted method and return the raw exchange.

        Raises:
            ConfigurationError: The endpoint has no base URL
            TransportError: Timeout, refused connection, DNS failure
        """
        url = self.endpoint.method_url(method_name)

        if not self.is_connected:
            await self.connect()

        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        started = time.monotonic()

        try:
            async with self._session.request(
                http_method,
                url,
                headers=self._get_headers(has_body=data is not None),
                params=params,
                json=data,
                timeout=timeout,
            ) as response:
                response_text = await response.text(errors="replace")
                status_code = response.status
        except asyncio.TimeoutError as e:
            logger.warning(
                f"ERP call timed out after {self.timeout_seconds}s",
                extra_fields={"method": method_name},
            )
            raise TransportError(
                f"ERP did not answer within {self.timeout_seconds}s"
            ) from e
        except aiohttp.ClientError as e:
            logger.warning(
                f"ERP call failed with {type(e).__name__}: {e}",
                extra_fields={"method": method_name},
            )
            raise TransportError(f"Could not reach ERP: {e}") from e

        duration_ms = (time.monotonic() - started) * 1000
        record_processing_time(f"upstream.{method_name}", duration_ms)
        logger.debug(
            f"ERP {http_method} {method_name} -> {status_code}",
            extra_fields={"duration_ms": round(duration_ms, 1)},
        )

        return UpstreamResponse(
            status_code=status_code,
            body=parse_body(response_text),
            raw_text=response_text,
        )

    async def get_method(self, method_name: str, params: Optional[Dict[str, str]] = None) -> UpstreamResponse:
        """GET a whitelisted method with query parameters."""
        return await self._request("GET", method_name, params=params)

    async def post_method(self, method_name: str, data: Optional[Dict[str, Any]] = None) -> UpstreamResponse:
        """POST a JSON body to a whitelisted method."""
        return await self._request("POST", method_name, data=data or {})

"""
HTTP transport for the Shopify client.

A thin wrapper over requests.Session: it sends one HTTP request and returns
status, headers and body. It never retries and never raises on HTTP error
statuses; that policy lives in the client.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import requests
from requests.structures import CaseInsensitiveDict

from .config import ClientConfig
from .runtime.errors import RequestInfo, ResponseInfo, TransportError

logger = logging.getLogger(__name__)

SECRET_HEADERS = frozenset({"x-shopify-access-token", "authorization"})


def redact_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Copy of the headers with credentials masked, for error details and logs."""
    return {key: ("***" if key.lower() in SECRET_HEADERS else value) for key, value in headers.items()}


@dataclass
class TransportResponse:
    """Raw response returned by the transport."""

    status: int
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: bytes = b""
    request: Optional[RequestInfo] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name)

    def info(self) -> ResponseInfo:
        return ResponseInfo(status=self.status, headers=dict(self.headers), body=self.text)


class HttpTransport:
    """
    Sends requests to the Shopify Admin API through a requests.Session.

    Args:
        base_url: Admin API root, joined with relative request targets
        headers: Default headers sent with every request
        timeout: Request timeout in seconds
        session: Optional requests.Session; owned (and closed) by the
            transport when not supplied
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[Mapping[str, str]] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url if base_url.endswith('/') else base_url + '/'
        self.headers: Dict[str, str] = dict(headers or {})
        self.timeout = timeout
        self._session = session or requests.Session()
        self._owns_session = session is None

    def url_for(self, target: str) -> str:
        if target.startswith(('http://', 'https://')):
            return target
        return self.base_url + target.lstrip('/')

    def send(self, method: str, target: str, body: Optional[str] = None) -> TransportResponse:
        """
        Send one HTTP request.

        Args:
            method: HTTP method
            target: Path relative to base_url (query string included) or absolute URL
            body: JSON-encoded request body

        Returns:
            TransportResponse for any HTTP status

        Raises:
            TransportError: No response was received
        """
        url = self.url_for(target)
        request_info = RequestInfo(method=method.upper(), url=url, headers=redact_headers(self.headers), body=body)
        logger.debug(f"{request_info.method} {url}")

        try:
            response = self._session.request(
                method.upper(),
                url,
                headers=self.headers,
                data=body.encode('utf-8') if body is not None else None,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"HTTP request failed: {e}", request=request_info, cause=e) from e

        return TransportResponse(
            status=response.status_code,
            headers=CaseInsensitiveDict(response.headers),
            body=response.content or b"",
            request=request_info,
        )

    def close(self) -> None:
        """Close the HTTP session if owned by this transport."""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def build_transport(config: ClientConfig, session: Optional[requests.Session] = None) -> HttpTransport:
    """Build the transport for a configuration. Called again whenever the config changes."""
    return HttpTransport(
        base_url=config.base_url,
        headers=config.headers(),
        timeout=config.timeout,
        session=session,
    )

"""
Shopify Admin REST API client.

ShopifyClient issues one logical request at a time with:
- bounded retries on 500/502/503/504 and on 429, counted separately
- the Retry-After cool-down (or one second) after every 429, including the last
- self-throttling based on X-Shopify-Shop-Api-Call-Limit after every success
- generic unwrapping of the single-key JSON envelope Shopify responds with

All waiting blocks the calling thread. A client is not meant to be shared
between threads.
"""

from __future__ import annotations
import logging
import time
from typing import Any, Mapping, Optional, Tuple, Union
from urllib.parse import urlencode

import requests
from requests.structures import CaseInsensitiveDict

from .collection import Collection, open_collection
from .config import ClientConfig
from .recovery.retry import FailureKind, RetryBudget, parse_retry_after
from .runtime.codec import encode_json
from .runtime.errors import (
    NonRetryableResponseError,
    RateLimitError,
    RequestError,
    ServerError,
)
from .transport import HttpTransport, TransportResponse, build_transport
from .versioning import is_valid_api_version, oldest_supported_version

logger = logging.getLogger(__name__)

CALL_LIMIT_HEADER = "X-Shopify-Shop-Api-Call-Limit"
API_VERSION_HEADER = "X-Shopify-API-Version"
RETRY_AFTER_HEADER = "Retry-After"

_ERROR_TYPES = {
    FailureKind.SERVER_ERROR: ServerError,
    FailureKind.RATE_LIMIT: RateLimitError,
    FailureKind.NON_RETRYABLE: NonRetryableResponseError,
}


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set)):
        return ",".join(_query_value(v) for v in value)
    return str(value)


def build_request_target(endpoint: str, query: Optional[Mapping[str, Any]] = None) -> str:
    """
    Relative request target for an endpoint.

    Appends ".json" unless already present and the encoded query string when
    parameters are given. Lists are sent comma-separated, the way Shopify
    expects ``ids`` and ``fields``; ``None`` values are dropped.
    """
    target = endpoint.strip().lstrip('/')
    if not target.endswith('.json'):
        target += '.json'
    params = [(key, _query_value(value)) for key, value in (query or {}).items() if value is not None]
    if params:
        target += '?' + urlencode(params)
    return target


def parse_call_limit(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """Parse "used/total" from the call-limit header; None when absent or malformed."""
    if not value:
        return None
    used, sep, total = value.partition('/')
    if not sep:
        return None
    try:
        used_n, total_n = int(used.strip()), int(total.strip())
    except ValueError:
        return None
    if total_n <= 0:
        return None
    return used_n, total_n


class ShopifyClient:
    """
    Shopify Admin REST API client.

    Example:
        ```python
        config = ClientConfig(handle="my-store", access_token="shpat_...",
                              max_attempts_on_server_errors=3)
        with ShopifyClient(config) as shopify:
            product = shopify.get("products/632910392")
            for order in shopify.collection("orders", status="any"):
                ...
        ```
    """

    def __init__(
        self,
        config: Union[ClientConfig, Mapping[str, Any]],
        transport: Optional[HttpTransport] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            config: ClientConfig or a mapping of public option names
            transport: Pre-built transport (tests); built from config otherwise
            session: Optional requests.Session handed to the built transport
        """
        if not isinstance(config, ClientConfig):
            config = ClientConfig.from_options(config)
        self._config = config
        self._session = session
        self._transport = transport or build_transport(config, session)

        self.last_status: Optional[int] = None
        self.last_headers: CaseInsensitiveDict = CaseInsensitiveDict()
        self._discovered_version: Optional[str] = None

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def transport(self) -> HttpTransport:
        return self._transport

    @property
    def api_version(self) -> str:
        """
        Effective API version.

        The pinned version when configured, else the version reported by the
        last response, else the oldest supported version.
        """
        return self._config.api_version or self._discovered_version or oldest_supported_version()

    def with_config(self, **changes: Any) -> ShopifyClient:
        """New client with updated settings and a freshly built transport."""
        config = self._config.with_changes(**changes)
        client = type(self)(config, transport=build_transport(config, self._session), session=self._session)
        client._remember_version(self._discovered_version)
        return client

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> ShopifyClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # =========================================================================
    # HTTP verbs
    # =========================================================================

    def get(self, endpoint: str, query: Optional[Mapping[str, Any]] = None) -> Any:
        return self.request("GET", endpoint, query=query)

    def post(self, endpoint: str, data: Optional[Any] = None) -> Any:
        return self.request("POST", endpoint, data=data)

    def put(self, endpoint: str, data: Optional[Any] = None) -> Any:
        return self.request("PUT", endpoint, data=data)

    def delete(self, endpoint: str) -> Any:
        return self.request("DELETE", endpoint)

    def collection(self, endpoint: str, **options: Any) -> Collection:
        """Lazy collection over a paginated endpoint. See open_collection."""
        return open_collection(self, endpoint, options)

    # =========================================================================
    # Request execution
    # =========================================================================

    def request(
        self,
        method: str,
        endpoint: str,
        query: Optional[Mapping[str, Any]] = None,
        data: Optional[Any] = None
    ) -> Any:
        """
        Execute one logical API request.

        Args:
            method: HTTP method
            endpoint: Endpoint path, e.g. "products" or "orders/450789469"
            query: Query string parameters
            data: Body for POST/PUT, sent as JSON when not empty

        Returns:
            The decoded response body, envelope removed

        Raises:
            ServerError: 5xx after max_attempts_on_server_errors attempts
            RateLimitError: 429 after max_attempts_on_rate_limit_errors attempts
            NonRetryableResponseError: Any other non-2xx status
            TransportError: No response received
        """
        method = method.upper()
        target = build_request_target(endpoint, query)
        body = encode_json(data) if method in ("POST", "PUT") and data else None

        budget = RetryBudget(
            max_server_errors=self._config.max_attempts_on_server_errors,
            max_rate_limit_errors=self._config.max_attempts_on_rate_limit_errors,
        )
        response: Optional[TransportResponse] = None
        last_error: Optional[RequestError] = None

        while budget.allows_attempt:
            attempt = budget.start_attempt()
            result = self._transport.send(method, target, body)
            if result.ok:
                response = result
                break

            kind = budget.record_failure(attempt, result.status)
            last_error = _ERROR_TYPES[kind](result.request, result.info(), attempts=attempt.attempt)

            if kind is FailureKind.NON_RETRYABLE:
                logger.debug(f"{method} {target} failed with {result.status}, not retrying")
                break

            if kind is FailureKind.SERVER_ERROR:
                logger.warning(
                    f"{method} {target} failed with {result.status} "
                    f"({budget.server_errors}/{budget.max_server_errors} server errors)"
                )
                continue

            attempt.delay = parse_retry_after(result.header(RETRY_AFTER_HEADER))
            logger.warning(
                f"{method} {target} rate limited "
                f"({budget.rate_limit_errors}/{budget.max_rate_limit_errors}). "
                f"Cooling down for {attempt.delay:.2f}s"
            )
            time.sleep(attempt.delay)

        if response is None:
            raise last_error

        if budget.total_attempts > 1:
            logger.info(f"{method} {target} succeeded on attempt {budget.total_attempts}")

        self.last_status = response.status
        self.last_headers = response.headers
        self._remember_version(response.header(API_VERSION_HEADER))
        self._throttle(response.header(CALL_LIMIT_HEADER))

        return self._config.response_formatter.output(response.body)

    def _remember_version(self, value: Optional[str]) -> None:
        if self._config.api_version or not value or value == self._discovered_version:
            return
        if not is_valid_api_version(value):
            logger.debug(f"Ignoring invalid {API_VERSION_HEADER} header: {value!r}")
            return
        self._discovered_version = value
        # Later requests go to the versioned path the shop reported
        self._transport.base_url = self._config.with_changes(api_version=value).base_url
        logger.info(f"Discovered API version {value} for {self._config.permanent_domain}")

    def _throttle(self, call_limit: Optional[str]) -> None:
        usage = parse_call_limit(call_limit)
        if usage is None:
            if call_limit:
                logger.debug(f"Ignoring malformed {CALL_LIMIT_HEADER} header: {call_limit!r}")
            return
        used, total = usage
        if used / total > self._config.max_limit_rate:
            logger.info(
                f"API call limit at {used}/{total}, sleeping {self._config.max_limit_rate_sleep_sec}s"
            )
            time.sleep(self._config.max_limit_rate_sleep_sec)

    def __repr__(self) -> str:
        return f"ShopifyClient(handle={self._config.handle!r}, api_version={self.api_version!r})"
"""
Errors raised by the Shopify Admin client.

Configuration problems surface when a config or collection is built; HTTP
failures surface after the retry budget is spent and keep snapshots of the
request and of the final response.
"""

from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
from enum import IntEnum
from urllib.parse import urlsplit


class ErrorCode(IntEnum):
    """Error codes used across the client."""

    # General errors (1-99)
    UNKNOWN = 1
    INTERNAL = 2

    # Configuration errors (100-199)
    INVALID_CONFIGURATION = 100
    INVALID_OPTION = 101
    INVALID_API_VERSION = 102
    CLIENT_NOT_FOUND = 103

    # Capability errors (200-299)
    UNSUPPORTED_ENDPOINT = 200
    UNSUPPORTED_OPERATION = 201

    # Request errors (300-399)
    REQUEST_FAILED = 300
    SERVER_ERROR = 301
    RATE_LIMITED = 302
    NON_RETRYABLE_RESPONSE = 303

    # Transport errors (400-499)
    TRANSPORT_ERROR = 400


class ShopifyError(Exception):
    """
    Root of every error the client raises.

    Catch it to handle any failure talking to a shop. ``code`` groups the
    failure (configuration, capability, HTTP response, transport) and
    ``details`` holds the values needed to act on it, e.g. the endpoint
    that has no pagination strategy or the status of a failed response.

    Args:
        message: Human readable message; for failed responses, the body
            Shopify returned
        code: ErrorCode of the failure family
        details: Structured context (JSON-serializable values)
        cause: Lower-level exception, e.g. a requests ConnectionError
    """

    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        text = f"[{self.code.name}] {self.message}"
        if self.details:
            text += f" | Details: {self.details}"
        if self.cause:
            text += f" | Caused by: {self.cause}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        """Error as a JSON-serializable mapping, for structured logs and API responses."""
        result: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ConfigurationError(ShopifyError):
    """Invalid client configuration, detected at construction or set time."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_CONFIGURATION,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, code, details, cause)


class InvalidOptionError(ConfigurationError):
    """Unknown option name or invalid option value."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.INVALID_OPTION, details, cause)


class ApiVersionError(ConfigurationError):
    """Invalid API version string."""

    category = "format"

    def __init__(self, message: str, value: str):
        super().__init__(message, ErrorCode.INVALID_API_VERSION,
                         {"value": value, "category": self.category})
        self.value = value


class ApiVersionFormatError(ApiVersionError):
    """The version is not in the YYYY-MM form."""

    category = "format"


class ApiVersionYearError(ApiVersionError):
    """The version predates the versioned API."""

    category = "year"


class ApiVersionMonthError(ApiVersionError):
    """The version month is not a quarterly release month."""

    category = "month"


class ClientNotFoundError(ConfigurationError):
    """No client registered under the requested name."""

    def __init__(self, name: str):
        super().__init__(
            f'Shopify client configuration not found with such a name: "{name}"',
            ErrorCode.CLIENT_NOT_FOUND,
            {"name": name},
        )
        self.name = name


class UnsupportedEndpointError(ConfigurationError):
    """No pagination strategy is defined for the endpoint."""

    def __init__(self, endpoint: str, api_version: Optional[str] = None):
        details: Dict[str, Any] = {"endpoint": endpoint}
        if api_version:
            details["api_version"] = api_version
        super().__init__(
            f"Pagination type is not defined for `{endpoint}` endpoint",
            ErrorCode.UNSUPPORTED_ENDPOINT,
            details,
        )
        self.endpoint = endpoint
        self.api_version = api_version


class UnsupportedOperationError(ShopifyError, TypeError):
    """
    The endpoint does not support the requested operation.

    Also a TypeError so len() based length hints (list(collection)) fall
    back to plain iteration.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.UNSUPPORTED_OPERATION, details)


@dataclass
class RequestInfo:
    """Snapshot of an outgoing request kept for diagnostics."""

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme

    @property
    def host(self) -> str:
        return urlsplit(self.url).netloc

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    @property
    def query(self) -> str:
        return urlsplit(self.url).query

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "scheme": self.scheme,
            "host": self.host,
            "path": self.path,
            "query": self.query,
            "headers": dict(self.headers),
            "body": self.body,
        }


@dataclass
class ResponseInfo:
    """Snapshot of a received response kept for diagnostics."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.status,
            "headers": dict(self.headers),
            "body": self.body,
        }


class TransportError(ShopifyError):
    """The request never produced an HTTP response."""

    def __init__(self, message: str, request: Optional[RequestInfo] = None,
                 cause: Optional[Exception] = None):
        details = {"request": request.to_dict()} if request else None
        super().__init__(message, ErrorCode.TRANSPORT_ERROR, details, cause)
        self.request = request


class RequestError(ShopifyError):
    """
    Failed API request.

    The message is the response body, the way Shopify reports errors. The
    original request and the final response are kept so callers can log the
    full context without re-deriving it.
    """

    default_code = ErrorCode.REQUEST_FAILED

    def __init__(self, request: RequestInfo, response: ResponseInfo,
                 attempts: int = 1, cause: Optional[Exception] = None):
        super().__init__(response.body or f"HTTP {response.status}", self.default_code,
                         {"status": response.status, "attempts": attempts}, cause)
        self.request = request
        self.response = response
        self.attempts = attempts

    @property
    def status(self) -> int:
        return self.response.status

    def errors(self) -> List[str]:
        """Flatten the `errors` member of a JSON error body into messages."""
        try:
            payload = json.loads(self.response.body)
        except ValueError:
            return [self.response.body] if self.response.body else []
        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors is None:
            return []
        if isinstance(errors, str):
            return [errors]
        if isinstance(errors, list):
            return [str(e) for e in errors]
        if isinstance(errors, dict):
            messages = []
            for key, value in errors.items():
                values = value if isinstance(value, list) else [value]
                messages.extend(f"{key} {v}" for v in values)
            return messages
        return [str(errors)]

    def details_json(self) -> str:
        """Full request/response context as a JSON string."""
        return json.dumps({
            "msg": self.message,
            "request": self.request.to_dict(),
            "response": self.response.to_dict(),
        })


class ServerError(RequestError):
    """5xx response that stayed failing after the server-error ceiling."""

    default_code = ErrorCode.SERVER_ERROR


class RateLimitError(RequestError):
    """429 response that stayed failing after the rate-limit ceiling."""

    default_code = ErrorCode.RATE_LIMITED


class NonRetryableResponseError(RequestError):
    """Any other non-2xx response, surfaced on first occurrence."""

    default_code = ErrorCode.NON_RETRYABLE_RESPONSE

"""
Shopify Admin REST API client for Python.

Provides a retrying, self-throttling request executor, API version helpers,
lazy collections over paginated endpoints and a webhook helper.
"""

# Configuration and client
from .config import ClientConfig
from .client import ShopifyClient
from .registry import ClientRegistry

# Versions and pagination
from .versioning import (
    oldest_supported_version, latest_release, validate_api_version, is_valid_api_version
)
from .pagination import (
    PaginationStrategy, EndpointCapability, ENDPOINT_CAPABILITIES,
    resolve_pagination, supports_count
)
from .collection import Collection, PageNumberCollection, CollectionState, open_collection

# Formatters and webhooks
from .formatters import Formatter, RawFormatter, JsonFormatter, TypedFormatter
from .webhook import Webhook

# Errors
from .runtime.errors import (
    ErrorCode, ShopifyError, ConfigurationError, InvalidOptionError,
    ApiVersionError, ApiVersionFormatError, ApiVersionYearError, ApiVersionMonthError,
    ClientNotFoundError, UnsupportedEndpointError, UnsupportedOperationError,
    RequestError, ServerError, RateLimitError, NonRetryableResponseError, TransportError
)

__version__ = "0.3.0"
__all__ = [
    "ClientConfig",
    "ShopifyClient",
    "ClientRegistry",
    "oldest_supported_version",
    "latest_release",
    "validate_api_version",
    "is_valid_api_version",
    "PaginationStrategy",
    "EndpointCapability",
    "ENDPOINT_CAPABILITIES",
    "resolve_pagination",
    "supports_count",
    "Collection",
    "PageNumberCollection",
    "CollectionState",
    "open_collection",
    "Formatter",
    "RawFormatter",
    "JsonFormatter",
    "TypedFormatter",
    "Webhook",
    "ErrorCode",
    "ShopifyError",
    "ConfigurationError",
    "InvalidOptionError",
    "ApiVersionError",
    "ApiVersionFormatError",
    "ApiVersionYearError",
    "ApiVersionMonthError",
    "ClientNotFoundError",
    "UnsupportedEndpointError",
    "UnsupportedOperationError",
    "RequestError",
    "ServerError",
    "RateLimitError",
    "NonRetryableResponseError",
    "TransportError",
]

"""
Client configuration.

ClientConfig is an immutable value. Changing a setting produces a new
config (``with_changes``) and a client built from it; nothing is mutated in
place behind a live transport.
"""

from __future__ import annotations
import re
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .formatters import Formatter, default_formatter, resolve_formatter
from .runtime.errors import InvalidOptionError
from .versioning import validate_api_version

DEFAULT_USER_AGENT = "shopify-admin-client-python/0.3.0"

# Public option names -> ClientConfig fields
OPTION_NAMES: Dict[str, str] = {
    "domain": "handle",
    "handle": "handle",
    "access_token": "access_token",
    "max_attempts_on_server_errors": "max_attempts_on_server_errors",
    "max_attempts_on_rate_limit_errors": "max_attempts_on_rate_limit_errors",
    "max_limit_rate": "max_limit_rate",
    "max_limit_rate_sleep_sec": "max_limit_rate_sleep_sec",
    "api_version": "api_version",
    "response_formatter": "response_formatter",
    "response_data_formatter": "response_formatter",
    "timeout": "timeout",
    "user_agent": "user_agent",
}


class ClientConfig(BaseModel):
    """
    Configuration for a Shopify Admin API client.

    Attributes:
        handle: Store handle ("test" for test.myshopify.com). A full
            myshopify.com domain or URL is reduced to the handle.
        access_token: Admin API access token
        max_attempts_on_server_errors: Attempts allowed while Shopify answers
            500/502/503/504. The recommended value is 2 or 3.
        max_attempts_on_rate_limit_errors: Attempts allowed while Shopify
            answers 429. Useful when the same token is shared by other apps.
        max_limit_rate: Ratio (0..1) of the call-limit bucket above which the
            client sleeps after a successful call
        max_limit_rate_sleep_sec: Seconds to sleep once max_limit_rate is exceeded
        api_version: Pinned "YYYY-MM" version. When unset, the first request goes
            to the unversioned admin path; the version reported in the
            response headers is remembered and later requests use its
            versioned path.
        timeout: Transport timeout in seconds
        response_formatter: Formatter applied to response bodies
        user_agent: User-Agent header value
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    handle: str = Field(min_length=1)
    access_token: str = ""
    max_attempts_on_server_errors: int = Field(default=1, ge=1)
    max_attempts_on_rate_limit_errors: int = Field(default=1, ge=1)
    max_limit_rate: float = Field(default=0.5, ge=0.0, le=1.0)
    max_limit_rate_sleep_sec: float = Field(default=1.0, ge=0.0)
    api_version: Optional[str] = None
    timeout: float = Field(default=30.0, gt=0.0)
    response_formatter: Formatter = Field(default_factory=default_formatter)
    user_agent: str = DEFAULT_USER_AGENT

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidOptionError(f"Invalid client configuration: {problems}", cause=e) from e

    @field_validator("handle", mode="before")
    @classmethod
    def _normalize_handle(cls, v: Any) -> Any:
        if not isinstance(v, str):
            return v
        handle = v.strip()
        handle = re.sub(r"^https?://", "", handle)
        handle = handle.split("/", 1)[0]
        return re.sub(r"\.myshopify\.com$", "", handle)

    @field_validator("api_version", mode="before")
    @classmethod
    def _check_api_version(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        version = str(v).strip()
        # Raises ApiVersionError subclasses, which pydantic lets through untouched
        validate_api_version(version)
        return version

    @field_validator("response_formatter", mode="before")
    @classmethod
    def _resolve_formatter(cls, v: Any) -> Any:
        try:
            return resolve_formatter(v)
        except ValueError:
            return v

    @property
    def permanent_domain(self) -> str:
        return f"{self.handle}.myshopify.com"

    @property
    def base_url(self) -> str:
        """Admin API root, versioned when a version is pinned."""
        url = f"https://{self.permanent_domain}/admin/"
        if self.api_version:
            url += f"api/{self.api_version}/"
        return url

    def headers(self) -> Dict[str, str]:
        """Headers sent with every request."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if self.access_token:
            headers["X-Shopify-Access-Token"] = self.access_token
        return headers

    def with_changes(self, **changes: Any) -> "ClientConfig":
        """Return a validated copy with the given fields replaced."""
        values = {name: getattr(self, name) for name in type(self).model_fields}
        values.update(_translate_options(changes))
        return type(self)(**values)

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "ClientConfig":
        """
        Build a config from public option names.

        Args:
            options: Mapping using the names in OPTION_NAMES, e.g.
                ``{"domain": "test.myshopify.com", "access_token": "...",
                "max_attempts_on_server_errors": 3}``

        Raises:
            InvalidOptionError: Unknown option name or invalid value
            ApiVersionError: Invalid ``api_version``
        """
        return cls(**_translate_options(options))

    def __repr__(self) -> str:
        return (
            f"ClientConfig(handle={self.handle!r}, api_version={self.api_version!r}, "
            f"max_attempts_on_server_errors={self.max_attempts_on_server_errors}, "
            f"max_attempts_on_rate_limit_errors={self.max_attempts_on_rate_limit_errors})"
        )


def _translate_options(options: Mapping[str, Any]) -> Dict[str, Any]:
    translated: Dict[str, Any] = {}
    for key, value in options.items():
        if key not in OPTION_NAMES:
            raise InvalidOptionError(f"Invalid option `{key}`", details={"option": key})
        translated[OPTION_NAMES[key]] = value
    return translated

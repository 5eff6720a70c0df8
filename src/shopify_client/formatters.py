"""
Response and webhook payload formatters.

Shopify wraps every JSON object response under a single key named after the
resource ("product", "products", "count", ...). The default formatter strips
that envelope generically instead of knowing resource names.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Optional, Type, Union

from pydantic import BaseModel, TypeAdapter

from .runtime.codec import loads

Body = Union[bytes, str]


def unwrap_envelope(value: Any) -> Any:
    """
    Strip the single enclosing key of a decoded response.

    Objects with exactly one key return the inner value; anything else
    (lists, scalars, objects with several keys) is returned unchanged.
    """
    if isinstance(value, dict) and len(value) == 1:
        return next(iter(value.values()))
    return value


class Formatter(ABC):
    """Turns a raw response or webhook body into the value handed to callers."""

    @abstractmethod
    def output(self, data: Body) -> Any:
        pass


class RawFormatter(Formatter):
    """Returns the body bytes untouched."""

    def output(self, data: Body) -> bytes:
        if isinstance(data, str):
            return data.encode('utf-8')
        return data


class JsonFormatter(Formatter):
    """
    Decodes JSON into plain Python values.

    Args:
        unwrap: Strip the single-key resource envelope (responses). Webhook
            payloads are not enveloped and use ``unwrap=False``.
        bigint_as_string: Keep integers outside the signed 64-bit range as strings
    """

    def __init__(self, unwrap: bool = True, bigint_as_string: bool = True):
        self.unwrap = unwrap
        self.bigint_as_string = bigint_as_string

    def output(self, data: Body) -> Any:
        if not data or not data.strip():
            return None
        body = loads(data, bigint_as_string=self.bigint_as_string)
        return unwrap_envelope(body) if self.unwrap else body

    def __repr__(self) -> str:
        return f"JsonFormatter(unwrap={self.unwrap})"


class TypedFormatter(Formatter):
    """
    Decodes JSON into pydantic models.

    A single object becomes ``model``; a list becomes ``list[model]``;
    scalars such as counts pass through unchanged.
    """

    def __init__(self, model: Type[BaseModel], unwrap: bool = True):
        self.model = model
        self._json = JsonFormatter(unwrap=unwrap, bigint_as_string=False)
        self._list_adapter = TypeAdapter(list[model])

    def output(self, data: Body) -> Any:
        value = self._json.output(data)
        if isinstance(value, list):
            return self._list_adapter.validate_python(value)
        if isinstance(value, dict):
            return self.model.model_validate(value)
        return value

    def __repr__(self) -> str:
        return f"TypedFormatter({self.model.__name__})"


def default_formatter() -> Formatter:
    return JsonFormatter()


def resolve_formatter(value: Optional[Union[Formatter, Type[Formatter], str]]) -> Formatter:
    """Accept a formatter instance, class, or one of "raw" / "json" / "array"."""
    if value is None:
        return default_formatter()
    if isinstance(value, Formatter):
        return value
    if isinstance(value, type) and issubclass(value, Formatter):
        return value()
    if isinstance(value, str):
        named = {"raw": RawFormatter, "json": JsonFormatter, "array": JsonFormatter}
        try:
            return named[value.lower()]()
        except KeyError:
            pass
    raise ValueError(f"Unknown response formatter: {value!r}")

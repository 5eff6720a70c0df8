"""
JSON encoding/decoding for Shopify request and response bodies.

Request bodies are encoded compactly; dates, decimals and pydantic models
can be posted directly. Response bodies are decoded keeping integers that
do not fit a signed 64-bit value as strings, so IDs survive a trip through
consumers with narrower integer types.
"""

from __future__ import annotations
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Union

from pydantic import BaseModel

INT64_MAX = 2 ** 63 - 1
INT64_MIN = -(2 ** 63)


class RequestBodyEncoder(json.JSONEncoder):
    """
    Encoder for POST/PUT payloads sent to the Admin API.

    Shopify expects money amounts as strings ("10.50") and timestamps in
    ISO 8601, so Decimal and date values are converted accordingly. Pydantic
    models are dumped by alias with None fields left out, the way resources are
    written back (a product model posts as its JSON attributes).
    """

    def default(self, o: Any) -> Any:
        if isinstance(o, Decimal):
            return str(o)
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if isinstance(o, BaseModel):
            return o.model_dump(mode="json", by_alias=True, exclude_none=True)
        if isinstance(o, (set, frozenset)):
            return sorted(o, key=str)
        return str(o)


def _parse_int(literal: str) -> Union[int, str]:
    value = int(literal)
    if value > INT64_MAX or value < INT64_MIN:
        return literal
    return value


def encode_json(value: Any) -> str:
    """Encode a request body to JSON."""
    return json.dumps(value, cls=RequestBodyEncoder, separators=(',', ':'), ensure_ascii=False)


def loads(s: Union[str, bytes], bigint_as_string: bool = True, **kwargs) -> Any:
    """
    Deserialize a response body.

    Args:
        s: JSON text
        bigint_as_string: Keep integers outside the signed 64-bit range as strings

    Returns:
        Decoded value
    """
    if isinstance(s, bytes):
        s = s.decode('utf-8')
    if bigint_as_string:
        kwargs.setdefault('parse_int', _parse_int)
    return json.loads(s, **kwargs)

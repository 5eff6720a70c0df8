"""Runtime helpers for the Shopify Admin client"""

from .errors import ShopifyError, ErrorCode
from .codec import encode_json, loads

__all__ = [
    "ShopifyError",
    "ErrorCode",
    "encode_json",
    "loads"
]

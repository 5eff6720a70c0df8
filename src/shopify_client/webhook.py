"""
Incoming Shopify webhooks.

Shopify signs every webhook with the app's shared secret: the
X-Shopify-Hmac-Sha256 header carries the base64 HMAC-SHA256 digest of the
raw request body.
"""

from __future__ import annotations
import base64
import hashlib
import hmac
import logging
from typing import Any, Dict, Mapping, Optional, Union

from requests.structures import CaseInsensitiveDict

from .formatters import Formatter, JsonFormatter, RawFormatter

logger = logging.getLogger(__name__)

TOPIC_HEADER = "X-Shopify-Topic"
SHOP_DOMAIN_HEADER = "X-Shopify-Shop-Domain"
API_VERSION_HEADER = "X-Shopify-API-Version"
HMAC_HEADER = "X-Shopify-Hmac-Sha256"


def compute_hmac(secret: Union[str, bytes], body: bytes) -> str:
    """Base64 HMAC-SHA256 digest of a body, as Shopify sends it."""
    key = secret.encode('utf-8') if isinstance(secret, str) else secret
    digest = hmac.new(key, body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode('ascii')


class Webhook:
    """
    One received webhook request.

    Args:
        headers: Request headers (any case)
        body: Raw request body, exactly as received
    """

    def __init__(self, headers: Mapping[str, str], body: Union[bytes, str]):
        self.headers = CaseInsensitiveDict(headers)
        self.body = body.encode('utf-8') if isinstance(body, str) else body

    @property
    def topic(self) -> Optional[str]:
        return self.headers.get(TOPIC_HEADER)

    @property
    def shop_domain(self) -> Optional[str]:
        return self.headers.get(SHOP_DOMAIN_HEADER)

    @property
    def api_version(self) -> Optional[str]:
        return self.headers.get(API_VERSION_HEADER)

    @property
    def hmac_sha256(self) -> Optional[str]:
        return self.headers.get(HMAC_HEADER)

    def data(self, formatter: Optional[Formatter] = None) -> Any:
        """Payload run through a formatter; raw bytes by default."""
        return (formatter or RawFormatter()).output(self.body)

    def as_dict(self) -> Dict[str, Any]:
        """Decoded JSON payload. Webhook payloads carry no envelope."""
        payload = JsonFormatter(unwrap=False).output(self.body)
        return payload if payload is not None else {}

    def validate(self, secret: Union[str, bytes]) -> bool:
        """
        Check the HMAC signature against the app's shared secret.

        Returns:
            False when the header is missing or the digest does not match
        """
        received = self.hmac_sha256
        if not received:
            logger.debug(f"Webhook {self.topic} from {self.shop_domain} has no {HMAC_HEADER} header")
            return False
        expected = compute_hmac(secret, self.body)
        return hmac.compare_digest(expected.encode('ascii'), received.strip().encode('utf-8'))

    def __repr__(self) -> str:
        return f"Webhook(topic={self.topic!r}, shop_domain={self.shop_domain!r})"

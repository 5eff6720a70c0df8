"""
Pagination capabilities of Shopify Admin REST endpoints.

Every paginated endpoint is described once by an EndpointCapability row:
whether a sibling "/count" endpoint exists, which pagination scheme it used
before cursor pagination, and the API version that enabled cursor
(page_info) pagination for it. Once enabled for a version, cursor pagination
stays enabled for every later version.

Endpoint templates use placeholders:
    {id}        numeric ID              e.g. products/{id}/images
    {token}     alphanumeric token      e.g. checkouts/{token}/payments
    {resource}  any owner path          e.g. {resource}/{id}/metafields
A template without placeholders matches the endpoint literally.
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

from .runtime.errors import UnsupportedEndpointError

CURSOR_INTRODUCED = "2019-07"


class PaginationStrategy(Enum):
    """How a collection endpoint is paged."""
    NONE = "none"
    CURSOR = "cursor"
    SINCE_ID = "since_id"
    PAGE_NUMBER = "page"


_PLACEHOLDERS = {
    "id": r"\d+",
    "token": r"[A-Za-z0-9]+",
    "resource": r".+",
}
_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


def _compile_template(template: str) -> Pattern[str]:
    parts: List[str] = []
    pos = 0
    for match in _PLACEHOLDER_RE.finditer(template):
        parts.append(re.escape(template[pos:match.start()]))
        parts.append(_PLACEHOLDERS[match.group(1)])
        pos = match.end()
    parts.append(re.escape(template[pos:]))
    return re.compile("".join(parts), re.IGNORECASE)


def normalize_endpoint(endpoint: str) -> str:
    """Lookup key for an endpoint: no slashes around it, no ".json", no query."""
    key = endpoint.strip().split('?', 1)[0].strip('/')
    if key.endswith('.json'):
        key = key[:-len('.json')]
    return key


@dataclass(frozen=True)
class EndpointPattern:
    """Literal or templated endpoint path."""
    template: str
    regex: Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "regex", _compile_template(self.template))

    @property
    def is_literal(self) -> bool:
        return not _PLACEHOLDER_RE.search(self.template)

    def matches(self, endpoint: str) -> bool:
        key = normalize_endpoint(endpoint)
        if self.is_literal:
            return key.lower() == self.template.lower()
        return self.regex.fullmatch(key) is not None


@dataclass(frozen=True)
class EndpointCapability:
    """
    What an endpoint supports.

    Attributes:
        pattern: Endpoint template
        supports_count: A "{endpoint}/count" sibling exists
        legacy: Strategy used before cursor pagination (or for good, when
            cursor_since is None). None means the endpoint is not paginated
            as a collection at all.
        cursor_since: First API version with cursor pagination
    """
    pattern: EndpointPattern
    supports_count: bool = False
    legacy: Optional[PaginationStrategy] = None
    cursor_since: Optional[str] = None

    def matches(self, endpoint: str) -> bool:
        return self.pattern.matches(endpoint)


def _row(template: str, count: bool = False, legacy: Optional[PaginationStrategy] = None,
         cursor: Optional[str] = None) -> EndpointCapability:
    return EndpointCapability(EndpointPattern(template), count, legacy, cursor)


_NONE = PaginationStrategy.NONE
_SINCE = PaginationStrategy.SINCE_ID
_PAGE = PaginationStrategy.PAGE_NUMBER

_SAVED_SEARCHES_2019_07 = (
    "article_saved_searches", "balance_transaction_saved_searches", "blog_saved_searches",
    "checkout_saved_searches", "collection_saved_searches", "comment_saved_searches",
    "discount_code_saved_searches", "draft_order_saved_searches", "file_saved_searches",
    "gift_card_saved_searches", "inventory_transfer_saved_searches", "page_saved_searches",
    "product_saved_searches", "product_variant_saved_searches", "redirect_saved_searches",
    "transfer_saved_searches",
)

ENDPOINT_CAPABILITIES: Tuple[EndpointCapability, ...] = (
    # Not paginated: everything comes back on one page
    _row("locations", count=True, legacy=_NONE),

    # Cursor pagination since 2019-07
    _row("products", count=True, legacy=_SINCE, cursor="2019-07"),
    _row("collects", count=True, legacy=_SINCE, cursor="2019-07"),
    _row("metafields", count=True, legacy=_SINCE, cursor="2019-07"),
    _row("{resource}/{id}/metafields", count=True, legacy=_SINCE, cursor="2019-07"),
    _row("events", count=True, legacy=_SINCE, cursor="2019-07"),
    _row("customer_saved_searches", count=True, legacy=_SINCE, cursor="2019-07"),
    _row("product_listings", count=True, legacy=_PAGE, cursor="2019-07"),
    _row("collection_listings", legacy=_PAGE, cursor="2019-07"),
    _row("collection_listings/{id}/product_ids", legacy=_PAGE, cursor="2019-07"),
    _row("variants/search", legacy=_PAGE, cursor="2019-07"),
    *(_row(name, legacy=_PAGE, cursor="2019-07") for name in _SAVED_SEARCHES_2019_07),

    # Cursor pagination since 2019-10
    _row("customers", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("customers/search", legacy=_PAGE, cursor="2019-10"),
    _row("customers/{id}/addresses", legacy=_PAGE, cursor="2019-10"),
    _row("orders", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("orders/{id}/fulfillments", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("orders/{id}/refunds", legacy=_PAGE, cursor="2019-10"),
    _row("orders/{id}/risks", legacy=_PAGE, cursor="2019-10"),
    _row("draft_orders", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("blogs", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("blogs/{id}/articles", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("comments", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("pages", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("custom_collections", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("smart_collections", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("price_rules", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("price_rules/{id}/discount_codes", legacy=_PAGE, cursor="2019-10"),
    _row("gift_cards", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("gift_cards/search", legacy=_PAGE, cursor="2019-10"),
    _row("redirects", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("script_tags", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("webhooks", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("marketing_events", count=True, legacy=_PAGE, cursor="2019-10"),
    _row("inventory_items", legacy=_PAGE, cursor="2019-10"),
    _row("inventory_levels", legacy=_PAGE, cursor="2019-10"),
    _row("locations/{id}/inventory_levels", legacy=_PAGE, cursor="2019-10"),
    _row("products/{id}/variants", count=True, legacy=_SINCE, cursor="2019-10"),
    _row("product_listings/product_ids", legacy=_PAGE, cursor="2019-10"),
    _row("reports", legacy=_PAGE, cursor="2019-10"),
    _row("tender_transactions", legacy=_SINCE, cursor="2019-10"),
    _row("shopify_payments/disputes", legacy=_SINCE, cursor="2019-10"),
    _row("shopify_payments/payouts", legacy=_SINCE, cursor="2019-10"),
    _row("shopify_payments/balance/transactions", legacy=_SINCE, cursor="2019-10"),

    # Never cursor-paginated
    _row("products/{id}/images", count=True, legacy=_SINCE),
    _row("orders/{id}/transactions", count=True, legacy=_SINCE),
    _row("checkouts", count=True, legacy=_SINCE),

    # Countable, but not pageable as a collection
    _row("checkouts/{token}/payments", count=True),
    _row("countries", count=True),
    _row("countries/{id}/provinces", count=True),
)


def capabilities_for(endpoint: str,
                     table: Iterable[EndpointCapability] = ENDPOINT_CAPABILITIES) -> List[EndpointCapability]:
    """All capability rows whose pattern matches the endpoint."""
    return [row for row in table if row.matches(endpoint)]


def cursor_timeline(
    table: Iterable[EndpointCapability] = ENDPOINT_CAPABILITIES
) -> List[Tuple[str, Tuple[EndpointPattern, ...]]]:
    """
    Cursor enablement as a sorted list of (version, patterns).

    Each entry lists the endpoints that switched to cursor pagination in
    that version.
    """
    by_version: Dict[str, List[EndpointPattern]] = {}
    for row in table:
        if row.cursor_since:
            by_version.setdefault(row.cursor_since, []).append(row.pattern)
    return [(version, tuple(by_version[version])) for version in sorted(by_version)]


def supports_count(endpoint: str, table: Iterable[EndpointCapability] = ENDPOINT_CAPABILITIES) -> bool:
    """True when "{endpoint}/count" is available."""
    return any(row.supports_count for row in capabilities_for(endpoint, table))


def resolve_pagination(endpoint: str, api_version: str,
                       table: Iterable[EndpointCapability] = ENDPOINT_CAPABILITIES) -> PaginationStrategy:
    """
    Pagination strategy for an endpoint at an API version.

    Precedence: not paginated, then cursor (when enabled at or before
    api_version), then since_id, then page number.

    Raises:
        UnsupportedEndpointError: No strategy applies
    """
    table = tuple(table)
    matches = capabilities_for(endpoint, table)

    if any(row.legacy is PaginationStrategy.NONE for row in matches):
        return PaginationStrategy.NONE

    if api_version >= CURSOR_INTRODUCED:
        for version, patterns in cursor_timeline(table):
            if version > api_version:
                break
            if any(pattern.matches(endpoint) for pattern in patterns):
                return PaginationStrategy.CURSOR

    if any(row.legacy is PaginationStrategy.SINCE_ID for row in matches):
        return PaginationStrategy.SINCE_ID

    if any(row.legacy is PaginationStrategy.PAGE_NUMBER for row in matches):
        return PaginationStrategy.PAGE_NUMBER

    raise UnsupportedEndpointError(normalize_endpoint(endpoint), api_version)

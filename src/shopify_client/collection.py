"""
Lazy collections over paginated Shopify endpoints.

A Collection fetches one page at a time, following whichever pagination
scheme the endpoint uses at the client's API version:

    NONE         one request, everything on it
    PAGE_NUMBER  ?page=N, stops on an empty or short page or once the
                 pages implied by the count have been read
    SINCE_ID     ?since_id=<id of the last record on the current page>
    CURSOR       ?page_info=<token from the Link header rel="next">; filters
                 are only allowed on the first request

Iteration always starts from scratch: ``iter(collection)`` (or
``restart()``) re-issues every request; nothing is cached between runs.
A collection is single-owner state and must not be iterated from several
threads at once.
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional
from urllib.parse import parse_qs, urlsplit

from .pagination import PaginationStrategy, normalize_endpoint, resolve_pagination, supports_count
from .runtime.errors import ConfigurationError, InvalidOptionError, UnsupportedOperationError

if TYPE_CHECKING:
    from .client import ShopifyClient

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 250
MAX_LIMIT = 250
FIRST_SINCE_ID = 1

_REL_NEXT_RE = re.compile(r'rel\s*=\s*"?next"?', re.IGNORECASE)


def next_page_info(link_header: Optional[str]) -> Optional[str]:
    """
    Extract the page_info token of the rel="next" link.

    Args:
        link_header: Link header value, e.g.
            '<https://shop.myshopify.com/admin/api/2019-10/products.json?limit=3&page_info=abc>; rel="next"'

    Returns:
        The token, or None when there is no next page
    """
    if not link_header:
        return None
    for link in link_header.split(','):
        target, _, params = link.partition(';')
        if not _REL_NEXT_RE.search(params):
            continue
        query = urlsplit(target.strip().strip('<>')).query
        values = parse_qs(query).get('page_info')
        if values:
            return values[0]
    return None


def _record_id(record: Any) -> Any:
    if isinstance(record, Mapping):
        return record['id']
    return getattr(record, 'id')


class CollectionState(Enum):
    """Iteration state of a collection."""
    UNSTARTED = "unstarted"
    ITERATING = "iterating"
    EXHAUSTED = "exhausted"


@dataclass
class CollectionCursor:
    """Mutable position of one iteration run."""
    page: int = 1
    page_info: Optional[str] = None
    items: List[Any] = field(default_factory=list)
    position: int = 0
    index: int = 0
    fetched: int = 0
    more_pages: bool = False


class Collection:
    """
    Lazy, restartable sequence of records from a collection endpoint.

    Args:
        client: ShopifyClient used for every request
        endpoint: Collection endpoint, e.g. "products" or "blogs/241253187/articles"
        options: Filters sent with the requests; ``limit`` sets the page size
            (1-250, default 250)

    Raises:
        UnsupportedEndpointError: No pagination strategy for the endpoint
        InvalidOptionError: Invalid ``limit``
    """

    def __init__(self, client: ShopifyClient, endpoint: str, options: Optional[Mapping[str, Any]] = None):
        options = dict(options or {})
        self._client = client
        self.endpoint = normalize_endpoint(endpoint)
        self.api_version = client.api_version
        self.strategy = resolve_pagination(self.endpoint, self.api_version)
        self.limit = self._check_limit(options.pop('limit', DEFAULT_LIMIT))
        self.options: Dict[str, Any] = options

        self._count: Optional[int] = None
        self._countable = supports_count(self.endpoint)
        if self._countable:
            self._count = int(client.get(f"{self.endpoint}/count", self.options))

        self._cursor = CollectionCursor()
        self.state = CollectionState.UNSTARTED
        logger.debug(
            f"Collection {self.endpoint} ({self.strategy.value}, api {self.api_version}, "
            f"limit {self.limit}, count {self._count})"
        )

    @staticmethod
    def _check_limit(value: Any) -> int:
        try:
            limit = int(value)
        except (TypeError, ValueError) as e:
            raise InvalidOptionError(f"Invalid limit: {value!r}", details={"limit": value}, cause=e) from e
        if not 1 <= limit <= MAX_LIMIT:
            raise InvalidOptionError(
                f"Invalid limit: {limit}. Expected a value between 1 and {MAX_LIMIT}",
                details={"limit": limit},
            )
        return limit

    # =========================================================================
    # Iteration
    # =========================================================================

    def restart(self) -> None:
        """Start over from the first page, re-issuing every request."""
        self._cursor = CollectionCursor()
        self._fetch()
        self.state = CollectionState.ITERATING if self._cursor.items else CollectionState.EXHAUSTED

    def current(self) -> Any:
        """Record at the current position; None unless iterating."""
        if self.state is not CollectionState.ITERATING:
            return None
        return self._cursor.items[self._cursor.position]

    @property
    def index(self) -> int:
        """Position of the current record across all pages."""
        return self._cursor.index

    def advance(self) -> None:
        """Move to the next record, fetching the next page when this one is used up."""
        if self.state is not CollectionState.ITERATING:
            return
        cursor = self._cursor
        cursor.position += 1
        cursor.index += 1
        if cursor.position < len(cursor.items):
            return
        if cursor.more_pages:
            cursor.page += 1
            self._fetch()
        if cursor.position >= len(cursor.items):
            self.state = CollectionState.EXHAUSTED

    def has_more(self) -> bool:
        """True while the position holds a record or another page can be fetched."""
        if self.state is CollectionState.UNSTARTED:
            return False
        cursor = self._cursor
        return cursor.position < len(cursor.items) or cursor.more_pages

    def __iter__(self) -> Iterator[Any]:
        self.restart()
        while self.state is CollectionState.ITERATING:
            yield self.current()
            self.advance()

    # =========================================================================
    # Count
    # =========================================================================

    @property
    def countable(self) -> bool:
        return self._countable

    def count(self) -> int:
        """
        Total number of records, fetched when the collection was created.

        Raises:
            UnsupportedOperationError: The endpoint has no count operation
        """
        if self._count is None:
            raise UnsupportedOperationError(
                f'The `{self.endpoint}` endpoint does not support "count" operation',
                details={"endpoint": self.endpoint},
            )
        return self._count

    def __len__(self) -> int:
        return self.count()

    # =========================================================================
    # Fetching
    # =========================================================================

    def _request_params(self) -> Dict[str, Any]:
        cursor = self._cursor
        if self.strategy is PaginationStrategy.CURSOR:
            if cursor.page_info is None:
                return {**self.options, 'limit': self.limit}
            # Shopify rejects filters combined with page_info
            return {'limit': self.limit, 'page_info': cursor.page_info}
        if self.strategy is PaginationStrategy.SINCE_ID:
            since_id = _record_id(cursor.items[-1]) if cursor.items else FIRST_SINCE_ID
            return {**self.options, 'limit': self.limit, 'since_id': since_id}
        if self.strategy is PaginationStrategy.PAGE_NUMBER:
            return {**self.options, 'limit': self.limit, 'page': cursor.page}
        return {**self.options, 'limit': self.limit}

    def _fetch(self) -> None:
        cursor = self._cursor
        params = self._request_params()
        items = self._client.get(self.endpoint, params) or []
        if not isinstance(items, list):
            items = [items]

        cursor.items = items
        cursor.position = 0
        cursor.fetched += len(items)
        cursor.more_pages = self._more_pages_after(items)
        logger.debug(
            f"Fetched {len(items)} {self.endpoint} records (page {cursor.page}, "
            f"more pages: {cursor.more_pages})"
        )

    def _more_pages_after(self, items: List[Any]) -> bool:
        cursor = self._cursor
        if self.strategy is PaginationStrategy.NONE:
            return False
        if self.strategy is PaginationStrategy.CURSOR:
            cursor.page_info = next_page_info(self._client.last_headers.get('Link'))
            return cursor.page_info is not None
        if len(items) < self.limit:
            return False
        if self._count is not None:
            if self.strategy is PaginationStrategy.PAGE_NUMBER:
                return cursor.page * self.limit < self._count
            return cursor.fetched < self._count
        return True

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(endpoint={self.endpoint!r}, strategy={self.strategy.value}, "
            f"state={self.state.value})"
        )


class PageNumberCollection(Collection):
    """
    Collection of a page-numbered endpoint, with random access by offset.

    Offsets map onto ``page = offset // limit + 1``; reading one does not
    move the iteration position.
    """

    def __init__(self, client: ShopifyClient, endpoint: str, options: Optional[Mapping[str, Any]] = None):
        strategy = resolve_pagination(endpoint, client.api_version)
        if strategy is not PaginationStrategy.PAGE_NUMBER:
            raise ConfigurationError(
                f"`{normalize_endpoint(endpoint)}` is {strategy.value}-paginated at API version "
                f"{client.api_version}; random access needs page-number pagination",
                details={"endpoint": normalize_endpoint(endpoint), "strategy": strategy.value},
            )
        super().__init__(client, endpoint, options)

    def __getitem__(self, offset: int) -> Any:
        if not isinstance(offset, int):
            raise TypeError(f"Collection offsets must be integers, not {type(offset).__name__}")
        if offset < 0:
            offset += self.count()
        if offset < 0 or (self._count is not None and offset >= self._count):
            raise IndexError(f"Offset {offset} out of range")

        page, position = divmod(offset, self.limit)
        items = self._client.get(self.endpoint, {**self.options, 'limit': self.limit, 'page': page + 1}) or []
        if position >= len(items):
            raise IndexError(f"Offset {offset} out of range")
        return items[position]

    def get(self, offset: int, default: Any = None) -> Any:
        try:
            return self[offset]
        except IndexError:
            return default


def open_collection(client: ShopifyClient, endpoint: str,
                    options: Optional[Mapping[str, Any]] = None) -> Collection:
    """
    Open a collection over an endpoint.

    Page-numbered endpoints get a PageNumberCollection (random access);
    every other strategy gets a plain Collection.
    """
    strategy = resolve_pagination(endpoint, client.api_version)
    if strategy is PaginationStrategy.PAGE_NUMBER:
        return PageNumberCollection(client, endpoint, options)
    return Collection(client, endpoint, options)

from .mocks import (
    MockResponse, MockSession, RecordedRequest,
    ok, error, page, count, link_next, connection_error
)
from .factories import mk_config, mk_client

__all__ = [
    "MockResponse",
    "MockSession",
    "RecordedRequest",
    "ok",
    "error",
    "page",
    "count",
    "link_next",
    "connection_error",
    "mk_config",
    "mk_client",
]

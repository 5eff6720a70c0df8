"""
Tests for ShopifyClient request execution: retries, throttling, decoding.
"""

import json

import pytest

from helpers import MockSession, connection_error, error, mk_client, mk_config, ok
from shopify_client import ShopifyClient
from shopify_client.client import build_request_target, parse_call_limit
from shopify_client.formatters import RawFormatter
from shopify_client.runtime.errors import (
    ErrorCode,
    NonRetryableResponseError,
    RateLimitError,
    RequestError,
    ServerError,
    TransportError,
)
from shopify_client.versioning import oldest_supported_version


class TestRequestTarget:

    def test_json_suffix(self):
        assert build_request_target("products") == "products.json"
        assert build_request_target("/products/1.json") == "products/1.json"

    def test_query(self):
        target = build_request_target("products", {
            "ids": [1, 2, 3], "published": True, "title": "a b", "vendor": None,
        })
        assert target == "products.json?ids=1%2C2%2C3&published=true&title=a+b"

    def test_empty_query(self):
        assert build_request_target("shop", {}) == "shop.json"


class TestParseCallLimit:

    @pytest.mark.parametrize("value, expected", [
        ("21/40", (21, 40)),
        (" 1 / 80 ", (1, 80)),
        (None, None),
        ("", None),
        ("40", None),
        ("a/40", None),
        ("1/0", None),
    ])
    def test_parse(self, value, expected):
        assert parse_call_limit(value) == expected


class TestServerErrorRetries:
    """500/502/503/504 are retried immediately up to the server-error ceiling"""

    def test_retries_until_success(self, no_sleep):
        client, session = mk_client(
            error(500), error(503), error(504), ok({"shop": {"id": 1}}),
            max_attempts_on_server_errors=4,
        )

        assert client.get("shop") == {"id": 1}
        assert session.call_count == 4
        no_sleep.assert_not_called()

    @pytest.mark.parametrize("ceiling", [1, 2, 3])
    def test_gives_up_at_ceiling(self, no_sleep, ceiling):
        client, session = mk_client(*[error(500) for _ in range(5)], max_attempts_on_server_errors=ceiling)

        with pytest.raises(ServerError) as exc_info:
            client.get("shop")

        assert session.call_count == ceiling
        assert exc_info.value.status == 500
        assert exc_info.value.attempts == ceiling
        assert exc_info.value.code == ErrorCode.SERVER_ERROR

    def test_502_is_retried(self, no_sleep):
        client, session = mk_client(error(502), ok({"shop": {}}), max_attempts_on_server_errors=2)
        assert client.get("shop") == {}
        assert session.call_count == 2

    def test_default_is_a_single_attempt(self, no_sleep):
        client, session = mk_client(error(500), ok({"shop": {}}))
        with pytest.raises(ServerError):
            client.get("shop")
        assert session.call_count == 1


class TestRateLimitRetries:
    """429 waits out Retry-After, counted separately from server errors"""

    def test_waits_retry_after(self, no_sleep):
        client, session = mk_client(
            error(429, headers={"Retry-After": "2.0"}), ok({"shop": {"id": 1}}),
            max_attempts_on_rate_limit_errors=2,
        )

        assert client.get("shop") == {"id": 1}
        assert session.call_count == 2
        no_sleep.assert_called_once_with(2.0)

    def test_default_delay_without_header(self, no_sleep):
        client, session = mk_client(error(429), ok({"shop": {}}), max_attempts_on_rate_limit_errors=2)

        client.get("shop")
        no_sleep.assert_called_once_with(1.0)

    def test_unreadable_header_uses_default(self, no_sleep):
        client, _ = mk_client(
            error(429, headers={"Retry-After": "soon"}), ok({"shop": {}}),
            max_attempts_on_rate_limit_errors=2,
        )
        client.get("shop")
        no_sleep.assert_called_once_with(1.0)

    def test_sleeps_on_every_429_up_to_ceiling(self, no_sleep):
        client, session = mk_client(
            error(429, headers={"Retry-After": "2"}), error(429, headers={"Retry-After": "3"}),
            max_attempts_on_rate_limit_errors=2,
        )

        with pytest.raises(RateLimitError) as exc_info:
            client.get("shop")

        assert session.call_count == 2
        assert [c.args for c in no_sleep.call_args_list] == [(2.0,), (3.0,)]
        assert exc_info.value.status == 429

    def test_single_attempt_still_cools_down(self, no_sleep):
        client, session = mk_client(error(429, headers={"Retry-After": "2"}))

        with pytest.raises(RateLimitError):
            client.get("shop")

        assert session.call_count == 1
        no_sleep.assert_called_once_with(2.0)

    def test_counters_are_independent(self, no_sleep):
        client, session = mk_client(
            error(500), error(429), error(500), error(429), ok({"shop": {"id": 1}}),
            max_attempts_on_server_errors=3, max_attempts_on_rate_limit_errors=3,
        )

        assert client.get("shop") == {"id": 1}
        assert session.call_count == 5
        assert no_sleep.call_count == 2

    def test_either_ceiling_stops(self, no_sleep):
        client, session = mk_client(
            error(429), error(500), error(500), ok({"shop": {}}),
            max_attempts_on_server_errors=2, max_attempts_on_rate_limit_errors=5,
        )

        with pytest.raises(ServerError):
            client.get("shop")
        assert session.call_count == 3


class TestNonRetryable:

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422, 501])
    def test_raised_on_first_occurrence(self, no_sleep, status):
        client, session = mk_client(
            error(status, body='{"errors":{"title":["can\'t be blank"]}}'), ok({"shop": {}}),
            max_attempts_on_server_errors=3, max_attempts_on_rate_limit_errors=3,
        )

        with pytest.raises(NonRetryableResponseError) as exc_info:
            client.get("products/1")

        assert session.call_count == 1
        error_ = exc_info.value
        assert error_.status == status
        assert error_.errors() == ["title can't be blank"]
        assert error_.message == '{"errors":{"title":["can\'t be blank"]}}'
        no_sleep.assert_not_called()

    def test_error_carries_request_and_response(self, no_sleep):
        client, _ = mk_client(error(404, body='{"errors":"Not Found"}', headers={"X-Request-Id": "abc"}))

        with pytest.raises(RequestError) as exc_info:
            client.get("products/1", {"fields": "id"})

        error_ = exc_info.value
        assert error_.request.method == "GET"
        assert error_.request.host == "test.myshopify.com"
        assert error_.request.path == "/admin/products/1.json"
        assert error_.request.query == "fields=id"
        assert error_.request.headers["X-Shopify-Access-Token"] == "***"
        assert error_.response.header("x-request-id") == "abc"
        assert error_.errors() == ["Not Found"]

        details = json.loads(error_.details_json())
        assert details["msg"] == '{"errors":"Not Found"}'
        assert details["response"]["code"] == 404
        assert details["request"]["path"] == "/admin/products/1.json"

    def test_transport_error_not_retried(self, no_sleep):
        client, session = mk_client(connection_error(), ok({"shop": {}}), max_attempts_on_server_errors=3)

        with pytest.raises(TransportError) as exc_info:
            client.get("shop")

        assert session.call_count == 1
        assert exc_info.value.code == ErrorCode.TRANSPORT_ERROR
        assert exc_info.value.request.url == "https://test.myshopify.com/admin/shop.json"


class TestThrottle:
    """Self-throttling on X-Shopify-Shop-Api-Call-Limit"""

    def test_sleeps_above_rate(self, no_sleep):
        client, _ = mk_client(ok({"shop": {}}, headers={"X-Shopify-Shop-Api-Call-Limit": "21/40"}))
        client.get("shop")
        no_sleep.assert_called_once_with(1.0)

    def test_no_sleep_at_rate(self, no_sleep):
        client, _ = mk_client(ok({"shop": {}}, headers={"X-Shopify-Shop-Api-Call-Limit": "20/40"}))
        client.get("shop")
        no_sleep.assert_not_called()

    def test_configured_rate_and_sleep(self, no_sleep):
        client, _ = mk_client(
            ok({"shop": {}}, headers={"X-Shopify-Shop-Api-Call-Limit": "35/40"}),
            ok({"shop": {}}, headers={"X-Shopify-Shop-Api-Call-Limit": "37/40"}),
            max_limit_rate=0.9, max_limit_rate_sleep_sec=2.5,
        )
        client.get("shop")
        no_sleep.assert_not_called()
        client.get("shop")
        no_sleep.assert_called_once_with(2.5)

    @pytest.mark.parametrize("value", ["garbage", "40", "1/0"])
    def test_malformed_header_ignored(self, no_sleep, value):
        client, _ = mk_client(ok({"shop": {}}, headers={"X-Shopify-Shop-Api-Call-Limit": value}))
        assert client.get("shop") == {}
        no_sleep.assert_not_called()


class TestResponses:

    def test_envelope_unwrapped(self, no_sleep):
        client, _ = mk_client(ok({"products": [{"id": 1}, {"id": 2}]}))
        assert client.get("products") == [{"id": 1}, {"id": 2}]

    def test_multi_key_body_unchanged(self, no_sleep):
        client, _ = mk_client(ok({"a": 1, "b": 2}))
        assert client.get("weird") == {"a": 1, "b": 2}

    def test_empty_body(self, no_sleep):
        client, _ = mk_client(ok(status_code=200))
        assert client.delete("products/1") is None

    def test_raw_formatter(self, no_sleep):
        client, _ = mk_client(ok({"shop": {"id": 1}}), response_formatter="raw")
        assert client.get("shop") == b'{"shop": {"id": 1}}'

    def test_last_status_and_headers(self, no_sleep):
        client, _ = mk_client(ok({"product": {}}, headers={"X-Request-Id": "r1"}, status_code=201))
        client.post("products", {"product": {"title": "x"}})
        assert client.last_status == 201
        assert client.last_headers["x-request-id"] == "r1"


class TestRequestBodies:

    def test_post_sends_json(self, no_sleep):
        client, session = mk_client(ok({"product": {"id": 1}}))
        client.post("products", {"product": {"title": "Burton"}})

        request = session.requests[0]
        assert request.method == "POST"
        assert request.json == {"product": {"title": "Burton"}}
        assert request.headers["Content-Type"] == "application/json"

    def test_put_sends_json(self, no_sleep):
        client, session = mk_client(ok({"product": {"id": 1}}))
        client.put("products/1", {"product": {"id": 1, "title": "New"}})
        assert session.requests[0].method == "PUT"
        assert session.requests[0].path == "/admin/products/1.json"

    def test_get_and_delete_send_no_body(self, no_sleep):
        client, session = mk_client(ok({"shop": {}}), ok())
        client.get("shop")
        client.delete("products/1")
        assert [r.data for r in session.requests] == [None, None]

    def test_empty_post_sends_no_body(self, no_sleep):
        client, session = mk_client(ok({"order": {}}))
        client.post("orders/1/close")
        assert session.requests[0].data is None

    def test_access_token_and_timeout(self, no_sleep):
        client, session = mk_client(ok({"shop": {}}), timeout=5)
        client.get("shop")
        assert session.requests[0].headers["X-Shopify-Access-Token"] == "shpat_test"
        assert session.requests[0].timeout == 5


class TestApiVersion:

    def test_pinned_version_in_path(self, no_sleep):
        client, session = mk_client(ok({"shop": {}}, headers={"X-Shopify-API-Version": "2020-01"}),
                                    api_version="2019-10")
        client.get("shop")

        assert session.requests[0].path == "/admin/api/2019-10/shop.json"
        assert client.api_version == "2019-10"

    def test_discovered_version(self, no_sleep):
        client, session = mk_client(ok({"shop": {}}, headers={"X-Shopify-API-Version": "2020-01"}))

        assert client.api_version == oldest_supported_version()
        client.get("shop")

        assert session.requests[0].path == "/admin/shop.json"
        assert client.api_version == "2020-01"

    def test_discovered_version_used_for_later_requests(self, no_sleep):
        client, session = mk_client(
            ok({"shop": {}}, headers={"X-Shopify-API-Version": "2020-01"}),
            ok({"products": []}, headers={"X-Shopify-API-Version": "2020-01"}),
        )

        client.get("shop")
        client.get("products")

        assert [r.path for r in session.requests] == [
            "/admin/shop.json",
            "/admin/api/2020-01/products.json",
        ]

    def test_discovered_version_kept_by_with_config(self, no_sleep):
        client, session = mk_client(
            ok({"shop": {}}, headers={"X-Shopify-API-Version": "2020-01"}),
            ok({"shop": {}}),
        )
        client.get("shop")

        rebuilt = client.with_config(max_attempts_on_server_errors=3)
        rebuilt.get("shop")

        assert rebuilt.api_version == "2020-01"
        assert session.requests[1].path == "/admin/api/2020-01/shop.json"

    def test_invalid_discovered_version_ignored(self, no_sleep):
        client, _ = mk_client(ok({"shop": {}}, headers={"X-Shopify-API-Version": "unstable"}))
        client.get("shop")
        assert client.api_version == oldest_supported_version()
        assert client.transport.base_url == "https://test.myshopify.com/admin/"


class TestClientLifecycle:

    def test_from_options_mapping(self, no_sleep):
        session = MockSession([ok({"shop": {}})])
        client = ShopifyClient({"domain": "other.myshopify.com", "access_token": "x"}, session=session)
        client.get("shop")
        assert session.requests[0].url == "https://other.myshopify.com/admin/shop.json"

    def test_with_config_rebuilds_transport(self, no_sleep):
        client, session = mk_client(ok({"shop": {}}), ok({"shop": {}}))
        pinned = client.with_config(api_version="2020-04")

        assert pinned is not client
        assert pinned.transport is not client.transport
        assert pinned.config.api_version == "2020-04"
        assert client.config.api_version is None

        client.get("shop")
        pinned.get("shop")
        assert [r.path for r in session.requests] == ["/admin/shop.json", "/admin/api/2020-04/shop.json"]

    def test_injected_session_not_closed(self):
        session = MockSession()
        with ShopifyClient(mk_config(), session=session):
            pass
        assert not session.closed

    def test_owned_session_closed(self):
        client = ShopifyClient(mk_config())
        owned = client.transport._session
        closed = []
        owned.close = lambda: closed.append(True)
        with client:
            pass
        assert closed == [True]

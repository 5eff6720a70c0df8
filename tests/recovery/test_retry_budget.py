"""
Tests for retry bookkeeping.
"""

import pytest

from shopify_client.recovery import (
    DEFAULT_RETRY_AFTER,
    FailureKind,
    RetryBudget,
    classify_status,
    parse_retry_after,
)


class TestClassifyStatus:

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_server_errors(self, status):
        assert classify_status(status) is FailureKind.SERVER_ERROR

    def test_rate_limit(self):
        assert classify_status(429) is FailureKind.RATE_LIMIT

    @pytest.mark.parametrize("status", [301, 400, 401, 404, 422, 501, 505])
    def test_non_retryable(self, status):
        assert classify_status(status) is FailureKind.NON_RETRYABLE


class TestParseRetryAfter:

    @pytest.mark.parametrize("value, expected", [
        ("2", 2.0),
        ("2.0", 2.0),
        (" 0.5 ", 0.5),
        ("0", 0.0),
        (None, DEFAULT_RETRY_AFTER),
        ("", DEFAULT_RETRY_AFTER),
        ("later", DEFAULT_RETRY_AFTER),
        ("-3", DEFAULT_RETRY_AFTER),
    ])
    def test_parse(self, value, expected):
        assert parse_retry_after(value) == expected

    def test_custom_default(self):
        assert parse_retry_after(None, default=5.0) == 5.0


class TestRetryBudget:

    def test_counters_saturate_independently(self):
        budget = RetryBudget(max_server_errors=2, max_rate_limit_errors=3)

        budget.record_failure(budget.start_attempt(), 429)
        budget.record_failure(budget.start_attempt(), 500)
        assert budget.allows_attempt
        budget.record_failure(budget.start_attempt(), 503)

        assert budget.exhausted
        assert budget.server_errors == 2
        assert budget.rate_limit_errors == 1
        assert budget.total_attempts == 3

    def test_non_retryable_not_counted(self):
        budget = RetryBudget(max_server_errors=1, max_rate_limit_errors=1)
        attempt = budget.start_attempt()

        assert budget.record_failure(attempt, 404) is FailureKind.NON_RETRYABLE
        assert attempt.status == 404
        assert budget.allows_attempt

    def test_reset(self):
        budget = RetryBudget(max_server_errors=1, max_rate_limit_errors=1)
        budget.record_failure(budget.start_attempt(), 429)
        budget.reset()

        assert budget.allows_attempt
        assert budget.total_attempts == 0
        assert budget.start_attempt().attempt == 1

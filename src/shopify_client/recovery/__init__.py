"""
Error recovery for Shopify requests.
"""

from .retry import (
    FailureKind, RetryAttempt, RetryBudget,
    classify_status, parse_retry_after,
    SERVER_ERROR_STATUSES, RATE_LIMIT_STATUS, DEFAULT_RETRY_AFTER
)

__all__ = [
    "FailureKind",
    "RetryAttempt",
    "RetryBudget",
    "classify_status",
    "parse_retry_after",
    "SERVER_ERROR_STATUSES",
    "RATE_LIMIT_STATUS",
    "DEFAULT_RETRY_AFTER",
]

"""
Retry bookkeeping for Shopify requests.

Server errors and rate-limit errors are counted separately: a flaky 5xx is
worth a few immediate retries, while a 429 must wait out the cool-down
Shopify asks for. Each counter has its own ceiling and the request gives up
as soon as either ceiling is reached.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


logger = logging.getLogger(__name__)

SERVER_ERROR_STATUSES = frozenset({500, 502, 503, 504})
RATE_LIMIT_STATUS = 429
DEFAULT_RETRY_AFTER = 1.0


class FailureKind(Enum):
    """Classification of a failed response."""
    SERVER_ERROR = "server_error"
    RATE_LIMIT = "rate_limit"
    NON_RETRYABLE = "non_retryable"


def classify_status(status: int) -> FailureKind:
    """Classify a non-2xx status code."""
    if status in SERVER_ERROR_STATUSES:
        return FailureKind.SERVER_ERROR
    if status == RATE_LIMIT_STATUS:
        return FailureKind.RATE_LIMIT
    return FailureKind.NON_RETRYABLE


def parse_retry_after(value: Optional[str], default: float = DEFAULT_RETRY_AFTER) -> float:
    """
    Seconds to wait before retrying a 429.

    Args:
        value: Retry-After header value (integer or float seconds)
        default: Delay used when the header is missing or unreadable

    Returns:
        Delay in seconds
    """
    if value is None:
        return default
    try:
        delay = float(value.strip())
    except ValueError:
        logger.debug(f"Ignoring unreadable Retry-After header: {value!r}")
        return default
    return delay if delay >= 0 else default


@dataclass
class RetryAttempt:
    """Information about one attempt of a logical request."""
    attempt: int
    status: Optional[int] = None
    kind: Optional[FailureKind] = None
    delay: float = 0.0


@dataclass
class RetryBudget:
    """
    Two independent saturating counters for one logical request.

    Create a fresh budget per request; the request may keep trying while
    ``allows_attempt`` is true.
    """
    max_server_errors: int
    max_rate_limit_errors: int
    server_errors: int = 0
    rate_limit_errors: int = 0
    attempts: List[RetryAttempt] = field(default_factory=list)

    @property
    def allows_attempt(self) -> bool:
        return (self.server_errors < self.max_server_errors
                and self.rate_limit_errors < self.max_rate_limit_errors)

    @property
    def exhausted(self) -> bool:
        return not self.allows_attempt

    @property
    def total_attempts(self) -> int:
        return len(self.attempts)

    def start_attempt(self) -> RetryAttempt:
        attempt = RetryAttempt(attempt=len(self.attempts) + 1)
        self.attempts.append(attempt)
        return attempt

    def record_failure(self, attempt: RetryAttempt, status: int) -> FailureKind:
        """
        Count a failed response against the matching ceiling.

        Non-retryable statuses leave both counters untouched.
        """
        kind = classify_status(status)
        attempt.status = status
        attempt.kind = kind
        if kind is FailureKind.SERVER_ERROR:
            self.server_errors += 1
        elif kind is FailureKind.RATE_LIMIT:
            self.rate_limit_errors += 1
        return kind

    def reset(self) -> None:
        self.server_errors = 0
        self.rate_limit_errors = 0
        self.attempts.clear()

"""
Shopify API version helpers.

Shopify releases a stable API version every quarter (January, April, July
and October) and keeps each release supported for at least twelve months.
Versions are "YYYY-MM" strings, so plain string comparison orders them.
"""

from __future__ import annotations
import re
from datetime import date, datetime, timezone
from typing import Optional, Union

from .runtime.errors import (
    ApiVersionError,
    ApiVersionFormatError,
    ApiVersionMonthError,
    ApiVersionYearError,
)

EPOCH_YEAR = 2019
EARLIEST_VERSION = "2019-04"
RELEASE_MONTHS = ("01", "04", "07", "10")

# First month in which the oldest supported version moved past EARLIEST_VERSION.
SUPPORT_WINDOW_START = "2020-04"

_VERSION_RE = re.compile(r"(\d{4})-(\d{2})")

# Month of the reference date -> month of the oldest release still supported.
_OLDEST_RELEASE_MONTH = {
    1: 4, 2: 4, 3: 4,
    4: 7, 5: 7, 6: 7,
    7: 10, 8: 10, 9: 10,
    10: 1, 11: 1, 12: 1,
}

_READ_MORE = "Read more about versioning here: https://shopify.dev/docs/api/usage/versioning"

Reference = Union[None, str, date, datetime]


def _to_utc_date(reference: Reference) -> date:
    if reference is None:
        return datetime.now(timezone.utc).date()
    if isinstance(reference, datetime):
        if reference.tzinfo is None:
            return reference.date()
        return reference.astimezone(timezone.utc).date()
    if isinstance(reference, date):
        return reference
    if isinstance(reference, str):
        text = reference.strip()
        if re.fullmatch(r"\d{4}-\d{2}", text):
            text += "-01"
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError(f"Unable to parse reference date: {reference!r}") from e
        return _to_utc_date(parsed)
    raise TypeError(f"Unsupported reference type: {type(reference).__name__}")


def oldest_supported_version(reference: Reference = None) -> str:
    """
    Oldest stable API version guaranteed to be supported at a point in time.

    Args:
        reference: Reference instant (defaults to now). Naive datetimes are
            taken as UTC, aware ones are converted to UTC. Strings are parsed
            as ISO dates ("YYYY-MM" is accepted).

    Returns:
        Version string in the "YYYY-MM" format
    """
    day = _to_utc_date(reference)
    if f"{day.year:04d}-{day.month:02d}" < SUPPORT_WINDOW_START:
        return EARLIEST_VERSION

    month = _OLDEST_RELEASE_MONTH[day.month]
    # A release from April onwards means a Jan-Sep reference date, so the
    # release happened the year before. Oct-Dec references map to January
    # of the same year.
    year = day.year - (1 if month >= 4 else 0)
    return f"{year:04d}-{month:02d}"


def latest_release(reference: Reference = None) -> str:
    """Most recent quarterly release at the reference instant."""
    day = _to_utc_date(reference)
    month = max(int(m) for m in RELEASE_MONTHS if int(m) <= day.month)
    version = f"{day.year:04d}-{month:02d}"
    return max(version, EARLIEST_VERSION)


def validate_api_version(value: str) -> None:
    """
    Validate an API version string.

    Raises:
        ApiVersionFormatError: The value is not "YYYY-MM"
        ApiVersionYearError: The year predates API versioning
        ApiVersionMonthError: The month is not a release month
    """
    match = _VERSION_RE.fullmatch(value) if isinstance(value, str) else None
    if not match:
        raise ApiVersionFormatError(
            f'Invalid API version format: "{value}". The "YYYY-MM" format expected. {_READ_MORE}',
            str(value),
        )
    if int(match.group(1)) < EPOCH_YEAR:
        raise ApiVersionYearError(
            f'Invalid API version year: "{value}". The API versioning has been released '
            f'in {EPOCH_YEAR}. {_READ_MORE}',
            value,
        )
    if match.group(2) not in RELEASE_MONTHS:
        raise ApiVersionMonthError(
            f'Invalid API version month: "{value}". New versions are released every '
            f'3 months, so only "01", "04", "07" and "10" are expected as a month. '
            f'Otherwise "404 Not Found" will be returned by Shopify. {_READ_MORE}',
            value,
        )


def is_valid_api_version(value: Optional[str]) -> bool:
    try:
        validate_api_version(value)
    except ApiVersionError:
        return False
    return True

"""Timestamp parsing and UTC normalization for Calendar Source values."""

import logging
from datetime import date, datetime
from typing import Optional

import pytz
from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

# Rendered in place of an unparseable timed endpoint.
ZERO_INSTANT = pytz.utc.localize(datetime(1, 1, 1))

SOURCE_DATE_FORMAT = "%Y-%m-%d"


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


def to_utc(dt: datetime) -> datetime:
    """Return ``dt`` converted to UTC; naive values are taken as UTC."""
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Returns:
        The UTC datetime, or None if the value is empty or malformed.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        return to_utc(dateutil_parser.isoparse(value))
    except (ValueError, OverflowError) as e:
        logger.debug("Unparseable timestamp %r: %s", value, e)
        return None


def parse_instant(value: Optional[str]) -> datetime:
    """Parse a timed endpoint, falling back to the zero instant."""
    parsed = parse_timestamp(value)
    return parsed if parsed is not None else ZERO_INSTANT


def parse_all_day_date(value: Optional[str]) -> Optional[date]:
    """Parse a whole-date endpoint (YYYY-MM-DD)."""
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value, SOURCE_DATE_FORMAT).date()
    except ValueError:
        logger.debug("Unparseable date %r", value)
        return None


def format_rfc3339(dt: datetime) -> str:
    """Format a datetime as RFC 3339 for Calendar Source queries."""
    return to_utc(dt).isoformat().replace("+00:00", "Z")

import datetime
import logging
import math
import re
from typing import Optional, Union

import humanize

logger = logging.getLogger(__name__)

DateInput = Union[datetime.datetime, datetime.date, str, int, float]

_HTML_TAG = re.compile(r"<[^>]*>")


def calculate_reading_time(text: str, words_per_minute: int = 200) -> int:
    """Estimated reading time in whole minutes, never less than 1."""
    clean_text = _HTML_TAG.sub("", text or "")
    word_count = len(clean_text.split())
    return max(1, math.ceil(word_count / words_per_minute))


def get_reading_time_text(minutes: int) -> str:
    if minutes < 1:
        return "< 1 min read"
    return f"{minutes} min read"


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def parse_datetime(value: DateInput) -> datetime.datetime:
    """Coerce a datetime, ISO-8601 string or epoch milliseconds to an aware UTC datetime.

    Raises ValueError or TypeError for anything else.
    """
    if isinstance(value, bool):
        raise TypeError(f"Unsupported date value: {value!r}")
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, datetime.date):
        parsed = datetime.datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        parsed = datetime.datetime.fromisoformat(value.strip())
    elif isinstance(value, (int, float)):
        parsed = datetime.datetime.fromtimestamp(value / 1000, tz=datetime.timezone.utc)
    else:
        raise TypeError(f"Unsupported date value: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed.astimezone(datetime.timezone.utc)


def format_date(value: DateInput, fmt: Optional[str] = None) -> str:
    """Human readable date, e.g. "November 7, 2025". Returns "Invalid date" on bad input."""
    try:
        dt = parse_datetime(value)
        if fmt:
            return dt.strftime(fmt)
        return f"{dt:%B} {dt.day}, {dt.year}"
    except (TypeError, ValueError, OverflowError, OSError) as e:
        logger.warning(f"Error formatting date {value!r}: {e}")
        return "Invalid date"


def format_relative_time(
    value: DateInput, now: Optional[datetime.datetime] = None
) -> str:
    """Relative time such as "2 days ago". Returns "Unknown time" on bad input."""
    try:
        dt = parse_datetime(value)
        reference = parse_datetime(now) if now is not None else utcnow()
        return humanize.naturaltime(dt, when=reference)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        logger.warning(f"Error formatting relative time {value!r}: {e}")
        return "Unknown time"


def format_date_for_seo(value: DateInput) -> str:
    """ISO-8601 UTC timestamp with milliseconds; falls back to now on bad input."""
    try:
        dt = parse_datetime(value)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        logger.warning(f"Error formatting date for SEO {value!r}: {e}")
        dt = utcnow()
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_within_days(
    value: DateInput, days: int, now: Optional[datetime.datetime] = None
) -> bool:
    try:
        dt = parse_datetime(value)
        reference = parse_datetime(now) if now is not None else utcnow()
    except (TypeError, ValueError, OverflowError, OSError) as e:
        logger.warning(f"Error checking date range {value!r}: {e}")
        return False
    return (reference - dt) <= datetime.timedelta(days=days)


def to_storage(value: datetime.datetime) -> str:
    """Serialize a timestamp for CouchDB; fixed width so string order is time order."""
    return parse_datetime(value).isoformat(timespec="microseconds")

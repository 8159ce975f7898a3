"""Date parsing for freshness signals."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

_TEXT_FORMATS = (
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%Y/%m/%d",
    "%m/%d/%Y",
)
_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def parse_date(value: str | None) -> Optional[datetime]:
    """Parse ISO-8601, RFC 2822 or common written dates into an aware UTC datetime."""
    if not value or not isinstance(value, str):
        return None
    value = value.strip()
    if not value:
        return None

    if _ISO_PREFIX.match(value):
        iso = value.replace("Z", "+00:00")
        try:
            dt = datetime.fromisoformat(iso)
        except ValueError:
            try:
                dt = datetime.fromisoformat(value[:10])
            except ValueError:
                return None
        return _as_utc(dt)

    try:
        return _as_utc(parsedate_to_datetime(value))
    except (TypeError, ValueError, IndexError):
        pass

    cleaned = re.sub(r"(\d)(st|nd|rd|th)\b", r"\1", value)
    for fmt in _TEXT_FORMATS:
        try:
            return _as_utc(datetime.strptime(cleaned, fmt))
        except ValueError:
            continue
    return None


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

"""
Market day keys: the Eastern-time trading day a timestamp belongs to.

Trades are grouped by the trading calendar day (America/New_York), never by
the viewer's local timezone or the literal UTC date of a fill.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

ET = ZoneInfo("America/New_York")

MIN_YEAR = 1990
MAX_YEAR = 2100

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_US_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_EPOCH = date(1970, 1, 1)


def market_day_key(ts: datetime) -> str:
    """Return the YYYY-MM-DD Eastern trading day for *ts*.

    Naive datetimes are treated as UTC.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(ET).date().isoformat()


def is_iso_date_key(value: str) -> bool:
    return _ISO_DATE_RE.match(value) is not None


def _safe_date(year: int, month: int, day: int) -> date | None:
    if not MIN_YEAR <= year <= MAX_YEAR:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def normalize_date_key(value: str | datetime | date | None) -> str | None:
    """Normalize ISO (2026-01-15), US (1/5/2026) or datetime input to a day key.

    Returns None for empty input, impossible dates, or years outside
    1990-2100. Datetimes are mapped to their Eastern trading day.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        key = market_day_key(value)
        return key if MIN_YEAR <= int(key[:4]) <= MAX_YEAR else None
    if isinstance(value, date):
        return value.isoformat() if MIN_YEAR <= value.year <= MAX_YEAR else None

    text = value.strip()
    if not text:
        return None

    m = _ISO_DATE_RE.match(text)
    if m:
        d = _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        return d.isoformat() if d else None

    m = _US_DATE_RE.match(text)
    if m:
        d = _safe_date(int(m.group(3)), int(m.group(1)), int(m.group(2)))
        return d.isoformat() if d else None

    return None


def iso_to_epoch_day(key: str) -> int:
    """Days since 1970-01-01 for a valid ISO day key (any year)."""
    if not is_iso_date_key(key):
        raise ValueError(f"Invalid ISO date key: {key!r}")
    try:
        d = date.fromisoformat(key)
    except ValueError as exc:
        raise ValueError(f"Invalid ISO date key: {key!r}") from exc
    return (d - _EPOCH).days


def epoch_day_to_iso(epoch_day: int) -> str:
    return (_EPOCH + timedelta(days=epoch_day)).isoformat()


def _weekday(epoch_day: int) -> int:
    # 1970-01-01 was a Thursday; Monday is 0.
    return (epoch_day + 3) % 7


def next_business_day(key: str) -> str:
    """Next weekday after *key* (exchange holidays are not modelled)."""
    day = iso_to_epoch_day(key) + 1
    while _weekday(day) >= 5:
        day += 1
    return epoch_day_to_iso(day)

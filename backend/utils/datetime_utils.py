"""
Calendar primitives shared by the check-in, habit and reminder engines.

Calendar dates travel as zero-padded ``YYYY-MM-DD`` strings so they can be
compared lexicographically and used directly as storage keys. Every helper is
total: malformed input resolves to the current UTC date (or ``0`` for day
differences) instead of raising, so status derivation downstream never fails
on a bad row.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

from config import settings


logger = logging.getLogger(__name__)

CalendarDate = str

DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

SATURDAY = 6


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today_utc() -> CalendarDate:
    return utcnow().date().isoformat()


def resolve_timezone(tz_name: str | None) -> tzinfo:
    """Return the zone for ``tz_name``, else the configured default, else the host zone."""
    for candidate in (tz_name, settings.DEFAULT_TIMEZONE):
        name = (candidate or "").strip()
        if not name:
            continue
        try:
            return ZoneInfo(name)
        except Exception:
            logger.debug("Unknown timezone %r, falling back", name)
    return utcnow().astimezone().tzinfo or timezone.utc


def is_date_only(value: Any) -> bool:
    return isinstance(value, str) and bool(DATE_ONLY_RE.match(value))


def parse_calendar_date(value: Any) -> date | None:
    """The real calendar day for ``value``; ``None`` for impossible dates like 2024-02-30."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not DATE_ONLY_RE.match(text):
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def _coerce_calendar_date(value: Any) -> date:
    parsed = parse_calendar_date(value)
    if parsed is None:
        logger.debug("Malformed calendar date %r, using current UTC date", value)
        return utcnow().date()
    return parsed


def parse_instant(value: Any) -> datetime | None:
    """Parse an ISO timestamp (or datetime) into an aware UTC datetime.

    Naive values are taken to be UTC, matching how rows are persisted.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def today_for_tz(tz_name: str | None) -> CalendarDate:
    """Return today's wall-clock date in the given zone."""
    return utcnow().astimezone(resolve_timezone(tz_name)).date().isoformat()


def add_days(value: Any, delta_days: int) -> CalendarDate:
    base = _coerce_calendar_date(value)
    try:
        return (base + timedelta(days=int(delta_days))).isoformat()
    except OverflowError:
        return base.isoformat()


def weekday(value: Any) -> int:
    """Day of week with Sunday = 0 through Saturday = 6."""
    return (_coerce_calendar_date(value).weekday() + 1) % 7


def week_start_sunday(value: Any) -> CalendarDate:
    return add_days(value, -weekday(value))


def week_end_saturday(value: Any) -> CalendarDate:
    return add_days(week_start_sunday(value), 6)


def last_saturday(value: Any) -> CalendarDate:
    """Most recent Saturday on or before ``value``."""
    return add_days(value, -((weekday(value) - SATURDAY + 7) % 7))


def week_ending_saturday(value: Any) -> CalendarDate:
    """Saturday on or after ``value``; the key of that week's check-in."""
    return add_days(value, (SATURDAY - weekday(value) + 7) % 7)


def diff_days(later: Any, earlier: Any) -> int:
    later_day = parse_calendar_date(later)
    earlier_day = parse_calendar_date(earlier)
    if later_day is None or earlier_day is None:
        return 0
    return (later_day - earlier_day).days


def format_in_timezone(timestamp: Any, tz_name: str | None = None) -> CalendarDate:
    """Project an absolute instant onto a calendar date in ``tz_name``."""
    instant = parse_instant(timestamp)
    if instant is None:
        logger.debug("Unparseable timestamp %r, using current UTC date", timestamp)
        return today_utc()
    return instant.astimezone(resolve_timezone(tz_name)).date().isoformat()


def normalize_calendar_date(value: Any, tz_name: str | None = None) -> CalendarDate | None:
    """
    Bucket a date-ish value into a calendar date.

    Date-only strings pass through untouched; timestamps are projected into
    the client's zone first. Empty and non-date values give ``None``.
    """
    if isinstance(value, datetime):
        return format_in_timezone(value, tz_name)
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if is_date_only(text):
        return text
    return format_in_timezone(text, tz_name)


def format_relative_day(value: Any, today: CalendarDate, tz_name: str | None = None) -> str:
    day = normalize_calendar_date(value, tz_name) if value else None
    if day is None or parse_calendar_date(day) is None:
        return "today"
    days = diff_days(today, day)
    if days <= 0:
        return "today"
    if days == 1:
        return "yesterday"
    return f"{days} days ago"

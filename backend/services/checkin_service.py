from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from config import settings
from services.diagnostics import EngineDiagnostics, describe_error
from utils.datetime_utils import (
    CalendarDate,
    SATURDAY,
    add_days,
    diff_days,
    is_date_only,
    last_saturday,
    normalize_calendar_date,
    parse_instant,
    week_end_saturday,
    week_ending_saturday,
    week_start_sunday,
    weekday,
)
from utils.rows import has_text, row_has_field, row_value


logger = logging.getLogger(__name__)

CHECKIN_QUERY_ERROR = "CHECKIN_QUERY_ERROR"

SUBMITTED_STATUSES = {"submitted", "complete", "completed", "done"}
REVIEW_FIELDS = ("reviewed", "reviewed_at", "reviewed_by", "coach_reviewed_at")
# Legacy rows carry one of these date-only keys instead of week_ending_saturday.
DATE_ONLY_FIELDS = ("checkin_date", "week_start", "period_start")
CHECKIN_FREQUENCY_DAYS = {"weekly": 7, "biweekly": 14, "monthly": 30}


class CheckinState(str, Enum):
    DUE_TODAY = "due_today"
    IN_PROGRESS = "in_progress"
    SUBMITTED_WAITING = "submitted_waiting"
    REVIEWED = "reviewed"
    NO_ALERTS = "no_alerts"


@dataclass
class CheckinStatus:
    due: bool = False
    submitted: bool = False
    reviewed: bool = False
    checkin_id: Any = None
    review_supported: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


# --- Row predicates ---

def is_submitted(row: Any) -> bool:
    if row is None:
        return False
    if row_value(row, "submitted") is True:
        return True
    if row_value(row, "submitted_at"):
        return True
    status = row_value(row, "status")
    if isinstance(status, str) and status.strip().lower() in SUBMITTED_STATUSES:
        return True
    # Older rows predate an explicit submitted flag; a created row counts as submitted.
    if row_value(row, "created_at"):
        return True
    return False


def review_supported(row: Any) -> bool:
    return any(row_has_field(row, field) for field in REVIEW_FIELDS)


def is_reviewed(row: Any) -> bool:
    if row is None:
        return False
    if row_value(row, "reviewed") is True:
        return True
    return any(row_value(row, field) for field in ("reviewed_at", "reviewed_by", "coach_reviewed_at"))


def has_feedback(row: Any) -> bool:
    return has_text(row_value(row, "pt_feedback"))


# --- Day bucketing ---

def checkin_date(row: Any, tz_name: str | None = None) -> CalendarDate | None:
    """The calendar day a row is filed under, from its first populated date field."""
    for field in (*DATE_ONLY_FIELDS, "created_at", "submitted_at"):
        value = row_value(row, field)
        if value is not None:
            return normalize_calendar_date(value, tz_name)
    return None


def checkin_cycle_key(row: Any, tz_name: str | None = None) -> CalendarDate | None:
    """Week-ending Saturday the row belongs to."""
    explicit = normalize_calendar_date(row_value(row, "week_ending_saturday"), tz_name)
    if explicit:
        return explicit
    day = checkin_date(row, tz_name)
    return week_ending_saturday(day) if day else None


def checkin_timestamp(row: Any) -> datetime | None:
    """Canonical ordering instant: submitted_at, else created_at, else a date-only field at UTC midnight."""
    raw = row_value(row, "submitted_at") or row_value(row, "created_at")
    if raw:
        parsed = parse_instant(raw)
        if parsed is not None:
            return parsed
    for field in DATE_ONLY_FIELDS:
        value = row_value(row, field)
        if value:
            if is_date_only(value):
                return parse_instant(f"{value}T00:00:00+00:00")
            break
    return None


def select_latest_checkin(rows: Iterable[Any]) -> Any:
    """Row with the greatest canonical timestamp; the first row when none parse or all tie."""
    rows = list(rows or [])
    latest_row = None
    latest_ts: datetime | None = None
    for row in rows:
        ts = checkin_timestamp(row)
        if ts is None:
            continue
        if latest_ts is None or ts > latest_ts:
            latest_ts = ts
            latest_row = row
    if latest_row is None and rows:
        latest_row = rows[0]
    return latest_row


def latest_checkin_date(rows: Iterable[Any], tz_name: str | None = None) -> CalendarDate | None:
    latest_date = None
    latest_ts: datetime | None = None
    for row in rows or []:
        ts = checkin_timestamp(row)
        if ts is None:
            continue
        if latest_ts is None or ts > latest_ts:
            latest_ts = ts
            latest_date = checkin_date(row, tz_name)
    return latest_date


def latest_submitted_date(rows: Iterable[Any], tz_name: str | None = None) -> CalendarDate | None:
    days = [
        day
        for day in (normalize_calendar_date(row_value(row, "submitted_at"), tz_name) for row in rows or [])
        if day
    ]
    return max(days) if days else None


def record_for_cycle(rows: Iterable[Any], week_ending: CalendarDate, tz_name: str | None = None) -> Any:
    """The target cycle's record; duplicates resolve to the most recent."""
    matching = [row for row in rows or [] if checkin_cycle_key(row, tz_name) == week_ending]
    return select_latest_checkin(matching)


# --- Cycle state ---

def resolve_checkin_state(
    today: CalendarDate,
    record: Any,
    tz_name: str | None = None,
    due_weekdays: Iterable[int] | None = None,
) -> CheckinState:
    """
    Display state of the current week's check-in.

    The cycle is only actionable on its due days (Friday and Saturday by
    default); every other day resolves to ``NO_ALERTS`` whatever the record
    says. A record filed under a different week is ignored; one with no
    date fields at all is taken to belong to the current week.
    """
    due_days = set(settings.CHECKIN_DUE_WEEKDAYS if due_weekdays is None else due_weekdays)
    if weekday(today) not in due_days:
        return CheckinState.NO_ALERTS
    if record is not None:
        cycle_key = checkin_cycle_key(record, tz_name)
        if cycle_key is not None and cycle_key != week_ending_saturday(today):
            record = None
    if record is None:
        return CheckinState.DUE_TODAY
    if not row_value(record, "submitted_at"):
        return CheckinState.IN_PROGRESS
    if not has_feedback(record):
        return CheckinState.SUBMITTED_WAITING
    return CheckinState.REVIEWED


def resolve_cycle_state(rows: Iterable[Any], today: CalendarDate, tz_name: str | None = None) -> CheckinState:
    record = record_for_cycle(rows, week_ending_saturday(today), tz_name)
    return resolve_checkin_state(today, record, tz_name)


def due_for_today(rows: Iterable[Any], today: CalendarDate, tz_name: str | None = None) -> bool:
    if weekday(today) != SATURDAY:
        return False
    return not any(checkin_date(row, tz_name) == today for row in rows or [])


def coach_checkin_label(row: Any) -> str | None:
    if row is None:
        return None
    if not row_value(row, "submitted_at"):
        return "Due"
    return "Reviewed" if has_feedback(row) else "Submitted"


def checkin_reminder_window(latest_submitted: CalendarDate | None, today: CalendarDate) -> dict[str, Any]:
    """Whether the weekly check-in is overdue or coming due, relative to the latest submission day."""
    previous_saturday = last_saturday(today)
    submitted_since_saturday = bool(latest_submitted) and latest_submitted >= previous_saturday
    if not submitted_since_saturday and diff_days(today, previous_saturday) >= 1:
        return {"overdue": True, "due": False, "days_until_due": None}
    submitted_this_week = bool(latest_submitted) and latest_submitted >= week_start_sunday(today)
    if submitted_this_week:
        return {"overdue": False, "due": False, "days_until_due": None}
    return {
        "overdue": False,
        "due": True,
        "days_until_due": max(0, diff_days(week_end_saturday(today), today)),
    }


def next_cycle_date(
    start_date: CalendarDate | None,
    frequency: str | None,
    reference: CalendarDate,
) -> CalendarDate | None:
    """First cycle date strictly after ``reference`` for a schedule anchored at ``start_date``."""
    step = CHECKIN_FREQUENCY_DAYS.get(str(frequency or "").strip().lower())
    if step is None:
        raise ValueError(f"Unsupported check-in frequency: {frequency}")
    if not start_date:
        return None
    elapsed = diff_days(reference, start_date)
    if elapsed < 0:
        return add_days(start_date, 0)
    return add_days(start_date, (elapsed // step + 1) * step)


# --- Status with storage ---

def _report_failure(diagnostics: EngineDiagnostics | None, error: Any) -> None:
    if diagnostics is not None:
        diagnostics.log_once(CHECKIN_QUERY_ERROR, error)
    else:
        logger.error("%s %s", CHECKIN_QUERY_ERROR, describe_error(error))


def summarize_checkin_rows(rows: Iterable[Any], today: CalendarDate, tz_name: str | None = None) -> CheckinStatus:
    rows = list(rows or [])
    latest_row = select_latest_checkin(rows)
    supported = review_supported(latest_row) if latest_row is not None else False
    return CheckinStatus(
        due=due_for_today(rows, today, tz_name),
        submitted=is_submitted(latest_row),
        reviewed=is_reviewed(latest_row) if supported else False,
        checkin_id=row_value(latest_row, "id"),
        review_supported=supported,
    )


def get_client_checkin_status(
    load_rows: Callable[[], Any],
    today: CalendarDate,
    tz_name: str | None = None,
    diagnostics: EngineDiagnostics | None = None,
) -> CheckinStatus:
    """
    Check-in status from whatever the storage loader returns.

    ``load_rows`` returns an object with ``data`` and ``error`` attributes. A
    reported error, or any exception while loading, degrades to the empty
    status and is reported through ``diagnostics`` once.
    """
    try:
        result = load_rows()
        error = getattr(result, "error", None)
        if error:
            _report_failure(diagnostics, error)
            return CheckinStatus()
        return summarize_checkin_rows(getattr(result, "data", None) or [], today, tz_name)
    except Exception as exc:
        _report_failure(diagnostics, exc)
        return CheckinStatus()

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from config import settings
from services.checkin_service import (
    CheckinState,
    checkin_reminder_window,
    coach_checkin_label,
    get_client_checkin_status,
    latest_checkin_date,
    latest_submitted_date,
    next_cycle_date,
    resolve_cycle_state,
    select_latest_checkin,
)
from services.diagnostics import EngineDiagnostics
from services.habit_trends_service import compute_streak, is_log_editable, latest_log_date, summarize_habit_trends
from services.reminder_service import (
    REMINDER_KEYS,
    build_reminder_context,
    derive_alerts,
    dismissed_keys,
    evaluate_reminders,
)
from services.storage_service import (
    FetchResult,
    fetch_baseline_exists,
    fetch_checkins,
    fetch_dismissed_reminders,
    fetch_habit_logs,
    get_client,
    insert_dismissal,
    storage_error_message,
)
from utils.datetime_utils import CalendarDate, add_days, format_relative_day, today_for_tz


logger = logging.getLogger(__name__)


class ClientNotFoundError(LookupError):
    pass


@dataclass
class ClientScope:
    client_id: int
    timezone: str | None
    today: CalendarDate
    profile: dict[str, Any] | None
    profile_error: Any = None


def _resolve_scope(db: Session, client_id: int, today: CalendarDate | None) -> ClientScope:
    result = get_client(db, client_id)
    if result.error:
        # Unknown zone; fall back to the host zone rather than failing the whole view.
        return ClientScope(client_id, None, today or today_for_tz(None), None, result.error)
    if result.data is None:
        raise ClientNotFoundError(f"Client {client_id} not found")
    tz_name = result.data.get("timezone") or None
    return ClientScope(client_id, tz_name, today or today_for_tz(tz_name), result.data)


def _trend_window(today: CalendarDate) -> tuple[CalendarDate, CalendarDate]:
    return add_days(today, -(settings.HABIT_TREND_WINDOW_DAYS - 1)), today


def _error_text(result: FetchResult, fallback: str) -> str | None:
    return storage_error_message(result.error, fallback) if result.error else None


def build_client_overview(
    db: Session,
    client_id: int,
    diagnostics: EngineDiagnostics | None = None,
    today: CalendarDate | None = None,
) -> dict[str, Any]:
    """
    Everything the client home screen needs for ``today``.

    Sources are loaded independently; a failing source only blanks the
    fields it feeds and is reported under ``errors``.
    """
    scope = _resolve_scope(db, client_id, today)
    today = scope.today
    lookback_start = add_days(today, -(settings.STREAK_MAX_LOOKBACK_DAYS - 1))
    window_start, window_end = _trend_window(today)

    habits = fetch_habit_logs(db, client_id, lookback_start, today)
    checkins = fetch_checkins(db, client_id)
    baseline = fetch_baseline_exists(db, client_id)
    dismissed = fetch_dismissed_reminders(db, client_id, today)

    status = get_client_checkin_status(lambda: checkins, today, scope.timezone, diagnostics)
    if checkins.ok:
        rows = checkins.data or []
        state = resolve_cycle_state(rows, today, scope.timezone)
        window = checkin_reminder_window(latest_submitted_date(rows, scope.timezone), today)
        last_checkin = latest_checkin_date(rows, scope.timezone)
    else:
        state = CheckinState.NO_ALERTS
        window = None
        last_checkin = None

    log_dates = [row["log_date"] for row in habits.data or []] if habits.ok else None
    ctx = build_reminder_context(
        today,
        log_dates=log_dates,
        baseline_exists=baseline.data if baseline.ok else None,
        checkin_window=window,
    )
    hidden = dismissed_keys(dismissed.data or [], client_id, today) if dismissed.ok else set()
    reminders = evaluate_reminders(ctx, hidden)

    last_log = latest_log_date(log_dates) if log_dates is not None else None
    errors = {
        "profile": storage_error_message(scope.profile_error, "Unable to load client profile.") if scope.profile_error else None,
        "habits": _error_text(habits, "Unable to load habit logs."),
        "checkins": _error_text(checkins, "Unable to load check-ins."),
        "baseline": _error_text(baseline, "Unable to load baseline."),
        "dismissed": _error_text(dismissed, "Unable to load dismissed reminders."),
    }
    return {
        "client_id": client_id,
        "timezone": scope.timezone,
        "today": today,
        "checkin": {
            "state": state.value,
            "status": status.as_dict(),
            "last_checkin_date": last_checkin,
        },
        "alerts": [alert.as_dict() for alert in derive_alerts(state)],
        "reminders": [reminder.as_dict() for reminder in reminders],
        "habits": {
            "streak": compute_streak(log_dates, today) if log_dates is not None else None,
            "last_log_date": last_log,
            "last_logged": format_relative_day(last_log, today) if last_log else None,
            "trends": summarize_habit_trends(habits.data or [], window_start, window_end) if habits.ok else None,
        },
        "errors": {key: value for key, value in errors.items() if value},
    }


def get_checkin_overview(
    db: Session,
    client_id: int,
    diagnostics: EngineDiagnostics | None = None,
    today: CalendarDate | None = None,
) -> dict[str, Any]:
    scope = _resolve_scope(db, client_id, today)
    checkins = fetch_checkins(db, client_id)
    status = get_client_checkin_status(lambda: checkins, scope.today, scope.timezone, diagnostics)
    rows = (checkins.data or []) if checkins.ok else []
    state = resolve_cycle_state(rows, scope.today, scope.timezone) if checkins.ok else CheckinState.NO_ALERTS
    return {
        "client_id": client_id,
        "today": scope.today,
        "state": state.value,
        "status": status.as_dict(),
        "coach_label": coach_checkin_label(select_latest_checkin(rows)),
        "alerts": [alert.as_dict() for alert in derive_alerts(state)],
        "error": _error_text(checkins, "Unable to load check-ins."),
    }


def get_habit_summary(db: Session, client_id: int, today: CalendarDate | None = None) -> dict[str, Any]:
    scope = _resolve_scope(db, client_id, today)
    lookback_start = add_days(scope.today, -(settings.STREAK_MAX_LOOKBACK_DAYS - 1))
    window_start, window_end = _trend_window(scope.today)
    editable_from = add_days(scope.today, -settings.HABIT_EDIT_WINDOW_DAYS)
    habits = fetch_habit_logs(db, client_id, lookback_start, scope.today)
    if not habits.ok:
        return {
            "client_id": client_id,
            "today": scope.today,
            "streak": None,
            "last_log_date": None,
            "last_log_editable": False,
            "editable_from": editable_from,
            "trends": None,
            "error": _error_text(habits, "Unable to load habit logs."),
        }
    rows = habits.data or []
    log_dates = [row["log_date"] for row in rows]
    last_log = latest_log_date(log_dates)
    return {
        "client_id": client_id,
        "today": scope.today,
        "streak": compute_streak(log_dates, scope.today),
        "last_log_date": last_log,
        "last_log_editable": is_log_editable(last_log, scope.today) if last_log else False,
        "editable_from": editable_from,
        "trends": summarize_habit_trends(rows, window_start, window_end),
        "error": None,
    }


def dismiss_reminder(
    db: Session,
    client_id: int,
    key: str,
    today: CalendarDate | None = None,
) -> FetchResult:
    if key not in REMINDER_KEYS:
        raise ValueError(f"Unknown reminder: {key}")
    scope = _resolve_scope(db, client_id, today)
    return insert_dismissal(db, client_id, key, scope.today)


def next_checkin_date(
    db: Session,
    client_id: int,
    reference: CalendarDate | None = None,
    frequency: str | None = None,
) -> dict[str, Any]:
    scope = _resolve_scope(db, client_id, None)
    profile = scope.profile or {}
    reference = reference or scope.today
    cadence = frequency or profile.get("checkin_frequency") or "weekly"
    start_date = profile.get("checkin_start_date")
    return {
        "client_id": client_id,
        "frequency": cadence,
        "start_date": start_date,
        "reference": reference,
        "next_date": next_cycle_date(start_date, cadence, reference),
    }

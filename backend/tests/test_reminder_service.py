from __future__ import annotations

import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.checkin_service import CheckinState  # noqa: E402
from services.reminder_service import (  # noqa: E402
    REMINDER_CATALOG,
    ReminderContext,
    build_reminder_context,
    derive_alerts,
    dismissed_keys,
    evaluate_reminders,
)


def _keys(reminders):
    return [reminder.key for reminder in reminders]


def test_catalog_order_is_stable():
    assert [definition.key for definition in REMINDER_CATALOG] == [
        "habit_log_today",
        "baseline_incomplete",
        "habit_log_week",
        "checkin_overdue",
        "checkin_due",
    ]


def test_relevant_reminders_follow_catalog_order():
    ctx = ReminderContext(
        has_today_log=False,
        baseline_exists=False,
        checkin_due=True,
        missing_log_days=4,
        days_until_checkin=0,
    )
    reminders = evaluate_reminders(ctx)
    assert _keys(reminders) == ["habit_log_today", "baseline_incomplete", "habit_log_week", "checkin_due"]

    week = reminders[2]
    assert week.severity == "warn"
    assert week.description == "4 days missing in the last 7 days."
    assert reminders[3].description == "Due today"


def test_overdue_checkin_replaces_due_reminder():
    ctx = ReminderContext(has_today_log=True, baseline_exists=True, checkin_due=True, checkin_overdue=True)
    assert _keys(evaluate_reminders(ctx)) == ["checkin_overdue"]


def test_missing_days_severity_scales():
    ctx = ReminderContext(has_today_log=True, baseline_exists=True, missing_log_days=1)
    (reminder,) = evaluate_reminders(ctx)
    assert reminder.key == "habit_log_week"
    assert reminder.severity == "info"
    assert reminder.description == "1 day missing in the last 7 days."


def test_dismissed_reminders_hidden_only_for_that_day():
    rows = [
        {"client_id": 1, "key": "baseline_incomplete", "dismissed_for_date": "2024-05-04"},
        {"client_id": 2, "key": "habit_log_today", "dismissed_for_date": "2024-05-04"},
        {"client_id": 1, "key": "habit_log_today", "dismissed_for_date": "2024-05-03"},
    ]
    ctx = ReminderContext(has_today_log=False, baseline_exists=False)

    hidden_today = dismissed_keys(rows, 1, "2024-05-04")
    assert hidden_today == {"baseline_incomplete"}
    assert _keys(evaluate_reminders(ctx, hidden_today)) == ["habit_log_today"]

    hidden_tomorrow = dismissed_keys(rows, 1, "2024-05-05")
    assert hidden_tomorrow == set()
    assert _keys(evaluate_reminders(ctx, hidden_tomorrow)) == ["habit_log_today", "baseline_incomplete"]


def test_failed_sources_suppress_dependent_reminders():
    ctx = build_reminder_context(
        "2024-05-05",
        log_dates=None,
        baseline_exists=None,
        checkin_window=None,
    )
    assert ctx.has_today_log is None
    assert ctx.baseline_exists is None
    assert evaluate_reminders(ctx) == []


def test_build_context_from_sources():
    ctx = build_reminder_context(
        "2024-05-05",
        log_dates=["2024-05-05", "2024-05-04"],
        baseline_exists=True,
        checkin_window={"overdue": False, "due": True, "days_until_due": 6},
    )
    assert ctx.has_today_log is True
    assert ctx.missing_log_days == 5
    reminders = evaluate_reminders(ctx)
    assert _keys(reminders) == ["habit_log_week", "checkin_due"]
    assert reminders[1].description == "Due in 6 days"


def test_alerts_map_one_to_one_from_state():
    assert derive_alerts(CheckinState.NO_ALERTS) == []
    assert derive_alerts("not-a-state") == []
    expected = {
        CheckinState.DUE_TODAY: "checkin_due_today",
        CheckinState.IN_PROGRESS: "checkin_in_progress",
        CheckinState.SUBMITTED_WAITING: "checkin_submitted",
        CheckinState.REVIEWED: "checkin_reviewed",
    }
    for state, key in expected.items():
        alerts = derive_alerts(state)
        assert [alert.key for alert in alerts] == [key]
    assert derive_alerts("reviewed")[0].key == "checkin_reviewed"

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass
from typing import Any

from config import settings
from services.checkin_service import CheckinState
from services.habit_trends_service import missing_log_days
from utils.datetime_utils import CalendarDate, normalize_calendar_date
from utils.rows import row_value


SEVERITIES = {"info", "warn"}


@dataclass(frozen=True)
class ReminderContext:
    # None means the feeding source failed to load; predicates treat it as "not relevant".
    has_today_log: bool | None = None
    baseline_exists: bool | None = None
    checkin_due: bool = False
    missing_log_days: int = 0
    checkin_overdue: bool = False
    days_until_checkin: int | None = None


@dataclass(frozen=True)
class Reminder:
    key: str
    title: str
    description: str
    cta_label: str
    cta_target: str
    severity: str

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReminderDefinition:
    key: str
    title: str
    description: str | Callable[[ReminderContext], str]
    cta_label: str
    cta_target: str
    severity: str | Callable[[ReminderContext], str]
    is_relevant: Callable[[ReminderContext], bool]

    def render(self, ctx: ReminderContext) -> Reminder:
        description = self.description(ctx) if callable(self.description) else self.description
        severity = self.severity(ctx) if callable(self.severity) else self.severity
        return Reminder(
            key=self.key,
            title=self.title,
            description=description,
            cta_label=self.cta_label,
            cta_target=self.cta_target,
            severity=severity if severity in SEVERITIES else "info",
        )


@dataclass(frozen=True)
class Alert:
    key: str
    title: str
    description: str
    cta_label: str
    cta_target: str
    severity: str

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _plural_days(count: int) -> str:
    return f"{count} day{'' if count == 1 else 's'}"


def _missing_days_description(ctx: ReminderContext) -> str:
    return f"{_plural_days(ctx.missing_log_days)} missing in the last {settings.HABIT_TREND_WINDOW_DAYS} days."


def _checkin_due_description(ctx: ReminderContext) -> str:
    days = ctx.days_until_checkin or 0
    if days <= 0:
        return "Due today"
    return f"Due in {_plural_days(days)}"


REMINDER_CATALOG: tuple[ReminderDefinition, ...] = (
    ReminderDefinition(
        key="habit_log_today",
        title="Log today's habits",
        description="You do not have a habit log for today.",
        cta_label="Log habits",
        cta_target="/app/habits",
        severity="warn",
        is_relevant=lambda ctx: ctx.has_today_log is False,
    ),
    ReminderDefinition(
        key="baseline_incomplete",
        title="Complete your baseline",
        description="Your coach needs your starting measurements and photos.",
        cta_label="Start baseline",
        cta_target="/app/baseline",
        severity="info",
        is_relevant=lambda ctx: ctx.baseline_exists is False,
    ),
    ReminderDefinition(
        key="habit_log_week",
        title="Catch up on habits",
        description=_missing_days_description,
        cta_label="Review logs",
        cta_target="/app/habits",
        severity=lambda ctx: "warn" if ctx.missing_log_days >= 3 else "info",
        is_relevant=lambda ctx: ctx.missing_log_days > 0,
    ),
    ReminderDefinition(
        key="checkin_overdue",
        title="Weekly check-in overdue",
        description="Your weekly check-in was due last Saturday.",
        cta_label="Submit check-in",
        cta_target="/app/checkin",
        severity="warn",
        is_relevant=lambda ctx: ctx.checkin_overdue,
    ),
    ReminderDefinition(
        key="checkin_due",
        title="Weekly check-in due Saturday",
        description=_checkin_due_description,
        cta_label="Open check-in",
        cta_target="/app/checkin",
        severity="info",
        is_relevant=lambda ctx: ctx.checkin_due and not ctx.checkin_overdue,
    ),
)

REMINDER_KEYS = frozenset(definition.key for definition in REMINDER_CATALOG)


def build_reminder_context(
    today: CalendarDate,
    *,
    log_dates: Iterable[CalendarDate] | None,
    baseline_exists: bool | None,
    checkin_window: dict[str, Any] | None,
    window_days: int | None = None,
) -> ReminderContext:
    """
    Compose the evaluation context from independently loaded sources.

    ``log_dates`` or ``baseline_exists`` of ``None`` mark a failed source and
    leave the dependent fields unknown; a missing ``checkin_window`` leaves the
    check-in reminders off.
    """
    if log_dates is None:
        has_today_log = None
        missing = 0
    else:
        dates = set(log_dates)
        has_today_log = today in dates
        missing = missing_log_days(dates, today, window_days)
    window = checkin_window or {}
    return ReminderContext(
        has_today_log=has_today_log,
        baseline_exists=baseline_exists,
        checkin_due=bool(window.get("due")),
        missing_log_days=missing,
        checkin_overdue=bool(window.get("overdue")),
        days_until_checkin=window.get("days_until_due"),
    )


def dismissed_keys(rows: Iterable[Any], client_id: Any, today: CalendarDate) -> set[str]:
    keys: set[str] = set()
    for row in rows or []:
        if client_id is not None and row_value(row, "client_id") not in (None, client_id):
            continue
        if normalize_calendar_date(row_value(row, "dismissed_for_date")) != today:
            continue
        key = row_value(row, "key")
        if key:
            keys.add(str(key))
    return keys


def relevant_reminders(
    ctx: ReminderContext,
    catalog: Iterable[ReminderDefinition] = REMINDER_CATALOG,
) -> list[Reminder]:
    return [definition.render(ctx) for definition in catalog if definition.is_relevant(ctx)]


def evaluate_reminders(
    ctx: ReminderContext,
    dismissed: Iterable[str] = (),
    catalog: Iterable[ReminderDefinition] = REMINDER_CATALOG,
) -> list[Reminder]:
    """Relevant reminders in catalog order, minus those dismissed for today."""
    hidden = set(dismissed or ())
    return [reminder for reminder in relevant_reminders(ctx, catalog) if reminder.key not in hidden]


_ALERT_COPY: dict[CheckinState, Alert] = {
    CheckinState.DUE_TODAY: Alert(
        key="checkin_due_today",
        title="Weekly check-in due",
        description="Submit your weekly check-in before the end of Saturday.",
        cta_label="Start check-in",
        cta_target="/app/checkin",
        severity="warn",
    ),
    CheckinState.IN_PROGRESS: Alert(
        key="checkin_in_progress",
        title="Finish your check-in",
        description="You started this week's check-in but have not submitted it.",
        cta_label="Continue check-in",
        cta_target="/app/checkin",
        severity="warn",
    ),
    CheckinState.SUBMITTED_WAITING: Alert(
        key="checkin_submitted",
        title="Check-in submitted",
        description="Your coach will review it soon.",
        cta_label="View check-in",
        cta_target="/app/checkin",
        severity="info",
    ),
    CheckinState.REVIEWED: Alert(
        key="checkin_reviewed",
        title="Coach feedback ready",
        description="Your coach reviewed this week's check-in.",
        cta_label="Read feedback",
        cta_target="/app/checkin",
        severity="info",
    ),
}


def derive_alerts(state: CheckinState | str) -> list[Alert]:
    """Non-dismissible alerts for the current check-in state."""
    try:
        state = CheckinState(state)
    except ValueError:
        return []
    alert = _ALERT_COPY.get(state)
    return [alert] if alert else []

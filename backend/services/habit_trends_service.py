from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from typing import Any

from config import settings
from utils.datetime_utils import CalendarDate, add_days, diff_days, normalize_calendar_date
from utils.rows import row_value
from utils.units import convert_weight, normalize_weight_unit


def _numeric(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _select(row: Any, metric: str | Callable[[Any], Any]) -> Any:
    if callable(metric):
        return metric(row)
    return row_value(row, metric)


def _date_key(value: Any) -> CalendarDate | None:
    return normalize_calendar_date(value)


def dedupe_by_date(rows: Iterable[Any]) -> list[tuple[CalendarDate, Any]]:
    """Collapse rows to one per log date (last one wins), oldest first."""
    by_date: dict[CalendarDate, Any] = {}
    for row in rows or []:
        key = _date_key(row_value(row, "log_date"))
        if key is None:
            continue
        by_date[key] = row
    return [(key, by_date[key]) for key in sorted(by_date)]


def _in_window(day: CalendarDate, window_start: CalendarDate | None, window_end: CalendarDate | None) -> bool:
    if window_start and day < window_start:
        return False
    if window_end and day > window_end:
        return False
    return True


def compute_streak(
    log_dates: Iterable[Any],
    reference_date: CalendarDate | None,
    max_lookback: int | None = None,
) -> int:
    """Count consecutive logged days walking back from ``reference_date``."""
    if not reference_date:
        return 0
    lookback = settings.STREAK_MAX_LOOKBACK_DAYS if max_lookback is None else int(max_lookback)
    logged = {key for key in (_date_key(value) for value in log_dates or []) if key}
    streak = 0
    for offset in range(max(lookback, 0)):
        if add_days(reference_date, -offset) not in logged:
            break
        streak += 1
    return streak


def latest_log_date(log_dates: Iterable[Any]) -> CalendarDate | None:
    keys = [key for key in (_date_key(value) for value in log_dates or []) if key]
    return max(keys) if keys else None


def rolling_average(
    rows: Iterable[Any],
    metric: str | Callable[[Any], Any],
    window_start: CalendarDate | None,
    window_end: CalendarDate | None,
) -> int | None:
    """Rounded mean of the numeric samples inside the inclusive window; ``None`` when there are none."""
    values = [
        value
        for day, row in dedupe_by_date(rows)
        if _in_window(day, window_start, window_end)
        for value in (_numeric(_select(row, metric)),)
        if value is not None
    ]
    if not values:
        return None
    return _round_half_up(sum(values) / len(values))


def delta(rows: Iterable[Any], metric: str | Callable[[Any], Any]) -> float | None:
    values = [
        value
        for _day, row in dedupe_by_date(rows)
        for value in (_numeric(_select(row, metric)),)
        if value is not None
    ]
    if len(values) < 2:
        return None
    return round(values[-1] - values[0], 2)


def weight_delta(rows: Iterable[Any]) -> tuple[float | None, str | None]:
    """
    Change in body weight across the rows, in the unit of the first tagged row.

    Rows without a recognised unit are excluded. Rows logged in the other unit
    are converted before differencing.
    """
    samples: list[tuple[float, str]] = []
    for _day, row in dedupe_by_date(rows):
        value = _numeric(row_value(row, "weight_value"))
        unit = normalize_weight_unit(row_value(row, "weight_unit"))
        if value is None or unit is None:
            continue
        samples.append((value, unit))
    if not samples:
        return None, None
    target_unit = samples[0][1]
    if len(samples) < 2:
        return None, target_unit
    first = convert_weight(samples[0][0], samples[0][1], target_unit)
    last = convert_weight(samples[-1][0], samples[-1][1], target_unit)
    return round(last - first, 2), target_unit


def missing_log_days(log_dates: Iterable[Any], today: CalendarDate, window_days: int | None = None) -> int:
    window = settings.HABIT_TREND_WINDOW_DAYS if window_days is None else int(window_days)
    logged = {key for key in (_date_key(value) for value in log_dates or []) if key}
    return sum(1 for offset in range(max(window, 0)) if add_days(today, -offset) not in logged)


def is_log_editable(log_date: CalendarDate, today: CalendarDate, edit_window: int | None = None) -> bool:
    window = settings.HABIT_EDIT_WINDOW_DAYS if edit_window is None else int(edit_window)
    days_ago = diff_days(today, log_date)
    return 0 <= days_ago <= window


def summarize_habit_trends(
    rows: Iterable[Any],
    window_start: CalendarDate,
    window_end: CalendarDate,
) -> dict[str, Any]:
    in_window = [row for day, row in dedupe_by_date(rows) if _in_window(day, window_start, window_end)]
    days_logged = len(in_window)
    window_length = max(diff_days(window_end, window_start) + 1, 1)
    weight_change, weight_unit = weight_delta(in_window)
    return {
        "window_start": window_start,
        "window_end": window_end,
        "days_logged": days_logged,
        "adherence_pct": _round_half_up(days_logged / window_length * 100),
        "avg_steps": rolling_average(in_window, "steps", window_start, window_end),
        "avg_sleep_hours": rolling_average(in_window, "sleep_hours", window_start, window_end),
        "avg_protein_g": rolling_average(in_window, "protein_g", window_start, window_end),
        "weight_change": weight_change,
        "weight_unit": weight_unit,
    }

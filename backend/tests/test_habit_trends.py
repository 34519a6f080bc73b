from __future__ import annotations

import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.habit_trends_service import (  # noqa: E402
    compute_streak,
    dedupe_by_date,
    delta,
    is_log_editable,
    latest_log_date,
    missing_log_days,
    rolling_average,
    summarize_habit_trends,
    weight_delta,
)


def test_streak_counts_consecutive_days_back_from_reference():
    dates = ["2024-05-01", "2024-05-02", "2024-05-03", "2024-05-04", "2024-05-05"]
    assert compute_streak(dates, "2024-05-05") == 5


def test_streak_stops_at_first_gap():
    dates = ["2024-05-01", "2024-05-02", "2024-05-04", "2024-05-05"]
    assert compute_streak(dates, "2024-05-05") == 2


def test_streak_is_zero_without_reference_or_todays_log():
    assert compute_streak(["2024-05-04"], "") == 0
    assert compute_streak(["2024-05-04"], None) == 0
    assert compute_streak(["2024-05-04"], "2024-05-05") == 0


def test_streak_never_exceeds_lookback():
    dates = [f"2024-05-{day:02d}" for day in range(1, 32)]
    assert compute_streak(dates, "2024-05-31", max_lookback=10) == 10
    assert compute_streak(dates, "2024-05-31") == 30


def test_streak_ignores_duplicate_dates():
    assert compute_streak(["2024-05-05", "2024-05-05", "2024-05-04"], "2024-05-05") == 2


def test_rolling_average_rounds_and_ignores_non_numeric():
    rows = [
        {"log_date": "2024-05-01", "steps": 8000},
        {"log_date": "2024-05-02", "steps": None},
        {"log_date": "2024-05-03", "steps": "9000"},
        {"log_date": "2024-05-04", "steps": 8001},
        {"log_date": "2024-05-09", "steps": 20000},
    ]
    assert rolling_average(rows, "steps", "2024-05-01", "2024-05-07") == 8001


def test_rolling_average_distinguishes_no_data_from_zero():
    rows = [{"log_date": "2024-05-01", "sleep_hours": None}]
    assert rolling_average(rows, "sleep_hours", "2024-05-01", "2024-05-07") is None
    rows = [{"log_date": "2024-05-01", "sleep_hours": 0}]
    assert rolling_average(rows, "sleep_hours", "2024-05-01", "2024-05-07") == 0


def test_rolling_average_includes_boundary_dates_and_accepts_selectors():
    rows = [
        {"log_date": "2024-05-01", "metrics": {"protein_g": 120}},
        {"log_date": "2024-05-07", "metrics": {"protein_g": 131}},
    ]
    avg = rolling_average(rows, lambda row: row["metrics"]["protein_g"], "2024-05-01", "2024-05-07")
    assert avg == 126  # 125.5 rounds half up


def test_same_day_rows_are_not_double_counted():
    rows = [
        {"log_date": "2024-05-01", "steps": 1000},
        {"log_date": "2024-05-01", "steps": 3000},
        {"log_date": "2024-05-02", "steps": 5000},
    ]
    assert len(dedupe_by_date(rows)) == 2
    assert rolling_average(rows, "steps", None, None) == 4000


def test_delta_uses_chronological_first_and_last_samples():
    rows = [
        {"log_date": "2024-05-03", "sleep_hours": 8},
        {"log_date": "2024-05-01", "sleep_hours": 6.5},
        {"log_date": "2024-05-02", "sleep_hours": None},
    ]
    assert delta(rows, "sleep_hours") == pytest.approx(1.5)
    assert delta(rows[:1], "sleep_hours") is None


def test_weight_delta_requires_unit_and_converts():
    rows = [
        {"log_date": "2024-05-01", "weight_value": 90.0, "weight_unit": None},
        {"log_date": "2024-05-02", "weight_value": 80.0, "weight_unit": "kg"},
        {"log_date": "2024-05-04", "weight_value": 79.0, "weight_unit": "kg"},
    ]
    change, unit = weight_delta(rows)
    assert unit == "kg"
    assert change == pytest.approx(-1.0)

    mixed = [
        {"log_date": "2024-05-01", "weight_value": 100.0, "weight_unit": "kg"},
        {"log_date": "2024-05-02", "weight_value": 220.0, "weight_unit": "lb"},
    ]
    change, unit = weight_delta(mixed)
    assert unit == "kg"
    assert change == pytest.approx(-0.21, abs=0.01)


def test_weight_delta_with_single_tagged_sample():
    change, unit = weight_delta([{"log_date": "2024-05-01", "weight_value": 70, "weight_unit": "kg"}])
    assert change is None
    assert unit == "kg"


def test_summarize_habit_trends_window():
    rows = [
        {"log_date": "2024-04-20", "steps": 1},
        {"log_date": "2024-04-29", "steps": 10000, "sleep_hours": 7, "protein_g": 150, "weight_value": 82.4, "weight_unit": "kg"},
        {"log_date": "2024-05-01", "steps": 6000, "sleep_hours": 8, "protein_g": None},
        {"log_date": "2024-05-05", "steps": 8000, "sleep_hours": None, "protein_g": 140, "weight_value": 81.9, "weight_unit": "kg"},
    ]
    summary = summarize_habit_trends(rows, "2024-04-29", "2024-05-05")
    assert summary["days_logged"] == 3
    assert summary["adherence_pct"] == 43
    assert summary["avg_steps"] == 8000
    assert summary["avg_sleep_hours"] == 8  # 7.5 rounds half up
    assert summary["avg_protein_g"] == 145
    assert summary["weight_change"] == pytest.approx(-0.5)
    assert summary["weight_unit"] == "kg"


def test_missing_days_latest_date_and_edit_window():
    dates = ["2024-05-05", "2024-05-04", "2024-05-01"]
    assert missing_log_days(dates, "2024-05-05", 7) == 4
    assert latest_log_date(dates) == "2024-05-05"
    assert latest_log_date([]) is None
    assert is_log_editable("2024-05-05", "2024-05-05") is True
    assert is_log_editable("2024-04-29", "2024-05-05", edit_window=6) is True
    assert is_log_editable("2024-04-28", "2024-05-05", edit_window=6) is False
    assert is_log_editable("2024-05-06", "2024-05-05") is False

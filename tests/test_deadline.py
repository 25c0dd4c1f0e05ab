from datetime import date, datetime

import pytest

from kpi_backend.core.config import settings
from kpi_backend.services.deadline import (
    TIME_MODE_COMPRESSED,
    TIME_MODE_CUSTOM,
    TIME_MODE_EMERGENCY,
    TIME_MODE_INSUFFICIENT,
    TIME_MODE_STANDARD,
    DeadlineCalculator,
    DeadlineDays,
    TimeThreshold,
    calculate_period_end,
    format_period,
    is_overdue,
    remaining_days,
)


def _calculator(created_at, period="monthly", year=2024, month=1, quarter=None):
    defaults = settings.deadlines
    return DeadlineCalculator(
        period=period,
        created_at=created_at,
        year=year,
        month=month,
        quarter=quarter,
        standard_days=DeadlineDays.from_dict(defaults.standard_days),
        compressed_days=DeadlineDays.from_dict(defaults.compressed_days),
        minimum_days=DeadlineDays.from_dict(defaults.minimum_days),
        threshold=TimeThreshold.from_dict(defaults.time_threshold),
    )


@pytest.mark.parametrize("period, month, quarter, expected", [
    ("monthly", 2, None, datetime(2024, 2, 29)),
    ("quarterly", None, 1, datetime(2024, 3, 31)),
    ("quarterly", None, 4, datetime(2024, 12, 31)),
    ("yearly", None, None, datetime(2024, 12, 31)),
])
def test_period_end(period, month, quarter, expected):
    assert calculate_period_end(period, 2024, month, quarter) == expected


def test_period_end_defaults_to_current_month():
    assert calculate_period_end("monthly", 2024, today=date(2023, 4, 10)) == datetime(2023, 4, 30)


def test_format_period():
    assert format_period("monthly", 2024, month=3) == "2024-03"
    assert format_period("quarterly", 2024, quarter=1) == "2024-Q1"
    assert format_period("yearly", 2024) == "2024"


def test_standard_schedule():
    result = _calculator(datetime(2024, 1, 1)).calculate()

    assert result.is_valid
    assert result.time_mode == TIME_MODE_STANDARD
    assert result.self_eval_deadline == datetime(2024, 1, 8)
    assert result.manager_eval_deadline == datetime(2024, 1, 13)
    assert result.hr_review_deadline == datetime(2024, 1, 16)
    assert result.final_confirm_deadline == datetime(2024, 1, 19)


def test_compressed_schedule():
    result = _calculator(datetime(2024, 1, 16)).calculate()

    assert result.time_mode == TIME_MODE_COMPRESSED
    assert result.self_eval_deadline == datetime(2024, 1, 19)
    assert result.final_confirm_deadline == datetime(2024, 1, 26)


def test_emergency_schedule_uses_minimum_days():
    result = _calculator(datetime(2024, 1, 25)).calculate()

    assert result.time_mode == TIME_MODE_EMERGENCY
    assert result.final_confirm_deadline == datetime(2024, 1, 29)


def test_insufficient_time():
    result = _calculator(datetime(2024, 1, 29, 12)).calculate()

    assert result.time_mode == TIME_MODE_INSUFFICIENT
    assert not result.is_valid
    assert result.message
    assert result.self_eval_deadline is None


def test_custom_deadlines_accepted():
    calculator = _calculator(datetime(2024, 1, 1))
    result = calculator.custom_deadlines(
        datetime(2024, 1, 5), datetime(2024, 1, 10), datetime(2024, 1, 15), datetime(2024, 1, 20)
    )
    assert result.is_valid
    assert result.time_mode == TIME_MODE_CUSTOM


@pytest.mark.parametrize("deadlines, fragment", [
    ((datetime(2024, 1, 10), datetime(2024, 1, 5), datetime(2024, 1, 15), datetime(2024, 1, 20)), "manager"),
    ((datetime(2023, 12, 30), datetime(2024, 1, 5), datetime(2024, 1, 15), datetime(2024, 1, 20)), "creation"),
    ((datetime(2024, 1, 5), datetime(2024, 1, 10), datetime(2024, 1, 15), datetime(2024, 2, 2)), "period"),
    ((datetime(2024, 1, 5), datetime(2024, 1, 5, 12), datetime(2024, 1, 15), datetime(2024, 1, 20)), "at least"),
])
def test_custom_deadlines_rejected(deadlines, fragment):
    result = _calculator(datetime(2024, 1, 1)).custom_deadlines(*deadlines)
    assert not result.is_valid
    assert fragment in result.message


def test_overdue_and_remaining_days():
    now = datetime(2024, 1, 10)
    assert is_overdue(datetime(2024, 1, 9), now)
    assert not is_overdue(datetime(2024, 1, 11), now)
    assert not is_overdue(None, now)
    assert remaining_days(datetime(2024, 1, 13, 6), now) == 3
    assert remaining_days(datetime(2024, 1, 1), now) == 0

# tests/test_date_utils.py

from __future__ import annotations

from datetime import date

import pytest

from date_utils import (
    FixedClock,
    add_months,
    date_only,
    format_datetime_info,
    format_deadline,
    next_recurring_deadline,
    next_weekday,
    resolve_preset,
)


def test_date_only_accepts_timestamps_and_rejects_garbage() -> None:
    assert date_only("2024-06-10T15:00:00Z") == date(2024, 6, 10)
    assert date_only("2024-02-30") is None
    assert date_only("tomorrow") is None
    assert date_only(None) is None


def test_add_months_clamps_to_month_end() -> None:
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2024, 12, 15), 1) == date(2025, 1, 15)


def test_next_weekday_is_strictly_after_reference() -> None:
    monday = date(2024, 6, 3)

    assert next_weekday(monday, 1) == date(2024, 6, 10)  # Monday -> next Monday
    assert next_weekday(monday, 0) == date(2024, 6, 9)  # Sunday


@pytest.mark.parametrize(
    "kind,kwargs,expected",
    [
        ("daily", {}, date(2024, 6, 4)),
        ("weekly", {}, date(2024, 6, 10)),
        ("weekly", {"weekday": 3}, date(2024, 6, 5)),
        ("monthly", {}, date(2024, 7, 3)),
        ("custom", {"days": 10}, date(2024, 6, 13)),
    ],
)
def test_next_recurring_deadline(kind: str, kwargs: dict, expected: date) -> None:
    assert next_recurring_deadline(kind, date(2024, 6, 3), **kwargs) == expected


def test_next_recurring_deadline_rejects_bad_input() -> None:
    with pytest.raises(ValueError):
        next_recurring_deadline("yearly", date(2024, 6, 3))
    with pytest.raises(ValueError):
        next_recurring_deadline("custom", date(2024, 6, 3), days=0)
    with pytest.raises(ValueError):
        next_recurring_deadline("weekly", date(2024, 6, 3), weekday=7)


def test_presets() -> None:
    today = date(2024, 6, 3)

    assert resolve_preset("tomorrow", today) == date(2024, 6, 4)
    assert resolve_preset("next week", today) == date(2024, 6, 10)
    assert resolve_preset("2024-07-01", today) == date(2024, 7, 1)
    assert resolve_preset("someday", today) is None


def test_format_deadline_labels() -> None:
    today = date(2024, 6, 3)

    assert format_deadline(today, today) == "🔴 本日 6/3(月)"
    assert format_deadline(date(2024, 6, 1), today) == "⚠️ 期限切れ 6/1(土)"
    assert format_deadline("2024-06-05", today) == "6/5(水)"


def test_format_datetime_info_converts_timezone() -> None:
    assert format_datetime_info("2024-06-03T01:05:00.000000Z", "Asia/Tokyo") == "2024/6/3 10:05"
    assert format_datetime_info(None) == ""


def test_fixed_clock_advances() -> None:
    clock = FixedClock("2024-06-03")
    clock.advance(2)

    assert clock.today() == date(2024, 6, 5)
    assert clock.now_iso() == "2024-06-05T00:00:00.000000Z"

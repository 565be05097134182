# tests/test_board.py

from __future__ import annotations

from datetime import date, timedelta

import pytest

from board import drop, lane_of, lanes

from .fakes import make_contact


def test_lanes_group_pending_records(today: date) -> None:
    contacts = [
        make_contact("1", "2024-06-03", is_overdue=True, original_deadline="2024-05-30"),
        make_contact("2", "2024-06-03"),
        make_contact("3", "2024-06-09"),
        make_contact("4", "2024-06-01", status="completed"),
    ]

    grouped = lanes(contacts, today)

    assert [c.id for c in grouped["overdue"]] == ["1"]
    assert [c.id for c in grouped["today"]] == ["2"]
    assert [c.id for c in grouped["future"]] == ["3"]
    assert lane_of(contacts[3], today) is None


def test_drop_on_overdue_lane_changes_nothing(today: date) -> None:
    c = make_contact("1", "2024-06-09")

    assert drop(c, "overdue", today) is c


def test_drop_on_today_clears_the_pin(today: date) -> None:
    c = make_contact("1", "2024-06-03", is_overdue=True, original_deadline="2024-05-30")

    moved = drop(c, "today", today)

    assert moved.deadline == today
    assert moved.is_overdue is False
    assert moved.original_deadline is None


def test_drop_on_future_sets_tomorrow(today: date) -> None:
    c = make_contact("1", "2024-06-03", is_overdue=True, original_deadline="2024-05-30")

    moved = drop(c, "future", today)

    assert moved.deadline == today + timedelta(days=1)
    assert moved.is_overdue is False


def test_unknown_lane_is_rejected(today: date) -> None:
    with pytest.raises(ValueError):
        drop(make_contact("1", "2024-06-03"), "someday", today)

"""
Calendar helpers: the injectable clock, next-occurrence math for recurring follow-ups,
and display formatting for deadlines.
"""
from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta, timezone
from typing import Protocol

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Already ISO date (optionally followed by a time part)
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")

_WEEKDAYS_JA = ("月", "火", "水", "木", "金", "土", "日")

RECURRING_KINDS = frozenset({"daily", "weekly", "monthly", "custom"})


class Clock(Protocol):
    """Source of 'today' and 'now'. Everything that compares dates takes one of these."""

    def today(self) -> date: ...

    def now_iso(self) -> str: ...


def _today_in_tz(tz_name: str) -> date:
    name = (tz_name or "").strip() or "UTC"
    tz = ZoneInfo(name)
    return datetime.now(tz).date()


class SystemClock:
    """Wall clock; 'today' is the local calendar date in tz_name."""

    def __init__(self, tz_name: str = "UTC") -> None:
        self.tz_name = (tz_name or "").strip() or "UTC"

    def today(self) -> date:
        return _today_in_tz(self.tz_name)

    def now_iso(self) -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class FixedClock:
    """Clock pinned to one day. Used by tests and by scripted replays."""

    def __init__(self, day: date | str, now: str | None = None) -> None:
        self.day = date.fromisoformat(day) if isinstance(day, str) else day
        self._now = now

    def today(self) -> date:
        return self.day

    def now_iso(self) -> str:
        return self._now or f"{self.day.isoformat()}T00:00:00.000000Z"

    def advance(self, days: int = 1) -> None:
        self.day = self.day + timedelta(days=days)


def date_only(value: str | date | None) -> date | None:
    """Parse the YYYY-MM-DD prefix of value; None if empty/invalid."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if not _ISO_DATE.match(raw):
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def add_months(day: date, months: int) -> date:
    """Same day-of-month N months later, clamped to the end of a shorter month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def _weekday_sunday_first_to_python(day: int) -> int:
    """0=Sun..6=Sat to Python's Mon=0..Sun=6."""
    return (day - 1) % 7


def next_weekday(reference: date, weekday: int) -> date:
    """Next date strictly after reference falling on weekday (Sunday=0)."""
    target = _weekday_sunday_first_to_python(weekday)
    days_ahead = (target - reference.weekday()) % 7
    if days_ahead == 0:
        days_ahead = 7
    return reference + timedelta(days=days_ahead)


def next_recurring_deadline(
    recurring: str,
    today: date,
    *,
    days: int | None = None,
    weekday: int | None = None,
) -> date:
    """
    Next deadline for a recurring follow-up, counted from today.
    daily: +1 day; weekly: next `weekday` (Sunday=0) or +7 days; monthly: +1 month; custom: +days.
    """
    if recurring not in RECURRING_KINDS:
        raise ValueError(f"recurring must be one of {sorted(RECURRING_KINDS)}")
    if recurring == "daily":
        return today + timedelta(days=1)
    if recurring == "weekly":
        if weekday is None:
            return today + timedelta(days=7)
        if not 0 <= weekday <= 6:
            raise ValueError("recurringWeekday must be 0-6 (Sunday=0)")
        return next_weekday(today, weekday)
    if recurring == "monthly":
        return add_months(today, 1)
    if days is None or days < 1:
        raise ValueError("custom recurrence requires a positive number of days")
    return today + timedelta(days=days)


def resolve_preset(preset: str, today: date) -> date | None:
    """One-off next-deadline presets offered after completion: tomorrow, +1 week, +1 month."""
    raw = (preset or "").strip().lower()
    if raw == "tomorrow":
        return today + timedelta(days=1)
    if raw in ("next week", "week"):
        return today + timedelta(days=7)
    if raw in ("next month", "month"):
        return add_months(today, 1)
    return date_only(raw)


def format_deadline(deadline: date | str | None, today: date) -> str:
    """Format a deadline for display: '🔴 本日 6/3(月)', '⚠️ 期限切れ 6/1(土)' or '6/5(水)'."""
    d = date_only(deadline)
    if d is None:
        return str(deadline or "")
    formatted = f"{d.month}/{d.day}({_WEEKDAYS_JA[d.weekday()]})"
    if d == today:
        return f"🔴 本日 {formatted}"
    if d < today:
        return f"⚠️ 期限切れ {formatted}"
    return formatted


def format_datetime_info(iso_datetime: str | None, tz_name: str = "UTC") -> str:
    """
    Format an ISO timestamp as "yyyy/m/d h:mm" in the given timezone (CSV and detail views).
    Accepts "YYYY-MM-DD", "YYYY-MM-DDTHH:MM:SS", "...Z" or an explicit offset.
    """
    if not iso_datetime or not str(iso_datetime).strip():
        return ""
    raw = str(iso_datetime).strip()
    try:
        tz = ZoneInfo((tz_name or "").strip() or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        tz = ZoneInfo("UTC")
    try:
        if "T" in raw:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            dt = dt.astimezone(tz) if dt.tzinfo else dt.replace(tzinfo=tz)
        else:
            dt = datetime.combine(date.fromisoformat(raw[:10]), datetime.min.time(), tzinfo=tz)
    except ValueError:
        return raw
    return f"{dt.year}/{dt.month}/{dt.day} {dt.hour}:{dt.minute:02d}"

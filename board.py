"""Kanban lanes for pending records and the deadline change a lane drop implies."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Literal

from models import Contact
from projection import ViewState, project

Lane = Literal["overdue", "today", "future"]
LANES: tuple[str, ...] = ("overdue", "today", "future")


def lane_of(contact: Contact, today: date) -> str | None:
    """Lane a pending record belongs to; None for completed records."""
    if contact.status != "pending":
        return None
    if contact.is_overdue or contact.deadline < today:
        return "overdue"
    if contact.deadline == today:
        return "today"
    return "future"


def lanes(contacts: list[Contact], today: date) -> dict[str, list[Contact]]:
    """Pending records grouped by lane, each lane in auto order."""
    out: dict[str, list[Contact]] = {lane: [] for lane in LANES}
    for contact in project(contacts, ViewState(sort_mode="auto"), today):
        lane = lane_of(contact, today)
        if lane is not None:
            out[lane].append(contact)
    return out


def drop(contact: Contact, lane: str, today: date) -> Contact:
    """
    Record after being dropped on lane. today -> deadline today; future -> deadline tomorrow;
    both clear the overdue pin. overdue -> unchanged (a past date is never set this way).
    """
    if lane not in LANES:
        raise ValueError(f"lane must be one of {list(LANES)}")
    if lane == "overdue":
        return contact
    deadline = today if lane == "today" else today + timedelta(days=1)
    return contact.with_changes(deadline=deadline, is_overdue=False, original_deadline=None)

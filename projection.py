"""
View projection: the filtered, sorted subset of the canonical list that a page renders,
manual ordering helpers, and CSV export of a projection.
"""
from __future__ import annotations

import csv
import io
from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

from date_utils import format_datetime_info
from models import Contact

SortMode = Literal["auto", "manual", "created", "priority"]
SORT_MODES: tuple[str, ...] = ("auto", "manual", "created", "priority")
ALL_CATEGORIES = "all"

CSV_HEADERS = ["名前", "連絡目的", "期日", "元の期日", "ステータス", "カテゴリ", "優先度", "定期", "作成日時", "完了日時"]
_STATUS_LABELS = {"pending": "未完了", "completed": "完了"}
_RECURRING_LABELS = {"daily": "毎日", "weekly": "毎週", "monthly": "毎月"}


class ViewState(BaseModel):
    """Active filters and sort mode for one view."""

    category: str = Field(default=ALL_CATEGORIES)
    search: str = Field(default="")
    sort_mode: SortMode = Field(default="auto")


def _manual_order(contacts: list[Contact]) -> list[Contact]:
    """Records with an order first (ascending), then the rest in canonical order."""
    ordered = sorted((c for c in contacts if c.order is not None), key=lambda c: c.order)
    unordered = [c for c in contacts if c.order is None]
    return ordered + unordered


def _matches(contact: Contact, category: str, needle: str) -> bool:
    if category and category != ALL_CATEGORIES and contact.category_key != category:
        return False
    if needle and needle not in contact.name.lower() and needle not in contact.purpose.lower():
        return False
    return True


def project(contacts: list[Contact], view: ViewState, today: date) -> list[Contact]:
    """Filter and sort for display. Pure: neither the list nor any record is modified."""
    base = _manual_order(contacts) if view.sort_mode == "manual" else list(contacts)
    needle = view.search.strip().lower()
    out = [c for c in base if _matches(c, view.category, needle)]
    if view.sort_mode == "created":
        out.sort(key=lambda c: c.created_at, reverse=True)
    elif view.sort_mode == "priority":
        out.sort(key=lambda c: (c.priority_rank, c.sort_date))
    elif view.sort_mode == "auto":
        out.sort(key=lambda c: (c.status == "completed", c.deadline != today, c.sort_date))
    return out


def assign_manual_order(contacts: list[Contact], ordered_ids: list[str]) -> list[Contact]:
    """
    Dense 0-based order over the whole working set: ids in ordered_ids first, in that order,
    then every other record in its current manual position. Returns new records.
    """
    by_id = {c.id: c for c in contacts}
    head = [by_id[i] for i in dict.fromkeys(ordered_ids) if i in by_id]
    seen = {c.id for c in head}
    tail = [c for c in _manual_order(contacts) if c.id not in seen]
    ranked = {c.id: rank for rank, c in enumerate(head + tail)}
    return [c if c.order == ranked[c.id] else c.with_changes(order=ranked[c.id]) for c in contacts]


def move_record(contacts: list[Contact], contact_id: str, offset: int) -> list[Contact]:
    """Move one record up (negative offset) or down in manual order; clamps at both ends."""
    current = [c.id for c in _manual_order(contacts)]
    if contact_id not in current:
        return list(contacts)
    index = current.index(contact_id)
    target = max(0, min(len(current) - 1, index + offset))
    current.insert(target, current.pop(index))
    return assign_manual_order(contacts, current)


def to_csv(contacts: list[Contact], tz_name: str = "UTC") -> str:
    """CSV text of a projection with Japanese headers; recurring custom intervals spelled out."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADERS)
    for c in contacts:
        if c.recurring == "custom":
            recurring = f"{c.recurring_days}日ごと" if c.recurring_days else "カスタム"
        else:
            recurring = _RECURRING_LABELS.get(c.recurring or "", "")
        writer.writerow([
            c.name,
            c.purpose,
            c.deadline.isoformat(),
            c.original_deadline.isoformat() if c.original_deadline else "",
            _STATUS_LABELS[c.status],
            c.category.label,
            c.priority,
            recurring,
            format_datetime_info(c.created_at, tz_name),
            format_datetime_info(c.completed_at, tz_name),
        ])
    return output.getvalue()

"""
Contact record model. Every default (priority C, category customer, empty timestamps)
is applied here while parsing, so the rest of the code never checks for missing fields.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

from date_utils import RECURRING_KINDS, date_only

Priority = Literal["A", "B", "C"]
Status = Literal["pending", "completed"]
Recurring = Literal["daily", "weekly", "monthly", "custom"]

PRIORITIES: tuple[str, ...] = ("A", "B", "C")
PRIORITY_RANK = {"A": 1, "B": 2, "C": 3}
DEFAULT_PRIORITY = "C"

STANDARD_CATEGORIES: tuple[str, ...] = ("advisor", "agency", "customer", "other")
DEFAULT_CATEGORY = "customer"

CATEGORY_LABELS = {
    "advisor": "顧問",
    "agency": "代理店",
    "customer": "顧客",
    "other": "その他",
}

_STANDARD_ICONS = {
    "advisor": "👔",
    "agency": "🏢",
    "customer": "👤",
    "other": "📌",
}

# First matching keyword wins; matched case-insensitively against the custom name
_CUSTOM_ICON_KEYWORDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("税", "tax", "会計", "account"), "🧾"),
    (("銀行", "bank", "融資", "loan"), "🏦"),
    (("保険", "insurance"), "🛡️"),
    (("病院", "clinic", "hospital", "医"), "🏥"),
    (("学校", "school", "塾"), "🏫"),
    (("家族", "family", "親"), "👪"),
    (("友人", "friend"), "🤝"),
    (("不動産", "estate", "物件"), "🏠"),
)
_CUSTOM_ICON_DEFAULT = "🏷️"


class StandardCategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["standard"] = "standard"
    value: Literal["advisor", "agency", "customer", "other"]

    @property
    def key(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self.value]


class CustomCategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["custom"] = "custom"
    name: str

    @property
    def key(self) -> str:
        return self.name

    @property
    def label(self) -> str:
        return self.name


Category = Union[StandardCategory, CustomCategory]


def parse_category(raw: Any) -> Category:
    """Standard value, custom name, or the customer default for blank input."""
    if isinstance(raw, (StandardCategory, CustomCategory)):
        return raw
    if isinstance(raw, Mapping):
        raw = raw.get("value") or raw.get("name")
    text = str(raw or "").strip()
    if not text:
        return StandardCategory(value=DEFAULT_CATEGORY)
    if text in STANDARD_CATEGORIES:
        return StandardCategory(value=text)
    return CustomCategory(name=text)


def category_icon(category: Category | str | None) -> str:
    """Display icon. Standard categories have fixed icons; custom names match keywords."""
    cat = parse_category(category)
    if isinstance(cat, StandardCategory):
        return _STANDARD_ICONS[cat.value]
    lowered = cat.name.lower()
    for keywords, icon in _CUSTOM_ICON_KEYWORDS:
        if any(k in lowered for k in keywords):
            return icon
    return _CUSTOM_ICON_DEFAULT


class Contact(BaseModel):
    """
    One deadline record. Local-store and API documents use camelCase
    (recurringDays, createdAt, isOverdue, ...); database rows use the snake_case field names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    purpose: str
    deadline: date
    status: Status = "pending"
    category: Category = Field(default_factory=lambda: StandardCategory(value=DEFAULT_CATEGORY))
    priority: Priority = DEFAULT_PRIORITY
    recurring: Recurring | None = None
    recurring_days: int | None = None
    recurring_weekday: int | None = None
    order: int | None = None
    created_at: str = ""
    completed_at: str | None = None
    is_overdue: bool = False
    original_deadline: date | None = None
    user_id: str | None = Field(default=None, alias="user_id")

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("name", "purpose", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("deadline", mode="before")
    @classmethod
    def _deadline(cls, v: Any) -> date:
        d = date_only(v)
        if d is None:
            raise ValueError(f"deadline must be an ISO date, got {v!r}")
        return d

    @field_validator("original_deadline", mode="before")
    @classmethod
    def _original_deadline(cls, v: Any) -> date | None:
        return date_only(v)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v: Any) -> str:
        return "completed" if str(v or "").strip() == "completed" else "pending"

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v: Any) -> Category:
        return parse_category(v)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, v: Any) -> str:
        p = str(v or "").strip().upper()
        return p if p in PRIORITY_RANK else DEFAULT_PRIORITY

    @field_validator("recurring", mode="before")
    @classmethod
    def _recurring(cls, v: Any) -> str | None:
        r = str(v or "").strip().lower()
        return r if r in RECURRING_KINDS else None

    @field_validator("recurring_days", "recurring_weekday", "order", mode="before")
    @classmethod
    def _optional_int(cls, v: Any) -> int | None:
        if v is None or v == "":
            return None
        return int(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def _created_at(cls, v: Any) -> str:
        return str(v or "")

    @field_validator("completed_at", "user_id", mode="before")
    @classmethod
    def _blank_is_none(cls, v: Any) -> str | None:
        return str(v) if v else None

    @model_validator(mode="after")
    def _invariants(self) -> "Contact":
        if self.status == "pending":
            self.completed_at = None
        else:
            self.is_overdue = False
        if self.recurring != "custom" or (self.recurring_days is not None and self.recurring_days < 1):
            self.recurring_days = None
        if self.recurring != "weekly" or (self.recurring_weekday is not None and not 0 <= self.recurring_weekday <= 6):
            self.recurring_weekday = None
        if self.is_overdue and self.original_deadline is None:
            self.is_overdue = False
        return self

    @field_serializer("category")
    def _serialize_category(self, category: Category) -> str:
        return category.key

    # --- derived values ---

    @property
    def category_key(self) -> str:
        return self.category.key

    @property
    def priority_rank(self) -> int:
        return PRIORITY_RANK[self.priority]

    @property
    def sort_date(self) -> date:
        """Overdue records sort by when they were originally due, not by the pinned deadline."""
        if self.is_overdue and self.original_deadline is not None:
            return self.original_deadline
        return self.deadline

    def with_changes(self, **changes: Any) -> "Contact":
        """Copy with fields replaced; the copy is re-validated so the invariants hold."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    # --- conversions ---

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Contact":
        return cls.model_validate(dict(row))

    @classmethod
    def from_local(cls, data: Mapping[str, Any]) -> "Contact":
        return cls.model_validate(dict(data))

    def to_row(self) -> dict[str, Any]:
        """Snake_case column dict for the contacts table."""
        return self.model_dump(mode="json")

    def to_local(self) -> dict[str, Any]:
        """camelCase document for the local store (absent fields omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_api(self) -> dict[str, Any]:
        out = self.model_dump(mode="json", by_alias=True)
        out["categoryIcon"] = category_icon(self.category)
        return out


# Columns that carry persisted state; compared to decide whether a write is needed.
PERSISTED_FIELDS: tuple[str, ...] = (
    "name",
    "purpose",
    "deadline",
    "status",
    "category",
    "priority",
    "recurring",
    "recurring_days",
    "recurring_weekday",
    "order",
    "completed_at",
    "is_overdue",
    "original_deadline",
)


def persisted_patch(before: Contact, after: Contact) -> dict[str, Any]:
    """Snake_case fields whose persisted value differs between two versions of one record."""
    old = before.to_row()
    new = after.to_row()
    return {k: new[k] for k in PERSISTED_FIELDS if old.get(k) != new.get(k)}

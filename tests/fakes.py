# tests/fakes.py

from __future__ import annotations

from datetime import date
from typing import Any, Iterable

from pydantic import ValidationError

from models import PERSISTED_FIELDS, Contact


class FakeContactsApi:
    """
    In-memory stand-in for ContactsApi.

    - Same sentinel contract: [] / None / False instead of exceptions
    - `fail_updates` holds ids whose update() reports failure
    - Captures every update patch for assertions
    """

    def __init__(self, contacts: Iterable[Contact] = ()) -> None:
        self.rows: dict[str, Contact] = {c.id: c for c in contacts}
        self.fail_updates: set[str] = set()
        self.fail_creates = False
        self.fail_queries = False
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self._next_id = 1

    def list_all(self, user_id: str | None = None, *, ownerless: bool = False) -> list[Contact]:
        rows = list(self.rows.values())
        if ownerless:
            rows = [c for c in rows if c.user_id is None]
        elif user_id is not None:
            rows = [c for c in rows if c.user_id == user_id]
        return sorted(rows, key=lambda c: (c.deadline, c.created_at))

    def get(self, contact_id: str) -> Contact | None:
        return self.rows.get(contact_id)

    def create(self, fields: dict[str, Any]) -> Contact | None:
        if self.fail_creates:
            return None
        data = dict(fields)
        data["id"] = f"db-{self._next_id}"
        data["created_at"] = data.get("created_at") or f"2024-01-01T00:00:{self._next_id:02d}.000000Z"
        self._next_id += 1
        try:
            contact = Contact.model_validate(data)
        except ValidationError:
            return None
        self.rows[contact.id] = contact
        return contact

    def update(self, contact_id: str, patch: dict[str, Any]) -> Contact | None:
        self.updates.append((contact_id, dict(patch)))
        if contact_id in self.fail_updates or contact_id not in self.rows:
            return None
        if set(patch) - set(PERSISTED_FIELDS) - {"user_id"}:
            return None
        updated = self.rows[contact_id].with_changes(**patch)
        self.rows[contact_id] = updated
        return updated

    def delete(self, contact_id: str) -> bool:
        return self.rows.pop(contact_id, None) is not None

    def list_due(self, day: date, priorities: Iterable[str]) -> list[Contact] | None:
        if self.fail_queries:
            return None
        wanted = set(priorities)
        due = [c for c in self.rows.values() if c.deadline == day and c.status == "pending" and c.priority in wanted]
        return sorted(due, key=lambda c: c.name)


def make_contact(contact_id: str, deadline: str, **fields: Any) -> Contact:
    """Contact with sensible defaults for tests."""
    data: dict[str, Any] = {
        "id": contact_id,
        "name": f"name-{contact_id}",
        "purpose": f"purpose-{contact_id}",
        "deadline": deadline,
        "created_at": f"2024-01-01T00:00:{int(contact_id) % 60 if contact_id.isdigit() else 0:02d}.000000Z",
    }
    data.update(fields)
    return Contact.model_validate(data)

"""
Load-time reconciliation: overdue pinning and the one-time local -> backend migration.

Overdue pinning rewrites a past-due pending record's deadline to today and keeps the
true due date in original_deadline. It runs on every load, so it has to be idempotent:
original_deadline is written once and never overwritten.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from contacts_api import ContactsApi
from local_store import LocalStore
from models import Contact, persisted_patch

logger = logging.getLogger(__name__)

MIGRATION_MESSAGE = "ローカルに保存されていた{count}件のデータをアカウントに移行しました"

# Fields carried from a local record into the backend; renaming to snake_case happens in to_row()
_MIGRATED_FIELDS: tuple[str, ...] = (
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


def pin_overdue(contact: Contact, today: date) -> Contact:
    """Pinned copy of one record, or the record itself when nothing applies."""
    if contact.status != "pending":
        return contact
    if not (contact.is_overdue or contact.original_deadline is not None or contact.deadline < today):
        return contact
    original = contact.original_deadline or contact.deadline
    if original >= today:
        # Deadline was moved to today or later since it was pinned
        return contact.with_changes(is_overdue=False, original_deadline=None)
    if contact.is_overdue and contact.deadline == today and contact.original_deadline == original:
        return contact
    return contact.with_changes(deadline=today, is_overdue=True, original_deadline=original)


def reconcile_overdue(contacts: list[Contact], today: date) -> list[Contact]:
    """Apply overdue pinning to every record; the input list and records are left untouched."""
    return [pin_overdue(c, today) for c in contacts]


def changed_records(before: list[Contact], after: list[Contact]) -> list[tuple[Contact, dict[str, Any]]]:
    """(record, patch) for every record whose persisted fields differ; lists are matched by id."""
    previous = {c.id: c for c in before}
    out: list[tuple[Contact, dict[str, Any]]] = []
    for contact in after:
        old = previous.get(contact.id)
        if old is None:
            continue
        patch = persisted_patch(old, contact)
        if patch:
            out.append((contact, patch))
    return out


@dataclass
class LoadResult:
    contacts: list[Contact]
    migrated: int = 0
    assigned: int = 0
    message: str | None = None
    written: list[str] = field(default_factory=list)


def _migrate_local(api: ContactsApi, local: LocalStore, user_id: str) -> tuple[int, str | None]:
    """Copy local records to the user's account. Records that could not be created stay local."""
    local_contacts = local.load_contacts()
    if not local_contacts:
        return 0, None
    created = 0
    failed: list[Contact] = []
    for contact in local_contacts:
        row = contact.to_row()
        fields = {k: row[k] for k in _MIGRATED_FIELDS}
        fields["created_at"] = row["created_at"] or None
        fields["user_id"] = user_id
        if api.create(fields) is not None:
            created += 1
        else:
            logger.warning("Migration: could not create %r for user %s", contact.name, user_id)
            failed.append(contact)
    local.clear_contacts()
    if failed:
        local.save_contacts(failed)
    logger.info("Migrated %d/%d local contacts for user %s", created, len(local_contacts), user_id)
    return created, (MIGRATION_MESSAGE.format(count=created) if created else None)


def load_for_user(api: ContactsApi, local: LocalStore, user_id: str, today: date) -> LoadResult:
    """
    Fetch the user's records, adopting legacy ownerless rows or migrating the local store first,
    then pin overdue records and write back only the records that changed.
    """
    owned = api.list_all(user_id)
    ownerless = api.list_all(ownerless=True)
    result = LoadResult(contacts=owned)

    if ownerless:
        for contact in ownerless:
            if api.update(contact.id, {"user_id": user_id}) is not None:
                result.assigned += 1
        logger.info("Assigned %d ownerless contacts to user %s", result.assigned, user_id)
        owned = api.list_all(user_id)
    elif not owned:
        result.migrated, result.message = _migrate_local(api, local, user_id)
        if result.migrated:
            owned = api.list_all(user_id)

    pinned = reconcile_overdue(owned, today)
    for contact, patch in changed_records(owned, pinned):
        if api.update(contact.id, patch) is not None:
            result.written.append(contact.id)
    result.contacts = pinned
    return result


def load_local(local: LocalStore, today: date) -> LoadResult:
    """No-login load: read the local store, pin overdue records, save back if anything changed."""
    contacts = local.load_contacts()
    pinned = reconcile_overdue(contacts, today)
    changed = changed_records(contacts, pinned)
    if changed:
        local.save_contacts(pinned)
    return LoadResult(contacts=pinned, written=[c.id for c, _ in changed])

"""
Contact service: the canonical in-memory list for one user (or for the no-login store)
and every mutation on it. Each mutation writes through to the backend record by record,
or saves the whole list when running on the local store.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

from board import drop as drop_on_lane
from board import lanes
from contacts_api import ContactsApi
from date_utils import Clock, date_only, next_recurring_deadline, resolve_preset
from history import UndoHistory
from local_store import LocalStore
from models import PRIORITIES, Contact, CustomCategory, parse_category, persisted_patch
from projection import ViewState, assign_manual_order, move_record, project, to_csv
from reconcile import LoadResult, changed_records, load_for_user, load_local, pin_overdue, reconcile_overdue

logger = logging.getLogger("contact_service")

REQUIRED_FIELDS_MESSAGE = "名前、連絡目的、期日をすべて入力してください"

_EDITABLE_FIELDS = frozenset({"name", "purpose", "deadline", "category", "priority"})


@dataclass
class BulkResult:
    """Per-record outcome of an operation that writes several records without a transaction."""

    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "succeeded": self.succeeded, "failed": self.failed}


class ContactService:
    """Canonical list plus selection and undo history for one user session."""

    def __init__(
        self,
        *,
        clock: Clock,
        local: LocalStore,
        api: ContactsApi | None = None,
        user_id: str | None = None,
        history_limit: int = 50,
    ) -> None:
        if api is not None and not user_id:
            raise ValueError("user_id is required when using the database backend")
        self.api = api
        self.local = local
        self.clock = clock
        self.user_id = user_id
        self.contacts: list[Contact] = []
        self.selection: set[str] = set()
        self.history = UndoHistory(history_limit)
        self.lock = threading.RLock()
        self.loaded = False
        self.loaded_on: date | None = None

    @property
    def use_database(self) -> bool:
        return self.api is not None

    def today(self) -> date:
        return self.clock.today()

    # --- loading ---

    def load(self) -> LoadResult:
        """(Re)load from the store, running migration and overdue pinning."""
        if self.api is not None:
            result = load_for_user(self.api, self.local, self.user_id or "", self.today())
        else:
            result = load_local(self.local, self.today())
        self.contacts = result.contacts
        self.selection &= {c.id for c in self.contacts}
        self.loaded = True
        self.loaded_on = self.today()
        logger.info(
            "Loaded %d contacts (user=%s migrated=%d assigned=%d)",
            len(self.contacts), self.user_id, result.migrated, result.assigned,
        )
        return result

    @property
    def stale(self) -> bool:
        """Never loaded, or loaded on an earlier day (overdue pins are out of date)."""
        return not self.loaded or self.loaded_on != self.today()

    def ensure_loaded(self) -> LoadResult | None:
        return self.load() if self.stale else None

    def get(self, contact_id: str) -> Contact | None:
        return next((c for c in self.contacts if c.id == contact_id), None)

    # --- persistence helpers ---

    def _save_local(self) -> bool:
        try:
            self.local.save_contacts(self.contacts)
        except OSError as e:
            logger.error("Could not save local store %s: %s", self.local.path, e)
            return False
        return True

    def _replace(self, updated: Contact) -> None:
        self.contacts = [updated if c.id == updated.id else c for c in self.contacts]

    def _write_one(self, before: Contact, after: Contact) -> Contact | None:
        """Persist one record's change; returns the stored record or None if the write failed."""
        patch = persisted_patch(before, after)
        if not patch:
            return after
        if self.api is not None:
            stored = self.api.update(after.id, patch)
            if stored is None:
                return None
            self._replace(stored)
            return stored
        self._replace(after)
        return after if self._save_local() else None

    def _commit(self, before: list[Contact], after: list[Contact]) -> BulkResult:
        """
        Make `after` the canonical list, writing each changed record individually.
        Records whose write fails keep their `before` version.
        """
        result = BulkResult()
        changes = changed_records(before, after)
        if self.api is None:
            self.contacts = after
            if not changes:
                return result
            ids = [c.id for c, _ in changes]
            if self._save_local():
                result.succeeded = ids
            else:
                result.failed = ids
            return result
        previous = {c.id: c for c in before}
        reverted: dict[str, Contact] = {}
        for contact, patch in changes:
            if self.api.update(contact.id, patch) is not None:
                result.succeeded.append(contact.id)
            else:
                result.failed.append(contact.id)
                reverted[contact.id] = previous[contact.id]
        self.contacts = [reverted.get(c.id, c) for c in after]
        if result.failed:
            logger.warning("Partial write: %d ok, %d failed (%s)", len(result.succeeded), len(result.failed), result.failed)
        return result

    # --- views ---

    def view(self, view: ViewState | None = None) -> list[Contact]:
        return project(self.contacts, view or ViewState(), self.today())

    def board(self) -> dict[str, list[Contact]]:
        return lanes(self.contacts, self.today())

    def due_today(self) -> list[Contact]:
        """Pending records due today (pinned overdue records included); what the notifier reads."""
        today = self.today()
        return [c for c in self.view() if c.status == "pending" and c.deadline == today]

    def export_csv(self, view: ViewState | None = None, tz_name: str = "UTC") -> str:
        return to_csv(self.view(view), tz_name)

    def custom_categories(self) -> list[str]:
        """Remembered custom category names plus any found on records, first-seen order."""
        names = list(self.local.load_custom_categories())
        for contact in self.contacts:
            if isinstance(contact.category, CustomCategory) and contact.category.name not in names:
                names.append(contact.category.name)
        return names

    # --- single-record mutations ---

    def add(
        self,
        name: str,
        purpose: str,
        deadline: str | date | None,
        *,
        category: str | None = None,
        priority: str | None = None,
    ) -> Contact | None:
        """Create a pending record. Raises ValueError when a required field is missing."""
        name = (name or "").strip()
        purpose = (purpose or "").strip()
        due = date_only(deadline)
        if not name or not purpose or due is None:
            raise ValueError(REQUIRED_FIELDS_MESSAGE)
        if priority is not None and str(priority).strip():
            priority = str(priority).strip().upper()
            if priority not in PRIORITIES:
                raise ValueError(f"priority must be one of {list(PRIORITIES)}")
        else:
            priority = None
        cat = parse_category(category)
        fields: dict[str, Any] = {
            "name": name,
            "purpose": purpose,
            "deadline": due,
            "status": "pending",
            "category": cat,
            "priority": priority,
        }
        if self.api is not None:
            fields["user_id"] = self.user_id
            stored = self.api.create(fields)
            if stored is None:
                return None
            self.contacts = [*self.contacts, stored]
            created = pin_overdue(stored, self.today())
            if created is not stored:
                created = self._write_one(stored, created) or stored
        else:
            created = Contact.model_validate({**fields, "id": self._local_id(), "created_at": self.clock.now_iso()})
            created = pin_overdue(created, self.today())
            self.contacts = [*self.contacts, created]
            if not self._save_local():
                self.contacts = self.contacts[:-1]
                return None
        if isinstance(cat, CustomCategory):
            self.local.add_custom_category(cat.name)
        return created

    def _local_id(self) -> str:
        """Millisecond timestamp id, bumped past any collision."""
        candidate = int(datetime.now(timezone.utc).timestamp() * 1000)
        taken = {c.id for c in self.contacts}
        while str(candidate) in taken:
            candidate += 1
        return str(candidate)

    def edit(self, contact_id: str, **changes: Any) -> Contact | None:
        """Update name/purpose/deadline/category/priority. A new deadline drops the overdue pin."""
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"cannot edit {sorted(unknown)}")
        current = self.get(contact_id)
        if current is None:
            return None
        updates: dict[str, Any] = {}
        for key in ("name", "purpose"):
            if key in changes:
                value = (changes[key] or "").strip()
                if not value:
                    raise ValueError(REQUIRED_FIELDS_MESSAGE)
                updates[key] = value
        if "deadline" in changes:
            due = date_only(changes["deadline"])
            if due is None:
                raise ValueError(REQUIRED_FIELDS_MESSAGE)
            updates.update(deadline=due, is_overdue=False, original_deadline=None)
        if "category" in changes:
            updates["category"] = parse_category(changes["category"])
        if "priority" in changes:
            priority = str(changes["priority"] or "").upper()
            if priority not in PRIORITIES:
                raise ValueError(f"priority must be one of {list(PRIORITIES)}")
            updates["priority"] = priority
        updated = pin_overdue(current.with_changes(**updates), self.today())
        stored = self._write_one(current, updated)
        if stored is not None and isinstance(updated.category, CustomCategory):
            self.local.add_custom_category(updated.category.name)
        return stored

    def toggle_complete(self, contact_id: str) -> Contact | None:
        """pending <-> completed. Undoable."""
        current = self.get(contact_id)
        if current is None:
            return None
        before = self.contacts
        if current.status == "pending":
            updated = current.with_changes(status="completed", completed_at=self.clock.now_iso())
        else:
            updated = pin_overdue(current.with_changes(status="pending", completed_at=None), self.today())
        stored = self._write_one(current, updated)
        if stored is not None:
            self.history.checkpoint(before)
        return stored

    def cancel_completion(self, contact_id: str) -> Contact | None:
        """Back to pending from the post-completion panel. Not undoable."""
        current = self.get(contact_id)
        if current is None:
            return None
        if current.status == "pending":
            return current
        updated = pin_overdue(current.with_changes(status="pending", completed_at=None), self.today())
        return self._write_one(current, updated)

    def schedule_next(
        self,
        contact_id: str,
        *,
        recurring: str | None = None,
        next_deadline: str | date | None = None,
        days: int | None = None,
        weekday: int | None = None,
    ) -> Contact | None:
        """
        Reschedule after completion: a recurring cadence (daily/weekly/monthly/custom) or a one-off
        date/preset. Resets the record to pending. Not undoable.
        """
        current = self.get(contact_id)
        if current is None:
            return None
        today = self.today()
        if recurring:
            due = next_recurring_deadline(recurring, today, days=days, weekday=weekday)
        elif next_deadline:
            due = resolve_preset(next_deadline, today) if isinstance(next_deadline, str) else next_deadline
            if due is None:
                raise ValueError(f"unrecognised next deadline {next_deadline!r}")
        else:
            raise ValueError("either recurring or next_deadline is required")
        updated = current.with_changes(
            deadline=due,
            status="pending",
            completed_at=None,
            is_overdue=False,
            original_deadline=None,
            recurring=recurring or None,
            recurring_days=days if recurring == "custom" else None,
            recurring_weekday=weekday if recurring == "weekly" else None,
        )
        return self._write_one(current, pin_overdue(updated, today))

    def delete(self, contact_id: str) -> bool:
        """Immediate and not undoable."""
        if self.get(contact_id) is None:
            return False
        if self.api is not None and not self.api.delete(contact_id):
            return False
        self.contacts = [c for c in self.contacts if c.id != contact_id]
        self.selection.discard(contact_id)
        if self.api is None:
            return self._save_local()
        return True

    def drop(self, contact_id: str, lane: str) -> Contact | None:
        """Lane drop, then overdue pinning over the whole list."""
        current = self.get(contact_id)
        if current is None:
            return None
        moved = drop_on_lane(current, lane, self.today())
        if moved is current:
            return current
        before = self.contacts
        after = reconcile_overdue([moved if c.id == contact_id else c for c in before], self.today())
        self._commit(before, after)
        return self.get(contact_id)

    # --- manual order ---

    def reorder(self, ordered_ids: list[str]) -> BulkResult:
        return self._commit(self.contacts, assign_manual_order(self.contacts, ordered_ids))

    def move(self, contact_id: str, offset: int) -> BulkResult:
        return self._commit(self.contacts, move_record(self.contacts, contact_id, offset))

    # --- selection & bulk ---

    def select(self, contact_ids: list[str]) -> set[str]:
        known = {c.id for c in self.contacts}
        self.selection |= {i for i in contact_ids if i in known}
        return self.selection

    def deselect(self, contact_ids: list[str]) -> set[str]:
        self.selection -= set(contact_ids)
        return self.selection

    def select_all(self, view: ViewState | None = None) -> set[str]:
        self.selection = {c.id for c in self.view(view)}
        return self.selection

    def clear_selection(self) -> None:
        self.selection = set()

    def bulk_set_priority(self, priority: str) -> BulkResult:
        """Set priority on every selected record, one write each; clears the selection. Undoable."""
        priority = str(priority or "").upper()
        if priority not in PRIORITIES:
            raise ValueError(f"priority must be one of {list(PRIORITIES)}")
        selected = {c.id for c in self.contacts if c.id in self.selection}
        if not selected:
            raise ValueError("優先度を変更する項目を選択してください")
        self.history.checkpoint(self.contacts)
        before = self.contacts
        after = [c.with_changes(priority=priority) if c.id in selected else c for c in before]
        result = self._commit(before, after)
        # Records already at this priority need no write but still count as done
        result.succeeded.extend(sorted(selected - set(result.succeeded) - set(result.failed)))
        self.clear_selection()
        return result

    def overdue_records(self) -> list[Contact]:
        return [c for c in self.contacts if c.status == "pending" and c.is_overdue]

    def bulk_overdue_to_today(self, confirm: bool) -> BulkResult:
        """Move every overdue record to today and drop its pin, one write each. Undoable."""
        targets = {c.id for c in self.overdue_records()}
        if not targets:
            return BulkResult()
        if not confirm:
            raise ValueError(f"期限切れの{len(targets)}件を本日に変更するには確認が必要です")
        self.history.checkpoint(self.contacts)
        today = self.today()
        before = self.contacts
        after = [
            c.with_changes(deadline=today, is_overdue=False, original_deadline=None) if c.id in targets else c
            for c in before
        ]
        return self._commit(before, after)

    # --- undo / redo ---

    def _restore(self, snapshot: list[Contact]) -> BulkResult:
        """Snapshot versions of records that still exist; records created since stay as they are."""
        restored = {c.id: c for c in snapshot}
        after = [restored.get(c.id, c) for c in self.contacts]
        return self._commit(self.contacts, after)

    def undo(self) -> BulkResult | None:
        snapshot = self.history.undo(self.contacts)
        return None if snapshot is None else self._restore(snapshot)

    def redo(self) -> BulkResult | None:
        snapshot = self.history.redo(self.contacts)
        return None if snapshot is None else self._restore(snapshot)

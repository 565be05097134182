"""
Record store client: list / create / update / delete for the contacts table.
Callers never see exceptions from here; failures are logged and come back as [] / None / False.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError
from ulid import ULID

from database import get_connection, init_database
from models import PERSISTED_FIELDS, Contact

logger = logging.getLogger("contacts_api")

_WRITABLE_FIELDS = frozenset(PERSISTED_FIELDS) | {"user_id"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _new_contact_id() -> str:
    return str(ULID())


def _quote(column: str) -> str:
    return f'"{column}"'


def _rows_to_contacts(rows: Iterable[sqlite3.Row]) -> list[Contact]:
    out: list[Contact] = []
    for row in rows:
        try:
            out.append(Contact.from_row(row))
        except ValidationError as e:
            logger.warning("Skipping unreadable contact row %s: %s", row["id"], e)
    return out


class ContactsApi:
    """Thin CRUD client over the contacts table. Each call opens its own connection."""

    def __init__(self, db_path: str | Path | None = None) -> None:
        self.db_path = init_database(Path(db_path) if db_path else None)

    def _connect(self) -> sqlite3.Connection:
        return get_connection(self.db_path)

    def list_all(self, user_id: str | None = None, *, ownerless: bool = False) -> list[Contact]:
        """All contacts ordered by deadline. ownerless=True returns only legacy rows (user_id IS NULL)."""
        sql = "SELECT * FROM contacts"
        params: list[Any] = []
        if ownerless:
            sql += " WHERE user_id IS NULL"
        elif user_id is not None:
            sql += " WHERE user_id = ?"
            params.append(user_id)
        sql += " ORDER BY deadline ASC, created_at ASC"
        try:
            conn = self._connect()
            try:
                rows = conn.execute(sql, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error:
            logger.exception("Error fetching contacts (user_id=%s ownerless=%s)", user_id, ownerless)
            return []
        return _rows_to_contacts(rows)

    def get(self, contact_id: str) -> Contact | None:
        try:
            conn = self._connect()
            try:
                row = conn.execute("SELECT * FROM contacts WHERE id = ?", (contact_id,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error:
            logger.exception("Error fetching contact %s", contact_id)
            return None
        if not row:
            return None
        contacts = _rows_to_contacts([row])
        return contacts[0] if contacts else None

    def create(self, fields: dict[str, Any]) -> Contact | None:
        """Insert a new contact. id and created_at are assigned here unless fields carries created_at."""
        data = dict(fields)
        data["id"] = _new_contact_id()
        data["created_at"] = data.get("created_at") or _now_iso()
        try:
            contact = Contact.model_validate(data)
        except ValidationError as e:
            logger.error("Error creating contact: invalid fields: %s", e)
            return None
        row = contact.to_row()
        columns = list(row.keys())
        sql = "INSERT INTO contacts ({}) VALUES ({})".format(
            ", ".join(_quote(c) for c in columns),
            ", ".join("?" for _ in columns),
        )
        try:
            conn = self._connect()
            try:
                conn.execute(sql, [row[c] for c in columns])
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error:
            logger.exception("Error creating contact %r", contact.name)
            return None
        return contact

    def update(self, contact_id: str, patch: dict[str, Any]) -> Contact | None:
        """Partial update by id. Returns the stored contact, or None if missing or on failure."""
        unknown = set(patch) - _WRITABLE_FIELDS
        if unknown:
            logger.error("Error updating contact %s: unknown fields %s", contact_id, sorted(unknown))
            return None
        current = self.get(contact_id)
        if current is None:
            return None
        try:
            updated = current.with_changes(**patch)
        except ValidationError as e:
            logger.error("Error updating contact %s: %s", contact_id, e)
            return None
        row = updated.to_row()
        old_row = current.to_row()
        columns = sorted(c for c in _WRITABLE_FIELDS if c in patch or row.get(c) != old_row.get(c))
        if not columns:
            return updated
        assignments = ", ".join(f"{_quote(c)} = ?" for c in columns)
        try:
            conn = self._connect()
            try:
                conn.execute(
                    f"UPDATE contacts SET {assignments} WHERE id = ?",
                    [row[c] for c in columns] + [contact_id],
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error:
            logger.exception("Error updating contact %s", contact_id)
            return None
        return updated

    def delete(self, contact_id: str) -> bool:
        try:
            conn = self._connect()
            try:
                cur = conn.execute("DELETE FROM contacts WHERE id = ?", (contact_id,))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error:
            logger.exception("Error deleting contact %s", contact_id)
            return False
        return cur.rowcount > 0

    def list_due(self, day: date, priorities: Iterable[str]) -> list[Contact] | None:
        """Pending contacts due on day with a priority in priorities, by name. None on store failure."""
        wanted = [p for p in priorities if p]
        if not wanted:
            return []
        placeholders = ",".join("?" for _ in wanted)
        sql = (
            "SELECT * FROM contacts WHERE deadline = ? AND status = 'pending' "
            f"AND priority IN ({placeholders}) ORDER BY name ASC"
        )
        try:
            conn = self._connect()
            try:
                rows = conn.execute(sql, [day.isoformat(), *wanted]).fetchall()
            finally:
                conn.close()
        except sqlite3.Error:
            logger.exception("Error fetching due contacts for %s", day)
            return None
        return _rows_to_contacts(rows)

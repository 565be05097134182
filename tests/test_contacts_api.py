# tests/test_contacts_api.py

from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path

from contacts_api import ContactsApi
from database import get_connection, init_database


def _fields(name: str, deadline: str, **extra) -> dict:
    return {"name": name, "purpose": "p", "deadline": deadline, **extra}


def test_create_assigns_id_and_timestamps(contacts_api: ContactsApi) -> None:
    c = contacts_api.create(_fields("a", "2024-06-10", user_id="u1", priority="A", category="パートナー"))

    assert c is not None
    assert len(c.id) == 26  # ULID
    assert c.created_at
    stored = contacts_api.get(c.id)
    assert stored == c
    assert stored.category_key == "パートナー"


def test_list_all_filters_by_owner(contacts_api: ContactsApi) -> None:
    contacts_api.create(_fields("mine-late", "2024-06-20", user_id="u1"))
    contacts_api.create(_fields("mine-early", "2024-06-05", user_id="u1"))
    contacts_api.create(_fields("theirs", "2024-06-05", user_id="u2"))
    contacts_api.create(_fields("legacy", "2024-06-05"))

    assert [c.name for c in contacts_api.list_all("u1")] == ["mine-early", "mine-late"]
    assert [c.name for c in contacts_api.list_all(ownerless=True)] == ["legacy"]
    assert len(contacts_api.list_all()) == 4


def test_update_writes_patch_and_keeps_invariants(contacts_api: ContactsApi) -> None:
    c = contacts_api.create(_fields("a", "2024-05-30", user_id="u1"))

    pinned = contacts_api.update(c.id, {"deadline": "2024-06-03", "is_overdue": True, "original_deadline": "2024-05-30"})
    assert pinned.is_overdue is True

    done = contacts_api.update(c.id, {"status": "completed", "completed_at": "2024-06-03T00:00:00Z"})

    assert done.is_overdue is False
    reread = contacts_api.get(c.id)
    assert reread.status == "completed"
    assert reread.is_overdue is False
    assert reread.original_deadline == date(2024, 5, 30)


def test_update_rejects_unknown_fields_and_missing_rows(contacts_api: ContactsApi) -> None:
    c = contacts_api.create(_fields("a", "2024-06-10"))

    assert contacts_api.update(c.id, {"id": "other"}) is None
    assert contacts_api.update("nope", {"name": "x"}) is None
    assert contacts_api.get(c.id).name == "a"


def test_delete(contacts_api: ContactsApi) -> None:
    c = contacts_api.create(_fields("a", "2024-06-10"))

    assert contacts_api.delete(c.id) is True
    assert contacts_api.delete(c.id) is False
    assert contacts_api.get(c.id) is None


def test_list_due_filters_and_orders_by_name(contacts_api: ContactsApi) -> None:
    day = "2024-06-03"
    contacts_api.create(_fields("Beta", day, priority="A"))
    contacts_api.create(_fields("Alpha", day, priority="A"))
    contacts_api.create(_fields("Gamma", day, priority="B"))
    contacts_api.create(_fields("Done", day, priority="A", status="completed", completed_at="2024-06-03T00:00:00Z"))
    contacts_api.create(_fields("Later", "2024-06-04", priority="A"))

    due = contacts_api.list_due(date(2024, 6, 3), ["A"])

    assert [c.name for c in due] == ["Alpha", "Beta"]
    assert [c.name for c in contacts_api.list_due(date(2024, 6, 3), ["A", "B"])] == ["Alpha", "Beta", "Gamma"]


def test_store_failure_degrades_to_sentinels(db_path: Path) -> None:
    api = ContactsApi(db_path)
    conn = get_connection(db_path)
    conn.execute("DROP TABLE contacts")
    conn.commit()
    conn.close()

    assert api.list_all("u1") == []
    assert api.create(_fields("a", "2024-06-10")) is None
    assert api.list_due(date(2024, 6, 3), ["A"]) is None
    assert api.delete("x") is False


def test_init_database_adds_columns_to_old_schema(tmp_path: Path) -> None:
    path = tmp_path / "old.db"
    conn = sqlite3.connect(path)
    conn.execute(
        """CREATE TABLE contacts (
            id TEXT PRIMARY KEY, name TEXT NOT NULL, purpose TEXT NOT NULL, deadline TEXT NOT NULL,
            status TEXT NOT NULL, recurring TEXT, created_at TEXT NOT NULL, completed_at TEXT)"""
    )
    conn.execute(
        "INSERT INTO contacts VALUES ('1', 'old', 'p', '2024-06-10', 'pending', NULL, '2024-01-01T00:00:00Z', NULL)"
    )
    conn.commit()
    conn.close()

    init_database(path)
    api = ContactsApi(path)

    old = api.get("1")
    assert old is not None
    assert old.priority == "C"
    assert old.user_id is None
    assert old.is_overdue is False

# tests/test_history.py

from __future__ import annotations

from history import UndoHistory

from .fakes import make_contact


def test_undo_redo_round_trip() -> None:
    h = UndoHistory()
    v1 = [make_contact("1", "2024-06-10")]
    v2 = [v1[0].with_changes(priority="A")]

    h.checkpoint(v1)
    assert h.can_undo and not h.can_redo

    assert h.undo(v2) == v1
    assert h.can_redo
    assert h.redo(v1) == v2
    assert h.undo(v2) == v1


def test_new_checkpoint_discards_redo() -> None:
    h = UndoHistory()
    v1 = [make_contact("1", "2024-06-10")]
    h.checkpoint(v1)
    h.undo(v1)

    h.checkpoint(v1)

    assert not h.can_redo


def test_history_is_bounded() -> None:
    h = UndoHistory(limit=3)
    for i in range(5):
        h.checkpoint([make_contact("1", "2024-06-10", order=i)])

    restored = []
    current = [make_contact("1", "2024-06-10", order=99)]
    while h.can_undo:
        current = h.undo(current)
        restored.append(current[0].order)

    assert restored == [4, 3, 2]


def test_empty_history_returns_none() -> None:
    h = UndoHistory()

    assert h.undo([]) is None
    assert h.redo([]) is None


def test_snapshots_are_isolated_from_later_changes() -> None:
    h = UndoHistory()
    contacts = [make_contact("1", "2024-06-10")]
    h.checkpoint(contacts)

    contacts[0].name = "mutated"

    assert h.undo(contacts)[0].name == "name-1"

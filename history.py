"""
Undo/redo snapshots of the canonical list.

Only completion toggles, bulk priority and bulk overdue-to-today checkpoint here; adds,
deletes, edits, lane drops, reordering and recurring reschedules are not undoable.
"""
from __future__ import annotations

from collections import deque

from models import Contact


def _snapshot(contacts: list[Contact]) -> list[Contact]:
    return [c.model_copy(deep=True) for c in contacts]


class UndoHistory:
    """Two bounded stacks; checkpointing a new state discards everything that could be redone."""

    def __init__(self, limit: int = 50) -> None:
        self.limit = max(1, limit)
        self._undo: deque[list[Contact]] = deque(maxlen=self.limit)
        self._redo: deque[list[Contact]] = deque(maxlen=self.limit)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def checkpoint(self, contacts: list[Contact]) -> None:
        """Record the list as it was before a covered mutation."""
        self._undo.append(_snapshot(contacts))
        self._redo.clear()

    def undo(self, current: list[Contact]) -> list[Contact] | None:
        """The previous snapshot, or None when there is nothing to undo."""
        if not self._undo:
            return None
        self._redo.append(_snapshot(current))
        return _snapshot(self._undo.pop())

    def redo(self, current: list[Contact]) -> list[Contact] | None:
        if not self._redo:
            return None
        self._undo.append(_snapshot(current))
        return _snapshot(self._redo.pop())

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

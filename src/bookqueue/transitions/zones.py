"""Drag-and-drop surface for status transitions.

Dropping an entry onto a zone is looked up in ``DROP_TRANSITIONS`` and
runs the same transition as the matching button. Reordering inside the
want-to-read list is presentation state only: ``QueueOrder`` keeps it for
the session and nothing is written to the store.
"""

from enum import Enum
from typing import Optional

from ..db.schemas import EntryStatus, ReadingListEntry
from .engine import Transition


class DropZone(str, Enum):
    """Drop targets on the reading-list page."""

    QUEUE = "queue"
    READING = "reading"
    COLLECTION = "collection"
    NOT_FOR_ME = "not_for_me"


DROP_TRANSITIONS: dict[tuple[EntryStatus, DropZone], Transition] = {
    (EntryStatus.WANT_TO_READ, DropZone.READING): Transition.START_READING,
    (EntryStatus.WANT_TO_READ, DropZone.NOT_FOR_ME): Transition.NOT_FOR_ME,
    (EntryStatus.READING, DropZone.QUEUE): Transition.RETURN_TO_QUEUE,
    (EntryStatus.READING, DropZone.COLLECTION): Transition.FINISH_TO_COLLECTION,
    (EntryStatus.READING, DropZone.NOT_FOR_ME): Transition.NOT_FOR_ME,
}


def transition_for_drop(status: EntryStatus, zone: DropZone) -> Optional[Transition]:
    """Transition triggered by dropping an entry in ``status`` onto ``zone``."""
    return DROP_TRANSITIONS.get((EntryStatus(status), DropZone(zone)))


class QueueOrder:
    """Session-local ordering of want-to-read entries."""

    def __init__(self):
        self._order: list[str] = []

    @property
    def order(self) -> list[str]:
        return list(self._order)

    def arrange(self, entries: list[ReadingListEntry]) -> list[ReadingListEntry]:
        """Want-to-read entries in display order.

        Entries the user has placed come first in their chosen order; the
        rest follow, most recently added first.
        """
        queued = sorted(
            (e for e in entries if e.status == EntryStatus.WANT_TO_READ),
            key=lambda e: e.added_at,
            reverse=True,
        )
        if not self._order:
            return queued

        positions = {entry_id: i for i, entry_id in enumerate(self._order)}
        return sorted(
            queued,
            key=lambda e: (0, positions[e.id]) if e.id in positions else (1, 0),
        )

    def move(
        self, entries: list[ReadingListEntry], from_index: int, to_index: int
    ) -> list[ReadingListEntry]:
        """Move the entry at ``from_index`` to ``to_index`` and return the new order."""
        arranged = self.arrange(entries)
        if not (0 <= from_index < len(arranged)) or not (0 <= to_index < len(arranged)):
            raise IndexError(f"Cannot move {from_index} -> {to_index} in {len(arranged)} entries")
        if from_index == to_index:
            return arranged

        moved = arranged.pop(from_index)
        arranged.insert(to_index, moved)
        self._order = [e.id for e in arranged]
        return arranged

    def forget(self, entry_id: str) -> None:
        """Drop an entry that left the queue."""
        self._order = [i for i in self._order if i != entry_id]

    def reset(self) -> None:
        self._order = []

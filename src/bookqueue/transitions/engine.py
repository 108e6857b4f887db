"""Status transition engine.

Maps user gestures onto reading-list status transitions and runs their
side effects:

- want_to_read -> reading -> finished, reading -> want_to_read
- reading stays reading when paused (on hold) or resumed
- finishing forks: keep it (collection membership, optional rating and
  review) or don't (rejection signal)
- "not for me" removes the entry from any status and records a rejection
- already_read entries only support removal

Disallowed transitions fail before anything reaches the store.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..db.schemas import (
    CollectionSource,
    EntryStatus,
    ReadingListEntry,
    RejectionSignal,
    UserBook,
    UserBookCreate,
)
from ..errors import BookQueueError, InvalidTransition, NotFound, OperationResult, ValidationError
from ..exclusions.rejections import RejectionLog
from ..store.collection import CollectionStore
from ..store.optimistic import validate_input
from ..store.reading_list import ReadingListStore

if TYPE_CHECKING:
    from .zones import DropZone

logger = logging.getLogger(__name__)


class Transition(str, Enum):
    """User-level actions that change an entry's lifecycle state."""

    START_READING = "start_reading"
    RETURN_TO_QUEUE = "return_to_queue"
    PAUSE = "pause"
    RESUME = "resume"
    FINISH_TO_COLLECTION = "finish_to_collection"
    FINISH_NO_COLLECTION = "finish_no_collection"
    NOT_FOR_ME = "not_for_me"


_FINISH = {Transition.FINISH_TO_COLLECTION, Transition.FINISH_NO_COLLECTION}

ALLOWED_TRANSITIONS: dict[EntryStatus, frozenset[Transition]] = {
    EntryStatus.WANT_TO_READ: frozenset(
        {Transition.START_READING, Transition.NOT_FOR_ME} | _FINISH
    ),
    EntryStatus.READING: frozenset(
        {
            Transition.RETURN_TO_QUEUE,
            Transition.PAUSE,
            Transition.RESUME,
            Transition.NOT_FOR_ME,
        }
        | _FINISH
    ),
    EntryStatus.FINISHED: frozenset({Transition.NOT_FOR_ME}),
    EntryStatus.ALREADY_READ: frozenset({Transition.NOT_FOR_ME}),
}


def check_transition(status: EntryStatus, transition: Transition) -> None:
    """Raise InvalidTransition unless ``transition`` is allowed from ``status``."""
    if transition not in ALLOWED_TRANSITIONS[EntryStatus(status)]:
        raise InvalidTransition(
            f"Cannot {Transition(transition).value.replace('_', ' ')} "
            f"from {EntryStatus(status).value}"
        )


@dataclass
class TransitionOutcome:
    """What a transition changed."""

    transition: Transition
    entry: Optional[ReadingListEntry] = None
    removed: bool = False
    collection_item: Optional[UserBook] = None
    rejection: Optional[RejectionSignal] = None


class StatusTransitionEngine:
    """Runs transitions against a reading list and their side effects."""

    def __init__(
        self,
        reading_list: ReadingListStore,
        collection: CollectionStore,
        rejections: RejectionLog,
    ):
        """Initialize the engine.

        Args:
            reading_list: Store holding the entries being transitioned
            collection: Store receiving finished-and-kept books
            rejections: Log receiving negative signals
        """
        self.reading_list = reading_list
        self.collection = collection
        self.rejections = rejections

    # ========================================================================
    # Gestures
    # ========================================================================

    def start_reading(self, entry_id: str) -> OperationResult:
        return self.apply(entry_id, Transition.START_READING)

    def return_to_queue(self, entry_id: str) -> OperationResult:
        return self.apply(entry_id, Transition.RETURN_TO_QUEUE)

    def pause(self, entry_id: str) -> OperationResult:
        """Put a book being read on hold."""
        return self.apply(entry_id, Transition.PAUSE)

    def resume(self, entry_id: str) -> OperationResult:
        return self.apply(entry_id, Transition.RESUME)

    def finish(
        self,
        entry_id: str,
        add_to_collection: bool = True,
        rating: Optional[int] = None,
        review: Optional[str] = None,
    ) -> OperationResult:
        """Complete the finish dialog.

        Args:
            entry_id: Entry being finished
            add_to_collection: Keep the book (True) or record it as not worth keeping
            rating: Optional 1-5 rating for the collection item
            review: Optional review for the collection item
        """
        if add_to_collection:
            return self.apply(
                entry_id, Transition.FINISH_TO_COLLECTION, rating=rating, review=review
            )
        return self.apply(entry_id, Transition.FINISH_NO_COLLECTION)

    def not_for_me(self, entry_id: str) -> OperationResult:
        return self.apply(entry_id, Transition.NOT_FOR_ME)

    def drop(
        self,
        entry_id: str,
        zone: "DropZone",
        rating: Optional[int] = None,
        review: Optional[str] = None,
    ) -> OperationResult:
        """Handle an entry dropped onto ``zone``."""
        from .zones import DropZone, transition_for_drop

        entry = self.reading_list.find(entry_id)
        if entry is None:
            return OperationResult.fail(NotFound(f"Entry not found: {entry_id}"))
        try:
            zone = DropZone(zone)
        except ValueError:
            return OperationResult.fail(ValidationError(f"Unknown drop zone: {zone}"))

        transition = transition_for_drop(entry.status, zone)
        if transition is None:
            return OperationResult.fail(
                InvalidTransition(
                    f"Nothing happens when a {entry.status.value} book is dropped on {zone.value}"
                )
            )
        if transition == Transition.FINISH_TO_COLLECTION:
            return self.apply(entry_id, transition, rating=rating, review=review)
        return self.apply(entry_id, transition)

    # ========================================================================
    # Dispatch
    # ========================================================================

    def apply(
        self,
        entry_id: str,
        transition: Transition,
        rating: Optional[int] = None,
        review: Optional[str] = None,
    ) -> OperationResult:
        """Run ``transition`` on an entry.

        Returns:
            OperationResult with a TransitionOutcome
        """
        try:
            transition = Transition(transition)
            entry = self.reading_list.find(entry_id)
            if entry is None:
                raise NotFound(f"Entry not found: {entry_id}")
            check_transition(entry.status, transition)

            if transition == Transition.START_READING:
                return self._set_status(entry, transition, EntryStatus.READING)
            if transition == Transition.RETURN_TO_QUEUE:
                return self._set_status(entry, transition, EntryStatus.WANT_TO_READ)
            if transition in (Transition.PAUSE, Transition.RESUME):
                return self._set_active(entry, transition, transition == Transition.RESUME)
            if transition == Transition.FINISH_TO_COLLECTION:
                return self._finish_to_collection(entry, rating, review)
            if transition == Transition.FINISH_NO_COLLECTION:
                return self._finish_no_collection(entry)
            return self._not_for_me(entry)
        except ValueError as e:
            return OperationResult.fail(ValidationError(str(e)))
        except BookQueueError as e:
            return OperationResult.fail(e)

    def _set_status(
        self, entry: ReadingListEntry, transition: Transition, status: EntryStatus
    ) -> OperationResult:
        result = self.reading_list.set_status(entry.id, status)
        if not result.success:
            return result
        return OperationResult.ok(TransitionOutcome(transition=transition, entry=result.data))

    def _set_active(
        self, entry: ReadingListEntry, transition: Transition, active: bool
    ) -> OperationResult:
        result = self.reading_list.update(entry.id, is_active=active)
        if not result.success:
            return result
        return OperationResult.ok(TransitionOutcome(transition=transition, entry=result.data))

    def _finish_to_collection(
        self, entry: ReadingListEntry, rating: Optional[int], review: Optional[str]
    ) -> OperationResult:
        # Validate the dialog input before touching the store
        item = validate_input(
            UserBookCreate,
            {
                "title": entry.title,
                "author": entry.author,
                "isbn": entry.isbn,
                "rating": rating,
                "review": (review or "").strip() or None,
                "added_via": CollectionSource.QUEUE,
            },
        )

        finished = self.reading_list.set_status(entry.id, EntryStatus.FINISHED)
        if not finished.success:
            return finished

        collected = self.collection.add(item)
        if not collected.success:
            logger.error(
                "Finished '%s' but could not add it to the collection: %s",
                entry.title,
                collected.error,
            )
            return collected

        return OperationResult.ok(
            TransitionOutcome(
                transition=Transition.FINISH_TO_COLLECTION,
                entry=finished.data,
                collection_item=collected.data,
            )
        )

    def _finish_no_collection(self, entry: ReadingListEntry) -> OperationResult:
        finished = self.reading_list.set_status(entry.id, EntryStatus.FINISHED)
        if not finished.success:
            return finished

        rejected = self.rejections.record(entry.title, entry.author)
        if not rejected.success:
            logger.error("Finished '%s' but could not record rejection: %s", entry.title, rejected.error)
            return rejected

        return OperationResult.ok(
            TransitionOutcome(
                transition=Transition.FINISH_NO_COLLECTION,
                entry=finished.data,
                rejection=rejected.data,
            )
        )

    def _not_for_me(self, entry: ReadingListEntry) -> OperationResult:
        removed = self.reading_list.remove(entry.id)
        if not removed.success:
            return removed

        rejected = self.rejections.record(entry.title, entry.author)
        if not rejected.success:
            logger.error("Removed '%s' but could not record rejection: %s", entry.title, rejected.error)
            return rejected

        return OperationResult.ok(
            TransitionOutcome(
                transition=Transition.NOT_FOR_ME,
                entry=removed.data,
                removed=True,
                rejection=rejected.data,
            )
        )

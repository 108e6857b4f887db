"""Reading list store.

Owns the authoritative in-memory list of a user's reading-list entries.
All mutations are optimistic: the local list changes first (adds get a
synthetic ``temp-`` id), the backing store is called once, and a failure
restores the pre-mutation snapshot.
"""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Union
from uuid import uuid4

from ..db.schemas import BookPayload, EntryStatus, EntryUpdate, ReadingListEntry
from ..errors import BookQueueError, NotFound, OperationResult, ValidationError
from .optimistic import OptimisticList, validate_input

if TYPE_CHECKING:
    from ..api.enrichment import BookEnricher

logger = logging.getLogger(__name__)


class ReadingListStore(OptimisticList):
    """Optimistic store for one user's reading list."""

    def _fetch(self, user_id: str) -> list[ReadingListEntry]:
        return self.db.list_entries(user_id)

    # ========================================================================
    # Queries
    # ========================================================================

    @property
    def entries(self) -> list[ReadingListEntry]:
        return self.items

    def list_entries(self, owner_id: Optional[str] = None) -> list[ReadingListEntry]:
        """Return the entries for ``owner_id`` (defaults to the current user).

        Passing a different owner switches the store to that owner and reloads
        from the backing store, the same as ``set_user``.
        """
        if owner_id is not None and owner_id != self.user_id:
            self.set_user(owner_id)
        return self.items

    def find(self, entry_id: str) -> Optional[ReadingListEntry]:
        return self._find(entry_id)

    def find_by_title(self, title: str) -> Optional[ReadingListEntry]:
        """Find an entry by case-insensitive title."""
        wanted = (title or "").strip().casefold()
        for entry in self._items:
            if entry.title.strip().casefold() == wanted:
                return entry
        return None

    def by_status(self, status: EntryStatus) -> list[ReadingListEntry]:
        return [e for e in self._items if e.status == status]

    def counts(self) -> dict[str, int]:
        """Number of entries per status."""
        counts = {status.value: 0 for status in EntryStatus}
        for entry in self._items:
            counts[entry.status.value] += 1
        return counts

    # ========================================================================
    # Mutations
    # ========================================================================

    def add(
        self,
        book: Union[BookPayload, dict],
        enricher: Optional["BookEnricher"] = None,
    ) -> OperationResult:
        """Add a book to the reading list.

        Args:
            book: Book payload or dict of its fields
            enricher: Optional enrichment used to fill a missing description or ISBN

        Returns:
            OperationResult with the stored ReadingListEntry
        """
        try:
            user_id = self._require_user()
            payload = validate_input(BookPayload, book)
            if enricher is not None:
                payload = enricher.enrich(payload)

            placeholder = ReadingListEntry(
                id=f"temp-{uuid4().hex}",
                user_id=user_id,
                title=payload.title,
                author=payload.author,
                isbn=payload.isbn,
                status=payload.status,
                added_at=datetime.now(timezone.utc),
                rating=payload.rating,
                description=payload.description,
                reputation=payload.reputation,
                owned=payload.owned,
            )
            mutation = self.mutation(
                f"add '{payload.title}'", lambda items: [placeholder] + items
            )
            created = self._commit(mutation, lambda: self.db.create_entry(user_id, payload))
            self._replace(placeholder.id, created)
            logger.info("Added '%s' to reading list for %s", created.title, user_id)
            return OperationResult.ok(created)
        except BookQueueError as e:
            return OperationResult.fail(e)

    def remove(self, entry_id: str) -> OperationResult:
        """Remove an entry from the reading list."""
        try:
            self._require_user()
            entry = self._require_item(entry_id)
            mutation = self.mutation(
                f"remove '{entry.title}'",
                lambda items: [e for e in items if e.id != entry_id],
            )

            def _delete() -> None:
                if not self.db.delete_entry(entry_id):
                    raise NotFound(f"Entry not found: {entry_id}")

            self._commit(mutation, _delete)
            return OperationResult.ok(entry)
        except BookQueueError as e:
            return OperationResult.fail(e)

    def set_status(self, entry_id: str, status: Union[EntryStatus, str]) -> OperationResult:
        """Change an entry's status.

        Callers normally go through the transition engine, which checks the
        transition is allowed and runs its side effects.
        """
        try:
            self._require_user()
            try:
                status = EntryStatus(status)
            except ValueError as e:
                raise ValidationError(f"Unknown status: {status}") from e

            entry = self._require_item(entry_id)
            changes = {"status": status.value}
            local = {"status": status}
            if status == EntryStatus.READING:
                changes["is_active"] = True
                local["is_active"] = True
            if status == EntryStatus.FINISHED and entry.finished_at is None:
                local["finished_at"] = datetime.now(timezone.utc)
            elif status != EntryStatus.FINISHED:
                local["finished_at"] = None

            return self._apply_changes(entry, changes, local, f"set '{entry.title}' to {status.value}")
        except BookQueueError as e:
            return OperationResult.fail(e)

    def update(self, entry_id: str, **fields) -> OperationResult:
        """Update scalar fields (owned, rating, is_active, ...). No side effects."""
        try:
            self._require_user()
            if "status" in fields:
                raise ValidationError("Status changes go through the transition engine")
            update = validate_input(EntryUpdate, fields)
            changes = update.model_dump(exclude_unset=True)
            if not changes:
                raise ValidationError("Nothing to update")

            entry = self._require_item(entry_id)
            return self._apply_changes(entry, changes, dict(changes), f"update '{entry.title}'")
        except BookQueueError as e:
            return OperationResult.fail(e)

    def _apply_changes(
        self, entry: ReadingListEntry, changes: dict, local: dict, description: str
    ) -> OperationResult:
        updated = entry.model_copy(update=local)
        mutation = self.mutation(
            description,
            lambda items: [updated if e.id == entry.id else e for e in items],
        )

        def _update() -> ReadingListEntry:
            result = self.db.update_entry(entry.id, changes)
            if result is None:
                raise NotFound(f"Entry not found: {entry.id}")
            return result

        stored = self._commit(mutation, _update)
        self._replace(entry.id, stored)
        return OperationResult.ok(stored)

    list = list_entries

"""Collection store.

The collection holds books a user finished and chose to keep. Items are
de-duplicated by the lower-cased (title, author) pair: adding a book that
is already there updates the existing item instead of inserting a copy.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from ..db.schemas import UserBook, UserBookCreate, UserBookUpdate, merge_key
from ..errors import BookQueueError, NotFound, OperationResult, ValidationError
from .optimistic import OptimisticList, remote_failure, validate_input

logger = logging.getLogger(__name__)


class CollectionStore(OptimisticList):
    """Optimistic store for one user's collection."""

    def _fetch(self, user_id: str) -> list[UserBook]:
        return self.db.list_user_books(user_id)

    @property
    def books(self) -> list[UserBook]:
        return self.items

    def find(self, book_id: str) -> Optional[UserBook]:
        return self._find(book_id)

    def find_by_key(self, title: str, author: Optional[str]) -> Optional[UserBook]:
        """Find a local item by its (title, author) merge key."""
        key = merge_key(title, author)
        for book in self._items:
            if book.key == key:
                return book
        return None

    def add(self, book: Union[UserBookCreate, dict]) -> OperationResult:
        """Add a book to the collection, merging with an existing item.

        When the book is already collected, a rating or review given here
        is written onto the existing item and that item is returned.
        """
        try:
            user_id = self._require_user()
            payload = validate_input(UserBookCreate, book)

            existing = self.find_by_key(payload.title, payload.author)
            if existing is None:
                existing = self._find_remote(user_id, payload)
                if existing is not None:
                    self._items = [existing] + self._items

            if existing is not None:
                changes = {
                    field: value
                    for field, value in (("rating", payload.rating), ("review", payload.review))
                    if value is not None
                }
                if not changes:
                    return OperationResult.ok(existing)
                return self._apply_changes(existing, changes)

            placeholder = UserBook(
                id=f"temp-{uuid4().hex}",
                user_id=user_id,
                title=payload.title,
                author=payload.author,
                isbn=payload.isbn,
                rating=payload.rating,
                review=payload.review,
                cover_image_url=payload.cover_image_url,
                added_via=payload.added_via,
                added_at=datetime.now(timezone.utc),
            )
            mutation = self.mutation(
                f"collect '{payload.title}'", lambda items: [placeholder] + items
            )
            created = self._commit(mutation, lambda: self.db.create_user_book(user_id, payload))
            self._replace(placeholder.id, created)
            logger.info("Collected '%s' for %s", created.title, user_id)
            return OperationResult.ok(created)
        except BookQueueError as e:
            return OperationResult.fail(e)

    def _find_remote(self, user_id: str, payload: UserBookCreate) -> Optional[UserBook]:
        try:
            return self.db.find_user_book(user_id, payload.title, payload.author)
        except SQLAlchemyError as e:
            raise remote_failure(e) from e

    def remove(self, book_id: str) -> OperationResult:
        """Remove an item from the collection."""
        try:
            self._require_user()
            book = self._require_item(book_id)
            mutation = self.mutation(
                f"uncollect '{book.title}'",
                lambda items: [b for b in items if b.id != book_id],
            )

            def _delete() -> None:
                if not self.db.delete_user_book(book_id):
                    raise NotFound(f"Collection item not found: {book_id}")

            self._commit(mutation, _delete)
            return OperationResult.ok(book)
        except BookQueueError as e:
            return OperationResult.fail(e)

    def update(self, book_id: str, **fields) -> OperationResult:
        """Update rating, review or cover on a collection item."""
        try:
            self._require_user()
            changes = validate_input(UserBookUpdate, fields).model_dump(exclude_unset=True)
            if not changes:
                raise ValidationError("Nothing to update")
            return self._apply_changes(self._require_item(book_id), changes)
        except BookQueueError as e:
            return OperationResult.fail(e)

    def _apply_changes(self, book: UserBook, changes: dict) -> OperationResult:
        updated = book.model_copy(update=changes)
        mutation = self.mutation(
            f"update collected '{book.title}'",
            lambda items: [updated if b.id == book.id else b for b in items],
        )

        def _update() -> UserBook:
            result = self.db.update_user_book(book.id, changes)
            if result is None:
                raise NotFound(f"Collection item not found: {book.id}")
            return result

        stored = self._commit(mutation, _update)
        self._replace(book.id, stored)
        return OperationResult.ok(stored)

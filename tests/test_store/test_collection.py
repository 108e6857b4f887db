"""Tests for CollectionStore."""

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from bookqueue.db.schemas import CollectionSource, UserBookCreate
from bookqueue.errors import ErrorKind
from bookqueue.store.collection import CollectionStore

USER = "user-alice"


class TestCollectionAdd:
    """Tests for adding to the collection."""

    def test_add(self, collection: CollectionStore):
        result = collection.add(UserBookCreate(title="Dune", author="Frank Herbert", rating=5))

        assert result.success
        assert result.data.rating == 5
        assert result.data.added_via == CollectionSource.MANUAL
        assert [b.id for b in collection.books] == [result.data.id]

    def test_add_existing_merges(self, collection: CollectionStore):
        """Test that the same title/author updates the existing item."""
        first = collection.add({"title": "Dune", "author": "Frank Herbert"}).data

        second = collection.add({"title": " dune ", "author": "FRANK HERBERT", "rating": 4})

        assert second.data.id == first.id
        assert second.data.rating == 4
        assert len(collection.books) == 1
        assert len(collection.db.list_user_books(USER)) == 1

    def test_add_existing_without_changes(self, collection: CollectionStore):
        first = collection.add({"title": "Dune"}).data

        with patch.object(collection.db, "update_user_book") as update:
            result = collection.add({"title": "Dune"})

        assert result.data.id == first.id
        update.assert_not_called()

    def test_add_finds_remote_item_not_loaded(self, collection: CollectionStore, db, config):
        """Test that an item stored by another session is merged, not duplicated."""
        db.create_user_book(USER, UserBookCreate(title="Dune"))

        result = collection.add({"title": "Dune", "review": "Still great"})

        assert result.data.review == "Still great"
        assert len(db.list_user_books(USER)) == 1

    def test_add_rolls_back(self, collection: CollectionStore):
        error = OperationalError("INSERT", {}, Exception("disk I/O error"))

        with patch.object(collection.db, "create_user_book", side_effect=error):
            result = collection.add({"title": "Dune"})

        assert result.kind == ErrorKind.REMOTE_FAILURE
        assert collection.books == []


class TestCollectionUpdate:
    """Tests for updating and removing collection items."""

    def test_update_review(self, collection: CollectionStore):
        book = collection.add({"title": "Dune"}).data

        result = collection.update(book.id, review="Spice must flow")

        assert result.data.review == "Spice must flow"
        assert collection.find(book.id).review == "Spice must flow"

    def test_update_nothing(self, collection: CollectionStore):
        book = collection.add({"title": "Dune"}).data
        assert collection.update(book.id).kind == ErrorKind.VALIDATION

    def test_remove(self, collection: CollectionStore):
        book = collection.add({"title": "Dune"}).data

        assert collection.remove(book.id).success
        assert collection.books == []
        assert collection.db.list_user_books(USER) == []

    def test_remove_unknown(self, collection: CollectionStore):
        assert collection.remove("missing").kind == ErrorKind.NOT_FOUND

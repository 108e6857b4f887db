"""Tests for ReadingListStore."""

from unittest.mock import MagicMock, patch

from sqlalchemy.exc import OperationalError

from bookqueue.db.schemas import BookPayload, EntryStatus
from bookqueue.errors import ErrorKind
from bookqueue.store.reading_list import ReadingListStore

USER = "user-alice"
OTHER_USER = "user-bob"


def store_error(message: str = "disk I/O error") -> OperationalError:
    return OperationalError("statement", {}, Exception(message))


class TestAdd:
    """Tests for adding entries."""

    def test_add_returns_stored_entry(self, reading_list: ReadingListStore, dune: BookPayload):
        """Test that the placeholder is replaced by the stored entry."""
        result = reading_list.add(dune)

        assert result.success
        entry = result.data
        assert not entry.is_temporary
        assert [e.id for e in reading_list.entries] == [entry.id]
        assert reading_list.db.get_entry(entry.id).title == "Dune"

    def test_add_accepts_dict(self, reading_list: ReadingListStore):
        result = reading_list.add({"title": "Emma", "author": "Jane Austen"})

        assert result.success
        assert result.data.author == "Jane Austen"

    def test_placeholder_visible_during_write(self, reading_list: ReadingListStore, dune: BookPayload):
        """Test that the optimistic entry is in the list before the write returns."""
        seen = []
        real_create = reading_list.db.create_entry

        def _create(user_id, payload):
            seen.extend(reading_list.entries)
            return real_create(user_id, payload)

        with patch.object(reading_list.db, "create_entry", side_effect=_create):
            reading_list.add(dune)

        assert len(seen) == 1
        assert seen[0].is_temporary
        assert seen[0].title == "Dune"

    def test_add_prepends(self, reading_list: ReadingListStore, queued):
        queued("Emma")
        queued("Dune")

        assert [e.title for e in reading_list.entries] == ["Dune", "Emma"]

    def test_add_rolls_back_on_store_failure(self, reading_list: ReadingListStore, queued, dune):
        """Test that a failed insert restores the previous list exactly."""
        queued("Emma")
        before = reading_list.snapshot()

        with patch.object(reading_list.db, "create_entry", side_effect=store_error()) as create:
            result = reading_list.add(dune)

        assert not result.success
        assert result.kind == ErrorKind.REMOTE_FAILURE
        assert "disk I/O error" in result.error
        assert tuple(reading_list.entries) == before
        assert create.call_count == 1

    def test_add_without_user(self, db, config, dune):
        """Test that adding without a signed-in user fails fast."""
        store = ReadingListStore(db, config=config)

        with patch.object(db, "create_entry") as create:
            result = store.add(dune)

        assert result.is_unauthenticated
        create.assert_not_called()
        assert store.entries == []

    def test_add_blank_title(self, reading_list: ReadingListStore):
        """Test that validation fails before the store is called."""
        with patch.object(reading_list.db, "create_entry") as create:
            result = reading_list.add({"title": "  "})

        assert result.kind == ErrorKind.VALIDATION
        assert "Title is required" in result.error
        create.assert_not_called()

    def test_add_with_enricher(self, reading_list: ReadingListStore):
        """Test that an enricher can fill in fields before the insert."""
        enricher = MagicMock()
        enricher.enrich.side_effect = lambda p: p.model_copy(update={"description": "Spice."})

        result = reading_list.add({"title": "Dune"}, enricher=enricher)

        assert result.data.description == "Spice."
        enricher.enrich.assert_called_once()


class TestRemove:
    """Tests for removing entries."""

    def test_remove(self, reading_list: ReadingListStore, queued):
        entry = queued("Dune")

        result = reading_list.remove(entry.id)

        assert result.success
        assert reading_list.entries == []
        assert reading_list.db.get_entry(entry.id) is None

    def test_remove_unknown_entry(self, reading_list: ReadingListStore):
        result = reading_list.remove("missing")
        assert result.kind == ErrorKind.NOT_FOUND

    def test_remove_rolls_back(self, reading_list: ReadingListStore, queued):
        """Test that a failed delete puts the entry back."""
        entry = queued("Dune")

        with patch.object(reading_list.db, "delete_entry", side_effect=store_error()):
            result = reading_list.remove(entry.id)

        assert not result.success
        assert [e.id for e in reading_list.entries] == [entry.id]

    def test_remove_deleted_elsewhere(self, reading_list: ReadingListStore, queued):
        """Test that a row already gone from the store rolls back as NotFound."""
        entry = queued("Dune")
        reading_list.db.delete_entry(entry.id)

        result = reading_list.remove(entry.id)

        assert result.kind == ErrorKind.NOT_FOUND
        assert [e.id for e in reading_list.entries] == [entry.id]


class TestStatusAndUpdate:
    """Tests for status changes and scalar updates."""

    def test_set_status_finished(self, reading_list: ReadingListStore, queued):
        entry = queued("Dune")

        result = reading_list.set_status(entry.id, "finished")

        assert result.data.status == EntryStatus.FINISHED
        assert result.data.finished_at is not None

    def test_set_status_reading_reactivates(self, reading_list: ReadingListStore, queued):
        """Test that starting to read clears a previous hold."""
        entry = queued("Dune", status=EntryStatus.READING)
        reading_list.update(entry.id, is_active=False)

        result = reading_list.set_status(entry.id, EntryStatus.READING)

        assert result.data.is_active is True

    def test_set_unknown_status(self, reading_list: ReadingListStore, queued):
        entry = queued("Dune")
        result = reading_list.set_status(entry.id, "shelved")
        assert result.kind == ErrorKind.VALIDATION

    def test_set_status_rolls_back(self, reading_list: ReadingListStore, queued):
        entry = queued("Dune")

        with patch.object(reading_list.db, "update_entry", side_effect=store_error()):
            result = reading_list.set_status(entry.id, EntryStatus.READING)

        assert not result.success
        assert reading_list.find(entry.id).status == EntryStatus.WANT_TO_READ

    def test_update_owned(self, reading_list: ReadingListStore, queued):
        entry = queued("Dune")

        result = reading_list.update(entry.id, owned=True)

        assert result.data.owned is True
        assert reading_list.find(entry.id).owned is True

    def test_update_rejects_status(self, reading_list: ReadingListStore, queued):
        """Test that status changes cannot bypass the transition engine."""
        entry = queued("Dune")
        result = reading_list.update(entry.id, status="finished")
        assert result.kind == ErrorKind.VALIDATION

    def test_update_nothing(self, reading_list: ReadingListStore, queued):
        entry = queued("Dune")
        assert not reading_list.update(entry.id).success

    def test_update_bad_rating(self, reading_list: ReadingListStore, queued):
        entry = queued("Dune")
        result = reading_list.update(entry.id, rating=9)
        assert result.kind == ErrorKind.VALIDATION


class TestLoading:
    """Tests for loading and owner changes."""

    def test_load_retries_reads(self, reading_list: ReadingListStore, queued):
        """Test that a transient read failure is retried."""
        queued("Dune")
        real_list = reading_list.db.list_entries
        calls = []

        def _flaky(user_id, *args, **kwargs):
            calls.append(user_id)
            if len(calls) == 1:
                raise store_error("database is locked")
            return real_list(user_id, *args, **kwargs)

        with patch.object(reading_list.db, "list_entries", side_effect=_flaky):
            result = reading_list.load()

        assert result.success
        assert len(calls) == 2
        assert [e.title for e in result.data] == ["Dune"]

    def test_load_gives_up_after_max_attempts(self, reading_list: ReadingListStore):
        with patch.object(reading_list.db, "list_entries", side_effect=store_error()) as list_entries:
            result = reading_list.load()

        assert result.kind == ErrorKind.REMOTE_FAILURE
        assert list_entries.call_count == 3

    def test_list_for_other_owner_switches_and_reloads(self, reading_list: ReadingListStore, queued, db):
        """Test that listing another owner switches the store and replaces the local list."""
        queued("Dune")
        db.create_entry(OTHER_USER, BookPayload(title="Emma"))

        entries = reading_list.list_entries(OTHER_USER)

        assert [e.title for e in entries] == ["Emma"]
        assert reading_list.user_id == OTHER_USER

    def test_same_owner_does_not_reload(self, reading_list: ReadingListStore):
        assert reading_list.set_user(USER) is None

    def test_sign_out_clears(self, reading_list: ReadingListStore, queued):
        queued("Dune")
        reading_list.set_user(None)
        assert reading_list.entries == []


class TestQueries:
    """Tests for read-only helpers."""

    def test_counts(self, reading_list: ReadingListStore, queued):
        queued("Dune")
        queued("Emma", status=EntryStatus.READING)
        queued("Ulysses", status=EntryStatus.ALREADY_READ)

        counts = reading_list.counts()

        assert counts == {
            "want_to_read": 1,
            "reading": 1,
            "finished": 0,
            "already_read": 1,
        }

    def test_find_by_title(self, reading_list: ReadingListStore, queued):
        entry = queued("Dune")
        assert reading_list.find_by_title("  dUNE ").id == entry.id
        assert reading_list.find_by_title("Emma") is None

    def test_by_status(self, reading_list: ReadingListStore, queued):
        queued("Dune")
        queued("Emma", status=EntryStatus.READING)
        assert [e.title for e in reading_list.by_status(EntryStatus.READING)] == ["Emma"]

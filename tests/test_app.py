"""Tests for the BookQueueApp composition root."""

from bookqueue.app import BookQueueApp
from bookqueue.db.schemas import EntryStatus, ReceivedStatus
from bookqueue.transitions.zones import DropZone

ALICE = "user-alice"
BOB = "user-bob"


def share(app: BookQueueApp, title: str = "Piranesi") -> str:
    """Sign in as Alice, recommend a book and return the share token."""
    app.sign_in(ALICE, display_name="Alice")
    rec = app.recommendations.create({"title": title, "author": "Susanna Clarke"}, note="Read it").data
    token = app.recommendations.get_or_create_share_link(rec.id).data.token
    app.sign_out()
    return token


class TestSession:
    """Tests for signing in and out."""

    def test_sign_in_loads_lists(self, app: BookQueueApp, db):
        app.sign_in(ALICE)
        app.add_book({"title": "Dune"})
        app.sign_out()

        assert app.reading_list.entries == []
        assert app.sign_in(ALICE) is None
        assert [e.title for e in app.reading_list.entries] == ["Dune"]

    def test_sign_out_clears_user(self, app: BookQueueApp):
        app.sign_in(ALICE)
        app.sign_out()

        assert app.user_id is None
        assert app.add_book({"title": "Dune"}).is_unauthenticated
        assert app.exclusion_titles() == []


class TestShareJourney:
    """End-to-end share, sign-up and acceptance."""

    def test_anonymous_accept_then_sign_up(self, app: BookQueueApp, storage):
        token = share(app)

        view = app.open_share(token).data
        assert view.recommender_name == "Alice"
        assert app.accept_share(token).is_unauthenticated
        assert storage.get() is not None

        drained = app.sign_in(BOB)

        assert drained.success
        assert [e.title for e in app.reading_list.entries] == ["Piranesi"]
        assert storage.get() is None

    def test_signed_in_visitor_inbox(self, app: BookQueueApp, db):
        token = share(app)
        app.sign_in(BOB)

        view = app.open_share(token).data
        result = app.accept_received(view.received_id)

        assert result.data.status == ReceivedStatus.ACCEPTED
        assert app.reading_list.find_by_title("Piranesi") is not None
        assert db.get_share_link_by_token(token).view_count == 1

    def test_signed_in_accept_from_share(self, app: BookQueueApp, db):
        token = share(app)
        app.sign_in(BOB)

        result = app.accept_share(token)

        assert result.data.status == ReceivedStatus.ACCEPTED
        assert len(db.list_received(BOB, ReceivedStatus.ACCEPTED)) == 1


class TestReadingJourney:
    """From queue to collection and exclusions."""

    def test_queue_to_collection(self, app: BookQueueApp):
        app.sign_in(ALICE)
        entry = app.add_book({"title": "Dune", "author": "Frank Herbert"}).data

        app.engine.drop(entry.id, DropZone.READING)
        result = app.engine.finish(entry.id, rating=5)

        assert result.data.entry.status == EntryStatus.FINISHED
        assert [b.title for b in app.collection.books] == ["Dune"]

    def test_exclusions(self, app: BookQueueApp):
        app.sign_in(ALICE)
        app.add_book({"title": "Dune", "isbn": "9780441013593"})
        emma = app.add_book({"title": "Emma"}).data
        app.engine.not_for_me(emma.id)
        app.rejections.record("Foundation")

        assert app.exclusion_titles() == ["dune", "emma", "foundation"]

    def test_recommend_from_collection_without_note(self, app: BookQueueApp):
        app.sign_in(ALICE)
        book = app.collection.add({"title": "Dune"}).data

        result = app.recommend_from_collection(book.id)

        assert result.success
        assert result.data.note is None

    def test_shown_titles_excluded_until_user_changes(self, app: BookQueueApp):
        app.sign_in(ALICE)
        app.mark_shown(["Piranesi", "  "])

        assert app.exclusion_titles() == ["piranesi"]

        app.sign_in(ALICE)
        assert app.exclusion_titles() == ["piranesi"]

        app.sign_out()
        app.sign_in(ALICE)
        assert app.exclusion_titles() == []

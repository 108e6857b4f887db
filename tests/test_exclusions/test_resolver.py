"""Tests for the exclusion resolver and rejection log."""

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from bookqueue.db.schemas import BookPayload, EntryStatus
from bookqueue.errors import ErrorKind
from bookqueue.exclusions.rejections import RejectionLog
from bookqueue.exclusions.resolver import ExclusionResolver, ExclusionSet, normalize_title

USER = "user-alice"


class TestRejectionLog:
    """Tests for recording rejections."""

    def test_record(self, rejections: RejectionLog):
        result = rejections.record("  Foundation ", "Isaac Asimov")

        assert result.success
        assert result.data.title == "Foundation"
        assert [s.title for s in rejections.signals()] == ["Foundation"]

    def test_record_requires_user(self, db, config):
        assert RejectionLog(db, config=config).record("Foundation").is_unauthenticated

    def test_record_requires_title(self, rejections: RejectionLog):
        assert rejections.record("  ").kind == ErrorKind.VALIDATION

    def test_record_store_failure(self, rejections: RejectionLog):
        error = OperationalError("INSERT", {}, Exception("disk I/O error"))
        with patch.object(rejections.db, "add_dismissed", side_effect=error):
            result = rejections.record("Foundation")
        assert result.kind == ErrorKind.REMOTE_FAILURE


class TestExclusionSet:
    """Tests for matching against an exclusion set."""

    def test_title_match_is_case_folded(self):
        exclusions = ExclusionSet(titles={normalize_title("Dune")})

        assert exclusions.excludes(title="DUNE")
        assert exclusions.excludes(title="  dune ")
        assert not exclusions.excludes(title="Dune Messiah")

    def test_isbn_match(self):
        exclusions = ExclusionSet(isbns={"9780441013593"})

        assert exclusions.excludes(title="Something Else", isbn="978-0441013593")
        assert not exclusions.excludes(isbn="9780553293357")

    def test_no_fuzzy_matching(self):
        exclusions = ExclusionSet(titles={"the hobbit"})
        assert not exclusions.excludes(title="Hobbit")

    def test_filter(self):
        exclusions = ExclusionSet(titles={"dune"}, isbns={"9780553293357"})
        candidates = [
            {"title": "Dune"},
            {"title": "Foundation", "isbn": "9780553293357"},
            {"title": "Emma"},
        ]

        assert exclusions.filter(candidates) == [{"title": "Emma"}]


class TestExclusionResolver:
    """Tests for computing a user's exclusion set."""

    def test_union_of_queue_and_rejections(self, db, config, rejections):
        """Test the queue titles, queue ISBNs and rejected titles are all excluded."""
        db.create_entry(USER, BookPayload(title="Dune", isbn="9780441013593"))
        db.create_entry(USER, BookPayload(title="Emma", status=EntryStatus.FINISHED))
        rejections.record("Foundation")

        exclusions = ExclusionResolver(db, config).compute(USER)

        assert exclusions.titles == {"dune", "emma", "foundation"}
        assert exclusions.isbns == {"9780441013593"}
        assert exclusions.excludes(title="FOUNDATION")
        assert exclusions.as_prompt_list() == ["dune", "emma", "foundation"]

    def test_other_users_not_included(self, db, config):
        db.create_entry("user-bob", BookPayload(title="Dune"))
        assert len(ExclusionResolver(db, config).compute(USER)) == 0

    def test_recomputed_each_call(self, db, config):
        resolver = ExclusionResolver(db, config)
        assert not resolver.compute(USER).excludes(title="Dune")

        db.create_entry(USER, BookPayload(title="Dune"))

        assert resolver.compute(USER).excludes(title="Dune")

    def test_shown_titles_are_excluded(self, db, config):
        """Test that titles already suggested this session are folded in."""
        exclusions = ExclusionResolver(db, config).compute(USER, shown_titles=["  Piranesi ", "", "EMMA"])

        assert exclusions.titles == {"piranesi", "emma"}
        assert exclusions.excludes(title="piranesi")

    def test_prompt_list_limit(self):
        exclusions = ExclusionSet(titles={"c", "a", "b"})
        assert exclusions.as_prompt_list(limit=2) == ["a", "b"]

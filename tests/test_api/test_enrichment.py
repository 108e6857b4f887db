"""Tests for BookEnricher."""

from unittest.mock import MagicMock

import pytest

from bookqueue.api.enrichment import BookEnricher
from bookqueue.api.openlibrary import BookMatch, OpenLibraryError
from bookqueue.db.schemas import BookPayload


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.search.return_value = [
        BookMatch(title="Dune", author="Frank Herbert", isbn="9780441013593", work_id="OL893415W")
    ]
    client.get_work_description.return_value = "Desert planet."
    return client


@pytest.fixture
def enricher(client, config) -> BookEnricher:
    return BookEnricher(client=client, config=config)


class TestDescribe:
    """Tests for description lookup."""

    def test_describe(self, enricher: BookEnricher, client):
        assert enricher.describe("Dune", "Frank Herbert") == "Desert planet."
        client.get_work_description.assert_called_once_with("OL893415W")

    def test_describe_no_match(self, enricher: BookEnricher, client):
        client.search.return_value = []
        assert enricher.describe("Nothing") is None

    def test_describe_failure_is_not_fatal(self, enricher: BookEnricher, client):
        client.search.side_effect = OpenLibraryError("Request timed out")
        assert enricher.describe("Dune") is None


class TestLookupIsbn:
    """Tests for ISBN lookup."""

    def test_lookup(self, enricher: BookEnricher, client):
        client.get_by_isbn.return_value = BookMatch(title="Dune")
        assert enricher.lookup_isbn("9780441013593").title == "Dune"

    def test_lookup_failure(self, enricher: BookEnricher, client):
        client.get_by_isbn.side_effect = OpenLibraryError("HTTP error: 500")
        assert enricher.lookup_isbn("9780441013593") is None


class TestEnrich:
    """Tests for filling in payloads."""

    def test_fills_isbn_and_description(self, enricher: BookEnricher):
        payload = enricher.enrich(BookPayload(title="Dune", author="Frank Herbert"))

        assert payload.isbn == "9780441013593"
        assert payload.description == "Desert planet."

    def test_keeps_supplied_fields(self, enricher: BookEnricher, client):
        original = BookPayload(title="Dune", isbn="9780441172719", description="Mine.")

        assert enricher.enrich(original) is original
        client.search.assert_not_called()
        client.get_by_isbn.assert_not_called()

    def test_isbn_given_uses_edition_description(self, enricher: BookEnricher, client):
        client.get_by_isbn.return_value = BookMatch(title="Dune", description="From the edition.")

        payload = enricher.enrich(BookPayload(title="Dune", isbn="9780441172719"))

        assert payload.isbn == "9780441172719"
        assert payload.description == "From the edition."
        client.search.assert_not_called()

    def test_description_given_only_fills_isbn(self, enricher: BookEnricher, client):
        payload = enricher.enrich(BookPayload(title="Dune", description="Mine."))

        assert payload.description == "Mine."
        assert payload.isbn == "9780441013593"
        client.get_work_description.assert_not_called()

    def test_failure_leaves_payload_unchanged(self, enricher: BookEnricher, client):
        client.search.side_effect = OpenLibraryError("Rate limited by Open Library")
        original = BookPayload(title="Dune")

        assert enricher.enrich(original) == original

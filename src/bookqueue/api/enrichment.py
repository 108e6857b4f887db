"""Optional metadata enrichment for books being added.

Every lookup here is best effort. An Open Library failure is logged and
treated as "nothing found", so the book is still added with whatever
fields the caller supplied.
"""

import logging
from typing import Callable, Optional, TypeVar

from ..config import Config, get_config
from ..db.schemas import BookPayload
from .openlibrary import BookMatch, OpenLibraryClient, OpenLibraryError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BookEnricher:
    """Fills a missing description or ISBN from Open Library."""

    def __init__(self, client: Optional[OpenLibraryClient] = None, config: Optional[Config] = None):
        config = config or get_config()
        self.client = client or OpenLibraryClient(timeout=config.openlibrary_timeout)

    def _safely(self, description: str, lookup: Callable[[], T]) -> Optional[T]:
        try:
            return lookup()
        except OpenLibraryError as e:
            logger.warning("%s failed: %s", description, e)
            return None

    def _best_match(self, title: str, author: Optional[str]) -> Optional[BookMatch]:
        matches = self._safely(
            f"Searching Open Library for '{title}'",
            lambda: self.client.search(title, author or None, limit=1),
        )
        return matches[0] if matches else None

    def describe(self, title: str, author: Optional[str] = None) -> Optional[str]:
        """Description for a title/author pair, or None."""
        match = self._best_match(title, author)
        if match is None:
            return None
        if match.description:
            return match.description
        if not match.work_id:
            return None
        return self._safely(
            f"Fetching description for '{title}'",
            lambda: self.client.get_work_description(match.work_id),
        )

    def lookup_isbn(self, isbn: str) -> Optional[BookMatch]:
        return self._safely(f"Looking up ISBN {isbn}", lambda: self.client.get_by_isbn(isbn))

    def enrich(self, payload: BookPayload) -> BookPayload:
        """Return ``payload`` with a missing ISBN and description filled in.

        Fields the caller supplied are never overwritten.
        """
        if payload.isbn and payload.description:
            return payload

        updates = {}
        if payload.isbn:
            edition = self.lookup_isbn(payload.isbn)
            if edition and edition.description:
                updates["description"] = edition.description
        else:
            match = self._best_match(payload.title, payload.author)
            if match is not None:
                if match.isbn:
                    updates["isbn"] = match.isbn
                if not payload.description and match.work_id:
                    description = self._safely(
                        f"Fetching description for '{payload.title}'",
                        lambda: self.client.get_work_description(match.work_id),
                    )
                    if description:
                        updates["description"] = description

        if payload.description:
            updates.pop("description", None)
        if not updates:
            return payload
        logger.debug("Enriched '%s' with %s", payload.title, ", ".join(sorted(updates)))
        return payload.model_copy(update=updates)

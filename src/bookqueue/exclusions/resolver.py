"""Exclusion set computation.

The exclusion set is everything a recommender must not suggest again to a
user: every title and ISBN currently on their reading list, every title
they rejected, and anything already suggested this session. Matching is
exact after case-folding; there is no fuzzy matching here.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..config import Config, get_config
from ..db.schemas import clean_isbn
from ..db.sqlite import Database
from ..store.optimistic import with_read_retry


def normalize_title(title: Optional[str]) -> str:
    """Case-fold a title for exact comparison."""
    return (title or "").strip().casefold()


@dataclass
class ExclusionSet:
    """Suppression set for one user."""

    titles: set[str] = field(default_factory=set)
    isbns: set[str] = field(default_factory=set)

    def excludes(self, title: Optional[str] = None, isbn: Optional[str] = None) -> bool:
        """True if a candidate book is suppressed.

        The ISBN is checked first when given; the title is checked otherwise
        and as a fallback.
        """
        isbn = clean_isbn(isbn)
        if isbn and isbn in self.isbns:
            return True
        return bool(title) and normalize_title(title) in self.titles

    def filter(self, candidates: list[dict]) -> list[dict]:
        """Drop candidates (dicts with ``title`` / ``isbn``) that are excluded."""
        return [
            c for c in candidates if not self.excludes(c.get("title"), c.get("isbn"))
        ]

    def as_prompt_list(self, limit: Optional[int] = None) -> list[str]:
        """Sorted titles, as handed to a recommendation generator."""
        titles = sorted(self.titles)
        return titles[:limit] if limit is not None else titles

    def __len__(self) -> int:
        return len(self.titles)


class ExclusionResolver:
    """Read-only projection over reading lists and rejection logs."""

    def __init__(self, db: Database, config: Optional[Config] = None):
        self.db = db
        self.config = config or get_config()

    def compute(self, user_id: str, shown_titles: Iterable[str] = ()) -> ExclusionSet:
        """Compute the exclusion set for ``user_id``.

        Unions queue titles, queue ISBNs and rejected titles. Recomputed on
        every call; nothing is cached.

        Args:
            user_id: Owner of the reading list and rejection log
            shown_titles: Titles already suggested during this session
        """
        entries = with_read_retry(
            lambda: self.db.list_entries(user_id), self.config, "Loading reading list"
        )
        rejections = with_read_retry(
            lambda: self.db.list_dismissed(user_id), self.config, "Loading rejections"
        )

        exclusions = ExclusionSet()
        for entry in entries:
            exclusions.titles.add(normalize_title(entry.title))
            if entry.isbn:
                exclusions.isbns.add(entry.isbn)
        for signal in rejections:
            exclusions.titles.add(normalize_title(signal.title))
        for title in shown_titles:
            exclusions.titles.add(normalize_title(title))

        exclusions.titles.discard("")
        return exclusions

    compute_exclusion_set = compute

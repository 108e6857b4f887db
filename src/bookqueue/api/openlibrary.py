"""Open Library client used to fill in book metadata.

Only the lookups the reading list needs: title search, ISBN lookup, work
descriptions and cover URLs. No API key required.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Optional

import requests

from ..db.schemas import clean_isbn

logger = logging.getLogger(__name__)

SEARCH_FIELDS = "key,title,author_name,first_publish_year,isbn,cover_i"


class OpenLibraryError(Exception):
    """Base exception for Open Library API errors."""

    pass


class OpenLibraryRateLimitError(OpenLibraryError):
    """Raised when rate limited by Open Library."""

    pass


class OpenLibraryNotFound(OpenLibraryError):
    """Raised for a 404 from Open Library."""

    pass


@dataclass
class BookMatch:
    """A book found on Open Library."""

    title: str
    author: str = ""
    isbn: Optional[str] = None
    work_id: Optional[str] = None  # e.g. OL45804W
    cover_url: Optional[str] = None
    first_publish_year: Optional[int] = None
    description: Optional[str] = None


def _text(value) -> Optional[str]:
    # Descriptions come back as either a string or {"type": ..., "value": ...}
    if isinstance(value, dict):
        value = value.get("value")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _pick_isbn(isbns: list[str]) -> Optional[str]:
    """Prefer an ISBN-13, fall back to an ISBN-10."""
    cleaned = [clean_isbn(i) for i in isbns or []]
    for isbn in cleaned:
        if isbn and len(isbn) == 13:
            return isbn
    for isbn in cleaned:
        if isbn and len(isbn) == 10:
            return isbn
    return None


class OpenLibraryClient:
    """Client for the Open Library API."""

    BASE_URL = "https://openlibrary.org"
    COVERS_URL = "https://covers.openlibrary.org"

    def __init__(self, timeout: int = 10, min_request_interval: float = 0.5):
        """Initialize client.

        Args:
            timeout: Request timeout in seconds
            min_request_interval: Minimum seconds between requests
        """
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": "BookQueue/0.1 (reading list enrichment)"})
        self._last_request_time = 0.0
        self._min_request_interval = min_request_interval

    def _rate_limit(self) -> None:
        elapsed = time.time() - self._last_request_time
        if elapsed < self._min_request_interval:
            time.sleep(self._min_request_interval - elapsed)
        self._last_request_time = time.time()

    def _get(self, path: str, params: Optional[dict] = None) -> dict:
        """GET a JSON document, mapping transport errors to OpenLibraryError."""
        self._rate_limit()
        url = f"{self.BASE_URL}{path}"
        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.Timeout as e:
            raise OpenLibraryError(f"Request to {path} timed out") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 404:
                raise OpenLibraryNotFound(f"Not found: {path}") from e
            if status == 429:
                raise OpenLibraryRateLimitError("Rate limited by Open Library") from e
            raise OpenLibraryError(f"HTTP error: {status}") from e
        except requests.exceptions.RequestException as e:
            raise OpenLibraryError(f"Request failed: {e}") from e
        except ValueError as e:
            raise OpenLibraryError(f"Invalid JSON from {path}") from e

    # ========================================================================
    # Lookups
    # ========================================================================

    def search(self, title: str, author: Optional[str] = None, limit: int = 5) -> list[BookMatch]:
        """Search for books by title, optionally narrowed by author.

        Args:
            title: Book title
            author: Author name
            limit: Maximum results to return

        Returns:
            List of BookMatch objects, best match first
        """
        params = {"title": title, "limit": limit, "fields": SEARCH_FIELDS}
        if author:
            params["author"] = author

        data = self._get("/search.json", params)
        matches = []
        for doc in data.get("docs", []):
            if not doc.get("title"):
                continue
            authors = doc.get("author_name") or []
            key = doc.get("key") or ""
            cover_id = doc.get("cover_i")
            matches.append(
                BookMatch(
                    title=doc["title"],
                    author=authors[0] if authors else "",
                    isbn=_pick_isbn(doc.get("isbn")),
                    work_id=key.split("/")[-1] if key else None,
                    cover_url=self.get_cover_url(cover_id=cover_id) if cover_id else None,
                    first_publish_year=doc.get("first_publish_year"),
                )
            )
        logger.debug("Open Library search %r returned %d matches", title, len(matches))
        return matches

    def get_by_isbn(self, isbn: str) -> Optional[BookMatch]:
        """Look up an edition by ISBN.

        Returns:
            BookMatch if found, None for an unknown ISBN
        """
        isbn = clean_isbn(isbn)
        if not isbn:
            return None
        try:
            data = self._get(f"/isbn/{isbn}.json")
        except OpenLibraryNotFound:
            return None

        author = ""
        author_refs = data.get("authors") or []
        if author_refs and author_refs[0].get("key"):
            author = self._author_name(author_refs[0]["key"]) or ""

        works = data.get("works") or []
        work_key = works[0].get("key", "") if works else ""

        year = None
        match = re.search(r"\d{4}", data.get("publish_date") or "")
        if match:
            year = int(match.group())

        covers = data.get("covers") or []
        return BookMatch(
            title=data.get("title") or "",
            author=author,
            isbn=_pick_isbn((data.get("isbn_13") or []) + (data.get("isbn_10") or [])) or isbn,
            work_id=work_key.split("/")[-1] if work_key else None,
            cover_url=self.get_cover_url(cover_id=covers[0]) if covers else None,
            first_publish_year=year,
            description=_text(data.get("description")),
        )

    def get_work_description(self, work_id: str) -> Optional[str]:
        try:
            data = self._get(f"/works/{work_id}.json")
        except OpenLibraryNotFound:
            return None
        return _text(data.get("description"))

    def _author_name(self, author_key: str) -> Optional[str]:
        try:
            return self._get(f"{author_key}.json").get("name")
        except OpenLibraryError as e:
            logger.debug("Could not fetch author %s: %s", author_key, e)
            return None

    def get_cover_url(
        self,
        isbn: Optional[str] = None,
        cover_id: Optional[int] = None,
        size: str = "M",
    ) -> Optional[str]:
        """Cover image URL for a cover id or ISBN.

        Args:
            isbn: Book ISBN
            cover_id: Cover id from search results
            size: S, M or L
        """
        if cover_id:
            return f"{self.COVERS_URL}/b/id/{cover_id}-{size}.jpg"
        isbn = clean_isbn(isbn)
        if isbn:
            return f"{self.COVERS_URL}/b/isbn/{isbn}-{size}.jpg"
        return None

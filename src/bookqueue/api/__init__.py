"""External metadata lookups."""

from .enrichment import BookEnricher
from .openlibrary import (
    BookMatch,
    OpenLibraryClient,
    OpenLibraryError,
    OpenLibraryNotFound,
    OpenLibraryRateLimitError,
)

__all__ = [
    "BookEnricher",
    "BookMatch",
    "OpenLibraryClient",
    "OpenLibraryError",
    "OpenLibraryNotFound",
    "OpenLibraryRateLimitError",
]

"""Database module for the SQLite backing store."""

from .models import (
    DismissedRecommendation,
    QueueEntry,
    ReceivedRecommendation,
    Recommendation,
    ShareLink,
    UserBookItem,
)
from .schemas import (
    BookPayload,
    EntryStatus,
    EntryUpdate,
    ReadingListEntry,
    ReceivedStatus,
    RecommendationView,
    UserBook,
)
from .sqlite import Database, get_db

__all__ = [
    "DismissedRecommendation",
    "QueueEntry",
    "ReceivedRecommendation",
    "Recommendation",
    "ShareLink",
    "UserBookItem",
    "BookPayload",
    "EntryStatus",
    "EntryUpdate",
    "ReadingListEntry",
    "ReceivedStatus",
    "RecommendationView",
    "UserBook",
    "Database",
    "get_db",
]

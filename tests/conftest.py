"""Pytest configuration and shared fixtures.

Provides an in-memory database, a fast-retry config and stores bound to a
signed-in test user.
"""

from pathlib import Path

import pytest

from bookqueue.app import BookQueueApp
from bookqueue.config import Config, reset_config
from bookqueue.db.schemas import BookPayload, EntryStatus
from bookqueue.db.sqlite import Database, reset_db
from bookqueue.exclusions.rejections import RejectionLog
from bookqueue.sharing.deferred import InMemoryDeferredStorage
from bookqueue.store.collection import CollectionStore
from bookqueue.store.reading_list import ReadingListStore
from bookqueue.transitions.engine import StatusTransitionEngine

USER = "user-alice"
OTHER_USER = "user-bob"


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config with no retry delay and paths under tmp_path."""
    return Config(
        db_path=Path(":memory:"),
        share_base_url="https://books.example.com",
        read_retry_max=3,
        read_retry_delay=0.0,
        deferred_path=tmp_path / "pending_intent.json",
        log_level="DEBUG",
        openlibrary_timeout=5,
    )


@pytest.fixture
def db():
    """Create an in-memory database for testing."""
    reset_db()
    reset_config()
    database = Database(":memory:")
    database.create_tables()
    yield database
    reset_db()


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def reading_list(db: Database, config: Config) -> ReadingListStore:
    return ReadingListStore(db, user_id=USER, config=config)


@pytest.fixture
def collection(db: Database, config: Config) -> CollectionStore:
    return CollectionStore(db, user_id=USER, config=config)


@pytest.fixture
def rejections(db: Database, config: Config) -> RejectionLog:
    return RejectionLog(db, user_id=USER, config=config)


@pytest.fixture
def engine(reading_list, collection, rejections) -> StatusTransitionEngine:
    return StatusTransitionEngine(reading_list, collection, rejections)


@pytest.fixture
def storage() -> InMemoryDeferredStorage:
    return InMemoryDeferredStorage()


@pytest.fixture
def app(db: Database, config: Config, storage: InMemoryDeferredStorage) -> BookQueueApp:
    """App with nobody signed in."""
    return BookQueueApp(db=db, config=config, storage=storage)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def dune() -> BookPayload:
    return BookPayload(title="Dune", author="Frank Herbert", isbn="9780441013593")


@pytest.fixture
def queued(reading_list: ReadingListStore):
    """Add books to the reading list and return the stored entries."""

    def _queued(title: str, author: str = "", status: EntryStatus = EntryStatus.WANT_TO_READ, **fields):
        result = reading_list.add({"title": title, "author": author, "status": status, **fields})
        assert result.success, result.error
        return result.data

    return _queued

"""Composition root: one set of stores per signed-in session."""

import logging
from typing import Optional, Union

from .api.enrichment import BookEnricher
from .config import Config, get_config
from .db.schemas import BookPayload
from .db.sqlite import Database, get_db
from .errors import NotFound, OperationResult, Unauthenticated
from .exclusions.rejections import RejectionLog
from .exclusions.resolver import ExclusionResolver
from .sharing.authoring import RecommendationManager
from .sharing.deferred import (
    DeferredActionStorage,
    JsonFileDeferredStorage,
    ShareAcceptanceFlow,
    drain_pending_intent,
)
from .sharing.resolution import ReceivedRecommendationManager, ShareResolver
from .store.collection import CollectionStore
from .store.reading_list import ReadingListStore
from .transitions.engine import StatusTransitionEngine
from .transitions.zones import QueueOrder

logger = logging.getLogger(__name__)


class BookQueueApp:
    """Wires the stores and workflows around the current user."""

    def __init__(
        self,
        db: Optional[Database] = None,
        config: Optional[Config] = None,
        storage: Optional[DeferredActionStorage] = None,
        enricher: Optional[BookEnricher] = None,
    ):
        """Initialize the app with nobody signed in.

        Args:
            db: Backing store (uses the global database if not provided)
            config: Configuration (uses global if not provided)
            storage: Deferred-intent storage (JSON file at BOOKQUEUE_DEFERRED_PATH by default)
            enricher: Optional metadata enrichment applied to new reading-list entries
        """
        self.config = config or get_config()
        self.db = db or get_db()
        self.storage = storage or JsonFileDeferredStorage(self.config.deferred_path)
        self.enricher = enricher

        self.reading_list = ReadingListStore(self.db, config=self.config)
        self.collection = CollectionStore(self.db, config=self.config)
        self.rejections = RejectionLog(self.db, config=self.config)
        self.engine = StatusTransitionEngine(self.reading_list, self.collection, self.rejections)
        self.queue_order = QueueOrder()
        self.shown_titles: set[str] = set()

        self.recommendations = RecommendationManager(self.db, config=self.config)
        self.received = ReceivedRecommendationManager(self.db, config=self.config)
        self.resolver = ShareResolver(self.db, config=self.config)
        self.acceptance = ShareAcceptanceFlow(
            self.db, self.reading_list, self.storage, received=self.received
        )
        self.exclusions = ExclusionResolver(self.db, config=self.config)

    @property
    def user_id(self) -> Optional[str]:
        return self.reading_list.user_id

    # ========================================================================
    # Session
    # ========================================================================

    def sign_in(self, user_id: str, display_name: Optional[str] = None) -> Optional[OperationResult]:
        """Start an authenticated session.

        Loads the user's lists and then runs any action parked before
        sign-up.

        Returns:
            Result of the deferred action, or None if there was none
        """
        self._set_user(user_id, display_name)
        for store in (self.reading_list, self.collection):
            result = store.set_user(user_id) or store.load()
            if not result.success:
                logger.error("Could not load %s for %s: %s", type(store).__name__, user_id, result.error)
        return drain_pending_intent(self.storage, self.reading_list)

    def sign_out(self) -> None:
        self._set_user(None, None)
        self.reading_list.set_user(None)
        self.collection.set_user(None)

    def _set_user(self, user_id: Optional[str], display_name: Optional[str]) -> None:
        if user_id != self.user_id:
            self.queue_order.reset()
            self.shown_titles.clear()
        self.rejections.user_id = user_id
        self.recommendations.user_id = user_id
        self.recommendations.display_name = display_name
        self.received.user_id = user_id

    # ========================================================================
    # Workflows
    # ========================================================================

    def add_book(self, book: Union[BookPayload, dict]) -> OperationResult:
        """Add a book to the reading list, enriching it when configured."""
        return self.reading_list.add(book, enricher=self.enricher)

    def recommend_from_collection(self, book_id: str, note: Optional[str] = None) -> OperationResult:
        """Create a recommendation from a collection item. The note may be empty."""
        book = self.collection.find(book_id)
        if book is None:
            error = Unauthenticated() if not self.user_id else NotFound(f"Book not found: {book_id}")
            return OperationResult.fail(error)
        return self.recommendations.create(
            {"title": book.title, "author": book.author, "isbn": book.isbn},
            note=note,
            require_note=False,
        )

    def open_share(self, token: str) -> OperationResult:
        """Resolve a share link as the current visitor."""
        return self.resolver.resolve(token, viewer_id=self.user_id)

    def accept_share(self, token: str) -> OperationResult:
        return self.acceptance.accept_from_share(token)

    def accept_received(self, received_id: str) -> OperationResult:
        return self.received.accept_into(received_id, self.reading_list)

    def mark_shown(self, titles: list[str]) -> None:
        """Remember titles suggested to the user so they are not suggested again."""
        self.shown_titles.update(t.strip() for t in titles if t and t.strip())

    def exclusion_titles(self) -> list[str]:
        """Titles a recommender should not suggest to the current user."""
        if not self.user_id:
            return []
        return self.exclusions.compute(self.user_id, self.shown_titles).as_prompt_list()

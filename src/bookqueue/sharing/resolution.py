"""Share-link resolution and the received-recommendation inbox.

Resolving a token always counts as a view, whoever opens it. A signed-in
visitor who is not the recommender also gets a pending inbox entry for the
link, created once per visitor.

Inbox entries move ``pending -> accepted | declined | archived`` and
``declined -> accepted``. Accepted and archived entries don't move again.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..config import Config, get_config
from ..db.schemas import (
    ReceivedCounts,
    ReceivedRecommendationResponse,
    ReceivedStatus,
    RecommendationView,
)
from ..db.sqlite import Database
from ..errors import (
    BookQueueError,
    InvalidTransition,
    NotFound,
    OperationResult,
    Unauthenticated,
    ValidationError,
)
from ..store.optimistic import remote_failure, with_read_retry

if TYPE_CHECKING:
    from ..store.reading_list import ReadingListStore

logger = logging.getLogger(__name__)

RECEIVED_TRANSITIONS: dict[ReceivedStatus, frozenset[ReceivedStatus]] = {
    ReceivedStatus.PENDING: frozenset(
        {ReceivedStatus.ACCEPTED, ReceivedStatus.DECLINED, ReceivedStatus.ARCHIVED}
    ),
    ReceivedStatus.DECLINED: frozenset({ReceivedStatus.ACCEPTED}),
    ReceivedStatus.ACCEPTED: frozenset(),
    ReceivedStatus.ARCHIVED: frozenset(),
}


class ShareResolver:
    """Turns a share token into a recommendation view."""

    def __init__(self, db: Database, config: Optional[Config] = None):
        self.db = db
        self.config = config or get_config()

    def resolve(self, token: str, viewer_id: Optional[str] = None) -> OperationResult:
        """Resolve a share token.

        Args:
            token: Share token from the URL
            viewer_id: Signed-in visitor, or None for an anonymous view

        Returns:
            OperationResult with a RecommendationView, or NotFound
        """
        try:
            token = (token or "").strip()
            if not token:
                raise NotFound("Invalid share link")

            try:
                record = self.db.record_share_view(token)
            except SQLAlchemyError as e:
                logger.error("Failed to resolve share link %s: %s", token, e)
                raise remote_failure(e) from e
            if record is None:
                raise NotFound("This recommendation could not be found")

            link, rec = record
            is_owner = viewer_id is not None and viewer_id == rec.user_id
            received_id = None
            if viewer_id and not is_owner:
                received_id = self._deliver(viewer_id, link, rec)

            return OperationResult.ok(
                RecommendationView(
                    token=link.share_token,
                    recommendation_id=rec.id,
                    recommender_name=link.recommender_name,
                    title=rec.title,
                    author=rec.author,
                    isbn=rec.isbn,
                    description=rec.description,
                    note=rec.note,
                    view_count=link.view_count,
                    is_owner=is_owner,
                    received_id=received_id,
                )
            )
        except BookQueueError as e:
            return OperationResult.fail(e)

    def _deliver(self, viewer_id, link, rec) -> Optional[str]:
        # The view itself succeeded; a failed inbox write only loses the inbox entry
        try:
            received = self.db.get_or_create_received(viewer_id, link, rec)
        except SQLAlchemyError as e:
            logger.warning("Could not add share %s to %s's inbox: %s", link.share_token, viewer_id, e)
            return None
        return received.id


class ReceivedRecommendationManager:
    """Inbox of recommendations shared with one user."""

    def __init__(self, db: Database, user_id: Optional[str] = None, config: Optional[Config] = None):
        self.db = db
        self.user_id = user_id
        self.config = config or get_config()

    def _require_user(self) -> str:
        if not self.user_id:
            raise Unauthenticated()
        return self.user_id

    def _require_own(self, received_id: str) -> ReceivedRecommendationResponse:
        user_id = self._require_user()
        try:
            received = self.db.get_received(received_id)
        except SQLAlchemyError as e:
            raise remote_failure(e) from e
        if received is None or received.recipient_id != user_id:
            raise NotFound(f"Received recommendation not found: {received_id}")
        return received

    # ========================================================================
    # Queries
    # ========================================================================

    def list(self, status: Optional[ReceivedStatus] = None) -> OperationResult:
        """Inbox entries, newest first, optionally filtered by status."""
        try:
            user_id = self._require_user()
            if status is not None:
                try:
                    status = ReceivedStatus(status)
                except ValueError as e:
                    raise ValidationError(f"Unknown status: {status}") from e
            items = with_read_retry(
                lambda: self.db.list_received(user_id, status),
                self.config,
                "Loading received recommendations",
            )
            return OperationResult.ok(items)
        except BookQueueError as e:
            return OperationResult.fail(e)

    def counts(self) -> OperationResult:
        result = self.list()
        if not result.success:
            return result
        counts = ReceivedCounts(total=len(result.data))
        for item in result.data:
            setattr(counts, item.status.value, getattr(counts, item.status.value) + 1)
        return OperationResult.ok(counts)

    # ========================================================================
    # Status changes
    # ========================================================================

    def _check(self, received: ReceivedRecommendationResponse, target: ReceivedStatus) -> None:
        if target not in RECEIVED_TRANSITIONS[received.status]:
            raise InvalidTransition(
                f"Cannot mark a {received.status.value} recommendation as {target.value}"
            )

    def _set_status(self, received_id: str, status: ReceivedStatus) -> ReceivedRecommendationResponse:
        try:
            updated = self.db.update_received_status(received_id, status)
        except SQLAlchemyError as e:
            logger.error("Failed to mark %s as %s: %s", received_id, status.value, e)
            raise remote_failure(e) from e
        if updated is None:
            raise NotFound(f"Received recommendation not found: {received_id}")
        return updated

    def accept(self, received_id: str, add_fn: Callable[[], Any]) -> OperationResult:
        """Accept a recommendation into the reading list.

        ``add_fn`` performs the reading-list add and runs first. If it fails
        the inbox entry keeps its status and the failure is returned.

        Args:
            received_id: Inbox entry to accept
            add_fn: Callable adding the book; may return an OperationResult or raise

        Returns:
            OperationResult with the accepted ReceivedRecommendationResponse
        """
        try:
            received = self._require_own(received_id)
            self._check(received, ReceivedStatus.ACCEPTED)

            added = add_fn()
            if isinstance(added, OperationResult) and not added.success:
                logger.error("Could not add '%s' to reading list: %s", received.title, added.error)
                return added

            accepted = self._set_status(received_id, ReceivedStatus.ACCEPTED)
            try:
                self.db.mark_share_accepted(received.share_link_id, self.user_id)
            except SQLAlchemyError as e:
                raise remote_failure(e) from e
            logger.info("Accepted recommendation '%s'", received.title)
            return OperationResult.ok(accepted)
        except BookQueueError as e:
            return OperationResult.fail(e)

    def accept_into(self, received_id: str, reading_list: "ReadingListStore") -> OperationResult:
        """Accept an inbox entry by adding its book to ``reading_list``."""
        try:
            received = self._require_own(received_id)
        except BookQueueError as e:
            return OperationResult.fail(e)
        return self.accept(received_id, lambda: reading_list.add(received.to_book_payload()))

    def decline(self, received_id: str) -> OperationResult:
        return self._transition(received_id, ReceivedStatus.DECLINED)

    def archive(self, received_id: str) -> OperationResult:
        return self._transition(received_id, ReceivedStatus.ARCHIVED)

    def _transition(self, received_id: str, status: ReceivedStatus) -> OperationResult:
        try:
            received = self._require_own(received_id)
            self._check(received, status)
            return OperationResult.ok(self._set_status(received_id, status))
        except BookQueueError as e:
            return OperationResult.fail(e)

    def delete(self, received_id: str) -> OperationResult:
        try:
            received = self._require_own(received_id)
            try:
                deleted = self.db.delete_received(received_id)
            except SQLAlchemyError as e:
                raise remote_failure(e) from e
            if not deleted:
                raise NotFound(f"Received recommendation not found: {received_id}")
            return OperationResult.ok(received)
        except BookQueueError as e:
            return OperationResult.fail(e)

    def save_from_share(self, token: str, reading_list: "ReadingListStore") -> OperationResult:
        """Accept a shared book straight from its link page.

        Files the link into the inbox if it is not there yet, then accepts it
        by adding the book to ``reading_list``. Does not count as a view.
        The recommender cannot save their own link.
        """
        try:
            user_id = self._require_user()
            try:
                link = self.db.get_share_link_by_token((token or "").strip())
                rec = self.db.get_recommendation(link.recommendation_id) if link else None
            except SQLAlchemyError as e:
                raise remote_failure(e) from e
            if link is None or rec is None:
                raise NotFound("This recommendation could not be found")
            if rec.user_id == user_id:
                raise ValidationError("You can't save your own recommendation")

            try:
                received = self.db.get_or_create_received(user_id, link, rec)
            except SQLAlchemyError as e:
                raise remote_failure(e) from e
        except BookQueueError as e:
            return OperationResult.fail(e)

        return self.accept(received.id, lambda: reading_list.add(received.to_book_payload()))

"""Recommendation authoring and share-link issuance."""

import logging
import secrets
from typing import Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from ..config import Config, get_config
from ..db.schemas import RecommendationCreate, RecommendationResponse, ShareLinkInfo
from ..db.sqlite import Database
from ..errors import BookQueueError, NotFound, OperationResult, Unauthenticated, ValidationError
from ..store.optimistic import remote_failure, validate_input, with_read_retry

logger = logging.getLogger(__name__)

DEFAULT_RECOMMENDER_NAME = "A friend"


def generate_share_token() -> str:
    """Mint an unguessable URL-safe token."""
    return secrets.token_urlsafe(16)


class RecommendationManager:
    """Creates recommendations for one user and issues their share links."""

    def __init__(
        self,
        db: Database,
        user_id: Optional[str] = None,
        display_name: Optional[str] = None,
        config: Optional[Config] = None,
    ):
        """Initialize the manager.

        Args:
            db: Backing store
            user_id: Current authenticated user, or None
            display_name: Name snapshotted onto new share links
            config: Configuration (uses global if not provided)
        """
        self.db = db
        self.user_id = user_id
        self.display_name = display_name
        self.config = config or get_config()

    def _require_user(self) -> str:
        if not self.user_id:
            raise Unauthenticated()
        return self.user_id

    def _require_own(self, recommendation_id: str) -> RecommendationResponse:
        user_id = self._require_user()
        try:
            rec = self.db.get_recommendation(recommendation_id)
        except SQLAlchemyError as e:
            raise remote_failure(e) from e
        # Someone else's recommendation looks the same as a missing one
        if rec is None or rec.user_id != user_id:
            raise NotFound(f"Recommendation not found: {recommendation_id}")
        return rec

    def share_url(self, token: str) -> str:
        return f"{self.config.share_base_url}/r/{token}"

    # ========================================================================
    # Recommendations
    # ========================================================================

    def create(
        self,
        book: Union[RecommendationCreate, dict],
        note: Optional[str] = None,
        require_note: bool = True,
    ) -> OperationResult:
        """Create a recommendation for a book.

        Args:
            book: Book fields (title, author, isbn, description)
            note: Free-text note; overrides any note on ``book``
            require_note: Reject a blank note. The collection card passes False.

        Returns:
            OperationResult with the RecommendationResponse
        """
        try:
            user_id = self._require_user()
            if isinstance(book, RecommendationCreate):
                book = book.model_dump()
            data = dict(book)
            if note is not None:
                data["note"] = note
            rec = validate_input(RecommendationCreate, data)
            if require_note and not rec.note:
                raise ValidationError("A note is required")

            try:
                created = self.db.create_recommendation(user_id, rec)
            except SQLAlchemyError as e:
                logger.error("Failed to create recommendation for '%s': %s", rec.title, e)
                raise remote_failure(e) from e
            logger.info("Created recommendation %s for '%s'", created.id, created.title)
            return OperationResult.ok(created)
        except BookQueueError as e:
            return OperationResult.fail(e)

    def update_note(self, recommendation_id: str, note: Optional[str]) -> OperationResult:
        try:
            self._require_own(recommendation_id)
            note = (note or "").strip() or None
            try:
                updated = self.db.update_recommendation_note(recommendation_id, note)
            except SQLAlchemyError as e:
                raise remote_failure(e) from e
            if updated is None:
                raise NotFound(f"Recommendation not found: {recommendation_id}")
            return OperationResult.ok(updated)
        except BookQueueError as e:
            return OperationResult.fail(e)

    def delete(self, recommendation_id: str) -> OperationResult:
        """Delete a recommendation. Its share link stops resolving."""
        try:
            rec = self._require_own(recommendation_id)
            try:
                deleted = self.db.delete_recommendation(recommendation_id)
            except SQLAlchemyError as e:
                raise remote_failure(e) from e
            if not deleted:
                raise NotFound(f"Recommendation not found: {recommendation_id}")
            return OperationResult.ok(rec)
        except BookQueueError as e:
            return OperationResult.fail(e)

    def list(self) -> OperationResult:
        try:
            user_id = self._require_user()
            recs = with_read_retry(
                lambda: self.db.list_recommendations(user_id),
                self.config,
                "Loading recommendations",
            )
            return OperationResult.ok(recs)
        except BookQueueError as e:
            return OperationResult.fail(e)

    # ========================================================================
    # Share links
    # ========================================================================

    def get_or_create_share_link(self, recommendation_id: str) -> OperationResult:
        """Return the recommendation's share link, minting one on first call.

        Repeated calls return the same token and never reset its view count.
        The recommender's display name is snapshotted when the link is minted.

        Returns:
            OperationResult with a ShareLinkInfo
        """
        try:
            self._require_own(recommendation_id)
            try:
                link = self.db.get_share_link_for(recommendation_id)
                if link is None:
                    name = (self.display_name or "").strip() or DEFAULT_RECOMMENDER_NAME
                    link = self.db.create_share_link(
                        recommendation_id, generate_share_token(), name
                    )
                    logger.info("Issued share link for recommendation %s", recommendation_id)
            except SQLAlchemyError as e:
                logger.error("Failed to issue share link for %s: %s", recommendation_id, e)
                raise remote_failure(e) from e

            return OperationResult.ok(
                ShareLinkInfo(
                    token=link.share_token,
                    url=self.share_url(link.share_token),
                    recommendation_id=recommendation_id,
                    view_count=link.view_count,
                )
            )
        except BookQueueError as e:
            return OperationResult.fail(e)

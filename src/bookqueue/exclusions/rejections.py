"""Append-only log of rejected books.

A rejection is written when a user says "not for me" or finishes a book
without keeping it. Signals are never updated or deleted; they only feed
the exclusion set.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..config import Config, get_config
from ..db.schemas import RejectionSignal
from ..db.sqlite import Database
from ..errors import BookQueueError, OperationResult, Unauthenticated, ValidationError
from ..store.optimistic import remote_failure, with_read_retry

logger = logging.getLogger(__name__)


class RejectionLog:
    """Writer and reader for one user's rejection signals."""

    def __init__(self, db: Database, user_id: Optional[str] = None, config: Optional[Config] = None):
        self.db = db
        self.user_id = user_id
        self.config = config or get_config()

    def record(self, title: str, author: Optional[str] = None) -> OperationResult:
        """Append a rejection signal for the current user."""
        try:
            if not self.user_id:
                raise Unauthenticated()
            title = (title or "").strip()
            if not title:
                raise ValidationError("Title is required")
            try:
                signal = self.db.add_dismissed(self.user_id, title, (author or "").strip())
            except SQLAlchemyError as e:
                logger.error("Failed to record rejection of '%s': %s", title, e)
                raise remote_failure(e) from e
            logger.info("Recorded rejection of '%s' for %s", title, self.user_id)
            return OperationResult.ok(signal)
        except BookQueueError as e:
            return OperationResult.fail(e)

    def signals(self, user_id: Optional[str] = None) -> list[RejectionSignal]:
        """All signals for ``user_id`` (defaults to the current user)."""
        user_id = user_id or self.user_id
        if not user_id:
            return []
        return with_read_retry(
            lambda: self.db.list_dismissed(user_id), self.config, "Loading rejections"
        )

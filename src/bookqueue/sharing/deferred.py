"""Deferred actions across the sign-up redirect.

An anonymous visitor who accepts a shared book has no reading list yet.
The book is parked as a ``PendingIntent`` and added the next time an
authenticated session starts. The intent is cleared before that single
attempt, so a failed add is not retried.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from ..db.schemas import BookPayload
from ..db.sqlite import Database
from ..errors import BookQueueError, NotFound, OperationResult, Unauthenticated
from ..store.optimistic import remote_failure, validate_input

if TYPE_CHECKING:
    from ..store.reading_list import ReadingListStore
    from .resolution import ReceivedRecommendationManager

logger = logging.getLogger(__name__)

ACCEPT_SHARED_RECOMMENDATION = "accept_shared_recommendation"


@dataclass
class PendingIntent:
    """An action to finish once the visitor is signed in."""

    type: str
    payload: dict
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PendingIntent":
        return cls(
            type=data["type"],
            payload=dict(data.get("payload") or {}),
            created_at=data.get("created_at") or datetime.now(timezone.utc).isoformat(),
        )


class DeferredActionStorage(ABC):
    """Holds at most one pending intent."""

    @abstractmethod
    def put(self, intent: PendingIntent) -> None:
        ...

    @abstractmethod
    def get(self) -> Optional[PendingIntent]:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class InMemoryDeferredStorage(DeferredActionStorage):
    def __init__(self):
        self._intent: Optional[PendingIntent] = None

    def put(self, intent: PendingIntent) -> None:
        self._intent = intent

    def get(self) -> Optional[PendingIntent]:
        return self._intent

    def clear(self) -> None:
        self._intent = None


class JsonFileDeferredStorage(DeferredActionStorage):
    """Keeps the pending intent in a JSON file so it survives a restart."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def put(self, intent: PendingIntent) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(intent.to_dict(), f, indent=2)

    def get(self) -> Optional[PendingIntent]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                return PendingIntent.from_dict(json.load(f))
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable pending intent at %s: %s", self.path, e)
            return None

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class ShareAcceptanceFlow:
    """Accept button on a shared-recommendation page."""

    def __init__(
        self,
        db: Database,
        reading_list: "ReadingListStore",
        storage: DeferredActionStorage,
        received: Optional["ReceivedRecommendationManager"] = None,
    ):
        """Initialize the flow.

        Args:
            db: Backing store, used to look the token up
            reading_list: Visitor's reading list (user may be None)
            storage: Where anonymous acceptances are parked
            received: Visitor's inbox; when given, a signed-in accept also
                marks the inbox entry and share link accepted
        """
        self.db = db
        self.reading_list = reading_list
        self.storage = storage
        self.received = received

    def accept_from_share(self, token: str) -> OperationResult:
        """Add the shared book, or park it until the visitor signs up.

        Returns:
            The add result when signed in. Otherwise an Unauthenticated
            failure telling the caller to redirect to sign-up.
        """
        if self.reading_list.user_id:
            if self.received is not None:
                return self.received.save_from_share(token, self.reading_list)
            try:
                payload = self._payload_for(token)
            except BookQueueError as e:
                return OperationResult.fail(e)
            return self.reading_list.add(payload)

        try:
            payload = self._payload_for(token)
        except BookQueueError as e:
            return OperationResult.fail(e)
        self.storage.put(
            PendingIntent(
                type=ACCEPT_SHARED_RECOMMENDATION,
                payload=payload.model_dump(mode="json", exclude_none=True),
            )
        )
        logger.info("Deferred accepting '%s' until sign-in", payload.title)
        return OperationResult.fail(Unauthenticated("Sign up to save this book"))

    def _payload_for(self, token: str) -> BookPayload:
        try:
            link = self.db.get_share_link_by_token((token or "").strip())
            rec = self.db.get_recommendation(link.recommendation_id) if link else None
        except SQLAlchemyError as e:
            raise remote_failure(e) from e
        if rec is None:
            raise NotFound("This recommendation could not be found")
        return BookPayload(
            title=rec.title, author=rec.author, isbn=rec.isbn, description=rec.description
        )


def drain_pending_intent(
    storage: DeferredActionStorage, reading_list: "ReadingListStore"
) -> Optional[OperationResult]:
    """Run the parked intent, if any, for the now signed-in user.

    The intent is cleared before the attempt. Returns None when there was
    nothing to do.
    """
    intent = storage.get()
    if intent is None:
        return None
    storage.clear()

    if intent.type != ACCEPT_SHARED_RECOMMENDATION:
        logger.warning("Discarding unknown pending intent %r", intent.type)
        return None

    try:
        payload = validate_input(BookPayload, intent.payload)
    except BookQueueError as e:
        logger.error("Discarding malformed pending intent: %s", e)
        return OperationResult.fail(e)

    result = reading_list.add(payload)
    if result.success:
        logger.info("Saved deferred book '%s'", payload.title)
    else:
        logger.error("Could not save deferred book '%s': %s", payload.title, result.error)
    return result

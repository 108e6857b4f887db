"""Optimistic local lists with centralized rollback.

Every mutation is applied to the in-memory list before the backing store
is called. If the store call fails, the list is restored to the snapshot
taken before the mutation and the original error is raised to the caller.
Reads retry a few times with linear backoff; writes are attempted once.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from ..config import Config, get_config
from ..db.sqlite import Database
from ..errors import (
    BookQueueError,
    NotFound,
    OperationResult,
    RemoteFailure,
    Unauthenticated,
    ValidationError,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_input(model: Type[ModelT], data: Any) -> ModelT:
    """Coerce a dict or model into ``model``, raising our ValidationError."""
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise ValidationError(messages) from e


def remote_failure(e: SQLAlchemyError) -> RemoteFailure:
    """Wrap a SQLAlchemy error, keeping the driver's message."""
    orig = getattr(e, "orig", None)
    return RemoteFailure(str(orig) if orig is not None else str(e))


def with_read_retry(operation: Callable[[], Any], config: Config, description: str) -> Any:
    """Run a read, retrying with linear backoff on store errors.

    Args:
        operation: Callable performing the read
        config: Supplies the attempt count and base delay
        description: Used in log messages

    Returns:
        Result of operation
    """
    attempts = max(1, config.read_retry_max)
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except SQLAlchemyError as e:
            if attempt == attempts:
                logger.error("%s failed after %d attempts: %s", description, attempts, e)
                raise remote_failure(e) from e
            delay = config.read_retry_delay * attempt
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.1fs",
                description,
                attempt,
                attempts,
                delay,
            )
            time.sleep(delay)


@dataclass
class Mutation:
    """A single optimistic change to an ``OptimisticList``."""

    description: str
    previous_snapshot: tuple
    change: Callable[[list], list]
    target: "OptimisticList"

    def apply(self) -> None:
        self.target._items = self.change(list(self.previous_snapshot))

    def rollback(self) -> None:
        self.target._items = list(self.previous_snapshot)
        logger.debug("Rolled back %s", self.description)


class OptimisticList:
    """In-memory list of one user's records, mirrored to the database."""

    def __init__(
        self,
        db: Database,
        user_id: Optional[str] = None,
        config: Optional[Config] = None,
    ):
        """Initialize the list.

        Args:
            db: Backing store
            user_id: Current authenticated user, or None
            config: Configuration (uses global if not provided)
        """
        self.db = db
        self.user_id = user_id
        self.config = config or get_config()
        self._items: list = []

    @property
    def items(self) -> list:
        return list(self._items)

    def snapshot(self) -> tuple:
        """Copy of the current local state."""
        return tuple(item.model_copy() for item in self._items)

    def _find(self, item_id: str):
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def _require_user(self) -> str:
        if not self.user_id:
            raise Unauthenticated()
        return self.user_id

    def _require_item(self, item_id: str):
        item = self._find(item_id)
        if item is None:
            raise NotFound(f"Not found: {item_id}")
        return item

    # ========================================================================
    # Mutations
    # ========================================================================

    def mutation(self, description: str, change: Callable[[list], list]) -> Mutation:
        """Build a mutation against the current state."""
        return Mutation(
            description=description,
            previous_snapshot=self.snapshot(),
            change=change,
            target=self,
        )

    def _commit(self, mutation: Mutation, remote: Callable[[], Any]) -> Any:
        """Apply ``mutation`` locally, then run ``remote`` once.

        On failure the local list is rolled back before the error propagates.
        """
        mutation.apply()
        try:
            return remote()
        except SQLAlchemyError as e:
            mutation.rollback()
            logger.error("%s failed: %s", mutation.description, e)
            raise remote_failure(e) from e
        except Exception as e:
            mutation.rollback()
            logger.error("%s failed: %s", mutation.description, e)
            raise

    def _replace(self, item_id: str, replacement) -> None:
        """Swap a local item for the server's version, without a mutation."""
        self._items = [replacement if item.id == item_id else item for item in self._items]

    # ========================================================================
    # Reads
    # ========================================================================

    def _with_read_retry(self, operation: Callable[[], Any], description: str) -> Any:
        return with_read_retry(operation, self.config, description)

    def _fetch(self, user_id: str) -> list:
        raise NotImplementedError

    def load(self) -> OperationResult:
        """Reload the list from the backing store.

        Returns:
            OperationResult with the loaded items
        """
        if not self.user_id:
            self._items = []
            return OperationResult.ok([])

        try:
            user_id = self.user_id
            self._items = self._with_read_retry(
                lambda: self._fetch(user_id), f"Loading {type(self).__name__}"
            )
        except BookQueueError as e:
            return OperationResult.fail(e)
        return OperationResult.ok(self.items)

    def set_user(self, user_id: Optional[str]) -> Optional[OperationResult]:
        """Switch the current user. A change of owner triggers a full reload."""
        if user_id == self.user_id:
            return None
        self.user_id = user_id
        self._items = []
        return self.load()

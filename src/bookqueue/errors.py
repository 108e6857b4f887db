"""Error taxonomy and operation results.

Internal helpers raise the exceptions below. Public store and workflow
methods catch them and hand back an ``OperationResult`` so callers can
decide per call whether to roll back their own UI state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Category of a failed operation."""

    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    REMOTE_FAILURE = "remote_failure"
    VALIDATION = "validation"


class BookQueueError(Exception):
    """Base exception for bookqueue errors."""

    kind: ErrorKind = ErrorKind.REMOTE_FAILURE


class Unauthenticated(BookQueueError):
    """Raised when a mutating operation runs without a current user."""

    kind = ErrorKind.UNAUTHENTICATED

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class NotFound(BookQueueError):
    """Raised when an entry, recommendation or share token does not exist."""

    kind = ErrorKind.NOT_FOUND


class Conflict(BookQueueError):
    """Raised when a create collides with an existing record."""

    kind = ErrorKind.CONFLICT


class RemoteFailure(BookQueueError):
    """Raised when the backing store call failed or timed out."""

    kind = ErrorKind.REMOTE_FAILURE


class ValidationError(BookQueueError):
    """Raised when input is rejected before reaching the store."""

    kind = ErrorKind.VALIDATION


class InvalidTransition(ValidationError):
    """Raised when a status transition is not allowed from the current state."""

    pass


@dataclass
class OperationResult:
    """Outcome of a store-mutating operation."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: BookQueueError) -> "OperationResult":
        return cls(success=False, error=str(exc), kind=exc.kind)

    @property
    def is_unauthenticated(self) -> bool:
        return self.kind == ErrorKind.UNAUTHENTICATED

    def unwrap(self) -> Any:
        """Return data, or raise the error this result carries."""
        if self.success:
            return self.data
        exc_type = _EXCEPTIONS.get(self.kind, BookQueueError)
        raise exc_type(self.error or "Operation failed")


_EXCEPTIONS = {
    ErrorKind.UNAUTHENTICATED: Unauthenticated,
    ErrorKind.NOT_FOUND: NotFound,
    ErrorKind.CONFLICT: Conflict,
    ErrorKind.REMOTE_FAILURE: RemoteFailure,
    ErrorKind.VALIDATION: ValidationError,
}

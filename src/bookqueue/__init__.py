"""bookqueue - reading list, collection and book-recommendation sharing core."""

from .app import BookQueueApp
from .errors import (
    BookQueueError,
    Conflict,
    ErrorKind,
    InvalidTransition,
    NotFound,
    OperationResult,
    RemoteFailure,
    Unauthenticated,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "BookQueueApp",
    "BookQueueError",
    "Conflict",
    "ErrorKind",
    "InvalidTransition",
    "NotFound",
    "OperationResult",
    "RemoteFailure",
    "Unauthenticated",
    "ValidationError",
    "__version__",
]

"""Optimistic in-memory stores for reading lists and collections."""

from .collection import CollectionStore
from .optimistic import Mutation, OptimisticList
from .reading_list import ReadingListStore

__all__ = [
    "CollectionStore",
    "Mutation",
    "OptimisticList",
    "ReadingListStore",
]

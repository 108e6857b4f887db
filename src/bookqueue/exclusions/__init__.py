"""Exclusion set and rejection log."""

from .rejections import RejectionLog
from .resolver import ExclusionResolver, ExclusionSet, normalize_title

__all__ = [
    "ExclusionResolver",
    "ExclusionSet",
    "RejectionLog",
    "normalize_title",
]

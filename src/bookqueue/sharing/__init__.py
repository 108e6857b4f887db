"""Recommendations, share links and the received-recommendation inbox."""

from .authoring import DEFAULT_RECOMMENDER_NAME, RecommendationManager, generate_share_token
from .deferred import (
    ACCEPT_SHARED_RECOMMENDATION,
    DeferredActionStorage,
    InMemoryDeferredStorage,
    JsonFileDeferredStorage,
    PendingIntent,
    ShareAcceptanceFlow,
    drain_pending_intent,
)
from .resolution import RECEIVED_TRANSITIONS, ReceivedRecommendationManager, ShareResolver

__all__ = [
    "ACCEPT_SHARED_RECOMMENDATION",
    "DEFAULT_RECOMMENDER_NAME",
    "DeferredActionStorage",
    "InMemoryDeferredStorage",
    "JsonFileDeferredStorage",
    "PendingIntent",
    "RECEIVED_TRANSITIONS",
    "ReceivedRecommendationManager",
    "RecommendationManager",
    "ShareAcceptanceFlow",
    "ShareResolver",
    "drain_pending_intent",
    "generate_share_token",
]

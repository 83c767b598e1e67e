"""Services - business logic."""

from .intent_classifier import Intent, classify
from .owner_resolver import NotFound, OwnerResolver
from .conversation_engine import ConversationEngine, EventOutcome, EventResult
from .follow_up_scheduler import FollowUpScheduler, compute_tier

__all__ = [
    "Intent",
    "classify",
    "NotFound",
    "OwnerResolver",
    "ConversationEngine",
    "EventOutcome",
    "EventResult",
    "FollowUpScheduler",
    "compute_tier",
]

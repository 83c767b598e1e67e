"""Database models (Data Objects) - map to database tables."""

from .conversation import (
    ConversationDO,
    ConversationState,
    ReminderTier,
    TERMINAL_STATES,
    CLAIM_REQUEST,
    CLARIFICATION,
)
from .tenant import TenantDO
from .event import ConversationEventDO

__all__ = [
    "ConversationDO",
    "ConversationState",
    "ReminderTier",
    "TERMINAL_STATES",
    "CLAIM_REQUEST",
    "CLARIFICATION",
    "TenantDO",
    "ConversationEventDO",
]

"""Conversation database model."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from ...utils.clock import utcnow


class ConversationState(str, Enum):
    """Ownership negotiation states. IDLE is virtual: no record exists."""

    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    DECLINED_SEARCHING = "declined_searching"
    CLAIMED = "claimed"
    UNASSIGNABLE = "unassignable"
    CLOSED = "closed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({
    ConversationState.CLAIMED,
    ConversationState.UNASSIGNABLE,
    ConversationState.CLOSED,
})


class ReminderTier(str, Enum):
    """Named follow-up points relative to a task deadline."""

    HALF_TIME = "half_time"
    NEAR_DEADLINE = "near_deadline"


CLAIM_REQUEST = "claim_request"
CLARIFICATION = "clarification"


@dataclass
class ConversationDO:
    """Conversation data object - maps to conversations table."""

    tenant_id: str
    task_id: str
    task_name: str
    state: ConversationState = ConversationState.AWAITING_RESPONSE
    candidate_owner_ref: Optional[str] = None
    candidate_owner_name: Optional[str] = None
    declined_owner_refs: List[str] = field(default_factory=list)
    task_deadline: Optional[datetime] = None
    last_message_sent_at: Optional[datetime] = None
    last_reply_received_at: Optional[datetime] = None
    follow_ups_sent: List[str] = field(default_factory=list)
    pending_message: Optional[str] = None
    resolution_note: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

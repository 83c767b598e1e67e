"""Conversation event database model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ...utils.clock import utcnow


@dataclass
class ConversationEventDO:
    """Conversation event data object - maps to conversation_events table."""

    tenant_id: str
    task_id: str
    event_type: str
    from_state: Optional[str] = None
    to_state: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None

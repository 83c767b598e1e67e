"""Conversation API models."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..db.database_models.conversation import ConversationState


class ConversationResponse(BaseModel):
    """Response model for a conversation record."""

    tenant_id: str = Field(description="Tenant ID")
    task_id: str = Field(description="Task ID in the task tracker")
    task_name: str = Field(description="Task name")
    state: ConversationState = Field(description="Conversation state")
    candidate_owner_ref: Optional[str] = Field(None, description="Chat user currently asked to claim the task")
    candidate_owner_name: Optional[str] = Field(None, description="Owner name from the mapping sheet")
    declined_owner_refs: List[str] = Field(default_factory=list, description="Candidates excluded from resolution")
    task_deadline: Optional[datetime] = Field(None, description="Task deadline (UTC)")
    last_message_sent_at: Optional[datetime] = Field(None, description="Last confirmed delivery (UTC)")
    last_reply_received_at: Optional[datetime] = Field(None, description="Last reply from the candidate (UTC)")
    follow_ups_sent: List[str] = Field(default_factory=list, description="Reminder tiers already issued")
    pending_message: Optional[str] = Field(None, description="Message reserved but not yet confirmed as sent")
    resolution_note: Optional[str] = Field(None, description="Why the task is unassignable")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")


class ConversationListResponse(BaseModel):
    """Response model for listing conversations."""

    conversations: List[ConversationResponse] = Field(description="List of conversations")
    total: int = Field(description="Total number of conversations")


class ConversationEventResponse(BaseModel):
    """Response model for one audit event."""

    id: int = Field(description="Event ID")
    event_type: str = Field(description="What happened")
    from_state: Optional[str] = Field(None, description="State before the event")
    to_state: Optional[str] = Field(None, description="State after the event")
    detail: Dict[str, Any] = Field(default_factory=dict, description="Event details")
    created_at: datetime = Field(description="Event timestamp")


class ConversationEventListResponse(BaseModel):
    """Response model for a conversation's audit log."""

    tenant_id: str = Field(description="Tenant ID")
    task_id: str = Field(description="Task ID")
    events: List[ConversationEventResponse] = Field(description="Events in chronological order")
    total: int = Field(description="Number of events returned")

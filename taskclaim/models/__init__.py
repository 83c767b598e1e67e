"""Pydantic models for API request/response."""

from .conversation import (
    ConversationResponse,
    ConversationListResponse,
    ConversationEventResponse,
    ConversationEventListResponse,
)
from .event import (
    TaskAssignedRequest,
    ReplyRequest,
    ChatMessageRequest,
    EventResultResponse,
    SweepResponse,
)

__all__ = [
    "ConversationResponse",
    "ConversationListResponse",
    "ConversationEventResponse",
    "ConversationEventListResponse",
    "TaskAssignedRequest",
    "ReplyRequest",
    "ChatMessageRequest",
    "EventResultResponse",
    "SweepResponse",
]

"""Inbound event API models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .conversation import ConversationResponse


class TaskAssignedRequest(BaseModel):
    """Request model for a task assigned to the bot account."""

    task_name: str = Field(description="Task name as shown in the task tracker", min_length=1, max_length=500)
    deadline: Optional[datetime] = Field(None, description="Task deadline; naive values are taken as UTC")


class ReplyRequest(BaseModel):
    """Request model for a reply to a claim request."""

    text: str = Field(description="Reply text", max_length=4000)
    user_ref: Optional[str] = Field(None, description="Chat user who replied")


class ChatMessageRequest(BaseModel):
    """Request model for a direct message received by the chat bot."""

    user_ref: str = Field(description="Chat user who sent the message", min_length=1)
    text: str = Field(description="Message text", max_length=4000)


class EventResultResponse(BaseModel):
    """Response model for the result of an inbound event."""

    outcome: str = Field(description="What the event did")
    conversation: Optional[ConversationResponse] = Field(None, description="Conversation after the event")


class SweepResponse(BaseModel):
    """Response model for a manual scheduler sweep."""

    reminders_sent: int = Field(description="Reminders sent by this sweep")

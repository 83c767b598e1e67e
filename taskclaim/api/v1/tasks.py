"""Inbound event routes - V1.

Task-tracker webhooks and chat-bot DMs are forwarded here as plain JSON.
"""

from fastapi import APIRouter, Depends, HTTPException

from .conversations import get_tenant_repo, require_tenant, to_response
from ...db import TenantRepository
from ...db.database_models import TenantDO
from ...models.event import (
    ChatMessageRequest,
    EventResultResponse,
    ReplyRequest,
    TaskAssignedRequest,
)
from ...services.conversation_engine import ConversationEngine, EventResult

router = APIRouter(prefix="/api/v1", tags=["Events"])

# Conversation engine (set by main.py)
engine: ConversationEngine = None


def get_engine() -> ConversationEngine:
    """Dependency to get the conversation engine."""
    if engine is None:
        raise HTTPException(status_code=500, detail="Conversation engine not initialized")
    return engine


def _to_response(result: EventResult) -> EventResultResponse:
    return EventResultResponse(
        outcome=result.outcome.value,
        conversation=to_response(result.conversation) if result.conversation else None
    )


@router.post("/tenants/{tenant_id}/tasks/{task_id}/assigned", response_model=EventResultResponse)
async def task_assigned(
    task_id: str,
    request: TaskAssignedRequest,
    tenant: TenantDO = Depends(require_tenant),
    conv_engine: ConversationEngine = Depends(get_engine)
):
    """A task was assigned to the bot account: find its owner and ask them."""
    result = await conv_engine.on_task_assigned(tenant.id, task_id, request.task_name, request.deadline)
    return _to_response(result)


@router.post("/tenants/{tenant_id}/tasks/{task_id}/replies", response_model=EventResultResponse)
async def reply_received(
    task_id: str,
    request: ReplyRequest,
    tenant: TenantDO = Depends(require_tenant),
    conv_engine: ConversationEngine = Depends(get_engine)
):
    """The candidate replied to a claim request."""
    result = await conv_engine.on_reply_received(tenant.id, task_id, request.text, request.user_ref)
    return _to_response(result)


@router.post("/tenants/{tenant_id}/tasks/{task_id}/closed", response_model=EventResultResponse)
async def task_closed(
    task_id: str,
    tenant: TenantDO = Depends(require_tenant),
    conv_engine: ConversationEngine = Depends(get_engine)
):
    """The task was completed or deleted in the task tracker."""
    result = await conv_engine.on_task_closed(tenant.id, task_id)
    return _to_response(result)


@router.post("/chat/workspaces/{workspace_id}/messages", response_model=EventResultResponse)
async def chat_message(
    workspace_id: str,
    request: ChatMessageRequest,
    tenants: TenantRepository = Depends(get_tenant_repo),
    conv_engine: ConversationEngine = Depends(get_engine)
):
    """A DM reached the chat bot; route it to the conversation awaiting that user."""
    tenant = tenants.get_by_chat_workspace(workspace_id)
    if tenant is None:
        raise HTTPException(status_code=404, detail=f"No tenant for chat workspace: {workspace_id}")

    result = await conv_engine.on_direct_message(tenant.id, request.user_ref, request.text)
    return _to_response(result)

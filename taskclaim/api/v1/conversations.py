"""Conversation REST API routes - V1."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ...db import ConversationRepository, DatabaseConnection, EventLogRepository, TenantRepository
from ...db.database_models import ConversationDO, ConversationEventDO, ConversationState, TenantDO
from ...models.conversation import (
    ConversationEventListResponse,
    ConversationEventResponse,
    ConversationListResponse,
    ConversationResponse,
)

router = APIRouter(prefix="/api/v1/tenants/{tenant_id}/conversations", tags=["Conversations"])

# Database connection (set by main.py)
db_conn: DatabaseConnection = None


def get_conversation_repo() -> ConversationRepository:
    """Dependency to get conversation repository."""
    if db_conn is None:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return ConversationRepository(db_conn.conn)


def get_event_repo() -> EventLogRepository:
    """Dependency to get event log repository."""
    if db_conn is None:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return EventLogRepository(db_conn.conn)


def get_tenant_repo() -> TenantRepository:
    """Dependency to get tenant repository."""
    if db_conn is None:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return TenantRepository(db_conn.conn)


def require_tenant(tenant_id: str, tenants: TenantRepository = Depends(get_tenant_repo)) -> TenantDO:
    """Dependency resolving the tenant path parameter; 404 when unknown."""
    tenant = tenants.get_tenant(tenant_id)
    if tenant is None:
        raise HTTPException(status_code=404, detail=f"Tenant not found: {tenant_id}")
    return tenant


def to_response(conv: ConversationDO) -> ConversationResponse:
    """Convert ConversationDO to ConversationResponse."""
    return ConversationResponse(
        tenant_id=conv.tenant_id,
        task_id=conv.task_id,
        task_name=conv.task_name,
        state=conv.state,
        candidate_owner_ref=conv.candidate_owner_ref,
        candidate_owner_name=conv.candidate_owner_name,
        declined_owner_refs=conv.declined_owner_refs,
        task_deadline=conv.task_deadline,
        last_message_sent_at=conv.last_message_sent_at,
        last_reply_received_at=conv.last_reply_received_at,
        follow_ups_sent=conv.follow_ups_sent,
        pending_message=conv.pending_message,
        resolution_note=conv.resolution_note,
        created_at=conv.created_at,
        updated_at=conv.updated_at
    )


def _to_event_response(event: ConversationEventDO) -> ConversationEventResponse:
    return ConversationEventResponse(
        id=event.id,
        event_type=event.event_type,
        from_state=event.from_state,
        to_state=event.to_state,
        detail=event.detail,
        created_at=event.created_at
    )


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    state: Optional[ConversationState] = Query(None, description="Filter by state"),
    tenant: TenantDO = Depends(require_tenant),
    repo: ConversationRepository = Depends(get_conversation_repo)
):
    """List a tenant's conversations, optionally filtered by state."""
    conversations = repo.list_by_tenant(tenant.id, state)
    return ConversationListResponse(
        conversations=[to_response(c) for c in conversations],
        total=len(conversations)
    )


@router.get("/{task_id}", response_model=ConversationResponse)
async def get_conversation(
    task_id: str,
    tenant: TenantDO = Depends(require_tenant),
    repo: ConversationRepository = Depends(get_conversation_repo)
):
    """Get one conversation."""
    conversation = repo.get(tenant.id, task_id)
    if not conversation:
        raise HTTPException(status_code=404, detail=f"Conversation not found: {task_id}")
    return to_response(conversation)


@router.get("/{task_id}/events", response_model=ConversationEventListResponse)
async def list_conversation_events(
    task_id: str,
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of events"),
    tenant: TenantDO = Depends(require_tenant),
    repo: ConversationRepository = Depends(get_conversation_repo),
    events: EventLogRepository = Depends(get_event_repo)
):
    """Get the audit log of one conversation."""
    if not repo.get(tenant.id, task_id):
        raise HTTPException(status_code=404, detail=f"Conversation not found: {task_id}")

    items = events.list_for_task(tenant.id, task_id, limit)
    return ConversationEventListResponse(
        tenant_id=tenant.id,
        task_id=task_id,
        events=[_to_event_response(e) for e in items],
        total=len(items)
    )

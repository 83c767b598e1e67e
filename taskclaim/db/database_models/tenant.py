"""Tenant database model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ...utils.clock import utcnow


@dataclass
class TenantDO:
    """Tenant data object - maps to tenants table.

    Tokens and keys are opaque values handed to the integrations as-is.
    """

    id: str
    name: str
    chat_workspace_id: str
    task_bot_user_id: str
    chat_bot_token: Optional[str] = None
    task_workspace_id: Optional[str] = None
    task_api_token: Optional[str] = None
    sheet_id: Optional[str] = None
    sheet_api_key: Optional[str] = None
    admin_user_ref: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

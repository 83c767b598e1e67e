"""Integrations - collaborator contracts and platform clients."""

from .base import (
    ChatClient,
    SheetClient,
    TaskTracker,
    TenantRegistry,
    SendResult,
    OwnerMapping,
    OwnerCandidate,
    normalize_task_name,
    match_owner_rows,
)

__all__ = [
    "ChatClient",
    "SheetClient",
    "TaskTracker",
    "TenantRegistry",
    "SendResult",
    "OwnerMapping",
    "OwnerCandidate",
    "normalize_task_name",
    "match_owner_rows",
]

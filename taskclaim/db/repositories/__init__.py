"""Repository layer for data access."""

from .conversation import ConversationRepository
from .event import EventLogRepository
from .tenant import TenantRepository

__all__ = ["ConversationRepository", "EventLogRepository", "TenantRepository"]

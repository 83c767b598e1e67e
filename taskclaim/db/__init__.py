"""Database package - connection, models, and repositories."""

from .connection import DatabaseConnection
from .repositories.conversation import ConversationRepository
from .repositories.event import EventLogRepository
from .repositories.tenant import TenantRepository

__all__ = [
    "DatabaseConnection",
    "ConversationRepository",
    "EventLogRepository",
    "TenantRepository",
]

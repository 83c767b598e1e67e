"""API v1 package."""

from .tasks import router as tasks_router
from .conversations import router as conversations_router
from .scheduler import router as scheduler_router

__all__ = ["tasks_router", "conversations_router", "scheduler_router"]

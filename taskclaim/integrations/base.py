"""Collaborator contracts consumed by the conversation engine.

Expected negative answers (unknown user, rejected send, missing mapping) are
returned as values. Transient failures raise CollaboratorUnavailable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from ..db.database_models.tenant import TenantDO


@dataclass
class SendResult:
    """Outcome of a direct message send."""

    ok: bool
    handle: Optional[str] = None
    error: Optional[str] = None


@dataclass
class OwnerMapping:
    """A spreadsheet row mapping a task name to an owner."""

    task_name: str
    owner_name: str
    priority: Optional[str] = None
    estimated_hours: Optional[float] = None


@dataclass
class OwnerCandidate:
    """A resolved person to ask for ownership."""

    user_ref: str
    owner_name: str
    email: Optional[str] = None
    priority: Optional[str] = None
    estimated_hours: Optional[float] = None


def normalize_task_name(name: Optional[str]) -> str:
    """Trim, collapse inner whitespace and casefold a task name."""
    return " ".join((name or "").split()).casefold()


def match_owner_rows(rows: List[OwnerMapping], task_name: str) -> Optional[OwnerMapping]:
    """
    Exact, case-insensitive, whitespace-trimmed match of a task name.

    Rows naming different owners for the same task are ambiguous and yield
    None; there is no fuzzy fallback.
    """
    wanted = normalize_task_name(task_name)
    if not wanted:
        return None

    hits = [row for row in rows if normalize_task_name(row.task_name) == wanted]
    owners = {normalize_task_name(row.owner_name) for row in hits}
    if len(owners) != 1:
        return None
    return hits[0]


class ChatClient(ABC):
    """Chat platform: direct messages and user lookup."""

    @abstractmethod
    async def send_direct_message(self, tenant_id: str, user_ref: str, message: str) -> SendResult:
        """Send a direct message to a user."""

    @abstractmethod
    async def resolve_user_by_name(self, tenant_id: str, name: str) -> Optional[str]:
        """Find a user by display/real name; None when unknown or ambiguous."""

    @abstractmethod
    async def resolve_user_by_email(self, tenant_id: str, email: str) -> Optional[str]:
        """Find a user by email address."""


class SheetClient(ABC):
    """Spreadsheet holding the task -> owner mapping."""

    @abstractmethod
    async def lookup_owner(self, tenant_id: str, task_name: str) -> Optional[OwnerMapping]:
        """Return the mapping row for a task name, or None."""


class TaskTracker(ABC):
    """Project-management system the tasks live in.

    Implementations retry transient failures per request themselves;
    CollaboratorUnavailable means they gave up.
    """

    @abstractmethod
    async def confirm_owner(self, tenant_id: str, task_id: str, candidate: OwnerCandidate) -> bool:
        """Record that the candidate accepted ownership of the task."""

    @abstractmethod
    async def report_unassignable(self, tenant_id: str, task_id: str, reason: str) -> bool:
        """Report that no owner could be determined for the task."""


class TenantRegistry(ABC):
    """Read-only tenant lookup."""

    @abstractmethod
    def get_tenant(self, tenant_id: str) -> Optional["TenantDO"]:
        """Get a tenant by its ID."""

    @abstractmethod
    def get_by_chat_workspace(self, workspace_id: str) -> Optional["TenantDO"]:
        """Get the tenant bound to a chat workspace."""

    @abstractmethod
    def get_by_task_bot_user(self, bot_user_id: str) -> Optional["TenantDO"]:
        """Get the tenant whose task-tracker bot account has this user ID."""

    @abstractmethod
    def list_tenants(self) -> List["TenantDO"]:
        """List all tenants."""

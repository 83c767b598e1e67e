"""Owner resolution: task name -> person to ask for ownership."""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from ..integrations.base import ChatClient, OwnerCandidate, SheetClient, normalize_task_name
from ..utils.logger import get_app_logger

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def looks_like_email(value: Optional[str]) -> bool:
    return bool(value) and bool(_EMAIL.match(value.strip()))


@dataclass
class NotFound:
    """No owner could be resolved; terminal for the assignment."""

    reason: str


class OwnerResolver:
    """Looks up the mapped owner in the tenant's sheet and finds them on chat.

    Stateless. Transient collaborator failures propagate as
    CollaboratorUnavailable so the caller can retry the whole resolution.
    """

    def __init__(self, sheets: SheetClient, chat: ChatClient):
        self.sheets = sheets
        self.chat = chat
        self.logger = get_app_logger()

    async def resolve_owner(
        self,
        tenant_id: str,
        task_name: str,
        exclude: Iterable[str] = ()
    ) -> Union[OwnerCandidate, NotFound]:
        """
        Resolve the owner candidate for a task.

        Args:
            tenant_id: Tenant ID
            task_name: Task name as known to the task tracker
            exclude: Chat user refs that must not be proposed again

        Returns:
            OwnerCandidate, or NotFound with the reason
        """
        normalized = normalize_task_name(task_name)
        if not normalized:
            return NotFound("empty task name")

        mapping = await self.sheets.lookup_owner(tenant_id, task_name.strip())
        if mapping is None:
            self.logger.info(f"No owner mapping for '{task_name}' (tenant {tenant_id})")
            return NotFound(f"task '{task_name.strip()}' not found in owner sheet")

        if normalize_task_name(mapping.task_name) != normalized:
            # Collaborators must not hand back a different task
            self.logger.warning(
                f"Sheet returned row '{mapping.task_name}' for '{task_name}', ignoring"
            )
            return NotFound(f"task '{task_name.strip()}' not found in owner sheet")

        owner_name = mapping.owner_name.strip()
        email = owner_name if looks_like_email(owner_name) else None
        if email:
            user_ref = await self.chat.resolve_user_by_email(tenant_id, email)
        else:
            user_ref = await self.chat.resolve_user_by_name(tenant_id, owner_name)

        if user_ref is None:
            self.logger.info(f"Owner '{owner_name}' not found on chat (tenant {tenant_id})")
            return NotFound(f"could not find chat user '{owner_name}'")

        if user_ref in set(exclude):
            return NotFound("no alternate candidate")

        return OwnerCandidate(
            user_ref=user_ref,
            owner_name=owner_name,
            email=email,
            priority=mapping.priority,
            estimated_hours=mapping.estimated_hours,
        )

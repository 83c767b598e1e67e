"""Direct-message texts sent to owner candidates."""

import math
from datetime import datetime
from typing import Optional

from ..db.database_models.conversation import (
    CLAIM_REQUEST,
    CLARIFICATION,
    ConversationDO,
    ReminderTier,
)

REMINDER_OPENERS = {
    ReminderTier.HALF_TIME.value: (
        "Hey! Just following up on the task I sent you earlier. Can you take it on? "
        "A quick \"yes\" or \"no\" helps me find the right owner."
    ),
    ReminderTier.NEAR_DEADLINE.value: (
        "Hi! This task is due soon and still needs an owner. "
        "Can you take it on? Please reply \"yes\" or \"no\"."
    ),
}


def due_text(deadline: Optional[datetime], now: datetime) -> str:
    """Human phrasing of a deadline relative to ``now``, in whole days rounded up."""
    if deadline is None:
        return "(no due date)"

    days = math.ceil((deadline - now).total_seconds() / 86400)
    if days < 0:
        overdue = abs(days)
        return f"(overdue by {overdue} day{'s' if overdue != 1 else ''})"
    if days == 0:
        return "(due today)"
    if days == 1:
        return "(due tomorrow)"
    return f"(due in {days} days)"


def claim_request_text(conversation: ConversationDO, now: datetime) -> str:
    return (
        "Hi there! Based on your expertise and the team's current workload, "
        "I thought you'd be a good fit for this task:\n\n"
        f"*{conversation.task_name}* {due_text(conversation.task_deadline, now)}\n\n"
        "Would you be able to take this one on?"
    )


def clarification_text(conversation: ConversationDO) -> str:
    return (
        f"Sorry, I didn't quite catch that. Can you take *{conversation.task_name}*? "
        "A simple \"yes\" or \"no\" is perfect."
    )


def reminder_text(conversation: ConversationDO, tier: str, now: datetime) -> str:
    opener = REMINDER_OPENERS.get(tier, REMINDER_OPENERS[ReminderTier.HALF_TIME.value])
    return f"{opener}\n\n*Task:* {conversation.task_name} {due_text(conversation.task_deadline, now)}"


def render(conversation: ConversationDO, token: str, now: datetime) -> str:
    """Text for a pending delivery token."""
    if token == CLAIM_REQUEST:
        return claim_request_text(conversation, now)
    if token == CLARIFICATION:
        return clarification_text(conversation)
    return reminder_text(conversation, token, now)

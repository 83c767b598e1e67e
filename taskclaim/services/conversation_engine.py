"""Conversation engine - the ownership negotiation state machine.

Every state change goes through a compare-and-set on the stored record, so
concurrent events for the same task can interleave at any await and the loser
simply becomes a no-op.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from . import messages
from .intent_classifier import Intent, classify
from .owner_resolver import NotFound, OwnerResolver, looks_like_email
from ..config import Settings
from ..db.database_models.conversation import (
    CLAIM_REQUEST,
    CLARIFICATION,
    ConversationDO,
    ConversationState,
    ReminderTier,
)
from ..db.database_models.event import ConversationEventDO
from ..db.repositories.conversation import ConversationRepository
from ..db.repositories.event import EventLogRepository
from ..errors import CollaboratorUnavailable, StaleTransition
from ..integrations.base import ChatClient, OwnerCandidate, SendResult, TaskTracker
from ..utils.clock import to_naive_utc, utcnow
from ..utils.logger import get_app_logger
from ..utils.retry import call_with_retry


class EventOutcome(str, Enum):
    """What an inbound event did to its conversation."""

    CREATED = "created"
    RESTARTED = "restarted"
    UNASSIGNABLE = "unassignable"
    CLAIMED = "claimed"
    REASSIGNED = "reassigned"
    CLARIFIED = "clarified"
    REMINDED = "reminded"
    REDELIVERED = "redelivered"
    CLOSED = "closed"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass
class EventResult:
    outcome: EventOutcome
    conversation: Optional[ConversationDO] = None


class DeliveryStatus(str, Enum):
    SENT = "sent"
    REJECTED = "rejected"
    ABORTED = "aborted"


@dataclass
class Delivery:
    status: DeliveryStatus
    conversation: Optional[ConversationDO]
    error: Optional[str] = None


class ConversationEngine:
    """Drives conversations through assignment, replies, reminders and closure."""

    def __init__(
        self,
        store: ConversationRepository,
        events: EventLogRepository,
        resolver: OwnerResolver,
        chat: ChatClient,
        tracker: TaskTracker,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.events = events
        self.resolver = resolver
        self.chat = chat
        self.tracker = tracker
        self.settings = settings
        self.clock = clock
        self.retry_options = settings.retry_options()
        self.logger = get_app_logger()

        # Sends in progress in this process, per conversation
        self._delivering: Dict[Tuple[str, str], int] = {}

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    async def on_task_assigned(
        self,
        tenant_id: str,
        task_id: str,
        task_name: str,
        deadline: Optional[datetime] = None
    ) -> EventResult:
        """
        Start (or restart) the ownership negotiation for a task.

        Args:
            tenant_id: Tenant ID
            task_id: Task ID in the task tracker
            task_name: Task name used for owner lookup and messages
            deadline: Optional task deadline

        Returns:
            EventResult; IGNORED when a conversation for the task is still active,
            unless its claim request was never delivered
        """
        if deadline is not None:
            deadline = to_naive_utc(deadline)

        existing = self.store.get(tenant_id, task_id)
        if existing is not None and not existing.is_terminal:
            if self._claim_undelivered(existing):
                self.logger.info(f"Conversation {tenant_id}/{task_id} still owes its claim request, retrying delivery")
                return await self.redeliver_claim_request(tenant_id, task_id)
            self.logger.info(
                f"Conversation {tenant_id}/{task_id} already active ({existing.state.value}), ignoring assignment"
            )
            return EventResult(EventOutcome.IGNORED, existing)

        try:
            resolved = await self._resolve(tenant_id, task_id, task_name, [])
        except CollaboratorUnavailable as e:
            self.logger.error(f"Owner lookup for {tenant_id}/{task_id} failed: {e}")
            return EventResult(EventOutcome.FAILED, existing)

        try:
            if existing is None:
                conversation = self._create(tenant_id, task_id, task_name, deadline, resolved)
                outcome = EventOutcome.CREATED
            else:
                conversation = self._restart(existing, task_name, deadline, resolved)
                outcome = EventOutcome.RESTARTED

            if isinstance(resolved, NotFound):
                await self._report_unassignable(conversation, resolved.reason)
                return EventResult(EventOutcome.UNASSIGNABLE, conversation)

            return await self._request_claim(conversation, outcome)
        except StaleTransition as e:
            return self._stale(e)

    async def on_reply_received(
        self,
        tenant_id: str,
        task_id: str,
        text: str,
        user_ref: Optional[str] = None
    ) -> EventResult:
        """
        Handle the candidate's reply to a claim request.

        Args:
            tenant_id: Tenant ID
            task_id: Task ID
            text: Free-text reply
            user_ref: Chat user who replied; replies from anyone but the
                current candidate are ignored

        Returns:
            EventResult
        """
        current = self.store.get(tenant_id, task_id)
        if current is None or current.state != ConversationState.AWAITING_RESPONSE:
            self.logger.info(f"Reply for {tenant_id}/{task_id} has no conversation awaiting it, ignoring")
            return EventResult(EventOutcome.IGNORED, current)

        if user_ref is not None and user_ref != current.candidate_owner_ref:
            self.logger.info(
                f"Reply for {tenant_id}/{task_id} from {user_ref}, not the candidate, ignoring"
            )
            return EventResult(EventOutcome.IGNORED, current)

        intent = classify(text)
        now = self.clock()
        detail = {"intent": intent.value, "text": (text or "")[:500]}
        self.logger.info(f"Reply for {tenant_id}/{task_id} classified as {intent.value}")

        try:
            if intent == Intent.ACCEPT:
                return await self._accept(current, now, detail)

            if intent == Intent.DECLINE:
                searching = self._transition(current, {
                    "state": ConversationState.DECLINED_SEARCHING,
                    "declined_owner_refs": current.declined_owner_refs + [current.candidate_owner_ref],
                    "last_reply_received_at": now,
                    "pending_message": None,
                }, "declined", detail)
                return await self._request_claim(searching, EventOutcome.REASSIGNED)

            asking = self._transition(current, {
                "last_reply_received_at": now,
                "pending_message": CLARIFICATION,
            }, "unclear_reply", detail)
            return await self._send(asking, CLARIFICATION, EventOutcome.CLARIFIED)
        except StaleTransition as e:
            return self._stale(e)

    async def on_task_closed(self, tenant_id: str, task_id: str) -> EventResult:
        """
        Close a conversation from any state. Idempotent; unknown tasks are ignored.

        Args:
            tenant_id: Tenant ID
            task_id: Task ID

        Returns:
            EventResult; CLOSED only when this call closed it
        """
        current = self.store.get(tenant_id, task_id)
        if current is None:
            return EventResult(EventOutcome.IGNORED, None)

        if not self.store.close(tenant_id, task_id, self.clock()):
            return EventResult(EventOutcome.IGNORED, self.store.get(tenant_id, task_id))

        self._record(tenant_id, task_id, "closed", current.state.value, ConversationState.CLOSED.value)
        self.logger.info(f"Closed conversation {tenant_id}/{task_id} (was {current.state.value})")
        return EventResult(EventOutcome.CLOSED, self.store.get(tenant_id, task_id))

    async def on_direct_message(self, tenant_id: str, user_ref: str, text: str) -> EventResult:
        """
        Route a chat DM to the conversation waiting on that user.

        With several open conversations, the most recently messaged one wins.
        """
        waiting = self.store.list_awaiting_by_candidate(tenant_id, user_ref)
        if not waiting:
            self.logger.debug(f"DM from {user_ref} in tenant {tenant_id} matches no open conversation")
            return EventResult(EventOutcome.IGNORED, None)
        return await self.on_reply_received(tenant_id, waiting[0].task_id, text, user_ref)

    async def send_reminder(
        self,
        tenant_id: str,
        task_id: str,
        tier: Union[ReminderTier, str],
        expected_follow_ups: Optional[Iterable[str]] = None
    ) -> EventResult:
        """
        Record and send one reminder tier.

        Args:
            tenant_id: Tenant ID
            task_id: Task ID
            tier: Reminder tier
            expected_follow_ups: follow_ups_sent as observed by the caller;
                defaults to the currently stored list

        Returns:
            EventResult; IGNORED when the tier was already recorded, the
            claim request itself is still unsent, or the conversation is no
            longer awaiting a response. FAILED when the chat platform stayed
            unavailable; the tier is then released for the next sweep.
        """
        tier_value = ReminderTier(tier).value
        current = self.store.get(tenant_id, task_id)
        if current is None or current.state != ConversationState.AWAITING_RESPONSE:
            return EventResult(EventOutcome.IGNORED, current)
        if self._claim_undelivered(current):
            self.logger.debug(f"Claim request for {tenant_id}/{task_id} not sent yet, no reminder")
            return EventResult(EventOutcome.IGNORED, current)

        expected = list(current.follow_ups_sent if expected_follow_ups is None else expected_follow_ups)
        if tier_value in expected:
            return EventResult(EventOutcome.IGNORED, current)

        updated = self.store.append_follow_up(tenant_id, task_id, tier_value, expected, self.clock())
        if updated is None:
            self.logger.debug(f"Reminder {tier_value} for {tenant_id}/{task_id} lost the race, skipping")
            return EventResult(EventOutcome.IGNORED, self.store.get(tenant_id, task_id))

        self._record(
            tenant_id, task_id, "reminder_scheduled",
            current.state.value, updated.state.value, {"tier": tier_value}
        )
        try:
            delivery = await self._deliver(updated, tier_value)
        except CollaboratorUnavailable as e:
            return self._release_reminder(updated, tier_value, expected, e)
        return self._delivery_result(updated, tier_value, delivery, EventOutcome.REMINDED)

    async def redeliver_claim_request(self, tenant_id: str, task_id: str) -> EventResult:
        """
        Retry a claim request that was reserved but never confirmed as sent.

        A send still in progress in this process is left alone. The retry
        takes the record by compare-and-set first, so only one caller resends.

        Args:
            tenant_id: Tenant ID
            task_id: Task ID

        Returns:
            EventResult; REDELIVERED once the candidate has the request
        """
        current = self.store.get(tenant_id, task_id)
        if current is None or not self._claim_undelivered(current):
            return EventResult(EventOutcome.IGNORED, current)
        if (tenant_id, task_id) in self._delivering:
            self.logger.debug(f"Claim request for {tenant_id}/{task_id} is being sent, not retrying")
            return EventResult(EventOutcome.IGNORED, current)

        try:
            retrying = self._transition(
                current, {"pending_message": CLAIM_REQUEST}, "claim_request_retried",
                {"candidate": current.candidate_owner_ref}
            )
            return await self._request_claim(retrying, EventOutcome.REDELIVERED)
        except StaleTransition as e:
            return self._stale(e)

    async def abandon_search(self, tenant_id: str, task_id: str) -> EventResult:
        """End a candidate search that stopped before reaching a candidate as UNASSIGNABLE."""
        current = self.store.get(tenant_id, task_id)
        if current is None or current.state != ConversationState.DECLINED_SEARCHING:
            return EventResult(EventOutcome.IGNORED, current)
        try:
            return await self._give_up(current, "candidate search interrupted")
        except StaleTransition as e:
            return self._stale(e)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _create(
        self,
        tenant_id: str,
        task_id: str,
        task_name: str,
        deadline: Optional[datetime],
        resolved: Union[OwnerCandidate, NotFound]
    ) -> ConversationDO:
        now = self.clock()
        conversation = ConversationDO(
            tenant_id=tenant_id,
            task_id=task_id,
            task_name=task_name,
            task_deadline=deadline,
            created_at=now,
            updated_at=now,
            **self._assignment_fields(resolved),
        )
        if not self.store.create(conversation):
            raise StaleTransition(tenant_id, task_id, "assigned")

        self._record(
            tenant_id, task_id, "assigned",
            ConversationState.IDLE.value, conversation.state.value, self._assignment_detail(resolved)
        )
        return conversation

    def _restart(
        self,
        existing: ConversationDO,
        task_name: str,
        deadline: Optional[datetime],
        resolved: Union[OwnerCandidate, NotFound]
    ) -> ConversationDO:
        changes: Dict[str, Any] = {
            "task_name": task_name,
            "task_deadline": deadline,
            "declined_owner_refs": [],
            "follow_ups_sent": [],
            "last_message_sent_at": None,
            "last_reply_received_at": None,
            "created_at": self.clock(),
        }
        changes.update(self._assignment_fields(resolved))
        return self._transition(existing, changes, "reassigned_task", self._assignment_detail(resolved))

    @staticmethod
    def _assignment_fields(resolved: Union[OwnerCandidate, NotFound]) -> Dict[str, Any]:
        if isinstance(resolved, NotFound):
            return {
                "state": ConversationState.UNASSIGNABLE,
                "candidate_owner_ref": None,
                "candidate_owner_name": None,
                "pending_message": None,
                "resolution_note": resolved.reason,
            }
        return {
            "state": ConversationState.AWAITING_RESPONSE,
            "candidate_owner_ref": resolved.user_ref,
            "candidate_owner_name": resolved.owner_name,
            "pending_message": CLAIM_REQUEST,
            "resolution_note": None,
        }

    @staticmethod
    def _assignment_detail(resolved: Union[OwnerCandidate, NotFound]) -> Dict[str, Any]:
        if isinstance(resolved, NotFound):
            return {"reason": resolved.reason}
        return {"candidate": resolved.user_ref, "owner_name": resolved.owner_name}

    async def _accept(self, current: ConversationDO, now: datetime, detail: Dict[str, Any]) -> EventResult:
        claimed = self._transition(current, {
            "state": ConversationState.CLAIMED,
            "last_reply_received_at": now,
            "pending_message": None,
        }, "accepted", detail)

        owner_name = claimed.candidate_owner_name or ""
        candidate = OwnerCandidate(
            user_ref=claimed.candidate_owner_ref,
            owner_name=owner_name,
            email=owner_name if looks_like_email(owner_name) else None,
        )
        try:
            confirmed = await self.tracker.confirm_owner(claimed.tenant_id, claimed.task_id, candidate)
            if not confirmed:
                self.logger.warning(f"Task tracker did not record the owner of {claimed.tenant_id}/{claimed.task_id}")
        except CollaboratorUnavailable as e:
            self.logger.error(f"Could not confirm owner of {claimed.tenant_id}/{claimed.task_id}: {e}")

        self.logger.info(f"Task {claimed.tenant_id}/{claimed.task_id} claimed by {claimed.candidate_owner_ref}")
        return EventResult(EventOutcome.CLAIMED, claimed)

    async def _request_claim(self, conversation: ConversationDO, outcome: EventOutcome) -> EventResult:
        """
        Ask candidates until one receives the claim request or none are left.

        ``conversation`` is either AWAITING_RESPONSE with a claim request
        pending, or DECLINED_SEARCHING and in need of a new candidate. A
        candidate whose DM is rejected joins the exclusion list.
        """
        while True:
            if conversation.state == ConversationState.DECLINED_SEARCHING:
                excluded = conversation.declined_owner_refs
                if len(excluded) >= self.settings.max_candidate_attempts:
                    return await self._give_up(
                        conversation, f"no owner found after {len(excluded)} candidates"
                    )
                try:
                    resolved = await self._resolve(
                        conversation.tenant_id, conversation.task_id, conversation.task_name, excluded
                    )
                except CollaboratorUnavailable as e:
                    return await self._give_up(conversation, f"owner lookup failed: {e}")
                if isinstance(resolved, NotFound):
                    return await self._give_up(conversation, resolved.reason)

                conversation = self._transition(conversation, {
                    "state": ConversationState.AWAITING_RESPONSE,
                    "candidate_owner_ref": resolved.user_ref,
                    "candidate_owner_name": resolved.owner_name,
                    "pending_message": CLAIM_REQUEST,
                }, "candidate_selected", self._assignment_detail(resolved))

            try:
                delivery = await self._deliver(conversation, CLAIM_REQUEST)
            except CollaboratorUnavailable as e:
                self.logger.error(f"Claim request for {conversation.tenant_id}/{conversation.task_id} not sent: {e}")
                return EventResult(EventOutcome.FAILED, self._reload(conversation))

            if delivery.status == DeliveryStatus.SENT:
                return EventResult(outcome, delivery.conversation)
            if delivery.status == DeliveryStatus.ABORTED:
                return EventResult(EventOutcome.IGNORED, delivery.conversation)

            self.logger.warning(
                f"Claim request to {conversation.candidate_owner_ref} rejected ({delivery.error}), "
                f"trying another candidate for {conversation.tenant_id}/{conversation.task_id}"
            )
            conversation = self._transition(conversation, {
                "state": ConversationState.DECLINED_SEARCHING,
                "declined_owner_refs": conversation.declined_owner_refs + [conversation.candidate_owner_ref],
                "pending_message": None,
            }, "claim_request_rejected", {"error": delivery.error})

    async def _give_up(self, conversation: ConversationDO, reason: str) -> EventResult:
        unassignable = self._transition(conversation, {
            "state": ConversationState.UNASSIGNABLE,
            "pending_message": None,
            "resolution_note": reason,
        }, "unassignable", {"reason": reason})
        await self._report_unassignable(unassignable, reason)
        return EventResult(EventOutcome.UNASSIGNABLE, unassignable)

    async def _report_unassignable(self, conversation: ConversationDO, reason: str):
        self.logger.info(f"Task {conversation.tenant_id}/{conversation.task_id} unassignable: {reason}")
        try:
            await self.tracker.report_unassignable(conversation.tenant_id, conversation.task_id, reason)
        except CollaboratorUnavailable as e:
            self.logger.error(
                f"Could not report {conversation.tenant_id}/{conversation.task_id} as unassignable: {e}"
            )

    def _transition(
        self,
        current: ConversationDO,
        changes: Dict[str, Any],
        event_type: str,
        detail: Optional[Dict[str, Any]] = None
    ) -> ConversationDO:
        updated = self.store.transition(current, changes, self.clock())
        if updated is None:
            raise StaleTransition(current.tenant_id, current.task_id, event_type)
        self._record(
            current.tenant_id, current.task_id, event_type,
            current.state.value, updated.state.value, detail
        )
        return updated

    def _record(
        self,
        tenant_id: str,
        task_id: str,
        event_type: str,
        from_state: Optional[str],
        to_state: Optional[str],
        detail: Optional[Dict[str, Any]] = None
    ):
        self.events.append(ConversationEventDO(
            tenant_id=tenant_id,
            task_id=task_id,
            event_type=event_type,
            from_state=from_state,
            to_state=to_state,
            detail=detail or {},
            created_at=self.clock(),
        ))

    def _release_reminder(
        self,
        conversation: ConversationDO,
        tier: str,
        expected: List[str],
        error: CollaboratorUnavailable
    ) -> EventResult:
        tenant_id, task_id = conversation.tenant_id, conversation.task_id
        if self.store.release_follow_up(tenant_id, task_id, tier, expected, self.clock()):
            self.logger.error(f"Reminder {tier} for {tenant_id}/{task_id} not sent, due again next sweep: {error}")
            self._record(
                tenant_id, task_id, "reminder_released",
                conversation.state.value, conversation.state.value, {"tier": tier, "error": str(error)}
            )
        else:
            self.logger.error(f"Reminder {tier} for {tenant_id}/{task_id} not sent: {error}")
        return EventResult(EventOutcome.FAILED, self._reload(conversation))

    @staticmethod
    def _claim_undelivered(conversation: ConversationDO) -> bool:
        return (
            conversation.state == ConversationState.AWAITING_RESPONSE
            and conversation.pending_message == CLAIM_REQUEST
        )

    def _stale(self, error: StaleTransition) -> EventResult:
        self.logger.debug(f"{error}, treating as no-op")
        return EventResult(EventOutcome.IGNORED, self.store.get(error.tenant_id, error.task_id))

    def _reload(self, conversation: ConversationDO) -> Optional[ConversationDO]:
        return self.store.get(conversation.tenant_id, conversation.task_id)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    async def _resolve(
        self,
        tenant_id: str,
        task_id: str,
        task_name: str,
        exclude: List[str]
    ) -> Union[OwnerCandidate, NotFound]:
        return await call_with_retry(
            lambda: self.resolver.resolve_owner(tenant_id, task_name, exclude),
            description=f"owner lookup for {tenant_id}/{task_id}",
            **self.retry_options,
        )

    async def _send(self, conversation: ConversationDO, token: str, outcome: EventOutcome) -> EventResult:
        try:
            delivery = await self._deliver(conversation, token)
        except CollaboratorUnavailable as e:
            self.logger.error(f"Message {token} for {conversation.tenant_id}/{conversation.task_id} not sent: {e}")
            return EventResult(EventOutcome.FAILED, self._reload(conversation))
        return self._delivery_result(conversation, token, delivery, outcome)

    def _delivery_result(
        self,
        conversation: ConversationDO,
        token: str,
        delivery: Delivery,
        outcome: EventOutcome
    ) -> EventResult:
        if delivery.status == DeliveryStatus.SENT:
            return EventResult(outcome, delivery.conversation)
        if delivery.status == DeliveryStatus.ABORTED:
            return EventResult(EventOutcome.IGNORED, delivery.conversation)

        self.logger.warning(
            f"Message {token} to {conversation.candidate_owner_ref} rejected: {delivery.error}"
        )
        return EventResult(EventOutcome.FAILED, delivery.conversation)

    async def _deliver(self, conversation: ConversationDO, token: str) -> Delivery:
        """
        Send the message reserved under ``token`` and confirm it.

        Before every attempt the stored record must still be awaiting a
        response from the same candidate with ``token`` pending; otherwise
        the send is aborted.

        Raises:
            CollaboratorUnavailable: If the chat platform stayed unavailable
        """
        tenant_id, task_id = conversation.tenant_id, conversation.task_id
        user_ref = conversation.candidate_owner_ref
        text = messages.render(conversation, token, self.clock())

        async def attempt() -> Optional[SendResult]:
            current = self.store.get(tenant_id, task_id)
            if (
                current is None
                or current.state != ConversationState.AWAITING_RESPONSE
                or current.pending_message != token
                or current.candidate_owner_ref != user_ref
            ):
                return None
            return await self.chat.send_direct_message(tenant_id, user_ref, text)

        key = (tenant_id, task_id)
        self._delivering[key] = self._delivering.get(key, 0) + 1
        try:
            result = await call_with_retry(
                attempt,
                description=f"send {token} for {tenant_id}/{task_id}",
                **self.retry_options,
            )
        finally:
            remaining = self._delivering.pop(key) - 1
            if remaining:
                self._delivering[key] = remaining

        if result is None:
            self.logger.info(f"Message {token} for {tenant_id}/{task_id} no longer due, not sent")
            return Delivery(DeliveryStatus.ABORTED, self.store.get(tenant_id, task_id))

        if not result.ok:
            return Delivery(DeliveryStatus.REJECTED, conversation, result.error)

        if not self.store.mark_delivered(tenant_id, task_id, token, self.clock()):
            self.logger.warning(f"Delivery of {token} for {tenant_id}/{task_id} sent but no longer pending")
        self._record(
            tenant_id, task_id, "message_sent", conversation.state.value, conversation.state.value,
            {"message": token, "to": user_ref, "handle": result.handle}
        )
        return Delivery(DeliveryStatus.SENT, self.store.get(tenant_id, task_id))

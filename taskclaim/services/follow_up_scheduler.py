"""Follow-up scheduler - periodic sweep issuing deadline reminders."""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Set

from .conversation_engine import ConversationEngine, EventOutcome
from ..config import Settings
from ..db.database_models.conversation import CLAIM_REQUEST, ConversationDO, ReminderTier
from ..db.repositories.conversation import ConversationRepository
from ..utils.clock import utcnow
from ..utils.logger import get_app_logger


def compute_tier(
    created_at: datetime,
    deadline: Optional[datetime],
    now: datetime,
    lead: timedelta
) -> Optional[ReminderTier]:
    """
    Reminder tier due at ``now``.

    NEAR_DEADLINE once within ``lead`` of the deadline (and after it),
    otherwise HALF_TIME once half of the span between creation and deadline
    has elapsed.
    """
    if deadline is None:
        return None
    if now >= deadline - lead:
        return ReminderTier.NEAR_DEADLINE
    if now >= created_at + (deadline - created_at) / 2:
        return ReminderTier.HALF_TIME
    return None


class FollowUpScheduler:
    """Sweeps awaiting conversations and asks the engine for due reminders.

    Sweeps for different tenants run concurrently. A sweep for a tenant whose
    previous sweep is still running is skipped.
    """

    def __init__(
        self,
        store: ConversationRepository,
        engine: ConversationEngine,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.engine = engine
        self.settings = settings
        self.clock = clock
        self.lead = timedelta(seconds=settings.near_deadline_lead_seconds)
        self.logger = get_app_logger()

        self._tenant_locks: Dict[str, asyncio.Lock] = {}
        self._task: Optional[asyncio.Task] = None
        self._stopping: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _lock_for(self, tenant_id: str) -> asyncio.Lock:
        lock = self._tenant_locks.get(tenant_id)
        if lock is None:
            lock = asyncio.Lock()
            self._tenant_locks[tenant_id] = lock
        return lock

    async def run_once(self) -> int:
        """
        Run one sweep over every tenant.

        Returns:
            Number of reminders sent
        """
        tenant_ids = self.store.list_sweep_tenants()
        if not tenant_ids:
            return 0

        results = await asyncio.gather(
            *(self.sweep_tenant(tenant_id) for tenant_id in tenant_ids),
            return_exceptions=True
        )

        sent = 0
        for tenant_id, result in zip(tenant_ids, results):
            if isinstance(result, Exception):
                self.logger.error(f"Follow-up sweep failed for tenant {tenant_id}: {result}")
                continue
            sent += result
        if sent:
            self.logger.info(f"Follow-up sweep sent {sent} reminders across {len(tenant_ids)} tenants")
        return sent

    async def sweep_tenant(self, tenant_id: str) -> int:
        """
        Recover stalled conversations of one tenant, then send due reminders.

        Returns:
            Number of reminders sent (0 when another sweep holds the tenant)
        """
        lock = self._lock_for(tenant_id)
        if lock.locked():
            self.logger.debug(f"Sweep for tenant {tenant_id} already running, skipping")
            return 0

        async with lock:
            recovered = await self._recover_stalled(tenant_id)

            sent = 0
            for conversation in self.store.list_reminder_candidates(tenant_id):
                if conversation.task_id in recovered:
                    continue
                if await self._remind(conversation):
                    sent += 1
            return sent

    async def _remind(self, conversation: ConversationDO) -> bool:
        tier = compute_tier(
            conversation.created_at, conversation.task_deadline, self.clock(), self.lead
        )
        if tier is None or tier.value in conversation.follow_ups_sent:
            return False
        if conversation.pending_message == CLAIM_REQUEST:
            return False

        result = await self.engine.send_reminder(
            conversation.tenant_id,
            conversation.task_id,
            tier,
            expected_follow_ups=conversation.follow_ups_sent,
        )
        return result.outcome == EventOutcome.REMINDED

    async def _recover_stalled(self, tenant_id: str) -> Set[str]:
        """
        Resend claim requests that never went out and end abandoned owner searches.

        Other unconfirmed deliveries are only logged, since resending them
        could duplicate a message the candidate already has.

        Returns:
            Task IDs handled here; they get no reminder in the same sweep
        """
        cutoff = self.clock() - timedelta(seconds=self.settings.pending_delivery_timeout)
        handled: Set[str] = set()

        for conversation in self.store.list_stale_deliveries(tenant_id, cutoff):
            since = conversation.updated_at.isoformat()
            if conversation.pending_message != CLAIM_REQUEST:
                self.logger.warning(
                    f"Delivery of {conversation.pending_message} for {tenant_id}/{conversation.task_id} "
                    f"unconfirmed since {since}"
                )
                continue
            self.logger.warning(
                f"Claim request for {tenant_id}/{conversation.task_id} unconfirmed since {since}, resending"
            )
            await self.engine.redeliver_claim_request(tenant_id, conversation.task_id)
            handled.add(conversation.task_id)

        for conversation in self.store.list_stalled_searches(tenant_id, cutoff):
            self.logger.warning(
                f"Owner search for {tenant_id}/{conversation.task_id} stalled since "
                f"{conversation.updated_at.isoformat()}, giving up"
            )
            await self.engine.abandon_search(tenant_id, conversation.task_id)
            handled.add(conversation.task_id)

        return handled

    async def _loop(self):
        interval = self.settings.scheduler_poll_interval
        while not self._stopping.is_set():
            try:
                await self.run_once()
            except Exception as e:
                self.logger.error(f"Follow-up sweep crashed: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    def start(self):
        """Start sweeping in the background (first sweep runs immediately)."""
        if self.running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        self.logger.info(
            f"Follow-up scheduler started (every {self.settings.scheduler_poll_interval}s)"
        )

    async def stop(self):
        """Stop the background loop and wait for the current sweep to finish."""
        if self._task is None:
            return
        self._stopping.set()
        try:
            await self._task
        finally:
            self._task = None
            self.logger.info("Follow-up scheduler stopped")

"""Shared fixtures: a fresh database per test and in-memory collaborators."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import pytest

from taskclaim.config import Settings
from taskclaim.db import ConversationRepository, DatabaseConnection, EventLogRepository, TenantRepository
from taskclaim.db.database_models import TenantDO
from taskclaim.errors import CollaboratorUnavailable
from taskclaim.integrations.base import (
    ChatClient,
    OwnerCandidate,
    OwnerMapping,
    SendResult,
    SheetClient,
    TaskTracker,
    match_owner_rows,
)
from taskclaim.services.conversation_engine import ConversationEngine
from taskclaim.services.follow_up_scheduler import FollowUpScheduler
from taskclaim.services.owner_resolver import OwnerResolver


START = datetime(2026, 3, 2, 9, 0, 0)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@dataclass
class SentMessage:
    tenant_id: str
    user_ref: str
    text: str


class FakeChat(ChatClient):
    """Chat platform double recording every delivered message."""

    def __init__(self):
        self.users: Dict[Tuple[str, str], str] = {}
        self.emails: Dict[Tuple[str, str], str] = {}
        self.sent: List[SentMessage] = []
        self.rejected: set = set()
        self.fail_next = 0
        self.attempts = 0
        self.delay = 0.0
        self.attempted = asyncio.Event()

    def add_user(self, tenant_id: str, name: str, user_ref: str, email: Optional[str] = None):
        self.users[(tenant_id, name.casefold())] = user_ref
        if email:
            self.emails[(tenant_id, email.casefold())] = user_ref

    def sent_to(self, user_ref: str) -> List[SentMessage]:
        return [m for m in self.sent if m.user_ref == user_ref]

    async def send_direct_message(self, tenant_id: str, user_ref: str, message: str) -> SendResult:
        self.attempts += 1
        self.attempted.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_next > 0:
            self.fail_next -= 1
            raise CollaboratorUnavailable("chat", "simulated outage")
        if user_ref in self.rejected:
            return SendResult(ok=False, error="cannot_dm_user")
        self.sent.append(SentMessage(tenant_id, user_ref, message))
        return SendResult(ok=True, handle=f"ts-{len(self.sent)}")

    async def resolve_user_by_name(self, tenant_id: str, name: str) -> Optional[str]:
        return self.users.get((tenant_id, name.casefold()))

    async def resolve_user_by_email(self, tenant_id: str, email: str) -> Optional[str]:
        return self.emails.get((tenant_id, email.casefold()))


class FakeSheets(SheetClient):
    """Owner-mapping sheet double, one row list per tenant."""

    def __init__(self):
        self.rows: Dict[str, List[OwnerMapping]] = {}
        self.lookups: List[Tuple[str, str]] = []
        self.fail_next = 0

    def map(self, tenant_id: str, task_name: str, owner_name: str):
        self.rows.setdefault(tenant_id, []).append(OwnerMapping(task_name=task_name, owner_name=owner_name))

    def remap(self, tenant_id: str, task_name: str, owner_name: str):
        self.rows[tenant_id] = [r for r in self.rows.get(tenant_id, []) if r.task_name != task_name]
        self.map(tenant_id, task_name, owner_name)

    async def lookup_owner(self, tenant_id: str, task_name: str) -> Optional[OwnerMapping]:
        self.lookups.append((tenant_id, task_name))
        if self.fail_next > 0:
            self.fail_next -= 1
            raise CollaboratorUnavailable("sheets", "simulated outage")
        return match_owner_rows(self.rows.get(tenant_id, []), task_name)


class FakeTracker(TaskTracker):
    """Task tracker double."""

    def __init__(self):
        self.confirmed: List[Tuple[str, str, OwnerCandidate]] = []
        self.unassignable: List[Tuple[str, str, str]] = []

    async def confirm_owner(self, tenant_id: str, task_id: str, candidate: OwnerCandidate) -> bool:
        self.confirmed.append((tenant_id, task_id, candidate))
        return True

    async def report_unassignable(self, tenant_id: str, task_id: str, reason: str) -> bool:
        self.unassignable.append((tenant_id, task_id, reason))
        return True


def make_tenant(tenant_id: str, **overrides) -> TenantDO:
    """Factory for TenantDO with per-tenant unique external ids."""
    defaults = dict(
        id=tenant_id,
        name=f"{tenant_id.title()} Inc",
        chat_workspace_id=f"W-{tenant_id}",
        task_bot_user_id=f"BOT-{tenant_id}",
        chat_bot_token=f"xoxb-{tenant_id}",
        task_api_token=f"asana-{tenant_id}",
        sheet_id=f"sheet-{tenant_id}",
        sheet_api_key="key",
    )
    defaults.update(overrides)
    return TenantDO(**defaults)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with fast retries and no background scheduler."""
    return Settings(
        database_path=":memory:",
        log_level="WARNING",
        log_file=None,
        scheduler_enabled=False,
        collaborator_retry_attempts=3,
        collaborator_retry_base_delay=0.01,
        collaborator_retry_max_delay=0.02,
    )


@pytest.fixture
def db_conn(tmp_path):
    """Provide a fresh database connection."""
    db = DatabaseConnection(str(tmp_path / "test.db"))
    yield db
    db.close()


@pytest.fixture
def store(db_conn) -> ConversationRepository:
    return ConversationRepository(db_conn.conn)


@pytest.fixture
def event_log(db_conn) -> EventLogRepository:
    return EventLogRepository(db_conn.conn)


@pytest.fixture
def tenant_repo(db_conn) -> TenantRepository:
    repo = TenantRepository(db_conn.conn)
    repo.upsert(make_tenant("acme"))
    repo.upsert(make_tenant("globex"))
    return repo


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def chat() -> FakeChat:
    return FakeChat()


@pytest.fixture
def sheets() -> FakeSheets:
    return FakeSheets()


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture
def engine(store, event_log, sheets, chat, tracker, test_settings, clock) -> ConversationEngine:
    return ConversationEngine(
        store=store,
        events=event_log,
        resolver=OwnerResolver(sheets, chat),
        chat=chat,
        tracker=tracker,
        settings=test_settings,
        clock=clock,
    )


@pytest.fixture
def scheduler(store, engine, test_settings, clock) -> FollowUpScheduler:
    return FollowUpScheduler(store, engine, test_settings, clock)

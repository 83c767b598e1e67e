"""Tests for TenantRepository."""

from datetime import datetime, timedelta

import pytest

from taskclaim.db.database_models.tenant import TenantDO
from taskclaim.db.repositories.tenant import TenantRepository

T0 = datetime(2026, 3, 2, 9, 0, 0)


def _make_tenant(tenant_id="acme", **overrides):
    """Factory for TenantDO with per-tenant external ids."""
    defaults = dict(
        id=tenant_id,
        name=f"{tenant_id.title()} Inc",
        chat_workspace_id=f"W-{tenant_id}",
        task_bot_user_id=f"BOT-{tenant_id}",
        chat_bot_token=f"xoxb-{tenant_id}",
        created_at=T0,
        updated_at=T0,
    )
    defaults.update(overrides)
    return TenantDO(**defaults)


@pytest.fixture
def repo(db_conn):
    """Provide an empty TenantRepository."""
    return TenantRepository(db_conn.conn)


class TestTenantRepository:
    """Tests for TenantRepository."""

    class TestUpsert:
        """SUT: TenantRepository.upsert"""

        def test_insert(self, repo):
            assert repo.upsert(_make_tenant()) is True
            tenant = repo.get_tenant("acme")
            assert tenant.name == "Acme Inc"
            assert tenant.chat_bot_token == "xoxb-acme"

        def test_replace_existing(self, repo):
            """Upserting the same id should replace the record, external ids included."""
            repo.upsert(_make_tenant())
            assert repo.upsert(_make_tenant(name="Acme Corp", chat_workspace_id="W-new")) is True

            tenant = repo.get_tenant("acme")
            assert tenant.name == "Acme Corp"
            assert repo.get_by_chat_workspace("W-new").id == "acme"
            assert repo.get_by_chat_workspace("W-acme") is None
            assert len(repo.list_tenants()) == 1

        def test_external_ids_unique(self, repo):
            """Two tenants cannot share a chat workspace."""
            repo.upsert(_make_tenant("acme"))
            assert repo.upsert(_make_tenant("globex", chat_workspace_id="W-acme")) is False
            assert repo.get_tenant("globex") is None
            assert repo.get_tenant("acme") is not None

        def test_failed_replace_keeps_original(self, repo):
            """A rejected replacement should leave the stored record intact."""
            repo.upsert(_make_tenant("acme"))
            repo.upsert(_make_tenant("globex"))

            assert repo.upsert(_make_tenant("acme", task_bot_user_id="BOT-globex")) is False
            assert repo.get_tenant("acme").task_bot_user_id == "BOT-acme"

    class TestLookups:
        """SUT: TenantRepository.get_tenant / get_by_chat_workspace / get_by_task_bot_user"""

        def test_by_external_ids(self, repo):
            repo.upsert(_make_tenant("acme"))
            repo.upsert(_make_tenant("globex"))

            assert repo.get_by_chat_workspace("W-globex").id == "globex"
            assert repo.get_by_task_bot_user("BOT-acme").id == "acme"

        def test_unknown(self, repo):
            assert repo.get_tenant("missing") is None
            assert repo.get_by_chat_workspace("W-missing") is None
            assert repo.get_by_task_bot_user("BOT-missing") is None

    class TestListTenants:
        """SUT: TenantRepository.list_tenants"""

        def test_ordered_by_creation(self, repo):
            repo.upsert(_make_tenant("globex", created_at=T0 + timedelta(days=1)))
            repo.upsert(_make_tenant("acme", created_at=T0))

            assert [t.id for t in repo.list_tenants()] == ["acme", "globex"]

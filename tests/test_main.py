"""Tests for FastAPI application entry point."""

import json

import pytest
from httpx import AsyncClient, ASGITransport

from taskclaim.db.repositories.tenant import TenantRepository
from taskclaim.main import app, load_tenants


@pytest.fixture
async def client():
    """Provide an async test client for the app (no lifespan)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestMain:
    """SUT: app (main.py)"""

    async def test_health_check(self, client: AsyncClient):
        """GET /health should return 200 with healthy status."""
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"

    def test_routes_registered(self):
        paths = {route.path for route in app.routes}
        assert "/api/v1/tenants/{tenant_id}/tasks/{task_id}/assigned" in paths
        assert "/api/v1/tenants/{tenant_id}/conversations/{task_id}/events" in paths
        assert "/api/v1/chat/workspaces/{workspace_id}/messages" in paths
        assert "/api/v1/scheduler/run" in paths


class TestLoadTenants:
    """SUT: load_tenants"""

    def test_seeds_registry(self, tmp_path, db_conn):
        path = tmp_path / "tenants.json"
        path.write_text(json.dumps([
            {"id": "acme", "name": "Acme", "chat_workspace_id": "W1", "task_bot_user_id": "B1"},
            {"id": "globex", "name": "Globex", "chat_workspace_id": "W2", "task_bot_user_id": "B2",
             "sheet_id": "s2"},
        ]))
        repo = TenantRepository(db_conn.conn)

        assert load_tenants(str(path), repo) == 2
        assert repo.get_by_chat_workspace("W2").sheet_id == "s2"

    def test_skips_invalid_entries(self, tmp_path, db_conn):
        path = tmp_path / "tenants.json"
        path.write_text(json.dumps([
            {"id": "acme", "name": "Acme", "chat_workspace_id": "W1", "task_bot_user_id": "B1"},
            {"id": "broken", "name": "Broken", "unexpected": True},
        ]))
        repo = TenantRepository(db_conn.conn)

        assert load_tenants(str(path), repo) == 1
        assert repo.get_tenant("broken") is None

    def test_missing_file(self, tmp_path, db_conn):
        assert load_tenants(str(tmp_path / "missing.json"), TenantRepository(db_conn.conn)) == 0

    def test_invalid_json(self, tmp_path, db_conn):
        path = tmp_path / "tenants.json"
        path.write_text("{not json")
        assert load_tenants(str(path), TenantRepository(db_conn.conn)) == 0

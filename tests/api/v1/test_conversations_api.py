"""Tests for the conversation read API."""

from httpx import AsyncClient

BASE = "/api/v1/tenants/acme/conversations"


async def _assign(client: AsyncClient, task_id="T1", task_name="Q3 Report"):
    return await client.post(
        f"/api/v1/tenants/acme/tasks/{task_id}/assigned", json={"task_name": task_name}
    )


class TestListConversations:
    """SUT: GET /api/v1/tenants/{tenant_id}/conversations"""

    async def test_empty(self, client):
        response = await client.get(BASE)
        assert response.status_code == 200
        assert response.json() == {"conversations": [], "total": 0}

    async def test_lists_and_filters_by_state(self, client):
        await _assign(client, "T1")
        await _assign(client, "T2", task_name="Unmapped")

        all_items = (await client.get(BASE)).json()
        unassignable = (await client.get(BASE, params={"state": "unassignable"})).json()

        assert all_items["total"] == 2
        assert [c["task_id"] for c in unassignable["conversations"]] == ["T2"]

    async def test_invalid_state(self, client):
        response = await client.get(BASE, params={"state": "sleeping"})
        assert response.status_code == 422

    async def test_tenant_scoped(self, client):
        await _assign(client)
        response = await client.get("/api/v1/tenants/globex/conversations")
        assert response.json()["total"] == 0

    async def test_unknown_tenant(self, client):
        response = await client.get("/api/v1/tenants/initech/conversations")
        assert response.status_code == 404


class TestGetConversation:
    """SUT: GET /api/v1/tenants/{tenant_id}/conversations/{task_id}"""

    async def test_found(self, client):
        await _assign(client)

        response = await client.get(f"{BASE}/T1")

        assert response.status_code == 200
        data = response.json()
        assert data["tenant_id"] == "acme"
        assert data["task_name"] == "Q3 Report"
        assert data["candidate_owner_name"] == "Alex Kim"
        assert data["follow_ups_sent"] == []

    async def test_not_found(self, client):
        response = await client.get(f"{BASE}/missing")
        assert response.status_code == 404


class TestConversationEvents:
    """SUT: GET /api/v1/tenants/{tenant_id}/conversations/{task_id}/events"""

    async def test_audit_log(self, client):
        await _assign(client)
        await client.post("/api/v1/tenants/acme/tasks/T1/replies", json={"text": "yes"})

        response = await client.get(f"{BASE}/T1/events")

        assert response.status_code == 200
        data = response.json()
        assert [e["event_type"] for e in data["events"]] == ["assigned", "message_sent", "accepted"]
        assert data["total"] == 3

    async def test_limit(self, client):
        await _assign(client)
        response = await client.get(f"{BASE}/T1/events", params={"limit": 1})
        assert [e["event_type"] for e in response.json()["events"]] == ["message_sent"]

    async def test_not_found(self, client):
        response = await client.get(f"{BASE}/missing/events")
        assert response.status_code == 404

"""Tests for the inbound event API."""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from taskclaim.api.v1 import tasks

BASE = "/api/v1/tenants/acme/tasks"


async def _assign(client: AsyncClient, task_id="T1", **body):
    payload = {"task_name": "Q3 Report", "deadline": "2026-03-12T09:00:00Z"}
    payload.update(body)
    return await client.post(f"{BASE}/{task_id}/assigned", json=payload)


class TestTaskAssigned:
    """SUT: POST /api/v1/tenants/{tenant_id}/tasks/{task_id}/assigned"""

    async def test_creates_conversation(self, client, chat):
        response = await _assign(client)

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "created"
        assert data["conversation"]["state"] == "awaiting_response"
        assert data["conversation"]["candidate_owner_ref"] == "U_ALEX"
        assert data["conversation"]["task_deadline"].startswith("2026-03-12T09:00:00")
        assert len(chat.sent) == 1

    async def test_duplicate_ignored(self, client):
        await _assign(client)
        response = await _assign(client)
        assert response.json()["outcome"] == "ignored"

    async def test_unknown_tenant(self, client):
        response = await client.post(
            "/api/v1/tenants/initech/tasks/T1/assigned", json={"task_name": "Q3 Report"}
        )
        assert response.status_code == 404

    async def test_validation(self, client):
        response = await client.post(f"{BASE}/T1/assigned", json={"task_name": ""})
        assert response.status_code == 422

    async def test_engine_not_initialized(self, client, monkeypatch):
        monkeypatch.setattr(tasks, "engine", None)
        response = await _assign(client)
        assert response.status_code == 500


class TestReplies:
    """SUT: POST /api/v1/tenants/{tenant_id}/tasks/{task_id}/replies"""

    async def test_accept(self, client, tracker):
        await _assign(client)

        response = await client.post(f"{BASE}/T1/replies", json={"text": "I'll take it", "user_ref": "U_ALEX"})

        assert response.status_code == 200
        assert response.json()["outcome"] == "claimed"
        assert response.json()["conversation"]["state"] == "claimed"
        assert len(tracker.confirmed) == 1

    async def test_decline(self, client, tracker):
        await _assign(client)

        response = await client.post(f"{BASE}/T1/replies", json={"text": "no thanks"})

        data = response.json()
        assert data["outcome"] == "unassignable"
        assert data["conversation"]["declined_owner_refs"] == ["U_ALEX"]
        assert data["conversation"]["resolution_note"] == "no alternate candidate"

    async def test_unknown_task(self, client):
        response = await client.post(f"{BASE}/missing/replies", json={"text": "yes"})
        assert response.status_code == 200
        assert response.json() == {"outcome": "ignored", "conversation": None}


class TestClosed:
    """SUT: POST /api/v1/tenants/{tenant_id}/tasks/{task_id}/closed"""

    async def test_close(self, client):
        await _assign(client)

        first = await client.post(f"{BASE}/T1/closed")
        second = await client.post(f"{BASE}/T1/closed")

        assert first.json()["outcome"] == "closed"
        assert second.json()["outcome"] == "ignored"
        assert second.json()["conversation"]["state"] == "closed"


class TestChatMessages:
    """SUT: POST /api/v1/chat/workspaces/{workspace_id}/messages"""

    async def test_routes_dm_by_workspace(self, client):
        await _assign(client)

        response = await client.post(
            "/api/v1/chat/workspaces/W-acme/messages", json={"user_ref": "U_ALEX", "text": "sure"}
        )

        assert response.status_code == 200
        assert response.json()["outcome"] == "claimed"
        assert response.json()["conversation"]["task_id"] == "T1"

    async def test_unknown_workspace(self, client):
        response = await client.post(
            "/api/v1/chat/workspaces/W-nope/messages", json={"user_ref": "U_ALEX", "text": "sure"}
        )
        assert response.status_code == 404

    async def test_other_workspace_does_not_see_task(self, client):
        await _assign(client)

        response = await client.post(
            "/api/v1/chat/workspaces/W-globex/messages", json={"user_ref": "U_ALEX", "text": "sure"}
        )
        assert response.json()["outcome"] == "ignored"


class TestSchedulerRun:
    """SUT: POST /api/v1/scheduler/run"""

    async def test_manual_sweep(self, client, clock):
        await _assign(client, deadline=(clock() + timedelta(days=10)).isoformat())
        clock.advance(days=5)

        first = await client.post("/api/v1/scheduler/run")
        second = await client.post("/api/v1/scheduler/run")

        assert first.json() == {"reminders_sent": 1}
        assert second.json() == {"reminders_sent": 0}

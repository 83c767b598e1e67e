"""Pytest fixtures for API testing."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from taskclaim.api.v1 import conversations, scheduler as scheduler_api, tasks


@pytest.fixture(scope="function")
async def client(db_conn, tenant_repo, engine, scheduler, sheets, chat):
    """Async HTTP client against the v1 routers, wired to in-memory collaborators."""
    sheets.map("acme", "Q3 Report", "Alex Kim")
    chat.add_user("acme", "Alex Kim", "U_ALEX")

    # Inject dependencies into routers
    conversations.db_conn = db_conn
    tasks.engine = engine
    scheduler_api.scheduler = scheduler

    # Create a test app without lifespan (to avoid conflicts)
    test_app = FastAPI(title="taskclaim test")
    test_app.include_router(tasks.router)
    test_app.include_router(conversations.router)
    test_app.include_router(scheduler_api.router)

    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    conversations.db_conn = None
    tasks.engine = None
    scheduler_api.scheduler = None

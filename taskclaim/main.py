"""FastAPI main application."""

import json
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI

from .config import settings
from .db import ConversationRepository, DatabaseConnection, EventLogRepository, TenantRepository
from .db.database_models import TenantDO
from .integrations.asana import AsanaTaskTracker
from .integrations.sheets import GoogleSheetsClient
from .integrations.slack import SlackChatClient
from .services.conversation_engine import ConversationEngine
from .services.follow_up_scheduler import FollowUpScheduler
from .services.owner_resolver import OwnerResolver
from .utils.logger import init_app_logger
from .api.v1 import conversations, scheduler, tasks


# Initialize logger
logger = init_app_logger(settings)

VERSION = "1.0.0"


def load_tenants(path: str, repo: TenantRepository) -> int:
    """
    Seed the tenant registry from a JSON file holding a list of tenant objects.

    Args:
        path: Path to the JSON file
        repo: Tenant repository

    Returns:
        Number of tenants written
    """
    file_path = Path(path)
    if not file_path.exists():
        logger.error(f"Tenants file not found: {path}")
        return 0

    try:
        entries = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        logger.error(f"Tenants file {path} is not valid JSON: {e}")
        return 0

    loaded = 0
    for entry in entries:
        try:
            tenant = TenantDO(**entry)
        except TypeError as e:
            logger.error(f"Skipping invalid tenant entry {entry.get('id', '?')}: {e}")
            continue
        if repo.upsert(tenant):
            loaded += 1
    return loaded


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    Args:
        app: FastAPI application instance
    """
    # Startup
    logger.info("=" * 70)
    logger.info("Starting taskclaim...")
    logger.info("=" * 70)

    logger.info("")
    logger.info(f"📡 Listening on {settings.host}:{settings.port} (debug={settings.debug}, log level {settings.log_level})")
    logger.info("🔌 Integrations:")
    logger.info(f"  Chat: {settings.slack_api_base}")
    logger.info(f"  Owner sheet: {settings.sheets_api_base} (tab '{settings.sheets_tab}')")
    logger.info(f"  Task tracker: {settings.asana_api_base}")

    logger.info("")
    logger.info("⏰ Follow-up Configuration:")
    logger.info(f"  Scheduler Enabled: {settings.scheduler_enabled}")
    logger.info(f"  Poll Interval: {settings.scheduler_poll_interval}s")
    logger.info(f"  Near-deadline Lead: {settings.near_deadline_lead_hours}h")

    logger.info("")
    logger.info("🗄️  Initializing Database...")
    db_conn = DatabaseConnection(settings.database_path)
    tenant_repo = TenantRepository(db_conn.conn)
    logger.info(f"  Database: {settings.database_path}")

    if settings.tenants_file:
        seeded = load_tenants(settings.tenants_file, tenant_repo)
        logger.info(f"  Seeded {seeded} tenants from {settings.tenants_file}")
    logger.info(f"  Tenants: {len(tenant_repo.list_tenants())}")

    http = httpx.AsyncClient(timeout=settings.http_timeout)
    chat = SlackChatClient(tenant_repo, http, settings.slack_api_base)
    sheets = GoogleSheetsClient(tenant_repo, http, settings.sheets_api_base, settings.sheets_tab)
    tracker = AsanaTaskTracker(tenant_repo, http, settings.asana_api_base, settings.retry_options())

    store = ConversationRepository(db_conn.conn)
    engine = ConversationEngine(
        store=store,
        events=EventLogRepository(db_conn.conn),
        resolver=OwnerResolver(sheets, chat),
        chat=chat,
        tracker=tracker,
        settings=settings
    )
    follow_ups = FollowUpScheduler(store, engine, settings)

    # Inject dependencies into routers
    conversations.db_conn = db_conn
    tasks.engine = engine
    scheduler.scheduler = follow_ups

    if settings.scheduler_enabled:
        follow_ups.start()

    logger.info("")
    logger.info("=" * 70)
    logger.info("✅ taskclaim started successfully!")
    logger.info(f"📍 Access at: http://{settings.host}:{settings.port}")
    logger.info(f"📚 API Docs: http://{settings.host}:{settings.port}/docs")
    logger.info("=" * 70)

    yield

    # Shutdown
    logger.info("")
    logger.info("Shutting down taskclaim...")
    await follow_ups.stop()
    await http.aclose()
    db_conn.close()
    logger.info("✅ taskclaim shut down successfully")


# Create FastAPI application
app = FastAPI(
    title="taskclaim",
    description="Finds the owner of newly assigned tasks and follows up until someone claims them",
    version=VERSION,
    lifespan=lifespan
)

# Include API routers
app.include_router(tasks.router)
app.include_router(conversations.router)
app.include_router(scheduler.router)


@app.get("/health")
async def health():
    """
    Simple health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": "taskclaim",
        "version": VERSION
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "taskclaim.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )

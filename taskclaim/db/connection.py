"""Database connection and schema management."""

import duckdb
from typing import Optional
from pathlib import Path
from ..utils.logger import get_app_logger


class DatabaseConnection:
    """DuckDB connection manager."""

    def __init__(self, db_path: str = "./data/taskclaim.db"):
        """
        Initialize database connection.

        Args:
            db_path: Path to DuckDB database file
        """
        self.db_path = db_path
        self.logger = get_app_logger()
        self.conn: Optional[duckdb.DuckDBPyConnection] = None

        # Ensure database directory exists
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connect()
        self._init_schema()

    def _connect(self):
        """Connect to DuckDB database."""
        try:
            self.conn = duckdb.connect(self.db_path)
            self.logger.info(f"Connected to DuckDB at {self.db_path}")
        except Exception as e:
            self.logger.error(f"Failed to connect to DuckDB: {e}")
            raise

    def _init_schema(self):
        """Initialize database schema."""
        try:
            # Tenants table - external ids are unique so lookups never depend on scan order
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS tenants (
                    id VARCHAR PRIMARY KEY,
                    name VARCHAR NOT NULL,
                    chat_workspace_id VARCHAR NOT NULL UNIQUE,
                    chat_bot_token VARCHAR,
                    task_workspace_id VARCHAR,
                    task_bot_user_id VARCHAR NOT NULL UNIQUE,
                    task_api_token VARCHAR,
                    sheet_id VARCHAR,
                    sheet_api_key VARCHAR,
                    admin_user_ref VARCHAR,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)

            # Conversations table - one ownership negotiation per (tenant, task)
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    tenant_id VARCHAR NOT NULL,
                    task_id VARCHAR NOT NULL,
                    task_name VARCHAR NOT NULL,
                    state VARCHAR NOT NULL,
                    candidate_owner_ref VARCHAR,
                    candidate_owner_name VARCHAR,
                    declined_owner_refs VARCHAR NOT NULL DEFAULT '[]',
                    task_deadline TIMESTAMP,
                    last_message_sent_at TIMESTAMP,
                    last_reply_received_at TIMESTAMP,
                    follow_ups_sent VARCHAR NOT NULL DEFAULT '[]',
                    pending_message VARCHAR,
                    resolution_note VARCHAR,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (tenant_id, task_id)
                )
            """)

            # Append-only audit log of applied transitions
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS conversation_events (
                    id BIGINT PRIMARY KEY,
                    tenant_id VARCHAR NOT NULL,
                    task_id VARCHAR NOT NULL,
                    event_type VARCHAR NOT NULL,
                    from_state VARCHAR,
                    to_state VARCHAR,
                    detail JSON,
                    created_at TIMESTAMP NOT NULL
                )
            """)

            # No ART indexes on mutable conversation columns: DuckDB rewrites updates of
            # indexed columns as delete+insert, which trips the primary key check.
            # Scheduler scans on (state, task_deadline) rely on zonemaps instead.
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_events_conversation ON conversation_events(tenant_id, task_id)")

            self.conn.execute("CREATE SEQUENCE IF NOT EXISTS conversation_events_id_seq START 1")

            self.logger.info("Database schema initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize database schema: {e}")
            raise

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.logger.info("Database connection closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

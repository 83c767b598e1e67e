"""Base repository class."""

from typing import Any, List

import duckdb
from ...utils.logger import get_app_logger


class BaseRepository:
    """Base class for all repositories.

    Repositories own their error handling: database errors are logged and
    surface as False/None/[] to the caller.
    """

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        """
        Initialize repository with database connection.

        Args:
            conn: DuckDB connection instance
        """
        self.conn = conn
        self.logger = get_app_logger()

    def _execute_count(self, sql: str, params: List[Any]) -> int:
        """Run a DML statement and return the number of affected rows."""
        result = self.conn.execute(sql, params).fetchone()
        return result[0] if result else 0

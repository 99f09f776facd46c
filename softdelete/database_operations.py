from dataclasses import dataclass, field
from typing import Any

import asyncpg

from softdelete.db_context import DatabaseManager


@dataclass
class StatementResult:
    """Outcome of an executed statement.

    `status` is the command tag returned by PostgreSQL ("UPDATE 3",
    "DELETE 0", ...) for write statements, `rows` the fetched records for
    selects.
    """

    status: str = ""
    rows: list[Any] = field(default_factory=list)
    _closed: bool = False

    def row_count(self) -> int:
        """Number of rows affected (writes) or returned (selects)"""
        if self.status:
            last = self.status.rsplit(" ", 1)[-1]
            return int(last) if last.isdigit() else 0
        return len(self.rows)

    def close_cursor(self) -> None:
        """Release the fetched rows. The row count stays available."""
        if not self.status:
            self.status = f"SELECT {len(self.rows)}"
        self.rows = []
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed


class DatabaseOperations:
    """Composition class for database operations"""

    @staticmethod
    def get_connection() -> asyncpg.Connection:
        """Get the current database connection from context"""
        conn = DatabaseManager.get_current_connection()
        if not conn:
            raise ValueError(
                "No active transaction found. Repository methods must be called within a transaction context."
            )
        return conn

    async def fetch_all(self, query: str, params: list[Any]) -> list[Any]:
        conn = self.get_connection()
        DatabaseManager.log_query(query, params)
        return await conn.fetch(query, *params)

    async def fetch_value(self, query: str, params: list[Any]) -> Any:
        conn = self.get_connection()
        DatabaseManager.log_query(query, params)
        return await conn.fetchval(query, *params)

    async def execute_query(self, query: str, params: list[Any]) -> StatementResult:
        """Execute a write statement and wrap its command tag"""
        conn = self.get_connection()
        DatabaseManager.log_query(query, params)
        status = await conn.execute(query, *params)
        return StatementResult(status=status)

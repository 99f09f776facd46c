"""Connection and transaction scoping.

Repositories never open connections themselves: every statement runs on
the connection bound to the current context by `DatabaseManager.transaction`.
Opening a transaction inside another one reuses that connection and opens
a savepoint, so `delete()` and `hard_delete()` can roll back their own
statements without touching the caller's transaction.
"""

import traceback
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import wraps
from typing import Any

import asyncpg
import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ActiveTransaction:
    """The connection bound to the current context and its savepoint depth.

    depth is 1 for the outermost transaction and grows by one per savepoint.
    """

    connection: asyncpg.Connection
    db_name: str
    depth: int = 1

    def nested(self) -> "ActiveTransaction":
        return ActiveTransaction(self.connection, self.db_name, self.depth + 1)


@dataclass
class ExecutedStatement:
    sql: str
    params: list[Any]
    depth: int
    executed_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    origin: str | None = None


class QueryTracker:
    """Records the statements sent while it is installed in the context"""

    def __init__(self):
        self._statements: list[ExecutedStatement] = []

    def record(
        self, sql: str, params: list[Any], depth: int, origin: str | None = None
    ) -> None:
        self._statements.append(ExecutedStatement(sql, list(params), depth, origin=origin))

    def statements(self, prefix: str | None = None) -> list[ExecutedStatement]:
        """Recorded statements, optionally only those starting with `prefix`"""
        if prefix is None:
            return list(self._statements)
        return [s for s in self._statements if s.sql.startswith(prefix)]

    def clear(self) -> None:
        self._statements.clear()

    def __len__(self) -> int:
        return len(self._statements)


_active_transaction: ContextVar[ActiveTransaction | None] = ContextVar(
    "active_transaction", default=None
)
_query_tracker: ContextVar[QueryTracker | None] = ContextVar(
    "query_tracker", default=None
)
_pools: dict[str, asyncpg.Pool] = {}


class DatabaseManager:
    """Named pools plus the transaction bound to the current context"""

    @classmethod
    async def add_pool(cls, name: str, pool: asyncpg.Pool):
        _pools[name] = pool

    @classmethod
    async def get_pool(cls, name: str = "default") -> asyncpg.Pool:
        try:
            return _pools[name]
        except KeyError:
            raise ValueError(f"Database pool '{name}' not found") from None

    @classmethod
    def get_active_transaction(cls) -> ActiveTransaction | None:
        return _active_transaction.get()

    @classmethod
    def get_current_connection(cls) -> asyncpg.Connection | None:
        active = _active_transaction.get()
        return active.connection if active else None

    @classmethod
    def transaction_depth(cls) -> int:
        """0 outside any transaction, 1 in the outermost, +1 per savepoint"""
        active = _active_transaction.get()
        return active.depth if active else 0

    @classmethod
    def get_query_tracker(cls) -> QueryTracker | None:
        return _query_tracker.get()

    @classmethod
    def log_query(cls, query: str, params: list[Any]):
        depth = cls.transaction_depth()
        logger.debug("Executing statement", sql=query, params=params, depth=depth)
        tracker = _query_tracker.get()
        if tracker is not None:
            # Without this frame and the DatabaseOperations one
            origin = "".join(traceback.format_stack()[:-2])
            tracker.record(query, params, depth, origin)

    @classmethod
    @asynccontextmanager
    async def transaction(cls, db_name: str = "default", track_queries: bool = False):
        """Bind a transaction to the current context for the duration of the block.

        The outermost call acquires a connection from the `db_name` pool and
        releases it on exit, also when the block raises. Nested calls open a
        savepoint on the same connection whatever `db_name` they pass: an
        exception leaving the nested block rolls back only the statements
        run inside it.

        Args:
            db_name: Name of the database pool to use
            track_queries: Install a QueryTracker unless one is already active
        """
        active = _active_transaction.get()
        if active is not None:
            async with active.connection.transaction():
                token = _active_transaction.set(active.nested())
                logger.debug("Opened savepoint", depth=active.depth + 1)
                try:
                    yield active.connection
                finally:
                    _active_transaction.reset(token)
            return

        pool = await cls.get_pool(db_name)
        async with pool.acquire() as conn, conn.transaction():
            token = _active_transaction.set(ActiveTransaction(conn, db_name))
            tracker_token = None
            if track_queries and _query_tracker.get() is None:
                tracker_token = _query_tracker.set(QueryTracker())
            try:
                yield conn
            finally:
                _active_transaction.reset(token)
                if tracker_token is not None:
                    _query_tracker.reset(tracker_token)

    @classmethod
    @asynccontextmanager
    async def track_queries(cls):
        """Record the statements run inside the block.

        An already installed tracker is reused, so statements recorded
        before the block stay visible.

            async with DatabaseManager.transaction():
                async with DatabaseManager.track_queries() as tracker:
                    await articles.find().all()
                selects = tracker.statements("SELECT")
        """
        current = _query_tracker.get()
        if current is not None:
            yield current
            return

        tracker = QueryTracker()
        token = _query_tracker.set(tracker)
        try:
            yield tracker
        finally:
            _query_tracker.reset(token)


def transactional(db_name: str = "default", query_logs: bool = False):
    """Run the decorated coroutine function in `DatabaseManager.transaction`.

    Example:
        @transactional("main")
        async def archive(article):
            return await articles.delete(article)
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            async with DatabaseManager.transaction(db_name, track_queries=query_logs):
                return await func(*args, **kwargs)

        return wrapper

    return decorator

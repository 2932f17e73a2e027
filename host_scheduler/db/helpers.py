"""
Thin query helpers over the pool.

Repositories call these instead of checking out connections themselves.
Every psycopg error leaves as a DatabaseError. Connection-level faults
(psycopg.OperationalError) become TransientDatabaseError, which
with_db_retry retries for methods that are safe to run twice.
"""

import asyncio
import functools
from collections.abc import Awaitable, Callable
from typing import Any

import psycopg
from psycopg import sql

from host_scheduler.db.pool import get_db_connection, get_db_transaction
from host_scheduler.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

Query = str | sql.Composable


class DatabaseError(Exception):
    """Storage failure surfaced to services and routes."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class TransientDatabaseError(DatabaseError):
    """Connection dropped or server unreachable; the statement may or may not have run."""


def _preview(query: Query) -> str:
    return (query if isinstance(query, str) else repr(query))[:100]


async def _run_cursor(
    query: Query,
    params: tuple,
    read: Callable[[psycopg.AsyncCursor], Awaitable[Any]],
    connection: psycopg.AsyncConnection | None,
) -> Any:
    if connection is not None:
        async with connection.cursor() as cur:
            await cur.execute(query, params)
            return await read(cur)

    async with await get_db_connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(query, params)
            return await read(cur)


async def _run(operation: str, query: Query, params: tuple, read, connection) -> Any:
    try:
        return await _run_cursor(query, params, read, connection)
    except psycopg.OperationalError as e:
        logger.warning(
            "Database connection error", operation=operation, query=_preview(query), error=str(e)
        )
        raise TransientDatabaseError(f"Connection failed: {e}", operation=operation) from e
    except psycopg.Error as e:
        logger.error(
            "Database query error", operation=operation, query=_preview(query), error=str(e)
        )
        raise DatabaseError(f"Query failed: {e}", operation=operation) from e


async def fetch_one(
    query: Query, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> dict[str, Any] | None:
    """
    Run a query and return the first row, or None.

    Conditional UPDATE ... RETURNING statements go through here too: a None
    result means the WHERE guard rejected the write.
    """
    return await _run("fetch_one", query, params, lambda cur: cur.fetchone(), connection)


async def fetch_all(
    query: Query, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> list[dict[str, Any]]:
    """Run a query and return every row as a dict."""
    return await _run("fetch_all", query, params, lambda cur: cur.fetchall(), connection)


async def execute_transaction(statements: list[tuple[Query, tuple]]) -> None:
    """Run (query, params) pairs in one transaction; used for schema setup."""
    try:
        async with await get_db_transaction() as conn:
            for query, params in statements:
                await conn.execute(query, params)
    except psycopg.Error as e:
        logger.error("Transaction failed", statement_count=len(statements), error=str(e))
        raise DatabaseError(f"Transaction failed: {e}", operation="transaction") from e

    logger.debug("Transaction committed", statement_count=len(statements))


def with_db_retry(max_retries: int = 3, base_delay: float = 0.1):
    """
    Retry an async repository method on connection-level failures.

    Only for reads and idempotent writes: a statement that committed before
    the connection dropped runs again. Waits base_delay * 2**attempt between
    tries; when retries run out the error is raised as a non-recoverable
    DatabaseError.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except (TransientDatabaseError, psycopg.OperationalError) as e:
                    if attempt >= max_retries:
                        logger.error(
                            "Database operation failed after all retries",
                            operation=func.__name__,
                            attempts=attempt + 1,
                            error=str(e),
                        )
                        raise DatabaseError(
                            f"{func.__name__} failed after {max_retries} retries: {e}",
                            operation=func.__name__,
                            recoverable=False,
                        ) from e

                    delay = base_delay * (2**attempt)
                    logger.warning(
                        "Transient database error, retrying",
                        operation=func.__name__,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay=delay,
                        error=str(e),
                    )
                    attempt += 1
                    await asyncio.sleep(delay)

        return wrapper

    return decorator

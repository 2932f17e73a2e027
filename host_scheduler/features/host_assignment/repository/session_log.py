"""
Read-only access to the externally owned session log.

The session table belongs to the scheduling application; this module only
reads the columns needed for conflict checks and reconciliation. Stored
host emails may carry any case, so every match goes through lower().
"""

from datetime import datetime

from psycopg import sql

from host_scheduler.config import settings
from host_scheduler.db.helpers import DatabaseError, fetch_all, with_db_retry
from host_scheduler.features.host_assignment.domain import (
    COMMITTED_STATUSES,
    SessionWindow,
    ensure_utc,
    normalize_email,
)
from host_scheduler.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

COMMITTED_SESSIONS_QUERY = sql.SQL(
    """
    SELECT id, host_email, scheduled_at, duration_minutes, status
    FROM {table}
    WHERE lower(host_email) = %s
      AND status = ANY(%s)
    ORDER BY scheduled_at ASC
    """
)

OCCUPYING_SESSIONS_QUERY = sql.SQL(
    """
    SELECT lower(host_email) AS host_email, COUNT(*) AS active_count
    FROM {table}
    WHERE host_email IS NOT NULL
      AND status = ANY(%s)
      AND scheduled_at <= %s
      AND scheduled_at + duration_minutes * INTERVAL '1 minute' > %s
    GROUP BY lower(host_email)
    """
)


class SessionLogError(DatabaseError):
    """Raised when the session log is misconfigured or cannot be queried."""


class SessionLogRepository:
    """Queries sessions by host identity and status."""

    def __init__(self, table: str | None = None):
        table = (table or settings.SESSIONS_TABLE).strip()
        if not table:
            raise SessionLogError("Sessions table name is empty", operation="init")
        self.table = table
        # "schema.table" becomes a qualified, quoted identifier
        self._table_sql = sql.Identifier(*table.split("."))

    @staticmethod
    def _row_to_window(row: dict) -> SessionWindow:
        return SessionWindow(
            session_id=str(row["id"]),
            host_email=row.get("host_email"),
            scheduled_at=row["scheduled_at"],
            duration_minutes=int(row["duration_minutes"]),
            status=row["status"],
        )

    @with_db_retry(max_retries=2)
    async def list_committed_sessions(self, host_email: str) -> list[SessionWindow]:
        """Sessions on the host that are still scheduled or live, earliest first."""
        query = COMMITTED_SESSIONS_QUERY.format(table=self._table_sql)
        rows = await fetch_all(query, (normalize_email(host_email), list(COMMITTED_STATUSES)))
        return [self._row_to_window(row) for row in rows]

    @with_db_retry(max_retries=2)
    async def count_occupying_sessions(self, now: datetime) -> dict[str, int]:
        """
        Count committed sessions per host whose [start, end) window contains now.

        Hosts with no occupying session are absent from the result.
        """
        now = ensure_utc(now)
        query = OCCUPYING_SESSIONS_QUERY.format(table=self._table_sql)
        rows = await fetch_all(query, (list(COMMITTED_STATUSES), now, now))

        counts = {row["host_email"]: int(row["active_count"]) for row in rows}
        logger.debug("Occupying sessions counted", hosts_with_sessions=len(counts))
        return counts


session_log = SessionLogRepository()

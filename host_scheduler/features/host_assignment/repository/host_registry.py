"""
Persistence layer for meeting host accounts.

Every counter mutation is a single conditional UPDATE so concurrent
assign/release calls never read-modify-write in application memory.
"""

from host_scheduler.db.helpers import (
    DatabaseError,
    execute_transaction,
    fetch_all,
    fetch_one,
    with_db_retry,
)
from host_scheduler.features.host_assignment.domain import (
    Host,
    HostProvisioning,
    HostUsage,
    normalize_email,
)
from host_scheduler.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class HostRegistryError(DatabaseError):
    """More specific exception for host registry failures."""


CREATE_HOSTS_TABLE = """
    CREATE TABLE IF NOT EXISTS meeting_hosts (
        email TEXT PRIMARY KEY CHECK (email = lower(email)),
        display_name TEXT NOT NULL,
        account_id TEXT,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        is_primary BOOLEAN NOT NULL DEFAULT FALSE,
        max_concurrent_meetings INTEGER NOT NULL DEFAULT 1
            CHECK (max_concurrent_meetings >= 1),
        priority INTEGER NOT NULL DEFAULT 50 CHECK (priority BETWEEN 0 AND 100),
        current_meetings INTEGER NOT NULL DEFAULT 0 CHECK (current_meetings >= 0),
        last_used_at TIMESTAMPTZ,
        total_meetings_hosted INTEGER NOT NULL DEFAULT 0,
        notes TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""

CREATE_HOSTS_PRIORITY_INDEX = """
    CREATE INDEX IF NOT EXISTS idx_meeting_hosts_active_priority
    ON meeting_hosts (is_active, priority DESC)
"""


class HostRegistry:
    """Durable host records plus the atomic load-counter primitives."""

    SELECT_COLUMNS = """
        email, display_name, account_id, is_active, is_primary,
        max_concurrent_meetings, priority, current_meetings,
        last_used_at, total_meetings_hosted, notes, created_at, updated_at
    """

    @staticmethod
    def _row_to_host(row: dict | None) -> Host | None:
        if not row:
            return None

        return Host(
            email=row["email"],
            display_name=row["display_name"],
            account_id=row.get("account_id"),
            is_active=row["is_active"],
            is_primary=row["is_primary"],
            max_concurrent_meetings=row["max_concurrent_meetings"],
            priority=row["priority"],
            current_meetings=row["current_meetings"],
            usage=HostUsage(
                last_used_at=row.get("last_used_at"),
                total_meetings_hosted=row.get("total_meetings_hosted") or 0,
                notes=row.get("notes"),
            ),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    async def create_schema(self) -> None:
        """Create the meeting_hosts table if it does not exist yet."""
        await execute_transaction([(CREATE_HOSTS_TABLE, ()), (CREATE_HOSTS_PRIORITY_INDEX, ())])
        logger.info("Host registry schema ensured")

    @with_db_retry(max_retries=2)
    async def get_host(self, email: str) -> Host | None:
        """Return the host regardless of activity state."""
        query = f"SELECT {self.SELECT_COLUMNS} FROM meeting_hosts WHERE email = %s"
        row = await fetch_one(query, (normalize_email(email),))
        return self._row_to_host(row)

    @with_db_retry(max_retries=2)
    async def get_active_host(self, email: str) -> Host | None:
        """Return the host only if it is active."""
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM meeting_hosts
            WHERE email = %s AND is_active = true
        """
        row = await fetch_one(query, (normalize_email(email),))
        return self._row_to_host(row)

    @with_db_retry(max_retries=2)
    async def list_hosts(self) -> list[Host]:
        rows = await fetch_all(f"SELECT {self.SELECT_COLUMNS} FROM meeting_hosts ORDER BY email")
        return [self._row_to_host(row) for row in rows]

    @with_db_retry(max_retries=2)
    async def list_hosts_by_priority(self) -> list[Host]:
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM meeting_hosts
            ORDER BY priority DESC, email ASC
        """
        rows = await fetch_all(query)
        return [self._row_to_host(row) for row in rows]

    async def try_increment(self, email: str) -> Host | None:
        """
        Claim one slot on the host.

        The capacity guard lives in the WHERE clause, so two concurrent
        callers can never both push the host past its limit. Returns None
        when the guard rejects the update (inactive, full, or unknown).

        Not retried: if the connection drops after the UPDATE commits, a
        second run would take a second slot. The error reaches the caller
        and the reconciler repairs any drift.
        """
        query = f"""
            UPDATE meeting_hosts
            SET current_meetings = current_meetings + 1,
                last_used_at = NOW(),
                total_meetings_hosted = total_meetings_hosted + 1,
                updated_at = NOW()
            WHERE email = %s
              AND is_active = true
              AND current_meetings < max_concurrent_meetings
            RETURNING {self.SELECT_COLUMNS}
        """
        row = await fetch_one(query, (normalize_email(email),))
        return self._row_to_host(row)

    async def decrement(self, email: str) -> Host | None:
        """
        Release one slot, flooring at zero. Returns None for unknown hosts.

        Not retried for the same reason as try_increment.
        """
        query = f"""
            UPDATE meeting_hosts
            SET current_meetings = GREATEST(current_meetings - 1, 0),
                updated_at = NOW()
            WHERE email = %s
            RETURNING {self.SELECT_COLUMNS}
        """
        row = await fetch_one(query, (normalize_email(email),))
        return self._row_to_host(row)

    @with_db_retry(max_retries=2)
    async def set_current_meetings(
        self, email: str, value: int, *, expected: int | None = None
    ) -> Host | None:
        """
        Overwrite the live counter with an absolute value (clamped at zero).

        With ``expected`` the write only lands if the stored value has not
        moved since it was read; otherwise None is returned and the newer
        value wins. Safe to retry: a repeated absolute write is a no-op, and
        a repeated compare-and-set finds the value moved and returns None.
        """
        value = max(0, value)

        if expected is None:
            query = f"""
                UPDATE meeting_hosts
                SET current_meetings = %s, updated_at = NOW()
                WHERE email = %s
                RETURNING {self.SELECT_COLUMNS}
            """
            params = (value, normalize_email(email))
        else:
            query = f"""
                UPDATE meeting_hosts
                SET current_meetings = %s, updated_at = NOW()
                WHERE email = %s AND current_meetings = %s
                RETURNING {self.SELECT_COLUMNS}
            """
            params = (value, normalize_email(email), expected)

        row = await fetch_one(query, params)
        return self._row_to_host(row)

    async def upsert_host(self, definition: HostProvisioning) -> Host:
        """Create or update a host definition without touching its live counter."""
        query = f"""
            INSERT INTO meeting_hosts (
                email, display_name, account_id, is_active, is_primary,
                max_concurrent_meetings, priority, notes
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (email) DO UPDATE SET
                display_name = EXCLUDED.display_name,
                account_id = EXCLUDED.account_id,
                is_active = EXCLUDED.is_active,
                is_primary = EXCLUDED.is_primary,
                max_concurrent_meetings = EXCLUDED.max_concurrent_meetings,
                priority = EXCLUDED.priority,
                notes = EXCLUDED.notes,
                updated_at = NOW()
            RETURNING {self.SELECT_COLUMNS}
        """
        params = (
            definition.email,
            definition.display_name,
            definition.account_id,
            definition.is_active,
            definition.is_primary,
            definition.max_concurrent_meetings,
            definition.priority,
            definition.notes,
        )

        row = await fetch_one(query, params)
        if not row:
            raise HostRegistryError("Failed to upsert meeting host", operation="upsert_host")

        logger.info(
            "Meeting host provisioned",
            host_email=definition.email,
            priority=definition.priority,
            max_concurrent_meetings=definition.max_concurrent_meetings,
        )
        return self._row_to_host(row)


host_registry = HostRegistry()

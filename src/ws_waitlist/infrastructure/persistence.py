# src/ws_waitlist/infrastructure/persistence.py
"""Waitlist persistence — raw SQL.

Queue order is ``created_at``; ``position_in_queue`` is informational and
computed at join time from the number of entries still waiting.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_waitlist.domain.models import WaitlistEntry

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_COLUMNS = """
    id, user_id, trader_id, status, position_in_queue, claim_token,
    claim_expires_at, notified_at, claimed_at, created_at
"""

# The partial unique index on (user_id, trader_id) for open entries makes a
# concurrent double join insert nothing instead of a second row.
_JOIN_SQL = text(f"""
    INSERT INTO waitlist_entries (user_id, trader_id, status, position_in_queue)
    SELECT :user_id, :trader_id, 'waiting', COUNT(*) + 1
    FROM waitlist_entries
    WHERE trader_id = :trader_id AND status = 'waiting'
    ON CONFLICT (user_id, trader_id) WHERE status IN ('waiting', 'notified') DO NOTHING
    RETURNING {_COLUMNS}
""")

_FIND_OPEN_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM waitlist_entries
    WHERE user_id = :user_id AND trader_id = :trader_id
      AND status IN ('waiting', 'notified')
""")

_LEAVE_SQL = text("""
    DELETE FROM waitlist_entries
    WHERE user_id = :user_id AND trader_id = :trader_id
      AND status IN ('waiting', 'notified')
""")

_LIST_OPEN_FOR_USER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM waitlist_entries
    WHERE user_id = :user_id AND status IN ('waiting', 'notified')
    ORDER BY created_at
""")

_COUNT_NOTIFIED_SQL = text("""
    SELECT COUNT(*)
    FROM waitlist_entries
    WHERE trader_id = :trader_id AND status = 'notified'
""")

_EARLIEST_WAITING_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM waitlist_entries
    WHERE trader_id = :trader_id AND status = 'waiting'
    ORDER BY created_at, id
    LIMIT 1
""")

_MARK_NOTIFIED_SQL = text(f"""
    UPDATE waitlist_entries
    SET status = 'notified', claim_token = :token,
        claim_expires_at = :expires_at, notified_at = :now
    WHERE id = :id AND status = 'waiting'
    RETURNING {_COLUMNS}
""")

_EXPIRE_CLAIMS_SQL = text(f"""
    UPDATE waitlist_entries
    SET status = 'expired'
    WHERE status = 'notified' AND claim_expires_at < :now
    RETURNING {_COLUMNS}
""")

_FIND_BY_TOKEN_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM waitlist_entries
    WHERE claim_token = :token
""")

_MARK_CLAIMED_SQL = text(f"""
    UPDATE waitlist_entries
    SET status = 'claimed', claimed_at = :now
    WHERE id = :id AND status = 'notified'
    RETURNING {_COLUMNS}
""")


def _row_to_entry(row: Any) -> WaitlistEntry:
    return WaitlistEntry(
        id=str(row.id),
        user_id=str(row.user_id),
        trader_id=str(row.trader_id),
        status=row.status,
        position_in_queue=row.position_in_queue,
        created_at=row.created_at,
        claim_token=row.claim_token,
        claim_expires_at=row.claim_expires_at,
        notified_at=row.notified_at,
        claimed_at=row.claimed_at,
    )


class WaitlistRepository:
    async def join(
        self, db: AsyncSession, user_id: str, trader_id: str
    ) -> WaitlistEntry | None:
        """None when the user already holds an open entry for this trader."""
        result = await db.execute(_JOIN_SQL, {"user_id": user_id, "trader_id": trader_id})
        row = result.fetchone()
        return _row_to_entry(row) if row else None

    async def find_open(
        self, db: AsyncSession, user_id: str, trader_id: str
    ) -> WaitlistEntry | None:
        result = await db.execute(_FIND_OPEN_SQL, {"user_id": user_id, "trader_id": trader_id})
        row = result.fetchone()
        return _row_to_entry(row) if row else None

    async def leave(self, db: AsyncSession, user_id: str, trader_id: str) -> int:
        result = await db.execute(_LEAVE_SQL, {"user_id": user_id, "trader_id": trader_id})
        return result.rowcount

    async def list_open_for_user(self, db: AsyncSession, user_id: str) -> list[WaitlistEntry]:
        result = await db.execute(_LIST_OPEN_FOR_USER_SQL, {"user_id": user_id})
        return [_row_to_entry(row) for row in result.fetchall()]

    async def count_outstanding_notified(self, db: AsyncSession, trader_id: str) -> int:
        result = await db.execute(_COUNT_NOTIFIED_SQL, {"trader_id": trader_id})
        return int(result.scalar_one())

    async def earliest_waiting(self, db: AsyncSession, trader_id: str) -> WaitlistEntry | None:
        result = await db.execute(_EARLIEST_WAITING_SQL, {"trader_id": trader_id})
        row = result.fetchone()
        return _row_to_entry(row) if row else None

    async def mark_notified(
        self,
        db: AsyncSession,
        entry_id: str,
        token: str,
        expires_at: datetime,
        now: datetime,
    ) -> WaitlistEntry | None:
        result = await db.execute(
            _MARK_NOTIFIED_SQL,
            {"id": entry_id, "token": token, "expires_at": expires_at, "now": now},
        )
        row = result.fetchone()
        return _row_to_entry(row) if row else None

    async def expire_claims(self, db: AsyncSession, now: datetime) -> list[WaitlistEntry]:
        result = await db.execute(_EXPIRE_CLAIMS_SQL, {"now": now})
        return [_row_to_entry(row) for row in result.fetchall()]

    async def find_by_token(self, db: AsyncSession, token: str) -> WaitlistEntry | None:
        result = await db.execute(_FIND_BY_TOKEN_SQL, {"token": token})
        row = result.fetchone()
        return _row_to_entry(row) if row else None

    async def mark_claimed(
        self, db: AsyncSession, entry_id: str, now: datetime
    ) -> WaitlistEntry | None:
        result = await db.execute(_MARK_CLAIMED_SQL, {"id": entry_id, "now": now})
        row = result.fetchone()
        return _row_to_entry(row) if row else None

# src/ws_transactions/infrastructure/persistence.py
"""TransactionStore — raw SQL persistence implementation.

Idempotency lives in the statements themselves: inserts use
ON CONFLICT (external_correlation_key) DO NOTHING, and every status change
carries ``AND status = 'pending'`` so two deliveries racing on the same row
cannot both win. Callers commit.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_transactions.domain.models import NewTransaction, Transaction

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    id, user_id, asset_id, kind, amount, credited_amount, locked_amount, status,
    external_correlation_key, created_at, completed_at, notes
"""

_FIND_BY_KEY_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM transactions WHERE external_correlation_key = :key
""")

_CREATE_PENDING_SQL = text(f"""
    INSERT INTO transactions (user_id, asset_id, kind, amount,
        credited_amount, locked_amount, status, external_correlation_key, notes)
    VALUES (:user_id, :asset_id, :kind, :amount, 0, 0, 'pending',
        :external_correlation_key, :notes)
    ON CONFLICT (external_correlation_key) DO NOTHING
    RETURNING {_SELECT_COLUMNS}
""")

_MARK_CREDITED_SQL = text("""
    UPDATE transactions
    SET credited_amount = credited_amount + :amount
    WHERE id = :id AND status = 'pending'
    RETURNING id
""")

_MARK_LOCKED_SQL = text("""
    UPDATE transactions
    SET locked_amount = :amount
    WHERE id = :id AND status = 'pending'
    RETURNING id
""")

_MARK_COMPLETED_SQL = text(f"""
    UPDATE transactions
    SET status = 'completed', amount = :amount, completed_at = :completed_at
    WHERE id = :id AND status = 'pending'
    RETURNING {_SELECT_COLUMNS}
""")

_MARK_FAILED_SQL = text(f"""
    UPDATE transactions
    SET status = 'failed',
        notes = CASE WHEN notes IS NULL THEN :reason ELSE notes || '; ' || :reason END
    WHERE id = :id AND status = 'pending'
    RETURNING {_SELECT_COLUMNS}
""")

_DELETE_PENDING_SQL = text("""
    DELETE FROM transactions WHERE id = :id AND status = 'pending'
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_transaction(row: Any) -> Transaction:
    return Transaction(
        id=str(row.id),
        user_id=str(row.user_id),
        asset_id=str(row.asset_id),
        kind=row.kind,
        amount=Decimal(row.amount),
        credited_amount=Decimal(row.credited_amount),
        locked_amount=Decimal(row.locked_amount),
        status=row.status,
        external_correlation_key=row.external_correlation_key,
        created_at=row.created_at,
        completed_at=row.completed_at,
        notes=row.notes,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TransactionStore:
    """Concrete implementation of TransactionStoreProtocol using raw SQL."""

    async def find_by_correlation_key(
        self, db: AsyncSession, key: str
    ) -> Transaction | None:
        result = await db.execute(_FIND_BY_KEY_SQL, {"key": key})
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def create_pending(
        self, db: AsyncSession, new: NewTransaction
    ) -> Transaction | None:
        result = await db.execute(
            _CREATE_PENDING_SQL,
            {
                "user_id": new.user_id,
                "asset_id": new.asset_id,
                "kind": new.kind,
                "amount": new.amount,
                "external_correlation_key": new.external_correlation_key,
                "notes": new.notes,
            },
        )
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def mark_credited(self, db: AsyncSession, tx_id: str, amount: Decimal) -> bool:
        result = await db.execute(_MARK_CREDITED_SQL, {"id": tx_id, "amount": amount})
        return result.fetchone() is not None

    async def mark_locked(self, db: AsyncSession, tx_id: str, amount: Decimal) -> bool:
        result = await db.execute(_MARK_LOCKED_SQL, {"id": tx_id, "amount": amount})
        return result.fetchone() is not None

    async def mark_completed(
        self, db: AsyncSession, tx_id: str, final_amount: Decimal, completed_at: datetime
    ) -> Transaction | None:
        result = await db.execute(
            _MARK_COMPLETED_SQL,
            {"id": tx_id, "amount": final_amount, "completed_at": completed_at},
        )
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def mark_failed(
        self, db: AsyncSession, tx_id: str, reason: str
    ) -> Transaction | None:
        result = await db.execute(_MARK_FAILED_SQL, {"id": tx_id, "reason": reason})
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def delete_pending(self, db: AsyncSession, tx_id: str) -> None:
        await db.execute(_DELETE_PENDING_SQL, {"id": tx_id})

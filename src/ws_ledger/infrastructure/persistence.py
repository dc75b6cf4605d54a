"""LedgerRepository — concrete implementation of LedgerProtocol.

All balance-mutating operations are a single atomic PostgreSQL statement
(UPDATE ... RETURNING, or INSERT ... ON CONFLICT DO UPDATE for credit).
A result of 0 rows means a business constraint was violated; nothing was
written. The table CHECK (balance >= locked_balance) backs the WHERE clauses.

Transaction ownership: the CALLER commits. The ledger_entries journal row is
written in the same DB transaction as the balance mutation.
"""

import logging
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_common.enums import LedgerEntryType
from src.ws_common.errors import (
    InsufficientBalanceError,
    InternalError,
    InvalidLedgerStateError,
)
from src.ws_ledger.domain.models import BalanceAccount, LedgerRef
from src.ws_ledger.domain.rules import require_non_negative

logger = logging.getLogger(__name__)

_ACCOUNT_COLUMNS = "user_id, asset_id, balance, locked_balance, version, created_at, updated_at"

_CREDIT_SQL = text(f"""
    INSERT INTO balance_accounts (user_id, asset_id, balance, locked_balance)
    VALUES (:user_id, :asset_id, :amount, 0)
    ON CONFLICT (user_id, asset_id) DO UPDATE
        SET balance = balance_accounts.balance + EXCLUDED.balance,
            version = balance_accounts.version + 1,
            updated_at = NOW()
    RETURNING {_ACCOUNT_COLUMNS}
""")

_LOCK_SQL = text(f"""
    UPDATE balance_accounts
    SET locked_balance = locked_balance + :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
      AND asset_id = :asset_id
      AND balance - locked_balance >= :amount
    RETURNING {_ACCOUNT_COLUMNS}
""")

_UNLOCK_SQL = text(f"""
    UPDATE balance_accounts
    SET locked_balance = locked_balance - :amount,
        balance        = balance - :spent,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
      AND asset_id = :asset_id
      AND locked_balance >= :amount
    RETURNING {_ACCOUNT_COLUMNS}
""")

_GET_ACCOUNT_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM balance_accounts
    WHERE user_id = :user_id AND asset_id = :asset_id
""")

_GET_ASSET_ID_SQL = text("SELECT id FROM assets WHERE symbol = :symbol")

_INSERT_LEDGER_SQL = text("""
    INSERT INTO ledger_entries
        (user_id, asset_id, entry_type, amount, balance_after, locked_after,
         reference_type, reference_id, description)
    VALUES
        (:user_id, :asset_id, :entry_type, :amount, :balance_after, :locked_after,
         :reference_type, :reference_id, :description)
    RETURNING id
""")


def _row_to_account(row: object) -> BalanceAccount:
    return BalanceAccount(
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        asset_id=str(row.asset_id),  # type: ignore[attr-defined]
        balance=Decimal(row.balance),  # type: ignore[attr-defined]
        locked_balance=Decimal(row.locked_balance),  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class LedgerRepository:
    """Concrete ledger — all operations atomic at the SQL level."""

    async def get_account(
        self, db: AsyncSession, user_id: str, asset_id: str
    ) -> BalanceAccount | None:
        result = await db.execute(_GET_ACCOUNT_SQL, {"user_id": user_id, "asset_id": asset_id})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def get_asset_id(self, db: AsyncSession, symbol: str) -> str | None:
        result = await db.execute(_GET_ASSET_ID_SQL, {"symbol": symbol})
        row = result.fetchone()
        return str(row.id) if row else None

    async def credit(
        self, db: AsyncSession, user_id: str, asset_id: str, amount: Decimal, ref: LedgerRef
    ) -> BalanceAccount:
        require_non_negative(amount)
        result = await db.execute(
            _CREDIT_SQL, {"user_id": user_id, "asset_id": asset_id, "amount": amount}
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Credit upsert returned no rows")
        account = _row_to_account(row)
        await self._journal(db, account, LedgerEntryType.CREDIT, amount, ref)
        return account

    async def lock(
        self, db: AsyncSession, user_id: str, asset_id: str, amount: Decimal, ref: LedgerRef
    ) -> BalanceAccount:
        require_non_negative(amount)
        result = await db.execute(
            _LOCK_SQL, {"user_id": user_id, "asset_id": asset_id, "amount": amount}
        )
        row = result.fetchone()
        if row is None:
            current = await self.get_account(db, user_id, asset_id)
            available = current.available_balance if current else Decimal("0")
            raise InsufficientBalanceError(amount, available)
        account = _row_to_account(row)
        await self._journal(db, account, LedgerEntryType.LOCK, amount, ref)
        return account

    async def unlock(
        self,
        db: AsyncSession,
        user_id: str,
        asset_id: str,
        amount: Decimal,
        ref: LedgerRef,
        deduct: bool = False,
    ) -> BalanceAccount:
        require_non_negative(amount)
        result = await db.execute(
            _UNLOCK_SQL,
            {
                "user_id": user_id,
                "asset_id": asset_id,
                "amount": amount,
                "spent": amount if deduct else Decimal("0"),
            },
        )
        row = result.fetchone()
        if row is None:
            current = await self.get_account(db, user_id, asset_id)
            locked = current.locked_balance if current else Decimal("0")
            raise InvalidLedgerStateError(
                f"cannot unlock {amount} for {user_id}/{asset_id}, locked {locked}"
            )
        account = _row_to_account(row)
        entry_type = LedgerEntryType.SPEND if deduct else LedgerEntryType.UNLOCK
        signed = -amount if deduct else amount
        await self._journal(db, account, entry_type, signed, ref)
        return account

    async def _journal(
        self,
        db: AsyncSession,
        account: BalanceAccount,
        entry_type: LedgerEntryType,
        amount: Decimal,
        ref: LedgerRef,
    ) -> None:
        await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "user_id": account.user_id,
                "asset_id": account.asset_id,
                "entry_type": entry_type.value,
                "amount": amount,
                "balance_after": account.balance,
                "locked_after": account.locked_balance,
                "reference_type": ref.reference_type,
                "reference_id": ref.reference_id,
                "description": ref.description or None,
            },
        )
        logger.debug(
            "ledger %s %s %s/%s balance=%s locked=%s ref=%s:%s",
            entry_type.value,
            amount,
            account.user_id,
            account.asset_id,
            account.balance,
            account.locked_balance,
            ref.reference_type,
            ref.reference_id,
        )

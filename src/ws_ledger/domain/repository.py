"""Ledger Protocol — dependency inversion for testability.

Every mutating method is one atomic conditional statement at the storage
level. Callers sequence several of them as a saga and own the commit.
"""

from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_ledger.domain.models import BalanceAccount, LedgerRef


class LedgerProtocol(Protocol):
    async def get_account(
        self, db: AsyncSession, user_id: str, asset_id: str
    ) -> BalanceAccount | None: ...

    async def credit(
        self, db: AsyncSession, user_id: str, asset_id: str, amount: Decimal, ref: LedgerRef
    ) -> BalanceAccount: ...

    async def lock(
        self, db: AsyncSession, user_id: str, asset_id: str, amount: Decimal, ref: LedgerRef
    ) -> BalanceAccount: ...

    async def unlock(
        self,
        db: AsyncSession,
        user_id: str,
        asset_id: str,
        amount: Decimal,
        ref: LedgerRef,
        deduct: bool = False,
    ) -> BalanceAccount: ...

    async def get_asset_id(self, db: AsyncSession, symbol: str) -> str | None: ...

"""Transaction store Protocol.

Inserts are idempotent on ``external_correlation_key``: a duplicate insert
returns None instead of raising, and status updates only move a row forward
out of ``pending`` (returning None when another delivery already did).
"""

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_transactions.domain.models import NewTransaction, Transaction


class TransactionStoreProtocol(Protocol):
    async def find_by_correlation_key(
        self, db: AsyncSession, key: str
    ) -> Transaction | None: ...

    async def create_pending(
        self, db: AsyncSession, new: NewTransaction
    ) -> Transaction | None: ...

    async def mark_credited(
        self, db: AsyncSession, tx_id: str, amount: Decimal
    ) -> bool: ...

    async def mark_locked(
        self, db: AsyncSession, tx_id: str, amount: Decimal
    ) -> bool: ...

    async def mark_completed(
        self, db: AsyncSession, tx_id: str, final_amount: Decimal, completed_at: datetime
    ) -> Transaction | None: ...

    async def mark_failed(
        self, db: AsyncSession, tx_id: str, reason: str
    ) -> Transaction | None: ...

    async def delete_pending(self, db: AsyncSession, tx_id: str) -> None: ...

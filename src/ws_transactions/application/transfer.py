"""Internal transfer saga.

Each step commits on its own; a failure after the sender has been debited is
compensated by crediting the sender back and failing the transaction.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_common.enums import TransactionKind
from src.ws_common.errors import (
    AssetNotFoundError,
    DownstreamFailureError,
    InvalidAmountError,
    SelfTransferError,
)
from src.ws_ledger.domain.models import LedgerRef
from src.ws_ledger.domain.repository import LedgerProtocol
from src.ws_ledger.infrastructure.persistence import LedgerRepository
from src.ws_transactions.application.schemas import TransactionResponse
from src.ws_transactions.domain.models import NewTransaction, Transaction
from src.ws_transactions.domain.repository import TransactionStoreProtocol
from src.ws_transactions.infrastructure.persistence import TransactionStore

logger = logging.getLogger(__name__)


class TransferService:
    def __init__(
        self,
        ledger: LedgerProtocol | None = None,
        store: TransactionStoreProtocol | None = None,
    ) -> None:
        self._ledger: LedgerProtocol = ledger or LedgerRepository()
        self._store: TransactionStoreProtocol = store or TransactionStore()

    async def transfer(
        self,
        db: AsyncSession,
        sender_id: str,
        recipient_id: str,
        symbol: str,
        amount: Decimal,
        idempotency_key: str,
        now: datetime,
    ) -> TransactionResponse:
        """User-initiated transfer. Client keys are scoped to the sender."""
        if sender_id == recipient_id:
            raise SelfTransferError()
        asset_id = await self._ledger.get_asset_id(db, symbol.upper())
        if asset_id is None:
            raise AssetNotFoundError(symbol)
        tx = await self.internal_transfer(
            db, sender_id, recipient_id, asset_id, amount,
            f"transfer_{sender_id}_{idempotency_key}", now,
        )
        return TransactionResponse.from_domain(tx)

    async def internal_transfer(
        self,
        db: AsyncSession,
        sender_id: str,
        recipient_id: str,
        asset_id: str,
        amount: Decimal,
        correlation_key: str,
        now: datetime,
    ) -> Transaction:
        """Move ``amount`` of available funds from sender to recipient.

        Replaying the same ``correlation_key`` returns the recorded transaction
        without touching balances.
        """
        if amount <= 0:
            raise InvalidAmountError(amount)

        tx = await self._store.create_pending(
            db,
            NewTransaction(
                user_id=sender_id,
                asset_id=asset_id,
                kind=TransactionKind.TRANSFER.value,
                amount=amount,
                external_correlation_key=correlation_key,
                notes=f"transfer to {recipient_id}",
            ),
        )
        if tx is None:
            existing = await self._store.find_by_correlation_key(db, correlation_key)
            if existing is None:
                raise DownstreamFailureError(f"transfer {correlation_key} vanished after conflict")
            return existing
        await db.commit()

        ref = LedgerRef("transfer", tx.id, f"transfer {sender_id} -> {recipient_id}")

        # Debit sender: lock then spend from the lock
        try:
            await self._ledger.lock(db, sender_id, asset_id, amount, ref)
            await self._ledger.unlock(db, sender_id, asset_id, amount, ref, deduct=True)
            await db.commit()
        except Exception as e:
            await db.rollback()
            await self._store.mark_failed(db, tx.id, f"debit failed: {e}")
            await db.commit()
            raise

        try:
            await self._ledger.credit(db, recipient_id, asset_id, amount, ref)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(
                "Transfer %s: recipient credit failed, refunding sender %s: %s",
                correlation_key, sender_id, e,
            )
            await self._ledger.credit(db, sender_id, asset_id, amount, ref)
            await self._store.mark_failed(db, tx.id, f"credit failed: {e}")
            await db.commit()
            raise DownstreamFailureError(f"transfer {correlation_key}: {e}") from e

        completed = await self._store.mark_completed(db, tx.id, amount, now)
        await db.commit()
        logger.info(
            "Transfer %s completed: %s %s -> %s", correlation_key, amount, sender_id, recipient_id
        )
        return completed or tx

# tests/unit/test_transaction_store.py
"""Unit tests for TransactionStore using MagicMock AsyncSession."""
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.ws_transactions.domain.models import NewTransaction
from src.ws_transactions.infrastructure.persistence import TransactionStore


def _tx_row(status: str = "pending", **kwargs):
    row = MagicMock()
    row.id = kwargs.get("id", "tx-1")
    row.user_id = "u1"
    row.asset_id = "asset-1"
    row.kind = "deposit"
    row.amount = Decimal(kwargs.get("amount", "5"))
    row.credited_amount = Decimal(kwargs.get("credited_amount", "0"))
    row.locked_amount = Decimal(kwargs.get("locked_amount", "0"))
    row.status = status
    row.external_correlation_key = "nowpayments_123"
    row.created_at = datetime(2026, 3, 1, tzinfo=UTC)
    row.completed_at = kwargs.get("completed_at")
    row.notes = None
    return row


def _result(row):
    result = MagicMock()
    result.fetchone.return_value = row
    return result


NEW = NewTransaction(
    user_id="u1",
    asset_id="asset-1",
    kind="deposit",
    amount=Decimal("5"),
    external_correlation_key="nowpayments_123",
)


@pytest.fixture
def db():
    return MagicMock()


class TestCreatePending:
    @pytest.mark.asyncio
    async def test_returns_new_row(self, db):
        db.execute = AsyncMock(return_value=_result(_tx_row()))
        tx = await TransactionStore().create_pending(db, NEW)
        assert tx is not None
        assert tx.is_pending
        assert tx.credited_amount == Decimal("0")

    @pytest.mark.asyncio
    async def test_conflict_returns_none(self, db):
        # ON CONFLICT DO NOTHING: the key is already claimed
        db.execute = AsyncMock(return_value=_result(None))
        assert await TransactionStore().create_pending(db, NEW) is None


class TestConditionalUpdates:
    @pytest.mark.asyncio
    async def test_mark_completed_sets_amount(self, db):
        done = datetime(2026, 3, 1, 12, tzinfo=UTC)
        db.execute = AsyncMock(
            return_value=_result(_tx_row("completed", amount="5.2", completed_at=done))
        )
        tx = await TransactionStore().mark_completed(db, "tx-1", Decimal("5.2"), done)
        assert tx.is_terminal
        assert tx.amount == Decimal("5.2")
        params = db.execute.await_args.args[1]
        assert params == {"id": "tx-1", "amount": Decimal("5.2"), "completed_at": done}

    @pytest.mark.asyncio
    async def test_mark_completed_on_terminal_row_returns_none(self, db):
        db.execute = AsyncMock(return_value=_result(None))
        done = datetime(2026, 3, 1, tzinfo=UTC)
        assert await TransactionStore().mark_completed(db, "tx-1", Decimal("5"), done) is None

    @pytest.mark.asyncio
    async def test_mark_failed_passes_reason(self, db):
        db.execute = AsyncMock(return_value=_result(_tx_row("failed")))
        tx = await TransactionStore().mark_failed(db, "tx-1", "gateway expired")
        assert tx.status == "failed"
        assert db.execute.await_args.args[1]["reason"] == "gateway expired"

    @pytest.mark.asyncio
    async def test_progress_markers(self, db):
        db.execute = AsyncMock(return_value=_result(MagicMock(id="tx-1")))
        store = TransactionStore()
        assert await store.mark_credited(db, "tx-1", Decimal("5")) is True
        assert await store.mark_locked(db, "tx-1", Decimal("5")) is True
        await store.delete_pending(db, "tx-1")
        assert db.execute.await_count == 3

    @pytest.mark.asyncio
    async def test_progress_markers_on_settled_row_report_false(self, db):
        db.execute = AsyncMock(return_value=_result(None))
        store = TransactionStore()
        assert await store.mark_credited(db, "tx-1", Decimal("5")) is False
        assert await store.mark_locked(db, "tx-1", Decimal("5")) is False

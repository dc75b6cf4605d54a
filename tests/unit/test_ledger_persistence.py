# tests/unit/test_ledger_persistence.py
"""Unit tests for LedgerRepository using MagicMock AsyncSession."""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.ws_common.errors import (
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidLedgerStateError,
)
from src.ws_ledger.domain.models import LedgerRef
from src.ws_ledger.infrastructure.persistence import LedgerRepository

REF = LedgerRef("deposit", "tx-1", "nowpayments_1")


def _account_row(balance: str = "10", locked: str = "0"):
    row = MagicMock()
    row.user_id = "u1"
    row.asset_id = "asset-1"
    row.balance = Decimal(balance)
    row.locked_balance = Decimal(locked)
    row.version = 3
    row.created_at = None
    row.updated_at = None
    return row


def _result(row):
    result = MagicMock()
    result.fetchone.return_value = row
    return result


@pytest.fixture
def db():
    return MagicMock()


class TestCredit:
    @pytest.mark.asyncio
    async def test_returns_account_and_writes_journal(self, db):
        db.execute = AsyncMock(side_effect=[_result(_account_row("15")), _result(MagicMock())])

        account = await LedgerRepository().credit(db, "u1", "asset-1", Decimal("5"), REF)

        assert account.balance == Decimal("15")
        assert db.execute.await_count == 2
        journal_params = db.execute.await_args_list[1].args[1]
        assert journal_params["entry_type"] == "CREDIT"
        assert journal_params["reference_id"] == "tx-1"

    @pytest.mark.asyncio
    async def test_negative_amount_rejected_before_sql(self, db):
        db.execute = AsyncMock()
        with pytest.raises(InvalidAmountError):
            await LedgerRepository().credit(db, "u1", "asset-1", Decimal("-1"), REF)
        db.execute.assert_not_awaited()


class TestLock:
    @pytest.mark.asyncio
    async def test_zero_rows_raises_insufficient_balance(self, db):
        # lock UPDATE matches nothing, then get_account reports what is available
        db.execute = AsyncMock(side_effect=[_result(None), _result(_account_row("10", "8"))])

        with pytest.raises(InsufficientBalanceError) as exc:
            await LedgerRepository().lock(db, "u1", "asset-1", Decimal("5"), REF)
        assert "available 2" in exc.value.message

    @pytest.mark.asyncio
    async def test_success_journals_lock(self, db):
        db.execute = AsyncMock(
            side_effect=[_result(_account_row("10", "5")), _result(MagicMock())]
        )
        account = await LedgerRepository().lock(db, "u1", "asset-1", Decimal("5"), REF)
        assert account.available_balance == Decimal("5")
        assert db.execute.await_args_list[1].args[1]["entry_type"] == "LOCK"


class TestUnlock:
    @pytest.mark.asyncio
    async def test_deduct_spends_from_balance(self, db):
        db.execute = AsyncMock(side_effect=[_result(_account_row("5", "0")), _result(MagicMock())])

        await LedgerRepository().unlock(db, "u1", "asset-1", Decimal("5"), REF, deduct=True)

        unlock_params = db.execute.await_args_list[0].args[1]
        assert unlock_params["spent"] == Decimal("5")
        journal_params = db.execute.await_args_list[1].args[1]
        assert journal_params["entry_type"] == "SPEND"
        assert journal_params["amount"] == Decimal("-5")

    @pytest.mark.asyncio
    async def test_plain_unlock_keeps_balance(self, db):
        db.execute = AsyncMock(side_effect=[_result(_account_row("5", "0")), _result(MagicMock())])
        await LedgerRepository().unlock(db, "u1", "asset-1", Decimal("5"), REF)
        assert db.execute.await_args_list[0].args[1]["spent"] == Decimal("0")
        assert db.execute.await_args_list[1].args[1]["entry_type"] == "UNLOCK"

    @pytest.mark.asyncio
    async def test_more_than_locked_raises_invalid_state(self, db):
        db.execute = AsyncMock(side_effect=[_result(None), _result(_account_row("10", "1"))])
        with pytest.raises(InvalidLedgerStateError):
            await LedgerRepository().unlock(db, "u1", "asset-1", Decimal("5"), REF)


class TestLookups:
    @pytest.mark.asyncio
    async def test_missing_account_is_none(self, db):
        db.execute = AsyncMock(return_value=_result(None))
        assert await LedgerRepository().get_account(db, "u1", "asset-1") is None

    @pytest.mark.asyncio
    async def test_asset_id_by_symbol(self, db):
        row = MagicMock()
        row.id = "asset-usdt"
        db.execute = AsyncMock(return_value=_result(row))
        assert await LedgerRepository().get_asset_id(db, "USDT") == "asset-usdt"

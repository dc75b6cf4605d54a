# tests/unit/test_trader_repository.py
"""Unit tests for TraderRepository slot accounting using MagicMock AsyncSession."""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.ws_copytrade.infrastructure.persistence import TraderRepository


def _trader_row(current_copiers: int = 4):
    row = MagicMock()
    row.id = "trader-1"
    row.name = "Alpha"
    row.strategy = "swing"
    row.risk_level = "low"
    row.historical_roi_min = Decimal("5")
    row.historical_roi_max = Decimal("15")
    row.max_drawdown = Decimal("0.20")
    row.performance_fee_percent = Decimal("20")
    row.current_copiers = current_copiers
    row.max_copiers = 10
    row.aum = Decimal("3100")
    row.lifetime_earnings = Decimal("0")
    row.stats = '{"win_rate": 0.6}'
    row.updated_at = None
    return row


def _result(row):
    result = MagicMock()
    result.fetchone.return_value = row
    return result


@pytest.fixture
def db():
    return MagicMock()


class TestReserveSlot:
    @pytest.mark.asyncio
    async def test_returns_updated_trader(self, db):
        db.execute = AsyncMock(return_value=_result(_trader_row()))
        trader = await TraderRepository().reserve_slot(db, "trader-1", "u1", Decimal("100"))
        assert trader is not None
        assert trader.current_copiers == 4
        assert trader.stats == {"win_rate": 0.6}

    @pytest.mark.asyncio
    async def test_counts_other_users_outstanding_offers(self, db):
        db.execute = AsyncMock(return_value=_result(None))

        trader = await TraderRepository().reserve_slot(db, "trader-1", "u1", Decimal("100"))

        assert trader is None
        stmt, params = db.execute.await_args.args
        assert params == {"id": "trader-1", "user_id": "u1", "allocation": Decimal("100")}
        sql = str(stmt)
        assert "waitlist_entries" in sql
        assert "w.status = 'notified'" in sql
        assert "w.user_id <> :user_id" in sql


class TestReleaseSlot:
    @pytest.mark.asyncio
    async def test_floors_counters(self, db):
        db.execute = AsyncMock()
        await TraderRepository().release_slot(db, "trader-1", Decimal("100"), Decimal("5"))
        stmt, params = db.execute.await_args.args
        assert params == {"id": "trader-1", "allocation": Decimal("100"), "fee": Decimal("5")}
        assert "GREATEST(current_copiers - 1, 0)" in str(stmt)

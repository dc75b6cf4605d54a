"""PositionEngine tick stages: PnL advance, liquidation, stats clamp."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.ws_copytrade.application.engine import PositionEngine
from src.ws_copytrade.domain.models import CopyPosition, Trader
from src.ws_copytrade.domain.simulator import initialize_state

from fakes import NOW

pytestmark = pytest.mark.asyncio


def _trader(**kwargs) -> Trader:
    defaults = dict(
        id="trader-1", name="Alpha", strategy="swing", risk_level="medium",
        historical_roi_min=Decimal("5"), historical_roi_max=Decimal("15"),
        max_drawdown=Decimal("0.20"), performance_fee_percent=Decimal("20"),
        current_copiers=10, max_copiers=10, aum=Decimal("10000"),
        stats={"monthly_roi": 30},
    )
    defaults.update(kwargs)
    return Trader(**defaults)


def _position(**kwargs) -> CopyPosition:
    allocation = kwargs.pop("allocation", Decimal("1000"))
    defaults = dict(
        id="pos-1", user_id="u1", trader_id="trader-1", allocation=allocation,
        current_pnl=Decimal("0"), status="active", started_at=NOW - timedelta(days=2),
        simulation_state=initialize_state(_trader(), allocation).to_dict(),
    )
    defaults.update(kwargs)
    return CopyPosition(**defaults)


def _closed(position: CopyPosition, status: str, final_pnl: Decimal, fee: Decimal) -> CopyPosition:
    return CopyPosition(
        id=position.id, user_id=position.user_id, trader_id=position.trader_id,
        allocation=position.allocation, current_pnl=position.current_pnl, status=status,
        started_at=position.started_at, stopped_at=NOW, final_pnl=final_pnl,
        performance_fee_paid=fee,
    )


@pytest.fixture
def traders():
    t = MagicMock()
    t.get = AsyncMock(return_value=_trader())
    t.list_all = AsyncMock(return_value=[_trader()])
    t.release_slot = AsyncMock()
    t.update_stats = AsyncMock()
    return t


@pytest.fixture
def positions():
    p = MagicMock()
    p.list_active = AsyncMock(return_value=[])
    p.update_pnl = AsyncMock(return_value=True)
    p.close = AsyncMock(side_effect=lambda db, pid, status, final_pnl, fee, at: _closed(
        _position(id=pid), status, final_pnl, fee
    ))
    p.reopen = AsyncMock()
    return p


@pytest.fixture
def engine(ledger, traders, positions, notifier):
    return PositionEngine(ledger=ledger, traders=traders, positions=positions, notifier=notifier)


class TestAdvancePnl:
    async def test_updates_positions_with_state(self, fake_db, engine, positions):
        positions.list_active.return_value = [
            _position(id="pos-1"),
            _position(id="pos-legacy", simulation_state={}),
        ]

        updated = await engine.advance_pnl(fake_db, NOW)

        assert updated == 1
        positions.update_pnl.assert_awaited_once()
        pid, pnl, state = positions.update_pnl.await_args.args[1:]
        assert pid == "pos-1"
        assert isinstance(pnl, Decimal)
        assert abs(pnl) <= Decimal("50")
        assert -1.0 <= state["momentum"] <= 1.0

    async def test_one_failure_does_not_stop_batch(self, fake_db, engine, positions):
        positions.list_active.return_value = [_position(id="pos-1"), _position(id="pos-2")]
        positions.update_pnl.side_effect = [RuntimeError("deadlock"), True]

        assert await engine.advance_pnl(fake_db, NOW) == 1
        assert fake_db.rollbacks == 1


class TestLiquidate:
    async def test_low_funding_and_losing_is_liquidated(
        self, fake_db, engine, ledger, traders, positions, notifier
    ):
        ledger.seed("u1", "40")
        positions.list_active.return_value = [_position(current_pnl=Decimal("-950"))]

        assert await engine.liquidate(fake_db, NOW) == 1

        _, pid, status, final_pnl, fee, _ = positions.close.await_args.args
        assert (pid, status, final_pnl, fee) == ("pos-1", "liquidated", Decimal("-950"), Decimal("0"))
        assert ledger.balance("u1")[0] == Decimal("90")
        traders.release_slot.assert_awaited_once_with(
            fake_db, "trader-1", Decimal("1000"), Decimal("0")
        )
        notifier.position_closed.assert_awaited_once()
        assert notifier.position_closed.await_args.kwargs["liquidated"] is True

    async def test_funded_account_is_left_alone(self, fake_db, engine, ledger, positions):
        ledger.seed("u1", "150")
        positions.list_active.return_value = [_position(current_pnl=Decimal("-950"))]

        assert await engine.liquidate(fake_db, NOW) == 0
        positions.close.assert_not_awaited()

    async def test_winning_position_is_left_alone(self, fake_db, engine, ledger, positions):
        ledger.seed("u1", "0")
        positions.list_active.return_value = [_position(current_pnl=Decimal("5"))]

        assert await engine.liquidate(fake_db, NOW) == 0
        positions.close.assert_not_awaited()

    async def test_missing_account_skips(self, fake_db, engine, positions):
        positions.list_active.return_value = [_position(current_pnl=Decimal("-950"))]
        assert await engine.liquidate(fake_db, NOW) == 0
        positions.close.assert_not_awaited()

    async def test_already_closed_row_is_skipped(self, fake_db, engine, ledger, positions):
        ledger.seed("u1", "40")
        positions.list_active.return_value = [_position(current_pnl=Decimal("-950"))]
        positions.close.side_effect = None
        positions.close.return_value = None

        assert await engine.liquidate(fake_db, NOW) == 0
        assert ledger.ops("CREDIT") == []

    async def test_credit_failure_reopens_position(self, fake_db, engine, ledger, positions, traders):
        ledger.seed("u1", "40")
        ledger.fail_on["credit"] = RuntimeError("db down")
        positions.list_active.return_value = [_position(current_pnl=Decimal("-950"))]

        assert await engine.liquidate(fake_db, NOW) == 0
        positions.reopen.assert_awaited_once_with(fake_db, "pos-1")
        traders.release_slot.assert_not_awaited()
        assert ledger.balance("u1")[0] == Decimal("40")


class TestClampTraderStats:
    async def test_clamps_into_historical_range(self, fake_db, engine, traders):
        assert await engine.clamp_trader_stats(fake_db, NOW) == 1
        _, tid, stats, now = traders.update_stats.await_args.args
        assert tid == "trader-1"
        assert stats["monthly_roi"] == 15.0
        assert now == NOW


async def test_same_tick_is_deterministic(fake_db, engine, positions):
    later = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
    positions.list_active.return_value = [_position()]
    await engine.advance_pnl(fake_db, later)
    await engine.advance_pnl(fake_db, later)
    first, second = positions.update_pnl.await_args_list
    # same position, same bucket, same stored state → same shock
    assert first.args[2] == second.args[2]

"""PositionService start/stop sagas and the positions summary."""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.ws_common.errors import (
    AlreadyCopyingError,
    DownstreamFailureError,
    InsufficientBalanceError,
    PositionNotActiveError,
    PositionNotFoundError,
    TraderAtCapacityError,
    TraderNotFoundError,
)
from src.ws_copytrade.application.service import PositionService
from src.ws_copytrade.domain.models import CopyPosition, Trader

from fakes import NOW

pytestmark = pytest.mark.asyncio


def _trader(**kwargs) -> Trader:
    defaults = dict(
        id="trader-1", name="Alpha", strategy="swing", risk_level="low",
        historical_roi_min=Decimal("5"), historical_roi_max=Decimal("15"),
        max_drawdown=Decimal("0.20"), performance_fee_percent=Decimal("20"),
        current_copiers=3, max_copiers=10, aum=Decimal("3000"),
    )
    defaults.update(kwargs)
    return Trader(**defaults)


def _position(**kwargs) -> CopyPosition:
    defaults = dict(
        id="pos-1", user_id="u1", trader_id="trader-1", allocation=Decimal("100"),
        current_pnl=Decimal("0"), status="active", started_at=NOW - timedelta(days=1),
    )
    defaults.update(kwargs)
    return CopyPosition(**defaults)


@pytest.fixture
def traders():
    t = MagicMock()
    t.get = AsyncMock(return_value=_trader())
    t.reserve_slot = AsyncMock(return_value=_trader(current_copiers=4))
    t.release_slot = AsyncMock()
    return t


@pytest.fixture
def positions():
    p = MagicMock()
    p.find_active = AsyncMock(return_value=None)
    p.insert = AsyncMock(return_value=_position())
    p.get_for_user = AsyncMock(return_value=_position(current_pnl=Decimal("100")))
    p.close = AsyncMock(
        return_value=_position(
            status="stopped", current_pnl=Decimal("100"), final_pnl=Decimal("80"),
            performance_fee_paid=Decimal("20"), stopped_at=NOW,
        )
    )
    p.reopen = AsyncMock()
    p.list_for_user = AsyncMock(return_value=[])
    return p


@pytest.fixture
def service(ledger, traders, positions, notifier):
    return PositionService(ledger=ledger, traders=traders, positions=positions, notifier=notifier)


class TestStartPosition:
    async def test_debits_wallet_and_creates_position(self, fake_db, service, ledger, positions):
        ledger.seed("u1", "1000")

        resp = await service.start_position(fake_db, "u1", "trader-1", Decimal("100"), NOW)

        assert resp.position.id == "pos-1"
        assert resp.trader.current_copiers == 4
        assert ledger.balance("u1") == (Decimal("900"), Decimal("0"))
        state = positions.insert.await_args.args[4]
        assert state["daily_volatility"] == 0.008
        assert state["min_pnl_usdt"] == -20.0

    async def test_unknown_trader(self, fake_db, service, traders):
        traders.get.return_value = None
        with pytest.raises(TraderNotFoundError):
            await service.start_position(fake_db, "u1", "nope", Decimal("100"), NOW)

    async def test_already_copying(self, fake_db, service, positions, traders):
        positions.find_active.return_value = _position()
        with pytest.raises(AlreadyCopyingError):
            await service.start_position(fake_db, "u1", "trader-1", Decimal("100"), NOW)
        traders.reserve_slot.assert_not_awaited()

    async def test_full_trader(self, fake_db, service, ledger, traders):
        ledger.seed("u1", "1000")
        traders.reserve_slot.return_value = None

        with pytest.raises(TraderAtCapacityError):
            await service.start_position(fake_db, "u1", "trader-1", Decimal("100"), NOW)
        assert ledger.entries == []

    async def test_slot_held_by_outstanding_offer_is_refused(
        self, fake_db, service, ledger, traders
    ):
        ledger.seed("u1", "1000")
        traders.get.return_value = _trader(current_copiers=9)
        traders.reserve_slot.return_value = None

        with pytest.raises(TraderAtCapacityError):
            await service.start_position(fake_db, "u1", "trader-1", Decimal("100"), NOW)
        traders.reserve_slot.assert_awaited_once_with(fake_db, "trader-1", "u1", Decimal("100"))
        assert ledger.entries == []
        assert fake_db.rollbacks == 1

    async def test_insufficient_funds_releases_slot(self, fake_db, service, ledger, traders):
        ledger.seed("u1", "50")

        with pytest.raises(InsufficientBalanceError):
            await service.start_position(fake_db, "u1", "trader-1", Decimal("100"), NOW)
        traders.release_slot.assert_awaited_once_with(
            fake_db, "trader-1", Decimal("100"), Decimal("0")
        )
        assert ledger.balance("u1") == (Decimal("50"), Decimal("0"))

    async def test_insert_failure_refunds(self, fake_db, service, ledger, traders, positions):
        ledger.seed("u1", "1000")
        positions.insert.side_effect = RuntimeError("unique violation")

        with pytest.raises(DownstreamFailureError):
            await service.start_position(fake_db, "u1", "trader-1", Decimal("100"), NOW)
        assert ledger.balance("u1") == (Decimal("1000"), Decimal("0"))
        traders.release_slot.assert_awaited_once()


class TestStopPosition:
    async def test_pays_out_net_of_fee(self, fake_db, service, ledger, traders, positions, notifier):
        resp = await service.stop_position(fake_db, "u1", "pos-1", NOW)

        _, pid, status, final_pnl, fee, _ = positions.close.await_args.args
        assert (status, final_pnl, fee) == ("stopped", Decimal("80"), Decimal("20"))
        assert ledger.balance("u1")[0] == Decimal("180")
        assert Decimal(resp.payout.total) == Decimal("180")
        traders.release_slot.assert_awaited_once_with(
            fake_db, "trader-1", Decimal("100"), Decimal("20")
        )
        notifier.position_closed.assert_awaited_once()

    async def test_credit_failure_reopens(self, fake_db, service, ledger, positions, traders):
        ledger.fail_on["credit"] = RuntimeError("db down")

        with pytest.raises(RuntimeError):
            await service.stop_position(fake_db, "u1", "pos-1", NOW)
        positions.reopen.assert_awaited_once_with(fake_db, "pos-1")
        traders.release_slot.assert_not_awaited()

    async def test_unknown_position(self, fake_db, service, positions):
        positions.get_for_user.return_value = None
        with pytest.raises(PositionNotFoundError):
            await service.stop_position(fake_db, "u1", "pos-x", NOW)

    async def test_inactive_position(self, fake_db, service, positions):
        positions.get_for_user.return_value = _position(status="liquidated")
        with pytest.raises(PositionNotActiveError):
            await service.stop_position(fake_db, "u1", "pos-1", NOW)

    async def test_lost_race_with_liquidation(self, fake_db, service, ledger, positions):
        positions.close.return_value = None
        with pytest.raises(PositionNotActiveError):
            await service.stop_position(fake_db, "u1", "pos-1", NOW)
        assert ledger.entries == []


async def test_list_positions_summary(fake_db, service, positions):
    positions.list_for_user.return_value = [
        _position(id="a", allocation=Decimal("100"), current_pnl=Decimal("5")),
        _position(id="b", allocation=Decimal("200"), current_pnl=Decimal("-3")),
        _position(id="c", status="stopped", final_pnl=Decimal("40")),
        _position(id="d", status="liquidated", final_pnl=Decimal("-90")),
    ]

    resp = await service.list_positions(fake_db, "u1")

    assert [p.id for p in resp.active] == ["a", "b"]
    assert [p.id for p in resp.liquidated] == ["d"]
    assert resp.summary.total_active_positions == 2
    assert resp.summary.total_invested == "300"
    assert resp.summary.total_current_pnl == "2"
    assert resp.summary.total_lifetime_profit == "40"

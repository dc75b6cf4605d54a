"""PositionService — user-initiated start and stop of copy positions.

start:  reserve trader slot ─commit─ debit wallet ─commit─ insert position ─commit
        debit fails   → release slot
        insert fails  → refund wallet, release slot
stop:   close position ─commit─ credit payout ─commit─ release slot (+fee) ─commit
        credit fails  → reopen position
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_common.amounts import ZERO
from src.ws_common.enums import PositionStatus
from src.ws_common.errors import (
    AlreadyCopyingError,
    DownstreamFailureError,
    PositionNotActiveError,
    PositionNotFoundError,
    TraderAtCapacityError,
    TraderNotFoundError,
)
from src.ws_copytrade.application.engine import PositionEngine
from src.ws_copytrade.application.schemas import (
    PayoutResponse,
    PositionResponse,
    PositionsResponse,
    PositionsSummary,
    StartPositionResponse,
    StopPositionResponse,
    TraderSummary,
)
from src.ws_copytrade.domain.models import CopyPosition
from src.ws_copytrade.domain.repository import (
    PositionRepositoryProtocol,
    TraderRepositoryProtocol,
)
from src.ws_copytrade.domain.rules import stop_payout
from src.ws_copytrade.domain.simulator import initialize_state
from src.ws_copytrade.infrastructure.persistence import PositionRepository, TraderRepository
from src.ws_ledger.domain.models import LedgerRef
from src.ws_ledger.domain.repository import LedgerProtocol
from src.ws_ledger.infrastructure.persistence import LedgerRepository
from src.ws_notify.application.service import NotificationService

logger = logging.getLogger(__name__)


class PositionService:
    def __init__(
        self,
        ledger: LedgerProtocol | None = None,
        traders: TraderRepositoryProtocol | None = None,
        positions: PositionRepositoryProtocol | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self._ledger: LedgerProtocol = ledger or LedgerRepository()
        self._traders: TraderRepositoryProtocol = traders or TraderRepository()
        self._positions: PositionRepositoryProtocol = positions or PositionRepository()
        self._notifier = notifier or NotificationService()
        self._engine = PositionEngine(self._ledger, self._traders, self._positions, self._notifier)

    async def start_position(
        self,
        db: AsyncSession,
        user_id: str,
        trader_id: str,
        allocation: Decimal,
        now: datetime,
    ) -> StartPositionResponse:
        trader = await self._traders.get(db, trader_id)
        if trader is None:
            raise TraderNotFoundError(trader_id)
        if await self._positions.find_active(db, user_id, trader_id) is not None:
            raise AlreadyCopyingError(trader_id)
        asset_id = await self._engine.settlement_asset_id(db)

        reserved = await self._traders.reserve_slot(db, trader_id, user_id, allocation)
        if reserved is None:
            await db.rollback()
            raise TraderAtCapacityError(trader_id)
        await db.commit()

        ref = LedgerRef("copy_trade_start", trader_id, f"copy {trader.name}")
        try:
            await self._ledger.lock(db, user_id, asset_id, allocation, ref)
            await self._ledger.unlock(db, user_id, asset_id, allocation, ref, deduct=True)
            await db.commit()
        except Exception:
            await db.rollback()
            await self._traders.release_slot(db, trader_id, allocation, ZERO)
            await db.commit()
            raise

        state = initialize_state(trader, allocation)
        try:
            position = await self._positions.insert(
                db, user_id, trader_id, allocation, state.to_dict(), now
            )
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(
                "Position insert failed for %s copying %s, refunding %s: %s",
                user_id, trader_id, allocation, e,
            )
            await self._ledger.credit(db, user_id, asset_id, allocation, ref)
            await self._traders.release_slot(db, trader_id, allocation, ZERO)
            await db.commit()
            raise DownstreamFailureError(f"copy position for trader {trader_id}") from e

        logger.info("User %s started copying %s with %s", user_id, trader_id, allocation)
        return StartPositionResponse(
            position=PositionResponse.from_domain(position),
            trader=TraderSummary.from_domain(reserved),
            message=f"Started copying {trader.name} with {allocation}",
        )

    async def stop_position(
        self, db: AsyncSession, user_id: str, position_id: str, now: datetime
    ) -> StopPositionResponse:
        position = await self._positions.get_for_user(db, position_id, user_id)
        if position is None:
            raise PositionNotFoundError(position_id)
        if position.status != PositionStatus.ACTIVE:
            raise PositionNotActiveError(position_id)
        trader = await self._traders.get(db, position.trader_id)
        if trader is None:
            raise TraderNotFoundError(position.trader_id)
        asset_id = await self._engine.settlement_asset_id(db)

        payout = stop_payout(position.allocation, position.current_pnl, trader.performance_fee_percent)
        closed = await self._positions.close(
            db, position.id, PositionStatus.STOPPED.value, payout.final_pnl, payout.fee, now
        )
        if closed is None:
            await db.rollback()
            raise PositionNotActiveError(position_id)
        await db.commit()

        try:
            if payout.total > 0:
                await self._ledger.credit(
                    db, user_id, asset_id, payout.total,
                    LedgerRef("copy_position", position.id, "stop"),
                )
            await db.commit()
        except Exception:
            await db.rollback()
            await self._positions.reopen(db, position.id)
            await db.commit()
            raise

        try:
            await self._traders.release_slot(db, trader.id, position.allocation, payout.fee)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception(
                "DEGRADED: position %s stopped but trader %s counters not released",
                position.id, trader.id,
            )

        await self._notifier.position_closed(db, user_id, trader.name, payout.total, liquidated=False)
        logger.info(
            "Position %s stopped: pnl=%s fee=%s returned=%s",
            position.id, payout.pnl, payout.fee, payout.total,
        )
        return StopPositionResponse(
            position=PositionResponse.from_domain(closed),
            payout=PayoutResponse.from_domain(payout),
            message=f"Stopped copying {trader.name}; received {payout.total}",
        )

    async def list_positions(self, db: AsyncSession, user_id: str) -> PositionsResponse:
        positions = await self._positions.list_for_user(db, user_id)

        def by_status(status: PositionStatus) -> list[CopyPosition]:
            return [p for p in positions if p.status == status]

        active = by_status(PositionStatus.ACTIVE)
        stopped = by_status(PositionStatus.STOPPED)
        liquidated = by_status(PositionStatus.LIQUIDATED)
        summary = PositionsSummary(
            total_active_positions=len(active),
            total_invested=str(sum((p.allocation for p in active), ZERO)),
            total_current_pnl=str(sum((p.current_pnl for p in active), ZERO)),
            total_lifetime_profit=str(sum((p.final_pnl or ZERO for p in stopped), ZERO)),
        )
        return PositionsResponse(
            active=[PositionResponse.from_domain(p) for p in active],
            stopped=[PositionResponse.from_domain(p) for p in stopped],
            liquidated=[PositionResponse.from_domain(p) for p in liquidated],
            summary=summary,
        )

"""PositionEngine — the copy-trading stages of the periodic tick.

Every method walks a batch and isolates failures per item: one position or
trader that cannot be processed is logged with its id and skipped, and the
rest of the batch still runs. Each item commits on its own.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ws_common.amounts import quantize_pnl
from src.ws_common.enums import PositionStatus
from src.ws_common.errors import InternalError
from src.ws_copytrade.domain.models import CopyPosition, SimulationState
from src.ws_copytrade.domain.repository import (
    PositionRepositoryProtocol,
    TraderRepositoryProtocol,
)
from src.ws_copytrade.domain.rules import clamp_monthly_roi, liquidation_payout, should_liquidate
from src.ws_copytrade.domain.simulator import simulate_pnl
from src.ws_copytrade.infrastructure.persistence import PositionRepository, TraderRepository
from src.ws_ledger.domain.models import LedgerRef
from src.ws_ledger.domain.repository import LedgerProtocol
from src.ws_ledger.infrastructure.persistence import LedgerRepository
from src.ws_notify.application.service import NotificationService

logger = logging.getLogger(__name__)


class PositionEngine:
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

    async def settlement_asset_id(self, db: AsyncSession) -> str:
        asset_id = await self._ledger.get_asset_id(db, settings.SETTLEMENT_ASSET_SYMBOL)
        if asset_id is None:
            raise InternalError(f"Settlement asset {settings.SETTLEMENT_ASSET_SYMBOL} not configured")
        return asset_id

    # ------------------------------------------------------------------
    # Stage 1: advance PnL
    # ------------------------------------------------------------------

    async def advance_pnl(self, db: AsyncSession, now: datetime) -> int:
        positions = await self._positions.list_active(db)
        updated = 0
        for position in positions:
            try:
                if await self._advance_one(db, position, now):
                    updated += 1
            except Exception:
                await db.rollback()
                logger.exception("PnL update failed for position %s", position.id)
        logger.info("PnL updated for %d of %d active positions", updated, len(positions))
        return updated

    async def _advance_one(self, db: AsyncSession, position: CopyPosition, now: datetime) -> bool:
        state = SimulationState.from_dict(position.simulation_state)
        if state is None:
            logger.info("Position %s has no simulation state, skipping", position.id)
            return False

        new_pnl, new_momentum = simulate_pnl(
            float(position.allocation),
            float(position.current_pnl),
            state,
            position.started_at,
            position.trader_id,
            now,
        )
        pnl = quantize_pnl(new_pnl)
        new_state = {**position.simulation_state, "momentum": new_momentum}
        ok = await self._positions.update_pnl(db, position.id, pnl, new_state)
        await db.commit()
        if ok:
            logger.debug(
                "Position %s pnl %s -> %s momentum=%.3f",
                position.id, position.current_pnl, pnl, new_momentum,
            )
        return ok

    # ------------------------------------------------------------------
    # Stage 2: liquidation re-scan
    # ------------------------------------------------------------------

    async def liquidate(self, db: AsyncSession, now: datetime) -> int:
        """Force-stop losing positions whose owner's wallet balance has run low.

        Re-reads active positions so it sees the PnL written by stage 1.
        """
        asset_id = await self.settlement_asset_id(db)
        positions = await self._positions.list_active(db)
        liquidated = 0
        for position in positions:
            try:
                if await self._liquidate_one(db, position, asset_id, now):
                    liquidated += 1
            except Exception:
                await db.rollback()
                logger.exception("Liquidation check failed for position %s", position.id)
        if liquidated:
            logger.warning("Liquidated %d positions", liquidated)
        return liquidated

    async def _liquidate_one(
        self, db: AsyncSession, position: CopyPosition, asset_id: str, now: datetime
    ) -> bool:
        account = await self._ledger.get_account(db, position.user_id, asset_id)
        if account is None:
            logger.info(
                "No %s account for user %s, skipping position %s",
                settings.SETTLEMENT_ASSET_SYMBOL, position.user_id, position.id,
            )
            return False
        if not should_liquidate(
            account.balance,
            position.allocation,
            position.current_pnl,
            settings.LIQUIDATION_THRESHOLD_RATIO,
        ):
            return False

        payout = liquidation_payout(position.allocation, position.current_pnl)
        closed = await self._positions.close(
            db, position.id, PositionStatus.LIQUIDATED.value, payout.final_pnl, payout.fee, now
        )
        if closed is None:
            await db.rollback()
            return False
        await db.commit()

        ref = LedgerRef("copy_position", position.id, "liquidation")
        try:
            if payout.total > 0:
                await self._ledger.credit(db, position.user_id, asset_id, payout.total, ref)
            await db.commit()
        except Exception:
            await db.rollback()
            await self._positions.reopen(db, position.id)
            await db.commit()
            raise

        try:
            await self._traders.release_slot(db, position.trader_id, position.allocation, payout.fee)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception(
                "DEGRADED: position %s liquidated but trader %s counters not released",
                position.id, position.trader_id,
            )

        logger.warning(
            "Position %s liquidated: balance=%s allocation=%s pnl=%s returned=%s",
            position.id, account.balance, position.allocation, position.current_pnl, payout.total,
        )
        trader = await self._traders.get(db, position.trader_id)
        await self._notifier.position_closed(
            db, position.user_id, trader.name if trader else position.trader_id,
            payout.total, liquidated=True,
        )
        return True

    # ------------------------------------------------------------------
    # Stage 5: trader stats
    # ------------------------------------------------------------------

    async def clamp_trader_stats(self, db: AsyncSession, now: datetime) -> int:
        traders = await self._traders.list_all(db)
        updated = 0
        for trader in traders:
            try:
                stats = clamp_monthly_roi(
                    trader.stats, trader.historical_roi_min, trader.historical_roi_max
                )
                await self._traders.update_stats(db, trader.id, stats, now)
                await db.commit()
                updated += 1
            except Exception:
                await db.rollback()
                logger.exception("Stats update failed for trader %s", trader.id)
        return updated

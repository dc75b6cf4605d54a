"""TickOrchestrator — the periodic pass over copy positions and waitlists.

Stages run in a fixed order with one ``now`` for the whole tick:

    1. advance PnL          (PositionEngine.advance_pnl)
    2. liquidation re-scan  (PositionEngine.liquidate)
    3. waitlist notices     (WaitlistService.notify_all)
    4. claim expiry         (WaitlistService.expire_claims)
    5. trader stats         (PositionEngine.clamp_trader_stats)

A stage that raises is logged and reported as zero; the later stages still run.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_copytrade.application.engine import PositionEngine
from src.ws_scheduler.application.guard import TickGuard
from src.ws_scheduler.application.schemas import TickReport
from src.ws_waitlist.application.service import WaitlistService

logger = logging.getLogger(__name__)


class TickOrchestrator:
    def __init__(
        self,
        engine: PositionEngine | None = None,
        waitlist: WaitlistService | None = None,
        guard: TickGuard | None = None,
    ) -> None:
        self._engine = engine or PositionEngine()
        self._waitlist = waitlist or WaitlistService()
        self._guard = guard or TickGuard()

    async def run(self, db: AsyncSession, now: datetime) -> TickReport:
        token = await self._guard.acquire()
        if token is None:
            logger.warning("Tick at %s skipped: previous tick still running", now.isoformat())
            return TickReport(timestamp=now.isoformat(), skipped=True)
        try:
            return await self._run_stages(db, now)
        finally:
            await self._guard.release(token)

    async def _run_stages(self, db: AsyncSession, now: datetime) -> TickReport:
        report = TickReport(
            pnl_updates=await self._stage(db, "pnl", self._engine.advance_pnl, now),
            liquidations=await self._stage(db, "liquidation", self._engine.liquidate, now),
            waitlist_notifications=await self._stage(
                db, "waitlist", self._waitlist.notify_all, now
            ),
            expired_claims=await self._stage(db, "claim expiry", self._waitlist.expire_claims, now),
            trader_stats_updates=await self._stage(
                db, "trader stats", self._engine.clamp_trader_stats, now
            ),
            timestamp=now.isoformat(),
        )
        logger.info(
            "Tick %s: pnl=%d liquidated=%d notified=%d expired=%d",
            report.timestamp,
            report.pnl_updates,
            report.liquidations,
            report.waitlist_notifications,
            report.expired_claims,
        )
        return report

    @staticmethod
    async def _stage(
        db: AsyncSession,
        name: str,
        fn: Callable[[AsyncSession, datetime], Awaitable[int]],
        now: datetime,
    ) -> int:
        try:
            return await fn(db, now)
        except Exception:
            await db.rollback()
            logger.exception("Tick stage '%s' failed", name)
            return 0

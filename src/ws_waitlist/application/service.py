"""Waitlist and claim flow for traders at capacity.

    waiting ──notify_next──▶ notified ──claim──▶ claimed
                                 └──expire_claims──▶ expired

Only one entry per trader is promoted per tick, and only while the trader's
free slots exceed the claims already outstanding, so a freed slot is never
offered to two users at once. Direct starts by other users count those
outstanding offers as taken slots.
"""

import logging
import secrets
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ws_common.enums import WaitlistStatus
from src.ws_common.errors import (
    AlreadyCopyingError,
    AlreadyInWaitlistError,
    ClaimExpiredError,
    ClaimNotFoundError,
    TraderHasCapacityError,
    TraderNotFoundError,
)
from src.ws_copytrade.application.schemas import TraderSummary
from src.ws_copytrade.application.service import PositionService
from src.ws_copytrade.domain.models import Trader
from src.ws_copytrade.domain.repository import (
    PositionRepositoryProtocol,
    TraderRepositoryProtocol,
)
from src.ws_copytrade.infrastructure.persistence import PositionRepository, TraderRepository
from src.ws_notify.application.service import NotificationService
from src.ws_waitlist.application.schemas import (
    ClaimInfoResponse,
    ClaimResponse,
    JoinWaitlistResponse,
    LeaveWaitlistResponse,
    TimeRemaining,
    WaitlistEntryResponse,
    WaitlistStatusResponse,
)
from src.ws_waitlist.domain.models import WaitlistEntry
from src.ws_waitlist.domain.repository import WaitlistRepositoryProtocol
from src.ws_waitlist.infrastructure.persistence import WaitlistRepository

logger = logging.getLogger(__name__)


def new_claim_token() -> str:
    return secrets.token_urlsafe(32)


class WaitlistService:
    def __init__(
        self,
        traders: TraderRepositoryProtocol | None = None,
        positions: PositionRepositoryProtocol | None = None,
        entries: WaitlistRepositoryProtocol | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self._traders: TraderRepositoryProtocol = traders or TraderRepository()
        self._positions: PositionRepositoryProtocol = positions or PositionRepository()
        self._entries: WaitlistRepositoryProtocol = entries or WaitlistRepository()
        self._notifier = notifier or NotificationService()

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------

    async def join(self, db: AsyncSession, user_id: str, trader_id: str) -> JoinWaitlistResponse:
        trader = await self._traders.get(db, trader_id)
        if trader is None:
            raise TraderNotFoundError(trader_id)
        outstanding = await self._entries.count_outstanding_notified(db, trader_id)
        if trader.has_capacity(outstanding):
            raise TraderHasCapacityError(trader_id)
        if await self._positions.find_active(db, user_id, trader_id) is not None:
            raise AlreadyCopyingError(trader_id)
        existing = await self._entries.find_open(db, user_id, trader_id)
        if existing is not None:
            raise AlreadyInWaitlistError(existing.position_in_queue)

        entry = await self._entries.join(db, user_id, trader_id)
        if entry is None:
            # Lost a race with a concurrent join from the same user.
            await db.rollback()
            existing = await self._entries.find_open(db, user_id, trader_id)
            raise AlreadyInWaitlistError(existing.position_in_queue if existing else 0)
        await db.commit()

        logger.info(
            "User %s joined waitlist for %s at #%d", user_id, trader_id, entry.position_in_queue
        )
        return JoinWaitlistResponse(
            entry=WaitlistEntryResponse.from_domain(entry),
            message=f"You're #{entry.position_in_queue} in line for {trader.name}",
        )

    async def leave(self, db: AsyncSession, user_id: str, trader_id: str) -> LeaveWaitlistResponse:
        removed = await self._entries.leave(db, user_id, trader_id)
        await db.commit()
        logger.info("User %s left waitlist for %s (%d removed)", user_id, trader_id, removed)
        return LeaveWaitlistResponse(removed=removed, message="Removed from waitlist")

    async def status(self, db: AsyncSession, user_id: str) -> WaitlistStatusResponse:
        entries = await self._entries.list_open_for_user(db, user_id)
        items = []
        for entry in entries:
            trader = await self._traders.get(db, entry.trader_id)
            summary = TraderSummary.from_domain(trader) if trader else None
            items.append(WaitlistEntryResponse.from_domain(entry, summary))
        return WaitlistStatusResponse(entries=items)

    # ------------------------------------------------------------------
    # Tick stages
    # ------------------------------------------------------------------

    async def notify_next(self, db: AsyncSession, trader: Trader, now: datetime) -> bool:
        """Offer one freed slot of ``trader`` to the head of its queue.

        Returns True only when an entry actually moved to ``notified``.
        """
        outstanding = await self._entries.count_outstanding_notified(db, trader.id)
        if not trader.has_capacity(outstanding):
            return False
        entry = await self._entries.earliest_waiting(db, trader.id)
        if entry is None:
            return False

        token = new_claim_token()
        expires_at = now + timedelta(hours=settings.CLAIM_WINDOW_HOURS)
        notified = await self._entries.mark_notified(db, entry.id, token, expires_at, now)
        if notified is None:
            await db.rollback()
            return False
        await db.commit()

        logger.info(
            "Waitlist entry %s notified for trader %s, claim expires %s",
            entry.id, trader.id, expires_at.isoformat(),
        )
        await self._notifier.spot_available(db, entry.user_id, trader.name, token, expires_at)
        return True

    async def notify_all(self, db: AsyncSession, now: datetime) -> int:
        traders = await self._traders.list_all(db)
        notified = 0
        for trader in traders:
            try:
                if await self.notify_next(db, trader, now):
                    notified += 1
            except Exception:
                await db.rollback()
                logger.exception("Waitlist notification failed for trader %s", trader.id)
        return notified

    async def expire_claims(self, db: AsyncSession, now: datetime) -> int:
        expired = await self._entries.expire_claims(db, now)
        await db.commit()
        for entry in expired:
            logger.info("Claim for waitlist entry %s (trader %s) expired", entry.id, entry.trader_id)
        return len(expired)


class ClaimService:
    """Redeems the token mailed by ``WaitlistService.notify_next``."""

    def __init__(
        self,
        traders: TraderRepositoryProtocol | None = None,
        entries: WaitlistRepositoryProtocol | None = None,
        positions: PositionService | None = None,
    ) -> None:
        self._traders: TraderRepositoryProtocol = traders or TraderRepository()
        self._entries: WaitlistRepositoryProtocol = entries or WaitlistRepository()
        self._positions = positions or PositionService(traders=self._traders)

    async def _open_claim(self, db: AsyncSession, token: str, now: datetime) -> WaitlistEntry:
        entry = await self._entries.find_by_token(db, token)
        if entry is None or entry.status == WaitlistStatus.CLAIMED:
            raise ClaimNotFoundError()
        if entry.status == WaitlistStatus.EXPIRED or entry.claim_expired(now):
            raise ClaimExpiredError()
        return entry

    async def get_claim(self, db: AsyncSession, token: str, now: datetime) -> ClaimInfoResponse:
        entry = await self._open_claim(db, token, now)
        trader = await self._traders.get(db, entry.trader_id)
        if trader is None:
            raise TraderNotFoundError(entry.trader_id)

        remaining = int((entry.claim_expires_at - now).total_seconds())
        return ClaimInfoResponse(
            entry=WaitlistEntryResponse.from_domain(entry),
            trader=TraderSummary.from_domain(trader),
            expires_at=entry.claim_expires_at.isoformat(),
            time_remaining=TimeRemaining(hours=remaining // 3600, minutes=remaining % 3600 // 60),
        )

    async def claim(
        self,
        db: AsyncSession,
        user_id: str,
        token: str,
        allocation: Decimal,
        now: datetime,
    ) -> ClaimResponse:
        entry = await self._open_claim(db, token, now)
        if entry.user_id != user_id:
            raise ClaimNotFoundError()

        started = await self._positions.start_position(
            db, user_id, entry.trader_id, allocation, now
        )
        claimed = await self._entries.mark_claimed(db, entry.id, now)
        await db.commit()
        if claimed is None:
            logger.warning(
                "Position %s started but waitlist entry %s was no longer notified",
                started.position.id, entry.id,
            )

        logger.info("User %s claimed waitlist spot %s", user_id, entry.id)
        return ClaimResponse(
            position=started.position,
            trader=started.trader,
            message=f"Successfully claimed spot and started copying {started.trader.name}",
        )

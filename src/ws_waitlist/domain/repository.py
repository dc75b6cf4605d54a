"""Repository Protocol for ws_waitlist.

Every status change is a conditional update on the current status, so two
ticks (or a tick and a claim) racing on one entry cannot both move it.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_waitlist.domain.models import WaitlistEntry


class WaitlistRepositoryProtocol(Protocol):
    async def join(
        self, db: AsyncSession, user_id: str, trader_id: str
    ) -> WaitlistEntry | None: ...

    async def find_open(
        self, db: AsyncSession, user_id: str, trader_id: str
    ) -> WaitlistEntry | None: ...

    async def leave(self, db: AsyncSession, user_id: str, trader_id: str) -> int: ...

    async def list_open_for_user(self, db: AsyncSession, user_id: str) -> list[WaitlistEntry]: ...

    async def count_outstanding_notified(self, db: AsyncSession, trader_id: str) -> int: ...

    async def earliest_waiting(self, db: AsyncSession, trader_id: str) -> WaitlistEntry | None: ...

    async def mark_notified(
        self,
        db: AsyncSession,
        entry_id: str,
        token: str,
        expires_at: datetime,
        now: datetime,
    ) -> WaitlistEntry | None: ...

    async def expire_claims(self, db: AsyncSession, now: datetime) -> list[WaitlistEntry]: ...

    async def find_by_token(self, db: AsyncSession, token: str) -> WaitlistEntry | None: ...

    async def mark_claimed(
        self, db: AsyncSession, entry_id: str, now: datetime
    ) -> WaitlistEntry | None: ...

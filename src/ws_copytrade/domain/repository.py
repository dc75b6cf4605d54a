"""Repository Protocols for ws_copytrade.

Counter changes on traders are single conditional statements; position
status changes only succeed from ``active``.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_copytrade.domain.models import CopyPosition, Trader


class TraderRepositoryProtocol(Protocol):
    async def get(self, db: AsyncSession, trader_id: str) -> Trader | None: ...

    async def list_all(self, db: AsyncSession) -> list[Trader]: ...

    async def reserve_slot(
        self, db: AsyncSession, trader_id: str, user_id: str, allocation: Decimal
    ) -> Trader | None: ...

    async def release_slot(
        self, db: AsyncSession, trader_id: str, allocation: Decimal, fee: Decimal
    ) -> None: ...

    async def update_stats(
        self, db: AsyncSession, trader_id: str, stats: dict[str, Any], now: datetime
    ) -> None: ...


class PositionRepositoryProtocol(Protocol):
    async def list_active(self, db: AsyncSession) -> list[CopyPosition]: ...

    async def list_for_user(self, db: AsyncSession, user_id: str) -> list[CopyPosition]: ...

    async def get_for_user(
        self, db: AsyncSession, position_id: str, user_id: str
    ) -> CopyPosition | None: ...

    async def find_active(
        self, db: AsyncSession, user_id: str, trader_id: str
    ) -> CopyPosition | None: ...

    async def insert(
        self,
        db: AsyncSession,
        user_id: str,
        trader_id: str,
        allocation: Decimal,
        simulation_state: dict[str, Any],
        started_at: datetime,
    ) -> CopyPosition: ...

    async def update_pnl(
        self, db: AsyncSession, position_id: str, pnl: Decimal, simulation_state: dict[str, Any]
    ) -> bool: ...

    async def close(
        self,
        db: AsyncSession,
        position_id: str,
        status: str,
        final_pnl: Decimal,
        fee: Decimal,
        stopped_at: datetime,
    ) -> CopyPosition | None: ...

    async def reopen(self, db: AsyncSession, position_id: str) -> None: ...

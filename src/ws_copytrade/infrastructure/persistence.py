# src/ws_copytrade/infrastructure/persistence.py
"""Trader and copy-position persistence — raw SQL.

Capacity is enforced by the statement, not by the caller:
``reserve_slot`` increments current_copiers only while it, plus the
slots held by other users' unclaimed waitlist offers, is below
max_copiers, and ``release_slot`` floors both counters at zero.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_common.jsonb import dump_jsonb, load_jsonb
from src.ws_copytrade.domain.models import CopyPosition, Trader

# ---------------------------------------------------------------------------
# SQL statements: traders
# ---------------------------------------------------------------------------

_TRADER_COLUMNS = """
    id, name, strategy, risk_level, historical_roi_min, historical_roi_max,
    max_drawdown, performance_fee_percent, current_copiers, max_copiers,
    aum, lifetime_earnings, stats, updated_at
"""

_GET_TRADER_SQL = text(f"SELECT {_TRADER_COLUMNS} FROM traders WHERE id = :id")

_LIST_TRADERS_SQL = text(f"SELECT {_TRADER_COLUMNS} FROM traders ORDER BY created_at, id")

_RESERVE_SLOT_SQL = text(f"""
    UPDATE traders
    SET current_copiers = current_copiers + 1,
        aum = aum + :allocation,
        updated_at = NOW()
    WHERE id = :id
      AND current_copiers + (
          SELECT COUNT(*) FROM waitlist_entries w
          WHERE w.trader_id = traders.id
            AND w.status = 'notified'
            AND w.user_id <> :user_id
      ) < max_copiers
    RETURNING {_TRADER_COLUMNS}
""")

_RELEASE_SLOT_SQL = text("""
    UPDATE traders
    SET current_copiers = GREATEST(current_copiers - 1, 0),
        aum = GREATEST(aum - :allocation, 0),
        lifetime_earnings = lifetime_earnings + :fee,
        updated_at = NOW()
    WHERE id = :id
""")

_UPDATE_STATS_SQL = text("""
    UPDATE traders
    SET stats = CAST(:stats AS JSONB), updated_at = :now
    WHERE id = :id
""")

# ---------------------------------------------------------------------------
# SQL statements: positions
# ---------------------------------------------------------------------------

_POSITION_COLUMNS = """
    id, user_id, trader_id, allocation, current_pnl, status, started_at,
    stopped_at, final_pnl, performance_fee_paid, simulation_state
"""

_LIST_ACTIVE_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM copy_positions
    WHERE status = 'active'
    ORDER BY started_at, id
""")

_LIST_FOR_USER_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM copy_positions
    WHERE user_id = :user_id
    ORDER BY started_at DESC
""")

_GET_FOR_USER_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM copy_positions
    WHERE id = :id AND user_id = :user_id
""")

_FIND_ACTIVE_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM copy_positions
    WHERE user_id = :user_id AND trader_id = :trader_id AND status = 'active'
""")

_INSERT_POSITION_SQL = text(f"""
    INSERT INTO copy_positions
        (user_id, trader_id, allocation, current_pnl, status, started_at, simulation_state)
    VALUES
        (:user_id, :trader_id, :allocation, 0, 'active', :started_at, CAST(:state AS JSONB))
    RETURNING {_POSITION_COLUMNS}
""")

_UPDATE_PNL_SQL = text("""
    UPDATE copy_positions
    SET current_pnl = :pnl, simulation_state = CAST(:state AS JSONB)
    WHERE id = :id AND status = 'active'
    RETURNING id
""")

_CLOSE_POSITION_SQL = text(f"""
    UPDATE copy_positions
    SET status = :status, final_pnl = :final_pnl,
        performance_fee_paid = :fee, stopped_at = :stopped_at
    WHERE id = :id AND status = 'active'
    RETURNING {_POSITION_COLUMNS}
""")

_REOPEN_POSITION_SQL = text("""
    UPDATE copy_positions
    SET status = 'active', final_pnl = NULL, performance_fee_paid = NULL, stopped_at = NULL
    WHERE id = :id AND status IN ('stopped', 'liquidated')
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_trader(row: Any) -> Trader:
    return Trader(
        id=str(row.id),
        name=row.name,
        strategy=row.strategy,
        risk_level=row.risk_level,
        historical_roi_min=Decimal(row.historical_roi_min),
        historical_roi_max=Decimal(row.historical_roi_max),
        max_drawdown=Decimal(row.max_drawdown),
        performance_fee_percent=Decimal(row.performance_fee_percent),
        current_copiers=row.current_copiers,
        max_copiers=row.max_copiers,
        aum=Decimal(row.aum),
        lifetime_earnings=Decimal(row.lifetime_earnings),
        stats=load_jsonb(row.stats),
        updated_at=row.updated_at,
    )


def _row_to_position(row: Any) -> CopyPosition:
    return CopyPosition(
        id=str(row.id),
        user_id=str(row.user_id),
        trader_id=str(row.trader_id),
        allocation=Decimal(row.allocation),
        current_pnl=Decimal(row.current_pnl),
        status=row.status,
        started_at=row.started_at,
        stopped_at=row.stopped_at,
        final_pnl=Decimal(row.final_pnl) if row.final_pnl is not None else None,
        performance_fee_paid=(
            Decimal(row.performance_fee_paid) if row.performance_fee_paid is not None else None
        ),
        simulation_state=load_jsonb(row.simulation_state),
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class TraderRepository:
    async def get(self, db: AsyncSession, trader_id: str) -> Trader | None:
        result = await db.execute(_GET_TRADER_SQL, {"id": trader_id})
        row = result.fetchone()
        return _row_to_trader(row) if row else None

    async def list_all(self, db: AsyncSession) -> list[Trader]:
        result = await db.execute(_LIST_TRADERS_SQL)
        return [_row_to_trader(row) for row in result.fetchall()]

    async def reserve_slot(
        self, db: AsyncSession, trader_id: str, user_id: str, allocation: Decimal
    ) -> Trader | None:
        result = await db.execute(
            _RESERVE_SLOT_SQL, {"id": trader_id, "user_id": user_id, "allocation": allocation}
        )
        row = result.fetchone()
        return _row_to_trader(row) if row else None

    async def release_slot(
        self, db: AsyncSession, trader_id: str, allocation: Decimal, fee: Decimal
    ) -> None:
        await db.execute(
            _RELEASE_SLOT_SQL, {"id": trader_id, "allocation": allocation, "fee": fee}
        )

    async def update_stats(
        self, db: AsyncSession, trader_id: str, stats: dict[str, Any], now: datetime
    ) -> None:
        await db.execute(
            _UPDATE_STATS_SQL, {"id": trader_id, "stats": dump_jsonb(stats), "now": now}
        )


class PositionRepository:
    async def list_active(self, db: AsyncSession) -> list[CopyPosition]:
        result = await db.execute(_LIST_ACTIVE_SQL)
        return [_row_to_position(row) for row in result.fetchall()]

    async def list_for_user(self, db: AsyncSession, user_id: str) -> list[CopyPosition]:
        result = await db.execute(_LIST_FOR_USER_SQL, {"user_id": user_id})
        return [_row_to_position(row) for row in result.fetchall()]

    async def get_for_user(
        self, db: AsyncSession, position_id: str, user_id: str
    ) -> CopyPosition | None:
        result = await db.execute(_GET_FOR_USER_SQL, {"id": position_id, "user_id": user_id})
        row = result.fetchone()
        return _row_to_position(row) if row else None

    async def find_active(
        self, db: AsyncSession, user_id: str, trader_id: str
    ) -> CopyPosition | None:
        result = await db.execute(
            _FIND_ACTIVE_SQL, {"user_id": user_id, "trader_id": trader_id}
        )
        row = result.fetchone()
        return _row_to_position(row) if row else None

    async def insert(
        self,
        db: AsyncSession,
        user_id: str,
        trader_id: str,
        allocation: Decimal,
        simulation_state: dict[str, Any],
        started_at: datetime,
    ) -> CopyPosition:
        result = await db.execute(
            _INSERT_POSITION_SQL,
            {
                "user_id": user_id,
                "trader_id": trader_id,
                "allocation": allocation,
                "started_at": started_at,
                "state": dump_jsonb(simulation_state),
            },
        )
        return _row_to_position(result.fetchone())

    async def update_pnl(
        self, db: AsyncSession, position_id: str, pnl: Decimal, simulation_state: dict[str, Any]
    ) -> bool:
        result = await db.execute(
            _UPDATE_PNL_SQL,
            {"id": position_id, "pnl": pnl, "state": dump_jsonb(simulation_state)},
        )
        return result.fetchone() is not None

    async def close(
        self,
        db: AsyncSession,
        position_id: str,
        status: str,
        final_pnl: Decimal,
        fee: Decimal,
        stopped_at: datetime,
    ) -> CopyPosition | None:
        result = await db.execute(
            _CLOSE_POSITION_SQL,
            {
                "id": position_id,
                "status": status,
                "final_pnl": final_pnl,
                "fee": fee,
                "stopped_at": stopped_at,
            },
        )
        row = result.fetchone()
        return _row_to_position(row) if row else None

    async def reopen(self, db: AsyncSession, position_id: str) -> None:
        await db.execute(_REOPEN_POSITION_SQL, {"id": position_id})

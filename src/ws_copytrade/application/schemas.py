"""Pydantic schemas for ws_copytrade API."""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.ws_copytrade.domain.models import CopyPosition, Payout, Trader

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class StartPositionRequest(BaseModel):
    trader_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, description="Allocation in the settlement asset")


class StopPositionRequest(BaseModel):
    position_id: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class TraderSummary(BaseModel):
    id: str
    name: str
    strategy: str
    risk_level: str
    historical_roi_min: str
    historical_roi_max: str
    performance_fee_percent: str
    current_copiers: int
    max_copiers: int

    @classmethod
    def from_domain(cls, trader: Trader) -> "TraderSummary":
        return cls(
            id=trader.id,
            name=trader.name,
            strategy=trader.strategy,
            risk_level=trader.risk_level,
            historical_roi_min=str(trader.historical_roi_min),
            historical_roi_max=str(trader.historical_roi_max),
            performance_fee_percent=str(trader.performance_fee_percent),
            current_copiers=trader.current_copiers,
            max_copiers=trader.max_copiers,
        )


class PositionResponse(BaseModel):
    id: str
    trader_id: str
    allocation: str
    current_pnl: str
    status: str
    started_at: str
    stopped_at: str | None = None
    final_pnl: str | None = None
    performance_fee_paid: str | None = None

    @classmethod
    def from_domain(cls, p: CopyPosition) -> "PositionResponse":
        return cls(
            id=p.id,
            trader_id=p.trader_id,
            allocation=str(p.allocation),
            current_pnl=str(p.current_pnl),
            status=p.status,
            started_at=p.started_at.isoformat(),
            stopped_at=p.stopped_at.isoformat() if p.stopped_at else None,
            final_pnl=str(p.final_pnl) if p.final_pnl is not None else None,
            performance_fee_paid=(
                str(p.performance_fee_paid) if p.performance_fee_paid is not None else None
            ),
        )


class StartPositionResponse(BaseModel):
    position: PositionResponse
    trader: TraderSummary
    message: str


class PayoutResponse(BaseModel):
    allocation: str
    pnl: str
    profit: str
    trader_fee: str
    user_profit_after_fee: str
    total: str

    @classmethod
    def from_domain(cls, payout: Payout) -> "PayoutResponse":
        return cls(
            allocation=str(payout.allocation),
            pnl=str(payout.pnl),
            profit=str(payout.profit),
            trader_fee=str(payout.fee),
            user_profit_after_fee=str(payout.final_pnl),
            total=str(payout.total),
        )


class StopPositionResponse(BaseModel):
    position: PositionResponse
    payout: PayoutResponse
    message: str


class PositionsSummary(BaseModel):
    total_active_positions: int
    total_invested: str
    total_current_pnl: str
    total_lifetime_profit: str


class PositionsResponse(BaseModel):
    active: list[PositionResponse]
    stopped: list[PositionResponse]
    liquidated: list[PositionResponse]
    summary: PositionsSummary

"""Domain models for ws_copytrade — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any


@dataclass
class Trader:
    id: str
    name: str
    strategy: str
    risk_level: str                   # RiskLevel value
    historical_roi_min: Decimal       # monthly, percent
    historical_roi_max: Decimal
    max_drawdown: Decimal             # fraction of allocation, e.g. 0.20
    performance_fee_percent: Decimal
    current_copiers: int
    max_copiers: int
    aum: Decimal
    lifetime_earnings: Decimal = Decimal("0")
    stats: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime | None = None

    def has_capacity(self, held: int = 0) -> bool:
        """True while a slot is free after ``held`` outstanding claim offers."""
        return self.current_copiers + held < self.max_copiers


@dataclass
class SimulationState:
    """Per-position random-walk parameters, stored as JSONB on the position."""
    target_monthly_roi: float
    daily_drift: float
    daily_volatility: float
    max_drawdown_usdt: float
    min_pnl_usdt: float
    momentum: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SimulationState | None":
        """None when the stored state predates simulation (no daily_drift)."""
        if not data or not data.get("daily_drift"):
            return None
        return cls(
            target_monthly_roi=float(data.get("target_monthly_roi", 0.0)),
            daily_drift=float(data["daily_drift"]),
            daily_volatility=float(data.get("daily_volatility", 0.015)),
            max_drawdown_usdt=float(data.get("max_drawdown_usdt", 0.0)),
            min_pnl_usdt=float(data.get("min_pnl_usdt", data.get("max_drawdown_usdt", 0.0))),
            momentum=float(data.get("momentum", 0.0)),
        )


@dataclass
class CopyPosition:
    id: str
    user_id: str
    trader_id: str
    allocation: Decimal
    current_pnl: Decimal
    status: str                       # PositionStatus value
    started_at: datetime
    stopped_at: datetime | None = None
    final_pnl: Decimal | None = None
    performance_fee_paid: Decimal | None = None
    simulation_state: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Payout:
    """What a closing position returns to the user's wallet."""
    allocation: Decimal
    pnl: Decimal
    profit: Decimal                   # pnl if positive, else 0
    fee: Decimal                      # trader performance fee, on profit only
    final_pnl: Decimal                # pnl net of fee
    total: Decimal                    # credited to the wallet, never negative

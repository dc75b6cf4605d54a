"""PnL simulator for copy-trading positions.

Geometric Brownian motion with mean reversion toward the trader's target
trajectory, stepped once per 5-minute tick. The random shock is seeded by
trader and 5-minute bucket, so every position copying the same trader moves
together within a tick.

Pure functions: ``now`` and the bounce RNG are passed in.
"""

import math
import random
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal

from src.ws_common.enums import RiskLevel
from src.ws_copytrade.domain.models import SimulationState, Trader

# Daily standard deviation by risk level
VOLATILITY: dict[str, float] = {
    RiskLevel.LOW.value: 0.008,
    RiskLevel.MEDIUM.value: 0.015,
    RiskLevel.HIGH.value: 0.025,
}
DEFAULT_VOLATILITY = 0.015
DEFAULT_MAX_DRAWDOWN = 0.20

PERIODS_PER_DAY = 288
DT = 1 / PERIODS_PER_DAY
MEAN_REVERSION_RATE = 0.1
MOMENTUM_DECAY = 0.95
MOMENTUM_SHOCK_WEIGHT = 0.3
MAX_STEP_FRACTION = 0.05          # of allocation, per tick
BOUNCE_FRACTION = 0.01            # of allocation, off the drawdown floor


def initialize_state(trader: Trader, allocation: Decimal) -> SimulationState:
    target_roi = float(trader.historical_roi_min + trader.historical_roi_max) / 2
    daily_drift = math.pow(1 + target_roi / 100, 1 / 30) - 1
    volatility = VOLATILITY.get(trader.risk_level, DEFAULT_VOLATILITY)
    max_drawdown = float(trader.max_drawdown) or DEFAULT_MAX_DRAWDOWN
    floor = -(float(allocation) * max_drawdown)
    return SimulationState(
        target_monthly_roi=target_roi,
        daily_drift=daily_drift,
        daily_volatility=volatility,
        max_drawdown_usdt=floor,
        min_pnl_usdt=floor,
        momentum=0.0,
    )


def _to_int32(n: int) -> int:
    n &= 0xFFFFFFFF
    return n - 0x100000000 if n & 0x80000000 else n


def seeded_random(seed: str) -> float:
    """Deterministic uniform [0, 1) from a string (31-multiplier string hash)."""
    h = 0
    for ch in seed:
        h = _to_int32((h << 5) - h + ord(ch))
    x = math.sin(h) * 10000
    return x - math.floor(x)


def bucket_start(at: datetime) -> datetime:
    return at.replace(minute=(at.minute // 5) * 5, second=0, microsecond=0)


def trader_shock(trader_id: str, at: datetime) -> float:
    """Standard normal shock shared by every copier of ``trader_id`` in this 5-minute bucket."""
    seed = f"{trader_id}_{bucket_start(at).strftime('%Y-%m-%dT%H:%M:%S.000Z')}"
    u1 = max(seeded_random(seed + "_1"), 1e-12)
    u2 = seeded_random(seed + "_2")
    return math.sqrt(-2 * math.log(u1)) * math.cos(2 * math.pi * u2)


def simulate_pnl(
    allocation: float,
    current_pnl: float,
    state: SimulationState,
    started_at: datetime,
    trader_id: str,
    now: datetime,
    rng: Callable[[], float] = random.random,
) -> tuple[float, float]:
    """One tick. Returns (new_pnl, new_momentum)."""
    current_value = allocation + current_pnl

    days_elapsed = (now - started_at).total_seconds() / 86400
    expected_pnl = allocation * (math.pow(1 + state.target_monthly_roi / 100, days_elapsed / 30) - 1)
    mean_reversion = -(current_pnl - expected_pnl) * MEAN_REVERSION_RATE * DT

    drift = state.daily_drift * current_value * DT

    shock = trader_shock(trader_id, now)
    volatility = state.daily_volatility * current_value * math.sqrt(DT) * shock

    momentum = state.momentum * MOMENTUM_DECAY + MOMENTUM_SHOCK_WEIGHT * shock
    momentum = max(-1.0, min(1.0, momentum))
    momentum_term = momentum * state.daily_volatility * current_value * DT * 0.5

    new_pnl = current_pnl + drift + volatility + mean_reversion + momentum_term

    if new_pnl < state.min_pnl_usdt:
        new_pnl = state.min_pnl_usdt + rng() * allocation * BOUNCE_FRACTION

    max_step = allocation * MAX_STEP_FRACTION
    step = new_pnl - current_pnl
    if abs(step) > max_step:
        new_pnl = current_pnl + math.copysign(max_step, step)

    return new_pnl, momentum

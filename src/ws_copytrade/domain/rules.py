"""Pure copy-trading rules: liquidation trigger, payouts, stats clamp."""

from decimal import Decimal
from typing import Any

from src.ws_common.amounts import ZERO, clamp, quantize_pnl
from src.ws_copytrade.domain.models import Payout


def should_liquidate(
    funding_balance: Decimal, allocation: Decimal, current_pnl: Decimal, ratio: Decimal
) -> bool:
    """Force-stop iff the wallet balance is below ``ratio`` × allocation AND the position is losing.

    The funding balance is the user's wallet balance in the settlement asset,
    not the position's own value.
    """
    return funding_balance < ratio * allocation and current_pnl < 0


def liquidation_payout(allocation: Decimal, current_pnl: Decimal) -> Payout:
    return Payout(
        allocation=allocation,
        pnl=current_pnl,
        profit=ZERO,
        fee=ZERO,
        final_pnl=current_pnl,
        total=max(ZERO, allocation + current_pnl),
    )


def stop_payout(allocation: Decimal, current_pnl: Decimal, fee_percent: Decimal) -> Payout:
    """Performance fee is charged on profit only; losses are realized in full."""
    profit = current_pnl if current_pnl > 0 else ZERO
    fee = quantize_pnl(profit * fee_percent / Decimal(100))
    final_pnl = current_pnl - fee
    return Payout(
        allocation=allocation,
        pnl=current_pnl,
        profit=profit,
        fee=fee,
        final_pnl=final_pnl,
        total=max(ZERO, allocation + final_pnl),
    )


def clamp_monthly_roi(
    stats: dict[str, Any], roi_min: Decimal, roi_max: Decimal
) -> dict[str, Any]:
    current = Decimal(str(stats.get("monthly_roi") or 0))
    bounded = clamp(current, roi_min, roi_max)
    return {**stats, "monthly_roi": float(bounded)}

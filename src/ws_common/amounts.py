"""Decimal helpers for crypto amounts.

All balances and amounts are ``Decimal`` (DB type NUMERIC(36,18)). Floats only
appear inside the PnL simulator and are converted back here.
"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation

ZERO = Decimal("0")
# Display/PnL scale; PnL values are USDT-denominated
PNL_QUANTUM = Decimal("1e-8")


def to_decimal(value: object) -> Decimal:
    """Coerce str/int/float/Decimal to Decimal. Floats go through str()."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Not a decimal amount: {value!r}") from e


def quantize_pnl(value: float | Decimal) -> Decimal:
    return to_decimal(value).quantize(PNL_QUANTUM, rounding=ROUND_HALF_EVEN)


def clamp(value: Decimal, lower: Decimal, upper: Decimal) -> Decimal:
    return max(lower, min(upper, value))

"""Pure ledger preconditions, shared by the SQL repository and test fakes."""

from decimal import Decimal

from src.ws_common.errors import InvalidAmountError


def require_non_negative(amount: Decimal) -> None:
    if amount < 0:
        raise InvalidAmountError(amount)


def can_lock(balance: Decimal, locked: Decimal, amount: Decimal) -> bool:
    return locked + amount <= balance


def can_unlock(locked: Decimal, amount: Decimal) -> bool:
    return amount <= locked

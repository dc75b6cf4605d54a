"""Domain models for ws_ledger — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass
class BalanceAccount:
    user_id: str
    asset_id: str
    balance: Decimal          # total funds, locked included
    locked_balance: Decimal   # held pending finality of an external event
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def available_balance(self) -> Decimal:
        return self.balance - self.locked_balance


@dataclass
class LedgerEntry:
    id: int                          # BIGSERIAL
    user_id: str
    asset_id: str
    entry_type: str                  # LedgerEntryType value
    amount: Decimal                  # signed effect on balance (LOCK/UNLOCK: on locked_balance)
    balance_after: Decimal
    locked_after: Decimal
    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class LedgerRef:
    """What a ledger mutation is for; lands in ledger_entries.reference_*."""
    reference_type: str
    reference_id: str
    description: str = ""

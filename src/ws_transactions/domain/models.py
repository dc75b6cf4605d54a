"""Domain models for ws_transactions."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.ws_common.enums import TransactionStatus


@dataclass
class Transaction:
    id: str
    user_id: str
    asset_id: str
    kind: str                         # TransactionKind value
    amount: Decimal
    status: str                       # TransactionStatus value
    external_correlation_key: str     # idempotency anchor, UNIQUE
    credited_amount: Decimal = Decimal("0")  # already added to balance by this tx
    locked_amount: Decimal = Decimal("0")    # portion held by the ledger while pending
    created_at: datetime | None = None
    completed_at: datetime | None = None
    notes: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status != TransactionStatus.PENDING


@dataclass(frozen=True)
class NewTransaction:
    """Insert payload; ``id`` and timestamps come from the database."""
    user_id: str
    asset_id: str
    kind: str
    amount: Decimal
    external_correlation_key: str
    notes: str | None = None

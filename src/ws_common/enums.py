"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class LedgerEntryType(str, Enum):
    CREDIT = "CREDIT"
    LOCK = "LOCK"
    UNLOCK = "UNLOCK"
    # unlock(deduct=True): locked funds leave the account
    SPEND = "SPEND"


class TransactionKind(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class WebhookProvider(str, Enum):
    NOWPAYMENTS = "nowpayments"
    PLISIO = "plisio"


class WebhookOutcome(str, Enum):
    """Closed set of non-error results returned verbatim to gateways."""
    ACKNOWLEDGED = "acknowledged"
    ALREADY_PROCESSED = "already_processed"
    PENDING = "pending"
    SUCCESS = "success"


class PositionStatus(str, Enum):
    ACTIVE = "active"
    STOPPED = "stopped"
    LIQUIDATED = "liquidated"


class WaitlistStatus(str, Enum):
    WAITING = "waiting"
    NOTIFIED = "notified"
    EXPIRED = "expired"
    CLAIMED = "claimed"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

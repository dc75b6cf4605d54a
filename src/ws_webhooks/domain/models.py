"""Domain models for ws_webhooks.

Each gateway payload is normalized at the boundary into one DepositEvent so
the reconciliation saga never sees provider-specific field names.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


class EventAction(str, Enum):
    """What a gateway status means for our books."""
    IGNORE = "ignore"      # unknown / informational, e.g. partially_paid
    PENDING = "pending"    # payment seen, not yet confirmed
    LOCK = "lock"          # confirmed on chain, not final: credit and hold
    SETTLE = "settle"      # final: release the hold / credit
    FAIL = "fail"          # failed, expired or refunded


class RouteKind(str, Enum):
    INVOICE = "invoice"    # single-use, deposit_payments
    ADDRESS = "address"    # permanent, deposit_addresses


@dataclass(frozen=True)
class DepositEvent:
    provider: str                     # WebhookProvider value
    external_id: str                  # payment_id / txn_id
    gateway_status: str
    action: EventAction
    amount: Decimal
    currency: str
    address: str | None               # receiving address, when the gateway sends one
    claimed_user_id: str | None       # account id embedded in the callback
    tx_hash: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def correlation_key(self) -> str:
        return f"{self.provider}_{self.external_id}"


@dataclass(frozen=True)
class DepositRoute:
    kind: RouteKind
    route_id: str
    user_id: str
    asset_id: str
    address: str | None = None

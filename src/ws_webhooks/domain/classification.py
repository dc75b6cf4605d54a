"""Gateway status → EventAction tables.

Anything not listed is IGNORE: it is acknowledged to the gateway and never
moves money. That covers NOWPayments ``partially_paid`` and Plisio
``mismatch``, which need manual review rather than an automatic credit.
"""

from src.ws_webhooks.domain.models import EventAction

NOWPAYMENTS_ACTIONS: dict[str, EventAction] = {
    "waiting": EventAction.PENDING,
    "confirming": EventAction.PENDING,
    "sending": EventAction.PENDING,
    "confirmed": EventAction.LOCK,
    "finished": EventAction.SETTLE,
    "failed": EventAction.FAIL,
    "expired": EventAction.FAIL,
    "refunded": EventAction.FAIL,
}

PLISIO_ACTIONS: dict[str, EventAction] = {
    "new": EventAction.PENDING,
    "pending": EventAction.PENDING,
    "pending internal": EventAction.PENDING,
    "completed": EventAction.SETTLE,
    "expired": EventAction.FAIL,
    "error": EventAction.FAIL,
    "cancelled": EventAction.FAIL,
}


def classify_nowpayments(status: str) -> EventAction:
    return NOWPAYMENTS_ACTIONS.get(status.strip().lower(), EventAction.IGNORE)


def classify_plisio(status: str) -> EventAction:
    return PLISIO_ACTIONS.get(status.strip().lower(), EventAction.IGNORE)


def moves_money(action: EventAction) -> bool:
    return action in (EventAction.LOCK, EventAction.SETTLE, EventAction.FAIL)

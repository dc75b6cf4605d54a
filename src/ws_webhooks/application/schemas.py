"""Pydantic models for inbound gateway callbacks.

Only the fields we act on are declared; everything else is kept (extra="allow")
because the full body is what the signature covers and what gets logged.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.ws_common.enums import WebhookProvider
from src.ws_webhooks.domain.classification import classify_nowpayments, classify_plisio
from src.ws_webhooks.domain.models import DepositEvent


class NowPaymentsCallback(BaseModel):
    model_config = ConfigDict(extra="allow")

    payment_id: str = Field(..., min_length=1)
    payment_status: str = Field(..., min_length=1)
    pay_address: str
    pay_currency: str
    actually_paid: Decimal = Field(..., ge=0)
    order_id: str | None = None
    payin_hash: str | None = None

    @field_validator("payment_id", "order_id", mode="before")
    @classmethod
    def _numbers_as_text(cls, v: Any) -> Any:
        # NOWPayments sends payment_id as a JSON number
        if isinstance(v, int):
            return str(v)
        return v

    def to_event(self, raw: dict[str, Any]) -> DepositEvent:
        return DepositEvent(
            provider=WebhookProvider.NOWPAYMENTS.value,
            external_id=self.payment_id,
            gateway_status=self.payment_status,
            action=classify_nowpayments(self.payment_status),
            amount=self.actually_paid,
            currency=self.pay_currency,
            address=self.pay_address or None,
            claimed_user_id=self.order_id or None,
            tx_hash=self.payin_hash,
            raw=raw,
        )


class PlisioCallback(BaseModel):
    model_config = ConfigDict(extra="allow")

    txn_id: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    currency: str = Field(..., min_length=1)
    verify_hash: str = Field(..., min_length=1)
    wallet_hash: str | None = None
    deposit_uid: str | None = None

    def to_event(self, raw: dict[str, Any]) -> DepositEvent:
        return DepositEvent(
            provider=WebhookProvider.PLISIO.value,
            external_id=self.txn_id,
            gateway_status=self.status,
            action=classify_plisio(self.status),
            amount=self.amount,
            currency=self.currency,
            address=self.wallet_hash or None,
            claimed_user_id=self.deposit_uid or None,
            raw=raw,
        )


class WebhookResult(BaseModel):
    """Non-error result of one callback; serialized as the gateway ack."""
    status: str
    message: str | None = None
    transaction_id: str | None = None

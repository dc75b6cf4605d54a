"""Pydantic schemas for ws_transactions API."""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.ws_transactions.domain.models import Transaction


class TransferRequest(BaseModel):
    recipient_id: str = Field(..., min_length=1, max_length=64)
    asset: str = Field(..., min_length=1, max_length=16, description="Asset symbol, e.g. USDT")
    amount: Decimal = Field(..., gt=0)
    idempotency_key: str = Field(
        ..., min_length=1, max_length=64, description="Client key; replays return the first result"
    )


class TransactionResponse(BaseModel):
    id: str
    kind: str
    amount: str
    status: str
    created_at: str | None = None
    completed_at: str | None = None
    notes: str | None = None

    @classmethod
    def from_domain(cls, tx: Transaction) -> "TransactionResponse":
        return cls(
            id=tx.id,
            kind=tx.kind,
            amount=str(tx.amount),
            status=tx.status,
            created_at=tx.created_at.isoformat() if tx.created_at else None,
            completed_at=tx.completed_at.isoformat() if tx.completed_at else None,
            notes=tx.notes,
        )

"""Pydantic schemas for ws_waitlist API."""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.ws_copytrade.application.schemas import PositionResponse, TraderSummary
from src.ws_waitlist.domain.models import WaitlistEntry

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class WaitlistRequest(BaseModel):
    trader_id: str = Field(..., min_length=1)


class ClaimRequest(BaseModel):
    token: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, description="Allocation in the settlement asset")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class WaitlistEntryResponse(BaseModel):
    id: str
    trader_id: str
    status: str
    position_in_queue: int
    created_at: str
    claim_expires_at: str | None = None
    trader: TraderSummary | None = None

    @classmethod
    def from_domain(
        cls, entry: WaitlistEntry, trader: TraderSummary | None = None
    ) -> "WaitlistEntryResponse":
        return cls(
            id=entry.id,
            trader_id=entry.trader_id,
            status=entry.status,
            position_in_queue=entry.position_in_queue,
            created_at=entry.created_at.isoformat(),
            claim_expires_at=(
                entry.claim_expires_at.isoformat() if entry.claim_expires_at else None
            ),
            trader=trader,
        )


class JoinWaitlistResponse(BaseModel):
    entry: WaitlistEntryResponse
    message: str


class LeaveWaitlistResponse(BaseModel):
    removed: int
    message: str


class WaitlistStatusResponse(BaseModel):
    entries: list[WaitlistEntryResponse]


class TimeRemaining(BaseModel):
    hours: int
    minutes: int


class ClaimInfoResponse(BaseModel):
    entry: WaitlistEntryResponse
    trader: TraderSummary
    expires_at: str
    time_remaining: TimeRemaining


class ClaimResponse(BaseModel):
    position: PositionResponse
    trader: TraderSummary
    message: str

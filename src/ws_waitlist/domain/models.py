"""Domain models for ws_waitlist — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.ws_common.enums import WaitlistStatus


@dataclass
class WaitlistEntry:
    id: str
    user_id: str
    trader_id: str
    status: str                       # WaitlistStatus value
    position_in_queue: int
    created_at: datetime
    claim_token: str | None = None    # set only on waiting → notified
    claim_expires_at: datetime | None = None
    notified_at: datetime | None = None
    claimed_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status in (WaitlistStatus.WAITING, WaitlistStatus.NOTIFIED)

    def claim_expired(self, now: datetime) -> bool:
        return self.claim_expires_at is not None and now > self.claim_expires_at

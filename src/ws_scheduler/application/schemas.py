"""Pydantic schemas for ws_scheduler API."""

from pydantic import BaseModel


class TickReport(BaseModel):
    pnl_updates: int = 0
    liquidations: int = 0
    waitlist_notifications: int = 0
    expired_claims: int = 0
    trader_stats_updates: int = 0
    timestamp: str
    skipped: bool = False

"""Response wrappers.

Internal/UI-facing endpoints return the ApiResponse envelope:
{
    "code": 0,           // 0=success, non-0=error code
    "message": "success",
    "data": { ... },     // null on error
    "timestamp": "...",
    "request_id": "..."
}

Gateway-facing webhook endpoints return a flat acknowledgement instead,
because payment gateways only look at the HTTP status and the "status" key:
{"status": "already_processed", "message": "...", "transaction_id": "..."}
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = Field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")


class WebhookAck(BaseModel):
    status: str
    message: str | None = None
    transaction_id: str | None = None
    error: str | None = None


def success_response(data: Any = None) -> ApiResponse:
    return ApiResponse(code=0, message="success", data=data)


def error_response(code: int, message: str) -> ApiResponse:
    return ApiResponse(code=code, message=message, data=None)

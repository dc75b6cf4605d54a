"""Gateway callback endpoints — no user auth, authenticity is the signature.

Responses are the flat WebhookAck, not the ApiResponse envelope: gateways
only look at the HTTP status and ``status``.
"""

import json
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_common.database import get_db_session
from src.ws_common.datetime_utils import Clock, get_clock
from src.ws_common.enums import WebhookProvider
from src.ws_common.errors import InvalidPayloadError, WebhookError
from src.ws_common.response import WebhookAck
from src.ws_webhooks.application.service import ReconciliationService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

_service = ReconciliationService()


async def _read_body(request: Request) -> Any:
    raw = await request.body()
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidPayloadError("body is not valid JSON") from e


async def _handle(
    provider: WebhookProvider, request: Request, db: AsyncSession, clock: Clock
) -> JSONResponse:
    try:
        body = await _read_body(request)
        result = await _service.handle_callback(db, provider, body, request.headers, clock.now())
    except WebhookError as e:
        ack = WebhookAck(status=e.outcome, error=e.message)
        return JSONResponse(status_code=e.http_status, content=ack.model_dump(exclude_none=True))
    ack = WebhookAck(**result.model_dump())
    return JSONResponse(status_code=200, content=ack.model_dump(exclude_none=True))


@router.post("/nowpayments")
async def nowpayments_callback(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> JSONResponse:
    return await _handle(WebhookProvider.NOWPAYMENTS, request, db, clock)


@router.post("/plisio")
async def plisio_callback(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> JSONResponse:
    return await _handle(WebhookProvider.PLISIO, request, db, clock)


@router.get("/nowpayments")
async def nowpayments_alive() -> dict[str, str]:
    return {"status": "ok", "provider": WebhookProvider.NOWPAYMENTS.value}


@router.get("/plisio")
async def plisio_alive() -> dict[str, str]:
    return {"status": "ok", "provider": WebhookProvider.PLISIO.value}

"""ws_transactions REST API — JWT-authenticated wallet-to-wallet transfers."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_common.database import get_db_session
from src.ws_common.datetime_utils import Clock, get_clock
from src.ws_common.response import ApiResponse, success_response
from src.ws_gateway.auth.dependencies import get_current_user_id
from src.ws_transactions.application.schemas import TransferRequest
from src.ws_transactions.application.transfer import TransferService

router = APIRouter(prefix="/transfers", tags=["transfers"])

_service = TransferService()


@router.post("")
async def create_transfer(
    body: TransferRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    clock: Annotated[Clock, Depends(get_clock)],
    request: Request,
) -> ApiResponse:
    data = await _service.transfer(
        db, user_id, body.recipient_id, body.asset, body.amount, body.idempotency_key,
        clock.now(),
    )
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp

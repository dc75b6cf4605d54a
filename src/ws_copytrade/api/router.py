"""ws_copytrade REST API — start/stop/list, JWT-authenticated, behind the feature flag."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_common.database import get_db_session
from src.ws_common.datetime_utils import Clock, get_clock
from src.ws_common.response import ApiResponse, success_response
from src.ws_copytrade.application.schemas import StartPositionRequest, StopPositionRequest
from src.ws_copytrade.application.service import PositionService
from src.ws_gateway.auth.dependencies import get_current_user_id, require_copy_trade_enabled

router = APIRouter(
    prefix="/copy-trade",
    tags=["copy-trade"],
    dependencies=[Depends(require_copy_trade_enabled)],
)

_service = PositionService()


@router.post("/start")
async def start_position(
    body: StartPositionRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    clock: Annotated[Clock, Depends(get_clock)],
    request: Request,
) -> ApiResponse:
    data = await _service.start_position(db, user_id, body.trader_id, body.amount, clock.now())
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/stop")
async def stop_position(
    body: StopPositionRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    clock: Annotated[Clock, Depends(get_clock)],
    request: Request,
) -> ApiResponse:
    data = await _service.stop_position(db, user_id, body.position_id, clock.now())
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/positions")
async def list_positions(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.list_positions(db, user_id)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp

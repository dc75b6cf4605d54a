"""ws_waitlist REST API — waitlist join/leave/status and the emailed claim link."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_common.database import get_db_session
from src.ws_common.datetime_utils import Clock, get_clock
from src.ws_common.response import ApiResponse, success_response
from src.ws_gateway.auth.dependencies import get_current_user_id, require_copy_trade_enabled
from src.ws_waitlist.application.schemas import ClaimRequest, WaitlistRequest
from src.ws_waitlist.application.service import ClaimService, WaitlistService

router = APIRouter(
    prefix="/copy-trade",
    tags=["waitlist"],
    dependencies=[Depends(require_copy_trade_enabled)],
)

_waitlist = WaitlistService()
_claims = ClaimService()


@router.post("/waitlist/join")
async def join_waitlist(
    body: WaitlistRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _waitlist.join(db, user_id, body.trader_id)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/waitlist/leave")
async def leave_waitlist(
    body: WaitlistRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _waitlist.leave(db, user_id, body.trader_id)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/waitlist/status")
async def waitlist_status(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _waitlist.status(db, user_id)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


# The token itself is the credential for viewing a claim.
@router.get("/claim")
async def get_claim(
    token: Annotated[str, Query(min_length=1)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    clock: Annotated[Clock, Depends(get_clock)],
    request: Request,
) -> ApiResponse:
    data = await _claims.get_claim(db, token, clock.now())
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/claim")
async def claim_spot(
    body: ClaimRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    clock: Annotated[Clock, Depends(get_clock)],
    request: Request,
) -> ApiResponse:
    data = await _claims.claim(db, user_id, body.token, body.amount, clock.now())
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp

"""Tick trigger — called by an external timer every 5 minutes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_common.database import get_db_session
from src.ws_common.datetime_utils import Clock, get_clock
from src.ws_common.response import ApiResponse, success_response
from src.ws_gateway.auth.dependencies import require_copy_trade_enabled, require_cron_secret
from src.ws_scheduler.application.orchestrator import TickOrchestrator

router = APIRouter(
    prefix="/copy-trade",
    tags=["scheduler"],
    dependencies=[Depends(require_copy_trade_enabled), Depends(require_cron_secret)],
)

_orchestrator = TickOrchestrator()


@router.api_route("/tick", methods=["GET", "POST"])
async def tick(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    clock: Annotated[Clock, Depends(get_clock)],
    request: Request,
) -> ApiResponse:
    report = await _orchestrator.run(db, clock.now())
    resp = success_response(report.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp

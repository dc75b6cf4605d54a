"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.ws_common.database import engine
from src.ws_common.errors import AppError
from src.ws_common.redis_client import close_redis, get_redis
from src.ws_common.response import error_response
from src.ws_copytrade.api.router import router as copytrade_router
from src.ws_gateway.middleware.request_log import RequestLogMiddleware
from src.ws_scheduler.api.router import router as scheduler_router
from src.ws_transactions.api.router import router as transactions_router
from src.ws_waitlist.api.router import router as waitlist_router
from src.ws_webhooks.api.router import router as webhooks_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis connections. Shutdown: dispose."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    redis = await get_redis()
    try:
        await redis.ping()
    except Exception as e:
        # Redis only backs the tick overlap guard; ticks run unguarded without it.
        logger.warning("Redis unavailable at startup: %s", e)
    yield
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: [%d] %s", request.method, request.url.path, exc.code, exc.message)
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(webhooks_router, prefix="/api/v1")
app.include_router(copytrade_router, prefix="/api/v1")
app.include_router(waitlist_router, prefix="/api/v1")
app.include_router(scheduler_router, prefix="/api/v1")
app.include_router(transactions_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}

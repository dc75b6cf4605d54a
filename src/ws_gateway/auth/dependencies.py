"""FastAPI dependencies: caller identity, cron secret, feature flag.

Usage in any protected router:
    from src.ws_gateway.auth.dependencies import get_current_user_id

    @router.get("/protected")
    async def protected(user_id: Annotated[str, Depends(get_current_user_id)]):
        ...
"""

import hmac
import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config.settings import settings
from src.ws_common.errors import (
    FeatureDisabledError,
    InvalidCredentialsError,
    InvalidCronSecretError,
)
from src.ws_gateway.auth.jwt_handler import decode_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Return the user id of a valid Bearer token; 401 otherwise."""
    if credentials is None:
        raise _CREDENTIALS_EXCEPTION
    try:
        payload = decode_token(credentials.credentials)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None
    return payload["sub"]


async def require_copy_trade_enabled() -> None:
    if not settings.COPY_TRADE_ENABLED:
        raise FeatureDisabledError()


async def require_cron_secret(request: Request) -> None:
    """Constant-time check of ``Authorization: Bearer <CRON_SECRET>``.

    An unset CRON_SECRET rejects every caller.
    """
    expected = settings.CRON_SECRET
    if not expected:
        logger.error("CRON_SECRET is not configured; rejecting tick trigger")
        raise InvalidCronSecretError()
    supplied = request.headers.get("authorization", "")
    if not hmac.compare_digest(supplied.encode(), f"Bearer {expected}".encode()):
        logger.warning("Tick trigger rejected from %s", request.client.host if request.client else "?")
        raise InvalidCronSecretError()

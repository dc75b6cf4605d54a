"""JWT verification.

Tokens are issued by the external auth service with the shared JWT_SECRET;
this service only verifies them. ``sub`` carries the user id.
"""

from jose import JWTError, jwt

from config.settings import settings
from src.ws_common.errors import InvalidCredentialsError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"


def decode_token(token: str) -> dict[str, str]:
    """Decode and validate an access token.

    Raises:
        InvalidCredentialsError: signature invalid, token expired, or no ``sub``.
    """
    try:
        payload: dict[str, str] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidCredentialsError() from None

    # Refresh tokens are only accepted by the auth service
    if payload.get("type", "access") != "access" or not payload.get("sub"):
        raise InvalidCredentialsError()
    return payload

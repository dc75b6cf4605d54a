"""Unit tests for JWT verification."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from config.settings import settings
from src.ws_common.errors import InvalidCredentialsError
from src.ws_gateway.auth.jwt_handler import decode_token


def _issue(claims: dict, secret: str | None = None, algorithm: str = "HS256") -> str:
    payload = {"exp": datetime.now(timezone.utc) + timedelta(minutes=15), **claims}
    return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=algorithm)


def test_decode_valid_access_token() -> None:
    payload = decode_token(_issue({"sub": "user-abc", "type": "access"}))
    assert payload["sub"] == "user-abc"


def test_token_without_type_is_treated_as_access() -> None:
    assert decode_token(_issue({"sub": "user-abc"}))["sub"] == "user-abc"


def test_refresh_token_rejected() -> None:
    with pytest.raises(InvalidCredentialsError):
        decode_token(_issue({"sub": "user-abc", "type": "refresh"}))


def test_missing_sub_rejected() -> None:
    with pytest.raises(InvalidCredentialsError):
        decode_token(_issue({"type": "access"}))


def test_wrong_secret_rejected() -> None:
    with pytest.raises(InvalidCredentialsError):
        decode_token(_issue({"sub": "user-abc"}, secret="not-the-shared-secret"))


def test_expired_token_rejected() -> None:
    token = jwt.encode(
        {"sub": "user-abc", "exp": datetime.now(timezone.utc) - timedelta(seconds=1)},
        settings.JWT_SECRET,
        algorithm="HS256",
    )
    with pytest.raises(InvalidCredentialsError):
        decode_token(token)


def test_other_algorithm_rejected() -> None:
    """Only the configured algorithm is accepted."""
    with pytest.raises(InvalidCredentialsError):
        decode_token(_issue({"sub": "user-abc"}, algorithm="HS512"))


def test_garbage_rejected() -> None:
    with pytest.raises(InvalidCredentialsError):
        decode_token("not.a.jwt")

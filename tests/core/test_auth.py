"""Tests for user resolution in the auth module."""
from unittest.mock import MagicMock, patch

import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import (
    DEV_AUTH0_ID,
    decode_jwt,
    get_current_user,
    get_or_create_user,
)
from core.config import Settings
from models.user import User


def _settings(dev_mode: bool) -> Settings:
    return Settings(
        _env_file=None,
        database_url="postgresql://test@localhost/test",
        VITE_DEV_MODE=str(dev_mode).lower(),
        VITE_AUTH0_DOMAIN="tenant.auth0.com",
        VITE_AUTH0_AUDIENCE="bookmarks-api",
    )


async def test__get_or_create_user__creates_once(db_session: AsyncSession) -> None:
    first = await get_or_create_user(db_session, "auth0|abc", email="a@example.com")
    second = await get_or_create_user(db_session, "auth0|abc")

    assert first.id == second.id
    count = await db_session.scalar(
        select(func.count()).select_from(User).where(User.auth0_id == "auth0|abc"),
    )
    assert count == 1


async def test__get_or_create_user__updates_email(db_session: AsyncSession) -> None:
    await get_or_create_user(db_session, "auth0|abc", email="old@example.com")

    user = await get_or_create_user(db_session, "auth0|abc", email="new@example.com")

    assert user.email == "new@example.com"


async def test__get_current_user__dev_mode(db_session: AsyncSession) -> None:
    user = await get_current_user(credentials=None, db=db_session, settings=_settings(True))

    assert user.auth0_id == DEV_AUTH0_ID


async def test__get_current_user__missing_credentials(db_session: AsyncSession) -> None:
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(credentials=None, db=db_session, settings=_settings(False))

    assert exc_info.value.status_code == 401


async def test__get_current_user__valid_token(db_session: AsyncSession) -> None:
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="token")
    with patch(
        "core.auth.decode_jwt",
        return_value={"sub": "auth0|xyz", "email": "x@example.com"},
    ):
        user = await get_current_user(
            credentials=credentials, db=db_session, settings=_settings(False),
        )

    assert user.auth0_id == "auth0|xyz"
    assert user.email == "x@example.com"


async def test__get_current_user__token_without_sub(db_session: AsyncSession) -> None:
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="token")
    with (
        patch("core.auth.decode_jwt", return_value={"email": "x@example.com"}),
        pytest.raises(HTTPException) as exc_info,
    ):
        await get_current_user(credentials=credentials, db=db_session, settings=_settings(False))

    assert exc_info.value.status_code == 401


@pytest.mark.parametrize(
    ("error", "detail"),
    [
        (jwt.ExpiredSignatureError("expired"), "Token has expired"),
        (jwt.InvalidAudienceError("aud"), "Invalid audience"),
        (jwt.InvalidIssuerError("iss"), "Invalid issuer"),
    ],
)
def test__decode_jwt__maps_errors_to_401(error: Exception, detail: str) -> None:
    jwks_client = MagicMock()
    jwks_client.get_signing_key_from_jwt.side_effect = error

    with (
        patch("core.auth.get_jwks_client", return_value=jwks_client),
        pytest.raises(HTTPException) as exc_info,
    ):
        decode_jwt("token", _settings(False))

    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == detail

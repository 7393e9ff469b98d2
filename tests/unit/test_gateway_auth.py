"""Unit tests for Bearer-token verification and role guards."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from config.settings import settings
from src.im_common.errors import ForbiddenError, InvalidTokenError
from src.im_gateway.auth.dependencies import Actor, get_current_actor, require_roles
from src.im_gateway.auth.jwt_handler import decode_token


def _token(secret: str | None = None, **claims) -> str:
    return jwt.encode(claims, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class TestDecodeToken:
    def test_valid_token(self) -> None:
        payload = decode_token(_token(sub="cust-1", role="customer"))
        assert payload["sub"] == "cust-1"
        assert payload["role"] == "customer"

    def test_wrong_secret(self) -> None:
        with pytest.raises(InvalidTokenError):
            decode_token(_token("other-secret", sub="cust-1", role="customer"))

    def test_expired(self) -> None:
        exp = datetime.now(UTC) - timedelta(minutes=1)
        with pytest.raises(InvalidTokenError):
            decode_token(_token(sub="cust-1", role="customer", exp=exp))

    def test_missing_sub(self) -> None:
        with pytest.raises(InvalidTokenError):
            decode_token(_token(role="admin"))

    @pytest.mark.parametrize("role", ["system", "superuser", None])
    def test_unknown_role(self, role) -> None:
        with pytest.raises(InvalidTokenError):
            decode_token(_token(sub="x", role=role))

    def test_garbage(self) -> None:
        with pytest.raises(InvalidTokenError):
            decode_token("not-a-jwt")


class TestDependencies:
    async def test_current_actor(self) -> None:
        creds = HTTPAuthorizationCredentials(
            scheme="Bearer", credentials=_token(sub="tech-1", role="installer")
        )
        actor = await get_current_actor(creds)
        assert actor == Actor(id="tech-1", role="installer")
        assert actor.is_admin is False

    async def test_missing_credentials(self) -> None:
        with pytest.raises(InvalidTokenError):
            await get_current_actor(None)

    async def test_role_guard_allows(self) -> None:
        guard = require_roles("admin", "installer")
        actor = Actor(id="ops-1", role="admin")
        assert await guard(actor) is actor

    async def test_role_guard_rejects(self) -> None:
        guard = require_roles("admin")
        with pytest.raises(ForbiddenError):
            await guard(Actor(id="cust-1", role="customer"))

"""FastAPI dependencies: the authenticated actor and role guards.

Usage in any protected router:
    from src.im_gateway.auth.dependencies import Actor, get_current_actor, require_roles

    @router.post("/orders/{order_id}/status")
    async def transition(actor: Actor = Depends(require_roles("admin", "installer"))):
        ...
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.im_common.errors import ForbiddenError, InvalidTokenError
from src.im_gateway.auth.jwt_handler import decode_token

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Actor:
    """Extract and validate the Bearer token; raise 401 (InvalidTokenError) otherwise."""
    if credentials is None:
        raise InvalidTokenError()
    payload = decode_token(credentials.credentials)
    return Actor(id=payload["sub"], role=payload["role"])


def require_roles(*roles: str) -> Callable[..., Awaitable[Actor]]:
    """Dependency factory: the current actor, if their role is in `roles` (403 otherwise)."""

    async def _guard(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise ForbiddenError(actor.role)
        return actor

    return _guard

"""JWT verification for tokens issued by the marketplace auth service.

This service never issues tokens. It only verifies the HS256 signature with
the shared JWT_SECRET and reads two claims:
  - sub:  the actor id (customer, installer or admin user id)
  - role: customer / installer / admin
"""

from jose import JWTError, jwt

from config.settings import settings
from src.im_common.enums import ActorRole
from src.im_common.errors import InvalidTokenError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"

_KNOWN_ROLES = {r.value for r in ActorRole} - {ActorRole.SYSTEM.value}


def decode_token(token: str) -> dict[str, str]:
    """Decode and validate an access token.

    Raises:
        InvalidTokenError: bad signature, expired, or missing sub/role claims.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidTokenError() from None

    if not payload.get("sub") or payload.get("role") not in _KNOWN_ROLES:
        raise InvalidTokenError()
    return payload

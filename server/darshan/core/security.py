"""Bearer token verification and the caller identity it yields."""

from dataclasses import dataclass, field
from typing import Optional

import jwt
from jwt import PyJWTError

from .config import settings
from .exceptions import AuthenticationError

RESPONDER_ROLES = frozenset({"admin", "security"})
STAFF_ROLES = frozenset({"admin", "temple_staff"})


@dataclass(frozen=True)
class CurrentUser:
    """Identity extracted from a verified bearer token."""

    user_id: str
    email: Optional[str] = None
    roles: frozenset = field(default_factory=frozenset)

    def has_any_role(self, roles) -> bool:
        return bool(self.roles & frozenset(roles))


def decode_bearer_token(authorization: Optional[str]) -> CurrentUser:
    """
    Validate an ``Authorization: Bearer <jwt>`` header.

    Args:
        authorization: Raw header value

    Returns:
        CurrentUser: Identity carried by the token

    Raises:
        AuthenticationError: If the header is missing, malformed or the token is invalid
    """
    if not authorization:
        raise AuthenticationError("Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError("Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise AuthenticationError("Invalid authentication scheme")

    try:
        payload = jwt.decode(
            token,
            settings.bearer_token_secret,
            algorithms=["HS256"],
            options={"require": ["sub"]},
        )
    except PyJWTError:
        # Token internals are not echoed back to the caller
        raise AuthenticationError("Invalid or expired token")

    return CurrentUser(
        user_id=str(payload["sub"]),
        email=payload.get("email"),
        roles=frozenset(payload.get("roles", [])),
    )

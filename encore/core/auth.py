"""
JWT validation OR dev-mode bypass. Controlled by FF_USE_AUTH flag.

Tokens are Supabase-style HS256 JWTs: `sub` is the user id and the role
lives in `app_metadata.role` (or a top-level `user_role` claim).
"""

import logging
from dataclasses import dataclass, field

from jose import jwt, JWTError

from .config import Settings
from .flags import FeatureFlags

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


@dataclass
class AuthenticatedUser:
    user_id: str
    email: str = ""
    roles: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles


# Dev-mode user, returned when FF_USE_AUTH=false
DEV_USER = AuthenticatedUser(
    user_id="dev-user",
    email="dev@local",
    roles=[ADMIN_ROLE],
)


def verify_token(token: str, settings: Settings) -> AuthenticatedUser:
    if not settings.jwt_secret:
        raise PermissionError("JWT_SECRET is not configured")

    payload = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience or None,
    )

    user_id = payload.get("sub", "")
    if not user_id:
        raise JWTError("Token missing sub claim")

    role = (payload.get("app_metadata") or {}).get("role") or payload.get("user_role")
    return AuthenticatedUser(
        user_id=user_id,
        email=payload.get("email", ""),
        roles=[role] if role else [],
    )


def get_current_user(authorization: str, settings: Settings, flags: FeatureFlags) -> AuthenticatedUser:
    """
    Resolve the current user from the Authorization header.
    If FF_USE_AUTH is false, returns the dev user.
    """
    if not flags.use_auth:
        return DEV_USER

    if not authorization:
        raise PermissionError("Missing Authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise PermissionError("Invalid Authorization header. Use: Bearer <token>")

    try:
        return verify_token(token, settings)
    except JWTError as e:
        logger.info("Rejected token: %s", e)
        raise PermissionError(f"Invalid token: {e}")

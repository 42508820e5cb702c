"""FastAPI dependencies: bearer-token authentication and role gates.

Tokens are minted by the identity-provider bridge; a token is accepted only
while its role claim still matches the user's stored role.
"""

from uuid import UUID

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from kidquiz.core.app_exceptions import ForbiddenError, UnauthorizedError
from kidquiz.core.logging import get_logger
from kidquiz.core.security import verify_access_token
from kidquiz.db.session import get_db
from kidquiz.models.user import User, UserRole

__all__ = ["get_current_user", "get_db", "require_roles"]

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False, description="Access token from the identity provider")


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the caller from the ``Authorization: Bearer`` header."""
    if credentials is None:
        raise UnauthorizedError("Authorization header missing")

    try:
        claims = verify_access_token(credentials.credentials)
        user_id = UUID(claims["sub"])
        token_role = claims["role"]
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise UnauthorizedError(f"Invalid or expired token: {e}", code="TOKEN_INVALID") from e

    user = db.get(User, user_id)
    if user is None:
        raise UnauthorizedError("User not found", code="TOKEN_INVALID")
    if not user.is_active:
        raise ForbiddenError("User account is inactive")
    if user.role != token_role:
        # Role changed since the token was issued
        logger.info("Stale token role", extra={"user_id": str(user.id), "token_role": token_role})
        raise UnauthorizedError("Token role mismatch. Please sign in again.", code="TOKEN_INVALID")
    return user


def require_roles(*allowed_roles: UserRole):
    """Dependency factory: the caller must hold one of ``allowed_roles``."""
    allowed = {r.value for r in allowed_roles}

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise ForbiddenError(f"This action needs one of the roles: {', '.join(sorted(allowed))}")
        return current_user

    return role_checker

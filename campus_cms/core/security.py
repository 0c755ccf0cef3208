"""Security infrastructure for the Campus CMS application.

This module provides:
- Access token creation and validation (JWT via python-jose)
- Resolution of the calling user from a bearer header or the
  ``accessToken`` cookie
- Role-based access control for the ``admin`` and ``author`` roles
- Ownership checks for resources that belong to a user
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select

from campus_cms.core.config import get_settings
from campus_cms.core.exceptions import AuthenticationError, PermissionDeniedError
from campus_cms.core.logging import get_logger
from campus_cms.database.session import SessionManager, get_session_manager
from campus_cms.models.database.user import User

settings = get_settings()
logger = get_logger(__name__)

ADMIN = "admin"
AUTHOR = "author"
ACCESS_TOKEN_COOKIE = "accessToken"

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token with optional expiration."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return jwt.encode(
        {"userId": user_id, "exp": expire},
        settings.ACCESS_TOKEN_SECRET,
        algorithm=settings.JWT_ALGORITHM
    )


def decode_access_token(token: str) -> Optional[int]:
    """Return the user id carried by a valid token, otherwise ``None``."""
    try:
        payload = jwt.decode(
            token,
            settings.ACCESS_TOKEN_SECRET,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        return None

    user_id = payload.get("userId")
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        return None
    return user_id


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    manager: SessionManager = Depends(get_session_manager)
) -> Optional[User]:
    """Resolve the caller if a valid token is present; anonymous otherwise."""
    token = credentials.credentials if credentials else request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        return None

    user_id = decode_access_token(token)
    if user_id is None:
        logger.debug("Ignoring invalid access token", path=request.url.path)
        return None

    async with manager.session() as session:
        result = await session.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    user: Optional[User] = Depends(get_optional_user)
) -> User:
    """Require an authenticated, active user."""
    if user is None:
        raise AuthenticationError("Not authorized, no valid token")
    return user


def is_admin(user: Optional[User]) -> bool:
    return user is not None and user.role == ADMIN


def can_modify(user: Optional[User], owner_id: Optional[int]) -> bool:
    """Owners may change their own rows; admins may change anything."""
    if user is None:
        return False
    return is_admin(user) or (owner_id is not None and owner_id == user.id)


def require_roles(*roles: str):
    """Dependency factory restricting a route to the given roles."""
    async def role_dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise PermissionDeniedError(
                f"Access denied. Required role: {' or '.join(roles)}"
            )
        return current_user
    return role_dependency


require_admin = require_roles(ADMIN)
require_staff = require_roles(ADMIN, AUTHOR)

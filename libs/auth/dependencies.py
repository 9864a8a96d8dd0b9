from typing import Annotated, Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import AuthUser, Role
from libs.common.config import get_settings

settings = get_settings()
security = HTTPBearer()


async def get_current_user(
    request: Request,
    token: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> AuthUser:
    """
    Validate the bearer JWT and return the authenticated user.

    The decoded user is also stored on ``request.state`` so the rate limiter
    can key on it.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token.credentials,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
        user = AuthUser(**payload)
    except (JWTError, ValidationError):
        raise credentials_exception

    # Tokens may never claim the internal system actor.
    if user.is_system:
        raise credentials_exception

    request.state.user = user
    return user


async def require_admin(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """
    Ensure the caller is an admin (or the service role).
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


def require_roles(*roles: Role) -> Callable:
    """
    Build a dependency that admits the given roles. Admins always pass.
    """

    async def _dependency(
        current_user: Annotated[AuthUser, Depends(get_current_user)]
    ) -> AuthUser:
        if current_user.is_admin or current_user.role in roles:
            return current_user
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Requires role: {', '.join(r.value for r in roles)}",
        )

    return _dependency

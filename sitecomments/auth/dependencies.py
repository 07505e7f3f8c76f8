"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current user extraction from the Bearer token
- Optional user for endpoints open to guests
- Admin check against the admin_roles table
- The connection's client id
"""

from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from sitecomments.auth.admin_roles import AdminRoleService
from sitecomments.auth.schemas import AuthenticatedUser
from sitecomments.auth.security import decode_access_token
from sitecomments.core.context import set_user_id
from sitecomments.core.middleware import get_client_id


logger = structlog.get_logger(__name__)


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> AuthenticatedUser:
    """Get the signed-in user from the access token.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="login required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_access_token(token)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    user = AuthenticatedUser.from_token_payload(payload)
    set_user_id(user.id)
    return user


async def get_current_user_optional(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> AuthenticatedUser | None:
    """Get the signed-in user, or None for guests.

    An invalid token is treated as no session.
    """
    if not token:
        return None

    try:
        payload = decode_access_token(token)
    except JWTError:
        logger.debug("optional_token_rejected")
        return None

    user = AuthenticatedUser.from_token_payload(payload)
    set_user_id(user.id)
    return user


async def get_admin_role_service(request: Request) -> AdminRoleService:
    admin_roles = getattr(request.app.state, "admin_role_service", None)
    if admin_roles is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="admin role service unavailable",
        )
    return admin_roles


async def require_admin(
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    admin_roles: Annotated[AdminRoleService, Depends(get_admin_role_service)],
) -> AuthenticatedUser:
    """Require a signed-in administrator.

    Raises:
        HTTPException(401): No session
        HTTPException(403): Signed in but not an admin
    """
    if not await admin_roles.is_admin(user.id):
        logger.warning("admin_access_denied", user_id=str(user.id))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="admin role required",
        )
    return user


async def get_request_client_id(request: Request) -> str:
    """Client id recorded by the request middleware (recomputed if absent)."""
    client_id = getattr(request.state, "client_id", None)
    return client_id or get_client_id(request)


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]

OptionalUser = Annotated[AuthenticatedUser | None, Depends(get_current_user_optional)]

AdminUser = Annotated[AuthenticatedUser, Depends(require_admin)]

ClientId = Annotated[str, Depends(get_request_client_id)]

"""
Authentication and Authorization Module

Resolves the bearer token on admin routes into an ``AdminPrincipal``.

Outcomes:
- UnauthenticatedError (401): no token, garbled token, or the identity
  provider rejected it (including expiry)
- ForbiddenError (403): valid principal without the ``admin`` claim
- AdminPrincipal: authenticated admin

Routes only ever see the resolved principal, never the token.
"""

import logging
from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from courseapp.core.errors import ForbiddenError, UnauthenticatedError
from courseapp.core.security import (
    IdentityProvider,
    TokenExpiredError,
    TokenVerificationError,
    get_identity_provider,
)

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation. Missing credentials are handled
# below so they render in the common error shape.
security = HTTPBearer(
    auto_error=False,
    description="ID token issued by the identity provider",
)


@dataclass
class AdminPrincipal:
    """
    Authenticated administrator, populated from verified token claims.

    Attributes:
        uid: Principal identifier (``uid`` claim, falling back to ``sub``)
        email: Principal's email address
        admin: Admin capability flag (always True once resolved)
    """

    uid: str
    email: str
    admin: bool = True

    def __str__(self) -> str:
        return f"AdminPrincipal(uid={self.uid}, email={self.email})"


async def verify_bearer_token(token: str | None, provider: IdentityProvider) -> AdminPrincipal:
    """
    Verify a bearer token and require the admin capability.

    Args:
        token: Raw bearer token, or None when the header was absent
        provider: Identity provider used to verify the token

    Returns:
        The resolved AdminPrincipal

    Raises:
        UnauthenticatedError: Token missing or rejected
        ForbiddenError: Token valid but principal is not an admin
    """
    if not token:
        raise UnauthenticatedError("No authentication token provided")

    try:
        claims = await provider.verify_id_token(token)
    except TokenExpiredError as e:
        logger.warning("Rejected expired token")
        raise UnauthenticatedError("Invalid or expired token") from e
    except TokenVerificationError as e:
        logger.warning(f"Rejected token: {e}")
        raise UnauthenticatedError("Invalid or expired token") from e

    uid = claims.get("uid") or claims.get("sub")
    if not uid:
        logger.warning("Token is missing a principal identifier")
        raise UnauthenticatedError("Token contains invalid or missing claims")

    email = claims.get("email") or ""

    if claims.get("admin") is not True:
        logger.warning(f"Non-admin principal attempted admin access: {uid} ({email})")
        raise ForbiddenError()

    return AdminPrincipal(uid=str(uid), email=email)


async def get_current_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> AdminPrincipal:
    """
    FastAPI dependency for admin-only routes.

    Usage:
        @router.delete("/{id}")
        async def delete(admin: AdminPrincipal = Depends(get_current_admin)):
            ...
    """
    token = credentials.credentials if credentials else None
    principal = await verify_bearer_token(token, provider)

    request.state.admin_uid = principal.uid
    logger.debug(f"Authenticated admin: {principal.uid} ({principal.email})")
    return principal


__all__ = [
    "AdminPrincipal",
    "verify_bearer_token",
    "get_current_admin",
]

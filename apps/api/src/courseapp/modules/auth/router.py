"""Authentication router."""

import logging

from fastapi import APIRouter, Depends

from courseapp.core.auth import AdminPrincipal, get_current_admin
from courseapp.core.rate_limit import rate_limit
from courseapp.modules.auth.schemas import VerifyResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/verify",
    response_model=VerifyResponse,
    dependencies=[Depends(rate_limit("auth"))],
    summary="Verify Admin Token",
    description="Resolve the bearer token to its admin principal. Used by the admin UI to check a session.",
    responses={
        401: {"description": "Unauthorized - invalid or missing token"},
        403: {"description": "Forbidden - not an admin"},
        429: {"description": "Too many authentication attempts"},
    },
)
async def verify_token(admin: AdminPrincipal = Depends(get_current_admin)) -> VerifyResponse:
    logger.info(f"Verified admin session: {admin.uid}")
    return VerifyResponse(uid=admin.uid, email=admin.email, admin=admin.admin)

from fastapi import APIRouter, Depends

from courseapp.core.rate_limit import rate_limit
from courseapp.modules.auth import router as auth_router
from courseapp.modules.events import router as events_router
from courseapp.modules.submissions import router as submissions_router

# Every /api route counts against the general API budget
api_router = APIRouter(dependencies=[Depends(rate_limit("api"))])

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(events_router, prefix="/events", tags=["Events"])

api_router.include_router(submissions_router, prefix="/submissions", tags=["Submissions"])

"""
Events Router

Endpoints:
- GET /events - List events (public)
- GET /events/{id} - Get one event (public)
- POST /events - Create an event (admin)
- PUT /events/{id} - Replace an event (admin)
- DELETE /events/{id} - Delete an event and its submissions (admin)

Service errors propagate to the application's exception handlers.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from courseapp.core.auth import AdminPrincipal, get_current_admin
from courseapp.core.database import get_db
from courseapp.core.rate_limit import rate_limit
from courseapp.core.storage import ObjectStorage, get_storage
from courseapp.modules.events import service
from courseapp.modules.events.schemas import EventCreate, EventResponse

logger = logging.getLogger(__name__)

router = APIRouter()

ADMIN_RESPONSES = {
    401: {"description": "Unauthorized - invalid or missing token"},
    403: {"description": "Forbidden - not an admin"},
    429: {"description": "Too many admin requests"},
}


@router.get(
    "",
    response_model=list[EventResponse],
    summary="List Events",
    description="All events, latest date first.",
)
async def list_events(db: AsyncSession = Depends(get_db)) -> list[EventResponse]:
    events = await service.list_events(db)
    return [EventResponse.model_validate(event) for event in events]


@router.get(
    "/{event_id}",
    response_model=EventResponse,
    summary="Get Event",
    responses={404: {"description": "Event not found"}},
)
async def get_event(event_id: str, db: AsyncSession = Depends(get_db)) -> EventResponse:
    event = await service.get_event(db, event_id)
    return EventResponse.model_validate(event)


@router.post(
    "",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("admin"))],
    summary="Create Event",
    description="""
Create a course event.

**Fields:** `courseName` (3-200 chars), `date` (ISO 8601), `venue` (3-200 chars),
`price` (>= 0), `emailText` (1-5000 chars, appended to confirmation emails).

**Access:** Admin only
""",
    responses={400: {"description": "Validation failed"}, **ADMIN_RESPONSES},
)
async def create_event(
    data: EventCreate,
    db: AsyncSession = Depends(get_db),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> EventResponse:
    event = await service.create_event(db, data)
    logger.info(f"Admin {admin.uid} created event {event.id}")
    return EventResponse.model_validate(event)


@router.put(
    "/{event_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(rate_limit("admin"))],
    summary="Replace Event",
    description="Replace every field of an event. **Access:** Admin only",
    responses={400: {"description": "Validation failed"}, 404: {"description": "Event not found"}, **ADMIN_RESPONSES},
)
async def replace_event(
    event_id: str,
    data: EventCreate,
    db: AsyncSession = Depends(get_db),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> None:
    await service.replace_event(db, event_id, data)
    logger.info(f"Admin {admin.uid} updated event {event_id}")


@router.delete(
    "/{event_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(rate_limit("admin"))],
    summary="Delete Event",
    description="""
Delete an event together with every submission that references it,
including their attachments.

**Access:** Admin only
""",
    responses={404: {"description": "Event not found"}, **ADMIN_RESPONSES},
)
async def delete_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> None:
    removed = await service.delete_event(db, storage, event_id)
    logger.info(f"Admin {admin.uid} deleted event {event_id} and {removed} submissions")

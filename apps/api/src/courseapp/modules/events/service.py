"""
Events Service Layer

Business logic for course events, including the cascade that removes an
event's submissions when the event is deleted.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from courseapp.core.errors import NotFoundError, PersistenceError
from courseapp.core.storage import ObjectStorage
from courseapp.modules.events import repository
from courseapp.modules.events.models import Event
from courseapp.modules.events.schemas import EventCreate
from courseapp.modules.submissions import repository as submissions_repository

logger = logging.getLogger(__name__)

# Submissions created while a cascade runs are caught by re-querying
CASCADE_MAX_PASSES = 3


async def list_events(db: AsyncSession) -> list[Event]:
    """All events, latest date first."""
    return await repository.list_all(db)


async def get_event(db: AsyncSession, event_id: str) -> Event:
    """
    Get an event by ID.

    Raises:
        NotFoundError: If the event does not exist
    """
    event = await repository.get_by_id(db, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    return event


async def create_event(db: AsyncSession, data: EventCreate) -> Event:
    try:
        event = await repository.create(db, data)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to create event: {e}")
        raise PersistenceError("Failed to create event") from e

    logger.info(f"Created event {event.id}: {event.course_name}")
    return event


async def replace_event(db: AsyncSession, event_id: str, data: EventCreate) -> Event:
    """
    Overwrite an event with new field values.

    Raises:
        NotFoundError: If the event does not exist
    """
    event = await get_event(db, event_id)

    try:
        event = await repository.replace(db, event, data)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to update event {event_id}: {e}")
        raise PersistenceError("Failed to update event") from e

    logger.info(f"Updated event {event_id}")
    return event


async def delete_event(db: AsyncSession, storage: ObjectStorage, event_id: str) -> int:
    """
    Delete an event and every submission that references it.

    The event goes first. Its submissions are then removed in passes (query,
    delete attachments, batch-delete records) until a query comes back empty
    or the pass budget runs out. Attachment failures are logged and do not
    stop the cascade.

    Returns:
        Number of submissions removed

    Raises:
        NotFoundError: If the event does not exist
    """
    event = await get_event(db, event_id)
    await repository.delete(db, event)
    logger.info(f"Deleted event {event_id}")

    removed = 0
    for cascade_pass in range(1, CASCADE_MAX_PASSES + 1):
        submissions = await submissions_repository.list_by_event(db, event_id)
        if not submissions:
            break

        for submission in submissions:
            await storage.discard(submission.file_url)

        removed += await submissions_repository.delete_many(db, [s.id for s in submissions])
        logger.info(f"Cascade pass {cascade_pass} for event {event_id}: removed {len(submissions)} submissions")
    else:
        leftover = await submissions_repository.count_by_event(db, event_id)
        if leftover:
            logger.warning(
                f"{leftover} submissions of deleted event {event_id} remain after "
                f"{CASCADE_MAX_PASSES} passes; left for the orphan sweep"
            )

    return removed

"""
Events Repository

Database operations for course events.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Event
from .schemas import EventCreate


async def create(db: AsyncSession, data: EventCreate) -> Event:
    """Create a new event."""
    event = Event(
        course_name=data.course_name,
        date=data.date,
        venue=data.venue,
        price=data.price,
        email_text=data.email_text,
    )

    db.add(event)
    await db.commit()
    await db.refresh(event)

    return event


async def get_by_id(db: AsyncSession, event_id: str) -> Event | None:
    """Get event by ID."""
    return await db.get(Event, event_id)


async def list_all(db: AsyncSession) -> list[Event]:
    """All events, latest date first."""
    result = await db.execute(select(Event).order_by(Event.date.desc()))
    return list(result.scalars().all())


async def replace(db: AsyncSession, event: Event, data: EventCreate) -> Event:
    """Overwrite every editable field of an event."""
    event.course_name = data.course_name
    event.date = data.date
    event.venue = data.venue
    event.price = data.price
    event.email_text = data.email_text

    await db.commit()
    await db.refresh(event)

    return event


async def delete(db: AsyncSession, event: Event) -> None:
    """Delete an event. Its submissions are removed by the service."""
    await db.delete(event)
    await db.commit()

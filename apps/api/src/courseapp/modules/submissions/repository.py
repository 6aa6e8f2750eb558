"""
Submissions Repository

Database operations for applicant submissions.
"""

from sqlalchemy import delete as sa_delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from courseapp.modules.events.models import Event

from .models import Submission, SubmissionType


async def create(
    db: AsyncSession,
    *,
    event_id: str,
    type: SubmissionType,
    name: str,
    email: str,
    file_url: str | None = None,
    file_name: str | None = None,
    file_content_type: str | None = None,
) -> Submission:
    """Create a new, unpaid submission."""
    submission = Submission(
        event_id=event_id,
        type=type,
        name=name,
        email=email,
        file_url=file_url,
        file_name=file_name,
        file_content_type=file_content_type,
        paid=False,
    )

    db.add(submission)
    await db.commit()
    await db.refresh(submission)

    return submission


async def get_by_id(db: AsyncSession, submission_id: str) -> Submission | None:
    """Get submission by ID."""
    return await db.get(Submission, submission_id)


async def list_all(db: AsyncSession, event_id: str | None = None) -> list[Submission]:
    """Submissions, newest first, optionally for one event."""
    query = select(Submission).order_by(Submission.created_at.desc())
    if event_id is not None:
        query = query.where(Submission.event_id == event_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_by_event(db: AsyncSession, event_id: str) -> list[Submission]:
    result = await db.execute(select(Submission).where(Submission.event_id == event_id))
    return list(result.scalars().all())


async def count_by_event(db: AsyncSession, event_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(Submission).where(Submission.event_id == event_id)
    )
    return result.scalar_one()


async def set_paid(db: AsyncSession, submission: Submission, paid: bool) -> Submission:
    """Write the payment flag and bump updated_at, even when the flag is unchanged."""
    submission.paid = paid
    submission.updated_at = func.now()

    await db.commit()
    await db.refresh(submission)

    return submission


async def delete(db: AsyncSession, submission: Submission) -> None:
    await db.delete(submission)
    await db.commit()


async def delete_many(db: AsyncSession, submission_ids: list[str]) -> int:
    """Batch-delete submissions in one statement. Returns the number removed."""
    if not submission_ids:
        return 0

    result = await db.execute(sa_delete(Submission).where(Submission.id.in_(submission_ids)))
    await db.commit()

    return result.rowcount or 0


async def list_orphaned(db: AsyncSession, limit: int = 500) -> list[Submission]:
    """Submissions whose event no longer exists."""
    result = await db.execute(
        select(Submission)
        .where(~select(Event.id).where(Event.id == Submission.event_id).exists())
        .order_by(Submission.created_at)
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_file_urls(db: AsyncSession) -> set[str]:
    """Every attachment URL still referenced by a submission."""
    result = await db.execute(select(Submission.file_url).where(Submission.file_url.is_not(None)))
    return set(result.scalars().all())

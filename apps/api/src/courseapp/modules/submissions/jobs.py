"""
Submissions Background Jobs

Scheduled maintenance closing the gaps the request path leaves open:
1. Purge orphaned submissions: submissions whose event no longer exists
   (a submission created while its event's cascade was running, or data
   predating the cascade)
2. Purge orphaned attachments: stored objects no submission references
   (an upload whose record failed to save and whose compensation delete
   also failed)

Both jobs run hourly, are idempotent, and keep going past individual
failures, which are logged and counted.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from courseapp.core.database import async_session_maker
from courseapp.core.scheduler import register_job
from courseapp.core.storage import SUBMISSIONS_PREFIX, ObjectStorage, get_storage
from courseapp.modules.submissions import repository

logger = logging.getLogger(__name__)

# Uploads younger than this may still be waiting for their record
ATTACHMENT_GRACE_PERIOD = timedelta(hours=1)

JOB_ID_PURGE_ORPHANED_SUBMISSIONS = "submissions_purge_orphaned_submissions"
JOB_ID_PURGE_ORPHANED_ATTACHMENTS = "submissions_purge_orphaned_attachments"


async def purge_orphaned_submissions(
    session_factory: async_sessionmaker[AsyncSession] = async_session_maker,
    storage: ObjectStorage | None = None,
) -> dict[str, Any]:
    """
    Delete submissions that reference a missing event, attachments first.

    Returns:
        Summary with executed_at, purged submission ids and error count
    """
    storage = storage or get_storage()
    executed_at = datetime.now(UTC)

    results: dict[str, Any] = {
        "executed_at": executed_at.isoformat(),
        "purged": [],
        "total_purged": 0,
        "total_errors": 0,
    }

    async with session_factory() as db:
        orphans = await repository.list_orphaned(db)
        logger.info(f"Found {len(orphans)} orphaned submissions")

        for submission in orphans:
            try:
                if not await storage.discard(submission.file_url):
                    # Keep the record so the attachment is retried next run
                    results["total_errors"] += 1
                    continue
                await repository.delete(db, submission)
                results["purged"].append(submission.id)
                results["total_purged"] += 1
            except Exception as e:
                logger.error(f"Error purging orphaned submission {submission.id}: {e}", exc_info=True)
                await db.rollback()
                results["total_errors"] += 1

    logger.info(
        f"Orphaned submission purge completed. "
        f"Purged: {results['total_purged']}, Errors: {results['total_errors']}"
    )
    return results


async def purge_orphaned_attachments(
    session_factory: async_sessionmaker[AsyncSession] = async_session_maker,
    storage: ObjectStorage | None = None,
) -> dict[str, Any]:
    """
    Delete stored attachments that no submission references.

    Only objects under the submissions prefix older than the grace period
    are considered.

    Returns:
        Summary with executed_at, deleted keys and error count
    """
    storage = storage or get_storage()
    executed_at = datetime.now(UTC)
    cutoff = executed_at - ATTACHMENT_GRACE_PERIOD

    results: dict[str, Any] = {
        "executed_at": executed_at.isoformat(),
        "deleted": [],
        "total_deleted": 0,
        "total_errors": 0,
    }

    objects = await storage.list_objects(SUBMISSIONS_PREFIX)

    async with session_factory() as db:
        referenced_urls = await repository.list_file_urls(db)
    referenced_keys = {storage.key_from_url(url) for url in referenced_urls}

    candidates = [
        obj
        for obj in objects
        if obj.key not in referenced_keys and obj.last_modified is not None and obj.last_modified < cutoff
    ]
    logger.info(f"Found {len(candidates)} orphaned attachments out of {len(objects)} stored")

    for obj in candidates:
        try:
            await storage.delete(obj.key)
            results["deleted"].append(obj.key)
            results["total_deleted"] += 1
        except Exception as e:
            logger.error(f"Error deleting orphaned attachment {obj.key}: {e}")
            results["total_errors"] += 1

    logger.info(
        f"Orphaned attachment purge completed. "
        f"Deleted: {results['total_deleted']}, Errors: {results['total_errors']}"
    )
    return results


def register_submission_jobs() -> None:
    """Register the submission maintenance jobs (hourly)."""
    register_job(
        job_id=JOB_ID_PURGE_ORPHANED_SUBMISSIONS,
        func=purge_orphaned_submissions,
        trigger=IntervalTrigger(hours=1),
    )
    register_job(
        job_id=JOB_ID_PURGE_ORPHANED_ATTACHMENTS,
        func=purge_orphaned_attachments,
        trigger=IntervalTrigger(hours=1),
    )
    logger.info("Submission background jobs registered")

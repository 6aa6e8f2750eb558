"""
Submissions Service Layer

Business logic for applicant submissions.

Submission create pipeline:
1. Validate form fields and the attachment together (all violations at once)
2. Check the referenced event exists (before anything is uploaded)
3. Upload the attachment, if any
4. Persist the submission; on failure delete the just-uploaded attachment
5. Fire the confirmation email as a detached task; its failure is logged
   and never changes the outcome

There are no retries and no cross-store transaction. An attachment whose
compensation delete also failed is picked up by the orphaned attachment job.

Admin operations:
- List submissions (optionally per event)
- Update the payment flag (idempotent)
- Download the attachment
- Delete a submission, attachment first
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from courseapp.core.config import settings
from courseapp.core.email import send_submission_confirmation
from courseapp.core.errors import InvalidInputError, NotFoundError, PersistenceError, StorageError
from courseapp.core.notifications import NotificationDispatcher
from courseapp.core.storage import DownloadedObject, ObjectStorage, StoredObject
from courseapp.core.validation import validate_payload
from courseapp.modules.events import repository as events_repository
from courseapp.modules.submissions import repository
from courseapp.modules.submissions.models import Submission
from courseapp.modules.submissions.schemas import SubmissionCreate

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
MAX_FILE_NAME_LENGTH = 255


@dataclass
class Attachment:
    """An uploaded file, already read into memory."""

    filename: str | None
    content_type: str | None
    data: bytes


def attachment_violations(attachment: Attachment) -> list[dict[str, str]]:
    """Check the attachment is a non-empty PDF within the size and name limits."""
    violations = []

    is_pdf = attachment.content_type == PDF_CONTENT_TYPE or (
        attachment.filename or ""
    ).lower().endswith(".pdf")
    if not is_pdf:
        violations.append({"field": "file", "message": "Only PDF files are allowed"})

    if attachment.filename and len(attachment.filename) > MAX_FILE_NAME_LENGTH:
        violations.append({"field": "file", "message": "File name is too long"})

    if not attachment.data:
        violations.append({"field": "file", "message": "file must not be empty"})
    elif len(attachment.data) > settings.max_upload_bytes:
        violations.append({"field": "file", "message": "File size exceeds maximum limit"})

    return violations


async def _get_submission_or_404(db: AsyncSession, submission_id: str) -> Submission:
    submission = await repository.get_by_id(db, submission_id)
    if submission is None:
        raise NotFoundError("Submission not found")
    return submission


async def create_submission(
    db: AsyncSession,
    storage: ObjectStorage,
    dispatcher: NotificationDispatcher,
    fields: dict,
    attachment: Attachment | None = None,
) -> Submission:
    """
    Accept a public submission.

    Args:
        db: Database session
        storage: Attachment storage
        dispatcher: Background notification dispatcher
        fields: Raw form fields (unknown keys are ignored)
        attachment: Optional uploaded file

    Returns:
        The persisted submission

    Raises:
        InvalidInputError: Field or file violations, or unknown event
        StorageError: The attachment upload failed (nothing was saved)
        PersistenceError: The record could not be saved (upload compensated)
    """
    data: SubmissionCreate | None = None
    violations: list[dict[str, str]] = []

    try:
        data = validate_payload(SubmissionCreate, fields)
    except InvalidInputError as e:
        violations.extend(e.violations)

    if attachment is not None:
        violations.extend(attachment_violations(attachment))

    if violations:
        logger.warning(f"Rejected submission with {len(violations)} violations")
        raise InvalidInputError(violations)

    event = await events_repository.get_by_id(db, data.event_id)
    if event is None:
        logger.warning(f"Submission for unknown event {data.event_id}")
        raise InvalidInputError([{"field": "eventId", "message": "eventId must reference an existing event"}])

    stored: StoredObject | None = None
    if attachment is not None:
        stored = await storage.upload(attachment.data, attachment.filename, PDF_CONTENT_TYPE)

    try:
        submission = await repository.create(
            db,
            event_id=data.event_id,
            type=data.type,
            name=data.name,
            email=data.email,
            file_url=stored.url if stored else None,
            file_name=attachment.filename if stored else None,
            file_content_type=PDF_CONTENT_TYPE if stored else None,
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to save submission for event {data.event_id}: {e}")
        await db.rollback()
        if stored is not None and await storage.discard(stored.url):
            logger.info(f"Removed attachment {stored.key} after failed save")
        raise PersistenceError("Failed to create submission") from e

    logger.info(f"Created submission {submission.id} for event {event.id}")

    dispatcher.dispatch(
        send_submission_confirmation(
            to_email=submission.email,
            name=submission.name,
            submission_type=submission.type.value,
            course_name=event.course_name,
            event_text=event.email_text,
        ),
        description=f"confirmation for submission {submission.id}",
    )

    return submission


async def list_submissions(db: AsyncSession, event_id: str | None = None) -> list[Submission]:
    """All submissions, newest first."""
    return await repository.list_all(db, event_id=event_id)


async def update_payment_status(db: AsyncSession, submission_id: str, paid: bool) -> Submission:
    """
    Set a submission's paid flag.

    Raises:
        NotFoundError: If the submission does not exist
    """
    submission = await _get_submission_or_404(db, submission_id)
    submission = await repository.set_paid(db, submission, paid)

    logger.info(f"Submission {submission_id} marked paid={paid}")
    return submission


async def download_attachment(
    db: AsyncSession,
    storage: ObjectStorage,
    submission_id: str,
) -> tuple[Submission, DownloadedObject]:
    """
    Fetch a submission's attachment.

    Raises:
        NotFoundError: Submission missing, no attachment, or storage could
            not produce it
    """
    submission = await _get_submission_or_404(db, submission_id)

    key = storage.key_from_url(submission.file_url)
    if key is None:
        raise NotFoundError("File not found")

    try:
        downloaded = await storage.download(key)
    except StorageError as e:
        raise NotFoundError("File not found") from e

    if submission.file_content_type:
        downloaded = DownloadedObject(data=downloaded.data, content_type=submission.file_content_type)

    return submission, downloaded


async def delete_submission(db: AsyncSession, storage: ObjectStorage, submission_id: str) -> None:
    """
    Delete a submission and its attachment.

    The attachment goes first. If storage fails the record is kept.

    Raises:
        NotFoundError: If the submission does not exist
        StorageError: If the attachment could not be deleted
    """
    submission = await _get_submission_or_404(db, submission_id)

    key = storage.key_from_url(submission.file_url)
    if key is not None:
        await storage.delete(key)

    await repository.delete(db, submission)
    logger.info(f"Deleted submission {submission_id}")

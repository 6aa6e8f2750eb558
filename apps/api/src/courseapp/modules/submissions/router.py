"""
Submissions Router

Endpoints:
- POST /submissions - Submit an application, multipart with optional PDF (public)
- GET /submissions - List submissions, optionally by event (admin)
- PATCH /submissions/{id} - Update payment status (admin)
- GET /submissions/{id}/file - Download the attachment (admin)
- DELETE /submissions/{id} - Delete a submission and its attachment (admin)

Service errors propagate to the application's exception handlers.
"""

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from courseapp.core.auth import AdminPrincipal, get_current_admin
from courseapp.core.config import settings
from courseapp.core.database import get_db
from courseapp.core.notifications import NotificationDispatcher, get_dispatcher
from courseapp.core.rate_limit import rate_limit
from courseapp.core.storage import ObjectStorage, get_storage
from courseapp.modules.submissions import service
from courseapp.modules.submissions.schemas import (
    SubmissionListItem,
    SubmissionPaymentUpdate,
    SubmissionResponse,
)
from courseapp.modules.submissions.service import Attachment

logger = logging.getLogger(__name__)

router = APIRouter()

ADMIN_RESPONSES = {
    401: {"description": "Unauthorized - invalid or missing token"},
    403: {"description": "Forbidden - not an admin"},
}


async def _read_attachment(file: UploadFile | None) -> Attachment | None:
    # Browsers send an empty, unnamed part when no file was chosen
    if file is None or not file.filename:
        return None

    # Reads stop one byte past the limit. The request body itself is capped
    # by the ASGI server or proxy in front of it.
    data = await file.read(settings.max_upload_bytes + 1)
    await file.close()
    return Attachment(filename=file.filename, content_type=file.content_type, data=data)


@router.post(
    "",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("submission"))],
    summary="Submit Application",
    description="""
Submit an application for a course event.

Multipart form fields: `eventId`, `type` (`person` or `company`), `name`,
`email`, and an optional `file` (PDF, at most 5 MB).

A confirmation email is sent in the background. Its delivery does not
affect the response.
""",
    responses={
        400: {"description": "Validation failed, every violation listed"},
        429: {"description": "Too many submissions from this client"},
        500: {"description": "Attachment upload or save failed"},
    },
)
async def create_submission(
    event_id: str | None = Form(None, alias="eventId"),
    submission_type: str | None = Form(None, alias="type"),
    name: str | None = Form(None),
    email: str | None = Form(None),
    file: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> SubmissionResponse:
    fields = {
        "eventId": event_id,
        "type": submission_type,
        "name": name,
        "email": email,
    }
    fields = {key: value for key, value in fields.items() if value is not None}

    submission = await service.create_submission(
        db,
        storage,
        dispatcher,
        fields,
        attachment=await _read_attachment(file),
    )
    return SubmissionResponse.model_validate(submission)


@router.get(
    "",
    response_model=list[SubmissionListItem],
    summary="List Submissions",
    description="All submissions, newest first. **Access:** Admin only",
    responses=ADMIN_RESPONSES,
)
async def list_submissions(
    event_id: str | None = Query(None, alias="eventId"),
    db: AsyncSession = Depends(get_db),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> list[SubmissionListItem]:
    submissions = await service.list_submissions(db, event_id=event_id)
    return [SubmissionListItem.model_validate(submission) for submission in submissions]


@router.patch(
    "/{submission_id}",
    response_model=SubmissionListItem,
    dependencies=[Depends(rate_limit("admin"))],
    summary="Update Payment Status",
    description="Set the `paid` flag. Repeating the same update is harmless. **Access:** Admin only",
    responses={404: {"description": "Submission not found"}, **ADMIN_RESPONSES},
)
async def update_submission(
    submission_id: str,
    data: SubmissionPaymentUpdate,
    db: AsyncSession = Depends(get_db),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> SubmissionListItem:
    submission = await service.update_payment_status(db, submission_id, data.paid)
    logger.info(f"Admin {admin.uid} set paid={data.paid} on submission {submission_id}")
    return SubmissionListItem.model_validate(submission)


@router.get(
    "/{submission_id}/file",
    summary="Download Attachment",
    response_class=Response,
    responses={
        200: {"content": {"application/pdf": {}}, "description": "The attachment"},
        404: {"description": "Submission or attachment not found"},
        **ADMIN_RESPONSES,
    },
)
async def download_file(
    submission_id: str,
    response: Response,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> Response:
    submission, downloaded = await service.download_attachment(db, storage, submission_id)

    filename = submission.file_name or "attachment.pdf"
    ascii_name = filename.encode("ascii", "ignore").decode().replace('"', "") or "attachment.pdf"
    disposition = f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"

    return Response(
        content=downloaded.data,
        media_type=downloaded.content_type,
        headers={**response.headers, "Content-Disposition": disposition},
    )


@router.delete(
    "/{submission_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(rate_limit("admin"))],
    summary="Delete Submission",
    description="Delete the attachment, then the submission. **Access:** Admin only",
    responses={404: {"description": "Submission not found"}, **ADMIN_RESPONSES},
)
async def delete_submission(
    submission_id: str,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    admin: AdminPrincipal = Depends(get_current_admin),
) -> None:
    await service.delete_submission(db, storage, submission_id)
    logger.info(f"Admin {admin.uid} deleted submission {submission_id}")

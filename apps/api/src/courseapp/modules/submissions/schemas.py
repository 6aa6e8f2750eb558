"""
Submissions Schemas

Pydantic schemas for submission validation and response serialization.
"""

from datetime import datetime
from typing import Annotated

from pydantic import BeforeValidator, Field

from courseapp.core.validation import InputSchema, OutputSchema, normalize_email
from courseapp.modules.submissions.models import SubmissionType

Email = Annotated[str, BeforeValidator(normalize_email), Field(max_length=254)]


class SubmissionCreate(InputSchema):
    """Public submission form fields. The attachment is checked separately."""

    event_id: str = Field(..., min_length=1, max_length=64)
    type: SubmissionType
    name: str = Field(..., min_length=2, max_length=100)
    email: Email


class SubmissionPaymentUpdate(InputSchema):
    paid: bool


class SubmissionResponse(OutputSchema):
    """Public projection of a submission."""

    id: str
    event_id: str
    type: SubmissionType
    name: str
    email: str
    file_name: str | None = None
    file_url: str | None = None
    paid: bool


class SubmissionListItem(SubmissionResponse):
    """Admin listing row."""

    created_at: datetime | None = None
    updated_at: datetime | None = None

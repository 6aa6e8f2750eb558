"""
Events Schemas

Pydantic schemas for event validation and response serialization.
"""

from datetime import datetime
from typing import Annotated

from pydantic import BeforeValidator, Field

from courseapp.core.validation import InputSchema, OutputSchema, parse_iso_datetime

IsoDateTime = Annotated[datetime, BeforeValidator(parse_iso_datetime)]


class EventCreate(InputSchema):
    """Event fields, used for both create and full-replace update."""

    course_name: str = Field(..., min_length=3, max_length=200)
    date: IsoDateTime
    venue: str = Field(..., min_length=3, max_length=200)
    price: float = Field(..., ge=0, le=99_999_999.99, allow_inf_nan=False)
    email_text: str = Field(..., min_length=1, max_length=5000)


class EventResponse(OutputSchema):
    id: str
    course_name: str
    date: datetime
    venue: str
    price: float
    email_text: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

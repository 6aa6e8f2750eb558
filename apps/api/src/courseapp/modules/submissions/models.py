"""
Submissions Models

An applicant's submission against a course event, optionally carrying a PDF
attachment held in object storage.

``event_id`` is a plain reference without a database foreign key. The
service checks the event exists before accepting a submission, event
deletion cascades to submissions explicitly, and the orphan sweeper removes
anything that slips past both.
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from courseapp.core.database import Base
from courseapp.modules.events.models import generate_id


class SubmissionType(str, enum.Enum):
    """Who is applying."""

    PERSON = "person"
    COMPANY = "company"


class Submission(Base):
    """Applicant submission for an event."""

    __tablename__ = "submissions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)
    event_id: Mapped[str] = mapped_column(String(32), nullable=False)

    type: Mapped[SubmissionType] = mapped_column(
        Enum(SubmissionType, name="submission_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False)

    # Attachment: url, name and content type are set and cleared together
    file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_content_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_submissions_event_id", "event_id"),
        Index("ix_submissions_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Submission {self.id} event={self.event_id} type={self.type.value}>"

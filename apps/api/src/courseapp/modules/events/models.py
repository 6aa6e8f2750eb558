"""
Events Models

A course event that applicants submit against.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from courseapp.core.database import Base


def generate_id() -> str:
    """Opaque store-assigned identifier."""
    return uuid.uuid4().hex


class Event(Base):
    """A paid course event."""

    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)

    course_name: Mapped[str] = mapped_column(String(200), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    venue: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    # Appended to the confirmation email sent to applicants
    email_text: Mapped[str] = mapped_column(Text, nullable=False)

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

    __table_args__ = (Index("ix_events_date", "date"),)

    def __repr__(self) -> str:
        return f"<Event {self.id} {self.course_name!r}>"

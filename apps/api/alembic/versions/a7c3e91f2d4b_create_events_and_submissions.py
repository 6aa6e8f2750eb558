"""create events and submissions tables

Revision ID: a7c3e91f2d4b
Revises:
Create Date: 2026-10-19 12:00:00.000000

This migration:
1. Creates the events table
2. Creates the submission_type enum and the submissions table

submissions.event_id carries no foreign key; event deletion cascades in the
service layer and the orphan purge job removes stragglers.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a7c3e91f2d4b"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create events and submissions tables."""
    op.create_table(
        "events",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("course_name", sa.String(length=200), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("venue", sa.String(length=200), nullable=False),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("email_text", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_events_date", "events", ["date"], unique=False)

    submission_type_enum = postgresql.ENUM(
        "person",
        "company",
        name="submission_type",
        create_type=False,
    )
    submission_type_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "submissions",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("event_id", sa.String(length=32), nullable=False),
        sa.Column("type", submission_type_enum, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=254), nullable=False),
        # Attachment
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        sa.Column("file_content_type", sa.String(length=100), nullable=True),
        sa.Column("paid", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_submissions_event_id", "submissions", ["event_id"], unique=False)
    op.create_index("ix_submissions_created_at", "submissions", ["created_at"], unique=False)


def downgrade() -> None:
    """Drop submissions and events tables."""
    op.drop_index("ix_submissions_created_at", table_name="submissions")
    op.drop_index("ix_submissions_event_id", table_name="submissions")
    op.drop_table("submissions")
    postgresql.ENUM(name="submission_type").drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_events_date", table_name="events")
    op.drop_table("events")

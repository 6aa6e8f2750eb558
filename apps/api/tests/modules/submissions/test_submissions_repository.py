"""
Tests for the submissions repository, run against SQLite.
"""

from datetime import UTC, datetime

import pytest
import pytest_asyncio

from courseapp.modules.events.models import Event
from courseapp.modules.submissions import repository
from courseapp.modules.submissions.models import Submission, SubmissionType

LONG_AGO = datetime(2020, 1, 1)


@pytest_asyncio.fixture
async def stale_submission(session_factory):
    """A paid submission last touched long ago."""
    async with session_factory() as db:
        db.add(
            Event(
                id="evt-1",
                course_name="JS101",
                date=datetime(2026, 1, 10, tzinfo=UTC),
                venue="Dublin",
                price=100.0,
                email_text="hi",
            )
        )
        db.add(
            Submission(
                id="sub-1",
                event_id="evt-1",
                type=SubmissionType.PERSON,
                name="Ann Lee",
                email="ann@example.com",
                paid=True,
                updated_at=LONG_AGO,
            )
        )
        await db.commit()


class TestSetPaid:
    """Tests for set_paid."""

    @pytest.mark.asyncio
    async def test_repeated_flag_still_bumps_updated_at(self, session_factory, stale_submission):
        async with session_factory() as db:
            submission = await repository.get_by_id(db, "sub-1")

            updated = await repository.set_paid(db, submission, True)

        assert updated.paid is True
        assert updated.updated_at.replace(tzinfo=None) > LONG_AGO

    @pytest.mark.asyncio
    async def test_changes_only_the_flag(self, session_factory, stale_submission):
        async with session_factory() as db:
            submission = await repository.get_by_id(db, "sub-1")

            updated = await repository.set_paid(db, submission, False)

        assert updated.paid is False
        assert (updated.name, updated.email) == ("Ann Lee", "ann@example.com")

"""
Submissions Module

Public applicant submissions with optional PDF attachments, and their admin
management.

API Endpoints:
- POST /submissions - Submit an application (public, rate limited)
- GET /submissions - List submissions (admin)
- PATCH /submissions/{id} - Update payment status (admin)
- GET /submissions/{id}/file - Download attachment (admin)
- DELETE /submissions/{id} - Delete submission and attachment (admin)

Background Jobs (via APScheduler):
- purge_orphaned_submissions: Runs hourly, removes submissions of deleted events
- purge_orphaned_attachments: Runs hourly, removes unreferenced attachments
"""

from .jobs import register_submission_jobs
from .router import router

__all__ = ["router", "register_submission_jobs"]

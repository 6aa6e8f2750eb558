"""
Email Service using Resend

Sends the confirmation email for accepted submissions.
"""

import asyncio
import logging
from html import escape

import resend

from courseapp.core.config import settings
from courseapp.core.errors import NotificationError

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key


async def send_email(to_email: str, subject: str, html_content: str, text_content: str | None = None) -> None:
    """
    Send an email using Resend.

    Without an API key the email is logged instead of sent.

    Raises:
        NotificationError: If Resend rejects the email or is unreachable
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return

    params: resend.Emails.SendParams = {
        "from": settings.email_from,
        "to": [to_email],
        "subject": subject,
        "html": html_content,
    }
    if text_content:
        params["text"] = text_content

    try:
        # Sync Resend call runs in the thread pool
        email = await asyncio.to_thread(resend.Emails.send, params)
    except Exception as e:
        raise NotificationError(f"Failed to send email to {to_email}: {e}") from e

    logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")


def _confirmation_text(name: str, submission_type: str, event_text: str | None) -> str:
    lines = [
        f"Dear {name},",
        "",
        f"Thank you for your submission. We have received your {submission_type} submission successfully.",
    ]
    if event_text:
        lines += ["", event_text]
    lines += ["", "Best regards,", "The Course Team"]
    return "\n".join(lines)


async def send_submission_confirmation(
    to_email: str,
    name: str,
    submission_type: str,
    course_name: str | None = None,
    event_text: str | None = None,
) -> None:
    """
    Confirm receipt of a submission to the applicant.

    Args:
        to_email: Applicant's email address
        name: Applicant's name
        submission_type: "person" or "company"
        course_name: Course the submission is for, when known
        event_text: The event's confirmation text, appended when present
    """
    safe_name = escape(name)
    safe_type = escape(submission_type)
    course_line = f" for <strong>{escape(course_name)}</strong>" if course_name else ""
    event_block = ""
    if event_text:
        paragraphs = "".join(f"<p>{escape(part)}</p>" for part in event_text.split("\n\n") if part.strip())
        event_block = f'<div class="event-text">{paragraphs}</div>'

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 40px 20px; }}
            .header {{ color: #1a365d; margin-bottom: 24px; }}
            .event-text {{ background-color: #f3f4f6; padding: 16px; border-radius: 8px; margin: 24px 0; }}
            .footer {{ margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Submission Confirmation</h1>

            <p>Dear {safe_name},</p>

            <p>Thank you for your submission{course_line}. We have received your {safe_type} submission successfully.</p>

            {event_block}

            <div class="footer">
                <p>Best regards,<br>The Course Team</p>
            </div>
        </div>
    </body>
    </html>
    """

    await send_email(
        to_email=to_email,
        subject="Submission Confirmation",
        html_content=html_content,
        text_content=_confirmation_text(name, submission_type, event_text),
    )

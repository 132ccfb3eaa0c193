"""
Email Service using Resend

Sends notification emails for class announcements and published results.

Senders are plain objects built from settings and injected into the
notification dispatcher, so tests can substitute fakes.
"""

import asyncio
import logging
from html import escape

import resend

from portal.core.config import settings

logger = logging.getLogger(__name__)


class EmailSender:
    """
    Batch email sender backed by the Resend API.

    One `send` call is one provider request addressed to every recipient,
    so the result is all-or-nothing for the batch.
    """

    def __init__(self, api_key: str | None, sender: str):
        self.api_key = api_key
        self.sender = sender

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, to: list[str], subject: str, html: str) -> bool:
        """
        Send one email to a list of recipients.

        Args:
            to: Recipient email addresses
            subject: Email subject line
            html: HTML body

        Returns:
            True if the provider accepted the batch
        """
        if not to:
            return False

        if not self.is_configured:
            logger.warning("RESEND_API_KEY not set - email not sent")
            logger.info(f"EMAIL TO: {len(to)} recipients | SUBJECT: {subject}")
            return False

        params: resend.Emails.SendParams = {
            "from": self.sender,
            "to": to,
            "subject": subject,
            "html": html,
        }

        try:
            resend.api_key = self.api_key
            # Run sync Resend call in thread pool to avoid blocking event loop
            email = await asyncio.to_thread(resend.Emails.send, params)
            logger.info(f"Email sent to {len(to)} recipients, id: {email['id']}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email to {len(to)} recipients: {e}")
            return False


def get_email_sender() -> EmailSender:
    """Build an EmailSender from settings."""
    return EmailSender(api_key=settings.resend_api_key, sender=settings.email_from)


# ============================================
# Templates
# ============================================


def _layout(heading: str, body_html: str) -> str:
    safe_school_name = escape(settings.school_name)
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 40px 20px; }}
            .header {{ color: #1a365d; margin-bottom: 24px; }}
            .info-box {{ background-color: #f3f4f6; padding: 20px; border-radius: 8px; margin: 20px 0; border-left: 4px solid #16a34a; }}
            .footer {{ margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">{heading}</h1>
            {body_html}
            <div class="footer">
                <p>Best regards,<br><strong>{safe_school_name}</strong></p>
            </div>
        </div>
    </body>
    </html>
    """


def render_class_notification(notification_type: str, title: str, details: str) -> tuple[str, str]:
    """
    Render the email for a class announcement.

    Args:
        notification_type: "new_assignment" or "results_published"
        title: Assignment or exam title
        details: Free-text details

    Returns:
        (subject, html)
    """
    safe_title = escape(title)
    safe_details = escape(details)

    if notification_type == "new_assignment":
        subject = f"New Assignment: {title}"
        heading = "New Assignment Posted"
        call_to_action = (
            "Please log in to the school portal to view the assignment details "
            "and submit your work."
        )
    else:
        subject = f"Results Published: {title}"
        heading = "Exam Results Published"
        call_to_action = "Please log in to the school portal to view your results."

    html = _layout(
        heading,
        f"""
            <h2>{safe_title}</h2>
            <p>{safe_details}</p>
            <p>{call_to_action}</p>
        """,
    )
    return subject, html


def render_results_published(exam_name: str, subject_name: str) -> tuple[str, str]:
    """Render the email announcing published exam results. Returns (subject, html)."""
    safe_exam_name = escape(exam_name)
    safe_subject_name = escape(subject_name)

    html = _layout(
        "Exam Results Published",
        f"""
            <h2>{safe_exam_name}</h2>
            <p><strong>Subject:</strong> {safe_subject_name}</p>
            <p>The exam results have been published and are now available for viewing.</p>
            <div class="info-box">
                <p>Log in to the school portal to view detailed results, grades, and teacher remarks.</p>
            </div>
        """,
    )
    return f"Exam Results Published: {exam_name} - {subject_name}", html

"""
Email Service using Resend

Handles sending emails for the admission application flow.
"""

import asyncio
import logging
import os
from html import escape

import resend

logger = logging.getLogger(__name__)

# Initialize Resend with API key
resend.api_key = os.getenv("RESEND_API_KEY")

# Configurations
EMAIL_FROM = os.getenv("EMAIL_FROM", "Ajmal Super 40 <admissions@ajmalsuper40.in>")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
EMAIL_TIMEOUT_SECONDS = float(os.getenv("EMAIL_TIMEOUT_SECONDS", "15"))

_STYLES = """
            body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
            .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
            .header { color: #14532d; margin-bottom: 24px; }
            .summary-box { background-color: #f9fafb; border: 1px solid #e5e7eb; padding: 16px; border-radius: 8px; margin: 16px 0; }
            .summary-box ul { margin: 8px 0 0 0; padding-left: 20px; }
            .success { background-color: #d1fae5; border: 1px solid #22c55e; padding: 16px; border-radius: 8px; margin: 16px 0; }
            .button { display: inline-block; background-color: #14532d; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
            .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


class NotificationError(Exception):
    """Raised when the email provider refuses or fails a send."""


def _render(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_STYLES}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">{title}</h1>
            {body}
            <div class="footer">
                <p>Ajmal Super 40 - Admissions Office</p>
            </div>
        </div>
    </body>
    </html>
    """


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> None:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Raises:
        NotificationError: If the provider call fails
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return

    try:
        params: resend.Emails.SendParams = {
            "from": EMAIL_FROM,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Run sync Resend call in thread pool to avoid blocking event loop
        email = await asyncio.wait_for(
            asyncio.to_thread(resend.Emails.send, params), timeout=EMAIL_TIMEOUT_SECONDS
        )
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
    except Exception as e:
        raise NotificationError(f"Failed to send email to {to_email}: {e}") from e


async def send_application_received(
    to_email: str,
    student_name: str,
    application_number: str,
) -> None:
    """Send the submission confirmation to the applicant."""
    # Escape user inputs to prevent XSS
    safe_student_name = escape(student_name)
    safe_number = escape(application_number)

    status_url = f"{FRONTEND_URL}/status"
    body = f"""
            <p>Dear {safe_student_name},</p>

            <p>Thank you for applying to the Ajmal Super 40 admission test. Your application has been received.</p>

            <div class="summary-box">
                <p><strong>Application Number:</strong> {safe_number}</p>
            </div>

            <p>Keep this number safe. You will need it together with your date of birth to check your status and download your admit card.</p>

            <a href="{status_url}" class="button">Check Status</a>
    """

    await send_email(
        to_email=to_email,
        subject=f"Ajmal Super 40 - Application Received ({safe_number})",
        html_content=_render("Application Received", body),
    )


async def send_application_approved(
    to_email: str,
    student_name: str,
    application_number: str,
    roll_number: str,
    exam_date: str,
    exam_time: str,
    exam_centre: str,
) -> None:
    """Send notification that the application was approved, with exam details."""
    # Escape user inputs to prevent XSS
    safe_student_name = escape(student_name)
    safe_number = escape(application_number)
    safe_centre = escape(exam_centre)

    status_url = f"{FRONTEND_URL}/status"
    body = f"""
            <p>Dear {safe_student_name},</p>

            <div class="success">
                <strong>Congratulations!</strong> Your application <strong>{safe_number}</strong> has been approved.
            </div>

            <div class="summary-box">
                <p><strong>Exam Details:</strong></p>
                <ul>
                    <li><strong>Roll Number:</strong> {escape(roll_number)}</li>
                    <li><strong>Date:</strong> {escape(exam_date)}</li>
                    <li><strong>Time:</strong> {escape(exam_time)}</li>
                    <li><strong>Centre:</strong> {safe_centre}</li>
                </ul>
            </div>

            <p>Download your admit card using your application number and date of birth:</p>

            <a href="{status_url}" class="button">Download Admit Card</a>
    """

    await send_email(
        to_email=to_email,
        subject=f"Ajmal Super 40 - Application Approved ({safe_number})",
        html_content=_render("Application Approved", body),
    )


async def send_application_rejected(
    to_email: str,
    student_name: str,
    application_number: str,
) -> None:
    """Send notification that the application was rejected."""
    # Escape user inputs to prevent XSS
    safe_student_name = escape(student_name)
    safe_number = escape(application_number)

    body = f"""
            <p>Dear {safe_student_name},</p>

            <p>Thank you for your interest in Ajmal Super 40. After reviewing application <strong>{safe_number}</strong>, we are unable to approve it at this time.</p>

            <p>If you have questions, please contact the admissions office.</p>
    """

    await send_email(
        to_email=to_email,
        subject=f"Ajmal Super 40 - Application Update ({safe_number})",
        html_content=_render("Update on Your Application", body),
    )

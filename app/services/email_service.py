# app/services/email_service.py
# Outbound email via SendGrid
#
# Usage:
#   from app.services import email_service
#   email_service.send_email(user.email, user.name, "Subject", "Body")
#   batch_id = email_service.schedule_session_reminder(email, name, code, title, starts_at)
#   email_service.cancel_scheduled_email(batch_id)
#
# No-op in dev mode if SENDGRID_API_KEY is not configured.
# Scheduled reminders use a SendGrid batch id as the cancellable handle
# (stored on TutoringSession.student_reminder_email_id).

import json
import logging
from datetime import datetime, timedelta
from typing import Optional

from app.core.config import settings
from app.db.types import utcnow

logger = logging.getLogger("tutorlink.email")

# SendGrid accepts send_at at most 72 hours ahead
MAX_SCHEDULE_AHEAD = timedelta(hours=72)


def _client():
    import sendgrid

    return sendgrid.SendGridAPIClient(api_key=settings.sendgrid_api_key)


def _build_mail(to_email: str, to_name: Optional[str], subject: str, body: str):
    from sendgrid.helpers.mail import From, Mail

    return Mail(
        from_email=From(settings.email_from, settings.email_from_name),
        to_emails=to_email,
        subject=f"{settings.app_name}: {subject}",
        plain_text_content=body,
        html_content=_build_email_html(to_name or "there", subject, body),
    )


def send_email(to_email: str, to_name: Optional[str], subject: str, body: str) -> None:
    """
    Send one email immediately.
    Raises RuntimeError on provider failure; callers decide whether to swallow.
    """
    if not settings.sendgrid_api_key:
        logger.info("[DEV] Email skipped (no SendGrid key): %s", subject)
        return

    try:
        _client().send(_build_mail(to_email, to_name, subject, body))
        logger.info("Email sent to %s: %s", to_email, subject)
    except Exception as e:
        raise RuntimeError(f"SendGrid error: {e}")


def reminder_send_at(scheduled_at: datetime) -> datetime:
    return scheduled_at - timedelta(minutes=settings.reminder_email_lead_minutes)


def schedule_session_reminder(
    to_email: str,
    to_name: Optional[str],
    subject_code: str,
    subject_title: str,
    scheduled_at: datetime,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """
    Schedule the "session starts soon" email one hour before start.
    Returns the batch id (cancel handle), or None when nothing was scheduled.
    """
    if not settings.sendgrid_api_key:
        logger.info("[DEV] Reminder email skipped (no SendGrid key)")
        return None

    now = now or utcnow()
    send_at = reminder_send_at(scheduled_at)
    if send_at <= now or send_at - now > MAX_SCHEDULE_AHEAD:
        # Already due, or beyond the provider scheduling horizon
        return None

    from sendgrid.helpers.mail import BatchId, SendAt

    try:
        client = _client()
        batch = client.client.mail.batch.post()
        batch_id = _json(batch).get("batch_id")

        mail = _build_mail(
            to_email,
            to_name,
            f"Reminder: {subject_code} session in 1 hour",
            (
                f"Your {subject_code} {subject_title} session starts at "
                f"{scheduled_at.strftime('%Y-%m-%d %H:%M UTC')}."
            ),
        )
        mail.send_at = SendAt(int(send_at.timestamp()))
        if batch_id:
            mail.batch_id = BatchId(batch_id)
        client.send(mail)
        return batch_id
    except Exception as e:
        raise RuntimeError(f"SendGrid error: {e}")


def cancel_scheduled_email(batch_id: str) -> None:
    """Cancel a scheduled send by batch id."""
    if not settings.sendgrid_api_key or not batch_id:
        return
    try:
        _client().client.user.scheduled_sends.post(
            request_body={"batch_id": batch_id, "status": "cancel"}
        )
    except Exception as e:
        raise RuntimeError(f"SendGrid error: {e}")


def _json(response) -> dict:
    try:
        return json.loads(response.body or b"{}")
    except (TypeError, ValueError):
        return {}


def _build_email_html(name: str, subject: str, body: str) -> str:
    """Simple HTML email template."""
    return f"""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; max-width: 600px; margin: auto; padding: 20px;">
    <div style="background: #2563eb; padding: 20px; border-radius: 8px 8px 0 0;">
        <h1 style="color: white; margin: 0;">{settings.app_name}</h1>
        <p style="color: #bfdbfe; margin: 4px 0 0 0;">Peer tutoring on campus</p>
    </div>
    <div style="background: #fff; padding: 24px; border: 1px solid #e5e7eb; border-radius: 0 0 8px 8px;">
        <p>Hi {name},</p>
        <h2 style="color: #1f2937;">{subject}</h2>
        <p style="color: #4b5563; line-height: 1.6;">{body}</p>
        <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 24px 0;">
        <p style="color: #9ca3af; font-size: 12px;">
            You received this email from {settings.app_name}. Manage your sessions at {settings.app_url}.
        </p>
    </div>
</body>
</html>
"""

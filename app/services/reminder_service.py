# app/services/reminder_service.py
# In-app session reminders (24h / 1h / 5m before start)
#
# Meant to be hit every minute by a cron. A reminder is due when
# start - offset falls in [now, now + window). The SessionReminder row is the
# ledger: its (session_id, kind) unique constraint makes overlapping cron
# runs harmless, and only the run that inserted the row sends notifications.

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.types import utcnow
from app.models.session import SessionReminder, TutoringSession
from app.services import notification_service

logger = logging.getLogger("tutorlink.reminders")

REMINDER_OFFSETS = (
    ("H24", timedelta(hours=24)),
    ("H1", timedelta(hours=1)),
    ("M5", timedelta(minutes=5)),
)


def send_due_reminders(db: Session, now: Optional[datetime] = None) -> dict:
    """Returns {"checked": <due session/kind pairs>, "sent": <newly recorded>}."""
    now = now or utcnow()
    window = timedelta(seconds=settings.reminder_window_seconds)

    checked = 0
    sent = 0
    for kind, offset in REMINDER_OFFSETS:
        due = (
            db.query(TutoringSession)
            .filter(
                TutoringSession.status == "ACCEPTED",
                TutoringSession.scheduled_at >= now + offset,
                TutoringSession.scheduled_at < now + offset + window,
            )
            .all()
        )
        for session in due:
            checked += 1
            if _record(db, session, kind, session.scheduled_at - offset):
                sent += 1
                notification_service.session_reminder(
                    db, session.student_id, "STUDENT", session.id, kind, session.scheduled_at
                )
                notification_service.session_reminder(
                    db, session.tutor_id, "TUTOR", session.id, kind, session.scheduled_at
                )

    if sent:
        logger.info("Session reminders: checked=%d sent=%d", checked, sent)
    return {"checked": checked, "sent": sent}


def _record(db: Session, session: TutoringSession, kind: str, send_at: datetime) -> bool:
    exists = (
        db.query(SessionReminder.id)
        .filter(SessionReminder.session_id == session.id, SessionReminder.kind == kind)
        .first()
    )
    if exists:
        return False
    try:
        db.add(SessionReminder(session_id=session.id, kind=kind, send_at=send_at))
        db.commit()
        return True
    except IntegrityError:
        # Another cron run recorded it first
        db.rollback()
        return False

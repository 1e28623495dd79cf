# app/services/notification_service.py
# Creates in-app notifications (and selected emails) for session events
#
# Usage (from any service, after the primary change is committed):
#   from app.services import notification_service
#   notification_service.notify_user(db, user_id=student_id,
#       notification_type="SESSION_CANCELLED", title="Session Cancelled",
#       body="Reason: ...", viewer="STUDENT", data={"session_id": str(session.id)})
#
# Delivery is best-effort: a failure is logged and rolled back on its own,
# it never undoes the state change that triggered it.

import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.types import utcnow
from app.models.notification import Notification
from app.models.user import User
from app.services import email_service
from app.services.availability import campus_zone

logger = logging.getLogger("tutorlink.notifications")


# ── Notification Types ────────────────────────────────────────────────────────
# Used to filter notifications on frontend and trigger emails selectively

NOTIFICATION_TYPES = {
    "BOOKING_CONFIRMED",              # Tutor accepted a session
    "SESSION_REQUESTED",              # Student booked a tutor directly
    "SESSION_ASSIGNED",               # Allocator assigned a queued session
    "SESSION_REJECTED",               # Tutor rejected a session
    "TIME_PROPOSAL",                  # Tutor proposed a new time
    "TIME_PROPOSAL_ACCEPTED",         # Student accepted the proposal
    "TIME_PROPOSAL_REJECTED",         # Student rejected the proposal
    "SESSION_CANCELLED",              # Either party cancelled
    "SESSION_RESCHEDULED",            # Student moved the session
    "SESSION_RESCHEDULED_UNASSIGNED", # Moved, and the tutor was released
    "SESSION_COMPLETED",              # Tutor or sweep completed the session
    "SESSION_RATED",                  # Student rated the tutor
    "SESSION_REVIEWED",               # Student left a review
    "SESSION_REMINDER",               # 24h / 1h / 5m before start
    "TUTOR_APPLICATION_APPROVED",
    "TUTOR_APPLICATION_REJECTED",
}

# Which types also send an email
EMAIL_TYPES = {
    "SESSION_CANCELLED",
    "TUTOR_APPLICATION_APPROVED",
    "TUTOR_APPLICATION_REJECTED",
}

VIEWERS = ("STUDENT", "TUTOR")


def sessions_href(viewer: str, session_id: Optional[str] = None) -> str:
    base = "/dashboard/tutor/sessions" if viewer == "TUTOR" else "/dashboard/student/sessions"
    if session_id:
        return f"{base}?focus={session_id}"
    return base


def format_when(dt: datetime) -> str:
    local = dt.astimezone(campus_zone())
    return local.strftime("%a %d %b %Y, %H:%M %Z")


def notify_user(
    db: Session,
    user_id: Optional[UUID],
    notification_type: str,
    title: str,
    body: str,
    viewer: str,
    data: Optional[Dict[str, Any]] = None,
    send_email: bool = True,
) -> Optional[Notification]:
    """
    Create an in-app notification and optionally send an email.

    Args:
        db: Database session (the caller's primary change must already be committed)
        user_id: Recipient; None skips silently (e.g. tutor not assigned yet)
        notification_type: One of NOTIFICATION_TYPES
        title: Short notification title
        body: Full notification body
        viewer: STUDENT | TUTOR, decides which dashboard the bell links to
        data: Extra context stored as JSON (session_id, new_time, ...)
        send_email: Override email sending (default: based on type)

    Returns:
        Created Notification instance, or None when skipped or failed
    """
    if not user_id:
        return None

    payload: Dict[str, Any] = dict(data or {})
    payload["viewer"] = viewer
    session_id = str(payload.get("session_id") or "").strip()
    if session_id:
        payload["href"] = sessions_href(viewer, session_id)
        payload["focus_session_id"] = session_id
    else:
        payload["href"] = sessions_href(viewer)

    try:
        notification = Notification(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            body=body,
            extra_data=payload,
            is_read=False,
        )
        db.add(notification)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Notification %s for user %s failed", notification_type, user_id)
        return None

    # Send email for important notification types
    if send_email and notification_type in EMAIL_TYPES:
        try:
            user = db.query(User).filter(User.id == user_id).first()
            if user and user.email:
                email_service.send_email(user.email, user.name, title, body)
        except Exception as e:
            # Email failure should never block the main flow
            logger.warning("Email notification failed for user %s: %s", user_id, e)

    return notification


# ── Session Event Helpers ─────────────────────────────────────────────────────

def _sid(session_id) -> str:
    return str(session_id)


def session_requested(db: Session, tutor_id, session_id, when: datetime) -> None:
    notify_user(
        db, tutor_id, "SESSION_REQUESTED", "New Session Request",
        f"A student requested a session on {format_when(when)}. Please accept or reject it.",
        viewer="TUTOR", data={"session_id": _sid(session_id)},
    )


def session_assigned(db: Session, tutor_id, session_id) -> None:
    notify_user(
        db, tutor_id, "SESSION_ASSIGNED", "New Session Assigned",
        "You have been matched with a student. Please accept or reject the session.",
        viewer="TUTOR", data={"session_id": _sid(session_id)},
    )


def booking_confirmed(db: Session, student_id, tutor_id, session_id, when: datetime) -> None:
    """Student sees STUDENT, tutor sees TUTOR."""
    notify_user(
        db, student_id, "BOOKING_CONFIRMED", "Booking Confirmed",
        f"Your session is confirmed for {format_when(when)}.",
        viewer="STUDENT", data={"session_id": _sid(session_id)},
    )
    notify_user(
        db, tutor_id, "BOOKING_CONFIRMED", "Session Confirmed",
        f"You confirmed a session for {format_when(when)}.",
        viewer="TUTOR", data={"session_id": _sid(session_id)},
    )


def session_rejected(db: Session, student_id, session_id, reason: Optional[str]) -> None:
    body = "Your session request was declined."
    if reason and reason.strip():
        body = f"{body} Reason: {reason.strip()}"
    notify_user(
        db, student_id, "SESSION_REJECTED", "Session Declined", body,
        viewer="STUDENT", data={"session_id": _sid(session_id)},
    )


def proposal_sent(db: Session, student_id, tutor_id, session_id, proposed_at: datetime) -> None:
    notify_user(
        db, student_id, "TIME_PROPOSAL", "New Time Proposed",
        f"A new time has been proposed: {format_when(proposed_at)}. Please review and respond.",
        viewer="STUDENT",
        data={
            "session_id": _sid(session_id),
            "tutor_id": str(tutor_id) if tutor_id else None,
            "proposed_at": proposed_at.isoformat(),
        },
    )


def proposal_accepted(db: Session, tutor_id, student_id, session_id, new_time: datetime) -> None:
    notify_user(
        db, tutor_id, "TIME_PROPOSAL_ACCEPTED", "Proposal Accepted",
        f"The student accepted the new time: {format_when(new_time)}.",
        viewer="TUTOR",
        data={
            "session_id": _sid(session_id),
            "student_id": str(student_id),
            "new_time": new_time.isoformat(),
        },
    )


def proposal_rejected(db: Session, tutor_id, student_id, session_id) -> None:
    notify_user(
        db, tutor_id, "TIME_PROPOSAL_REJECTED", "Proposal Rejected",
        "The student rejected your proposed time. You may propose another time.",
        viewer="TUTOR",
        data={"session_id": _sid(session_id), "student_id": str(student_id)},
    )


def session_cancelled(db: Session, other_party_id, session_id, viewer: str, reason: Optional[str]) -> None:
    body = f"Reason: {reason.strip()}" if reason and reason.strip() else "A session has been cancelled."
    notify_user(
        db, other_party_id, "SESSION_CANCELLED", "Session Cancelled", body,
        viewer=viewer, data={"session_id": _sid(session_id)},
    )


def session_rescheduled(db: Session, other_party_id, session_id, viewer: str, new_time: datetime) -> None:
    notify_user(
        db, other_party_id, "SESSION_RESCHEDULED", "Session Rescheduled",
        f"The session has been rescheduled to {format_when(new_time)}.",
        viewer=viewer,
        data={"session_id": _sid(session_id), "new_time": new_time.isoformat()},
    )


def session_rescheduled_unassigned(db: Session, tutor_id, session_id, new_time: datetime) -> None:
    """Always for the released tutor."""
    notify_user(
        db, tutor_id, "SESSION_RESCHEDULED_UNASSIGNED", "Session Rescheduled",
        (
            f"The student rescheduled the session to {format_when(new_time)}. "
            "You are no longer assigned because you are unavailable at that time."
        ),
        viewer="TUTOR",
        data={"session_id": _sid(session_id), "new_time": new_time.isoformat()},
    )


def session_completed(db: Session, student_id, tutor_id, session_id) -> None:
    notify_user(
        db, student_id, "SESSION_COMPLETED", "Session Completed",
        "Your tutoring session has been marked as completed. Please rate your tutor.",
        viewer="STUDENT", data={"session_id": _sid(session_id)},
    )
    notify_user(
        db, tutor_id, "SESSION_COMPLETED", "Session Completed",
        "The tutoring session has been successfully completed.",
        viewer="TUTOR", data={"session_id": _sid(session_id)},
    )


def session_rated(db: Session, tutor_id, session_id, rating: int) -> None:
    notify_user(
        db, tutor_id, "SESSION_RATED", "New Rating",
        f"A student rated your session {rating}/5.",
        viewer="TUTOR", data={"session_id": _sid(session_id), "rating": rating},
    )


def session_reviewed(db: Session, tutor_id, session_id, rating: int) -> None:
    notify_user(
        db, tutor_id, "SESSION_REVIEWED", "New Review",
        f"A student left a {rating}/5 review for your session.",
        viewer="TUTOR", data={"session_id": _sid(session_id), "rating": rating},
    )


REMINDER_LABELS = {"H24": "in 24 hours", "H1": "in 1 hour", "M5": "in 5 minutes"}


def session_reminder(db: Session, user_id, viewer: str, session_id, kind: str, when: datetime) -> None:
    notify_user(
        db, user_id, "SESSION_REMINDER", "Upcoming Session",
        f"Your session starts {REMINDER_LABELS.get(kind, 'soon')} ({format_when(when)}).",
        viewer=viewer,
        data={"session_id": _sid(session_id), "kind": kind},
        send_email=False,
    )


def application_reviewed(db: Session, user_id, approved: bool, reason: Optional[str] = None) -> None:
    if approved:
        notify_user(
            db, user_id, "TUTOR_APPLICATION_APPROVED", "Tutor Application Approved",
            "You are now a tutor. Set your availability to start receiving sessions.",
            viewer="TUTOR",
        )
        return
    body = "Your tutor application was not approved."
    if reason and reason.strip():
        body = f"{body} Reason: {reason.strip()}"
    notify_user(
        db, user_id, "TUTOR_APPLICATION_REJECTED", "Tutor Application Update", body,
        viewer="STUDENT",
    )


# ── Read Helpers ──────────────────────────────────────────────────────────────

def mark_read(notification: Notification) -> None:
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()

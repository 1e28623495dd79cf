# app/services/session_service.py
# Tutoring session lifecycle
#
# Status:   PENDING → ACCEPTED | REJECTED | CANCELLED
#           ACCEPTED → COMPLETED | CANCELLED
#           reschedule / accepted proposal: non-terminal → PENDING
# Proposal: None → PENDING → ACCEPTED | REJECTED
#
# Every transition:
#   1. loads the row and checks the caller owns it (404 otherwise)
#   2. checks the current status (409 otherwise)
#   3. writes with compare_and_swap() on the status it just checked;
#      a lost race is reported as 409, never applied twice
#   4. commits, then fires best-effort side effects (notifications,
#      reminder email, chat window) which log and swallow their errors

import logging
import math
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationFailedError
from app.db.session import compare_and_swap
from app.db.types import utcnow
from app.models.session import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    SessionRating,
    SessionReview,
    TutoringSession,
)
from app.models.subject import Subject, TutorSubject
from app.models.user import User
from app.services import chat_service, email_service, notification_service
from app.services.allocator import latest_availability, pick_least_loaded_tutor
from app.services.availability import is_within_availability, parse_availability
from app.services.conflicts import (
    check_conflicts,
    find_student_conflict,
    find_tutor_conflict,
    overlap_clause,
)

logger = logging.getLogger("tutorlink.sessions")

LIST_LIMIT = 50
NEEDS_RATING_LIMIT = 25


# ── Helpers ───────────────────────────────────────────────────────────────────

def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _require_lead_time(start: datetime, now: datetime) -> None:
    if start < now + timedelta(minutes=settings.min_lead_minutes):
        raise ValidationFailedError(
            f"Choose a time at least {settings.min_lead_minutes} minutes from now."
        )


def _resolve_duration(duration_min: Optional[int]) -> int:
    if duration_min is None:
        return settings.default_duration_min
    if not settings.min_duration_min <= duration_min <= settings.max_duration_min:
        raise ValidationFailedError(
            f"Duration must be between {settings.min_duration_min} and "
            f"{settings.max_duration_min} minutes."
        )
    return duration_min


def _load(db: Session, session_id: UUID) -> Optional[TutoringSession]:
    return db.query(TutoringSession).filter(TutoringSession.id == session_id).first()


def get_student_session(db: Session, session_id: UUID, student: User) -> TutoringSession:
    """Not-owned is reported as not found."""
    session = _load(db, session_id)
    if not session or session.student_id != student.id:
        raise NotFoundError("Session not found.")
    return session


def get_tutor_session(db: Session, session_id: UUID, tutor: User) -> TutoringSession:
    session = _load(db, session_id)
    if not session or session.tutor_id is None or session.tutor_id != tutor.id:
        raise NotFoundError("Session not found.")
    return session


def _ensure_not_closed(session: TutoringSession) -> None:
    if session.status in TERMINAL_STATUSES:
        raise ConflictError("This session is already closed.")


def _swap_or_conflict(db: Session, session: TutoringSession, expected: dict, values: dict) -> None:
    values = dict(values)
    values["updated_at"] = utcnow()
    if not compare_and_swap(db, TutoringSession, session.id, expected, values):
        db.rollback()
        raise ConflictError("This session was changed by someone else. Please refresh.")
    db.commit()
    db.refresh(session)


def _tutor_is_eligible(db: Session, tutor_id: UUID, subject_id: UUID) -> bool:
    return (
        db.query(TutorSubject.id)
        .join(User, User.id == TutorSubject.tutor_id)
        .filter(
            TutorSubject.tutor_id == tutor_id,
            TutorSubject.subject_id == subject_id,
            User.is_tutor_approved == True,  # noqa: E712
            User.verification_status == "AUTO_VERIFIED",
            User.is_deactivated == False,  # noqa: E712
        )
        .first()
        is not None
    )


def _tutor_declared_unavailable(db: Session, tutor_id: UUID, start: datetime, end: datetime) -> bool:
    """
    True only when the tutor has a readable availability document that does
    not cover the window. No document at all keeps the current assignment.
    """
    raw = latest_availability(db, [tutor_id]).get(tutor_id)
    doc = parse_availability(raw)
    if doc is None:
        return False
    return not is_within_availability(doc, start, end)


def _refresh_reminder_email(db: Session, session: TutoringSession) -> None:
    """Cancel the old scheduled reminder (if any) and schedule one for the current start."""
    try:
        old_id = session.student_reminder_email_id
        if old_id:
            email_service.cancel_scheduled_email(old_id)
            session.student_reminder_email_id = None

        student = session.student
        subject = session.subject
        session.student_reminder_email_id = email_service.schedule_session_reminder(
            student.email, student.name, subject.code, subject.title, session.scheduled_at
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning("Reminder email update failed for session %s: %s", session.id, e)


def _cancel_reminder_email(batch_id: Optional[str], session_id: UUID) -> None:
    if not batch_id:
        return
    try:
        email_service.cancel_scheduled_email(batch_id)
    except Exception as e:
        logger.warning("Reminder email cancel failed for session %s: %s", session_id, e)


# ── Create ────────────────────────────────────────────────────────────────────

def create_session(
    db: Session,
    student: User,
    subject_id: UUID,
    scheduled_at: datetime,
    duration_min: Optional[int] = None,
    tutor_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> TutoringSession:
    """
    Book a session. With tutor_id the tutor must teach the subject, be eligible
    and be free; without it the allocator is tried once and the session stays
    queued (tutor_id NULL) when nobody fits.
    """
    now = now or utcnow()
    start = as_utc(scheduled_at)
    _require_lead_time(start, now)
    duration = _resolve_duration(duration_min)
    end = start + timedelta(minutes=duration)

    if not db.query(Subject.id).filter(Subject.id == subject_id).first():
        raise NotFoundError("Subject not found.")

    if find_student_conflict(db, student.id, start, end):
        raise ConflictError("You already have a booking that overlaps this time.")

    if tutor_id is not None:
        if tutor_id == student.id:
            raise ValidationFailedError("You cannot book a session with yourself.")
        if not _tutor_is_eligible(db, tutor_id, subject_id):
            raise ConflictError("This tutor is not available for this subject.")
        if find_tutor_conflict(db, tutor_id, start, end):
            raise ConflictError("Tutor is already booked for that time.")
        assigned_tutor = tutor_id
    else:
        assigned_tutor = pick_least_loaded_tutor(
            db, subject_id, start, end, rng=rng, exclude_ids=(student.id,)
        )

    session_id = uuid.uuid4()
    session = TutoringSession(
        id=session_id,
        student_id=student.id,
        tutor_id=assigned_tutor,
        subject_id=subject_id,
        scheduled_at=start,
        duration_min=duration,
        ends_at=end,
        status="PENDING",
        calendar_uid=f"{session_id}@tutorlink",
        calendar_sequence=0,
    )
    db.add(session)
    db.commit()
    db.refresh(session)

    logger.info(
        "Session %s created by %s (tutor=%s)", session.id, student.id, assigned_tutor or "queued"
    )

    _refresh_reminder_email(db, session)
    if assigned_tutor is not None:
        notification_service.session_requested(db, assigned_tutor, session.id, start)
    return session


def check_conflict(db: Session, student: User, session_id: UUID, scheduled_at: datetime) -> dict:
    session = get_student_session(db, session_id, student)
    start = as_utc(scheduled_at)
    end = start + timedelta(minutes=session.duration_min or settings.default_duration_min)
    return check_conflicts(db, session, start, end)


# ── Tutor Actions ─────────────────────────────────────────────────────────────

def accept_session(db: Session, tutor: User, session_id: UUID) -> TutoringSession:
    session = get_tutor_session(db, session_id, tutor)
    if session.status != "PENDING":
        raise ConflictError("Only pending sessions can be accepted.")

    start, end = session.scheduled_at, session.effective_end
    clash = (
        db.query(TutoringSession.id)
        .filter(
            TutoringSession.tutor_id == tutor.id,
            TutoringSession.status == "ACCEPTED",
            TutoringSession.id != session.id,
            overlap_clause(start, end),
        )
        .first()
    )
    if clash:
        raise ConflictError("You already accepted another session that overlaps this time.")

    _swap_or_conflict(
        db, session,
        expected={"status": "PENDING", "tutor_id": tutor.id},
        values={"status": "ACCEPTED"},
    )
    notification_service.booking_confirmed(
        db, session.student_id, session.tutor_id, session.id, session.scheduled_at
    )
    return session


def reject_session(db: Session, tutor: User, session_id: UUID, reason: Optional[str] = None) -> TutoringSession:
    session = get_tutor_session(db, session_id, tutor)
    if session.status != "PENDING":
        raise ConflictError("Only pending sessions can be rejected.")

    reminder_id = session.student_reminder_email_id
    reason = (reason or "").strip() or "Rejected by tutor"
    _swap_or_conflict(
        db, session,
        expected={"status": "PENDING", "tutor_id": tutor.id},
        values={
            "status": "REJECTED",
            "cancel_reason": reason,
            "student_reminder_email_id": None,
            "calendar_sequence": TutoringSession.calendar_sequence + 1,
        },
    )
    _cancel_reminder_email(reminder_id, session.id)
    notification_service.session_rejected(db, session.student_id, session.id, reason)
    return session


def propose_time(
    db: Session,
    tutor: User,
    session_id: UUID,
    proposed_at: datetime,
    proposed_end_at: Optional[datetime] = None,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TutoringSession:
    now = now or utcnow()
    proposed_at = as_utc(proposed_at)
    _require_lead_time(proposed_at, now)

    session = get_tutor_session(db, session_id, tutor)
    _ensure_not_closed(session)
    if now >= session.effective_end:
        raise ConflictError("You can't propose a new time after the session ended.")

    if proposed_end_at is not None:
        proposed_end_at = as_utc(proposed_end_at)
        if proposed_end_at <= proposed_at:
            raise ValidationFailedError("Proposed end must be after the proposed start.")
    else:
        proposed_end_at = proposed_at + timedelta(
            minutes=session.duration_min or settings.default_duration_min
        )

    _swap_or_conflict(
        db, session,
        expected={"status": ACTIVE_STATUSES, "tutor_id": tutor.id},
        values={
            "proposed_at": proposed_at,
            "proposed_end_at": proposed_end_at,
            "proposed_note": (note or "").strip() or None,
            "proposal_status": "PENDING",
            "proposed_by_user_id": tutor.id,
        },
    )
    notification_service.proposal_sent(db, session.student_id, tutor.id, session.id, proposed_at)
    return session


def complete_session(db: Session, tutor: User, session_id: UUID, now: Optional[datetime] = None) -> TutoringSession:
    now = now or utcnow()
    session = get_tutor_session(db, session_id, tutor)
    if session.status != "ACCEPTED":
        raise ConflictError("Only accepted sessions can be completed.")
    if now < session.effective_end:
        raise ConflictError("You can complete this after the session ends.")

    _swap_or_conflict(
        db, session,
        expected={"status": "ACCEPTED"},
        values={"status": "COMPLETED"},
    )

    try:
        channel = chat_service.upsert_channel(db, session, close_at=chat_service.chat_close_at(now))
        channel.closed_at = None
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning("Chat window update failed for session %s: %s", session.id, e)

    notification_service.session_completed(db, session.student_id, None, session.id)
    return session


# ── Student Actions ───────────────────────────────────────────────────────────

def reschedule_session(
    db: Session,
    student: User,
    session_id: UUID,
    scheduled_at: datetime,
    now: Optional[datetime] = None,
) -> dict:
    """
    Move a session. Overlaps on either side are refused and leave the row as it
    was. If the assigned tutor's declared availability does not cover the new
    window, the tutor is released and the session goes back to the queue.
    Returns {"session": ..., "queued": bool}.
    """
    now = now or utcnow()
    start = as_utc(scheduled_at)
    _require_lead_time(start, now)

    session = get_student_session(db, session_id, student)
    _ensure_not_closed(session)

    end = start + timedelta(minutes=session.duration_min or settings.default_duration_min)
    conflicts = check_conflicts(db, session, start, end)
    if conflicts["studentConflict"]:
        raise ConflictError("You already have another booking that overlaps this time.")
    if conflicts["tutorConflict"]:
        raise ConflictError("Tutor is already booked for that time.")

    prev_tutor_id = session.tutor_id
    release_tutor = prev_tutor_id is not None and _tutor_declared_unavailable(
        db, prev_tutor_id, start, end
    )

    values = {
        "scheduled_at": start,
        "ends_at": end,
        "rescheduled_at": now,
        "status": "PENDING",
        "calendar_uid": session.calendar_uid or f"{session.id}@tutorlink",
        "calendar_sequence": TutoringSession.calendar_sequence + 1,
    }
    if release_tutor:
        values["tutor_id"] = None

    _swap_or_conflict(
        db, session,
        expected={"status": ACTIVE_STATUSES, "tutor_id": prev_tutor_id},
        values=values,
    )
    logger.info("Session %s rescheduled to %s (tutor released=%s)", session.id, start, release_tutor)

    _refresh_reminder_email(db, session)
    if release_tutor:
        notification_service.session_rescheduled_unassigned(db, prev_tutor_id, session.id, start)
    elif session.tutor_id is not None:
        notification_service.session_rescheduled(db, session.tutor_id, session.id, "TUTOR", start)

    return {"session": session, "queued": session.tutor_id is None}


def accept_proposal(db: Session, student: User, session_id: UUID, now: Optional[datetime] = None) -> TutoringSession:
    """Apply the tutor's proposed time as a reschedule."""
    now = now or utcnow()
    session = get_student_session(db, session_id, student)
    if session.status in TERMINAL_STATUSES:
        raise ConflictError("Cannot accept proposal for a closed session.")
    if session.proposal_status != "PENDING" or session.proposed_at is None:
        raise ConflictError("No pending proposal to accept.")

    start = session.proposed_at
    end = session.proposed_end_at or start + timedelta(
        minutes=session.duration_min or settings.default_duration_min
    )
    if start <= now:
        raise ConflictError("The proposed time has already passed.")

    conflicts = check_conflicts(db, session, start, end)
    if conflicts["studentConflict"]:
        raise ConflictError("You have another booking that overlaps this proposed time.")
    if conflicts["tutorConflict"]:
        raise ConflictError("Tutor has a conflict at this proposed time.")
    if session.tutor_id is not None and _tutor_declared_unavailable(db, session.tutor_id, start, end):
        raise ConflictError("Tutor is not available at this proposed time.")

    _swap_or_conflict(
        db, session,
        expected={"status": ACTIVE_STATUSES, "proposal_status": "PENDING"},
        values={
            "scheduled_at": start,
            "ends_at": end,
            "rescheduled_at": now,
            "status": "PENDING",
            "proposal_status": "ACCEPTED",
            "proposed_at": None,
            "proposed_end_at": None,
            "proposed_note": None,
            "proposed_by_user_id": None,
            "calendar_uid": session.calendar_uid or f"{session.id}@tutorlink",
            "calendar_sequence": TutoringSession.calendar_sequence + 1,
        },
    )

    _refresh_reminder_email(db, session)
    notification_service.proposal_accepted(db, session.tutor_id, student.id, session.id, start)
    return session


def reject_proposal(db: Session, student: User, session_id: UUID) -> TutoringSession:
    session = get_student_session(db, session_id, student)
    if session.status in TERMINAL_STATUSES:
        raise ConflictError("Cannot reject proposal for a closed session.")
    if session.proposal_status != "PENDING":
        raise ConflictError("No pending proposal to reject.")

    _swap_or_conflict(
        db, session,
        expected={"status": ACTIVE_STATUSES, "proposal_status": "PENDING"},
        values={"proposal_status": "REJECTED"},
    )
    notification_service.proposal_rejected(db, session.tutor_id, student.id, session.id)
    return session


# ── Cancel (either party) ─────────────────────────────────────────────────────

def cancel_session(
    db: Session,
    user: User,
    session_id: UUID,
    by: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TutoringSession:
    """
    by = "STUDENT" | "TUTOR". Cancelling force-closes the chat, drops the
    scheduled reminder email and tells the other party.
    """
    now = now or utcnow()
    if by == "TUTOR":
        session = get_tutor_session(db, session_id, user)
    else:
        session = get_student_session(db, session_id, user)
    _ensure_not_closed(session)

    if by == "TUTOR" and now >= session.effective_end:
        raise ConflictError("You can't cancel after the session has ended.")

    reason = (reason or "").strip() or ("Cancelled by tutor" if by == "TUTOR" else None)
    reminder_id = session.student_reminder_email_id

    _swap_or_conflict(
        db, session,
        expected={"status": ACTIVE_STATUSES},
        values={
            "status": "CANCELLED",
            "cancelled_at": now,
            "cancel_reason": reason,
            "student_reminder_email_id": None,
            "calendar_uid": session.calendar_uid or f"{session.id}@tutorlink",
            "calendar_sequence": TutoringSession.calendar_sequence + 1,
        },
    )

    try:
        chat_service.force_close(db, session.id, now)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning("Chat close failed for session %s: %s", session.id, e)

    _cancel_reminder_email(reminder_id, session.id)

    if by == "TUTOR":
        notification_service.session_cancelled(db, session.student_id, session.id, "STUDENT", reason)
    else:
        notification_service.session_cancelled(db, session.tutor_id, session.id, "TUTOR", reason)

    logger.info("Session %s cancelled by %s %s", session.id, by.lower(), user.id)
    return session


# ── Ratings & Reviews ─────────────────────────────────────────────────────────

def rate_session(
    db: Session,
    student: User,
    session_id: UUID,
    rating: int,
    comment: Optional[str] = None,
) -> dict:
    """
    One rating per completed session. The rating insert and the tutor's
    cached average/count are committed together.
    """
    if not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationFailedError("Rating must be an integer from 1 to 5.")
    comment = (comment or "").strip()
    if len(comment) > 500:
        raise ValidationFailedError("Comment too long (max 500 chars).")

    session = get_student_session(db, session_id, student)
    if session.status != "COMPLETED":
        raise ConflictError("You can rate only after the session is completed.")
    if session.tutor_id is None:
        raise ConflictError("Session has no tutor assigned.")
    if db.query(SessionRating.id).filter(SessionRating.session_id == session.id).first():
        raise ConflictError("You already rated this session.")

    tutor_id = session.tutor_id
    try:
        created = SessionRating(
            session_id=session.id,
            student_id=student.id,
            tutor_id=tutor_id,
            rating=rating,
            comment=comment or None,
        )
        db.add(created)
        db.flush()

        avg_raw, count = (
            db.query(func.avg(SessionRating.rating), func.count(SessionRating.id))
            .filter(SessionRating.tutor_id == tutor_id)
            .one()
        )
        # One decimal, halves rounded up
        avg = math.floor(float(avg_raw or 0) * 10 + 0.5) / 10
        db.query(User).filter(User.id == tutor_id).update(
            {"avg_rating": avg, "rating_count": count}, synchronize_session=False
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("You already rated this session.")

    db.refresh(created)
    notification_service.session_rated(db, tutor_id, session.id, rating)
    return {"rating": created, "tutor_stats": {"avg_rating": avg, "rating_count": count}}


def get_rating(db: Session, student: User, session_id: UUID) -> Optional[SessionRating]:
    session = get_student_session(db, session_id, student)
    return db.query(SessionRating).filter(SessionRating.session_id == session.id).first()


def review_session(
    db: Session,
    student: User,
    session_id: UUID,
    rating: int,
    feedback: Optional[str] = None,
    confirmed: Optional[bool] = None,
) -> SessionReview:
    if not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationFailedError("Rating must be an integer from 1 to 5.")

    session = get_student_session(db, session_id, student)
    if session.status != "COMPLETED":
        raise ConflictError("You can review only after the tutor completes the session.")
    if session.tutor_id is None:
        raise ConflictError("Session has no tutor assigned.")
    if db.query(SessionReview.id).filter(SessionReview.session_id == session.id).first():
        raise ConflictError("You already reviewed this session.")

    review = SessionReview(
        session_id=session.id,
        student_id=student.id,
        tutor_id=session.tutor_id,
        rating=rating,
        feedback=(feedback or "").strip() or None,
        confirmed=confirmed,
    )
    try:
        db.add(review)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("You already reviewed this session.")

    notification_service.session_reviewed(db, session.tutor_id, session.id, rating)
    return review


# ── Listings ──────────────────────────────────────────────────────────────────

def _listing(db: Session):
    return db.query(TutoringSession).options(
        joinedload(TutoringSession.subject),
        joinedload(TutoringSession.student),
        joinedload(TutoringSession.tutor),
    )


def list_student_sessions(db: Session, student: User, status: Optional[str] = None) -> List[TutoringSession]:
    query = _listing(db).filter(TutoringSession.student_id == student.id)
    if status:
        query = query.filter(TutoringSession.status == status)
    return query.order_by(TutoringSession.scheduled_at.desc()).limit(LIST_LIMIT).all()


def list_tutor_sessions(db: Session, tutor: User, status: Optional[str] = None) -> List[TutoringSession]:
    query = _listing(db).filter(TutoringSession.tutor_id == tutor.id)
    if status:
        query = query.filter(TutoringSession.status == status)
    return query.order_by(TutoringSession.scheduled_at.desc()).limit(LIST_LIMIT).all()


def sessions_needing_rating(db: Session, student: User) -> List[TutoringSession]:
    rated = select(SessionRating.session_id).where(SessionRating.student_id == student.id)
    return (
        _listing(db)
        .filter(
            TutoringSession.student_id == student.id,
            TutoringSession.status == "COMPLETED",
            TutoringSession.tutor_id.isnot(None),
            ~TutoringSession.id.in_(rated),
        )
        .order_by(TutoringSession.scheduled_at.desc())
        .limit(NEEDS_RATING_LIMIT)
        .all()
    )

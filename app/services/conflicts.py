# app/services/conflicts.py
# Interval conflict checker for tutoring sessions
#
# Two windows [s1, e1) and [s2, e2) overlap iff s1 < e2 and e1 > s2.
# Touching edges do not overlap. Only PENDING / ACCEPTED sessions occupy
# time; a row without an end is treated as open-ended (always conflicting).

from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.models.session import ACTIVE_STATUSES, TutoringSession


def overlaps(s1: datetime, e1: datetime, s2: datetime, e2: datetime) -> bool:
    return s1 < e2 and e1 > s2


def has_conflict(existing: Iterable, start: datetime, end: datetime) -> bool:
    """
    In-memory check against a user's bookings.

    `existing` holds objects with scheduled_at / ends_at / status
    (TutoringSession rows or anything shaped like them).
    """
    for booking in existing:
        if booking.status not in ACTIVE_STATUSES:
            continue
        if booking.ends_at is None:
            return True
        if overlaps(booking.scheduled_at, booking.ends_at, start, end):
            return True
    return False


def overlap_clause(start: datetime, end: datetime):
    """The overlap predicate as a SQL filter (null ends always match)."""
    return and_(
        TutoringSession.status.in_(ACTIVE_STATUSES),
        or_(
            TutoringSession.ends_at.is_(None),
            and_(
                TutoringSession.scheduled_at < end,
                TutoringSession.ends_at > start,
            ),
        ),
    )


def _first_overlap(db: Session, user_column, user_id, start, end, exclude_session_id):
    query = db.query(TutoringSession.id).filter(
        user_column == user_id,
        overlap_clause(start, end),
    )
    if exclude_session_id is not None:
        query = query.filter(TutoringSession.id != exclude_session_id)
    return query.first()


def find_student_conflict(
    db: Session,
    student_id: UUID,
    start: datetime,
    end: datetime,
    exclude_session_id: Optional[UUID] = None,
) -> Optional[UUID]:
    """Id of one overlapping booking of the student, or None."""
    row = _first_overlap(
        db, TutoringSession.student_id, student_id, start, end, exclude_session_id
    )
    return row.id if row else None


def find_tutor_conflict(
    db: Session,
    tutor_id: UUID,
    start: datetime,
    end: datetime,
    exclude_session_id: Optional[UUID] = None,
) -> Optional[UUID]:
    """Id of one overlapping booking of the tutor, or None."""
    row = _first_overlap(
        db, TutoringSession.tutor_id, tutor_id, start, end, exclude_session_id
    )
    return row.id if row else None


def check_conflicts(
    db: Session,
    session: TutoringSession,
    start: datetime,
    end: datetime,
) -> dict:
    """
    Both sides for moving `session` to [start, end), ignoring the session itself.
    The tutor side is False while no tutor is assigned.
    """
    student_conflict = find_student_conflict(
        db, session.student_id, start, end, exclude_session_id=session.id
    ) is not None

    tutor_conflict = False
    if session.tutor_id is not None:
        tutor_conflict = find_tutor_conflict(
            db, session.tutor_id, start, end, exclude_session_id=session.id
        ) is not None

    return {"studentConflict": student_conflict, "tutorConflict": tutor_conflict}

# app/services/allocator.py
# Tutor allocation for unassigned PENDING sessions
#
# Eligible tutor = teaches the subject + approved + AUTO_VERIFIED + not deactivated,
#                  no active booking overlapping the window,
#                  latest application's availability contains the window.
#
# Candidates are shuffled before picking so the same tutor is not always chosen.
# A brand-new booking instead goes to the least-loaded free tutor (active
# sessions in the week from its start), ties broken at random.
# Assignment is a conditional update (tutor_id IS NULL AND status = PENDING);
# losing that race is a silent no-op.

import logging
import random
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, NamedTuple, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import compare_and_swap
from app.db.types import utcnow
from app.models.session import ACTIVE_STATUSES, TutoringSession
from app.models.subject import TutorSubject
from app.models.tutor_application import TutorApplication
from app.models.user import User
from app.services.availability import campus_zone, is_within_availability, parse_availability
from app.services.conflicts import has_conflict, overlap_clause
from app.services import notification_service

logger = logging.getLogger("tutorlink.allocator")

SLOT_STEP_MIN = 30
MAX_SUGGESTED_SLOTS = 120
LOAD_HORIZON = timedelta(days=7)


class TutorCandidate(NamedTuple):
    tutor_id: UUID
    availability: Optional[str]


# ── Candidates ────────────────────────────────────────────────────────────────

def latest_availability(db: Session, tutor_ids: List[UUID]) -> Dict[UUID, Optional[str]]:
    """Availability document of each tutor's most recently created application."""
    if not tutor_ids:
        return {}
    rows = (
        db.query(TutorApplication.user_id, TutorApplication.availability)
        .filter(TutorApplication.user_id.in_(tutor_ids))
        .order_by(TutorApplication.created_at.desc())
        .all()
    )
    latest: Dict[UUID, Optional[str]] = {}
    for user_id, availability in rows:
        latest.setdefault(user_id, availability)
    return latest


def eligible_tutors(db: Session, subject_id: UUID, limit: Optional[int] = None) -> List[TutorCandidate]:
    limit = limit or settings.allocation_candidate_limit
    tutor_ids = [
        row.tutor_id
        for row in (
            db.query(TutorSubject.tutor_id)
            .join(User, User.id == TutorSubject.tutor_id)
            .filter(
                TutorSubject.subject_id == subject_id,
                User.is_tutor_approved == True,  # noqa: E712
                User.verification_status == "AUTO_VERIFIED",
                User.is_deactivated == False,  # noqa: E712
            )
            .order_by(TutorSubject.created_at)
            .limit(limit)
            .all()
        )
    ]
    availability = latest_availability(db, tutor_ids)
    return [TutorCandidate(tid, availability.get(tid)) for tid in tutor_ids]


def _busy_tutors(db: Session, tutor_ids: List[UUID], start: datetime, end: datetime) -> set:
    """One query for the whole candidate set; legacy rows without an end count as busy."""
    if not tutor_ids:
        return set()
    rows = (
        db.query(TutoringSession.tutor_id)
        .filter(TutoringSession.tutor_id.in_(tutor_ids), overlap_clause(start, end))
        .distinct()
        .all()
    )
    return {row.tutor_id for row in rows}


# ── Picking ───────────────────────────────────────────────────────────────────

def free_tutors_for_slot(
    db: Session,
    subject_id: UUID,
    start: datetime,
    end: datetime,
    candidates: Optional[List[TutorCandidate]] = None,
    exclude_ids: Iterable[UUID] = (),
) -> List[UUID]:
    """Tutors (in candidate order) who are both conflict-free and declared available."""
    if candidates is None:
        candidates = eligible_tutors(db, subject_id)
    excluded = set(exclude_ids)
    candidates = [c for c in candidates if c.tutor_id not in excluded]
    busy = _busy_tutors(db, [c.tutor_id for c in candidates], start, end)
    return [
        c.tutor_id
        for c in candidates
        if c.tutor_id not in busy and is_within_availability(c.availability, start, end)
    ]


def pick_tutor(
    db: Session,
    subject_id: UUID,
    start: datetime,
    end: datetime,
    rng: Optional[random.Random] = None,
    exclude_ids: Iterable[UUID] = (),
) -> Optional[UUID]:
    """First eligible tutor after an unbiased shuffle, or None."""
    candidates = eligible_tutors(db, subject_id)
    if not candidates:
        return None

    (rng or random).shuffle(candidates)

    free = free_tutors_for_slot(
        db, subject_id, start, end, candidates=candidates, exclude_ids=exclude_ids
    )
    return free[0] if free else None


def tutor_loads(db: Session, tutor_ids: List[UUID], start: datetime) -> Dict[UUID, int]:
    """Active sessions per tutor starting within LOAD_HORIZON of `start`."""
    loads = {tid: 0 for tid in tutor_ids}
    if not tutor_ids:
        return loads
    rows = (
        db.query(TutoringSession.tutor_id, func.count(TutoringSession.id))
        .filter(
            TutoringSession.tutor_id.in_(tutor_ids),
            TutoringSession.status.in_(ACTIVE_STATUSES),
            TutoringSession.scheduled_at >= start,
            TutoringSession.scheduled_at < start + LOAD_HORIZON,
        )
        .group_by(TutoringSession.tutor_id)
        .all()
    )
    for tutor_id, count in rows:
        loads[tutor_id] = count
    return loads


def pick_least_loaded_tutor(
    db: Session,
    subject_id: UUID,
    start: datetime,
    end: datetime,
    rng: Optional[random.Random] = None,
    exclude_ids: Iterable[UUID] = (),
) -> Optional[UUID]:
    """
    Immediate allocation for a new booking: among the free tutors, the ones
    with the fewest active sessions in the following week, ties broken at random.
    """
    free = free_tutors_for_slot(db, subject_id, start, end, exclude_ids=exclude_ids)
    if not free:
        return None
    if len(free) == 1:
        return free[0]

    loads = tutor_loads(db, free, start)
    lowest = min(loads.values())
    return (rng or random).choice([tid for tid in free if loads[tid] == lowest])


def assign_tutor(db: Session, session_id: UUID, tutor_id: UUID) -> bool:
    """Race-safe: only assigns while the session is still unassigned and PENDING."""
    assigned = compare_and_swap(
        db,
        TutoringSession,
        session_id,
        expected={"tutor_id": None, "status": "PENDING"},
        values={"tutor_id": tutor_id, "updated_at": utcnow()},
    )
    if assigned:
        db.commit()
    return assigned


# ── Batch ─────────────────────────────────────────────────────────────────────

def allocate_pending_sessions(
    db: Session,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> dict:
    """
    Try to assign a tutor to each queued (future, unassigned, PENDING) session.
    Returns {"queued": <looked at>, "assigned": <won>}.
    """
    now = now or utcnow()
    limit = limit or settings.allocation_batch_size

    queued = (
        db.query(TutoringSession)
        .filter(
            TutoringSession.tutor_id.is_(None),
            TutoringSession.status == "PENDING",
            TutoringSession.scheduled_at > now,
        )
        .order_by(TutoringSession.scheduled_at.asc(), TutoringSession.created_at.asc())
        .limit(limit)
        .all()
    )

    jobs = [(s.id, s.student_id, s.subject_id, s.scheduled_at, s.effective_end) for s in queued]
    assigned = 0
    for session_id, student_id, subject_id, start, end in jobs:
        tutor_id = pick_tutor(db, subject_id, start, end, rng=rng, exclude_ids=(student_id,))
        if tutor_id is None:
            continue
        if assign_tutor(db, session_id, tutor_id):
            assigned += 1
            notification_service.session_assigned(db, tutor_id, session_id)

    if jobs:
        logger.info("Allocation pass: queued=%d assigned=%d", len(jobs), assigned)
    return {"queued": len(jobs), "assigned": assigned}


# ── Slot Suggestions ──────────────────────────────────────────────────────────

def suggest_slots(
    db: Session,
    subject_id: UUID,
    duration_min: int,
    days: int = 7,
    now: Optional[datetime] = None,
) -> List[dict]:
    """
    Bookable start times for a subject over the coming `days`, on a 30-minute
    campus-local grid. Each item lists how many tutors could take it.
    """
    now = now or utcnow()
    earliest = now + timedelta(minutes=settings.min_lead_minutes)
    tz = campus_zone()

    tutors = []
    for c in eligible_tutors(db, subject_id):
        doc = parse_availability(c.availability)
        if doc is not None:
            tutors.append((c.tutor_id, doc))
    if not tutors:
        return []

    horizon = now + timedelta(days=days + 1)
    busy_rows = (
        db.query(TutoringSession)
        .filter(
            TutoringSession.tutor_id.in_([tid for tid, _ in tutors]),
            TutoringSession.status.in_(ACTIVE_STATUSES),
            TutoringSession.scheduled_at < horizon,
        )
        .all()
    )
    bookings: Dict[UUID, list] = {}
    for row in busy_rows:
        bookings.setdefault(row.tutor_id, []).append(row)

    today: date = now.astimezone(tz).date()
    slots: Dict[datetime, dict] = {}
    for offset in range(days):
        day = today + timedelta(days=offset)
        midnight = datetime.combine(day, time(0, 0), tzinfo=tz)
        for minutes in range(0, 24 * 60, SLOT_STEP_MIN):
            start = (midnight + timedelta(minutes=minutes)).astimezone(timezone.utc)
            if start < earliest:
                continue
            end = start + timedelta(minutes=duration_min)
            for tutor_id, doc in tutors:
                if not is_within_availability(doc, start, end, tz=tz):
                    continue
                if has_conflict(bookings.get(tutor_id, []), start, end):
                    continue
                item = slots.setdefault(
                    start, {"start": start, "end": end, "tutor_count": 0, "tutor_ids": []}
                )
                item["tutor_count"] += 1
                item["tutor_ids"].append(tutor_id)

    return [slots[k] for k in sorted(slots)][:MAX_SUGGESTED_SLOTS]

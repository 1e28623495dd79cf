# app/api/v1/endpoints/sessions.py
# Tutoring session endpoints (student side + internal batch triggers)
#
# Student flow:
#   POST /sessions                          → book (direct tutor or allocator)
#   GET  /sessions/my                       → own sessions (runs lazy auto-complete)
#   GET  /sessions/needs-rating             → completed, not yet rated
#   POST /sessions/{id}/check-conflict      → would a new time clash?
#   POST /sessions/{id}/reschedule          → move to a new time
#   POST /sessions/{id}/cancel              → cancel
#   POST /sessions/{id}/proposal/accept     → take the tutor's proposed time
#   POST /sessions/{id}/proposal/reject     → decline it
#   POST /sessions/{id}/rating              → rate the tutor (GET reads it back)
#   POST /sessions/{id}/review              → post-session feedback
#
# Internal (shared-secret header):
#   POST /sessions/allocate                 → x-allocator-secret
#   POST /sessions/auto-complete            → x-auto-complete-secret

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import app.db.base  # noqa: F401
from app.core.dependencies import (
    require_allocator_secret,
    require_auto_complete_secret,
    require_login,
    require_verified_user,
)
from app.db.session import get_db
from app.models.user import User
from app.schemas.session import (
    AllocateResponse,
    AutoCompleteResponse,
    CancelRequest,
    CheckConflictRequest,
    ConflictCheckResponse,
    RatingCreate,
    RatingCreateResponse,
    RatingLookupResponse,
    RatingResponse,
    RescheduleRequest,
    RescheduleResponse,
    ReviewCreate,
    ReviewResponse,
    SessionCreate,
    SessionListResponse,
    SessionResponse,
)
from app.services import allocator, auto_complete, session_service

router = APIRouter()


def _to_response(session) -> SessionResponse:
    return SessionResponse.model_validate(session)


# ── Booking ───────────────────────────────────────────────────────────────────

@router.post(
    "",
    response_model=SessionResponse,
    summary="Student books a tutoring session",
)
def create_session(
    payload: SessionCreate,
    current_user: User = Depends(require_verified_user),
    db: Session = Depends(get_db),
):
    """
    Books a session for the current student.
    With tutor_id the tutor must teach the subject and be free; without it the
    allocator tries to assign someone right away and otherwise leaves the
    session queued (tutor_id null) for the next allocation pass.
    """
    session = session_service.create_session(
        db,
        current_user,
        subject_id=payload.subject_id,
        scheduled_at=payload.scheduled_at,
        duration_min=payload.duration_min,
        tutor_id=payload.tutor_id,
    )
    return _to_response(session)


@router.get(
    "/my",
    response_model=SessionListResponse,
    summary="List own sessions as a student",
)
def my_sessions(
    status: Optional[str] = Query(None),
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    auto_complete.run_sweep_quietly(db)
    sessions = session_service.list_student_sessions(db, current_user, status=status)
    return SessionListResponse(sessions=[_to_response(s) for s in sessions])


@router.get(
    "/needs-rating",
    response_model=SessionListResponse,
    summary="Completed sessions still waiting for a rating",
)
def needs_rating(
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    sessions = session_service.sessions_needing_rating(db, current_user)
    return SessionListResponse(sessions=[_to_response(s) for s in sessions])


# ── Internal Triggers ─────────────────────────────────────────────────────────

@router.post(
    "/allocate",
    response_model=AllocateResponse,
    summary="Assign tutors to queued sessions (cron)",
    dependencies=[Depends(require_allocator_secret)],
)
def allocate(db: Session = Depends(get_db)):
    return AllocateResponse(**allocator.allocate_pending_sessions(db))


@router.post(
    "/auto-complete",
    response_model=AutoCompleteResponse,
    summary="Complete overdue accepted sessions (cron)",
    dependencies=[Depends(require_auto_complete_secret)],
)
def run_auto_complete(db: Session = Depends(get_db)):
    return AutoCompleteResponse(**auto_complete.auto_complete_due_sessions(db))


# ── Time Changes ──────────────────────────────────────────────────────────────

@router.post(
    "/{session_id}/check-conflict",
    response_model=ConflictCheckResponse,
    summary="Check whether a new time overlaps other bookings",
)
def check_conflict(
    session_id: UUID,
    payload: CheckConflictRequest,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    result = session_service.check_conflict(db, current_user, session_id, payload.scheduled_at)
    return ConflictCheckResponse(
        student_conflict=result["studentConflict"],
        tutor_conflict=result["tutorConflict"],
    )


@router.post(
    "/{session_id}/reschedule",
    response_model=RescheduleResponse,
    summary="Student moves a session to a new time",
)
def reschedule(
    session_id: UUID,
    payload: RescheduleRequest,
    current_user: User = Depends(require_verified_user),
    db: Session = Depends(get_db),
):
    result = session_service.reschedule_session(db, current_user, session_id, payload.scheduled_at)
    return RescheduleResponse(session=_to_response(result["session"]), queued=result["queued"])


@router.post(
    "/{session_id}/cancel",
    response_model=SessionResponse,
    summary="Student cancels a session",
)
def cancel(
    session_id: UUID,
    payload: Optional[CancelRequest] = None,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    reason = payload.reason if payload else None
    session = session_service.cancel_session(db, current_user, session_id, by="STUDENT", reason=reason)
    return _to_response(session)


@router.post(
    "/{session_id}/proposal/accept",
    response_model=SessionResponse,
    summary="Student accepts the tutor's proposed time",
)
def accept_proposal(
    session_id: UUID,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    return _to_response(session_service.accept_proposal(db, current_user, session_id))


@router.post(
    "/{session_id}/proposal/reject",
    response_model=SessionResponse,
    summary="Student rejects the tutor's proposed time",
)
def reject_proposal(
    session_id: UUID,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    return _to_response(session_service.reject_proposal(db, current_user, session_id))


# ── Rating & Review ───────────────────────────────────────────────────────────

@router.post(
    "/{session_id}/rating",
    response_model=RatingCreateResponse,
    summary="Rate the tutor of a completed session",
)
def rate(
    session_id: UUID,
    payload: RatingCreate,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    result = session_service.rate_session(
        db, current_user, session_id, rating=payload.rating, comment=payload.comment
    )
    return RatingCreateResponse(
        rating=RatingResponse.model_validate(result["rating"]),
        tutor_stats=result["tutor_stats"],
    )


@router.get(
    "/{session_id}/rating",
    response_model=RatingLookupResponse,
    summary="Read own rating for a session",
)
def get_rating(
    session_id: UUID,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    rating = session_service.get_rating(db, current_user, session_id)
    return RatingLookupResponse(rating=RatingResponse.model_validate(rating) if rating else None)


@router.post(
    "/{session_id}/review",
    response_model=ReviewResponse,
    summary="Leave feedback for a completed session",
)
def review(
    session_id: UUID,
    payload: ReviewCreate,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    created = session_service.review_session(
        db,
        current_user,
        session_id,
        rating=payload.rating,
        feedback=payload.feedback,
        confirmed=payload.confirmed,
    )
    return ReviewResponse.model_validate(created)

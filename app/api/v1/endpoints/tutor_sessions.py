# app/api/v1/endpoints/tutor_sessions.py
# Tutor-side session actions -- all require an approved, verified tutor
#
#   GET  /tutor/sessions                     → assigned sessions (runs lazy auto-complete)
#   POST /tutor/sessions/{id}/accept         → PENDING → ACCEPTED
#   POST /tutor/sessions/{id}/reject         → PENDING → REJECTED
#   POST /tutor/sessions/{id}/propose-time   → suggest another time
#   POST /tutor/sessions/{id}/complete       → ACCEPTED → COMPLETED (after the end)
#   POST /tutor/sessions/{id}/cancel         → cancel before the end

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import app.db.base  # noqa: F401
from app.core.dependencies import require_tutor
from app.db.session import get_db
from app.models.user import User
from app.schemas.session import (
    CancelRequest,
    ProposeTimeRequest,
    RejectRequest,
    SessionListResponse,
    SessionResponse,
)
from app.services import auto_complete, session_service

router = APIRouter()


@router.get(
    "/sessions",
    response_model=SessionListResponse,
    summary="List sessions assigned to the current tutor",
)
def tutor_sessions(
    status: Optional[str] = Query(None),
    current_user: User = Depends(require_tutor),
    db: Session = Depends(get_db),
):
    auto_complete.run_sweep_quietly(db)
    sessions = session_service.list_tutor_sessions(db, current_user, status=status)
    return SessionListResponse(sessions=[SessionResponse.model_validate(s) for s in sessions])


@router.post(
    "/sessions/{session_id}/accept",
    response_model=SessionResponse,
    summary="Accept a pending session",
)
def accept(
    session_id: UUID,
    current_user: User = Depends(require_tutor),
    db: Session = Depends(get_db),
):
    return SessionResponse.model_validate(session_service.accept_session(db, current_user, session_id))


@router.post(
    "/sessions/{session_id}/reject",
    response_model=SessionResponse,
    summary="Reject a pending session",
)
def reject(
    session_id: UUID,
    payload: Optional[RejectRequest] = None,
    current_user: User = Depends(require_tutor),
    db: Session = Depends(get_db),
):
    reason = payload.reason if payload else None
    return SessionResponse.model_validate(
        session_service.reject_session(db, current_user, session_id, reason=reason)
    )


@router.post(
    "/sessions/{session_id}/propose-time",
    response_model=SessionResponse,
    summary="Propose a different time to the student",
)
def propose_time(
    session_id: UUID,
    payload: ProposeTimeRequest,
    current_user: User = Depends(require_tutor),
    db: Session = Depends(get_db),
):
    session = session_service.propose_time(
        db,
        current_user,
        session_id,
        proposed_at=payload.proposed_at,
        proposed_end_at=payload.proposed_end_at,
        note=payload.note,
    )
    return SessionResponse.model_validate(session)


@router.post(
    "/sessions/{session_id}/complete",
    response_model=SessionResponse,
    summary="Mark an accepted session as completed",
)
def complete(
    session_id: UUID,
    current_user: User = Depends(require_tutor),
    db: Session = Depends(get_db),
):
    return SessionResponse.model_validate(session_service.complete_session(db, current_user, session_id))


@router.post(
    "/sessions/{session_id}/cancel",
    response_model=SessionResponse,
    summary="Tutor cancels a session",
)
def cancel(
    session_id: UUID,
    payload: Optional[CancelRequest] = None,
    current_user: User = Depends(require_tutor),
    db: Session = Depends(get_db),
):
    reason = payload.reason if payload else None
    session = session_service.cancel_session(db, current_user, session_id, by="TUTOR", reason=reason)
    return SessionResponse.model_validate(session)

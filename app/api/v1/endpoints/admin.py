# app/api/v1/endpoints/admin.py
# Admin portal endpoints -- all require the ADMIN role

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import app.db.base  # noqa: F401
from app.core.dependencies import require_admin
from app.db.session import get_db
from app.models.tutor_application import TutorApplication
from app.models.user import User
from app.schemas.admin import (
    AdminApplicationItem,
    AdminApplicationListResponse,
    ApplicantSummary,
    RejectApplicationRequest,
    ReviewApplicationResponse,
)
from app.services import tutor_service

router = APIRouter()


def _to_item(a: TutorApplication) -> AdminApplicationItem:
    u = a.user
    return AdminApplicationItem(
        id=a.id,
        status=a.status,
        subjects=a.subjects,
        cgpa=a.cgpa,
        transcript_path=a.transcript_path,
        rejection_reason=a.rejection_reason,
        reviewed_at=a.reviewed_at,
        created_at=a.created_at,
        user=ApplicantSummary(
            id=u.id,
            email=u.email,
            name=u.name,
            programme=u.programme,
            verification_status=u.verification_status,
        ),
    )


# ── Tutor Applications ────────────────────────────────────────────────────────

@router.get(
    "/tutor-applications",
    response_model=AdminApplicationListResponse,
    summary="List tutor applications",
)
def list_applications(
    status: Optional[str] = Query("PENDING"),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    applications = tutor_service.list_applications(db, status=status)
    return AdminApplicationListResponse(applications=[_to_item(a) for a in applications])


@router.post(
    "/tutor-applications/{application_id}/approve",
    response_model=ReviewApplicationResponse,
    summary="Approve a tutor application",
)
def approve_application(
    application_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Approves the application and, in the same transaction, grants the TUTOR
    role and links every subject named in the application (creating unknown
    subjects from their course code).
    """
    application = tutor_service.approve_application(db, application_id)
    return ReviewApplicationResponse(
        application_id=application.id,
        status=application.status,
        message="Application approved.",
    )


@router.post(
    "/tutor-applications/{application_id}/reject",
    response_model=ReviewApplicationResponse,
    summary="Reject a tutor application",
)
def reject_application(
    application_id: UUID,
    payload: Optional[RejectApplicationRequest] = None,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    reason = payload.reason if payload else None
    application = tutor_service.reject_application(db, application_id, reason=reason)
    return ReviewApplicationResponse(
        application_id=application.id,
        status=application.status,
        message="Application rejected.",
    )

# app/api/v1/endpoints/tutor.py
# Tutor onboarding endpoints
#
#   POST   /tutor/apply          → submit an application (verified students)
#   GET    /tutor/application    → latest application and its review state
#   GET    /tutor/availability   → weekly availability document
#   PUT    /tutor/availability   → replace it (validated), then run an allocation pass
#   GET    /tutor/subjects       → subjects the tutor teaches
#   POST   /tutor/subjects       → add a taught subject
#   DELETE /tutor/subjects       → remove a taught subject

import json

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import app.db.base  # noqa: F401
from app.core.dependencies import require_login, require_tutor, require_verified_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.subject import SubjectListResponse, SubjectResponse
from app.schemas.tutor import (
    AvailabilityResponse,
    AvailabilityUpdate,
    MessageResponse,
    TutorApplicationLookup,
    TutorApplicationResponse,
    TutorApplyRequest,
    TutorSubjectRequest,
)
from app.services import tutor_service

router = APIRouter()


# ── Application ───────────────────────────────────────────────────────────────

@router.post(
    "/apply",
    response_model=TutorApplicationResponse,
    status_code=201,
    summary="Apply to become a tutor",
)
def apply(
    payload: TutorApplyRequest,
    current_user: User = Depends(require_verified_user),
    db: Session = Depends(get_db),
):
    application = tutor_service.apply(
        db,
        current_user,
        subjects=payload.subjects,
        cgpa=payload.cgpa,
        availability=payload.availability,
        transcript_path=payload.transcript_path,
    )
    return TutorApplicationResponse.model_validate(application)


@router.get(
    "/application",
    response_model=TutorApplicationLookup,
    summary="Latest own tutor application",
)
def my_application(
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    application = tutor_service.latest_application(db, current_user.id)
    return TutorApplicationLookup(
        application=TutorApplicationResponse.model_validate(application) if application else None
    )


# ── Availability ──────────────────────────────────────────────────────────────

@router.get(
    "/availability",
    response_model=AvailabilityResponse,
    summary="Read own weekly availability",
)
def get_availability(
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    application = tutor_service.latest_application(db, current_user.id)
    if not application:
        return AvailabilityResponse()
    doc = json.loads(application.availability) if application.availability else None
    return AvailabilityResponse(availability=doc, status=application.status)


@router.put(
    "/availability",
    response_model=AvailabilityResponse,
    summary="Replace own weekly availability",
)
def put_availability(
    payload: AvailabilityUpdate,
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    """
    Stored on the latest application. Queued sessions are re-offered to the
    allocator right after the update.
    """
    doc = tutor_service.update_availability(db, current_user, payload.availability)
    application = tutor_service.latest_application(db, current_user.id)
    return AvailabilityResponse(
        availability=json.loads(doc.to_json()),
        status=application.status if application else None,
    )


# ── Subjects ──────────────────────────────────────────────────────────────────

@router.get(
    "/subjects",
    response_model=SubjectListResponse,
    summary="Subjects the current tutor teaches",
)
def list_subjects(
    current_user: User = Depends(require_tutor),
    db: Session = Depends(get_db),
):
    subjects = tutor_service.list_tutor_subjects(db, current_user)
    return SubjectListResponse(subjects=[SubjectResponse.model_validate(s) for s in subjects])


@router.post(
    "/subjects",
    response_model=MessageResponse,
    status_code=201,
    summary="Add a taught subject",
)
def add_subject(
    payload: TutorSubjectRequest,
    current_user: User = Depends(require_tutor),
    db: Session = Depends(get_db),
):
    tutor_service.add_subject(db, current_user, payload.subject_id)
    return MessageResponse(message="Subject added.")


@router.delete(
    "/subjects",
    response_model=MessageResponse,
    summary="Remove a taught subject",
)
def remove_subject(
    payload: TutorSubjectRequest,
    current_user: User = Depends(require_tutor),
    db: Session = Depends(get_db),
):
    tutor_service.remove_subject(db, current_user, payload.subject_id)
    return MessageResponse(message="Subject removed.")

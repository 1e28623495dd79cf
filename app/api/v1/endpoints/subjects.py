# app/api/v1/endpoints/subjects.py
# Public subject catalogue and bookable slot suggestions

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import app.db.base  # noqa: F401
from app.core.config import settings
from app.core.dependencies import require_login
from app.core.exceptions import NotFoundError, ValidationFailedError
from app.db.session import get_db
from app.models.subject import Subject
from app.models.user import User
from app.schemas.subject import SlotItem, SlotListResponse, SubjectListResponse, SubjectResponse
from app.services import allocator, tutor_service

router = APIRouter()


@router.get(
    "/",
    response_model=SubjectListResponse,
    summary="List / search subjects",
)
def list_subjects(
    q: Optional[str] = Query(None, description="Matches code, title or aliases"),
    db: Session = Depends(get_db),
):
    subjects = tutor_service.search_subjects(db, q)
    return SubjectListResponse(subjects=[SubjectResponse.model_validate(s) for s in subjects])


@router.get(
    "/{subject_id}/slots",
    response_model=SlotListResponse,
    summary="Bookable start times for a subject",
)
def subject_slots(
    subject_id: UUID,
    duration_min: int = Query(60),
    days: int = Query(7, ge=1, le=14),
    current_user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    if not settings.min_duration_min <= duration_min <= settings.max_duration_min:
        raise ValidationFailedError(
            f"Duration must be between {settings.min_duration_min} and "
            f"{settings.max_duration_min} minutes."
        )
    if not db.query(Subject.id).filter(Subject.id == subject_id).first():
        raise NotFoundError("Subject not found.")

    slots = allocator.suggest_slots(db, subject_id, duration_min, days=days)
    return SlotListResponse(
        subject_id=subject_id,
        duration_min=duration_min,
        slots=[SlotItem(start=s["start"], end=s["end"], tutor_count=s["tutor_count"]) for s in slots],
    )

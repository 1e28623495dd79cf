# app/schemas/tutor.py
# Pydantic request/response models for tutor onboarding endpoints

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


# ── Application ───────────────────────────────────────────────────────────────

class TutorApplyRequest(BaseModel):
    subjects: str                          # Free text, one course per line / comma
    cgpa: Optional[float] = None
    availability: Optional[Any] = None     # Weekly availability document
    transcript_path: Optional[str] = None  # Object-store key, uploaded client-side

    @field_validator("subjects")
    @classmethod
    def subjects_not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Subjects cannot be empty")
        return v

    @field_validator("cgpa")
    @classmethod
    def cgpa_range(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not 0 <= v <= 4.0:
            raise ValueError("CGPA must be between 0 and 4.0")
        return v


class TutorApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    status: str                 # PENDING | APPROVED | REJECTED
    subjects: str
    cgpa: Optional[float] = None
    availability: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime


class TutorApplicationLookup(BaseModel):
    application: Optional[TutorApplicationResponse] = None


# ── Availability ──────────────────────────────────────────────────────────────

class AvailabilityUpdate(BaseModel):
    # JSON text or the decoded list of day records
    availability: Any


class AvailabilityResponse(BaseModel):
    availability: Optional[List[Any]] = None
    status: Optional[str] = None


# ── Subjects ──────────────────────────────────────────────────────────────────

class TutorSubjectRequest(BaseModel):
    subject_id: UUID


class MessageResponse(BaseModel):
    message: str

# app/schemas/session.py
# Pydantic request/response models for tutoring session endpoints

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ── Requests (input) ──────────────────────────────────────────────────────────

class SessionCreate(BaseModel):
    """Student books a session. Leave tutor_id empty to let the allocator pick."""
    subject_id: UUID
    scheduled_at: datetime
    duration_min: Optional[int] = None      # 30-180, defaults to 60
    tutor_id: Optional[UUID] = None


class RescheduleRequest(BaseModel):
    scheduled_at: datetime


class CheckConflictRequest(BaseModel):
    scheduled_at: datetime


class CancelRequest(BaseModel):
    reason: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def reason_length(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if len(v) > 500:
            raise ValueError("Reason too long (max 500 characters)")
        return v or None


class RejectRequest(BaseModel):
    reason: Optional[str] = None


class ProposeTimeRequest(BaseModel):
    proposed_at: datetime
    proposed_end_at: Optional[datetime] = None
    note: Optional[str] = None

    @field_validator("note")
    @classmethod
    def note_length(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > 500:
            raise ValueError("Note too long (max 500 characters)")
        return v


class RatingCreate(BaseModel):
    # Range is checked by the service so that it answers 400, not 422
    rating: int
    comment: Optional[str] = None


class ReviewCreate(BaseModel):
    rating: int
    feedback: Optional[str] = None
    confirmed: Optional[bool] = None


# ── Responses (output) ────────────────────────────────────────────────────────

class PartySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: Optional[str] = None
    email: str
    avatar_url: Optional[str] = None
    avg_rating: Optional[float] = None
    rating_count: int = 0


class SubjectSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    title: str


class SessionResponse(BaseModel):
    """Full session detail, as seen by either party."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: str                   # PENDING | ACCEPTED | REJECTED | CANCELLED | COMPLETED

    student_id: UUID
    tutor_id: Optional[UUID] = None
    subject_id: UUID
    student: Optional[PartySummary] = None
    tutor: Optional[PartySummary] = None
    subject: Optional[SubjectSummary] = None

    scheduled_at: datetime
    duration_min: int
    ends_at: Optional[datetime] = None

    # Proposal
    proposed_at: Optional[datetime] = None
    proposed_end_at: Optional[datetime] = None
    proposed_note: Optional[str] = None
    proposal_status: Optional[str] = None
    proposed_by_user_id: Optional[UUID] = None

    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    rescheduled_at: Optional[datetime] = None

    calendar_uid: Optional[str] = None
    calendar_sequence: int = 0

    created_at: datetime
    updated_at: datetime


class SessionListResponse(BaseModel):
    sessions: List[SessionResponse]


class RescheduleResponse(BaseModel):
    session: SessionResponse
    queued: bool                 # True when the tutor was released for reallocation


class ConflictCheckResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_conflict: bool = Field(alias="studentConflict")
    tutor_conflict: bool = Field(alias="tutorConflict")


class RatingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    tutor_id: UUID
    rating: int
    comment: Optional[str] = None
    created_at: datetime


class TutorStats(BaseModel):
    avg_rating: float
    rating_count: int


class RatingCreateResponse(BaseModel):
    rating: RatingResponse
    tutor_stats: TutorStats


class RatingLookupResponse(BaseModel):
    rating: Optional[RatingResponse] = None


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    rating: int
    feedback: Optional[str] = None
    confirmed: Optional[bool] = None
    created_at: datetime


# ── Batch Jobs ────────────────────────────────────────────────────────────────

class AllocateResponse(BaseModel):
    queued: int
    assigned: int


class AutoCompleteResponse(BaseModel):
    checked: int
    completed: int


class RemindersResponse(BaseModel):
    checked: int
    sent: int


class MessageResponse(BaseModel):
    message: str

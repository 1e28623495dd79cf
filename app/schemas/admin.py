# app/schemas/admin.py

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


# ── Tutor Applications ────────────────────────────────────────────────────────

class ApplicantSummary(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None
    programme: Optional[str] = None
    verification_status: str


class AdminApplicationItem(BaseModel):
    id: UUID
    status: str
    subjects: str
    cgpa: Optional[float] = None
    transcript_path: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime
    user: ApplicantSummary


class AdminApplicationListResponse(BaseModel):
    applications: List[AdminApplicationItem]


class RejectApplicationRequest(BaseModel):
    reason: Optional[str] = None


class ReviewApplicationResponse(BaseModel):
    application_id: UUID
    status: str
    message: str


class MessageResponse(BaseModel):
    message: str

# app/schemas/subject.py

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class SubjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    title: str
    aliases: Optional[str] = None


class SubjectListResponse(BaseModel):
    subjects: List[SubjectResponse]


class SlotItem(BaseModel):
    start: datetime
    end: datetime
    tutor_count: int             # Tutors free for the whole slot


class SlotListResponse(BaseModel):
    subject_id: UUID
    duration_min: int
    slots: List[SlotItem]

# app/schemas/chat.py
# Pydantic request/response models for session chat endpoints

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


# ── Requests (input) ──────────────────────────────────────────────────────────

class MessageCreate(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def text_not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message cannot be empty")
        if len(v) > 2000:
            raise ValueError("Message too long (max 2000 characters)")
        return v


class TypingUpdate(BaseModel):
    is_typing: bool


# ── Responses (output) ────────────────────────────────────────────────────────

class ChannelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    student_id: UUID
    tutor_id: UUID
    close_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime


class ChannelListItem(BaseModel):
    id: UUID
    session_id: UUID
    name: str                    # Counterparty display name
    subject_name: str
    last_message: str
    last_at: datetime
    unread: int
    viewer_is_student: bool
    is_open: bool
    close_at: Optional[datetime] = None


class ChannelListResponse(BaseModel):
    channels: List[ChannelListItem]


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    channel_id: UUID
    sender_id: UUID
    text: str
    created_at: datetime


class ReadReceipts(BaseModel):
    me_last_read_at: Optional[datetime] = None
    other_last_read_at: Optional[datetime] = None


class MessagePage(BaseModel):
    items: List[ChatMessageResponse]
    next_cursor: Optional[UUID] = None
    read: ReadReceipts


class UnreadTotalResponse(BaseModel):
    unread: int


class TypingResponse(BaseModel):
    other_typing: bool


class MessageResponse(BaseModel):
    message: str

# app/schemas/notification.py

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: UUID
    type: str
    title: str
    body: str
    viewer: Optional[str] = None     # STUDENT | TUTOR
    href: Optional[str] = None
    extra_data: Optional[Dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int
    total: int


class UnreadCountResponse(BaseModel):
    count: int


class MessageResponse(BaseModel):
    message: str

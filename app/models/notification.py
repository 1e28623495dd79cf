# app/models/notification.py
# In-app notification feed for all session events

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.db.base_class import Base
from app.db.types import JSONType, UTCDateTime, utcnow


class Notification(Base):
    """
    In-app notification for a user.
    Created by notification_service.py for all key session events.
    Delivered via GET /api/v1/notifications (polled by the bell icon).
    """
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # ── Type ──────────────────────────────────────────────────────────────────
    # One of notification_service.NOTIFICATION_TYPES (kept as a string so new
    # event types do not need a migration)
    notification_type = Column(String(64), nullable=False, index=True)

    # ── Content ───────────────────────────────────────────────────────────────
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)

    # ── Routing / Context ─────────────────────────────────────────────────────
    # Named extra_data (metadata is reserved by SQLAlchemy)
    # Always carries "viewer" (STUDENT | TUTOR) and "href"; session events add
    # "session_id" and "focus_session_id".
    extra_data = Column(JSONType, nullable=True)

    # ── Read Status ───────────────────────────────────────────────────────────
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    read_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)

    # ── Relationships ─────────────────────────────────────────────────────────
    user = relationship("User", back_populates="notifications")

    def __repr__(self) -> str:
        return (
            f"<Notification user={self.user_id} "
            f"type={self.notification_type} read={self.is_read}>"
        )

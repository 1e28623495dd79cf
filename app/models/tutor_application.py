# app/models/tutor_application.py
# Tutor onboarding: a student applies, an admin approves or rejects.
#
# The latest application also carries the tutor's weekly availability
# document (JSON text, see app/services/availability.py).

import uuid

from sqlalchemy import Column, Enum, Float, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from app.db.base_class import Base
from app.db.types import UTCDateTime, utcnow


class TutorApplication(Base):
    """
    Status lifecycle: PENDING → APPROVED | REJECTED
    A rejected tutor may apply again (new row).
    """
    __tablename__ = "tutor_applications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # ── Application Details ───────────────────────────────────────────────────
    subjects = Column(Text, nullable=False)          # Free text: "CSC1024 Programming, MTH1114"
    cgpa = Column(Float, nullable=True)
    availability = Column(Text, nullable=True)       # Weekly availability JSON
    transcript_path = Column(Text, nullable=True)    # Object-store key, uploaded client-side

    # ── Review ────────────────────────────────────────────────────────────────
    status = Column(
        Enum("PENDING", "APPROVED", "REJECTED", name="tutor_application_status_enum"),
        nullable=False,
        default="PENDING",
        index=True,
    )
    rejection_reason = Column(Text, nullable=True)
    reviewed_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="tutor_applications")

    def __repr__(self) -> str:
        return f"<TutorApplication user={self.user_id} status={self.status}>"

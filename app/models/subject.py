# app/models/subject.py
# Course subjects and the tutor ↔ subject teaching links

import uuid

from sqlalchemy import Column, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.base_class import Base
from app.db.types import UTCDateTime, utcnow


class Subject(Base):
    """A course, identified by its code (e.g. "CSC1024")."""
    __tablename__ = "subjects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(32), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    aliases = Column(Text, nullable=True)     # Comma-separated search aliases
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    tutor_links = relationship(
        "TutorSubject", back_populates="subject", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Subject {self.code}>"


class TutorSubject(Base):
    """
    Many-to-many: what a tutor teaches.
    Eligibility filter for allocation and direct booking.
    """
    __tablename__ = "tutor_subjects"
    __table_args__ = (
        UniqueConstraint("tutor_id", "subject_id", name="uq_tutor_subject"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tutor_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subject_id = Column(
        Uuid, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    tutor = relationship("User", back_populates="tutor_subjects")
    subject = relationship("Subject", back_populates="tutor_links")

    def __repr__(self) -> str:
        return f"<TutorSubject tutor={self.tutor_id} subject={self.subject_id}>"

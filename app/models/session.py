# app/models/session.py
# Tutoring sessions and their per-session satellites (rating, review, reminders)
#
# Status lifecycle:
#   PENDING  → ACCEPTED | REJECTED | CANCELLED
#   ACCEPTED → COMPLETED | CANCELLED
#   reschedule puts a non-terminal session back to PENDING
#
# Proposal sub-state (tutor suggests a new time, student answers):
#   None → PENDING → ACCEPTED | REJECTED
#
# Rows are never deleted: cancellation is a status transition.

import uuid
from datetime import timedelta

from sqlalchemy import (
    Boolean,
    Column,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.db.base_class import Base
from app.db.types import UTCDateTime, utcnow

SESSION_STATUSES = ("PENDING", "ACCEPTED", "REJECTED", "CANCELLED", "COMPLETED")
ACTIVE_STATUSES = ("PENDING", "ACCEPTED")                   # Occupy time on the calendar
TERMINAL_STATUSES = ("REJECTED", "CANCELLED", "COMPLETED")

PROPOSAL_STATUSES = ("PENDING", "ACCEPTED", "REJECTED")

DEFAULT_DURATION_MIN = 60


class TutoringSession(Base):
    """
    A scheduled tutoring engagement between one student and (eventually) one tutor.
    tutor_id stays NULL until the allocator (or a direct booking) assigns someone.
    ends_at is persisted for overlap queries; it always equals
    scheduled_at + duration_min unless a proposal set an explicit end.
    """
    __tablename__ = "tutoring_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # ── Parties ───────────────────────────────────────────────────────────────
    student_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tutor_id = Column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    subject_id = Column(
        Uuid, ForeignKey("subjects.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    # ── Timing ────────────────────────────────────────────────────────────────
    scheduled_at = Column(UTCDateTime, nullable=False, index=True)
    duration_min = Column(Integer, nullable=False, default=DEFAULT_DURATION_MIN)
    ends_at = Column(UTCDateTime, nullable=True, index=True)   # NULL only on legacy rows

    # ── Status ────────────────────────────────────────────────────────────────
    status = Column(
        Enum(*SESSION_STATUSES, name="session_status_enum"),
        nullable=False,
        default="PENDING",
        index=True,
    )

    # ── Proposal (tutor-initiated time change) ────────────────────────────────
    proposed_at = Column(UTCDateTime, nullable=True)
    proposed_end_at = Column(UTCDateTime, nullable=True)
    proposed_note = Column(Text, nullable=True)
    proposal_status = Column(
        Enum(*PROPOSAL_STATUSES, name="proposal_status_enum"),
        nullable=True,
    )
    proposed_by_user_id = Column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # ── Cancellation / Reschedule ─────────────────────────────────────────────
    cancelled_at = Column(UTCDateTime, nullable=True)
    cancel_reason = Column(Text, nullable=True)
    rescheduled_at = Column(UTCDateTime, nullable=True)

    # ── Calendar Invite Tracking ──────────────────────────────────────────────
    # UID is generated once; SEQUENCE bumps on every calendar-affecting change
    calendar_uid = Column(String(255), nullable=True)
    calendar_sequence = Column(Integer, nullable=False, default=0)

    # ── Reminder Email Handle (email provider batch id) ───────────────────────
    student_reminder_email_id = Column(String(255), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # ── Relationships ─────────────────────────────────────────────────────────
    student = relationship("User", foreign_keys=[student_id])
    tutor = relationship("User", foreign_keys=[tutor_id])
    subject = relationship("Subject")
    rating = relationship("SessionRating", back_populates="session", uselist=False)
    review = relationship("SessionReview", back_populates="session", uselist=False)
    chat_channel = relationship("ChatChannel", back_populates="session", uselist=False)

    @property
    def effective_end(self):
        """ends_at, or start + duration for legacy rows without one."""
        if self.ends_at is not None:
            return self.ends_at
        return self.scheduled_at + timedelta(minutes=self.duration_min or DEFAULT_DURATION_MIN)

    @property
    def is_closed(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return (
            f"<TutoringSession id={self.id} student={self.student_id} "
            f"tutor={self.tutor_id} status={self.status}>"
        )


class SessionRating(Base):
    """One star rating per completed session; feeds the tutor's cached average."""
    __tablename__ = "session_ratings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(
        Uuid,
        ForeignKey("tutoring_sessions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    student_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    tutor_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rating = Column(Integer, nullable=False)       # 1-5
    comment = Column(String(500), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    session = relationship("TutoringSession", back_populates="rating")

    def __repr__(self) -> str:
        return f"<SessionRating session={self.session_id} rating={self.rating}>"


class SessionReview(Base):
    """Post-session feedback; `confirmed` records whether the session really happened."""
    __tablename__ = "session_reviews"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(
        Uuid,
        ForeignKey("tutoring_sessions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    student_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    tutor_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating = Column(Integer, nullable=False)
    feedback = Column(Text, nullable=True)
    confirmed = Column(Boolean, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    session = relationship("TutoringSession", back_populates="review")


class SessionReminder(Base):
    """
    Ledger of reminders already fired.
    The (session_id, kind) unique constraint is what makes the reminder cron re-entrant.
    """
    __tablename__ = "session_reminders"
    __table_args__ = (
        UniqueConstraint("session_id", "kind", name="uq_session_reminder_kind"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(
        Uuid, ForeignKey("tutoring_sessions.id", ondelete="CASCADE"), nullable=False
    )
    kind = Column(
        Enum("H24", "H1", "M5", name="reminder_kind_enum"),
        nullable=False,
    )
    send_at = Column(UTCDateTime, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

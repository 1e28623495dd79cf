# app/models/user.py
# Base user model for all roles: STUDENT | TUTOR | ADMIN
# Credentials live with the external identity provider; we key users by email.

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Enum,
    Float,
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

user_role_enum = Enum("STUDENT", "TUTOR", "ADMIN", name="user_role_enum")

class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # ── Identity ──────────────────────────────────────────────────────────────
    email = Column(String(255), unique=True, nullable=False, index=True)  # Stored lower-cased
    name = Column(String(255), nullable=True)
    avatar_url = Column(Text, nullable=True)
    programme = Column(String(255), nullable=True)

    # ── Role ──────────────────────────────────────────────────────────────────
    # Primary role; extra roles (e.g. a student approved as tutor) live in
    # user_role_assignments.
    role = Column(user_role_enum, nullable=False, default="STUDENT")

    # ── Verification / Status ─────────────────────────────────────────────────
    # AUTO_VERIFIED is set once the student-card check passes
    verification_status = Column(
        Enum("PENDING", "AUTO_VERIFIED", "REJECTED", name="verification_status_enum"),
        nullable=False,
        default="PENDING",
        index=True,
    )
    is_tutor_approved = Column(Boolean, nullable=False, default=False, index=True)
    is_deactivated = Column(Boolean, nullable=False, default=False)

    # ── Tutor Rating Cache (recomputed on every rating) ───────────────────────
    avg_rating = Column(Float, nullable=True)
    rating_count = Column(Integer, nullable=False, default=0)

    # ── Timestamps ────────────────────────────────────────────────────────────
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # ── Relationships ─────────────────────────────────────────────────────────
    role_assignments = relationship(
        "UserRoleAssignment", back_populates="user", cascade="all, delete-orphan"
    )
    tutor_subjects = relationship(
        "TutorSubject", back_populates="tutor", cascade="all, delete-orphan"
    )
    tutor_applications = relationship(
        "TutorApplication", back_populates="user", cascade="all, delete-orphan"
    )
    notifications = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def is_tutor(self) -> bool:
        return (
            self.is_tutor_approved
            or self.role == "TUTOR"
            or any(r.role == "TUTOR" for r in self.role_assignments)
        )

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN" or any(r.role == "ADMIN" for r in self.role_assignments)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role}>"


class UserRoleAssignment(Base):
    """Additional roles granted to a user (one row per role)."""
    __tablename__ = "user_role_assignments"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_role"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(user_role_enum, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="role_assignments")

    def __repr__(self) -> str:
        return f"<UserRoleAssignment user={self.user_id} role={self.role}>"

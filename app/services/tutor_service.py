# app/services/tutor_service.py
# Tutor onboarding: applications, admin review, availability, taught subjects
#
# Approval is one transaction:
#   application APPROVED → TUTOR role assignment → users.is_tutor_approved
#   → Subject upsert per line of the free-text subject list → TutorSubject links

import logging
import re
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError
from app.db.types import utcnow
from app.models.subject import Subject, TutorSubject
from app.models.tutor_application import TutorApplication
from app.models.user import User, UserRoleAssignment
from app.services import allocator, notification_service
from app.services.availability import WeeklyAvailability, validate_availability

logger = logging.getLogger("tutorlink.tutors")

COURSE_CODE = re.compile(r"\b[A-Z]{2,4}\d{3,5}\b")
SUBJECT_SEPARATORS = re.compile(r"[\n,;]")


# ── Subject Text Parsing ──────────────────────────────────────────────────────

def split_subjects(raw: str) -> List[str]:
    return [s.strip() for s in SUBJECT_SEPARATORS.split(raw or "") if s.strip()]


def parse_subject_line(line: str) -> Tuple[str, str]:
    """
    "CSC1024 Programming Principles" → ("CSC1024", "Programming Principles")
    A line without a recognisable course code becomes its own upper-cased code.
    """
    match = COURSE_CODE.search(line.upper())
    if not match:
        return line.upper().strip()[:32], line.strip()
    code = match.group(0)
    rest = line[match.end():].strip()
    return code, rest or line.strip()


# ── Applications ──────────────────────────────────────────────────────────────

def latest_application(db: Session, user_id: UUID) -> Optional[TutorApplication]:
    return (
        db.query(TutorApplication)
        .filter(TutorApplication.user_id == user_id)
        .order_by(TutorApplication.created_at.desc())
        .first()
    )


def apply(
    db: Session,
    user: User,
    subjects: str,
    cgpa: Optional[float] = None,
    availability=None,
    transcript_path: Optional[str] = None,
) -> TutorApplication:
    if user.is_tutor_approved:
        raise ConflictError("You are already an approved tutor.")
    current = latest_application(db, user.id)
    if current and current.status == "PENDING":
        raise ConflictError("You already have a pending application.")

    doc_json = None
    if availability is not None:
        doc_json = validate_availability(availability).to_json()

    application = TutorApplication(
        user_id=user.id,
        subjects=subjects,
        cgpa=cgpa,
        availability=doc_json,
        transcript_path=transcript_path,
        status="PENDING",
    )
    db.add(application)
    db.commit()
    logger.info("Tutor application %s submitted by user %s", application.id, user.id)
    return application


def list_applications(db: Session, status: Optional[str] = "PENDING") -> List[TutorApplication]:
    query = db.query(TutorApplication)
    if status:
        query = query.filter(TutorApplication.status == status)
    return query.order_by(TutorApplication.created_at.desc()).all()


def _get_application(db: Session, application_id: UUID) -> TutorApplication:
    application = db.query(TutorApplication).filter(TutorApplication.id == application_id).first()
    if not application:
        raise NotFoundError("Application not found.")
    return application


def approve_application(db: Session, application_id: UUID, now: Optional[datetime] = None) -> TutorApplication:
    application = _get_application(db, application_id)
    if application.status == "APPROVED":
        raise ConflictError("Already approved.")
    user_id = application.user_id

    try:
        application.status = "APPROVED"
        application.reviewed_at = now or utcnow()
        application.rejection_reason = None

        has_role = (
            db.query(UserRoleAssignment.id)
            .filter(UserRoleAssignment.user_id == user_id, UserRoleAssignment.role == "TUTOR")
            .first()
        )
        if not has_role:
            db.add(UserRoleAssignment(user_id=user_id, role="TUTOR"))

        db.query(User).filter(User.id == user_id).update(
            {"is_tutor_approved": True}, synchronize_session=False
        )

        for line in split_subjects(application.subjects):
            code, title = parse_subject_line(line)
            # Existing subjects keep their title
            subject = db.query(Subject).filter(Subject.code == code).first()
            if subject is None:
                subject = Subject(code=code, title=title)
                db.add(subject)
                db.flush()
            linked = (
                db.query(TutorSubject.id)
                .filter(TutorSubject.tutor_id == user_id, TutorSubject.subject_id == subject.id)
                .first()
            )
            if not linked:
                db.add(TutorSubject(tutor_id=user_id, subject_id=subject.id))
                db.flush()
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Application was reviewed concurrently, please retry.")

    # Role assignments changed behind the relationship cache
    db.expire_all()
    logger.info("Tutor application %s approved", application.id)
    notification_service.application_reviewed(db, user_id, approved=True)
    return application


def reject_application(
    db: Session,
    application_id: UUID,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TutorApplication:
    application = _get_application(db, application_id)
    if application.status == "APPROVED":
        raise ConflictError("Approved applications cannot be rejected.")

    reason = (reason or "").strip() or None
    application.status = "REJECTED"
    application.reviewed_at = now or utcnow()
    application.rejection_reason = reason
    db.commit()

    logger.info("Tutor application %s rejected", application.id)
    notification_service.application_reviewed(db, application.user_id, approved=False, reason=reason)
    return application


# ── Availability ──────────────────────────────────────────────────────────────

def update_availability(db: Session, user: User, raw) -> WeeklyAvailability:
    """
    Store a validated weekly document on the latest application, then run an
    allocation pass so queued sessions can pick up the new hours.
    """
    doc = validate_availability(raw)
    application = latest_application(db, user.id)
    if not application:
        raise NotFoundError("No tutor application found.")

    application.availability = doc.to_json()
    db.commit()

    try:
        allocator.allocate_pending_sessions(db)
    except Exception:
        db.rollback()
        logger.exception("Allocation pass after availability update failed")
    return doc


# ── Subjects ──────────────────────────────────────────────────────────────────

def add_subject(db: Session, tutor: User, subject_id: UUID) -> TutorSubject:
    if not db.query(Subject.id).filter(Subject.id == subject_id).first():
        raise NotFoundError("Subject not found.")
    link = TutorSubject(tutor_id=tutor.id, subject_id=subject_id)
    try:
        db.add(link)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Already added.")
    return link


def remove_subject(db: Session, tutor: User, subject_id: UUID) -> None:
    db.query(TutorSubject).filter(
        TutorSubject.tutor_id == tutor.id, TutorSubject.subject_id == subject_id
    ).delete(synchronize_session=False)
    db.commit()


def list_tutor_subjects(db: Session, tutor: User) -> List[Subject]:
    return (
        db.query(Subject)
        .join(TutorSubject, TutorSubject.subject_id == Subject.id)
        .filter(TutorSubject.tutor_id == tutor.id)
        .order_by(Subject.code.asc())
        .all()
    )


def search_subjects(db: Session, q: Optional[str] = None, limit: int = 100) -> List[Subject]:
    query = db.query(Subject)
    term = (q or "").strip()
    if term:
        like = f"%{term.lower()}%"
        query = query.filter(
            or_(
                func.lower(Subject.code).like(like),
                func.lower(Subject.title).like(like),
                func.lower(func.coalesce(Subject.aliases, "")).like(like),
            )
        )
    return query.order_by(Subject.code.asc()).limit(limit).all()

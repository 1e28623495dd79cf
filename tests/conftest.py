"""
Shared fixtures

In-memory SQLite (one shared connection) rebuilt for every test, fakeredis for
the typing indicator, and factories for users, tutors, subjects and sessions.
Environment is set before the app is imported so Settings picks it up.
"""

import json
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["ALLOCATOR_SECRET"] = "alloc-secret"
os.environ["AUTO_COMPLETE_SECRET"] = "auto-secret"
os.environ["CRON_SECRET"] = "cron-secret"
os.environ["SENDGRID_API_KEY"] = ""
os.environ["CAMPUS_TIMEZONE"] = "UTC"

sys.path.insert(0, str(Path(__file__).parent.parent))

import fakeredis  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import app.db.base  # noqa: E402,F401
from app.core.dependencies import get_redis  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.db.base_class import Base  # noqa: E402
from app.db.session import SessionLocal, engine, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.session import TutoringSession  # noqa: E402
from app.models.subject import Subject, TutorSubject  # noqa: E402
from app.models.tutor_application import TutorApplication  # noqa: E402
from app.models.user import User, UserRoleAssignment  # noqa: E402

DAYS = ["SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"]

# Every day, all day
ALWAYS_AVAILABLE = json.dumps(
    [{"day": d, "off": False, "slots": [{"start": "00:00", "end": "24:00"}]} for d in DAYS]
)


def future_slot(days: int = 2, hour: int = 10, minute: int = 0) -> datetime:
    """A UTC start time `days` ahead at a fixed wall-clock time."""
    base = datetime.now(timezone.utc) + timedelta(days=days)
    return base.replace(hour=hour, minute=minute, second=0, microsecond=0)


# ── Database ──────────────────────────────────────────────────────────────────

@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture(scope="function")
def client(db, redis_client):
    def _get_db():
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_redis] = lambda: redis_client
    with_client = TestClient(app, raise_server_exceptions=False)
    try:
        yield with_client
    finally:
        app.dependency_overrides.clear()


# ── Factories ─────────────────────────────────────────────────────────────────

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(email=None, name=None, role="STUDENT", verified=True, deactivated=False):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@campus.edu",
            name=name or f"User {counter['n']}",
            role=role,
            verification_status="AUTO_VERIFIED" if verified else "PENDING",
            is_deactivated=deactivated,
            rating_count=0,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_subject(db):
    def _make(code="CSC1024", title="Programming Principles"):
        subject = Subject(code=code, title=title)
        db.add(subject)
        db.commit()
        return subject

    return _make


@pytest.fixture
def make_tutor(db, make_user):
    """Approved, verified tutor teaching `subjects`, with an availability document."""
    def _make(subjects=(), availability=ALWAYS_AVAILABLE, email=None, name=None):
        tutor = make_user(email=email, name=name)
        tutor.is_tutor_approved = True
        db.add(UserRoleAssignment(user_id=tutor.id, role="TUTOR"))
        db.add(TutorApplication(
            user_id=tutor.id,
            subjects=", ".join(s.code for s in subjects) or "CSC1024",
            availability=availability,
            status="APPROVED",
        ))
        for subject in subjects:
            db.add(TutorSubject(tutor_id=tutor.id, subject_id=subject.id))
        db.commit()
        db.refresh(tutor)
        return tutor

    return _make


@pytest.fixture
def make_session(db):
    """Insert a session row directly (bypasses lead-time checks)."""
    def _make(student, subject, start, tutor=None, duration=60, status="PENDING", ends_at="auto"):
        session = TutoringSession(
            student_id=student.id,
            tutor_id=tutor.id if tutor else None,
            subject_id=subject.id,
            scheduled_at=start,
            duration_min=duration,
            ends_at=start + timedelta(minutes=duration) if ends_at == "auto" else ends_at,
            status=status,
            calendar_sequence=0,
        )
        db.add(session)
        db.commit()
        return session

    return _make


@pytest.fixture
def auth():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}

    return _headers


@pytest.fixture
def future():
    return future_slot


@pytest.fixture
def always_available():
    return json.loads(ALWAYS_AVAILABLE)


def parse_dt(value: str) -> datetime:
    """ISO string from a JSON response → aware datetime (accepts a trailing Z)."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


@pytest.fixture
def as_datetime():
    return parse_dt

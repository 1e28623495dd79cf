# app/db/init_db.py
# Seed initial data into the database
# Run once after migrations: python -m app.db.init_db
#
# Creates:
#   1. Admin user (from env vars or defaults); credentials stay with the
#      identity provider, this only grants the ADMIN role to that email
#   2. Starter course catalogue (subjects)

import os

from dotenv import load_dotenv

load_dotenv()

import app.db.base  # noqa: E402,F401
from app.db.session import SessionLocal  # noqa: E402
from app.models.subject import Subject  # noqa: E402
from app.models.user import User  # noqa: E402

DEFAULT_SUBJECTS = [
    ("CSC1024", "Programming Principles"),
    ("CSC2103", "Data Structures and Algorithms"),
    ("CSC2014", "Digital Image Processing"),
    ("MTH1114", "Computer Mathematics"),
    ("MTH2014", "Linear Algebra"),
    ("ACC1024", "Principles of Accounting"),
    ("ECO1014", "Microeconomics"),
    ("ENG1044", "English for Computer Technology Studies"),
]


def seed_admin(db) -> None:
    """Create the admin user if it doesn't exist."""
    admin_email = os.getenv("ADMIN_EMAIL", "admin@tutorlink.app").strip().lower()
    admin_name = os.getenv("ADMIN_NAME", "TutorLink Admin")

    existing = db.query(User).filter(User.email == admin_email).first()
    if existing:
        if existing.role != "ADMIN":
            existing.role = "ADMIN"
            print(f"  Admin role granted: {admin_email}")
        else:
            print(f"  Admin already exists: {admin_email}")
        return

    db.add(User(
        email=admin_email,
        name=admin_name,
        role="ADMIN",
        verification_status="AUTO_VERIFIED",
    ))
    db.flush()
    print(f"  Admin created: {admin_email}")


def seed_subjects(db) -> None:
    """Create the starter subjects that are missing; existing titles are kept."""
    created = 0
    for code, title in DEFAULT_SUBJECTS:
        if db.query(Subject.id).filter(Subject.code == code).first():
            continue
        db.add(Subject(code=code, title=title))
        created += 1
    db.flush()
    print(f"  Subjects created: {created} (of {len(DEFAULT_SUBJECTS)})")


def main() -> None:
    print("Seeding database...")
    db = SessionLocal()
    try:
        seed_admin(db)
        seed_subjects(db)
        db.commit()
        print("Done.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()

# app/db/base.py
# Alembic model registry: imports Base + every model so Alembic detects all tables.
# Do NOT import this file from model files (use app.db.base_class instead).
# This file is only imported by:
#   - alembic/env.py        (schema detection)
#   - app/db/init_db.py     (seeding)
#   - endpoint modules      (so relationship() strings resolve)

from app.db.base_class import Base  # noqa: F401

# ── Import all models here so Alembic can detect them ────────────────────────
# Order matters: parent tables before child tables (foreign key dependencies)

from app.models.user import User, UserRoleAssignment                    # noqa: F401, E402
from app.models.subject import Subject, TutorSubject                    # noqa: F401, E402
from app.models.tutor_application import TutorApplication               # noqa: F401, E402
from app.models.session import (                                        # noqa: F401, E402
    TutoringSession,
    SessionRating,
    SessionReview,
    SessionReminder,
)
from app.models.chat import ChatChannel, ChatMessage, ChatRead          # noqa: F401, E402
from app.models.notification import Notification                       # noqa: F401, E402

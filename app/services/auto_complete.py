# app/services/auto_complete.py
# Auto-completion sweep
#
# ACCEPTED sessions whose end (ends_at, or scheduled_at + duration_min for
# legacy rows) is at least the grace period in the past are flipped to
# COMPLETED. Each flip is a conditional update on status = ACCEPTED, so
# concurrent or repeated sweeps complete a session exactly once. Only the
# invocation that won the flip opens the chat window and notifies.
#
# Triggers:
#   - lazily from the session list endpoints (run_sweep_quietly)
#   - POST /api/v1/sessions/auto-complete (shared secret)
#   - python -m app.jobs.auto_complete (external scheduler)

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import Interval, String, cast, func, literal
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import compare_and_swap
from app.db.types import utcnow
from app.models.session import DEFAULT_DURATION_MIN, TutoringSession
from app.services import chat_service, notification_service

logger = logging.getLogger("tutorlink.auto_complete")


def effective_end_expr(dialect_name: str):
    """SQL twin of TutoringSession.effective_end for the given backend."""
    minutes = func.coalesce(TutoringSession.duration_min, DEFAULT_DURATION_MIN)
    if dialect_name == "sqlite":
        computed = func.datetime(
            TutoringSession.scheduled_at,
            literal("+") + cast(minutes, String) + literal(" minutes"),
        )
    else:
        computed = TutoringSession.scheduled_at + func.make_interval(
            0, 0, 0, 0, 0, minutes, type_=Interval()
        )
    return func.coalesce(TutoringSession.ends_at, computed)


def auto_complete_due_sessions(
    db: Session,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> dict:
    """
    Complete every overdue ACCEPTED session.
    Returns {"checked": <candidates seen>, "completed": <flipped by this call>}.
    """
    now = now or utcnow()
    cutoff = now - timedelta(minutes=settings.auto_complete_grace_minutes)

    # The due test runs in SQL so the batch limit only counts due rows
    end_expr = effective_end_expr(db.get_bind().dialect.name)
    query = (
        db.query(TutoringSession)
        .filter(TutoringSession.status == "ACCEPTED", end_expr <= cutoff)
        .order_by(end_expr.asc(), TutoringSession.id.asc())
    )
    if limit:
        query = query.limit(limit)

    due = [s for s in query.all() if s.effective_end <= cutoff]

    jobs = [(s.id, s.student_id, s.tutor_id, s.effective_end) for s in due]
    completed = 0
    for session_id, student_id, tutor_id, end in jobs:
        flipped = compare_and_swap(
            db,
            TutoringSession,
            session_id,
            expected={"status": "ACCEPTED"},
            values={"status": "COMPLETED", "updated_at": now},
        )
        if not flipped:
            db.rollback()
            continue
        db.commit()
        completed += 1

        try:
            session = db.query(TutoringSession).filter(TutoringSession.id == session_id).one()
            chat_service.upsert_channel(db, session, close_at=chat_service.chat_close_at(end))
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Chat window open failed for session %s", session_id)

        notification_service.session_completed(db, student_id, tutor_id, session_id)

    if jobs:
        logger.info("Auto-complete sweep: checked=%d completed=%d", len(jobs), completed)
    return {"checked": len(jobs), "completed": completed}


def run_sweep_quietly(db: Session, now: Optional[datetime] = None) -> None:
    """Lazy trigger for read endpoints: bounded batch, never raises."""
    try:
        auto_complete_due_sessions(db, now=now, limit=settings.auto_complete_lazy_batch)
    except Exception:
        db.rollback()
        logger.exception("Lazy auto-complete sweep failed")

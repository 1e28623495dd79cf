"""
Unit tests for the auto-completion sweep and the reminder ledger
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from app.models.chat import ChatChannel
from app.models.notification import Notification
from app.models.session import SessionReminder
from app.services.auto_complete import auto_complete_due_sessions, run_sweep_quietly
from app.services.reminder_service import send_due_reminders

UTC = timezone.utc
NOW = datetime(2026, 10, 19, 18, 0, tzinfo=UTC)


@pytest.mark.unit
class TestAutoComplete:
    """ACCEPTED and past end + grace → COMPLETED, exactly once"""

    def test_completes_overdue_session(self, db, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        start = NOW - timedelta(hours=2)
        session = make_session(make_user(), subject, start, tutor=tutor, status="ACCEPTED")

        result = auto_complete_due_sessions(db, now=NOW)

        assert result == {"checked": 1, "completed": 1}
        db.refresh(session)
        assert session.status == "COMPLETED"

    def test_chat_window_is_end_plus_eight_hours(self, db, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        start = NOW - timedelta(hours=2)
        session = make_session(make_user(), subject, start, tutor=tutor, status="ACCEPTED")

        auto_complete_due_sessions(db, now=NOW)

        channel = db.query(ChatChannel).filter(ChatChannel.session_id == session.id).one()
        assert channel.close_at == start + timedelta(hours=1) + timedelta(hours=8)

    def test_second_sweep_is_a_no_op(self, db, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        make_session(student, subject, NOW - timedelta(hours=2), tutor=tutor, status="ACCEPTED")

        auto_complete_due_sessions(db, now=NOW)
        second = auto_complete_due_sessions(db, now=NOW)

        assert second == {"checked": 0, "completed": 0}
        completed_notes = (
            db.query(Notification)
            .filter(Notification.notification_type == "SESSION_COMPLETED")
            .count()
        )
        assert completed_notes == 2  # student + tutor, once

    def test_grace_period(self, db, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        # Ended 10 minutes ago, grace is 15
        session = make_session(
            make_user(), subject, NOW - timedelta(minutes=70), tutor=tutor, status="ACCEPTED"
        )

        assert auto_complete_due_sessions(db, now=NOW)["completed"] == 0
        db.refresh(session)
        assert session.status == "ACCEPTED"

    def test_pending_sessions_are_not_completed(self, db, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        session = make_session(make_user(), subject, NOW - timedelta(hours=3), tutor=tutor, status="PENDING")

        auto_complete_due_sessions(db, now=NOW)

        db.refresh(session)
        assert session.status == "PENDING"

    def test_legacy_row_without_end_uses_duration(self, db, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        session = make_session(
            make_user(), subject, NOW - timedelta(hours=3), tutor=tutor,
            duration=90, status="ACCEPTED", ends_at=None,
        )

        assert auto_complete_due_sessions(db, now=NOW)["completed"] == 1
        db.refresh(session)
        assert session.status == "COMPLETED"

    def test_batch_limit_counts_only_due_rows(self, db, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        # Legacy row started earlier but still running (ends at NOW)
        running = make_session(
            make_user(), subject, NOW - timedelta(hours=3), tutor=tutor,
            duration=180, status="ACCEPTED", ends_at=None,
        )
        due = make_session(make_user(), subject, NOW - timedelta(hours=2), tutor=tutor, status="ACCEPTED")

        result = auto_complete_due_sessions(db, now=NOW, limit=1)

        assert result == {"checked": 1, "completed": 1}
        db.refresh(due)
        db.refresh(running)
        assert due.status == "COMPLETED"
        assert running.status == "ACCEPTED"

    def test_quiet_sweep_never_raises(self, db, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr("app.services.auto_complete.auto_complete_due_sessions", boom)
        run_sweep_quietly(db, now=NOW)


@pytest.mark.unit
class TestReminders:
    """24h / 1h / 5m reminders recorded once per session and kind"""

    def test_one_hour_reminder(self, db, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        session = make_session(
            student, subject, NOW + timedelta(hours=1, seconds=20), tutor=tutor, status="ACCEPTED"
        )

        result = send_due_reminders(db, now=NOW)

        assert result == {"checked": 1, "sent": 1}
        ledger = db.query(SessionReminder).filter(SessionReminder.session_id == session.id).one()
        assert ledger.kind == "H1"
        recipients = {
            n.user_id
            for n in db.query(Notification).filter(Notification.notification_type == "SESSION_REMINDER")
        }
        assert recipients == {student.id, tutor.id}

    def test_overlapping_runs_send_once(self, db, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        make_session(make_user(), subject, NOW + timedelta(minutes=5, seconds=10), tutor=tutor, status="ACCEPTED")

        first = send_due_reminders(db, now=NOW)
        second = send_due_reminders(db, now=NOW + timedelta(seconds=5))

        assert first["sent"] == 1
        assert second == {"checked": 1, "sent": 0}

    def test_only_accepted_sessions(self, db, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        make_session(make_user(), subject, NOW + timedelta(hours=24), tutor=tutor, status="PENDING")

        assert send_due_reminders(db, now=NOW) == {"checked": 0, "sent": 0}

    def test_outside_window(self, db, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        make_session(make_user(), subject, NOW + timedelta(hours=2), tutor=tutor, status="ACCEPTED")

        assert send_due_reminders(db, now=NOW) == {"checked": 0, "sent": 0}

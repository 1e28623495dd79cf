"""
Unit tests for the interval conflict checker

Windows are half-open: [start, end). Only PENDING / ACCEPTED bookings
occupy time, and a booking with no end blocks everything.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from app.services.conflicts import check_conflicts, has_conflict, overlaps

T = datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc)


def booking(start, minutes=60, status="ACCEPTED", ends_at="auto"):
    return SimpleNamespace(
        scheduled_at=start,
        ends_at=start + timedelta(minutes=minutes) if ends_at == "auto" else ends_at,
        status=status,
    )


@pytest.mark.unit
class TestOverlaps:
    """Pure interval predicate"""

    def test_partial_overlap(self):
        assert overlaps(T, T + timedelta(hours=1), T + timedelta(minutes=30), T + timedelta(hours=2))

    def test_touching_edges_do_not_overlap(self):
        assert not overlaps(T, T + timedelta(hours=1), T + timedelta(hours=1), T + timedelta(hours=2))
        assert not overlaps(T + timedelta(hours=1), T + timedelta(hours=2), T, T + timedelta(hours=1))

    def test_containment_overlaps(self):
        assert overlaps(T, T + timedelta(hours=3), T + timedelta(hours=1), T + timedelta(hours=2))

    def test_symmetric(self):
        a = (T, T + timedelta(minutes=90))
        b = (T + timedelta(minutes=60), T + timedelta(minutes=120))
        assert overlaps(*a, *b) == overlaps(*b, *a)


@pytest.mark.unit
class TestHasConflict:
    """In-memory check over a user's bookings"""

    def test_no_bookings(self):
        assert not has_conflict([], T, T + timedelta(hours=1))

    def test_overlapping_active_booking(self):
        existing = [booking(T)]
        assert has_conflict(existing, T + timedelta(minutes=30), T + timedelta(minutes=90))

    def test_pending_booking_also_blocks(self):
        existing = [booking(T, status="PENDING")]
        assert has_conflict(existing, T, T + timedelta(minutes=30))

    def test_back_to_back_is_free(self):
        existing = [booking(T)]
        assert not has_conflict(existing, T + timedelta(hours=1), T + timedelta(hours=2))

    @pytest.mark.parametrize("status", ["CANCELLED", "REJECTED", "COMPLETED"])
    def test_terminal_bookings_are_ignored(self, status):
        existing = [booking(T, status=status)]
        assert not has_conflict(existing, T, T + timedelta(hours=1))

    def test_missing_end_always_conflicts(self):
        existing = [booking(T - timedelta(days=3), ends_at=None)]
        assert has_conflict(existing, T + timedelta(days=10), T + timedelta(days=10, hours=1))


@pytest.mark.unit
class TestCheckConflicts:
    """Both sides of a move, excluding the session being moved"""

    def test_session_does_not_conflict_with_itself(self, db, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        session = make_session(student, subject, T, tutor=tutor, status="ACCEPTED")

        result = check_conflicts(db, session, T + timedelta(minutes=30), T + timedelta(minutes=90))

        assert result == {"studentConflict": False, "tutorConflict": False}

    def test_reports_each_side(self, db, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        other_student = make_user()
        moving = make_session(student, subject, T, tutor=tutor)

        later = T + timedelta(hours=4)
        make_session(other_student, subject, later, tutor=tutor, status="ACCEPTED")

        result = check_conflicts(db, moving, later, later + timedelta(hours=1))

        assert result == {"studentConflict": False, "tutorConflict": True}

    def test_unassigned_session_has_no_tutor_conflict(self, db, make_user, make_subject, make_session):
        subject = make_subject()
        student = make_user()
        moving = make_session(student, subject, T)
        make_session(student, subject, T + timedelta(hours=2))

        result = check_conflicts(db, moving, T + timedelta(hours=2), T + timedelta(hours=3))

        assert result == {"studentConflict": True, "tutorConflict": False}

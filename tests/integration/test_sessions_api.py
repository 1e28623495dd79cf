"""
Integration tests for the session lifecycle API

Booking, overlap protection, tutor accept / reject / propose / complete,
student reschedule / proposal answers / cancel.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi import HTTPException

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from app.models.chat import ChatChannel
from app.models.notification import Notification
from app.models.session import TutoringSession
from app.services import session_service

SESSIONS = "/api/v1/sessions"
TUTOR_SESSIONS = "/api/v1/tutor/sessions"


def book(client, headers, subject, start, tutor=None, duration=None):
    payload = {"subject_id": str(subject.id), "scheduled_at": start.isoformat()}
    if tutor is not None:
        payload["tutor_id"] = str(tutor.id)
    if duration is not None:
        payload["duration_min"] = duration
    return client.post(SESSIONS, json=payload, headers=headers)


def notes_of(db, user, kind):
    return (
        db.query(Notification)
        .filter(Notification.user_id == user.id, Notification.notification_type == kind)
        .all()
    )


@pytest.mark.integration
class TestCreateSession:
    """POST /sessions"""

    def test_direct_booking(self, client, db, auth, make_user, make_subject, make_tutor, future, as_datetime):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        start = future()

        response = book(client, auth(student), subject, start, tutor=tutor)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "PENDING"
        assert body["tutor_id"] == str(tutor.id)
        assert body["duration_min"] == 60
        assert as_datetime(body["ends_at"]) == start + timedelta(minutes=60)
        assert body["calendar_uid"] == f"{body['id']}@tutorlink"
        assert body["subject"]["code"] == "CSC1024"
        assert len(notes_of(db, tutor, "SESSION_REQUESTED")) == 1

    def test_custom_duration(self, client, auth, make_user, make_subject, make_tutor, future, as_datetime):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        start = future()

        response = book(client, auth(make_user()), subject, start, tutor=tutor, duration=90)

        assert response.status_code == 200
        assert as_datetime(response.json()["ends_at"]) == start + timedelta(minutes=90)

    @pytest.mark.parametrize("duration", [29, 181])
    def test_duration_out_of_range(self, client, auth, make_user, make_subject, future, duration):
        subject = make_subject()
        response = book(client, auth(make_user()), subject, future(), duration=duration)
        assert response.status_code == 400

    def test_too_soon(self, client, auth, make_user, make_subject):
        subject = make_subject()
        start = datetime.now(timezone.utc) + timedelta(minutes=2)
        response = book(client, auth(make_user()), subject, start)
        assert response.status_code == 400

    def test_unknown_subject(self, client, auth, make_user, make_subject, future):
        make_subject()
        response = client.post(
            SESSIONS,
            json={"subject_id": "00000000-0000-0000-0000-000000000000", "scheduled_at": future().isoformat()},
            headers=auth(make_user()),
        )
        assert response.status_code == 404

    def test_student_overlap_is_refused(self, client, auth, make_user, make_subject, make_tutor, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        other_tutor = make_tutor(subjects=[subject])
        student = make_user()
        start = future()

        assert book(client, auth(student), subject, start, tutor=tutor).status_code == 200
        response = book(client, auth(student), subject, start + timedelta(minutes=30), tutor=other_tutor)

        assert response.status_code == 409
        assert response.json() == {"detail": "You already have a booking that overlaps this time."}

    def test_back_to_back_is_allowed(self, client, auth, make_user, make_subject, make_tutor, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        start = future()

        assert book(client, auth(student), subject, start, tutor=tutor).status_code == 200
        assert book(client, auth(student), subject, start + timedelta(hours=1), tutor=tutor).status_code == 200

    def test_tutor_overlap_is_refused(self, client, auth, make_user, make_subject, make_tutor, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        start = future()

        assert book(client, auth(make_user()), subject, start, tutor=tutor).status_code == 200
        response = book(client, auth(make_user()), subject, start + timedelta(minutes=59), tutor=tutor)

        assert response.status_code == 409

    def test_tutor_not_teaching_subject(self, client, auth, make_user, make_subject, make_tutor, future):
        maths = make_subject("MTH2014", "Linear Algebra")
        coding = make_subject("CSC1024", "Programming Principles")
        tutor = make_tutor(subjects=[coding])

        response = book(client, auth(make_user()), maths, future(), tutor=tutor)

        assert response.status_code == 409

    def test_cannot_book_yourself(self, client, auth, make_subject, make_tutor, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        response = book(client, auth(tutor), subject, future(), tutor=tutor)
        assert response.status_code == 400

    def test_allocator_assigns_when_no_tutor_given(self, client, auth, make_user, make_subject, make_tutor, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])

        response = book(client, auth(make_user()), subject, future())

        assert response.status_code == 200
        assert response.json()["tutor_id"] == str(tutor.id)

    def test_queued_when_nobody_fits(self, client, auth, make_user, make_subject, future):
        subject = make_subject()
        response = book(client, auth(make_user()), subject, future())
        assert response.status_code == 200
        assert response.json()["tutor_id"] is None

    def test_unverified_student_is_forbidden(self, client, auth, make_user, make_subject, future):
        subject = make_subject()
        response = book(client, auth(make_user(verified=False)), subject, future())
        assert response.status_code == 403

    def test_requires_login(self, client, make_subject, future):
        subject = make_subject()
        response = client.post(
            SESSIONS, json={"subject_id": str(subject.id), "scheduled_at": future().isoformat()}
        )
        assert response.status_code == 401

    def test_deactivated_user_is_anonymous(self, client, auth, make_user, make_subject, future):
        subject = make_subject()
        response = book(client, auth(make_user(deactivated=True)), subject, future())
        assert response.status_code == 401


@pytest.mark.integration
class TestTutorDecisions:
    """Accept / reject"""

    def test_accept(self, client, db, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        session = make_session(student, subject, future(), tutor=tutor)

        response = client.post(f"{TUTOR_SESSIONS}/{session.id}/accept", headers=auth(tutor))

        assert response.status_code == 200
        assert response.json()["status"] == "ACCEPTED"
        assert len(notes_of(db, student, "BOOKING_CONFIRMED")) == 1

    def test_accept_twice(self, client, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        session = make_session(make_user(), subject, future(), tutor=tutor)

        client.post(f"{TUTOR_SESSIONS}/{session.id}/accept", headers=auth(tutor))
        response = client.post(f"{TUTOR_SESSIONS}/{session.id}/accept", headers=auth(tutor))

        assert response.status_code == 409

    def test_accept_overlapping_second_session(self, client, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        start = future()
        make_session(make_user(), subject, start, tutor=tutor, status="ACCEPTED")
        clashing = make_session(make_user(), subject, start + timedelta(minutes=30), tutor=tutor)

        response = client.post(f"{TUTOR_SESSIONS}/{clashing.id}/accept", headers=auth(tutor))

        assert response.status_code == 409

    def test_accepted_booking_without_end_blocks_accept(
        self, client, db, auth, make_user, make_subject, make_tutor, make_session, future
    ):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        start = future()
        make_session(make_user(), subject, start, tutor=tutor, status="ACCEPTED", ends_at=None)
        pending = make_session(make_user(), subject, start + timedelta(minutes=30), tutor=tutor)

        response = client.post(f"{TUTOR_SESSIONS}/{pending.id}/accept", headers=auth(tutor))

        assert response.status_code == 409
        db.refresh(pending)
        assert pending.status == "PENDING"

    def test_other_tutor_sees_not_found(self, client, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        stranger = make_tutor(subjects=[subject])
        session = make_session(make_user(), subject, future(), tutor=tutor)

        response = client.post(f"{TUTOR_SESSIONS}/{session.id}/accept", headers=auth(stranger))

        assert response.status_code == 404

    def test_students_cannot_use_tutor_endpoints(self, client, auth, make_user, make_subject, make_session, future):
        subject = make_subject()
        student = make_user()
        session = make_session(student, subject, future())

        response = client.post(f"{TUTOR_SESSIONS}/{session.id}/accept", headers=auth(student))

        assert response.status_code == 403

    def test_reject_with_default_reason(self, client, db, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        session = make_session(student, subject, future(), tutor=tutor)

        response = client.post(f"{TUTOR_SESSIONS}/{session.id}/reject", headers=auth(tutor))

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "REJECTED"
        assert body["cancel_reason"] == "Rejected by tutor"
        assert len(notes_of(db, student, "SESSION_REJECTED")) == 1

    def test_reject_accepted_session(self, client, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        session = make_session(make_user(), subject, future(), tutor=tutor, status="ACCEPTED")

        response = client.post(
            f"{TUTOR_SESSIONS}/{session.id}/reject", json={"reason": "Busy"}, headers=auth(tutor)
        )

        assert response.status_code == 409

    def test_tutor_listing(self, client, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        make_session(make_user(), subject, future(days=2), tutor=tutor)
        make_session(make_user(), subject, future(days=3), tutor=tutor, status="ACCEPTED")

        all_sessions = client.get(TUTOR_SESSIONS, headers=auth(tutor)).json()["sessions"]
        accepted = client.get(f"{TUTOR_SESSIONS}?status=ACCEPTED", headers=auth(tutor)).json()["sessions"]

        assert len(all_sessions) == 2
        assert [s["status"] for s in accepted] == ["ACCEPTED"]


@pytest.mark.integration
class TestProposeTime:
    """Tutor suggests a new time; student answers"""

    def test_lead_time_boundary(self, db, make_user, make_subject, make_tutor, make_session):
        now = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        session = make_session(make_user(), subject, now + timedelta(days=2), tutor=tutor)

        with pytest.raises(HTTPException) as exc:
            session_service.propose_time(db, tutor, session.id, now + timedelta(minutes=4), now=now)
        assert exc.value.status_code == 400

        proposed = now + timedelta(minutes=5, seconds=1)
        updated = session_service.propose_time(db, tutor, session.id, proposed, now=now)
        assert updated.proposal_status == "PENDING"
        assert updated.proposed_at == proposed
        assert updated.proposed_end_at == proposed + timedelta(minutes=60)

    def test_too_soon_via_api(self, client, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        session = make_session(make_user(), subject, future(), tutor=tutor)

        proposed = datetime.now(timezone.utc) + timedelta(minutes=4)
        response = client.post(
            f"{TUTOR_SESSIONS}/{session.id}/propose-time",
            json={"proposed_at": proposed.isoformat()},
            headers=auth(tutor),
        )

        assert response.status_code == 400

    def test_end_before_start(self, client, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        session = make_session(make_user(), subject, future(), tutor=tutor)
        proposed = future(days=3)

        response = client.post(
            f"{TUTOR_SESSIONS}/{session.id}/propose-time",
            json={"proposed_at": proposed.isoformat(), "proposed_end_at": proposed.isoformat()},
            headers=auth(tutor),
        )

        assert response.status_code == 400

    def test_closed_session(self, client, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        session = make_session(make_user(), subject, future(), tutor=tutor, status="CANCELLED")

        response = client.post(
            f"{TUTOR_SESSIONS}/{session.id}/propose-time",
            json={"proposed_at": future(days=3).isoformat()},
            headers=auth(tutor),
        )

        assert response.status_code == 409

    def test_student_accepts_proposal(self, client, db, auth, make_user, make_subject, make_tutor, make_session, future, as_datetime):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        session = make_session(student, subject, future(), tutor=tutor, status="ACCEPTED")
        proposed = future(days=4, hour=11)

        sent = client.post(
            f"{TUTOR_SESSIONS}/{session.id}/propose-time",
            json={"proposed_at": proposed.isoformat(), "note": "Lab runs late"},
            headers=auth(tutor),
        )
        assert sent.status_code == 200
        assert len(notes_of(db, student, "TIME_PROPOSAL")) == 1

        response = client.post(f"{SESSIONS}/{session.id}/proposal/accept", headers=auth(student))

        assert response.status_code == 200
        body = response.json()
        assert as_datetime(body["scheduled_at"]) == proposed
        assert as_datetime(body["ends_at"]) == proposed + timedelta(minutes=60)
        assert body["status"] == "PENDING"
        assert body["proposal_status"] == "ACCEPTED"
        assert body["proposed_at"] is None
        assert body["calendar_sequence"] == 1
        assert len(notes_of(db, tutor, "TIME_PROPOSAL_ACCEPTED")) == 1

    def test_accepting_conflicting_proposal(self, client, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        session = make_session(student, subject, future(), tutor=tutor)
        proposed = future(days=4)
        make_session(student, subject, proposed + timedelta(minutes=30))

        client.post(
            f"{TUTOR_SESSIONS}/{session.id}/propose-time",
            json={"proposed_at": proposed.isoformat()},
            headers=auth(tutor),
        )
        response = client.post(f"{SESSIONS}/{session.id}/proposal/accept", headers=auth(student))

        assert response.status_code == 409

    def test_student_rejects_proposal(self, client, db, auth, make_user, make_subject, make_tutor, make_session, future, as_datetime):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        start = future()
        session = make_session(student, subject, start, tutor=tutor)

        client.post(
            f"{TUTOR_SESSIONS}/{session.id}/propose-time",
            json={"proposed_at": future(days=5).isoformat()},
            headers=auth(tutor),
        )
        response = client.post(f"{SESSIONS}/{session.id}/proposal/reject", headers=auth(student))

        assert response.status_code == 200
        body = response.json()
        assert body["proposal_status"] == "REJECTED"
        assert as_datetime(body["scheduled_at"]) == start
        assert len(notes_of(db, tutor, "TIME_PROPOSAL_REJECTED")) == 1

    def test_no_pending_proposal(self, client, auth, make_user, make_subject, make_session, future):
        subject = make_subject()
        student = make_user()
        session = make_session(student, subject, future())

        response = client.post(f"{SESSIONS}/{session.id}/proposal/accept", headers=auth(student))

        assert response.status_code == 409


@pytest.mark.integration
class TestReschedule:
    """Student moves a session"""

    def test_reschedule(self, client, db, auth, make_user, make_subject, make_tutor, make_session, future, as_datetime):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        session = make_session(student, subject, future(), tutor=tutor, status="ACCEPTED")
        new_start = future(days=3, hour=15)

        response = client.post(
            f"{SESSIONS}/{session.id}/reschedule",
            json={"scheduled_at": new_start.isoformat()},
            headers=auth(student),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["queued"] is False
        assert body["session"]["status"] == "PENDING"
        assert as_datetime(body["session"]["ends_at"]) == new_start + timedelta(minutes=60)
        assert body["session"]["calendar_sequence"] == 1
        assert len(notes_of(db, tutor, "SESSION_RESCHEDULED")) == 1

    def test_overlap_leaves_row_untouched(self, client, db, auth, make_user, make_subject, make_session, future):
        subject = make_subject()
        student = make_user()
        first = make_session(student, subject, future(hour=10))
        second_start = future(hour=13)
        second = make_session(student, subject, second_start)

        response = client.post(
            f"{SESSIONS}/{second.id}/reschedule",
            json={"scheduled_at": (first.scheduled_at + timedelta(minutes=30)).isoformat()},
            headers=auth(student),
        )

        assert response.status_code == 409
        db.expire_all()
        row = db.get(TutoringSession, second.id)
        assert row.scheduled_at == second_start
        assert row.ends_at == second_start + timedelta(minutes=60)
        assert row.calendar_sequence == 0

    def test_tutor_overlap(self, client, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        session = make_session(student, subject, future(hour=10), tutor=tutor)
        busy_start = future(days=3, hour=10)
        make_session(make_user(), subject, busy_start, tutor=tutor, status="ACCEPTED")

        response = client.post(
            f"{SESSIONS}/{session.id}/reschedule",
            json={"scheduled_at": busy_start.isoformat()},
            headers=auth(student),
        )

        assert response.status_code == 409

    def test_releases_tutor_outside_declared_hours(self, db, make_user, make_subject, make_tutor, make_session):
        now = datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc)        # Sunday
        monday_14 = datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc)
        availability = '[{"day": "MON", "slots": [{"start": "14:00", "end": "16:00"}]}]'
        subject = make_subject()
        tutor = make_tutor(subjects=[subject], availability=availability)
        student = make_user()
        session = make_session(student, subject, monday_14, tutor=tutor)

        result = session_service.reschedule_session(
            db, student, session.id, monday_14 + timedelta(days=1), now=now
        )

        assert result["queued"] is True
        assert result["session"].tutor_id is None
        assert len(notes_of(db, tutor, "SESSION_RESCHEDULED_UNASSIGNED")) == 1

    def test_cancelled_session_cannot_move(self, client, auth, make_user, make_subject, make_session, future):
        subject = make_subject()
        student = make_user()
        session = make_session(student, subject, future(), status="CANCELLED")

        response = client.post(
            f"{SESSIONS}/{session.id}/reschedule",
            json={"scheduled_at": future(days=4).isoformat()},
            headers=auth(student),
        )

        assert response.status_code == 409

    def test_someone_elses_session(self, client, auth, make_user, make_subject, make_session, future):
        subject = make_subject()
        session = make_session(make_user(), subject, future())

        response = client.post(
            f"{SESSIONS}/{session.id}/reschedule",
            json={"scheduled_at": future(days=4).isoformat()},
            headers=auth(make_user()),
        )

        assert response.status_code == 404

    def test_check_conflict(self, client, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        session = make_session(student, subject, future(hour=10), tutor=tutor)
        other_start = future(days=3, hour=10)
        make_session(student, subject, other_start)

        clash = client.post(
            f"{SESSIONS}/{session.id}/check-conflict",
            json={"scheduled_at": other_start.isoformat()},
            headers=auth(student),
        )
        free = client.post(
            f"{SESSIONS}/{session.id}/check-conflict",
            json={"scheduled_at": future(days=5).isoformat()},
            headers=auth(student),
        )

        assert clash.status_code == 200
        assert clash.json() == {"studentConflict": True, "tutorConflict": False}
        assert free.json() == {"studentConflict": False, "tutorConflict": False}


@pytest.mark.integration
class TestComplete:
    """Tutor marks an accepted session done"""

    def test_before_end(self, client, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        session = make_session(make_user(), subject, future(), tutor=tutor, status="ACCEPTED")

        response = client.post(f"{TUTOR_SESSIONS}/{session.id}/complete", headers=auth(tutor))

        assert response.status_code == 409

    def test_after_end_then_again(self, client, db, auth, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        start = datetime.now(timezone.utc) - timedelta(hours=2)
        session = make_session(student, subject, start, tutor=tutor, status="ACCEPTED")

        first = client.post(f"{TUTOR_SESSIONS}/{session.id}/complete", headers=auth(tutor))
        second = client.post(f"{TUTOR_SESSIONS}/{session.id}/complete", headers=auth(tutor))

        assert first.status_code == 200
        assert first.json()["status"] == "COMPLETED"
        assert second.status_code == 409

        channel = db.query(ChatChannel).filter(ChatChannel.session_id == session.id).one()
        assert channel.close_at > datetime.now(timezone.utc) + timedelta(hours=7)
        assert len(notes_of(db, student, "SESSION_COMPLETED")) == 1

    def test_pending_cannot_complete(self, client, auth, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        start = datetime.now(timezone.utc) - timedelta(hours=2)
        session = make_session(make_user(), subject, start, tutor=tutor)

        response = client.post(f"{TUTOR_SESSIONS}/{session.id}/complete", headers=auth(tutor))

        assert response.status_code == 409


@pytest.mark.integration
class TestCancel:
    """Either party cancels"""

    def test_student_cancels(self, client, db, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        session = make_session(student, subject, future(), tutor=tutor, status="ACCEPTED")
        assert client.post(
            f"/api/v1/chat/sessions/{session.id}/channel", headers=auth(student)
        ).status_code == 200

        response = client.post(
            f"{SESSIONS}/{session.id}/cancel", json={"reason": "  Exam clash  "}, headers=auth(student)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "CANCELLED"
        assert body["cancel_reason"] == "Exam clash"
        assert body["cancelled_at"] is not None

        db.expire_all()
        channel = db.query(ChatChannel).filter(ChatChannel.session_id == session.id).one()
        assert channel.closed_at is not None
        assert channel.close_at <= datetime.now(timezone.utc)
        assert len(notes_of(db, tutor, "SESSION_CANCELLED")) == 1

    def test_cancel_twice(self, client, auth, make_user, make_subject, make_session, future):
        subject = make_subject()
        student = make_user()
        session = make_session(student, subject, future())

        assert client.post(f"{SESSIONS}/{session.id}/cancel", headers=auth(student)).status_code == 200
        assert client.post(f"{SESSIONS}/{session.id}/cancel", headers=auth(student)).status_code == 409

    def test_tutor_cancels(self, client, db, auth, make_user, make_subject, make_tutor, make_session, future):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        student = make_user()
        session = make_session(student, subject, future(), tutor=tutor, status="ACCEPTED")

        response = client.post(f"{TUTOR_SESSIONS}/{session.id}/cancel", headers=auth(tutor))

        assert response.status_code == 200
        assert response.json()["cancel_reason"] == "Cancelled by tutor"
        assert len(notes_of(db, student, "SESSION_CANCELLED")) == 1

    def test_tutor_cannot_cancel_after_end(self, client, auth, make_user, make_subject, make_tutor, make_session):
        subject = make_subject()
        tutor = make_tutor(subjects=[subject])
        start = datetime.now(timezone.utc) - timedelta(hours=2)
        session = make_session(make_user(), subject, start, tutor=tutor, status="ACCEPTED")

        response = client.post(f"{TUTOR_SESSIONS}/{session.id}/cancel", headers=auth(tutor))

        assert response.status_code == 409

    def test_reason_too_long(self, client, auth, make_user, make_subject, make_session, future):
        subject = make_subject()
        student = make_user()
        session = make_session(student, subject, future())

        response = client.post(
            f"{SESSIONS}/{session.id}/cancel", json={"reason": "x" * 501}, headers=auth(student)
        )

        assert response.status_code == 422


@pytest.mark.integration
class TestListing:
    """GET /sessions/my"""

    def test_own_sessions_only(self, client, auth, make_user, make_subject, make_session, future):
        subject = make_subject()
        student = make_user()
        make_session(student, subject, future(days=2))
        make_session(student, subject, future(days=3), status="CANCELLED")
        make_session(make_user(), subject, future(days=4))

        everything = client.get(f"{SESSIONS}/my", headers=auth(student)).json()["sessions"]
        cancelled = client.get(f"{SESSIONS}/my?status=CANCELLED", headers=auth(student)).json()["sessions"]

        assert len(everything) == 2
        assert len(cancelled) == 1

    def test_newest_first(self, client, auth, make_user, make_subject, make_session, future, as_datetime):
        subject = make_subject()
        student = make_user()
        make_session(student, subject, future(days=2))
        make_session(student, subject, future(days=5))

        sessions = client.get(f"{SESSIONS}/my", headers=auth(student)).json()["sessions"]

        starts = [as_datetime(s["scheduled_at"]) for s in sessions]
        assert starts == sorted(starts, reverse=True)

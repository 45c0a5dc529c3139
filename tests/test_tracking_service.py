"""
Tests for TrackingService status transitions against a real (SQLite) session.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from clinic_api.domain.tracking import events
from clinic_api.domain.tracking.service import TrackingService
from clinic_api.domain.tracking.status import TrackingStatus
from clinic_api.models import Booking, CaseSession
from clinic_api.utils.clock import Clock


def _reload(db, booking_id) -> Booking:
    db.expire_all()
    return db.query(Booking).filter(Booking.id == booking_id).one()


@pytest.fixture
def service(db, clock):
    return TrackingService(db, clock, timezone="UTC")


def test_waiting_sets_check_in_between_call_start_and_end(db, clinic):
    service = TrackingService(db, Clock(), timezone="UTC")
    booking_id = clinic["booking"].id

    before = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(seconds=1)
    view = service.update_tracking_status(booking_id, TrackingStatus.WAITING)
    after = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(seconds=1)

    booking = _reload(db, booking_id)
    assert before <= booking.checked_in_at <= after
    assert booking.session_started_at is None
    assert booking.session_ended_at is None
    assert booking.session_completed_at is None
    assert booking.cancelled_at is None
    assert booking.lifecycle_status == "CONFIRMED"
    assert view.status == TrackingStatus.WAITING
    assert view.trackingStatus == TrackingStatus.WAITING


def test_in_session_sets_lifecycle_in_progress(db, clinic, service, clock):
    booking_id = clinic["booking"].id

    view = service.update_tracking_status(booking_id, TrackingStatus.IN_SESSION)

    booking = _reload(db, booking_id)
    assert booking.lifecycle_status == "IN_PROGRESS"
    assert booking.session_started_at == clock.now()
    assert view.status == TrackingStatus.IN_SESSION


def test_completed_sets_end_and_completion(db, clinic, service):
    booking_id = clinic["booking"].id
    service.update_tracking_status(booking_id, TrackingStatus.IN_SESSION)

    view = service.update_tracking_status(booking_id, TrackingStatus.COMPLETED)

    booking = _reload(db, booking_id)
    assert booking.lifecycle_status == "COMPLETED"
    assert booking.session_ended_at is not None
    assert booking.session_completed_at is not None
    assert view.status == TrackingStatus.COMPLETED


def test_cancel_records_reason(db, clinic, service):
    booking_id = clinic["booking"].id

    view = service.update_tracking_status(booking_id, TrackingStatus.CANCELLED, notes="patient sick")

    booking = _reload(db, booking_id)
    assert booking.lifecycle_status == "CANCELLED_BY_THERAPIST"
    assert booking.cancelled_at is not None
    assert booking.cancellation_reason == "patient sick"
    assert view.notes == "patient sick"
    assert view.cancellationReason == "patient sick"


def test_no_show_marks_patient(db, clinic, service):
    booking_id = clinic["booking"].id

    service.update_tracking_status(booking_id, TrackingStatus.NO_SHOW)

    assert _reload(db, booking_id).lifecycle_status == "NO_SHOW_PATIENT"


def test_reset_after_waiting_clears_timestamps(db, clinic, service, clock):
    booking_id = clinic["booking"].id
    service.update_tracking_status(booking_id, TrackingStatus.WAITING)
    clock.advance(timedelta(minutes=5))

    view = service.update_tracking_status(booking_id, TrackingStatus.SCHEDULED)

    booking = _reload(db, booking_id)
    assert booking.checked_in_at is None
    assert booking.session_started_at is None
    assert booking.session_ended_at is None
    assert booking.tracking_status == "SCHEDULED"
    assert view.status == TrackingStatus.SCHEDULED


def test_reset_from_session_keeps_lifecycle(db, clinic, service):
    booking_id = clinic["booking"].id
    service.update_tracking_status(booking_id, TrackingStatus.IN_SESSION)

    view = service.update_tracking_status(booking_id, TrackingStatus.SCHEDULED)

    booking = _reload(db, booking_id)
    assert booking.lifecycle_status == "IN_PROGRESS"
    assert booking.tracking_status == "SCHEDULED"
    assert booking.session_started_at is None
    assert view.status == TrackingStatus.SCHEDULED


def test_unknown_booking_is_not_found(db, clinic, service):
    with pytest.raises(HTTPException) as exc_info:
        service.update_tracking_status("unknown-id", TrackingStatus.WAITING)

    assert exc_info.value.status_code == 404
    booking = _reload(db, clinic["booking"].id)
    assert booking.tracking_status is None
    assert booking.version == 1


def test_complete_straight_from_scheduled(db, clinic, service, clock):
    booking_id = clinic["booking"].id

    view = service.update_tracking_status(booking_id, TrackingStatus.COMPLETED)

    booking = _reload(db, booking_id)
    assert view.status == TrackingStatus.COMPLETED
    assert booking.lifecycle_status == "COMPLETED"
    assert booking.session_ended_at == clock.now()
    assert booking.session_completed_at == clock.now()
    assert booking.session_started_at is None


def test_no_show_can_be_undone(db, clinic, service):
    booking_id = clinic["booking"].id
    service.update_tracking_status(booking_id, TrackingStatus.NO_SHOW)

    view = service.update_tracking_status(booking_id, TrackingStatus.WAITING)

    booking = _reload(db, booking_id)
    assert view.status == TrackingStatus.WAITING
    assert booking.checked_in_at is not None
    # Lifecycle only changes where the new status implies it
    assert booking.lifecycle_status == "NO_SHOW_PATIENT"


def test_completed_visit_can_be_reset(db, clinic, service):
    booking_id = clinic["booking"].id
    service.update_tracking_status(booking_id, TrackingStatus.IN_SESSION)
    service.update_tracking_status(booking_id, TrackingStatus.COMPLETED)

    view = service.update_tracking_status(booking_id, TrackingStatus.SCHEDULED)

    booking = _reload(db, booking_id)
    assert view.status == TrackingStatus.SCHEDULED
    assert booking.session_ended_at is None
    assert booking.session_completed_at is not None
    assert booking.lifecycle_status == "COMPLETED"


def test_booking_cancelled_upstream_can_still_start(db, factory, clinic, service):
    booking = factory.booking(
        clinic["parent"], clinic["therapist"], lifecycle_status="CANCELLED_BY_PATIENT"
    )

    view = service.update_tracking_status(booking.id, TrackingStatus.IN_SESSION)

    assert view.status == TrackingStatus.IN_SESSION
    assert _reload(db, booking.id).lifecycle_status == "IN_PROGRESS"


def test_out_of_flow_move_is_logged(clinic, service, caplog):
    with caplog.at_level(logging.WARNING, logger="clinic_api.domain.tracking.service"):
        service.update_tracking_status(clinic["booking"].id, TrackingStatus.COMPLETED)

    assert "out of the usual flow: SCHEDULED → COMPLETED" in caplog.text


def test_every_write_bumps_version(db, clinic, service):
    booking_id = clinic["booking"].id

    first = service.update_tracking_status(booking_id, TrackingStatus.WAITING)
    second = service.update_tracking_status(booking_id, TrackingStatus.IN_SESSION)

    assert first.version == 2
    assert second.version == 3


def test_stale_version_is_conflict(db, clinic, service):
    booking_id = clinic["booking"].id
    service.update_tracking_status(booking_id, TrackingStatus.WAITING)

    with pytest.raises(HTTPException) as exc_info:
        service.update_tracking_status(booking_id, TrackingStatus.IN_SESSION, expected_version=1)

    assert exc_info.value.status_code == 409
    booking = _reload(db, booking_id)
    assert booking.tracking_status == "WAITING"
    assert booking.session_started_at is None
    assert booking.version == 2


def test_notes_are_stored_on_any_transition(db, clinic, service):
    booking_id = clinic["booking"].id

    view = service.update_tracking_status(booking_id, TrackingStatus.WAITING, notes="Arrived early")

    assert view.notes == "Arrived early"
    assert _reload(db, booking_id).cancellation_reason is None


def test_view_carries_linked_summaries(clinic, service):
    view = service.update_tracking_status(clinic["booking"].id, TrackingStatus.WAITING)

    assert view.child.firstName == "Aisha"
    assert view.child.nickname == "Ash"
    assert view.child.age == 4
    assert view.parent.name == "Fatima Khan"
    assert view.parent.phone == "+971500000001"
    assert view.therapist.id == clinic["therapist"].id
    assert view.therapist.name == "Dr. Meena"
    assert view.therapist.avatar == "https://cdn.test/meena.png"
    assert view.sessionType == "Speech Therapy"
    assert view.duration == 45
    assert view.caseId == clinic["case"].id
    assert view.availableCases is None


def test_unlink_case(db, clinic, service):
    booking_id = clinic["booking"].id

    view = service.update_tracking_status(booking_id, TrackingStatus.WAITING, case_id=None)

    assert view.caseId is None
    assert view.child is None
    assert db.query(CaseSession).filter(CaseSession.booking_id == booking_id).count() == 0


def test_link_case_creates_case_session(db, factory, clinic, service):
    booking = factory.booking(clinic["parent"], clinic["therapist"])

    view = service.update_tracking_status(booking.id, TrackingStatus.WAITING, case_id=clinic["case"].id)

    assert view.caseId == clinic["case"].id
    link = db.query(CaseSession).filter(CaseSession.booking_id == booking.id).one()
    assert link.therapist_user_id == clinic["therapist"].user_id
    assert link.scheduled_at == booking.start_date_time


def test_relink_case_moves_existing_session(db, factory, clinic, service):
    other_case = factory.case(clinic["child"], case_number="043")
    booking_id = clinic["booking"].id

    view = service.update_tracking_status(booking_id, TrackingStatus.WAITING, case_id=other_case.id)

    assert view.caseId == other_case.id
    assert db.query(CaseSession).filter(CaseSession.booking_id == booking_id).count() == 1


def test_unknown_case_rolls_back_status_change(db, clinic, service):
    booking_id = clinic["booking"].id

    with pytest.raises(HTTPException) as exc_info:
        service.update_tracking_status(booking_id, TrackingStatus.WAITING, case_id="no-such-case")

    assert exc_info.value.status_code == 404
    booking = _reload(db, booking_id)
    assert booking.tracking_status is None
    assert booking.checked_in_at is None
    assert booking.version == 1


def test_listeners_receive_committed_changes(clinic, service):
    received = []
    events.subscribe(received.append)

    service.update_tracking_status(clinic["booking"].id, TrackingStatus.WAITING)

    assert len(received) == 1
    event = received[0]
    assert event.booking_id == clinic["booking"].id
    assert event.previous_status == TrackingStatus.SCHEDULED
    assert event.new_status == TrackingStatus.WAITING
    assert event.version == 2


def test_failing_listener_does_not_fail_transition(db, clinic, service):
    @events.subscribe
    def broken(_event):
        raise RuntimeError("sink down")

    view = service.update_tracking_status(clinic["booking"].id, TrackingStatus.WAITING)

    assert view.status == TrackingStatus.WAITING


def test_correction_publishes_previous_terminal_status(clinic, service):
    booking_id = clinic["booking"].id
    service.update_tracking_status(booking_id, TrackingStatus.CANCELLED, notes="wrong family")
    received = []
    events.subscribe(received.append)

    service.update_tracking_status(booking_id, TrackingStatus.SCHEDULED)

    assert len(received) == 1
    assert received[0].previous_status == TrackingStatus.CANCELLED
    assert received[0].new_status == TrackingStatus.SCHEDULED
    assert received[0].version == 3


def test_unsubscribed_listener_is_not_called(clinic, service):
    received = []
    events.subscribe(received.append)
    events.unsubscribe(received.append)

    service.update_tracking_status(clinic["booking"].id, TrackingStatus.WAITING)

    assert received == []

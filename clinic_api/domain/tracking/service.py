"""Tracking service - Business logic for the clinic front desk board"""

import logging
from collections import Counter
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import CLINIC_TIMEZONE, DEFAULT_CURRENCY, WALKIN_DEFAULT_DURATION_MINS
from ...models import Booking, CaseSession, SessionType
from ...utils.clock import Clock, get_clock
from ...utils.dates import (
    as_utc,
    calculate_age,
    day_window,
    get_timezone,
    local_today,
    minutes_after,
    resolve_board_date,
    to_utc_naive,
)
from . import events
from .repository import TrackingRepository
from .schemas import (
    AvailableCase,
    BoardSummary,
    ChildSummary,
    CreateWalkinBookingRequest,
    ParentSummary,
    TherapistSummary,
    TrackingAppointment,
    WalkinBookingResponse,
)
from .status import (
    BOARD_VISIBLE_STATUSES,
    LifecycleStatus,
    TrackingStatus,
    build_transition_updates,
    is_expected_transition,
    resolve_booking_status,
)

logger = logging.getLogger(__name__)

# Sentinel for "caseId not sent" as opposed to "caseId: null"
UNSET = object()


class TrackingService:
    """Service layer for front desk tracking"""

    def __init__(self, db: Session, clock: Optional[Clock] = None, timezone: str = CLINIC_TIMEZONE):
        self.db = db
        self.repo = TrackingRepository()
        self.clock = clock or get_clock()
        self.timezone = timezone

    def _get_timezone(self, tz_name: Optional[str] = None):
        try:
            return get_timezone(tz_name or self.timezone)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    # ------------------------------------------------------------------
    # Board
    # ------------------------------------------------------------------

    def get_board(
        self,
        date: Optional[str] = None,
        tz_name: Optional[str] = None,
        clinic_id: Optional[str] = None,
    ) -> list[TrackingAppointment]:
        """Day-scoped board rows ordered by start time"""
        tz = self._get_timezone(tz_name)
        try:
            day = resolve_board_date(date, tz, self.clock)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        start, end = day_window(day, tz)
        bookings = self.repo.get_bookings_in_window(
            self.db, start, end, BOARD_VISIBLE_STATUSES, clinic_id
        )
        logger.debug(f"📋 Board {day.isoformat()} ({tz.zone}): {len(bookings)} bookings")

        today = local_today(self.clock, tz)
        return [self.to_appointment(b, today, include_cases=True) for b in bookings]

    def get_board_summary(
        self,
        date: Optional[str] = None,
        tz_name: Optional[str] = None,
        clinic_id: Optional[str] = None,
    ) -> BoardSummary:
        """Count board rows by effective status"""
        tz = self._get_timezone(tz_name)
        try:
            day = resolve_board_date(date, tz, self.clock)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        rows = self.get_board(day.isoformat(), tz.zone, clinic_id)
        counts = Counter(row.status for row in rows)
        return BoardSummary(
            date=day.isoformat(),
            total=len(rows),
            scheduled=counts[TrackingStatus.SCHEDULED],
            waiting=counts[TrackingStatus.WAITING],
            inSession=counts[TrackingStatus.IN_SESSION],
            completed=counts[TrackingStatus.COMPLETED],
            cancelled=counts[TrackingStatus.CANCELLED],
            noShow=counts[TrackingStatus.NO_SHOW],
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def update_tracking_status(
        self,
        booking_id: str,
        status: TrackingStatus,
        notes: Optional[str] = None,
        case_id=UNSET,
        expected_version: Optional[int] = None,
    ) -> TrackingAppointment:
        """
        Move a booking to ``status`` and apply the transition's side effects.

        Raises:
            HTTPException: 404 for an unknown booking or case, 409 when the
                booking was changed since ``expected_version``
        """
        booking = self.get_booking(booking_id)
        previous = resolve_booking_status(booking)
        if not is_expected_transition(previous, status):
            logger.warning(
                f"⚠️ Booking {booking_id} moved out of the usual flow: "
                f"{previous.value} → {status.value}"
            )

        version = expected_version if expected_version is not None else booking.version
        updates = build_transition_updates(status, self.clock.now(), notes)

        try:
            updated_rows = self.repo.compare_and_update_booking(self.db, booking_id, version, updates)
            if not updated_rows:
                logger.warning(
                    f"⚠️ Booking {booking_id} changed concurrently (expected v{version}, "
                    f"have v{booking.version})"
                )
                raise HTTPException(
                    status_code=409,
                    detail="Booking was updated by someone else. Refresh and try again.",
                )
            if case_id is not UNSET:
                self._link_case(booking, case_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"✅ Booking {booking_id} tracking: {previous.value} → {status.value}")

        updated = self.get_booking(booking_id)
        events.publish(
            events.TrackingStatusChanged(
                booking_id=updated.id,
                previous_status=previous,
                new_status=resolve_booking_status(updated),
                occurred_at=self.clock.now(),
                version=updated.version,
            )
        )
        tz = self._get_timezone()
        return self.to_appointment(updated, local_today(self.clock, tz))

    def _link_case(self, booking: Booking, case_id: Optional[str]) -> None:
        """Attach the booking to a case, or detach it when ``case_id`` is None"""
        existing = self.repo.get_case_session_for_booking(self.db, booking.id)

        if case_id is None:
            if existing:
                self.repo.delete_case_sessions_for_booking(self.db, booking.id)
                logger.info(f"🔗 Booking {booking.id} unlinked from case {existing.case_id}")
            return

        if not self.repo.get_case(self.db, case_id):
            raise HTTPException(status_code=404, detail="Case not found")

        if existing:
            existing.case_id = case_id
        else:
            self.repo.add(
                self.db,
                CaseSession(
                    case_id=case_id,
                    booking_id=booking.id,
                    therapist_user_id=booking.therapist.user_id,
                    scheduled_at=booking.start_date_time,
                ),
            )
        logger.info(f"🔗 Booking {booking.id} linked to case {case_id}")

    # ------------------------------------------------------------------
    # Walk-ins
    # ------------------------------------------------------------------

    def create_walkin_booking(self, data: CreateWalkinBookingRequest) -> WalkinBookingResponse:
        """Create a confirmed booking for a child who arrived without one"""
        duration = data.durationMins or WALKIN_DEFAULT_DURATION_MINS
        tz = self._get_timezone()
        start = to_utc_naive(data.scheduledAt, tz)
        end = minutes_after(start, duration)

        therapist = self.repo.get_therapist_profile_by_user(self.db, data.therapistUserId)
        if not therapist:
            raise HTTPException(status_code=404, detail="Therapist profile not found")

        child = self.repo.get_child(self.db, data.childId)
        if not child:
            raise HTTPException(status_code=404, detail="Patient not found")
        if not child.guardian_user_id:
            raise HTTPException(status_code=400, detail="Patient has no guardian user")

        if data.caseId and not self.repo.get_case(self.db, data.caseId):
            raise HTTPException(status_code=404, detail="Case not found")

        try:
            session_type = self.repo.get_active_session_type(self.db, therapist.id)
            if not session_type:
                session_type = SessionType(
                    therapist_id=therapist.id,
                    name=data.sessionType or "Standard Session",
                    duration=duration,
                    default_price=0,
                    currency=DEFAULT_CURRENCY,
                    is_active=True,
                )
                self.repo.add(self.db, session_type)
                logger.info(f"📝 Created default session type for therapist {therapist.id}")

            # No payment step for walk-ins
            booking = Booking(
                patient_id=child.guardian_user_id,
                therapist_id=therapist.id,
                session_type_id=session_type.id,
                clinic_id=therapist.clinic_id,
                start_date_time=start,
                end_date_time=end,
                timezone=tz.zone,
                duration=duration,
                lifecycle_status=LifecycleStatus.CONFIRMED.value,
                tracking_status=TrackingStatus.SCHEDULED.value,
                subtotal=0,
                platform_fee=0,
                therapist_amount=0,
                currency=DEFAULT_CURRENCY,
                payment_status="PENDING",
                version=1,
            )
            self.repo.add(self.db, booking)

            if data.caseId:
                self.repo.add(
                    self.db,
                    CaseSession(
                        case_id=data.caseId,
                        therapist_user_id=therapist.user_id,
                        booking_id=booking.id,
                        scheduled_at=start,
                        actual_duration=duration,
                        session_type=data.sessionType or "Standard",
                        attendance_status="PRESENT",
                        note_format="SOAP",
                    ),
                )
            self.db.commit()
        except Exception as e:
            logger.error(f"❌ Failed to create walk-in booking for child {data.childId}: {e}")
            self.db.rollback()
            raise

        logger.info(f"✅ Walk-in booking {booking.id} created for child {child.id}")
        return WalkinBookingResponse(
            bookingId=booking.id,
            scheduledAt=as_utc(start),
            endTime=as_utc(end),
            status=LifecycleStatus.CONFIRMED.value,
            trackingStatus=TrackingStatus.SCHEDULED,
            patientId=child.guardian_user_id,
            therapistId=data.therapistUserId,
        )

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    @staticmethod
    def to_appointment(booking: Booking, today, include_cases: bool = False) -> TrackingAppointment:
        """Project a booking into a board row"""
        case_session = booking.case_session
        child = case_session.case.child if case_session and case_session.case else None

        available_cases = None
        if include_cases:
            available_cases = [
                AvailableCase(
                    id=c.id,
                    label=f"{guardian_child.nickname or guardian_child.first_name} - Case {c.case_number}",
                )
                for guardian_child in booking.patient.children
                for c in guardian_child.cases
                if c.status == "ACTIVE"
            ]

        return TrackingAppointment(
            id=booking.id,
            scheduledTime=as_utc(booking.start_date_time),
            endTime=as_utc(booking.end_date_time),
            status=resolve_booking_status(booking),
            trackingStatus=booking.tracking_status,
            checkedInAt=as_utc(booking.checked_in_at),
            sessionStartedAt=as_utc(booking.session_started_at),
            sessionEndedAt=as_utc(booking.session_ended_at),
            sessionCompletedAt=as_utc(booking.session_completed_at),
            cancelledAt=as_utc(booking.cancelled_at),
            cancellationReason=booking.cancellation_reason,
            child=(
                ChildSummary(
                    id=child.id,
                    firstName=child.first_name,
                    nickname=child.nickname,
                    age=calculate_age(child.date_of_birth, today),
                )
                if child
                else None
            ),
            parent=ParentSummary(
                id=booking.patient.id,
                name=booking.patient.name or "Unknown",
                phone=booking.patient.phone or None,
            ),
            therapist=TherapistSummary(
                id=booking.therapist.id,
                name=booking.therapist.user.name or "Unknown",
                avatar=booking.therapist.user.image or None,
            ),
            sessionType=booking.session_type.name if booking.session_type else None,
            duration=booking.duration,
            notes=booking.receptionist_notes or None,
            caseId=case_session.case_id if case_session else None,
            version=booking.version,
            availableCases=available_cases,
        )

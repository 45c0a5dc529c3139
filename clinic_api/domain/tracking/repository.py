"""Tracking repository - Database operations for the front desk board"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Booking, Case, CaseSession, Child, SessionType, TherapistProfile, User


def _with_board_relations(query):
    return query.options(
        joinedload(Booking.patient).joinedload(User.children).joinedload(Child.cases),
        joinedload(Booking.therapist).joinedload(TherapistProfile.user),
        joinedload(Booking.session_type),
        joinedload(Booking.case_session).joinedload(CaseSession.case).joinedload(Case.child),
    )


class TrackingRepository:
    """Repository for booking tracking database operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: str) -> Optional[Booking]:
        """Get a booking with everything the board row needs"""
        return _with_board_relations(db.query(Booking)).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_bookings_in_window(
        db: Session,
        start: datetime,
        end: datetime,
        statuses: tuple[str, ...],
        clinic_id: Optional[str] = None,
    ) -> list[Booking]:
        """Bookings starting within ``[start, end]`` with a lifecycle status in ``statuses``"""
        query = _with_board_relations(db.query(Booking)).filter(
            Booking.start_date_time >= start,
            Booking.start_date_time <= end,
            Booking.lifecycle_status.in_(statuses),
        )
        if clinic_id:
            query = query.filter(Booking.clinic_id == clinic_id)
        return query.order_by(Booking.start_date_time.asc()).all()

    @staticmethod
    def compare_and_update_booking(
        db: Session, booking_id: str, expected_version: int, updates: dict
    ) -> int:
        """
        Apply ``updates`` only if the row is still at ``expected_version``.
        Bumps the version. Does not commit.

        Returns:
            int: Number of rows updated (0 means the version moved on)
        """
        values = {getattr(Booking, key): value for key, value in updates.items()}
        values[Booking.version] = Booking.version + 1
        return (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.version == expected_version)
            .update(values, synchronize_session=False)
        )

    # Case linkage
    @staticmethod
    def get_case(db: Session, case_id: str) -> Optional[Case]:
        return db.query(Case).filter(Case.id == case_id).first()

    @staticmethod
    def get_case_session_for_booking(db: Session, booking_id: str) -> Optional[CaseSession]:
        return db.query(CaseSession).filter(CaseSession.booking_id == booking_id).first()

    @staticmethod
    def delete_case_sessions_for_booking(db: Session, booking_id: str) -> int:
        return (
            db.query(CaseSession)
            .filter(CaseSession.booking_id == booking_id)
            .delete(synchronize_session=False)
        )

    @staticmethod
    def add(db: Session, instance) -> None:
        db.add(instance)
        db.flush()

    # Walk-in lookups
    @staticmethod
    def get_therapist_profile_by_user(db: Session, user_id: str) -> Optional[TherapistProfile]:
        return db.query(TherapistProfile).filter(TherapistProfile.user_id == user_id).first()

    @staticmethod
    def get_child(db: Session, child_id: str) -> Optional[Child]:
        return db.query(Child).filter(Child.id == child_id).first()

    @staticmethod
    def get_active_session_type(db: Session, therapist_id: str) -> Optional[SessionType]:
        return (
            db.query(SessionType)
            .filter(SessionType.therapist_id == therapist_id, SessionType.is_active.is_(True))
            .order_by(SessionType.created_at.asc())
            .first()
        )

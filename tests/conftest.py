"""
Shared fixtures: in-memory SQLite, a frozen clock and a small seeded clinic.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")
os.environ["STAFF_API_TOKEN"] = "test-staff-token"

from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_api.database import Base, get_db
from clinic_api.domain.tracking import events
from clinic_api.main import app
from clinic_api.models import Booking, Case, CaseSession, Child, SessionType, TherapistProfile, User
from clinic_api.utils.clock import FixedClock, get_clock

STAFF_HEADERS = {"Authorization": "Bearer test-staff-token"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 5, 1, 8, 0, 0))


@pytest.fixture(autouse=True)
def clear_listeners():
    yield
    events._listeners.clear()


class ClinicFactory:
    """Creates the records a board row is built from"""

    def __init__(self, db):
        self.db = db

    def user(self, **kwargs):
        user = User(**kwargs)
        self.db.add(user)
        self.db.commit()
        return user

    def therapist(self, name="Dr. Meena", clinic_id="clinic-a", image=None):
        user = self.user(name=name, email=f"{name.lower().replace(' ', '.')}@clinic.test", image=image)
        profile = TherapistProfile(user_id=user.id, clinic_id=clinic_id)
        self.db.add(profile)
        self.db.commit()
        return profile

    def child(self, guardian, first_name="Aisha", nickname=None, date_of_birth=date(2020, 3, 15)):
        child = Child(
            guardian_user_id=guardian.id if guardian else None,
            first_name=first_name,
            nickname=nickname,
            date_of_birth=date_of_birth,
        )
        self.db.add(child)
        self.db.commit()
        return child

    def case(self, child, case_number="001", status="ACTIVE"):
        case = Case(child_id=child.id, case_number=case_number, status=status)
        self.db.add(case)
        self.db.commit()
        return case

    def session_type(self, therapist, name="Speech Therapy", duration=45):
        session_type = SessionType(therapist_id=therapist.id, name=name, duration=duration)
        self.db.add(session_type)
        self.db.commit()
        return session_type

    def booking(
        self,
        patient,
        therapist,
        start=datetime(2024, 5, 1, 9, 0),
        lifecycle_status="CONFIRMED",
        tracking_status=None,
        duration=45,
        session_type=None,
        clinic_id="clinic-a",
        case=None,
        **kwargs,
    ):
        booking = Booking(
            patient_id=patient.id,
            therapist_id=therapist.id,
            session_type_id=session_type.id if session_type else None,
            clinic_id=clinic_id,
            start_date_time=start,
            end_date_time=start + timedelta(minutes=duration),
            duration=duration,
            lifecycle_status=lifecycle_status,
            tracking_status=tracking_status,
            version=1,
            **kwargs,
        )
        self.db.add(booking)
        self.db.commit()

        if case is not None:
            self.db.add(
                CaseSession(
                    case_id=case.id,
                    booking_id=booking.id,
                    therapist_user_id=therapist.user_id,
                    scheduled_at=start,
                )
            )
            self.db.commit()
        return booking


@pytest.fixture
def factory(db):
    return ClinicFactory(db)


@pytest.fixture
def clinic(factory):
    """Parent with one child and an active case, a therapist, and booking b1 at 09:00"""
    parent = factory.user(name="Fatima Khan", email="fatima@family.test", phone="+971500000001")
    therapist = factory.therapist(image="https://cdn.test/meena.png")
    child = factory.child(parent, first_name="Aisha", nickname="Ash")
    case = factory.case(child, case_number="042")
    session_type = factory.session_type(therapist)
    booking = factory.booking(parent, therapist, session_type=session_type, case=case)
    return {
        "parent": parent,
        "therapist": therapist,
        "child": child,
        "case": case,
        "session_type": session_type,
        "booking": booking,
    }


@pytest.fixture
def client(engine, clock):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

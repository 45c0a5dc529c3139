"""
Booking and the read-only collaborator tables the front desk board projects.

Timestamps are stored as naive UTC.
"""

import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate an opaque identifier"""
    return str(uuid.uuid4())


class User(Base):
    """Platform account: parents (patients) and therapists"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=True)
    phone = Column(String(50), nullable=True)
    image = Column(String(500), nullable=True)  # Avatar URL

    children = relationship("Child", back_populates="guardian")
    therapist_profile = relationship("TherapistProfile", back_populates="user", uselist=False)


class TherapistProfile(Base):
    __tablename__ = "therapist_profiles"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    clinic_id = Column(String(36), nullable=True, index=True)

    user = relationship("User", back_populates="therapist_profile")
    session_types = relationship("SessionType", back_populates="therapist")


class SessionType(Base):
    __tablename__ = "session_types"

    id = Column(String(36), primary_key=True, default=generate_id)
    therapist_id = Column(String(36), ForeignKey("therapist_profiles.id"), nullable=False)
    name = Column(String(255), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    default_price = Column(Float, default=0, nullable=False)
    currency = Column(String(10), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    therapist = relationship("TherapistProfile", back_populates="session_types")


class Child(Base):
    __tablename__ = "children"

    id = Column(String(36), primary_key=True, default=generate_id)
    guardian_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    first_name = Column(String(255), nullable=False)
    nickname = Column(String(255), nullable=True)
    date_of_birth = Column(Date, nullable=False)

    guardian = relationship("User", back_populates="children")
    cases = relationship("Case", back_populates="child")


class Case(Base):
    """Clinical case; only ACTIVE cases are offered for linking"""

    __tablename__ = "cases"

    id = Column(String(36), primary_key=True, default=generate_id)
    child_id = Column(String(36), ForeignKey("children.id"), nullable=False)
    case_number = Column(String(50), nullable=False)
    status = Column(String(50), default="ACTIVE", nullable=False)

    child = relationship("Child", back_populates="cases")


class CaseSession(Base):
    """Links one booking to a clinical case"""

    __tablename__ = "case_sessions"

    id = Column(String(36), primary_key=True, default=generate_id)
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=False)
    booking_id = Column(String(36), ForeignKey("bookings.id"), unique=True, nullable=True)
    therapist_user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    scheduled_at = Column(DateTime, nullable=False)
    actual_duration = Column(Integer, nullable=True)
    session_type = Column(String(255), nullable=True)
    attendance_status = Column(String(50), nullable=True)  # PRESENT, ABSENT, ...
    note_format = Column(String(20), nullable=True)  # SOAP, ...
    created_at = Column(DateTime, server_default=func.now())

    case = relationship("Case")
    booking = relationship("Booking", back_populates="case_session")


class Booking(Base):
    """Booking as seen by the clinic front desk"""

    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_id)

    # Relationships
    patient_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    therapist_id = Column(String(36), ForeignKey("therapist_profiles.id"), nullable=False)
    session_type_id = Column(String(36), ForeignKey("session_types.id"), nullable=True)
    clinic_id = Column(String(36), nullable=True, index=True)

    # Scheduling window, never changed by tracking updates
    start_date_time = Column(DateTime, nullable=False, index=True)
    end_date_time = Column(DateTime, nullable=False)
    timezone = Column(String(64), nullable=True)
    duration = Column(Integer, nullable=False)  # minutes

    # Lifecycle status used by scheduling and billing:
    # PENDING_PAYMENT → CONFIRMED → IN_PROGRESS → COMPLETED
    # plus CANCELLED_BY_PATIENT / CANCELLED_BY_THERAPIST / NO_SHOW_PATIENT / NO_SHOW_THERAPIST
    lifecycle_status = Column(String(50), nullable=False, index=True)

    # Front desk overlay: SCHEDULED, WAITING, IN_SESSION, COMPLETED, CANCELLED, NO_SHOW
    # NULL means "derive from lifecycle_status"
    tracking_status = Column(String(20), nullable=True)

    # Each written by exactly one transition
    checked_in_at = Column(DateTime, nullable=True)
    session_started_at = Column(DateTime, nullable=True)
    session_ended_at = Column(DateTime, nullable=True)
    session_completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    cancellation_reason = Column(Text, nullable=True)
    receptionist_notes = Column(Text, nullable=True)

    # Pricing, owned by the booking flow
    subtotal = Column(Float, default=0, nullable=False)
    platform_fee = Column(Float, default=0, nullable=False)
    therapist_amount = Column(Float, default=0, nullable=False)
    currency = Column(String(10), nullable=True)
    payment_status = Column(String(50), nullable=True)

    # Optimistic concurrency token, bumped on every tracking write
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("User", foreign_keys=[patient_id])
    therapist = relationship("TherapistProfile")
    session_type = relationship("SessionType")
    case_session = relationship("CaseSession", back_populates="booking", uselist=False)

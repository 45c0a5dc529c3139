"""Tracking domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .status import TrackingStatus


class ChildSummary(BaseModel):
    id: str
    firstName: str
    nickname: Optional[str] = None
    age: int


class ParentSummary(BaseModel):
    id: str
    name: str
    phone: Optional[str] = None


class TherapistSummary(BaseModel):
    id: str
    name: str
    avatar: Optional[str] = None


class AvailableCase(BaseModel):
    id: str
    label: str


class TrackingAppointment(BaseModel):
    """One row of the front desk board"""

    id: str
    scheduledTime: datetime
    endTime: datetime
    status: TrackingStatus
    trackingStatus: Optional[TrackingStatus] = None
    checkedInAt: Optional[datetime] = None
    sessionStartedAt: Optional[datetime] = None
    sessionEndedAt: Optional[datetime] = None
    sessionCompletedAt: Optional[datetime] = None
    cancelledAt: Optional[datetime] = None
    cancellationReason: Optional[str] = None
    child: Optional[ChildSummary] = None
    parent: ParentSummary
    therapist: TherapistSummary
    sessionType: Optional[str] = None
    duration: int
    notes: Optional[str] = None
    caseId: Optional[str] = None
    version: int
    availableCases: Optional[list[AvailableCase]] = None


class UpdateTrackingStatusRequest(BaseModel):
    """Schema for a front desk status change"""

    status: TrackingStatus
    notes: Optional[str] = Field(None, max_length=2000)
    # Omitted: leave the case link alone. null: unlink.
    caseId: Optional[str] = None
    expectedVersion: Optional[int] = Field(None, ge=1)


class CreateWalkinBookingRequest(BaseModel):
    """Schema for booking a walk-in child"""

    childId: str
    therapistUserId: str
    scheduledAt: datetime
    durationMins: Optional[int] = Field(None, ge=5, le=480)
    sessionType: Optional[str] = None
    caseId: Optional[str] = None

    @field_validator("sessionType")
    @classmethod
    def validate_session_type(cls, v):
        if v is not None:
            v = v.strip()
            if not v:
                return None
        return v


class WalkinBookingResponse(BaseModel):
    bookingId: str
    scheduledAt: datetime
    endTime: datetime
    status: str
    trackingStatus: TrackingStatus
    patientId: str
    therapistId: str


class BoardSummary(BaseModel):
    """Per-status counts for the board header"""

    date: str
    total: int
    scheduled: int
    waiting: int
    inSession: int
    completed: int
    cancelled: int
    noShow: int

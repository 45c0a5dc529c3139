"""Tracking router - FastAPI endpoints for the clinic front desk board"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_staff
from ...database import get_db
from ...utils.clock import Clock, get_clock
from .schemas import (
    BoardSummary,
    CreateWalkinBookingRequest,
    TrackingAppointment,
    UpdateTrackingStatusRequest,
    WalkinBookingResponse,
)
from .service import UNSET, TrackingService

router = APIRouter(prefix="/admin/tracking", tags=["Clinic Tracking"])


def get_tracking_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> TrackingService:
    """Dependency injection for TrackingService"""
    return TrackingService(db, clock)


@router.get("/today", response_model=list[TrackingAppointment])
async def get_today(
    date: Optional[str] = Query(None, description="Board date, YYYY-MM-DD; defaults to today"),
    tz: Optional[str] = Query(None, description="IANA timezone of the clinic"),
    clinicId: Optional[str] = Query(None),
    _staff: str = Depends(get_current_staff),
    service: TrackingService = Depends(get_tracking_service),
):
    """Get the day's appointments in arrival order"""
    return service.get_board(date, tz, clinicId)


@router.get("/summary", response_model=BoardSummary)
async def get_summary(
    date: Optional[str] = Query(None),
    tz: Optional[str] = Query(None),
    clinicId: Optional[str] = Query(None),
    _staff: str = Depends(get_current_staff),
    service: TrackingService = Depends(get_tracking_service),
):
    """Get counts of the day's appointments by status"""
    return service.get_board_summary(date, tz, clinicId)


@router.post("/walk-ins", response_model=WalkinBookingResponse, status_code=201)
async def create_walkin_booking(
    data: CreateWalkinBookingRequest,
    _staff: str = Depends(get_current_staff),
    service: TrackingService = Depends(get_tracking_service),
):
    """Book a walk-in child with a therapist"""
    return service.create_walkin_booking(data)


@router.patch("/{booking_id}", response_model=TrackingAppointment)
async def update_tracking_status(
    booking_id: str,
    data: UpdateTrackingStatusRequest,
    _staff: str = Depends(get_current_staff),
    service: TrackingService = Depends(get_tracking_service),
):
    """Change a booking's front desk status"""
    case_id = data.caseId if "caseId" in data.model_fields_set else UNSET
    return service.update_tracking_status(
        booking_id,
        data.status,
        notes=data.notes,
        case_id=case_id,
        expected_version=data.expectedVersion,
    )

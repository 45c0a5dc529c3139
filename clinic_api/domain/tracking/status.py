"""
Front desk status rules.

Effective status: the explicit tracking overlay wins, otherwise it is derived
from the booking's lifecycle status.

Tracking statuses: SCHEDULED → WAITING → IN_SESSION → COMPLETED is the usual
flow, with CANCELLED / NO_SHOW on the side and SCHEDULED as a reset. Staff
may move a booking to any status; corrections out of the usual flow are
allowed and only logged.
"""

from datetime import datetime
from enum import Enum
from typing import Optional


class TrackingStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    WAITING = "WAITING"
    IN_SESSION = "IN_SESSION"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class LifecycleStatus(str, Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PENDING_ACCEPTANCE = "PENDING_ACCEPTANCE"
    ACCEPTED = "ACCEPTED"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED_BY_PATIENT = "CANCELLED_BY_PATIENT"
    CANCELLED_BY_THERAPIST = "CANCELLED_BY_THERAPIST"
    NO_SHOW_PATIENT = "NO_SHOW_PATIENT"
    NO_SHOW_THERAPIST = "NO_SHOW_THERAPIST"


LIFECYCLE_TO_TRACKING = {
    LifecycleStatus.CONFIRMED.value: TrackingStatus.SCHEDULED,
    LifecycleStatus.ACCEPTED.value: TrackingStatus.SCHEDULED,
    LifecycleStatus.IN_PROGRESS.value: TrackingStatus.IN_SESSION,
    LifecycleStatus.COMPLETED.value: TrackingStatus.COMPLETED,
    LifecycleStatus.CANCELLED_BY_PATIENT.value: TrackingStatus.CANCELLED,
    LifecycleStatus.CANCELLED_BY_THERAPIST.value: TrackingStatus.CANCELLED,
    LifecycleStatus.NO_SHOW_PATIENT.value: TrackingStatus.NO_SHOW,
    LifecycleStatus.NO_SHOW_THERAPIST.value: TrackingStatus.NO_SHOW,
}

# Lifecycle statuses the clinic board shows; payment-pending bookings stay off it
BOARD_VISIBLE_STATUSES = (
    LifecycleStatus.CONFIRMED.value,
    LifecycleStatus.IN_PROGRESS.value,
    LifecycleStatus.COMPLETED.value,
    LifecycleStatus.CANCELLED_BY_PATIENT.value,
    LifecycleStatus.CANCELLED_BY_THERAPIST.value,
    LifecycleStatus.NO_SHOW_PATIENT.value,
    LifecycleStatus.NO_SHOW_THERAPIST.value,
)

# Usual front desk flow. Anything else is still applied, only logged.
EXPECTED_TRANSITIONS = {
    TrackingStatus.SCHEDULED: {
        TrackingStatus.WAITING,
        TrackingStatus.IN_SESSION,
        TrackingStatus.CANCELLED,
        TrackingStatus.NO_SHOW,
    },
    TrackingStatus.WAITING: {
        TrackingStatus.SCHEDULED,
        TrackingStatus.IN_SESSION,
        TrackingStatus.CANCELLED,
        TrackingStatus.NO_SHOW,
    },
    TrackingStatus.IN_SESSION: {
        TrackingStatus.SCHEDULED,
        TrackingStatus.COMPLETED,
        TrackingStatus.CANCELLED,
    },
    # Terminal states: SCHEDULED undoes a status set by mistake
    TrackingStatus.COMPLETED: {TrackingStatus.SCHEDULED},
    TrackingStatus.CANCELLED: {TrackingStatus.SCHEDULED},
    TrackingStatus.NO_SHOW: {TrackingStatus.SCHEDULED},
}


def resolve_effective_status(tracking_status: Optional[str], lifecycle_status: str) -> TrackingStatus:
    """Single status shown to staff for a booking"""
    if tracking_status:
        return TrackingStatus(tracking_status)
    return LIFECYCLE_TO_TRACKING.get(lifecycle_status, TrackingStatus.SCHEDULED)


def resolve_booking_status(booking) -> TrackingStatus:
    """Effective status of a Booking row"""
    return resolve_effective_status(booking.tracking_status, booking.lifecycle_status)


def is_expected_transition(current: TrackingStatus, target: TrackingStatus) -> bool:
    """True when ``target`` follows ``current`` in the usual front desk flow"""
    if current == target:
        return True
    return target in EXPECTED_TRANSITIONS[current]


def build_transition_updates(
    target: TrackingStatus,
    now: datetime,
    notes: Optional[str] = None,
) -> dict:
    """
    Column updates for moving a booking to ``target``.

    The result is written in one UPDATE so either every side effect lands or
    none does. Any status may follow any other.

    Args:
        target: Requested tracking status
        now: Timestamp recorded by the transition
        notes: Receptionist notes; doubles as cancellation reason

    Returns:
        dict: Booking column name → new value
    """
    updates = {"tracking_status": target.value}
    if notes is not None:
        updates["receptionist_notes"] = notes

    if target == TrackingStatus.WAITING:
        updates["checked_in_at"] = now
    elif target == TrackingStatus.IN_SESSION:
        updates["session_started_at"] = now
        updates["lifecycle_status"] = LifecycleStatus.IN_PROGRESS.value
    elif target == TrackingStatus.COMPLETED:
        updates["session_ended_at"] = now
        updates["session_completed_at"] = now
        updates["lifecycle_status"] = LifecycleStatus.COMPLETED.value
    elif target == TrackingStatus.CANCELLED:
        updates["lifecycle_status"] = LifecycleStatus.CANCELLED_BY_THERAPIST.value
        updates["cancelled_at"] = now
        if notes:
            updates["cancellation_reason"] = notes
    elif target == TrackingStatus.NO_SHOW:
        updates["lifecycle_status"] = LifecycleStatus.NO_SHOW_PATIENT.value
    elif target == TrackingStatus.SCHEDULED:
        # Reset - clear the visit's progress, lifecycle is left as it is
        updates["checked_in_at"] = None
        updates["session_started_at"] = None
        updates["session_ended_at"] = None

    return updates

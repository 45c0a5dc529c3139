"""In-process listeners for committed tracking status changes"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from .status import TrackingStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackingStatusChanged:
    booking_id: str
    previous_status: TrackingStatus
    new_status: TrackingStatus
    occurred_at: datetime
    version: int


Listener = Callable[[TrackingStatusChanged], None]

_listeners: list[Listener] = []


def subscribe(listener: Listener) -> Listener:
    """Register a listener; usable as a decorator"""
    _listeners.append(listener)
    return listener


def unsubscribe(listener: Listener) -> None:
    if listener in _listeners:
        _listeners.remove(listener)


def publish(event: TrackingStatusChanged) -> None:
    """Deliver ``event`` to every listener; a failing listener does not stop the rest"""
    logger.info(
        f"📣 Booking {event.booking_id}: {event.previous_status.value} → {event.new_status.value} "
        f"(v{event.version})"
    )
    for listener in list(_listeners):
        try:
            listener(event)
        except Exception as e:
            logger.error(f"❌ Tracking listener {getattr(listener, '__name__', listener)} failed: {e}")

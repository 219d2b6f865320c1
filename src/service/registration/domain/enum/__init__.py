"""Registration Domain Enums"""

from src.service.registration.domain.enum.booking_status import (
    ACTIVE_BOOKING_STATUSES,
    BookingStatus,
)
from src.service.registration.domain.enum.check_in_method import CheckInMethod
from src.service.registration.domain.enum.event_status import EventStatus
from src.service.registration.domain.enum.notification_type import NotificationType

__all__ = [
    'ACTIVE_BOOKING_STATUSES',
    'BookingStatus',
    'CheckInMethod',
    'EventStatus',
    'NotificationType',
]

from datetime import datetime
from uuid import UUID

import attrs

from src.service.registration.domain.entity.booking_entity import Booking
from src.service.registration.domain.enum.check_in_method import CheckInMethod


@attrs.frozen
class CheckInLog:
    """Append-only audit row, written in the same transaction as the check-in"""

    id: UUID
    booking_id: UUID
    event_id: UUID
    subject_id: str
    checked_in_by: str
    method: CheckInMethod
    checked_in_at: datetime

    @classmethod
    def for_booking(cls, *, id: UUID, booking: Booking) -> 'CheckInLog':
        if booking.checked_in_at is None or booking.checked_in_by is None:
            raise ValueError(f'Booking {booking.id} is not checked in')
        return cls(
            id=id,
            booking_id=booking.id,
            event_id=booking.event_id,
            subject_id=booking.subject_id,
            checked_in_by=booking.checked_in_by,
            method=booking.check_in_method or CheckInMethod.MANUAL_ENTRY,
            checked_in_at=booking.checked_in_at,
        )

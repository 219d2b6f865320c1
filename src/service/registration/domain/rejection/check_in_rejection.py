"""
Check-in rejections

Every rejection carries the ticket error type shown at the venue, a short title and a
message safe for the operator screen. A rejection never writes a check-in log.
"""

from datetime import datetime
from enum import StrEnum
from typing import ClassVar

from src.platform.exception.exceptions import CustomBaseError, ErrorCategory


class TicketErrorType(StrEnum):
    ALREADY_CHECKED_IN = 'already_checked_in'
    CANCELLED = 'cancelled'
    WAITLIST = 'waitlist'
    NOT_FOUND = 'not_found'
    WRONG_EVENT = 'wrong_event'
    INVALID_FORMAT = 'invalid_format'
    EXPIRED = 'expired'


class CheckInRejection(CustomBaseError):
    category = ErrorCategory.VALIDATION
    error_type: ClassVar[TicketErrorType]
    title: ClassVar[str]

    def __init__(self, message: str | None = None, *, user_message: str | None = None) -> None:
        super().__init__(
            message or self.default_user_message,
            code=self.error_type.value,
            user_message=user_message,
        )


class AlreadyCheckedIn(CheckInRejection):
    category = ErrorCategory.CONFLICT
    error_type = TicketErrorType.ALREADY_CHECKED_IN
    title = 'Already Checked In'
    default_user_message = 'This participant has already been checked in.'

    def __init__(self, *, checked_in_at: datetime | None, booking_id: str | None = None) -> None:
        self.checked_in_at = checked_in_at
        super().__init__(f'Booking {booking_id} already checked in at {checked_in_at}')


class TicketCancelled(CheckInRejection):
    error_type = TicketErrorType.CANCELLED
    title = 'Booking Cancelled'
    default_user_message = 'This booking has been cancelled and is no longer valid.'


class WaitlistNotConfirmed(CheckInRejection):
    error_type = TicketErrorType.WAITLIST
    title = 'Waitlist Only'
    default_user_message = 'This participant is on the waitlist and has not been confirmed.'


class TicketNotFound(CheckInRejection):
    category = ErrorCategory.NOT_FOUND
    error_type = TicketErrorType.NOT_FOUND
    title = 'Ticket Not Found'
    default_user_message = 'This ticket does not exist in our system.'


class WrongEvent(CheckInRejection):
    error_type = TicketErrorType.WRONG_EVENT
    title = 'Wrong Event'
    default_user_message = 'This ticket is for a different event.'

    def __init__(self, *, event_title: str | None, actual_event_id: str | None = None) -> None:
        self.event_title = event_title
        self.actual_event_id = actual_event_id
        super().__init__(f'Ticket belongs to event {actual_event_id} ({event_title})')


class InvalidTicketFormat(CheckInRejection):
    error_type = TicketErrorType.INVALID_FORMAT
    title = 'Invalid Format'
    default_user_message = 'The ticket ID format is not valid.'


class TicketExpired(CheckInRejection):
    error_type = TicketErrorType.EXPIRED
    title = 'Ticket Expired'
    default_user_message = 'This event has already ended.'

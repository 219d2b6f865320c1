"""
Booking ledger rejections

Raised by the domain entities while deciding a reservation, cancellation or promotion.
They are the same on every store, so the router never falls back on them.
"""

from src.platform.exception.exceptions import (
    ConflictError,
    DomainError,
    ForbiddenError,
    NotFoundError,
)


class EventNotFound(NotFoundError):
    default_code = 'event-not-found'
    default_user_message = 'This event is no longer available.'


class EventNotPublished(DomainError):
    default_code = 'event-not-published'
    default_user_message = 'Registration for this event is not open.'


class EventEnded(DomainError):
    default_code = 'event-ended'
    default_user_message = 'This event has already taken place.'


class AlreadyReserved(ConflictError):
    default_code = 'already-reserved'
    default_user_message = 'You have already registered for this event.'


class BookingNotFound(NotFoundError):
    default_code = 'booking-not-found'
    default_user_message = 'Booking not found.'


class Unauthorized(ForbiddenError):
    default_code = 'not-booking-owner'
    default_user_message = 'You can only cancel your own bookings.'


class AlreadyCancelled(ConflictError):
    default_code = 'already-cancelled'
    default_user_message = 'This booking has already been cancelled.'


class CannotCancelAfterCheckIn(DomainError):
    default_code = 'cancel-after-check-in'
    default_user_message = 'Cannot cancel a booking after check-in.'


class SlotCounterOutOfRange(DomainError):
    """An increment/decrement would break 0 <= registered_count <= capacity"""

    default_code = 'out-of-range'
    default_user_message = 'The provided value is out of the allowed range.'

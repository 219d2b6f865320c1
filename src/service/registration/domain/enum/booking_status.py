from enum import StrEnum


class BookingStatus(StrEnum):
    CONFIRMED = 'confirmed'
    WAITLIST = 'waitlist'
    CHECKED_IN = 'checked_in'
    CANCELLED = 'cancelled'
    EXPIRED = 'expired'
    NO_SHOW = 'no_show'


# A subject may hold at most one booking in these states per event
ACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.WAITLIST})

from enum import StrEnum


class OperationName(StrEnum):
    """Store-agnostic names of every query and mutation a store must implement"""

    CREATE_EVENT = 'CreateEvent'
    CREATE_BOOKING = 'CreateBooking'
    CANCEL_BOOKING = 'CancelBooking'
    PROMOTE_FROM_WAITLIST = 'PromoteFromWaitlist'
    CHECK_IN_PARTICIPANT = 'CheckInParticipant'
    GET_BOOKING_BY_ID = 'GetBookingById'
    GET_BOOKING_BY_TICKET_ID = 'GetBookingByTicketId'
    GET_EVENT_BY_ID = 'GetEventById'
    CHECK_EXISTING_BOOKING = 'CheckExistingBooking'
    GET_EVENT_PARTICIPANTS = 'GetEventParticipants'
    GET_USER_BOOKINGS = 'GetUserBookings'
    GET_CHECK_IN_LOGS = 'GetCheckInLogs'
    LIST_EVENTS_PENDING_PROMOTION = 'ListEventsPendingPromotion'
    INCREMENT_EVENT_SLOTS = 'IncrementEventSlots'
    DECREMENT_EVENT_SLOTS = 'DecrementEventSlots'

from src.service.registration.domain.rejection.check_in_rejection import (
    AlreadyCheckedIn,
    CheckInRejection,
    InvalidTicketFormat,
    TicketCancelled,
    TicketErrorType,
    TicketExpired,
    TicketNotFound,
    WaitlistNotConfirmed,
    WrongEvent,
)
from src.service.registration.domain.rejection.ledger_rejection import (
    AlreadyCancelled,
    AlreadyReserved,
    BookingNotFound,
    CannotCancelAfterCheckIn,
    EventEnded,
    EventNotFound,
    EventNotPublished,
    SlotCounterOutOfRange,
    Unauthorized,
)

__all__ = [
    'AlreadyCancelled',
    'AlreadyCheckedIn',
    'AlreadyReserved',
    'BookingNotFound',
    'CannotCancelAfterCheckIn',
    'CheckInRejection',
    'EventEnded',
    'EventNotFound',
    'EventNotPublished',
    'InvalidTicketFormat',
    'SlotCounterOutOfRange',
    'TicketCancelled',
    'TicketErrorType',
    'TicketExpired',
    'TicketNotFound',
    'Unauthorized',
    'WaitlistNotConfirmed',
    'WrongEvent',
]

"""Results returned by the store transactions and the registration use cases"""

from uuid import UUID

import attrs

from src.service.registration.domain.entity.booking_entity import Booking
from src.service.registration.domain.entity.check_in_log_entity import CheckInLog
from src.service.registration.domain.entity.event_entity import Event
from src.service.registration.domain.entity.notification_entity import Notification
from src.service.registration.domain.enum.check_in_method import CheckInMethod


@attrs.frozen
class ReservationResult:
    booking_id: UUID
    is_waitlist: bool
    ticket_id: str
    waitlist_position: int | None = None


@attrs.frozen
class CancellationOutcome:
    booking: Booking
    event: Event
    released_seat: bool


@attrs.frozen
class PromotionOutcome:
    booking: Booking
    event: Event
    notification: Notification


@attrs.frozen
class CheckInResult:
    booking: Booking
    event: Event
    log: CheckInLog


@attrs.frozen
class ResolvedTicket:
    booking_id: UUID
    ticket_id: str
    method: CheckInMethod

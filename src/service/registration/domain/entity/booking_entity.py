from datetime import datetime, timedelta
from uuid import UUID

import attrs

from src.platform.logging.loguru_io import Logger
from src.service.registration.domain.entity.event_entity import Event
from src.service.registration.domain.enum.booking_status import (
    ACTIVE_BOOKING_STATUSES,
    BookingStatus,
)
from src.service.registration.domain.enum.check_in_method import CheckInMethod
from src.service.registration.domain.rejection.check_in_rejection import (
    AlreadyCheckedIn,
    TicketCancelled,
    TicketExpired,
    WaitlistNotConfirmed,
)
from src.service.registration.domain.rejection.ledger_rejection import (
    AlreadyCancelled,
    CannotCancelAfterCheckIn,
    SlotCounterOutOfRange,
    Unauthorized,
)


@attrs.define
class Booking:
    id: UUID
    subject_id: str
    event_id: UUID
    ticket_id: str
    status: BookingStatus = BookingStatus.CONFIRMED
    waitlist_position: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    checked_in_at: datetime | None = None
    checked_in_by: str | None = None
    check_in_method: CheckInMethod | None = None

    @property
    def is_waitlist(self) -> bool:
        return self.status == BookingStatus.WAITLIST

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    @classmethod
    @Logger.io
    def create_confirmed(
        cls, *, id: UUID, subject_id: str, event_id: UUID, ticket_id: str, now: datetime
    ) -> 'Booking':
        return cls(
            id=id,
            subject_id=subject_id,
            event_id=event_id,
            ticket_id=ticket_id,
            status=BookingStatus.CONFIRMED,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    @Logger.io
    def create_waitlisted(
        cls,
        *,
        id: UUID,
        subject_id: str,
        event_id: UUID,
        ticket_id: str,
        position: int,
        now: datetime,
    ) -> 'Booking':
        return cls(
            id=id,
            subject_id=subject_id,
            event_id=event_id,
            ticket_id=ticket_id,
            status=BookingStatus.WAITLIST,
            waitlist_position=position,
            created_at=now,
            updated_at=now,
        )

    def cancel(self, *, subject_id: str, now: datetime, reason: str | None = None) -> 'Booking':
        if self.subject_id != subject_id:
            raise Unauthorized(f'Subject {subject_id} does not own booking {self.id}')
        if self.status == BookingStatus.CANCELLED:
            raise AlreadyCancelled(f'Booking {self.id} is already cancelled')
        if self.status == BookingStatus.CHECKED_IN:
            raise CannotCancelAfterCheckIn(f'Booking {self.id} is already checked in')
        if not self.is_active:
            raise SlotCounterOutOfRange(f'Booking {self.id} is {self.status}, nothing to cancel')
        return attrs.evolve(
            self,
            status=BookingStatus.CANCELLED,
            waitlist_position=None,
            cancelled_at=now,
            cancel_reason=reason,
            updated_at=now,
        )

    def promote(self, *, now: datetime) -> 'Booking':
        if self.status != BookingStatus.WAITLIST:
            raise SlotCounterOutOfRange(f'Booking {self.id} is {self.status}, not waitlisted')
        return attrs.evolve(
            self,
            status=BookingStatus.CONFIRMED,
            waitlist_position=None,
            updated_at=now,
        )

    def check_in(
        self,
        *,
        event: Event,
        operator_id: str,
        method: CheckInMethod,
        now: datetime,
        grace: timedelta,
    ) -> 'Booking':
        """
        confirmed -> checked_in; every other state is a typed rejection.

        The order matters: a second scan of a checked-in ticket must report the
        original scan time even after the grace window closed.
        """
        if self.status == BookingStatus.CHECKED_IN:
            raise AlreadyCheckedIn(checked_in_at=self.checked_in_at, booking_id=str(self.id))
        if self.status == BookingStatus.CANCELLED:
            raise TicketCancelled(f'Booking {self.id} is cancelled')
        if self.status == BookingStatus.WAITLIST:
            raise WaitlistNotConfirmed(f'Booking {self.id} is waitlisted')
        if self.status in (BookingStatus.EXPIRED, BookingStatus.NO_SHOW):
            raise TicketExpired(f'Booking {self.id} is {self.status}')
        if now > event.check_in_deadline(grace):
            raise TicketExpired(
                f'Check-in for event {event.id} closed at {event.check_in_deadline(grace)}'
            )
        return attrs.evolve(
            self,
            status=BookingStatus.CHECKED_IN,
            checked_in_at=now,
            checked_in_by=operator_id,
            check_in_method=method,
            updated_at=now,
        )

"""
Registration ledger - the decisions every store transaction makes

Each store loads a fresh snapshot inside its own transaction primitive, calls one of
these functions, and persists what comes back.
"""

from datetime import datetime, timedelta
from uuid import UUID

import attrs

from src.service.registration.domain.entity.booking_entity import Booking
from src.service.registration.domain.entity.check_in_log_entity import CheckInLog
from src.service.registration.domain.entity.event_entity import Event
from src.service.registration.domain.entity.notification_entity import Notification
from src.service.registration.domain.enum.booking_status import BookingStatus
from src.service.registration.domain.enum.check_in_method import CheckInMethod
from src.service.registration.domain.rejection.check_in_rejection import TicketNotFound
from src.service.registration.domain.rejection.ledger_rejection import (
    AlreadyReserved,
    BookingNotFound,
    EventNotFound,
)


@attrs.frozen
class ReservationDecision:
    event: Event
    booking: Booking


@attrs.frozen
class CancellationDecision:
    event: Event
    booking: Booking
    released_seat: bool


@attrs.frozen
class PromotionDecision:
    event: Event
    booking: Booking
    notification: Notification


@attrs.frozen
class CheckInDecision:
    booking: Booking
    log: CheckInLog


def decide_reservation(
    *,
    event: Event | None,
    event_id: UUID,
    active_booking: Booking | None,
    booking_id: UUID,
    subject_id: str,
    ticket_id: str,
    now: datetime,
) -> ReservationDecision:
    if event is None:
        raise EventNotFound(f'Event {event_id} not found')
    event.ensure_published()
    if active_booking is not None:
        raise AlreadyReserved(
            f'Subject {subject_id} already holds booking {active_booking.id} for event {event_id}'
        )
    event.ensure_not_started(now=now)

    if event.has_open_seat:
        return ReservationDecision(
            event=event.with_seat_taken(now=now),
            booking=Booking.create_confirmed(
                id=booking_id,
                subject_id=subject_id,
                event_id=event.id,
                ticket_id=ticket_id,
                now=now,
            ),
        )

    updated_event, position = event.with_waitlist_joined(now=now)
    return ReservationDecision(
        event=updated_event,
        booking=Booking.create_waitlisted(
            id=booking_id,
            subject_id=subject_id,
            event_id=event.id,
            ticket_id=ticket_id,
            position=position,
            now=now,
        ),
    )


def decide_cancellation(
    *,
    booking: Booking | None,
    booking_id: UUID,
    event: Event | None,
    subject_id: str,
    now: datetime,
    reason: str | None = None,
) -> CancellationDecision:
    if booking is None:
        raise BookingNotFound(f'Booking {booking_id} not found')
    cancelled = booking.cancel(subject_id=subject_id, now=now, reason=reason)
    if event is None:
        raise EventNotFound(f'Event {booking.event_id} of booking {booking_id} not found')

    released_seat = booking.status == BookingStatus.CONFIRMED
    if released_seat:
        updated_event = event.with_seat_released(now=now)
    else:
        updated_event = event.with_waitlist_left(now=now)
    return CancellationDecision(
        event=updated_event, booking=cancelled, released_seat=released_seat
    )


def decide_promotion(
    *,
    event: Event | None,
    head: Booking | None,
    notification_id: UUID,
    now: datetime,
) -> PromotionDecision | None:
    """``head`` is the waitlisted booking with the lowest position, if any"""
    if event is None or event.is_deleted or not event.has_open_seat or head is None:
        return None

    promoted = head.promote(now=now)
    return PromotionDecision(
        event=event.with_promotion(now=now),
        booking=promoted,
        notification=Notification.waitlist_promoted(
            id=notification_id,
            booking_id=promoted.id,
            subject_id=promoted.subject_id,
            event_id=event.id,
            event_title=event.title,
            now=now,
        ),
    )


def decide_check_in(
    *,
    booking: Booking | None,
    booking_id: UUID,
    event: Event | None,
    operator_id: str,
    method: CheckInMethod,
    log_id: UUID,
    now: datetime,
    grace: timedelta,
) -> CheckInDecision:
    if booking is None:
        raise TicketNotFound(f'Booking {booking_id} not found')
    if event is None:
        raise TicketNotFound(f'Event {booking.event_id} of booking {booking_id} not found')
    checked_in = booking.check_in(
        event=event, operator_id=operator_id, method=method, now=now, grace=grace
    )
    return CheckInDecision(
        booking=checked_in, log=CheckInLog.for_booking(id=log_id, booking=checked_in)
    )


def first_in_line(waitlisted: list[Booking]) -> Booking | None:
    candidates = [b for b in waitlisted if b.status == BookingStatus.WAITLIST]
    if not candidates:
        return None
    # positions are unique per event; uuid7 ids break ties for rows written by hand
    return min(candidates, key=lambda b: (b.waitlist_position or 0, b.id))

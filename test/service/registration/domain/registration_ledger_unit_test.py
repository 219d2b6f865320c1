from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from src.service.registration.domain.entity.booking_entity import Booking
from src.service.registration.domain.entity.event_entity import Event
from src.service.registration.domain.enum.booking_status import BookingStatus
from src.service.registration.domain.enum.event_status import EventStatus
from src.service.registration.domain.enum.notification_type import NotificationType
from src.service.registration.domain.registration_ledger import (
    decide_cancellation,
    decide_promotion,
    decide_reservation,
    first_in_line,
)
from src.service.registration.domain.rejection.ledger_rejection import (
    AlreadyReserved,
    BookingNotFound,
    EventEnded,
    EventNotFound,
    EventNotPublished,
)


NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _event(**overrides) -> Event:
    fields = {
        'id': uuid4(),
        'title': 'Spring Tech Meetup',
        'event_date': NOW + timedelta(days=2),
        'capacity': 1,
        'status': EventStatus.PUBLISHED,
    }
    fields.update(overrides)
    return Event(**fields)


def _reserve(event: Event | None, *, active: Booking | None = None, subject_id: str = 's-1'):
    return decide_reservation(
        event=event,
        event_id=event.id if event else uuid4(),
        active_booking=active,
        booking_id=uuid4(),
        subject_id=subject_id,
        ticket_id='EVT-1-AAAAAA',
        now=NOW,
    )


def _waitlisted(event: Event, position: int) -> Booking:
    return Booking.create_waitlisted(
        id=uuid4(),
        subject_id=f'waiting-{position}',
        event_id=event.id,
        ticket_id=f'EVT-1-W{position}',
        position=position,
        now=NOW,
    )


@pytest.mark.unit
class TestDecideReservation:
    def test_free_seat_confirms(self) -> None:
        decision = _reserve(_event())

        assert decision.booking.status == BookingStatus.CONFIRMED
        assert decision.booking.waitlist_position is None
        assert decision.event.registered_count == 1

    def test_full_event_waitlists_at_next_position(self) -> None:
        event = _event(registered_count=1, waitlist_count=2, waitlist_sequence=2)

        decision = _reserve(event)

        assert decision.booking.status == BookingStatus.WAITLIST
        assert decision.booking.waitlist_position == 3
        assert decision.event.waitlist_count == 3
        assert decision.event.registered_count == 1

    def test_missing_event(self) -> None:
        with pytest.raises(EventNotFound):
            _reserve(None)

    def test_unpublished_event(self) -> None:
        with pytest.raises(EventNotPublished):
            _reserve(_event(status=EventStatus.DRAFT))

    def test_active_booking_conflicts(self) -> None:
        event = _event()
        existing = _reserve(event).booking

        with pytest.raises(AlreadyReserved):
            _reserve(event, active=existing)

    def test_duplicate_is_reported_before_event_ended(self) -> None:
        # Given: a past event the subject already holds a booking for
        event = _event(event_date=NOW - timedelta(hours=1))
        existing = Booking.create_confirmed(
            id=uuid4(), subject_id='s-1', event_id=event.id, ticket_id='EVT-1-X', now=NOW
        )

        # Then: AlreadyReserved, not EventEnded
        with pytest.raises(AlreadyReserved):
            _reserve(event, active=existing)

    def test_past_event(self) -> None:
        with pytest.raises(EventEnded):
            _reserve(_event(event_date=NOW - timedelta(minutes=1)))


@pytest.mark.unit
class TestDecideCancellation:
    def test_confirmed_cancel_releases_seat(self) -> None:
        event = _event()
        decision = _reserve(event)

        cancelled = decide_cancellation(
            booking=decision.booking,
            booking_id=decision.booking.id,
            event=decision.event,
            subject_id='s-1',
            now=NOW,
        )

        assert cancelled.released_seat is True
        assert cancelled.event.registered_count == 0
        assert cancelled.booking.status == BookingStatus.CANCELLED

    def test_waitlisted_cancel_shrinks_waitlist(self) -> None:
        event = _event(registered_count=1)
        decision = _reserve(event)

        cancelled = decide_cancellation(
            booking=decision.booking,
            booking_id=decision.booking.id,
            event=decision.event,
            subject_id='s-1',
            now=NOW,
        )

        assert cancelled.released_seat is False
        assert cancelled.event.waitlist_count == 0
        assert cancelled.event.registered_count == 1

    def test_missing_booking(self) -> None:
        booking_id = uuid4()

        with pytest.raises(BookingNotFound):
            decide_cancellation(
                booking=None, booking_id=booking_id, event=None, subject_id='s-1', now=NOW
            )


@pytest.mark.unit
class TestDecidePromotion:
    def test_promotes_head_and_creates_notification(self) -> None:
        event = _event(capacity=1, waitlist_count=2, waitlist_sequence=2)
        head = _waitlisted(event, 1)

        decision = decide_promotion(event=event, head=head, notification_id=uuid4(), now=NOW)

        assert decision is not None
        assert decision.booking.id == head.id
        assert decision.booking.status == BookingStatus.CONFIRMED
        assert (decision.event.registered_count, decision.event.waitlist_count) == (1, 1)
        assert decision.notification.type == NotificationType.WAITLIST_PROMOTED
        assert decision.notification.subject_id == head.subject_id
        assert decision.notification.read is False
        assert 'Spring Tech Meetup' in decision.notification.message

    def test_no_open_seat_is_noop(self) -> None:
        event = _event(capacity=1, registered_count=1, waitlist_count=1, waitlist_sequence=1)

        decision = decide_promotion(
            event=event, head=_waitlisted(event, 1), notification_id=uuid4(), now=NOW
        )

        assert decision is None

    def test_empty_waitlist_is_noop(self) -> None:
        assert decide_promotion(event=_event(), head=None, notification_id=uuid4(), now=NOW) is None

    def test_first_in_line_is_lowest_position(self) -> None:
        event = _event()
        third, first, second = _waitlisted(event, 3), _waitlisted(event, 1), _waitlisted(event, 2)
        confirmed = first.promote(now=NOW)

        assert first_in_line([third, first, second]) is first
        assert first_in_line([third, confirmed, second]) is second
        assert first_in_line([confirmed]) is None

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from src.service.registration.domain.entity.event_entity import Event
from src.service.registration.domain.enum.event_status import EventStatus
from src.service.registration.domain.rejection.ledger_rejection import (
    EventEnded,
    EventNotFound,
    EventNotPublished,
    SlotCounterOutOfRange,
)


NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _event(**overrides) -> Event:
    fields = {
        'id': uuid4(),
        'title': 'Board Game Night',
        'event_date': NOW + timedelta(days=1),
        'capacity': 2,
        'status': EventStatus.PUBLISHED,
    }
    fields.update(overrides)
    return Event(**fields)


@pytest.mark.unit
class TestEventCounters:
    def test_seat_taken_bumps_version(self) -> None:
        event = _event()

        updated = event.with_seat_taken(now=NOW)

        assert updated.registered_count == 1
        assert updated.version == event.version + 1
        assert updated.updated_at == NOW
        assert event.registered_count == 0

    def test_seat_taken_rejected_when_full(self) -> None:
        event = _event(capacity=1, registered_count=1)

        with pytest.raises(SlotCounterOutOfRange):
            event.with_seat_taken()

    def test_seat_released_rejected_at_zero(self) -> None:
        with pytest.raises(SlotCounterOutOfRange):
            _event().with_seat_released()

    def test_waitlist_positions_are_never_reused(self) -> None:
        event = _event(capacity=0)

        event, first = event.with_waitlist_joined()
        event, second = event.with_waitlist_joined()
        event = event.with_waitlist_left()
        event, third = event.with_waitlist_joined()

        assert (first, second, third) == (1, 2, 3)
        assert event.waitlist_count == 2
        assert event.waitlist_sequence == 3

    def test_promotion_moves_one_from_waitlist_to_registered(self) -> None:
        event = _event(capacity=2, registered_count=1, waitlist_count=3, waitlist_sequence=3)

        promoted = event.with_promotion()

        assert (promoted.registered_count, promoted.waitlist_count) == (2, 2)

    def test_promotion_rejected_without_open_seat(self) -> None:
        event = _event(capacity=1, registered_count=1, waitlist_count=1, waitlist_sequence=1)

        with pytest.raises(SlotCounterOutOfRange):
            event.with_promotion()

    def test_negative_counters_are_invalid(self) -> None:
        with pytest.raises(ValueError):
            _event(registered_count=-1)

    def test_pending_promotion(self) -> None:
        assert _event(waitlist_count=1, waitlist_sequence=1).is_pending_promotion is True
        assert _event(registered_count=2, waitlist_count=1).is_pending_promotion is False
        assert _event(waitlist_count=0).is_pending_promotion is False
        assert _event(waitlist_count=1, is_deleted=True).is_pending_promotion is False


@pytest.mark.unit
class TestEventGuards:
    def test_deleted_event_reads_as_not_found(self) -> None:
        with pytest.raises(EventNotFound):
            _event(is_deleted=True).ensure_published()

    @pytest.mark.parametrize(
        'status', [EventStatus.DRAFT, EventStatus.CANCELLED, EventStatus.COMPLETED]
    )
    def test_only_published_events_accept_registrations(self, status: EventStatus) -> None:
        with pytest.raises(EventNotPublished):
            _event(status=status).ensure_published()

    def test_started_event_rejects(self) -> None:
        with pytest.raises(EventEnded):
            _event(event_date=NOW).ensure_not_started(now=NOW)

    def test_check_in_deadline_adds_grace(self) -> None:
        event = _event()

        assert event.check_in_deadline(timedelta(hours=4)) == event.event_date + timedelta(hours=4)

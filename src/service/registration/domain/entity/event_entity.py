from datetime import datetime, timedelta
from uuid import UUID

import attrs

from src.service.registration.domain.enum.event_status import EventStatus
from src.service.registration.domain.rejection.ledger_rejection import (
    EventEnded,
    EventNotFound,
    EventNotPublished,
    SlotCounterOutOfRange,
)


def _non_negative(instance: 'Event', attribute: attrs.Attribute, value: int) -> None:
    if value < 0:
        raise ValueError(f'{attribute.name} must be >= 0, got {value}')


@attrs.define
class Event:
    """
    Capacity-limited event.

    ``registered_count`` and ``waitlist_count`` are only changed through the
    ``with_*`` transitions below, which return a new snapshot with ``version`` bumped.
    ``waitlist_sequence`` is the highest waitlist position ever handed out, so
    positions stay unique even after people leave the waitlist.
    """

    id: UUID
    title: str
    event_date: datetime
    capacity: int = attrs.field(validator=_non_negative)
    registered_count: int = attrs.field(default=0, validator=_non_negative)
    waitlist_count: int = attrs.field(default=0, validator=_non_negative)
    waitlist_sequence: int = attrs.field(default=0, validator=_non_negative)
    status: EventStatus = EventStatus.DRAFT
    is_deleted: bool = False
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def open_seats(self) -> int:
        return max(0, self.capacity - self.registered_count)

    @property
    def has_open_seat(self) -> bool:
        return self.registered_count < self.capacity

    @property
    def is_pending_promotion(self) -> bool:
        return not self.is_deleted and self.has_open_seat and self.waitlist_count > 0

    def check_in_deadline(self, grace: timedelta) -> datetime:
        return self.event_date + grace

    def ensure_published(self) -> None:
        if self.is_deleted:
            raise EventNotFound(f'Event {self.id} was deleted')
        if self.status != EventStatus.PUBLISHED:
            raise EventNotPublished(f'Event {self.id} is {self.status}')

    def ensure_not_started(self, *, now: datetime) -> None:
        if self.event_date <= now:
            raise EventEnded(f'Event {self.id} started at {self.event_date.isoformat()}')

    def _bumped(self, *, now: datetime | None = None, **changes) -> 'Event':
        return attrs.evolve(
            self, version=self.version + 1, updated_at=now or self.updated_at, **changes
        )

    def with_seat_taken(self, *, now: datetime | None = None) -> 'Event':
        if not self.has_open_seat:
            raise SlotCounterOutOfRange(
                f'Event {self.id} is full ({self.registered_count}/{self.capacity})'
            )
        return self._bumped(now=now, registered_count=self.registered_count + 1)

    def with_seat_released(self, *, now: datetime | None = None) -> 'Event':
        if self.registered_count <= 0:
            raise SlotCounterOutOfRange(f'Event {self.id} has no registered seat to release')
        return self._bumped(now=now, registered_count=self.registered_count - 1)

    def with_waitlist_joined(self, *, now: datetime | None = None) -> tuple['Event', int]:
        position = self.waitlist_sequence + 1
        event = self._bumped(
            now=now,
            waitlist_count=self.waitlist_count + 1,
            waitlist_sequence=position,
        )
        return event, position

    def with_waitlist_left(self, *, now: datetime | None = None) -> 'Event':
        if self.waitlist_count <= 0:
            raise SlotCounterOutOfRange(f'Event {self.id} has an empty waitlist')
        return self._bumped(now=now, waitlist_count=self.waitlist_count - 1)

    def with_promotion(self, *, now: datetime | None = None) -> 'Event':
        if not self.has_open_seat or self.waitlist_count <= 0:
            raise SlotCounterOutOfRange(f'Event {self.id} cannot promote from its waitlist')
        return self._bumped(
            now=now,
            registered_count=self.registered_count + 1,
            waitlist_count=self.waitlist_count - 1,
        )

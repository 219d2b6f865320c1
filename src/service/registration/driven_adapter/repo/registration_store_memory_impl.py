"""
In-memory Registration Store

Single-process store with optimistic versioned transactions:
- a transaction records the version of every key it reads
- writes are staged and applied at commit only if no read key changed meanwhile
- a changed key aborts the commit with a retryable ``aborted`` fault

A booking write also bumps its event's key, so reads that scan an event's bookings
(active booking lookup, waitlist head) conflict with any concurrent booking change.
Used as the fallback store in development and by the unit tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, TypeVar
from uuid import UUID

import anyio

from src.platform.exception.exceptions import ConflictError
from src.platform.exception.store_fault import StoreFault
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.dto.registration_outcome import (
    CancellationOutcome,
    CheckInResult,
    PromotionOutcome,
)
from src.service.registration.app.interface.i_registration_store import IRegistrationStore
from src.service.registration.domain.entity.booking_entity import Booking
from src.service.registration.domain.entity.check_in_log_entity import CheckInLog
from src.service.registration.domain.entity.event_entity import Event
from src.service.registration.domain.entity.notification_entity import Notification
from src.service.registration.domain.enum.check_in_method import CheckInMethod
from src.service.registration.domain.registration_ledger import (
    decide_cancellation,
    decide_check_in,
    decide_promotion,
    decide_reservation,
    first_in_line,
)
from src.service.registration.domain.rejection.ledger_rejection import EventNotFound


T = TypeVar('T')
_Key = tuple[str, UUID]
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _event_key(event_id: UUID) -> _Key:
    return ('event', event_id)


def _booking_key(booking_id: UUID) -> _Key:
    return ('booking', booking_id)


class _MemoryState:
    def __init__(self) -> None:
        self.events: dict[UUID, Event] = {}
        self.bookings: dict[UUID, Booking] = {}
        self.check_in_logs: list[CheckInLog] = []
        self.notifications: list[Notification] = []
        self.versions: dict[_Key, int] = {}


class _MemoryTransaction:
    def __init__(self, state: _MemoryState) -> None:
        self._state = state
        self._read_versions: dict[_Key, int] = {}
        self._events: dict[UUID, Event] = {}
        self._bookings: dict[UUID, Booking] = {}
        self._logs: list[CheckInLog] = []
        self._notifications: list[Notification] = []

    def _track(self, key: _Key) -> None:
        self._read_versions.setdefault(key, self._state.versions.get(key, 0))

    # ========== Reads ==========

    def event(self, event_id: UUID) -> Event | None:
        self._track(_event_key(event_id))
        return self._events.get(event_id) or self._state.events.get(event_id)

    def booking(self, booking_id: UUID) -> Booking | None:
        self._track(_booking_key(booking_id))
        return self._bookings.get(booking_id) or self._state.bookings.get(booking_id)

    def bookings_for_event(self, event_id: UUID) -> list[Booking]:
        self._track(_event_key(event_id))
        return [b for b in self._state.bookings.values() if b.event_id == event_id]

    def active_booking(self, *, subject_id: str, event_id: UUID) -> Booking | None:
        for booking in self.bookings_for_event(event_id):
            if booking.subject_id == subject_id and booking.is_active:
                return booking
        return None

    # ========== Staged writes ==========

    def put_event(self, event: Event) -> None:
        self._events[event.id] = event

    def put_booking(self, booking: Booking) -> None:
        self._bookings[booking.id] = booking

    def append_log(self, log: CheckInLog) -> None:
        self._logs.append(log)

    def append_notification(self, notification: Notification) -> None:
        self._notifications.append(notification)

    def commit(self) -> None:
        state = self._state
        for key, version in self._read_versions.items():
            if state.versions.get(key, 0) != version:
                raise StoreFault.from_code('aborted', f'Write conflict on {key[0]} {key[1]}')

        touched: set[_Key] = set()
        for event in self._events.values():
            state.events[event.id] = event
            touched.add(_event_key(event.id))
        for booking in self._bookings.values():
            state.bookings[booking.id] = booking
            touched.add(_booking_key(booking.id))
            touched.add(_event_key(booking.event_id))
        state.check_in_logs.extend(self._logs)
        state.notifications.extend(self._notifications)
        for key in touched:
            state.versions[key] = state.versions.get(key, 0) + 1


class InMemoryRegistrationStore(IRegistrationStore):
    name = 'memory'

    def __init__(self) -> None:
        self._state = _MemoryState()

    async def _transact(self, work: Callable[[_MemoryTransaction], T]) -> T:
        txn = _MemoryTransaction(self._state)
        result = work(txn)
        # other tasks may commit between this transaction's reads and its commit
        await anyio.sleep(0)
        txn.commit()
        return result

    # ========== Queries ==========

    async def get_event_by_id(self, *, event_id: UUID) -> Event | None:
        return self._state.events.get(event_id)

    async def get_booking_by_id(self, *, booking_id: UUID) -> Booking | None:
        return self._state.bookings.get(booking_id)

    async def get_booking_by_ticket_id(self, *, ticket_id: str) -> Booking | None:
        for booking in self._state.bookings.values():
            if booking.ticket_id == ticket_id:
                return booking
        return None

    async def check_existing_booking(self, *, subject_id: str, event_id: UUID) -> Booking | None:
        for booking in self._state.bookings.values():
            if booking.event_id == event_id and booking.subject_id == subject_id:
                if booking.is_active:
                    return booking
        return None

    async def get_event_participants(self, *, event_id: UUID, limit: int = 100) -> list[Booking]:
        bookings = [b for b in self._state.bookings.values() if b.event_id == event_id]
        return sorted(bookings, key=lambda b: (b.created_at or _EPOCH, b.id), reverse=True)[:limit]

    async def get_user_bookings(self, *, subject_id: str, limit: int = 50) -> list[Booking]:
        bookings = [b for b in self._state.bookings.values() if b.subject_id == subject_id]
        return sorted(bookings, key=lambda b: (b.created_at or _EPOCH, b.id), reverse=True)[:limit]

    async def get_check_in_logs(self, *, event_id: UUID, limit: int = 100) -> list[CheckInLog]:
        logs = [log for log in self._state.check_in_logs if log.event_id == event_id]
        return sorted(logs, key=lambda log: (log.checked_in_at, log.id), reverse=True)[:limit]

    async def list_events_pending_promotion(self, *, limit: int = 100) -> list[Event]:
        return [e for e in self._state.events.values() if e.is_pending_promotion][:limit]

    def notifications_for(self, subject_id: str) -> list[Notification]:
        return [n for n in self._state.notifications if n.subject_id == subject_id]

    # ========== Mutations ==========

    @Logger.io
    async def create_event(self, *, event: Event) -> Event:
        def work(txn: _MemoryTransaction) -> Event:
            if txn.event(event.id) is not None:
                raise ConflictError(f'Event {event.id} already exists')
            txn.put_event(event)
            return event

        return await self._transact(work)

    @Logger.io
    async def create_booking(
        self,
        *,
        booking_id: UUID,
        subject_id: str,
        event_id: UUID,
        ticket_id: str,
        now: datetime,
    ) -> Booking:
        def work(txn: _MemoryTransaction) -> Booking:
            replay = txn.booking(booking_id)
            if replay is not None:
                if replay.subject_id != subject_id or replay.event_id != event_id:
                    raise ConflictError(f'Booking id {booking_id} is already taken')
                return replay

            decision = decide_reservation(
                event=txn.event(event_id),
                event_id=event_id,
                active_booking=txn.active_booking(subject_id=subject_id, event_id=event_id),
                booking_id=booking_id,
                subject_id=subject_id,
                ticket_id=ticket_id,
                now=now,
            )
            txn.put_event(decision.event)
            txn.put_booking(decision.booking)
            return decision.booking

        return await self._transact(work)

    @Logger.io
    async def cancel_booking(
        self,
        *,
        booking_id: UUID,
        subject_id: str,
        now: datetime,
        reason: str | None = None,
    ) -> CancellationOutcome:
        def work(txn: _MemoryTransaction) -> CancellationOutcome:
            booking = txn.booking(booking_id)
            decision = decide_cancellation(
                booking=booking,
                booking_id=booking_id,
                event=txn.event(booking.event_id) if booking else None,
                subject_id=subject_id,
                now=now,
                reason=reason,
            )
            txn.put_event(decision.event)
            txn.put_booking(decision.booking)
            return CancellationOutcome(
                booking=decision.booking,
                event=decision.event,
                released_seat=decision.released_seat,
            )

        return await self._transact(work)

    @Logger.io
    async def promote_from_waitlist(
        self, *, event_id: UUID, notification_id: UUID, now: datetime
    ) -> PromotionOutcome | None:
        def work(txn: _MemoryTransaction) -> PromotionOutcome | None:
            decision = decide_promotion(
                event=txn.event(event_id),
                head=first_in_line(txn.bookings_for_event(event_id)),
                notification_id=notification_id,
                now=now,
            )
            if decision is None:
                return None
            txn.put_event(decision.event)
            txn.put_booking(decision.booking)
            txn.append_notification(decision.notification)
            return PromotionOutcome(
                booking=decision.booking,
                event=decision.event,
                notification=decision.notification,
            )

        return await self._transact(work)

    @Logger.io
    async def check_in_participant(
        self,
        *,
        booking_id: UUID,
        operator_id: str,
        method: CheckInMethod,
        log_id: UUID,
        now: datetime,
        grace: timedelta,
    ) -> CheckInResult:
        def work(txn: _MemoryTransaction) -> CheckInResult:
            booking = txn.booking(booking_id)
            event = txn.event(booking.event_id) if booking else None
            decision = decide_check_in(
                booking=booking,
                booking_id=booking_id,
                event=event,
                operator_id=operator_id,
                method=method,
                log_id=log_id,
                now=now,
                grace=grace,
            )
            txn.put_booking(decision.booking)
            txn.append_log(decision.log)
            return CheckInResult(booking=decision.booking, event=event, log=decision.log)

        return await self._transact(work)

    @Logger.io
    async def increment_event_slots(self, *, event_id: UUID, now: datetime) -> Event:
        def work(txn: _MemoryTransaction) -> Event:
            event = txn.event(event_id)
            if event is None:
                raise EventNotFound(f'Event {event_id} not found')
            updated = event.with_seat_taken(now=now)
            txn.put_event(updated)
            return updated

        return await self._transact(work)

    @Logger.io
    async def decrement_event_slots(self, *, event_id: UUID, now: datetime) -> Event:
        def work(txn: _MemoryTransaction) -> Event:
            event = txn.event(event_id)
            if event is None:
                raise EventNotFound(f'Event {event_id} not found')
            updated = event.with_seat_released(now=now)
            txn.put_event(updated)
            return updated

        return await self._transact(work)

"""
In-memory store: ledger invariants under concurrent callers

Concurrent calls go through the StoreRouter so optimistic-commit conflicts are retried
by the executor, exactly as in production.
"""

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import anyio
import pytest

from src.platform.exception.store_fault import StoreFault
from src.platform.types.id_generator import new_uuid7
from src.service.registration.app.interface.operation_name import OperationName
from src.service.registration.domain.entity.booking_entity import Booking
from src.service.registration.domain.enum.booking_status import BookingStatus
from src.service.registration.domain.enum.check_in_method import CheckInMethod
from src.service.registration.domain.rejection.check_in_rejection import (
    AlreadyCheckedIn,
    TicketNotFound,
)
from src.service.registration.domain.rejection.ledger_rejection import (
    AlreadyReserved,
    SlotCounterOutOfRange,
)
from src.service.registration.domain.value_object.ticket_reference import generate_ticket_id
from src.service.registration.driven_adapter.repo.registration_store_memory_impl import (
    InMemoryRegistrationStore,
)
from src.service.registration.driven_adapter.store_router import StoreRouter


GRACE = timedelta(hours=4)


async def _routed_reservation(
    router: StoreRouter, *, subject_id: str, event_id: UUID, now: datetime
) -> Booking:
    return await router.route(
        OperationName.CREATE_BOOKING,
        {
            'booking_id': new_uuid7(),
            'subject_id': subject_id,
            'event_id': event_id,
            'ticket_id': generate_ticket_id(),
            'now': now,
        },
    )


@pytest.mark.unit
class TestCapacityUnderConcurrency:
    @pytest.mark.asyncio
    async def test_registered_never_exceeds_capacity(
        self, router: StoreRouter, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        # Given: capacity 5, 20 distinct subjects reserving at once
        event = await seeder.event(capacity=5)
        results: list[Booking] = []

        async def reserve(n: int) -> None:
            results.append(
                await _routed_reservation(
                    router, subject_id=f'subject-{n}', event_id=event.id, now=now
                )
            )

        # When
        async with anyio.create_task_group() as tg:
            for n in range(20):
                tg.start_soon(reserve, n)

        # Then
        stored = await memory_store.get_event_by_id(event_id=event.id)
        assert stored is not None
        confirmed = [b for b in results if b.status == BookingStatus.CONFIRMED]
        waitlisted = [b for b in results if b.status == BookingStatus.WAITLIST]
        assert len(confirmed) == 5
        assert len(waitlisted) == 15
        assert stored.registered_count == 5
        assert stored.waitlist_count == 15
        assert sorted(b.waitlist_position for b in waitlisted) == list(range(1, 16))

    @pytest.mark.asyncio
    async def test_no_double_reservation(
        self, router: StoreRouter, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        # Given: the same subject fires 10 reservations at once
        event = await seeder.event(capacity=5)
        created: list[Booking] = []
        rejected: list[AlreadyReserved] = []

        async def reserve() -> None:
            try:
                created.append(
                    await _routed_reservation(
                        router, subject_id='subject-1', event_id=event.id, now=now
                    )
                )
            except AlreadyReserved as e:
                rejected.append(e)

        # When
        async with anyio.create_task_group() as tg:
            for _ in range(10):
                tg.start_soon(reserve)

        # Then: exactly one wins, the rest are rejected
        assert len(created) == 1
        assert len(rejected) == 9
        stored = await memory_store.get_event_by_id(event_id=event.id)
        assert stored is not None
        assert stored.registered_count == 1

    @pytest.mark.asyncio
    async def test_rebooking_after_cancel_is_allowed(
        self, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        event = await seeder.event(capacity=2)
        first = await seeder.reserve(subject_id='subject-1', event_id=event.id)
        await memory_store.cancel_booking(booking_id=first.id, subject_id='subject-1', now=now)

        second = await seeder.reserve(subject_id='subject-1', event_id=event.id)

        assert second.status == BookingStatus.CONFIRMED
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_replayed_booking_id_returns_same_booking(
        self, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        event = await seeder.event(capacity=2)
        booking_id = new_uuid7()
        kwargs = {
            'booking_id': booking_id,
            'subject_id': 'subject-1',
            'event_id': event.id,
            'ticket_id': 'EVT-1-REPLAY',
            'now': now,
        }

        first = await memory_store.create_booking(**kwargs)
        replay = await memory_store.create_booking(**kwargs)

        assert replay == first
        stored = await memory_store.get_event_by_id(event_id=event.id)
        assert stored is not None
        assert stored.registered_count == 1


@pytest.mark.unit
class TestCapacityOneScenario:
    @pytest.mark.asyncio
    async def test_one_confirmed_one_waitlisted_then_promoted(
        self,
        router: StoreRouter,
        memory_store: InMemoryRegistrationStore,
        seeder: Any,
        now: datetime,
    ) -> None:
        # Given: capacity 1
        event = await seeder.event(capacity=1)
        results: dict[str, Booking] = {}

        async def reserve(subject_id: str) -> None:
            results[subject_id] = await _routed_reservation(
                router, subject_id=subject_id, event_id=event.id, now=now
            )

        # When: A and B reserve at the same time
        async with anyio.create_task_group() as tg:
            tg.start_soon(reserve, 'A')
            tg.start_soon(reserve, 'B')

        # Then: exactly one confirmed, the other waitlisted at position 1
        confirmed = [b for b in results.values() if b.status == BookingStatus.CONFIRMED]
        waitlisted = [b for b in results.values() if b.status == BookingStatus.WAITLIST]
        assert len(confirmed) == 1
        assert len(waitlisted) == 1
        assert waitlisted[0].waitlist_position == 1
        a, b = confirmed[0], waitlisted[0]

        # When: the confirmed one cancels and a promotion runs
        outcome = await memory_store.cancel_booking(
            booking_id=a.id, subject_id=a.subject_id, now=now
        )
        promotion = await memory_store.promote_from_waitlist(
            event_id=event.id, notification_id=new_uuid7(), now=now
        )

        # Then: the waitlisted one is confirmed, counters consistent, one notification
        assert outcome.released_seat is True
        assert promotion is not None
        assert promotion.booking.id == b.id
        assert promotion.booking.status == BookingStatus.CONFIRMED
        stored = await memory_store.get_event_by_id(event_id=event.id)
        assert stored is not None
        assert (stored.registered_count, stored.waitlist_count) == (1, 0)
        assert len(memory_store.notifications_for(b.subject_id)) == 1


@pytest.mark.unit
class TestPromotion:
    @pytest.mark.asyncio
    async def test_promotion_is_fifo(
        self, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        # Given: one seat taken, three waitlisted in order
        event = await seeder.event(capacity=1)
        holder = await seeder.reserve(subject_id='holder', event_id=event.id)
        waiting = [
            await seeder.reserve(subject_id=f'w{n}', event_id=event.id) for n in range(1, 4)
        ]
        await memory_store.cancel_booking(booking_id=holder.id, subject_id='holder', now=now)

        promoted_order: list[UUID] = []
        for booking in waiting:
            outcome = await memory_store.promote_from_waitlist(
                event_id=event.id, notification_id=new_uuid7(), now=now
            )
            assert outcome is not None
            promoted_order.append(outcome.booking.id)
            # free the seat again for the next one in line
            await memory_store.cancel_booking(
                booking_id=outcome.booking.id, subject_id=outcome.booking.subject_id, now=now
            )

        assert promoted_order == [b.id for b in waiting]

    @pytest.mark.asyncio
    async def test_cancelled_waitlist_entry_is_skipped(
        self, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        event = await seeder.event(capacity=1)
        holder = await seeder.reserve(subject_id='holder', event_id=event.id)
        first = await seeder.reserve(subject_id='w1', event_id=event.id)
        second = await seeder.reserve(subject_id='w2', event_id=event.id)
        await memory_store.cancel_booking(booking_id=first.id, subject_id='w1', now=now)
        await memory_store.cancel_booking(booking_id=holder.id, subject_id='holder', now=now)

        outcome = await memory_store.promote_from_waitlist(
            event_id=event.id, notification_id=new_uuid7(), now=now
        )

        assert outcome is not None
        assert outcome.booking.id == second.id

    @pytest.mark.asyncio
    async def test_full_event_promotes_nothing(
        self, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        event = await seeder.event(capacity=1)
        await seeder.reserve(subject_id='holder', event_id=event.id)
        await seeder.reserve(subject_id='w1', event_id=event.id)

        outcome = await memory_store.promote_from_waitlist(
            event_id=event.id, notification_id=new_uuid7(), now=now
        )

        assert outcome is None
        assert memory_store.notifications_for('w1') == []

    @pytest.mark.asyncio
    async def test_concurrent_promotions_fill_only_free_seats(
        self, router: StoreRouter, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        # Given: capacity 2, both seats freed, five waitlisted
        event = await seeder.event(capacity=2)
        holders = [await seeder.reserve(subject_id=f'h{n}', event_id=event.id) for n in range(2)]
        for n in range(5):
            await seeder.reserve(subject_id=f'w{n}', event_id=event.id)
        for holder in holders:
            await memory_store.cancel_booking(
                booking_id=holder.id, subject_id=holder.subject_id, now=now
            )
        promoted: list[Any] = []

        async def promote() -> None:
            outcome = await router.route(
                OperationName.PROMOTE_FROM_WAITLIST,
                {'event_id': event.id, 'notification_id': new_uuid7(), 'now': now},
            )
            if outcome is not None:
                promoted.append(outcome)

        # When: six promotions race
        async with anyio.create_task_group() as tg:
            for _ in range(6):
                tg.start_soon(promote)

        # Then: only w0 and w1 are promoted
        stored = await memory_store.get_event_by_id(event_id=event.id)
        assert stored is not None
        assert sorted(o.booking.subject_id for o in promoted) == ['w0', 'w1']
        assert (stored.registered_count, stored.waitlist_count) == (2, 3)


@pytest.mark.unit
class TestCheckInIdempotence:
    @pytest.mark.asyncio
    async def test_concurrent_scans_produce_one_log(
        self, router: StoreRouter, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        # Given: a confirmed booking scanned at two doors simultaneously
        event = await seeder.event(capacity=1, starts_in=timedelta(hours=1))
        booking = await seeder.reserve(subject_id='subject-1', event_id=event.id)
        successes: list[Any] = []
        duplicates: list[AlreadyCheckedIn] = []

        async def scan(operator_id: str) -> None:
            try:
                successes.append(
                    await router.route(
                        OperationName.CHECK_IN_PARTICIPANT,
                        {
                            'booking_id': booking.id,
                            'operator_id': operator_id,
                            'method': CheckInMethod.QR_SCAN,
                            'log_id': new_uuid7(),
                            'now': now,
                            'grace': GRACE,
                        },
                    )
                )
            except AlreadyCheckedIn as e:
                duplicates.append(e)

        # When
        async with anyio.create_task_group() as tg:
            tg.start_soon(scan, 'door-1')
            tg.start_soon(scan, 'door-2')

        # Then: one success, one AlreadyCheckedIn carrying the original time, one log
        assert len(successes) == 1
        assert len(duplicates) == 1
        assert duplicates[0].checked_in_at == now
        logs = await memory_store.get_check_in_logs(event_id=event.id)
        assert len(logs) == 1
        assert logs[0].booking_id == booking.id

    @pytest.mark.asyncio
    async def test_unknown_booking(
        self, memory_store: InMemoryRegistrationStore, now: datetime
    ) -> None:
        with pytest.raises(TicketNotFound):
            await memory_store.check_in_participant(
                booking_id=new_uuid7(),
                operator_id='staff',
                method=CheckInMethod.MANUAL_ENTRY,
                log_id=new_uuid7(),
                now=now,
                grace=GRACE,
            )


@pytest.mark.unit
class TestSlotCounters:
    @pytest.mark.asyncio
    async def test_increment_and_decrement_are_guarded(
        self, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        event = await seeder.event(capacity=1)

        incremented = await memory_store.increment_event_slots(event_id=event.id, now=now)
        with pytest.raises(SlotCounterOutOfRange):
            await memory_store.increment_event_slots(event_id=event.id, now=now)
        decremented = await memory_store.decrement_event_slots(event_id=event.id, now=now)
        with pytest.raises(SlotCounterOutOfRange):
            await memory_store.decrement_event_slots(event_id=event.id, now=now)

        assert incremented.registered_count == 1
        assert decremented.registered_count == 0

    @pytest.mark.asyncio
    async def test_stale_transaction_aborts(
        self, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        # Given: two increments racing without a retrying executor
        event = await seeder.event(capacity=5)
        outcomes: list[Any] = []

        async def increment() -> None:
            try:
                outcomes.append(await memory_store.increment_event_slots(event_id=event.id, now=now))
            except StoreFault as e:
                outcomes.append(e)

        async with anyio.create_task_group() as tg:
            tg.start_soon(increment)
            tg.start_soon(increment)

        # Then: the loser gets a retryable 'aborted' fault
        faults = [o for o in outcomes if isinstance(o, StoreFault)]
        assert len(faults) == 1
        assert faults[0].code == 'aborted'
        assert faults[0].retryable is True


@pytest.mark.unit
class TestQueries:
    @pytest.mark.asyncio
    async def test_listing_is_newest_first_and_bounded(
        self, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        event = await seeder.event(capacity=10)
        for n in range(4):
            await seeder.reserve(
                subject_id=f'subject-{n}', event_id=event.id, now=now + timedelta(minutes=n)
            )

        participants = await memory_store.get_event_participants(event_id=event.id, limit=3)

        assert [b.subject_id for b in participants] == ['subject-3', 'subject-2', 'subject-1']

    @pytest.mark.asyncio
    async def test_lookup_by_ticket_and_existing(
        self, memory_store: InMemoryRegistrationStore, seeder: Any
    ) -> None:
        event = await seeder.event(capacity=10)
        booking = await seeder.reserve(subject_id='subject-1', event_id=event.id)

        assert await memory_store.get_booking_by_ticket_id(ticket_id=booking.ticket_id) == booking
        assert (
            await memory_store.check_existing_booking(subject_id='subject-1', event_id=event.id)
            == booking
        )
        assert await memory_store.check_existing_booking(
            subject_id='subject-2', event_id=event.id
        ) is None

    @pytest.mark.asyncio
    async def test_pending_promotion_listing(
        self, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        event = await seeder.event(capacity=1)
        holder = await seeder.reserve(subject_id='holder', event_id=event.id)
        await seeder.reserve(subject_id='w1', event_id=event.id)
        assert await memory_store.list_events_pending_promotion() == []

        await memory_store.cancel_booking(booking_id=holder.id, subject_id='holder', now=now)

        pending = await memory_store.list_events_pending_promotion()
        assert [e.id for e in pending] == [event.id]

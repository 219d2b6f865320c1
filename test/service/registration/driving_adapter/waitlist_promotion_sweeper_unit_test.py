from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock

import anyio
import pytest

from src.service.registration.app.command.promote_from_waitlist_use_case import (
    PromoteFromWaitlistUseCase,
)
from src.service.registration.domain.enum.booking_status import BookingStatus
from src.service.registration.driven_adapter.notification.logging_notification_dispatcher_impl import (
    LoggingNotificationDispatcherImpl,
)
from src.service.registration.driven_adapter.repo.registration_store_memory_impl import (
    InMemoryRegistrationStore,
)
from src.service.registration.driven_adapter.store_router import StoreRouter
from src.service.registration.driving_adapter.waitlist_promotion_sweeper import (
    WaitlistPromotionSweeper,
)


@pytest.fixture
def sweeper(router: StoreRouter, now: datetime) -> WaitlistPromotionSweeper:
    promote = PromoteFromWaitlistUseCase(
        router, LoggingNotificationDispatcherImpl(), clock=lambda: now
    )
    return WaitlistPromotionSweeper(
        router=router, promote_use_case=promote, interval_seconds=0.001
    )


async def _event_with_freed_seats(
    seeder: Any, store: InMemoryRegistrationStore, now: datetime, *, capacity: int, waiting: int
):
    event = await seeder.event(capacity=capacity)
    holders = [
        await seeder.reserve(subject_id=f'holder-{n}', event_id=event.id) for n in range(capacity)
    ]
    for n in range(waiting):
        await seeder.reserve(subject_id=f'waiting-{n}', event_id=event.id)
    # cancelled directly on the store: no follow-up promotion ran
    for holder in holders:
        await store.cancel_booking(booking_id=holder.id, subject_id=holder.subject_id, now=now)
    return event


@pytest.mark.unit
class TestWaitlistPromotionSweeper:
    @pytest.mark.asyncio
    async def test_sweep_fills_freed_seats(
        self,
        sweeper: WaitlistPromotionSweeper,
        memory_store: InMemoryRegistrationStore,
        seeder: Any,
        now: datetime,
    ) -> None:
        # Given: two events left with free seats and a waitlist
        first = await _event_with_freed_seats(seeder, memory_store, now, capacity=2, waiting=3)
        second = await _event_with_freed_seats(seeder, memory_store, now, capacity=1, waiting=1)

        # When
        promoted = await sweeper.sweep_once()

        # Then
        assert promoted == 3
        first_stored = await memory_store.get_event_by_id(event_id=first.id)
        second_stored = await memory_store.get_event_by_id(event_id=second.id)
        assert first_stored is not None and second_stored is not None
        assert (first_stored.registered_count, first_stored.waitlist_count) == (2, 1)
        assert (second_stored.registered_count, second_stored.waitlist_count) == (1, 0)
        assert await memory_store.list_events_pending_promotion() == []

    @pytest.mark.asyncio
    async def test_sweep_with_nothing_pending(self, sweeper: WaitlistPromotionSweeper) -> None:
        assert await sweeper.sweep_once() == 0

    @pytest.mark.asyncio
    async def test_drain_stops_when_promotion_returns_none(
        self, router: StoreRouter, memory_store: InMemoryRegistrationStore, seeder: Any, now: datetime
    ) -> None:
        await _event_with_freed_seats(seeder, memory_store, now, capacity=3, waiting=1)
        promote = AsyncMock()
        promote.execute = AsyncMock(side_effect=[None])
        sweeper = WaitlistPromotionSweeper(router=router, promote_use_case=promote)

        assert await sweeper.sweep_once() == 0
        promote.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_periodic_task_runs_the_sweep(
        self,
        sweeper: WaitlistPromotionSweeper,
        memory_store: InMemoryRegistrationStore,
        seeder: Any,
        now: datetime,
    ) -> None:
        event = await _event_with_freed_seats(seeder, memory_store, now, capacity=1, waiting=1)
        task = sweeper.build_task()

        with anyio.fail_after(2):
            async with anyio.create_task_group() as tg:
                await tg.start(task.run)
                while (await memory_store.get_event_by_id(event_id=event.id)).waitlist_count:
                    await anyio.sleep(0.001)
                tg.cancel_scope.cancel()

        participants = await memory_store.get_event_participants(event_id=event.id)
        assert [b.subject_id for b in participants if b.status == BookingStatus.CONFIRMED] == [
            'waiting-0'
        ]

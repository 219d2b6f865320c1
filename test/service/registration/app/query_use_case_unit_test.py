from datetime import datetime, timedelta
from typing import Any

import pytest

from src.platform.exception.exceptions import DomainError
from src.platform.types.id_generator import new_uuid7
from src.service.registration.app.query.get_booking_use_case import (
    GetBookingUseCase,
    GetEventUseCase,
)
from src.service.registration.app.query.list_check_in_logs_use_case import (
    ListCheckInLogsUseCase,
)
from src.service.registration.app.query.list_event_participants_use_case import (
    ListEventParticipantsUseCase,
)
from src.service.registration.app.query.list_subject_bookings_use_case import (
    ListSubjectBookingsUseCase,
)
from src.service.registration.domain.enum.check_in_method import CheckInMethod
from src.service.registration.domain.rejection.ledger_rejection import (
    BookingNotFound,
    EventNotFound,
)
from src.service.registration.driven_adapter.repo.registration_store_memory_impl import (
    InMemoryRegistrationStore,
)
from src.service.registration.driven_adapter.store_router import StoreRouter


@pytest.mark.unit
class TestQueries:
    @pytest.mark.asyncio
    async def test_get_booking_and_existing(self, router: StoreRouter, seeder: Any) -> None:
        event = await seeder.event()
        booking = await seeder.reserve(subject_id='subject-1', event_id=event.id)
        use_case = GetBookingUseCase(router)

        assert await use_case.execute(booking_id=booking.id) == booking
        assert await use_case.existing_for(subject_id='subject-1', event_id=event.id) == booking
        with pytest.raises(BookingNotFound):
            await use_case.execute(booking_id=new_uuid7())

    @pytest.mark.asyncio
    async def test_get_event_hides_deleted(self, router: StoreRouter, seeder: Any) -> None:
        live = await seeder.event()
        deleted = await seeder.event(is_deleted=True)
        use_case = GetEventUseCase(router)

        assert (await use_case.execute(event_id=live.id)).id == live.id
        with pytest.raises(EventNotFound):
            await use_case.execute(event_id=deleted.id)

    @pytest.mark.asyncio
    async def test_subject_bookings_newest_first(
        self, router: StoreRouter, seeder: Any, now: datetime
    ) -> None:
        first = await seeder.event(title='First')
        second = await seeder.event(title='Second')
        await seeder.reserve(subject_id='subject-1', event_id=first.id, now=now)
        await seeder.reserve(
            subject_id='subject-1', event_id=second.id, now=now + timedelta(minutes=1)
        )

        bookings = await ListSubjectBookingsUseCase(router).execute(subject_id='subject-1')

        assert [b.event_id for b in bookings] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_participants_limit_is_clamped(self, router: StoreRouter, seeder: Any) -> None:
        event = await seeder.event()
        await seeder.reserve(subject_id='subject-1', event_id=event.id)
        use_case = ListEventParticipantsUseCase(router)

        assert len(await use_case.execute(event_id=event.id, limit=1000)) == 1
        with pytest.raises(DomainError):
            await use_case.execute(event_id=event.id, limit=0)

    @pytest.mark.asyncio
    async def test_check_in_logs(
        self,
        router: StoreRouter,
        memory_store: InMemoryRegistrationStore,
        seeder: Any,
        now: datetime,
    ) -> None:
        event = await seeder.event(starts_in=timedelta(minutes=10))
        booking = await seeder.reserve(subject_id='subject-1', event_id=event.id)
        await memory_store.check_in_participant(
            booking_id=booking.id,
            operator_id='staff',
            method=CheckInMethod.TICKET_ID,
            log_id=new_uuid7(),
            now=now,
            grace=timedelta(hours=4),
        )

        logs = await ListCheckInLogsUseCase(router).execute(event_id=event.id)

        assert [(log.booking_id, log.method) for log in logs] == [
            (booking.id, CheckInMethod.TICKET_ID)
        ]

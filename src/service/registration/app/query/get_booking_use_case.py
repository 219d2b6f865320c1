from uuid import UUID

from src.platform.exception.exceptions import DomainError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface.i_store_router import IStoreRouter
from src.service.registration.app.interface.operation_name import OperationName
from src.service.registration.domain.entity.booking_entity import Booking
from src.service.registration.domain.entity.event_entity import Event
from src.service.registration.domain.rejection.ledger_rejection import (
    BookingNotFound,
    EventNotFound,
)


class GetBookingUseCase:
    def __init__(self, router: IStoreRouter):
        self.router = router

    @Logger.io
    async def execute(self, *, booking_id: UUID) -> Booking:
        booking = await self.router.route(OperationName.GET_BOOKING_BY_ID, {'booking_id': booking_id})
        if booking is None:
            raise BookingNotFound(f'Booking {booking_id} not found')
        return booking

    @Logger.io
    async def existing_for(self, *, subject_id: str, event_id: UUID) -> Booking | None:
        """The subject's active booking for the event, if any"""
        return await self.router.route(
            OperationName.CHECK_EXISTING_BOOKING, {'subject_id': subject_id, 'event_id': event_id}
        )


class GetEventUseCase:
    def __init__(self, router: IStoreRouter):
        self.router = router

    @Logger.io
    async def execute(self, *, event_id: UUID) -> Event:
        event: Event | None = await self.router.route(
            OperationName.GET_EVENT_BY_ID, {'event_id': event_id}
        )
        if event is None or event.is_deleted:
            raise EventNotFound(f'Event {event_id} not found')
        return event


def clamp_limit(limit: int, *, maximum: int) -> int:
    if limit < 1:
        raise DomainError(f'limit must be >= 1, got {limit}', code='invalid-argument')
    return min(limit, maximum)

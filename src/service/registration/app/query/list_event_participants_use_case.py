from uuid import UUID

from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface.i_store_router import IStoreRouter
from src.service.registration.app.interface.operation_name import OperationName
from src.service.registration.app.query.get_booking_use_case import clamp_limit
from src.service.registration.domain.entity.booking_entity import Booking


MAX_PARTICIPANTS_PAGE = 100


class ListEventParticipantsUseCase:
    """Bookings of one event, newest first"""

    def __init__(self, router: IStoreRouter):
        self.router = router

    @Logger.io
    async def execute(
        self, *, event_id: UUID, limit: int = MAX_PARTICIPANTS_PAGE
    ) -> list[Booking]:
        bookings = await self.router.route(
            OperationName.GET_EVENT_PARTICIPANTS,
            {'event_id': event_id, 'limit': clamp_limit(limit, maximum=MAX_PARTICIPANTS_PAGE)},
        )
        Logger.base.info(f'📋 [PARTICIPANTS] {len(bookings)} bookings for event {event_id}')
        return bookings

from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface.i_store_router import IStoreRouter
from src.service.registration.app.interface.operation_name import OperationName
from src.service.registration.app.query.get_booking_use_case import clamp_limit
from src.service.registration.domain.entity.booking_entity import Booking


MAX_SUBJECT_BOOKINGS_PAGE = 50


class ListSubjectBookingsUseCase:
    def __init__(self, router: IStoreRouter):
        self.router = router

    @Logger.io
    async def execute(
        self, *, subject_id: str, limit: int = MAX_SUBJECT_BOOKINGS_PAGE
    ) -> list[Booking]:
        return await self.router.route(
            OperationName.GET_USER_BOOKINGS,
            {
                'subject_id': subject_id,
                'limit': clamp_limit(limit, maximum=MAX_SUBJECT_BOOKINGS_PAGE),
            },
        )

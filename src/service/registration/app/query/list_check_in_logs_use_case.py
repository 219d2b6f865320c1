from uuid import UUID

from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface.i_store_router import IStoreRouter
from src.service.registration.app.interface.operation_name import OperationName
from src.service.registration.app.query.get_booking_use_case import clamp_limit
from src.service.registration.domain.entity.check_in_log_entity import CheckInLog


MAX_CHECK_IN_LOGS_PAGE = 100


class ListCheckInLogsUseCase:
    def __init__(self, router: IStoreRouter):
        self.router = router

    @Logger.io
    async def execute(self, *, event_id: UUID, limit: int = MAX_CHECK_IN_LOGS_PAGE) -> list[CheckInLog]:
        logs = await self.router.route(
            OperationName.GET_CHECK_IN_LOGS,
            {'event_id': event_id, 'limit': clamp_limit(limit, maximum=MAX_CHECK_IN_LOGS_PAGE)},
        )
        Logger.base.info(f'📋 [CHECK-IN LOG] {len(logs)} entries for event {event_id}')
        return logs

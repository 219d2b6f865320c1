from datetime import datetime
from typing import Callable

from src.platform.exception.exceptions import DomainError
from src.platform.logging.loguru_io import Logger
from src.platform.types.id_generator import new_uuid7, utc_now
from src.service.registration.app.interface.i_store_router import IStoreRouter
from src.service.registration.app.interface.operation_name import OperationName
from src.service.registration.domain.entity.event_entity import Event
from src.service.registration.domain.enum.event_status import EventStatus


class CreateEventUseCase:
    def __init__(self, router: IStoreRouter, *, clock: Callable[[], datetime] = utc_now):
        self.router = router
        self.clock = clock

    @Logger.io
    async def execute(
        self,
        *,
        title: str,
        event_date: datetime,
        capacity: int,
        status: EventStatus = EventStatus.PUBLISHED,
    ) -> Event:
        if not title.strip():
            raise DomainError('Event title is required', code='invalid-argument')
        if capacity < 0:
            raise DomainError('Capacity must be >= 0', code='invalid-argument')
        if event_date.tzinfo is None:
            raise DomainError('event_date must be timezone-aware', code='invalid-argument')

        now = self.clock()
        event = Event(
            id=new_uuid7(),
            title=title.strip(),
            event_date=event_date,
            capacity=capacity,
            status=status,
            created_at=now,
            updated_at=now,
        )
        created = await self.router.route(OperationName.CREATE_EVENT, {'event': event})
        Logger.base.info(f'📅 [EVENT] Created {created.id} "{created.title}" (capacity={capacity})')
        return created

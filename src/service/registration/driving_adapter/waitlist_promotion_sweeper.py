"""
Waitlist promotion sweeper

Cancellation promotes best-effort right after the cancel commits. When that follow-up
fails (store outage, timeout), the event is left with a free seat and a non-empty
waitlist; this sweeper finds such events and promotes until the seats are filled.
"""

from src.platform.logging.loguru_io import Logger
from src.platform.task.periodic_task import PeriodicTask
from src.service.registration.app.command.promote_from_waitlist_use_case import (
    PromoteFromWaitlistUseCase,
)
from src.service.registration.app.interface.i_store_router import IStoreRouter
from src.service.registration.app.interface.operation_name import OperationName
from src.service.registration.domain.entity.event_entity import Event


class WaitlistPromotionSweeper:
    def __init__(
        self,
        *,
        router: IStoreRouter,
        promote_use_case: PromoteFromWaitlistUseCase,
        interval_seconds: float = 15.0,
        batch_size: int = 100,
    ):
        self.router = router
        self.promote_use_case = promote_use_case
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size

    async def sweep_once(self) -> int:
        """Returns how many bookings were promoted"""
        events: list[Event] = await self.router.route(
            OperationName.LIST_EVENTS_PENDING_PROMOTION, {'limit': self.batch_size}
        )
        promoted = 0
        for event in events:
            promoted += await self._drain(event)
        if promoted:
            Logger.base.info(
                f'🧹 [SWEEPER] Promoted {promoted} bookings across {len(events)} events'
            )
        return promoted

    async def _drain(self, event: Event) -> int:
        # Each promotion re-reads the event in its own transaction; open_seats only bounds the loop
        promoted = 0
        for _ in range(event.open_seats):
            booking_id = await self.promote_use_case.execute(event_id=event.id)
            if booking_id is None:
                break
            promoted += 1
        return promoted

    async def _tick(self) -> None:
        await self.sweep_once()

    def build_task(self) -> PeriodicTask:
        return PeriodicTask(
            name='waitlist-promotion',
            interval_seconds=self.interval_seconds,
            tick=self._tick,
        )

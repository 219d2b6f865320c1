from datetime import datetime
from typing import Callable
from uuid import UUID

from src.platform.logging.loguru_io import Logger
from src.platform.types.id_generator import utc_now
from src.service.registration.app.dto.registration_outcome import CancellationOutcome
from src.service.registration.app.command.promote_from_waitlist_use_case import (
    PromoteFromWaitlistUseCase,
)
from src.service.registration.app.interface.i_store_router import IStoreRouter
from src.service.registration.app.interface.operation_name import OperationName
from src.service.registration.domain.entity.booking_entity import Booking


class CancelReservationUseCase:
    def __init__(
        self,
        router: IStoreRouter,
        promote_use_case: PromoteFromWaitlistUseCase,
        *,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.router = router
        self.promote_use_case = promote_use_case
        self.clock = clock

    @Logger.io
    async def execute(
        self, *, booking_id: UUID, subject_id: str, reason: str | None = None
    ) -> Booking:
        outcome: CancellationOutcome = await self.router.route(
            OperationName.CANCEL_BOOKING,
            {
                'booking_id': booking_id,
                'subject_id': subject_id,
                'now': self.clock(),
                'reason': reason,
            },
        )
        Logger.base.info(
            f'🗑️ [CANCEL] Booking {booking_id} cancelled '
            f'(released_seat={outcome.released_seat})'
        )

        if outcome.released_seat:
            await self._try_promote(outcome.booking.event_id)
        return outcome.booking

    async def _try_promote(self, event_id: UUID) -> None:
        # The cancel is already committed; the promotion sweeper retries a failed follow-up
        try:
            await self.promote_use_case.execute(event_id=event_id)
        except Exception as e:
            Logger.base.warning(
                f'⚠️ [CANCEL] Promotion for event {event_id} deferred to sweeper: {e}'
            )

from datetime import datetime
from typing import Callable
from uuid import UUID

from src.platform.exception.exceptions import CustomBaseError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.registration_metrics import RegistrationMetrics
from src.platform.types.id_generator import new_uuid7, utc_now
from src.service.registration.app.dto.registration_outcome import ReservationResult
from src.service.registration.app.interface.i_store_router import IStoreRouter
from src.service.registration.app.interface.operation_name import OperationName
from src.service.registration.domain.entity.booking_entity import Booking
from src.service.registration.domain.value_object.ticket_reference import generate_ticket_id


class CreateReservationUseCase:
    """
    Reserve a seat, or a waitlist position when the event is full.

    Ids are generated here, once, so a retried or re-routed CreateBooking replays
    the same booking instead of creating a second one.
    """

    def __init__(
        self,
        router: IStoreRouter,
        *,
        metrics: RegistrationMetrics | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.router = router
        self.metrics = metrics
        self.clock = clock

    @Logger.io
    async def execute(self, *, subject_id: str, event_id: UUID) -> ReservationResult:
        booking_id = new_uuid7()
        try:
            booking: Booking = await self.router.route(
                OperationName.CREATE_BOOKING,
                {
                    'booking_id': booking_id,
                    'subject_id': subject_id,
                    'event_id': event_id,
                    'ticket_id': generate_ticket_id(),
                    'now': self.clock(),
                },
            )
        except CustomBaseError as e:
            if self.metrics:
                self.metrics.reservations.labels(result='rejected').inc()
            Logger.base.info(f'🚫 [RESERVE] {subject_id} -> event {event_id}: {e.code}')
            raise

        if self.metrics:
            self.metrics.reservations.labels(result=booking.status.value).inc()
        Logger.base.info(
            f'✅ [RESERVE] {subject_id} -> event {event_id}: {booking.status}'
            + (f' (position {booking.waitlist_position})' if booking.is_waitlist else '')
        )
        return ReservationResult(
            booking_id=booking.id,
            is_waitlist=booking.is_waitlist,
            ticket_id=booking.ticket_id,
            waitlist_position=booking.waitlist_position,
        )

from uuid import UUID

from src.platform.logging.loguru_io import Logger
from src.service.registration.app.dto.registration_outcome import ResolvedTicket
from src.service.registration.app.interface.i_store_router import IStoreRouter
from src.service.registration.app.interface.operation_name import OperationName
from src.service.registration.domain.entity.booking_entity import Booking
from src.service.registration.domain.entity.event_entity import Event
from src.service.registration.domain.rejection.check_in_rejection import (
    TicketNotFound,
    WrongEvent,
)
from src.service.registration.domain.value_object.ticket_reference import parse_ticket_reference


async def ensure_event_scope(
    router: IStoreRouter, *, booking: Booking, expected_event_id: UUID | None
) -> None:
    """Reject a ticket presented at another event's door, naming the event it belongs to"""
    if expected_event_id is None or booking.event_id == expected_event_id:
        return
    event: Event | None = await router.route(
        OperationName.GET_EVENT_BY_ID, {'event_id': booking.event_id}
    )
    raise WrongEvent(
        event_title=event.title if event else None, actual_event_id=str(booking.event_id)
    )


class ResolveTicketUseCase:
    def __init__(self, router: IStoreRouter):
        self.router = router

    @Logger.io
    async def execute(self, *, raw: str, expected_event_id: UUID | None = None) -> ResolvedTicket:
        reference = parse_ticket_reference(raw)
        booking: Booking | None = await self.router.route(
            OperationName.GET_BOOKING_BY_TICKET_ID, {'ticket_id': reference.ticket_id}
        )
        if booking is None:
            raise TicketNotFound(f'No booking holds ticket {reference.ticket_id}')

        await ensure_event_scope(self.router, booking=booking, expected_event_id=expected_event_id)
        return ResolvedTicket(
            booking_id=booking.id, ticket_id=reference.ticket_id, method=reference.method
        )

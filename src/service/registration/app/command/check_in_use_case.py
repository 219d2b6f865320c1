from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from src.platform.logging.loguru_io import Logger
from src.platform.metrics.registration_metrics import RegistrationMetrics
from src.platform.types.id_generator import new_uuid7, utc_now
from src.service.registration.app.command.resolve_ticket_use_case import (
    ResolveTicketUseCase,
    ensure_event_scope,
)
from src.service.registration.app.dto.registration_outcome import CheckInResult
from src.service.registration.app.interface.i_store_router import IStoreRouter
from src.service.registration.app.interface.operation_name import OperationName
from src.service.registration.domain.entity.booking_entity import Booking
from src.service.registration.domain.enum.check_in_method import CheckInMethod
from src.service.registration.domain.rejection.check_in_rejection import (
    CheckInRejection,
    InvalidTicketFormat,
    TicketNotFound,
)
from src.service.registration.domain.value_object.ticket_reference import sanitize_identifier


def parse_booking_id(raw: str | UUID) -> UUID:
    if isinstance(raw, UUID):
        return raw
    candidate = sanitize_identifier(raw)
    try:
        return UUID(candidate)
    except ValueError as e:
        raise InvalidTicketFormat(f'Booking id {candidate!r} is not a UUID') from e


class CheckInUseCase:
    """
    Consume a confirmed booking exactly once.

    Rejections before the transaction (format, lookup, event scope) never touch the
    store; the status checks run again inside the store transaction so two scanners
    racing on one ticket produce one check-in and one AlreadyCheckedIn.
    """

    def __init__(
        self,
        router: IStoreRouter,
        resolve_ticket: ResolveTicketUseCase,
        *,
        grace: timedelta = timedelta(hours=4),
        metrics: RegistrationMetrics | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.router = router
        self.resolve_ticket = resolve_ticket
        self.grace = grace
        self.metrics = metrics
        self.clock = clock

    @Logger.io
    async def execute(
        self,
        *,
        booking_id: str | UUID,
        operator_id: str,
        method: CheckInMethod = CheckInMethod.MANUAL_ENTRY,
        expected_event_id: UUID | None = None,
    ) -> CheckInResult:
        try:
            result = await self._check_in(
                booking_id=booking_id,
                operator_id=operator_id,
                method=method,
                expected_event_id=expected_event_id,
            )
        except CheckInRejection as e:
            self._count(e.error_type.value)
            Logger.base.info(f'🎫 [CHECK-IN] Rejected {booking_id}: {e.title}')
            raise

        self._count('success')
        Logger.base.info(
            f'🎟️ [CHECK-IN] {result.booking.subject_id} checked in to {result.event.id} '
            f'by {operator_id} ({method})'
        )
        return result

    @Logger.io
    async def check_in_by_ticket(
        self, *, raw: str, operator_id: str, expected_event_id: UUID | None = None
    ) -> CheckInResult:
        try:
            resolved = await self.resolve_ticket.execute(
                raw=raw, expected_event_id=expected_event_id
            )
        except CheckInRejection as e:
            self._count(e.error_type.value)
            raise
        return await self.execute(
            booking_id=resolved.booking_id,
            operator_id=operator_id,
            method=resolved.method,
            expected_event_id=expected_event_id,
        )

    async def _check_in(
        self,
        *,
        booking_id: str | UUID,
        operator_id: str,
        method: CheckInMethod,
        expected_event_id: UUID | None,
    ) -> CheckInResult:
        parsed_id = parse_booking_id(booking_id)
        booking: Booking | None = await self.router.route(
            OperationName.GET_BOOKING_BY_ID, {'booking_id': parsed_id}
        )
        if booking is None:
            raise TicketNotFound(f'Booking {parsed_id} not found')

        await ensure_event_scope(self.router, booking=booking, expected_event_id=expected_event_id)

        return await self.router.route(
            OperationName.CHECK_IN_PARTICIPANT,
            {
                'booking_id': parsed_id,
                'operator_id': operator_id,
                'method': method,
                'log_id': new_uuid7(),
                'now': self.clock(),
                'grace': self.grace,
            },
        )

    def _count(self, result: str) -> None:
        if self.metrics:
            self.metrics.check_ins.labels(result=result).inc()

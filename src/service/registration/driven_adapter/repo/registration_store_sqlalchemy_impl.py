"""
PostgreSQL Registration Store (primary)

Every mutation is one transaction:
- the event row is locked with SELECT ... FOR UPDATE before any booking of that event
  is read or written, so all mutations of an event are serialized
- the partial unique index ``uq_booking_active_subject_event`` backs the
  one-active-booking-per-subject rule
- locks are always taken event first, then booking

Driver errors are translated once, here, into ``StoreFault`` variants by SQLSTATE.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.database.orm_db_setting import Database
from src.platform.exception.exceptions import ConflictError, CustomBaseError
from src.platform.exception.store_fault import StoreFault
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.dto.registration_outcome import (
    CancellationOutcome,
    CheckInResult,
    PromotionOutcome,
)
from src.service.registration.app.interface.i_registration_store import IRegistrationStore
from src.service.registration.domain.entity.booking_entity import Booking
from src.service.registration.domain.entity.check_in_log_entity import CheckInLog
from src.service.registration.domain.entity.event_entity import Event
from src.service.registration.domain.entity.notification_entity import Notification
from src.service.registration.domain.enum.booking_status import (
    ACTIVE_BOOKING_STATUSES,
    BookingStatus,
)
from src.service.registration.domain.enum.check_in_method import CheckInMethod
from src.service.registration.domain.enum.event_status import EventStatus
from src.service.registration.domain.registration_ledger import (
    decide_cancellation,
    decide_check_in,
    decide_promotion,
    decide_reservation,
)
from src.service.registration.domain.rejection.ledger_rejection import EventNotFound
from src.service.registration.driven_adapter.model.booking_model import BookingModel
from src.service.registration.driven_adapter.model.check_in_log_model import CheckInLogModel
from src.service.registration.driven_adapter.model.event_model import EventModel
from src.service.registration.driven_adapter.model.notification_model import NotificationModel


# =============================================================================
# Error translation
# =============================================================================

_SQLSTATE_FAULT_CODES = {
    '40001': 'aborted',  # serialization_failure
    '40P01': 'aborted',  # deadlock_detected
    '55P03': 'aborted',  # lock_not_available
    '57014': 'deadline-exceeded',  # query_canceled (statement_timeout)
    '23505': 'already-exists',  # unique_violation
    '23503': 'failed-precondition',  # foreign_key_violation
    '23514': 'failed-precondition',  # check_violation
    '22P02': 'invalid-argument',  # invalid_text_representation
    '42501': 'permission-denied',  # insufficient_privilege
}

_SQLSTATE_CLASS_FAULT_CODES = {
    '08': 'unavailable',  # connection exception
    '28': 'unauthenticated',  # invalid authorization
    '53': 'resource-exhausted',  # insufficient resources
    '57': 'unavailable',  # operator intervention (admin shutdown, crash)
    '42': 'failed-precondition',  # syntax error or access rule violation
    'XX': 'internal',
}


def _sqlstate_of(orig: BaseException | None) -> Optional[str]:
    if orig is None:
        return None
    for candidate in (orig, orig.__cause__):
        sqlstate = getattr(candidate, 'sqlstate', None) or getattr(candidate, 'pgcode', None)
        if sqlstate:
            return str(sqlstate)
    return None


def translate_db_error(error: Exception) -> StoreFault:
    if isinstance(error, sa_exc.TimeoutError):
        # connection pool checkout timed out
        return StoreFault.from_code('resource-exhausted', f'Connection pool exhausted: {error}')
    if isinstance(error, sa_exc.DBAPIError):
        if error.connection_invalidated:
            return StoreFault.from_code('unavailable', f'Connection lost: {error.orig}')
        sqlstate = _sqlstate_of(error.orig)
        code = None
        if sqlstate:
            code = _SQLSTATE_FAULT_CODES.get(sqlstate) or _SQLSTATE_CLASS_FAULT_CODES.get(
                sqlstate[:2]
            )
        return StoreFault.from_code(
            code or 'unknown', f'{type(error.orig).__name__} [{sqlstate}]: {error.orig}'
        )
    if isinstance(error, OSError):
        return StoreFault.from_code('unavailable', f'{type(error).__name__}: {error}')
    return StoreFault.from_code('unknown', f'{type(error).__name__}: {error}')


# =============================================================================
# Row <-> entity mapping
# =============================================================================


def _to_event(row: EventModel) -> Event:
    return Event(
        id=row.id,
        title=row.title,
        event_date=row.event_date,
        capacity=row.capacity,
        registered_count=row.registered_count,
        waitlist_count=row.waitlist_count,
        waitlist_sequence=row.waitlist_sequence,
        status=EventStatus(row.status),
        is_deleted=row.is_deleted,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_booking(row: BookingModel) -> Booking:
    return Booking(
        id=row.id,
        subject_id=row.subject_id,
        event_id=row.event_id,
        ticket_id=row.ticket_id,
        status=BookingStatus(row.status),
        waitlist_position=row.waitlist_position,
        created_at=row.created_at,
        updated_at=row.updated_at,
        cancelled_at=row.cancelled_at,
        cancel_reason=row.cancel_reason,
        checked_in_at=row.checked_in_at,
        checked_in_by=row.checked_in_by,
        check_in_method=CheckInMethod(row.check_in_method) if row.check_in_method else None,
    )


def _to_check_in_log(row: CheckInLogModel) -> CheckInLog:
    return CheckInLog(
        id=row.id,
        booking_id=row.booking_id,
        event_id=row.event_id,
        subject_id=row.subject_id,
        checked_in_by=row.checked_in_by,
        method=CheckInMethod(row.method),
        checked_in_at=row.checked_in_at,
    )


def _apply_event(row: EventModel, event: Event) -> None:
    row.registered_count = event.registered_count
    row.waitlist_count = event.waitlist_count
    row.waitlist_sequence = event.waitlist_sequence
    row.version = event.version
    if event.updated_at is not None:
        row.updated_at = event.updated_at


def _apply_booking(row: BookingModel, booking: Booking) -> None:
    row.status = booking.status.value
    row.is_waitlist = booking.is_waitlist
    row.waitlist_position = booking.waitlist_position
    row.cancelled_at = booking.cancelled_at
    row.cancel_reason = booking.cancel_reason
    row.checked_in_at = booking.checked_in_at
    row.checked_in_by = booking.checked_in_by
    row.check_in_method = booking.check_in_method.value if booking.check_in_method else None
    if booking.updated_at is not None:
        row.updated_at = booking.updated_at


def _new_booking_row(booking: Booking) -> BookingModel:
    row = BookingModel(
        id=booking.id,
        subject_id=booking.subject_id,
        event_id=booking.event_id,
        ticket_id=booking.ticket_id,
        created_at=booking.created_at,
    )
    _apply_booking(row, booking)
    return row



def _notification_row(notification: Notification) -> NotificationModel:
    return NotificationModel(
        id=notification.id,
        subject_id=notification.subject_id,
        type=notification.type.value,
        booking_id=notification.booking_id,
        event_id=notification.event_id,
        title=notification.title,
        message=notification.message,
        read=notification.read,
        created_at=notification.created_at,
    )


# =============================================================================
# Store
# =============================================================================


class SqlAlchemyRegistrationStore(IRegistrationStore):
    name = 'postgres'

    def __init__(self, database: Database) -> None:
        self._database = database

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._database.session() as session:
                async with session.begin():
                    yield session
        except CustomBaseError:
            raise
        except Exception as e:
            raise translate_db_error(e) from e

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._database.session() as session:
                yield session
        except CustomBaseError:
            raise
        except Exception as e:
            raise translate_db_error(e) from e

    @staticmethod
    async def _lock_event(session: AsyncSession, event_id: UUID) -> EventModel | None:
        return await session.scalar(
            select(EventModel).where(EventModel.id == event_id).with_for_update()
        )

    # ========== Queries ==========

    @Logger.io
    async def get_event_by_id(self, *, event_id: UUID) -> Event | None:
        async with self._read() as session:
            row = await session.get(EventModel, event_id)
            return _to_event(row) if row else None

    @Logger.io
    async def get_booking_by_id(self, *, booking_id: UUID) -> Booking | None:
        async with self._read() as session:
            row = await session.get(BookingModel, booking_id)
            return _to_booking(row) if row else None

    @Logger.io
    async def get_booking_by_ticket_id(self, *, ticket_id: str) -> Booking | None:
        async with self._read() as session:
            row = await session.scalar(
                select(BookingModel).where(BookingModel.ticket_id == ticket_id)
            )
            return _to_booking(row) if row else None

    @Logger.io
    async def check_existing_booking(self, *, subject_id: str, event_id: UUID) -> Booking | None:
        async with self._read() as session:
            row = await session.scalar(
                select(BookingModel)
                .where(
                    BookingModel.subject_id == subject_id,
                    BookingModel.event_id == event_id,
                    BookingModel.status.in_([s.value for s in ACTIVE_BOOKING_STATUSES]),
                )
                .limit(1)
            )
            return _to_booking(row) if row else None

    @Logger.io
    async def get_event_participants(self, *, event_id: UUID, limit: int = 100) -> list[Booking]:
        async with self._read() as session:
            rows = await session.scalars(
                select(BookingModel)
                .where(BookingModel.event_id == event_id)
                .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
                .limit(limit)
            )
            return [_to_booking(row) for row in rows]

    @Logger.io
    async def get_user_bookings(self, *, subject_id: str, limit: int = 50) -> list[Booking]:
        async with self._read() as session:
            rows = await session.scalars(
                select(BookingModel)
                .where(BookingModel.subject_id == subject_id)
                .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
                .limit(limit)
            )
            return [_to_booking(row) for row in rows]

    @Logger.io
    async def get_check_in_logs(self, *, event_id: UUID, limit: int = 100) -> list[CheckInLog]:
        async with self._read() as session:
            rows = await session.scalars(
                select(CheckInLogModel)
                .where(CheckInLogModel.event_id == event_id)
                .order_by(CheckInLogModel.checked_in_at.desc(), CheckInLogModel.id.desc())
                .limit(limit)
            )
            return [_to_check_in_log(row) for row in rows]

    @Logger.io
    async def list_events_pending_promotion(self, *, limit: int = 100) -> list[Event]:
        async with self._read() as session:
            rows = await session.scalars(
                select(EventModel)
                .where(
                    EventModel.is_deleted.is_(False),
                    EventModel.registered_count < EventModel.capacity,
                    EventModel.waitlist_count > 0,
                )
                .limit(limit)
            )
            return [_to_event(row) for row in rows]

    # ========== Mutations ==========

    @Logger.io
    async def create_event(self, *, event: Event) -> Event:
        async with self._transaction() as session:
            if await session.get(EventModel, event.id) is not None:
                raise ConflictError(f'Event {event.id} already exists')
            row = EventModel(
                id=event.id,
                title=event.title,
                event_date=event.event_date,
                capacity=event.capacity,
                status=event.status.value,
                is_deleted=event.is_deleted,
            )
            if event.created_at is not None:
                row.created_at = event.created_at
            _apply_event(row, event)
            session.add(row)
        return event

    @Logger.io
    async def create_booking(
        self,
        *,
        booking_id: UUID,
        subject_id: str,
        event_id: UUID,
        ticket_id: str,
        now: datetime,
    ) -> Booking:
        async with self._transaction() as session:
            replay = await session.get(BookingModel, booking_id)
            if replay is not None:
                if replay.subject_id != subject_id or replay.event_id != event_id:
                    raise ConflictError(f'Booking id {booking_id} is already taken')
                return _to_booking(replay)

            event_row = await self._lock_event(session, event_id)
            active_row = await session.scalar(
                select(BookingModel)
                .where(
                    BookingModel.subject_id == subject_id,
                    BookingModel.event_id == event_id,
                    BookingModel.status.in_([s.value for s in ACTIVE_BOOKING_STATUSES]),
                )
                .limit(1)
            )
            decision = decide_reservation(
                event=_to_event(event_row) if event_row else None,
                event_id=event_id,
                active_booking=_to_booking(active_row) if active_row else None,
                booking_id=booking_id,
                subject_id=subject_id,
                ticket_id=ticket_id,
                now=now,
            )
            _apply_event(event_row, decision.event)
            session.add(_new_booking_row(decision.booking))

        Logger.base.info(
            f'🎟️ [PG] Booking {booking_id} for event {event_id} -> {decision.booking.status}'
        )
        return decision.booking

    @Logger.io
    async def cancel_booking(
        self,
        *,
        booking_id: UUID,
        subject_id: str,
        now: datetime,
        reason: str | None = None,
    ) -> CancellationOutcome:
        async with self._transaction() as session:
            booking_row = await session.get(BookingModel, booking_id)
            event_row = None
            if booking_row is not None:
                event_row = await self._lock_event(session, booking_row.event_id)
                await session.refresh(booking_row, with_for_update=True)

            decision = decide_cancellation(
                booking=_to_booking(booking_row) if booking_row else None,
                booking_id=booking_id,
                event=_to_event(event_row) if event_row else None,
                subject_id=subject_id,
                now=now,
                reason=reason,
            )
            _apply_event(event_row, decision.event)
            _apply_booking(booking_row, decision.booking)

        return CancellationOutcome(
            booking=decision.booking, event=decision.event, released_seat=decision.released_seat
        )

    @Logger.io
    async def promote_from_waitlist(
        self, *, event_id: UUID, notification_id: UUID, now: datetime
    ) -> PromotionOutcome | None:
        async with self._transaction() as session:
            event_row = await self._lock_event(session, event_id)
            head_row = None
            if event_row is not None:
                head_row = await session.scalar(
                    select(BookingModel)
                    .where(
                        BookingModel.event_id == event_id,
                        BookingModel.status == BookingStatus.WAITLIST.value,
                    )
                    .order_by(BookingModel.waitlist_position.asc(), BookingModel.id.asc())
                    .limit(1)
                    .with_for_update()
                )

            decision = decide_promotion(
                event=_to_event(event_row) if event_row else None,
                head=_to_booking(head_row) if head_row else None,
                notification_id=notification_id,
                now=now,
            )
            if decision is None:
                return None

            _apply_event(event_row, decision.event)
            _apply_booking(head_row, decision.booking)
            session.add(_notification_row(decision.notification))

        return PromotionOutcome(
            booking=decision.booking, event=decision.event, notification=decision.notification
        )

    @Logger.io
    async def check_in_participant(
        self,
        *,
        booking_id: UUID,
        operator_id: str,
        method: CheckInMethod,
        log_id: UUID,
        now: datetime,
        grace: timedelta,
    ) -> CheckInResult:
        async with self._transaction() as session:
            booking_row = await session.get(BookingModel, booking_id, with_for_update=True)
            event_row = None
            if booking_row is not None:
                event_row = await session.get(EventModel, booking_row.event_id)

            event = _to_event(event_row) if event_row else None
            decision = decide_check_in(
                booking=_to_booking(booking_row) if booking_row else None,
                booking_id=booking_id,
                event=event,
                operator_id=operator_id,
                method=method,
                log_id=log_id,
                now=now,
                grace=grace,
            )
            _apply_booking(booking_row, decision.booking)
            log = decision.log
            session.add(
                CheckInLogModel(
                    id=log.id,
                    booking_id=log.booking_id,
                    event_id=log.event_id,
                    subject_id=log.subject_id,
                    checked_in_by=log.checked_in_by,
                    method=log.method.value,
                    checked_in_at=log.checked_in_at,
                )
            )

        return CheckInResult(booking=decision.booking, event=event, log=decision.log)

    @Logger.io
    async def increment_event_slots(self, *, event_id: UUID, now: datetime) -> Event:
        async with self._transaction() as session:
            event_row = await self._lock_event(session, event_id)
            if event_row is None:
                raise EventNotFound(f'Event {event_id} not found')
            updated = _to_event(event_row).with_seat_taken(now=now)
            _apply_event(event_row, updated)
        return updated

    @Logger.io
    async def decrement_event_slots(self, *, event_id: UUID, now: datetime) -> Event:
        async with self._transaction() as session:
            event_row = await self._lock_event(session, event_id)
            if event_row is None:
                raise EventNotFound(f'Event {event_id} not found')
            updated = _to_event(event_row).with_seat_released(now=now)
            _apply_event(event_row, updated)
        return updated
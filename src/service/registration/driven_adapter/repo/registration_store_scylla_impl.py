"""
ScyllaDB Registration Store (secondary / fallback)

Cassandra has no multi-partition transactions, so a mutation is made atomic per event:
1. take the event lease: ``INSERT INTO event_lease ... IF NOT EXISTS USING TTL`` (LWT);
   a held lease surfaces as a retryable ``aborted`` fault
2. read a fresh snapshot at LOCAL_SERIAL and let the ledger decide
3. compare-and-set the event counters: ``UPDATE event ... IF version = <read version>``,
   stamping the decided booking into ``event.pending_mutations`` under a mutation key
4. write booking rows and lookup tables in one LOGGED batch
5. settle: drop the mutation key from ``pending_mutations``
6. release the lease (shielded from cancellation)

If the batch fails after the counters were committed, the retry of the same call finds
its mutation key still pending and re-applies the stamped rows instead of deciding (and
counting) again.

The event row is only ever written through LWT; lookup tables are plain writes.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any, AsyncIterator, Sequence
from uuid import UUID, uuid4

import anyio
import attrs
import orjson
from cassandra import (
    AuthenticationFailed,
    ConsistencyLevel,
    InvalidRequest,
    OperationTimedOut,
    ReadFailure,
    ReadTimeout,
    Unauthorized,
    Unavailable,
    WriteFailure,
    WriteTimeout,
)
from cassandra.cluster import NoHostAvailable
from cassandra.query import BatchStatement, BatchType, SimpleStatement

from src.platform.database.scylla_setting import ScyllaSessionManager
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
from src.service.registration.domain.enum.booking_status import BookingStatus
from src.service.registration.domain.enum.check_in_method import CheckInMethod
from src.service.registration.domain.enum.event_status import EventStatus
from src.service.registration.domain.registration_ledger import (
    decide_cancellation,
    decide_check_in,
    decide_promotion,
    decide_reservation,
)
from src.service.registration.domain.rejection.check_in_rejection import TicketNotFound
from src.service.registration.domain.rejection.ledger_rejection import (
    BookingNotFound,
    EventNotFound,
)


SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS event (
        id uuid PRIMARY KEY,
        title text,
        event_date timestamp,
        capacity int,
        registered_count int,
        waitlist_count int,
        waitlist_sequence int,
        status text,
        is_deleted boolean,
        version int,
        pending_mutations map<text, text>,
        created_at timestamp,
        updated_at timestamp
    )
    """,
    'CREATE TABLE IF NOT EXISTS event_lease (event_id uuid PRIMARY KEY, owner uuid)',
    """
    CREATE TABLE IF NOT EXISTS booking (
        id uuid PRIMARY KEY,
        subject_id text,
        event_id uuid,
        ticket_id text,
        status text,
        is_waitlist boolean,
        waitlist_position int,
        created_at timestamp,
        updated_at timestamp,
        cancelled_at timestamp,
        cancel_reason text,
        checked_in_at timestamp,
        checked_in_by text,
        check_in_method text
    )
    """,
    'CREATE TABLE IF NOT EXISTS booking_by_ticket (ticket_id text PRIMARY KEY, booking_id uuid)',
    """
    CREATE TABLE IF NOT EXISTS booking_by_event (
        event_id uuid,
        created_at timestamp,
        booking_id uuid,
        PRIMARY KEY (event_id, created_at, booking_id)
    ) WITH CLUSTERING ORDER BY (created_at DESC, booking_id DESC)
    """,
    """
    CREATE TABLE IF NOT EXISTS booking_by_subject (
        subject_id text,
        created_at timestamp,
        booking_id uuid,
        PRIMARY KEY (subject_id, created_at, booking_id)
    ) WITH CLUSTERING ORDER BY (created_at DESC, booking_id DESC)
    """,
    """
    CREATE TABLE IF NOT EXISTS active_booking (
        subject_id text,
        event_id uuid,
        booking_id uuid,
        PRIMARY KEY ((subject_id, event_id))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS waitlist_by_event (
        event_id uuid,
        waitlist_position int,
        booking_id uuid,
        PRIMARY KEY (event_id, waitlist_position)
    ) WITH CLUSTERING ORDER BY (waitlist_position ASC)
    """,
    """
    CREATE TABLE IF NOT EXISTS check_in_log (
        event_id uuid,
        checked_in_at timestamp,
        id uuid,
        booking_id uuid,
        subject_id text,
        checked_in_by text,
        method text,
        PRIMARY KEY (event_id, checked_in_at, id)
    ) WITH CLUSTERING ORDER BY (checked_in_at DESC, id DESC)
    """,
    """
    CREATE TABLE IF NOT EXISTS notification (
        subject_id text,
        id uuid,
        type text,
        booking_id uuid,
        event_id uuid,
        title text,
        message text,
        read boolean,
        created_at timestamp,
        PRIMARY KEY (subject_id, id)
    )
    """,
)

_BOOKING_UPDATE = """
    UPDATE booking
    SET status = %s,
        is_waitlist = %s,
        waitlist_position = %s,
        updated_at = %s,
        cancelled_at = %s,
        cancel_reason = %s,
        checked_in_at = %s,
        checked_in_by = %s,
        check_in_method = %s
    WHERE id = %s
    """


def translate_cassandra_error(error: Exception) -> StoreFault:
    detail = f'{type(error).__name__}: {error}'
    if isinstance(error, (ReadTimeout, WriteTimeout, OperationTimedOut)):
        return StoreFault.from_code('deadline-exceeded', detail)
    if isinstance(error, (Unavailable, NoHostAvailable)):
        return StoreFault.from_code('unavailable', detail)
    if isinstance(error, (ReadFailure, WriteFailure)):
        return StoreFault.from_code('internal', detail)
    if isinstance(error, Unauthorized):
        return StoreFault.from_code('permission-denied', detail)
    if isinstance(error, AuthenticationFailed):
        return StoreFault.from_code('unauthenticated', detail)
    if isinstance(error, InvalidRequest):
        return StoreFault.from_code('invalid-argument', detail)
    if isinstance(error, OSError):
        return StoreFault.from_code('unavailable', detail)
    return StoreFault.from_code('unknown', detail)


def _as_utc(value: datetime | None) -> datetime | None:
    # the driver hands back naive UTC datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_event(row: Any) -> Event:
    return Event(
        id=row.id,
        title=row.title,
        event_date=_as_utc(row.event_date),
        capacity=row.capacity,
        registered_count=row.registered_count or 0,
        waitlist_count=row.waitlist_count or 0,
        waitlist_sequence=row.waitlist_sequence or 0,
        status=EventStatus(row.status),
        is_deleted=bool(row.is_deleted),
        version=row.version or 0,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


def _to_booking(row: Any) -> Booking:
    return Booking(
        id=row.id,
        subject_id=row.subject_id,
        event_id=row.event_id,
        ticket_id=row.ticket_id,
        status=BookingStatus(row.status),
        waitlist_position=row.waitlist_position,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
        cancelled_at=_as_utc(row.cancelled_at),
        cancel_reason=row.cancel_reason,
        checked_in_at=_as_utc(row.checked_in_at),
        checked_in_by=row.checked_in_by,
        check_in_method=CheckInMethod(row.check_in_method) if row.check_in_method else None,
    )


def _to_check_in_log(row: Any) -> CheckInLog:
    return CheckInLog(
        id=row.id,
        booking_id=row.booking_id,
        event_id=row.event_id,
        subject_id=row.subject_id,
        checked_in_by=row.checked_in_by,
        method=CheckInMethod(row.method),
        checked_in_at=_as_utc(row.checked_in_at),
    )


def _booking_update_params(booking: Booking) -> tuple:
    return (
        booking.status.value,
        booking.is_waitlist,
        booking.waitlist_position,
        booking.updated_at,
        booking.cancelled_at,
        booking.cancel_reason,
        booking.checked_in_at,
        booking.checked_in_by,
        booking.check_in_method.value if booking.check_in_method else None,
        booking.id,
    )


def _booking_to_json(booking: Booking) -> str:
    return orjson.dumps(attrs.asdict(booking)).decode()


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _booking_from_json(raw: str) -> Booking:
    data = orjson.loads(raw)
    return Booking(
        id=UUID(data['id']),
        subject_id=data['subject_id'],
        event_id=UUID(data['event_id']),
        ticket_id=data['ticket_id'],
        status=BookingStatus(data['status']),
        waitlist_position=data['waitlist_position'],
        created_at=_parse_datetime(data['created_at']),
        updated_at=_parse_datetime(data['updated_at']),
        cancelled_at=_parse_datetime(data['cancelled_at']),
        cancel_reason=data['cancel_reason'],
        checked_in_at=_parse_datetime(data['checked_in_at']),
        checked_in_by=data['checked_in_by'],
        check_in_method=(
            CheckInMethod(data['check_in_method']) if data['check_in_method'] else None
        ),
    )


Statement = tuple[str, Sequence[Any]]


def _delete_waitlist_entry(event_id: UUID, position: int) -> Statement:
    return (
        'DELETE FROM waitlist_by_event WHERE event_id = %s AND waitlist_position = %s',
        (event_id, position),
    )


def _creation_statements(booking: Booking) -> list[Statement]:
    statements: list[Statement] = [
        (
            """
            INSERT INTO booking (id, subject_id, event_id, ticket_id, status,
                                 is_waitlist, waitlist_position, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                booking.id,
                booking.subject_id,
                booking.event_id,
                booking.ticket_id,
                booking.status.value,
                booking.is_waitlist,
                booking.waitlist_position,
                booking.created_at,
                booking.updated_at,
            ),
        ),
        (
            'INSERT INTO booking_by_ticket (ticket_id, booking_id) VALUES (%s, %s)',
            (booking.ticket_id, booking.id),
        ),
        (
            'INSERT INTO booking_by_event (event_id, created_at, booking_id) VALUES (%s, %s, %s)',
            (booking.event_id, booking.created_at, booking.id),
        ),
        (
            'INSERT INTO booking_by_subject (subject_id, created_at, booking_id) '
            'VALUES (%s, %s, %s)',
            (booking.subject_id, booking.created_at, booking.id),
        ),
        (
            'INSERT INTO active_booking (subject_id, event_id, booking_id) VALUES (%s, %s, %s)',
            (booking.subject_id, booking.event_id, booking.id),
        ),
    ]
    if booking.is_waitlist:
        statements.append(
            (
                'INSERT INTO waitlist_by_event (event_id, waitlist_position, booking_id) '
                'VALUES (%s, %s, %s)',
                (booking.event_id, booking.waitlist_position, booking.id),
            )
        )
    return statements


def _cancellation_statements(*, before: Booking, after: Booking) -> list[Statement]:
    statements: list[Statement] = [
        (_BOOKING_UPDATE, _booking_update_params(after)),
        (
            'DELETE FROM active_booking WHERE subject_id = %s AND event_id = %s',
            (before.subject_id, before.event_id),
        ),
    ]
    if before.waitlist_position is not None:
        statements.append(_delete_waitlist_entry(before.event_id, before.waitlist_position))
    return statements


def _promotion_statements(
    *, head: Booking, promoted: Booking, notification: Notification
) -> list[Statement]:
    return [
        (_BOOKING_UPDATE, _booking_update_params(promoted)),
        _delete_waitlist_entry(head.event_id, head.waitlist_position),
        (
            """
            INSERT INTO notification (subject_id, id, type, booking_id, event_id,
                                      title, message, read, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                notification.subject_id,
                notification.id,
                notification.type.value,
                notification.booking_id,
                notification.event_id,
                notification.title,
                notification.message,
                notification.read,
                notification.created_at,
            ),
        ),
    ]


class ScyllaRegistrationStore(IRegistrationStore):
    name = 'scylla'

    def __init__(
        self, session_manager: ScyllaSessionManager, *, lease_ttl_seconds: int = 30
    ) -> None:
        self._sessions = session_manager
        self._lease_ttl_seconds = lease_ttl_seconds

    # ========== Plumbing ==========

    async def _execute(
        self,
        query: str | BatchStatement,
        params: Sequence[Any] | None = None,
        *,
        consistency: int | None = None,
    ) -> Any:
        session = await self._sessions.get_session()
        statement: Any = query
        if consistency is not None and isinstance(query, str):
            statement = SimpleStatement(query, consistency_level=consistency)
        try:
            return await anyio.to_thread.run_sync(partial(session.execute, statement, params))
        except CustomBaseError:
            raise
        except Exception as e:
            raise translate_cassandra_error(e) from e

    @asynccontextmanager
    async def _event_lease(self, event_id: UUID) -> AsyncIterator[None]:
        owner = uuid4()
        result = await self._execute(
            'INSERT INTO event_lease (event_id, owner) VALUES (%s, %s) IF NOT EXISTS USING TTL %s',
            (event_id, owner, self._lease_ttl_seconds),
        )
        if not result.was_applied:
            Logger.base.debug(f'⏳ [SCYLLA] Event {event_id} lease held by another writer')
            raise StoreFault.from_code('aborted', f'Event {event_id} is being modified')
        Logger.base.debug(f'🔒 [SCYLLA] Acquired lease for event {event_id}')
        try:
            yield
        finally:
            with anyio.CancelScope(shield=True):
                await self._execute(
                    'DELETE FROM event_lease WHERE event_id = %s IF owner = %s',
                    (event_id, owner),
                )
            Logger.base.debug(f'🔓 [SCYLLA] Released lease for event {event_id}')

    async def _execute_batch(self, statements: Sequence[Statement]) -> None:
        batch = BatchStatement(batch_type=BatchType.LOGGED)
        for query, params in statements:
            batch.add(SimpleStatement(query), params)
        await self._execute(batch)

    async def _compare_and_set_event(
        self,
        *,
        previous: Event,
        updated: Event,
        mutation: str | None = None,
        booking: Booking | None = None,
    ) -> None:
        assignments = [
            'registered_count = %s',
            'waitlist_count = %s',
            'waitlist_sequence = %s',
            'version = %s',
            'updated_at = %s',
        ]
        params: list[Any] = [
            updated.registered_count,
            updated.waitlist_count,
            updated.waitlist_sequence,
            updated.version,
            updated.updated_at,
        ]
        if mutation is not None and booking is not None:
            assignments.append('pending_mutations[%s] = %s')
            params += [mutation, _booking_to_json(booking)]

        result = await self._execute(
            f'UPDATE event SET {", ".join(assignments)} WHERE id = %s IF version = %s',
            (*params, updated.id, previous.version),
        )
        if not result.was_applied:
            raise StoreFault.from_code(
                'aborted', f'Event {previous.id} changed since version {previous.version}'
            )

    async def _settle_mutation(self, *, event_id: UUID, mutation: str) -> None:
        """Drop a mutation key once its rows are written; a leftover key is only ever re-read"""
        try:
            await self._execute(
                'DELETE pending_mutations[%s] FROM event WHERE id = %s IF EXISTS',
                (mutation, event_id),
            )
        except StoreFault as e:
            Logger.base.warning(
                f'⚠️ [SCYLLA] Could not settle {mutation} on event {event_id} ({e.code})'
            )

    async def _fetch_event(self, event_id: UUID, *, serial: bool = False) -> Event | None:
        result = await self._execute(
            'SELECT * FROM event WHERE id = %s',
            (event_id,),
            consistency=ConsistencyLevel.LOCAL_SERIAL if serial else None,
        )
        row = result.one()
        return _to_event(row) if row else None

    async def _fetch_event_state(self, event_id: UUID) -> tuple[Event | None, dict[str, str]]:
        """Serial read of the event together with its unsettled mutations"""
        result = await self._execute(
            'SELECT * FROM event WHERE id = %s',
            (event_id,),
            consistency=ConsistencyLevel.LOCAL_SERIAL,
        )
        row = result.one()
        if row is None:
            return None, {}
        return _to_event(row), dict(row.pending_mutations or {})

    async def _fetch_booking(self, booking_id: UUID) -> Booking | None:
        result = await self._execute('SELECT * FROM booking WHERE id = %s', (booking_id,))
        row = result.one()
        return _to_booking(row) if row else None

    async def _fetch_bookings(self, booking_ids: list[UUID]) -> list[Booking]:
        bookings = []
        for booking_id in booking_ids:
            booking = await self._fetch_booking(booking_id)
            if booking is not None:
                bookings.append(booking)
        return bookings

    async def _fetch_active_booking(self, *, subject_id: str, event_id: UUID) -> Booking | None:
        result = await self._execute(
            'SELECT booking_id FROM active_booking WHERE subject_id = %s AND event_id = %s',
            (subject_id, event_id),
        )
        row = result.one()
        if row is None:
            return None
        booking = await self._fetch_booking(row.booking_id)
        return booking if booking is not None and booking.is_active else None

    async def _waitlist_head(self, event_id: UUID) -> tuple[Booking | None, list[int]]:
        """Lowest-position waitlisted booking, plus stale positions found on the way"""
        result = await self._execute(
            'SELECT waitlist_position, booking_id FROM waitlist_by_event WHERE event_id = %s',
            (event_id,),
        )
        stale: list[int] = []
        for row in result:
            booking = await self._fetch_booking(row.booking_id)
            if booking is not None and booking.status == BookingStatus.WAITLIST:
                return booking, stale
            stale.append(row.waitlist_position)
        return None, stale

    # ========== Schema ==========

    async def create_schema(self, *, replication_factor: int = 1) -> None:
        await self._sessions.create_keyspace(replication_factor=replication_factor)
        for statement in SCHEMA_STATEMENTS:
            await self._execute(statement)
        Logger.base.info(f'🗄️ [SCYLLA] Schema ready in keyspace {self._sessions.keyspace}')

    # ========== Queries ==========

    @Logger.io
    async def get_event_by_id(self, *, event_id: UUID) -> Event | None:
        return await self._fetch_event(event_id)

    @Logger.io
    async def get_booking_by_id(self, *, booking_id: UUID) -> Booking | None:
        return await self._fetch_booking(booking_id)

    @Logger.io
    async def get_booking_by_ticket_id(self, *, ticket_id: str) -> Booking | None:
        result = await self._execute(
            'SELECT booking_id FROM booking_by_ticket WHERE ticket_id = %s', (ticket_id,)
        )
        row = result.one()
        return await self._fetch_booking(row.booking_id) if row else None

    @Logger.io
    async def check_existing_booking(self, *, subject_id: str, event_id: UUID) -> Booking | None:
        return await self._fetch_active_booking(subject_id=subject_id, event_id=event_id)

    @Logger.io
    async def get_event_participants(self, *, event_id: UUID, limit: int = 100) -> list[Booking]:
        result = await self._execute(
            'SELECT booking_id FROM booking_by_event WHERE event_id = %s LIMIT %s',
            (event_id, limit),
        )
        return await self._fetch_bookings([row.booking_id for row in result])

    @Logger.io
    async def get_user_bookings(self, *, subject_id: str, limit: int = 50) -> list[Booking]:
        result = await self._execute(
            'SELECT booking_id FROM booking_by_subject WHERE subject_id = %s LIMIT %s',
            (subject_id, limit),
        )
        return await self._fetch_bookings([row.booking_id for row in result])

    @Logger.io
    async def get_check_in_logs(self, *, event_id: UUID, limit: int = 100) -> list[CheckInLog]:
        result = await self._execute(
            'SELECT * FROM check_in_log WHERE event_id = %s LIMIT %s', (event_id, limit)
        )
        return [_to_check_in_log(row) for row in result]

    @Logger.io
    async def list_events_pending_promotion(self, *, limit: int = 100) -> list[Event]:
        # full scan of the (small) event table; the driver pages through it
        result = await self._execute('SELECT * FROM event')
        pending = []
        for row in result:
            event = _to_event(row)
            if event.is_pending_promotion:
                pending.append(event)
                if len(pending) >= limit:
                    break
        return pending

    # ========== Mutations ==========

    @Logger.io
    async def create_event(self, *, event: Event) -> Event:
        result = await self._execute(
            """
            INSERT INTO event (id, title, event_date, capacity, registered_count,
                               waitlist_count, waitlist_sequence, status, is_deleted,
                               version, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            IF NOT EXISTS
            """,
            (
                event.id,
                event.title,
                event.event_date,
                event.capacity,
                event.registered_count,
                event.waitlist_count,
                event.waitlist_sequence,
                event.status.value,
                event.is_deleted,
                event.version,
                event.created_at,
                event.updated_at,
            ),
        )
        if not result.was_applied:
            raise ConflictError(f'Event {event.id} already exists')
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
        async with self._event_lease(event_id):
            replay = await self._fetch_booking(booking_id)
            if replay is not None:
                if replay.subject_id != subject_id or replay.event_id != event_id:
                    raise ConflictError(f'Booking id {booking_id} is already taken')
                return replay

            event, pending = await self._fetch_event_state(event_id)
            mutation = f'create:{booking_id}'
            if mutation in pending:
                booking = _booking_from_json(pending[mutation])
                Logger.base.warning(
                    f'🩹 [SCYLLA] Re-applying rows of booking {booking_id} after a partial write'
                )
            else:
                decision = decide_reservation(
                    event=event,
                    event_id=event_id,
                    active_booking=await self._fetch_active_booking(
                        subject_id=subject_id, event_id=event_id
                    ),
                    booking_id=booking_id,
                    subject_id=subject_id,
                    ticket_id=ticket_id,
                    now=now,
                )
                booking = decision.booking
                await self._compare_and_set_event(
                    previous=event, updated=decision.event, mutation=mutation, booking=booking
                )

            await self._execute_batch(_creation_statements(booking))
            await self._settle_mutation(event_id=event_id, mutation=mutation)

        Logger.base.info(
            f'🎟️ [SCYLLA] Booking {booking_id} for event {event_id} -> {booking.status}'
        )
        return booking

    @Logger.io
    async def cancel_booking(
        self,
        *,
        booking_id: UUID,
        subject_id: str,
        now: datetime,
        reason: str | None = None,
    ) -> CancellationOutcome:
        located = await self._fetch_booking(booking_id)
        if located is None:
            raise BookingNotFound(f'Booking {booking_id} not found')

        async with self._event_lease(located.event_id):
            booking = await self._fetch_booking(booking_id)
            event, pending = await self._fetch_event_state(located.event_id)
            mutation = f'cancel:{booking_id}'
            if mutation in pending and booking is not None and booking.is_active:
                Logger.base.warning(
                    f'🩹 [SCYLLA] Re-applying cancellation of {booking_id} after a partial write'
                )
                outcome = CancellationOutcome(
                    booking=_booking_from_json(pending[mutation]),
                    event=event,
                    released_seat=booking.status == BookingStatus.CONFIRMED,
                )
            else:
                decision = decide_cancellation(
                    booking=booking,
                    booking_id=booking_id,
                    event=event,
                    subject_id=subject_id,
                    now=now,
                    reason=reason,
                )
                await self._compare_and_set_event(
                    previous=event,
                    updated=decision.event,
                    mutation=mutation,
                    booking=decision.booking,
                )
                outcome = CancellationOutcome(
                    booking=decision.booking,
                    event=decision.event,
                    released_seat=decision.released_seat,
                )

            await self._execute_batch(
                _cancellation_statements(before=booking, after=outcome.booking)
            )
            await self._settle_mutation(event_id=located.event_id, mutation=mutation)

        return outcome

    @Logger.io
    async def promote_from_waitlist(
        self, *, event_id: UUID, notification_id: UUID, now: datetime
    ) -> PromotionOutcome | None:
        async with self._event_lease(event_id):
            event, pending = await self._fetch_event_state(event_id)
            mutation = f'promote:{notification_id}'
            if mutation in pending:
                outcome = await self._resume_promotion(
                    event=event,
                    promoted=_booking_from_json(pending[mutation]),
                    mutation=mutation,
                    notification_id=notification_id,
                    now=now,
                )
                if outcome is not None:
                    return outcome

            head, stale_positions = None, []
            if event is not None and event.has_open_seat:
                head, stale_positions = await self._waitlist_head(event_id)

            decision = decide_promotion(
                event=event, head=head, notification_id=notification_id, now=now
            )

            statements = [_delete_waitlist_entry(event_id, p) for p in stale_positions]
            if decision is None:
                if statements:
                    await self._execute_batch(statements)
                return None

            await self._compare_and_set_event(
                previous=event, updated=decision.event, mutation=mutation, booking=decision.booking
            )
            statements += _promotion_statements(
                head=head, promoted=decision.booking, notification=decision.notification
            )
            await self._execute_batch(statements)
            await self._settle_mutation(event_id=event_id, mutation=mutation)

        Logger.base.info(
            f'🎉 [SCYLLA] Promoted booking {decision.booking.id} from waitlist of event {event_id}'
        )
        return PromotionOutcome(
            booking=decision.booking, event=decision.event, notification=decision.notification
        )

    async def _resume_promotion(
        self,
        *,
        event: Event,
        promoted: Booking,
        mutation: str,
        notification_id: UUID,
        now: datetime,
    ) -> PromotionOutcome | None:
        """Finish a promotion whose counters were committed but whose rows were not written"""
        head = await self._fetch_booking(promoted.id)
        if head is None or head.status != BookingStatus.WAITLIST:
            await self._settle_mutation(event_id=event.id, mutation=mutation)
            return None

        Logger.base.warning(
            f'🩹 [SCYLLA] Re-applying promotion of {promoted.id} after a partial write'
        )
        notification = Notification.waitlist_promoted(
            id=notification_id,
            booking_id=promoted.id,
            subject_id=promoted.subject_id,
            event_id=event.id,
            event_title=event.title,
            now=now,
        )
        await self._execute_batch(
            _promotion_statements(head=head, promoted=promoted, notification=notification)
        )
        await self._settle_mutation(event_id=event.id, mutation=mutation)
        return PromotionOutcome(booking=promoted, event=event, notification=notification)

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
        located = await self._fetch_booking(booking_id)
        if located is None:
            raise TicketNotFound(f'Booking {booking_id} not found')

        async with self._event_lease(located.event_id):
            booking = await self._fetch_booking(booking_id)
            event = await self._fetch_event(located.event_id)
            decision = decide_check_in(
                booking=booking,
                booking_id=booking_id,
                event=event,
                operator_id=operator_id,
                method=method,
                log_id=log_id,
                now=now,
                grace=grace,
            )
            log = decision.log
            await self._execute_batch(
                [
                    (_BOOKING_UPDATE, _booking_update_params(decision.booking)),
                    (
                        """
                        INSERT INTO check_in_log (event_id, checked_in_at, id, booking_id,
                                                  subject_id, checked_in_by, method)
                        VALUES (%s, %s, %s, %s, %s, %s, %s)
                        """,
                        (
                            log.event_id,
                            log.checked_in_at,
                            log.id,
                            log.booking_id,
                            log.subject_id,
                            log.checked_in_by,
                            log.method.value,
                        ),
                    ),
                ]
            )

        return CheckInResult(booking=decision.booking, event=event, log=log)

    @Logger.io
    async def increment_event_slots(self, *, event_id: UUID, now: datetime) -> Event:
        async with self._event_lease(event_id):
            event = await self._fetch_event(event_id, serial=True)
            if event is None:
                raise EventNotFound(f'Event {event_id} not found')
            updated = event.with_seat_taken(now=now)
            await self._compare_and_set_event(previous=event, updated=updated)
        return updated

    @Logger.io
    async def decrement_event_slots(self, *, event_id: UUID, now: datetime) -> Event:
        async with self._event_lease(event_id):
            event = await self._fetch_event(event_id, serial=True)
            if event is None:
                raise EventNotFound(f'Event {event_id} not found')
            updated = event.with_seat_released(now=now)
            await self._compare_and_set_event(previous=event, updated=updated)
        return updated

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from uuid import UUID

from src.service.registration.app.dto.registration_outcome import (
    CancellationOutcome,
    CheckInResult,
    PromotionOutcome,
)
from src.service.registration.domain.entity.booking_entity import Booking
from src.service.registration.domain.entity.check_in_log_entity import CheckInLog
from src.service.registration.domain.entity.event_entity import Event
from src.service.registration.domain.enum.check_in_method import CheckInMethod


class IRegistrationStore(ABC):
    """
    Full logical operation set of a registration store.

    Mutations run inside the store's own transaction primitive and raise
    ``StoreFault`` for infrastructure failures; ``aborted`` means a write-write
    conflict that is safe to retry. Domain rejections propagate unchanged.
    """

    name: str

    # ========== Queries ==========

    @abstractmethod
    async def get_event_by_id(self, *, event_id: UUID) -> Event | None:
        pass

    @abstractmethod
    async def get_booking_by_id(self, *, booking_id: UUID) -> Booking | None:
        pass

    @abstractmethod
    async def get_booking_by_ticket_id(self, *, ticket_id: str) -> Booking | None:
        pass

    @abstractmethod
    async def check_existing_booking(self, *, subject_id: str, event_id: UUID) -> Booking | None:
        """The subject's active (confirmed or waitlisted) booking for the event"""
        pass

    @abstractmethod
    async def get_event_participants(self, *, event_id: UUID, limit: int = 100) -> list[Booking]:
        """Newest first"""
        pass

    @abstractmethod
    async def get_user_bookings(self, *, subject_id: str, limit: int = 50) -> list[Booking]:
        """Newest first"""
        pass

    @abstractmethod
    async def get_check_in_logs(self, *, event_id: UUID, limit: int = 100) -> list[CheckInLog]:
        """Newest first"""
        pass

    @abstractmethod
    async def list_events_pending_promotion(self, *, limit: int = 100) -> list[Event]:
        """Events with a free seat and a non-empty waitlist"""
        pass

    # ========== Mutations ==========

    @abstractmethod
    async def create_event(self, *, event: Event) -> Event:
        pass

    @abstractmethod
    async def create_booking(
        self,
        *,
        booking_id: UUID,
        subject_id: str,
        event_id: UUID,
        ticket_id: str,
        now: datetime,
    ) -> Booking:
        """Replaying the same ``booking_id`` returns the booking already written"""
        pass

    @abstractmethod
    async def cancel_booking(
        self,
        *,
        booking_id: UUID,
        subject_id: str,
        now: datetime,
        reason: str | None = None,
    ) -> CancellationOutcome:
        pass

    @abstractmethod
    async def promote_from_waitlist(
        self, *, event_id: UUID, notification_id: UUID, now: datetime
    ) -> PromotionOutcome | None:
        pass

    @abstractmethod
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
        pass

    @abstractmethod
    async def increment_event_slots(self, *, event_id: UUID, now: datetime) -> Event:
        """Guarded registered_count += 1 (rejects when full)"""
        pass

    @abstractmethod
    async def decrement_event_slots(self, *, event_id: UUID, now: datetime) -> Event:
        """Guarded registered_count -= 1 (rejects at zero)"""
        pass

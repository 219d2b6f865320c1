from datetime import datetime
from typing import Callable
from uuid import UUID

from src.platform.logging.loguru_io import Logger
from src.platform.metrics.registration_metrics import RegistrationMetrics
from src.platform.types.id_generator import new_uuid7, utc_now
from src.service.registration.app.dto.registration_outcome import PromotionOutcome
from src.service.registration.app.interface.i_notification_dispatcher import (
    INotificationDispatcher,
)
from src.service.registration.app.interface.i_store_router import IStoreRouter
from src.service.registration.app.interface.operation_name import OperationName


class PromoteFromWaitlistUseCase:
    def __init__(
        self,
        router: IStoreRouter,
        notifier: INotificationDispatcher,
        *,
        metrics: RegistrationMetrics | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.router = router
        self.notifier = notifier
        self.metrics = metrics
        self.clock = clock

    @Logger.io
    async def execute(self, *, event_id: UUID) -> UUID | None:
        """Promote the first waitlisted booking if a seat is free; returns its id"""
        outcome: PromotionOutcome | None = await self.router.route(
            OperationName.PROMOTE_FROM_WAITLIST,
            {'event_id': event_id, 'notification_id': new_uuid7(), 'now': self.clock()},
        )
        if outcome is None:
            if self.metrics:
                self.metrics.promotions.labels(result='noop').inc()
            return None

        if self.metrics:
            self.metrics.promotions.labels(result='promoted').inc()
        Logger.base.info(
            f'🎉 [PROMOTE] Booking {outcome.booking.id} of {outcome.booking.subject_id} '
            f'confirmed for event {event_id}'
        )

        # The notification row is already committed with the promotion; delivery is best effort
        try:
            await self.notifier.dispatch(notification=outcome.notification)
        except Exception as e:
            Logger.base.warning(
                f'⚠️ [PROMOTE] Notification {outcome.notification.id} not delivered: {e}'
            )
        return outcome.booking.id

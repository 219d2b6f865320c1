"""
Store Router

Dispatches a logical operation by name to the primary store (when enabled) and, on an
infrastructure fault, re-dispatches the same operation to the secondary store.

- every dispatch goes through ``ResilientExecutor.with_retry_and_timeout``
- only ``StoreFault`` triggers a fallback; domain rejections are the same on both
  stores and propagate unchanged
- each fallback is logged, recorded in the ``FallbackMonitor`` and counted in metrics
"""

import time
from typing import Any, Awaitable, Callable, Mapping

from opentelemetry import trace

from src.platform.exception.store_fault import StoreFault
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.registration_metrics import RegistrationMetrics
from src.platform.resilience.error_classifier import classify_error
from src.platform.resilience.fallback_monitor import FallbackMonitor
from src.platform.resilience.resilient_executor import OperationContext, ResilientExecutor
from src.service.registration.app.interface.i_registration_store import IRegistrationStore
from src.service.registration.app.interface.i_store_router import IStoreRouter
from src.service.registration.app.interface.operation_name import OperationName


StoreHandler = Callable[..., Awaitable[Any]]


def build_dispatch_table(store: IRegistrationStore) -> dict[OperationName, StoreHandler]:
    return {
        OperationName.CREATE_EVENT: store.create_event,
        OperationName.CREATE_BOOKING: store.create_booking,
        OperationName.CANCEL_BOOKING: store.cancel_booking,
        OperationName.PROMOTE_FROM_WAITLIST: store.promote_from_waitlist,
        OperationName.CHECK_IN_PARTICIPANT: store.check_in_participant,
        OperationName.GET_BOOKING_BY_ID: store.get_booking_by_id,
        OperationName.GET_BOOKING_BY_TICKET_ID: store.get_booking_by_ticket_id,
        OperationName.GET_EVENT_BY_ID: store.get_event_by_id,
        OperationName.CHECK_EXISTING_BOOKING: store.check_existing_booking,
        OperationName.GET_EVENT_PARTICIPANTS: store.get_event_participants,
        OperationName.GET_USER_BOOKINGS: store.get_user_bookings,
        OperationName.GET_CHECK_IN_LOGS: store.get_check_in_logs,
        OperationName.LIST_EVENTS_PENDING_PROMOTION: store.list_events_pending_promotion,
        OperationName.INCREMENT_EVENT_SLOTS: store.increment_event_slots,
        OperationName.DECREMENT_EVENT_SLOTS: store.decrement_event_slots,
    }


def _document_id(variables: Mapping[str, Any]) -> str | None:
    for key in ('booking_id', 'event_id', 'ticket_id'):
        if variables.get(key) is not None:
            return str(variables[key])
    return None


class StoreRouter(IStoreRouter):
    def __init__(
        self,
        *,
        primary: IRegistrationStore | None,
        secondary: IRegistrationStore,
        executor: ResilientExecutor,
        fallback_monitor: FallbackMonitor,
        metrics: RegistrationMetrics | None = None,
        primary_enabled: bool = True,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.executor = executor
        self.fallback_monitor = fallback_monitor
        self.metrics = metrics
        self.primary_enabled = primary_enabled and primary is not None
        self._tables: dict[int, dict[OperationName, StoreHandler]] = {}
        for store in filter(None, (primary, secondary)):
            table = build_dispatch_table(store)
            missing = set(OperationName) - table.keys()
            if missing:
                raise ValueError(f'Store {store.name} does not implement {sorted(missing)}')
            self._tables[id(store)] = table
        self.tracer = trace.get_tracer(__name__)

    async def route(
        self, operation: OperationName, variables: Mapping[str, Any] | None = None
    ) -> Any:
        variables = dict(variables or {})
        with self.tracer.start_as_current_span(
            'store_router.route', attributes={'operation': operation.value}
        ) as span:
            primary_fault: StoreFault | None = None

            if self.primary_enabled:
                try:
                    result = await self._dispatch(self.primary, operation, variables)
                    span.set_attribute('store', self.primary.name)
                    return result
                except Exception as e:
                    fault = classify_error(e)
                    if not isinstance(fault, StoreFault):
                        raise
                    primary_fault = fault
                    Logger.base.warning(
                        f'🔀 [ROUTER] {operation} failed on {self.primary.name} '
                        f'({fault.code}), falling back to {self.secondary.name}'
                    )

            try:
                result = await self._dispatch(self.secondary, operation, variables)
            except Exception as e:
                if primary_fault is not None:
                    self._record_fallback(operation, primary_fault, recovered=False)
                    Logger.base.error(
                        f'💥 [ROUTER] {operation} failed on both stores: '
                        f'{primary_fault.code} / {classify_error(e).code}'
                    )
                raise

            span.set_attribute('store', self.secondary.name)
            if primary_fault is not None:
                span.set_attribute('fallback', True)
                self._record_fallback(operation, primary_fault, recovered=True)
            return result

    async def _dispatch(
        self, store: IRegistrationStore, operation: OperationName, variables: dict[str, Any]
    ) -> Any:
        handler = self._tables[id(store)][operation]
        context = OperationContext(
            operation=operation.value,
            store=store.name,
            document_id=_document_id(variables),
            subject_id=variables.get('subject_id'),
        )
        started = time.perf_counter()
        success = False
        try:
            result = await self.executor.with_retry_and_timeout(
                lambda: handler(**variables), context=context
            )
            success = True
            return result
        finally:
            if self.metrics:
                self.metrics.record_store_call(
                    operation=operation.value,
                    store=store.name,
                    success=success,
                    duration=time.perf_counter() - started,
                )

    def _record_fallback(
        self, operation: OperationName, fault: StoreFault, *, recovered: bool
    ) -> None:
        self.fallback_monitor.record(
            operation=operation.value,
            reason=fault.code,
            original_error=fault.message,
            recovered=recovered,
        )
        if self.metrics:
            self.metrics.fallbacks.labels(
                operation=operation.value, recovered=str(recovered).lower()
            ).inc()

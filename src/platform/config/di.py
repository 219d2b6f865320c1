"""
https://python-dependency-injector.ets-labs.org/index.html
"""

from datetime import timedelta
from operator import attrgetter

from dependency_injector import containers, providers

from src.platform.config.core_setting import Settings
from src.platform.database.orm_db_setting import AsyncEngineManager, Database
from src.platform.database.scylla_setting import ScyllaSessionManager
from src.platform.metrics.registration_metrics import RegistrationMetrics
from src.platform.resilience.connectivity import ConnectivityMonitor
from src.platform.resilience.fallback_monitor import FallbackMonitor
from src.platform.resilience.resilient_executor import ResilientExecutor, RetryPolicy
from src.service.registration.app.command.cancel_reservation_use_case import (
    CancelReservationUseCase,
)
from src.service.registration.app.command.check_in_use_case import CheckInUseCase
from src.service.registration.app.command.create_event_use_case import CreateEventUseCase
from src.service.registration.app.command.create_reservation_use_case import (
    CreateReservationUseCase,
)
from src.service.registration.app.command.promote_from_waitlist_use_case import (
    PromoteFromWaitlistUseCase,
)
from src.service.registration.app.command.resolve_ticket_use_case import ResolveTicketUseCase
from src.service.registration.app.query.get_booking_use_case import (
    GetBookingUseCase,
    GetEventUseCase,
)
from src.service.registration.app.query.list_check_in_logs_use_case import (
    ListCheckInLogsUseCase,
)
from src.service.registration.app.query.list_event_participants_use_case import (
    ListEventParticipantsUseCase,
)
from src.service.registration.app.query.list_subject_bookings_use_case import (
    ListSubjectBookingsUseCase,
)
from src.service.registration.driven_adapter.notification.logging_notification_dispatcher_impl import (
    LoggingNotificationDispatcherImpl,
)
from src.service.registration.driven_adapter.repo.registration_store_memory_impl import (
    InMemoryRegistrationStore,
)
from src.service.registration.driven_adapter.repo.registration_store_scylla_impl import (
    ScyllaRegistrationStore,
)
from src.service.registration.driven_adapter.repo.registration_store_sqlalchemy_impl import (
    SqlAlchemyRegistrationStore,
)
from src.service.registration.driven_adapter.store_router import StoreRouter
from src.service.registration.driving_adapter.waitlist_promotion_sweeper import (
    WaitlistPromotionSweeper,
)


def _grace_from_settings(settings: Settings) -> timedelta:
    return timedelta(hours=settings.CHECK_IN_GRACE_HOURS)


class Container(containers.DeclarativeContainer):
    # Configuration
    config_service = providers.Singleton(Settings)

    # Database (primary store: PostgreSQL through SQLAlchemy async)
    engine_manager = providers.Singleton(AsyncEngineManager, settings=config_service)
    database = providers.Singleton(Database, engine_manager=engine_manager)

    # ScyllaDB (secondary store)
    scylla_session_manager = providers.Singleton(ScyllaSessionManager, settings=config_service)

    # Stores
    primary_store = providers.Singleton(SqlAlchemyRegistrationStore, database=database)
    secondary_store = providers.Selector(
        providers.Callable(attrgetter('SECONDARY_STORE_BACKEND'), config_service),
        scylla=providers.Singleton(
            ScyllaRegistrationStore,
            session_manager=scylla_session_manager,
            lease_ttl_seconds=config_service.provided.SCYLLA_EVENT_LEASE_TTL_SECONDS,
        ),
        memory=providers.Singleton(InMemoryRegistrationStore),
    )

    # Resilience
    metrics = providers.Singleton(RegistrationMetrics)
    connectivity = providers.Singleton(ConnectivityMonitor)
    retry_policy = providers.Singleton(RetryPolicy.from_settings, settings=config_service)
    executor = providers.Singleton(
        ResilientExecutor,
        connectivity=connectivity,
        policy=retry_policy,
        timeout_seconds=config_service.provided.STORE_TIMEOUT_SECONDS,
        metrics=metrics,
    )
    fallback_monitor = providers.Singleton(
        FallbackMonitor, max_records=config_service.provided.FALLBACK_HISTORY_SIZE
    )
    store_router = providers.Singleton(
        StoreRouter,
        primary=primary_store,
        secondary=secondary_store,
        executor=executor,
        fallback_monitor=fallback_monitor,
        metrics=metrics,
        primary_enabled=config_service.provided.PRIMARY_STORE_ENABLED,
    )

    # Notification delivery
    notification_dispatcher = providers.Singleton(LoggingNotificationDispatcherImpl)

    # Booking ledger use cases
    create_event_use_case = providers.Factory(CreateEventUseCase, router=store_router)
    create_reservation_use_case = providers.Factory(
        CreateReservationUseCase, router=store_router, metrics=metrics
    )
    promote_from_waitlist_use_case = providers.Factory(
        PromoteFromWaitlistUseCase,
        router=store_router,
        notifier=notification_dispatcher,
        metrics=metrics,
    )
    cancel_reservation_use_case = providers.Factory(
        CancelReservationUseCase,
        router=store_router,
        promote_use_case=promote_from_waitlist_use_case,
    )

    # Check-in use cases
    resolve_ticket_use_case = providers.Factory(ResolveTicketUseCase, router=store_router)
    check_in_use_case = providers.Factory(
        CheckInUseCase,
        router=store_router,
        resolve_ticket=resolve_ticket_use_case,
        grace=providers.Callable(_grace_from_settings, config_service),
        metrics=metrics,
    )

    # Queries
    get_booking_use_case = providers.Factory(GetBookingUseCase, router=store_router)
    get_event_use_case = providers.Factory(GetEventUseCase, router=store_router)
    list_event_participants_use_case = providers.Factory(
        ListEventParticipantsUseCase, router=store_router
    )
    list_subject_bookings_use_case = providers.Factory(
        ListSubjectBookingsUseCase, router=store_router
    )
    list_check_in_logs_use_case = providers.Factory(ListCheckInLogsUseCase, router=store_router)

    # Background
    waitlist_promotion_sweeper = providers.Singleton(
        WaitlistPromotionSweeper,
        router=store_router,
        promote_use_case=promote_from_waitlist_use_case,
        interval_seconds=config_service.provided.PROMOTION_SWEEP_INTERVAL_SECONDS,
    )

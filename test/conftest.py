"""
Test Configuration and Fixtures

- Unit tests (``@pytest.mark.unit``) run against the in-memory store and mocks
- Integration tests (``@pytest.mark.integration``) need a running Postgres / ScyllaDB
  and only run with ``RUN_INTEGRATION_TESTS=1``
"""

# =============================================================================
# Environment setup MUST happen before importing modules that read settings
# =============================================================================
import os


def _early_setup_test_environment() -> None:
    worker_id = os.environ.get('PYTEST_XDIST_WORKER', 'master')
    suffix = '' if worker_id == 'master' else f'_{worker_id}'
    os.environ.setdefault('POSTGRES_DB', f'event_registration_test_db{suffix}')
    os.environ.setdefault('SCYLLA_KEYSPACE', f'event_registration_test{suffix}')
    os.environ.setdefault('DB_POOL_SIZE', '2')
    os.environ.setdefault('DB_POOL_MAX_OVERFLOW', '2')


_early_setup_test_environment()

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Any  # noqa: E402
from uuid import UUID  # noqa: E402

import pytest  # noqa: E402

from src.platform.resilience.connectivity import ConnectivityMonitor  # noqa: E402
from src.platform.resilience.fallback_monitor import FallbackMonitor  # noqa: E402
from src.platform.resilience.resilient_executor import (  # noqa: E402
    ResilientExecutor,
    RetryPolicy,
)
from src.platform.types.id_generator import new_uuid7  # noqa: E402
from src.service.registration.app.interface.i_registration_store import (  # noqa: E402
    IRegistrationStore,
)
from src.service.registration.domain.entity.booking_entity import Booking  # noqa: E402
from src.service.registration.domain.entity.event_entity import Event  # noqa: E402
from src.service.registration.domain.enum.event_status import EventStatus  # noqa: E402
from src.service.registration.domain.value_object.ticket_reference import (  # noqa: E402
    generate_ticket_id,
)
from src.service.registration.driven_adapter.repo.registration_store_memory_impl import (  # noqa: E402
    InMemoryRegistrationStore,
)
from src.service.registration.driven_adapter.store_router import StoreRouter  # noqa: E402


NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.environ.get('RUN_INTEGRATION_TESTS') == '1':
        return
    skip_integration = pytest.mark.skip(reason='set RUN_INTEGRATION_TESTS=1 to run')
    for item in items:
        if 'integration' in item.keywords:
            item.add_marker(skip_integration)


# =============================================================================
# Store / router fixtures
# =============================================================================


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def connectivity() -> ConnectivityMonitor:
    return ConnectivityMonitor()


@pytest.fixture
def fast_retry_policy() -> RetryPolicy:
    """No backoff delay and enough attempts to outlast any optimistic-commit contention"""
    return RetryPolicy(max_attempts=200, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def executor(connectivity: ConnectivityMonitor, fast_retry_policy: RetryPolicy) -> ResilientExecutor:
    return ResilientExecutor(connectivity=connectivity, policy=fast_retry_policy, timeout_seconds=5)


@pytest.fixture
def fallback_monitor() -> FallbackMonitor:
    return FallbackMonitor(max_records=100)


@pytest.fixture
def memory_store() -> InMemoryRegistrationStore:
    return InMemoryRegistrationStore()


@pytest.fixture
def router(
    memory_store: InMemoryRegistrationStore,
    executor: ResilientExecutor,
    fallback_monitor: FallbackMonitor,
) -> StoreRouter:
    return StoreRouter(
        primary=None,
        secondary=memory_store,
        executor=executor,
        fallback_monitor=fallback_monitor,
    )


# =============================================================================
# Registration helpers
# =============================================================================


class RegistrationSeeder:
    """Seeds events and bookings straight into a store, bypassing the router"""

    def __init__(self, store: IRegistrationStore, now: datetime) -> None:
        self.store = store
        self.now = now

    def make_event(
        self,
        *,
        capacity: int = 10,
        status: EventStatus = EventStatus.PUBLISHED,
        starts_in: timedelta = timedelta(days=7),
        title: str = 'Spring Tech Meetup',
        **overrides: Any,
    ) -> Event:
        return Event(
            id=new_uuid7(),
            title=title,
            event_date=self.now + starts_in,
            capacity=capacity,
            status=status,
            created_at=self.now,
            updated_at=self.now,
            **overrides,
        )

    async def event(self, **kwargs: Any) -> Event:
        return await self.store.create_event(event=self.make_event(**kwargs))

    async def reserve(
        self, *, subject_id: str, event_id: UUID, now: datetime | None = None
    ) -> Booking:
        return await self.store.create_booking(
            booking_id=new_uuid7(),
            subject_id=subject_id,
            event_id=event_id,
            ticket_id=generate_ticket_id(),
            now=now or self.now,
        )


@pytest.fixture
def seeder(memory_store: InMemoryRegistrationStore, now: datetime) -> RegistrationSeeder:
    return RegistrationSeeder(memory_store, now)

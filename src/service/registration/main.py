"""
Registration core runtime

There is no HTTP surface; an embedding process enters ``registration_runtime()`` and
calls the use cases on the yielded container.

Usage:
    async with registration_runtime() as container:
        result = await container.create_reservation_use_case().execute(
            subject_id='subject-1', event_id=event_id
        )
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import anyio

from src.platform.config.di import Container
from src.platform.database.orm_db_setting import create_db_and_tables
from src.platform.logging.loguru_io import Logger
from src.service.registration.driven_adapter.repo.registration_store_scylla_impl import (
    ScyllaRegistrationStore,
)


async def _prepare_stores(container: Container) -> None:
    settings = container.config_service()
    if settings.PRIMARY_STORE_ENABLED:
        await create_db_and_tables(container.engine_manager())
        Logger.base.info('🗄️  [Registration] Primary store schema ensured')

    secondary = container.secondary_store()
    if isinstance(secondary, ScyllaRegistrationStore):
        await secondary.create_schema(replication_factor=settings.SCYLLA_REPLICATION_FACTOR)
        Logger.base.info('🗄️  [Registration] Secondary store schema ensured')


async def _shutdown(container: Container) -> None:
    await container.engine_manager().dispose()
    Logger.base.info('🔌 [Registration] Database engine disposed')

    if container.config_service().SECONDARY_STORE_BACKEND == 'scylla':
        await container.scylla_session_manager().close_all()
        Logger.base.info('🔌 [Registration] ScyllaDB sessions closed')


@asynccontextmanager
async def registration_runtime(container: Container | None = None) -> AsyncIterator[Container]:
    """Manage the registration core lifespan: startup, background sweeper, shutdown."""
    container = container or Container()
    settings = container.config_service()
    Logger.base.info(f'🚀 [Registration] Starting {settings.PROJECT_NAME} v{settings.VERSION}...')

    if settings.STORE_SCHEMA_AUTO_CREATE:
        await _prepare_stores(container)

    try:
        async with anyio.create_task_group() as tg:
            if settings.PROMOTION_SWEEP_ENABLED:
                sweeper_task = container.waitlist_promotion_sweeper().build_task()
                await tg.start(sweeper_task.run)
                Logger.base.info('🧹 [Registration] Waitlist promotion sweeper started')

            Logger.base.info('✅ [Registration] Ready')
            yield container

            Logger.base.info('🛑 [Registration] Shutting down...')
            tg.cancel_scope.cancel()
    finally:
        await _shutdown(container)
        container.reset_singletons()
        Logger.base.info('👋 [Registration] Shutdown complete')

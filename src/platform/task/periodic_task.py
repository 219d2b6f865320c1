"""
Cancellable periodic task (ticker + cancel scope).

Replaces interval timers with manual teardown callbacks: the owner starts ``run()``
inside an anyio task group and stops it with ``cancel()`` (or by cancelling the
task group). A failing tick is logged and the ticker keeps going.

Usage:
    async with anyio.create_task_group() as tg:
        ticker = PeriodicTask(name='promotion-sweep', interval_seconds=15, tick=sweep)
        await tg.start(ticker.run)
        ...
        ticker.cancel()
"""

from typing import Awaitable, Callable

import anyio
from anyio.abc import TaskStatus

from src.platform.logging.loguru_io import Logger


class PeriodicTask:
    def __init__(
        self,
        *,
        name: str,
        interval_seconds: float,
        tick: Callable[[], Awaitable[None]],
        run_immediately: bool = True,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError('interval_seconds must be positive')
        self.name = name
        self.interval_seconds = interval_seconds
        self._tick = tick
        self._run_immediately = run_immediately
        self._sleep = sleep
        self._cancel_scope: anyio.CancelScope | None = None
        self.ticks = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._cancel_scope is not None and not self._cancel_scope.cancel_called

    async def run(self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        with anyio.CancelScope() as scope:
            self._cancel_scope = scope
            Logger.base.info(f'⏰ [TICKER:{self.name}] started (every {self.interval_seconds}s)')
            task_status.started()
            if not self._run_immediately:
                await self._sleep(self.interval_seconds)
            while True:
                await self._run_tick()
                await self._sleep(self.interval_seconds)
        Logger.base.info(f'🛑 [TICKER:{self.name}] stopped after {self.ticks} ticks')

    def cancel(self) -> None:
        if self._cancel_scope is not None:
            self._cancel_scope.cancel()

    async def _run_tick(self) -> None:
        self.ticks += 1
        try:
            await self._tick()
        except Exception as e:
            self.failures += 1
            Logger.base.exception(f'❌ [TICKER:{self.name}] tick {self.ticks} failed: {e}')

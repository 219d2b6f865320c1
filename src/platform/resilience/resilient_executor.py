"""
Resilient Operation Executor

Wraps a unit of async work with:
- a timeout (anyio.fail_after), surfaced as a retryable ``deadline-exceeded`` fault
- retry with exponential backoff and +/-25% jitter for retryable faults only
- an offline short-circuit (no attempt, no retry)
- structured logging of every failed attempt

Usage:
    result = await executor.with_retry_and_timeout(
        lambda: store.get_booking_by_id(booking_id=booking_id),
        context=OperationContext(operation='GetBookingById', document_id=str(booking_id)),
    )
"""

import random
from typing import Awaitable, Callable, TypeVar

import anyio
import attrs

from src.platform.config.core_setting import Settings
from src.platform.exception.store_fault import StoreFault
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.registration_metrics import RegistrationMetrics
from src.platform.resilience.connectivity import IConnectivityProbe
from src.platform.resilience.error_classifier import classify_error


T = TypeVar('T')

Operation = Callable[[], Awaitable[T]]
SleepFn = Callable[[float], Awaitable[None]]


@attrs.frozen
class RetryPolicy:
    max_attempts: int = attrs.field(default=3, validator=attrs.validators.ge(1))
    base_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter_ratio: float = 0.25

    @classmethod
    def from_settings(cls, settings: Settings) -> 'RetryPolicy':
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            base_delay=settings.RETRY_BASE_DELAY_SECONDS,
            max_delay=settings.RETRY_MAX_DELAY_SECONDS,
            multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
        )


DEFAULT_RETRY_POLICY = RetryPolicy()


@attrs.define
class OperationContext:
    operation: str
    collection: str | None = None
    document_id: str | None = None
    subject_id: str | None = None
    store: str | None = None

    def describe(self, attempt: int | None = None) -> str:
        parts = [f'op={self.operation}']
        if self.store:
            parts.append(f'store={self.store}')
        if self.collection:
            parts.append(f'col={self.collection}')
        if self.document_id:
            parts.append(f'doc={self.document_id}')
        if attempt is not None:
            parts.append(f'attempt={attempt}')
        return ' | '.join(parts)


def compute_backoff_delay(
    attempt: int, policy: RetryPolicy, *, random_fn: Callable[[], float] = random.random
) -> float:
    """min(max_delay, base * multiplier^attempt), then +/- jitter_ratio of that."""
    capped = min(policy.max_delay, policy.base_delay * policy.multiplier**attempt)
    jitter = capped * policy.jitter_ratio * (random_fn() * 2 - 1)
    return max(0.0, capped + jitter)


class ResilientExecutor:
    def __init__(
        self,
        *,
        connectivity: IConnectivityProbe,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        timeout_seconds: float = 30.0,
        metrics: RegistrationMetrics | None = None,
        sleep: SleepFn = anyio.sleep,
        random_fn: Callable[[], float] = random.random,
    ) -> None:
        self.connectivity = connectivity
        self.policy = policy
        self.timeout_seconds = timeout_seconds
        self.metrics = metrics
        self._sleep = sleep
        self._random = random_fn

    async def with_retry(
        self,
        operation: Operation[T],
        *,
        policy: RetryPolicy | None = None,
        context: OperationContext | None = None,
    ) -> T:
        policy = policy or self.policy
        context = context or OperationContext(operation='anonymous')

        for attempt in range(policy.max_attempts):
            if self.connectivity.is_offline():
                Logger.base.warning(
                    f'📴 [RETRY] Offline, not attempting | {context.describe(attempt + 1)}'
                )
                raise StoreFault.from_code('offline', 'No internet connection')

            try:
                result = await operation()
            except Exception as e:
                fault = classify_error(e)
                Logger.base.error(
                    f'❌ [RETRY] {fault.user_message} ({fault.code}) '
                    f'| {context.describe(attempt + 1)} | {type(e).__name__}: {e}'
                )

                if not fault.retryable or attempt == policy.max_attempts - 1:
                    if fault is e:
                        raise
                    raise fault from e

                delay = compute_backoff_delay(attempt, policy, random_fn=self._random)
                Logger.base.info(
                    f'🔁 [RETRY] Retrying in {delay:.3f}s | {context.describe(attempt + 1)}'
                )
                if self.metrics:
                    self.metrics.retries.labels(
                        operation=context.operation, category=fault.category.value
                    ).inc()
                await self._sleep(delay)
                continue

            if attempt > 0:
                Logger.base.info(
                    f'✅ [RETRY] Operation succeeded after retry | {context.describe(attempt + 1)}'
                )
            return result

        # max_attempts >= 1 guarantees the loop either returns or raises
        raise AssertionError('unreachable')

    async def with_timeout(
        self,
        operation: Operation[T],
        *,
        timeout_seconds: float | None = None,
        context: OperationContext | None = None,
    ) -> T:
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        context = context or OperationContext(operation='anonymous')
        try:
            with anyio.fail_after(timeout):
                return await operation()
        except TimeoutError as e:
            fault = StoreFault.from_code(
                'deadline-exceeded', f'Operation timed out after {timeout}s'
            )
            Logger.base.warning(f'⏱️ [TIMEOUT] {fault.message} | {context.describe()}')
            raise fault from e

    async def with_retry_and_timeout(
        self,
        operation: Operation[T],
        *,
        policy: RetryPolicy | None = None,
        timeout_seconds: float | None = None,
        context: OperationContext | None = None,
    ) -> T:
        return await self.with_retry(
            lambda: self.with_timeout(operation, timeout_seconds=timeout_seconds, context=context),
            policy=policy,
            context=context,
        )

from collections import Counter, deque
from datetime import datetime, timezone

import attrs

from src.platform.logging.loguru_io import Logger


@attrs.frozen
class FallbackRecord:
    timestamp: datetime
    operation: str
    reason: str
    original_error: str | None
    recovered: bool


@attrs.frozen
class FallbackStats:
    total: int
    recovered: int
    failed: int
    by_operation: dict[str, int]


class FallbackMonitor:
    """Bounded in-memory history of primary -> secondary fallbacks"""

    def __init__(self, *, max_records: int = 100, enabled: bool = True) -> None:
        self.enabled = enabled
        self._records: deque[FallbackRecord] = deque(maxlen=max_records)

    def record(
        self,
        *,
        operation: str,
        reason: str,
        original_error: str | None = None,
        recovered: bool = True,
    ) -> None:
        if not self.enabled:
            return
        self._records.append(
            FallbackRecord(
                timestamp=datetime.now(timezone.utc),
                operation=operation,
                reason=reason,
                original_error=original_error,
                recovered=recovered,
            )
        )
        Logger.base.warning(
            f'🔀 [FALLBACK] {operation}: {reason} (recovered={recovered})'
        )

    def recent(self, count: int = 20) -> list[FallbackRecord]:
        if count <= 0:
            return []
        return list(self._records)[-count:]

    def stats(self) -> FallbackStats:
        by_operation = Counter(record.operation for record in self._records)
        recovered = sum(1 for record in self._records if record.recovered)
        return FallbackStats(
            total=len(self._records),
            recovered=recovered,
            failed=len(self._records) - recovered,
            by_operation=dict(by_operation),
        )

    def clear(self) -> None:
        self._records.clear()

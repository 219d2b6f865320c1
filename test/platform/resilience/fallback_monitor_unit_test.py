import pytest

from src.platform.resilience.fallback_monitor import FallbackMonitor


@pytest.mark.unit
class TestFallbackMonitor:
    def test_stats_by_operation(self) -> None:
        monitor = FallbackMonitor()
        monitor.record(operation='CreateBooking', reason='unavailable')
        monitor.record(operation='CreateBooking', reason='deadline-exceeded', recovered=False)
        monitor.record(operation='GetEventById', reason='unavailable')

        stats = monitor.stats()

        assert stats.total == 3
        assert stats.recovered == 2
        assert stats.failed == 1
        assert stats.by_operation == {'CreateBooking': 2, 'GetEventById': 1}

    def test_history_is_bounded(self) -> None:
        monitor = FallbackMonitor(max_records=3)
        for n in range(5):
            monitor.record(operation=f'op-{n}', reason='unavailable')

        assert [r.operation for r in monitor.recent(10)] == ['op-2', 'op-3', 'op-4']

    def test_recent_returns_newest_last(self) -> None:
        monitor = FallbackMonitor()
        for n in range(4):
            monitor.record(operation=f'op-{n}', reason='unavailable')

        assert [r.operation for r in monitor.recent(2)] == ['op-2', 'op-3']
        assert monitor.recent(0) == []

    def test_clear(self) -> None:
        monitor = FallbackMonitor()
        monitor.record(operation='CreateBooking', reason='unavailable')

        monitor.clear()

        assert monitor.stats().total == 0

    def test_disabled_monitor_records_nothing(self) -> None:
        monitor = FallbackMonitor(enabled=False)
        monitor.record(operation='CreateBooking', reason='unavailable')

        assert monitor.recent() == []

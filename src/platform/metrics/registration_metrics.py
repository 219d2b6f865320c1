from prometheus_client import CollectorRegistry, Counter, Histogram


class RegistrationMetrics:
    """
    Registration core metrics.

    Each instance owns its own ``CollectorRegistry`` so a container (or a test)
    can be constructed more than once per process without duplicate collectors.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()

        # ========== Store access ==========
        self.store_operations = Counter(
            'registration_store_operations_total',
            'Routed store operations',
            ['operation', 'store', 'result'],
            registry=self.registry,
        )
        self.store_operation_duration = Histogram(
            'registration_store_operation_duration_seconds',
            'Routed store operation latency',
            ['operation', 'store'],
            buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=self.registry,
        )
        self.retries = Counter(
            'registration_retries_total',
            'Retries scheduled by the resilient executor',
            ['operation', 'category'],
            registry=self.registry,
        )
        self.fallbacks = Counter(
            'registration_fallbacks_total',
            'Primary store failures re-dispatched to the secondary store',
            ['operation', 'recovered'],
            registry=self.registry,
        )

        # ========== Ledger / check-in ==========
        self.reservations = Counter(
            'registration_reservations_total',
            'Reservation outcomes',
            ['result'],  # confirmed / waitlist / rejected
            registry=self.registry,
        )
        self.promotions = Counter(
            'registration_waitlist_promotions_total',
            'Waitlist promotions',
            ['result'],  # promoted / noop
            registry=self.registry,
        )
        self.check_ins = Counter(
            'registration_check_ins_total',
            'Check-in outcomes',
            ['result'],  # success / rejection code
            registry=self.registry,
        )

    def record_store_call(
        self, *, operation: str, store: str, success: bool, duration: float
    ) -> None:
        self.store_operations.labels(
            operation=operation, store=store, result='success' if success else 'failure'
        ).inc()
        self.store_operation_duration.labels(operation=operation, store=store).observe(duration)

"""Prometheus metrics for observability."""

from functools import lru_cache

from prometheus_client import Counter, Gauge, Histogram, Info

from quickfix import __version__


class Metrics:
    """Prometheus metrics for the issue store."""

    def __init__(self) -> None:
        """Initialize all metrics."""
        # Service info
        self.info = Info(
            "quickfix",
            "QuickFix issue store information",
        )
        self.info.info({"version": __version__})

        # Store facade operations
        self.store_operations_total = Counter(
            "quickfix_store_operations_total",
            "Total number of issue store operations",
            ["operation", "entity", "status"],
        )

        self.store_operation_duration_seconds = Histogram(
            "quickfix_store_operation_duration_seconds",
            "Duration of issue store operations in seconds",
            ["operation", "entity"],
            buckets=[0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
        )

        # Save path
        self.saves_total = Counter(
            "quickfix_saves_total",
            "Total number of save attempts",
            ["trigger", "status"],
        )

        self.saves_coalesced_total = Counter(
            "quickfix_saves_coalesced_total",
            "Queued saves superseded by a later mutation",
        )

        self.save_pending = Gauge(
            "quickfix_save_pending",
            "Whether a debounced save is waiting to run (1=pending)",
        )

        # Storage metrics
        self.storage_operations_total = Counter(
            "quickfix_storage_operations_total",
            "Total number of storage operations",
            ["operation", "status"],
        )

        self.storage_operation_duration_seconds = Histogram(
            "quickfix_storage_operation_duration_seconds",
            "Duration of storage operations in seconds",
            ["operation"],
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
        )

        # Remote change stream
        self.remote_changes_total = Counter(
            "quickfix_remote_changes_total",
            "Total number of changes detected from other connections",
        )

        # Entity counts
        self.entity_count = Gauge(
            "quickfix_entity_count",
            "Current count of entities in the store",
            ["entity"],
        )

    def record_store_operation(
        self,
        operation: str,
        entity: str,
        status: str,
        duration: float,
    ) -> None:
        """Record an issue store operation metric.

        Args:
            operation: Operation name (fetch, count, create, delete, ...)
            entity: Entity name (issue, tag, all)
            status: Operation status (success, error)
            duration: Operation duration in seconds
        """
        self.store_operations_total.labels(
            operation=operation,
            entity=entity,
            status=status,
        ).inc()
        self.store_operation_duration_seconds.labels(
            operation=operation,
            entity=entity,
        ).observe(duration)

    def record_storage_operation(
        self,
        operation: str,
        status: str,
        duration: float,
    ) -> None:
        """Record a storage adapter operation metric.

        Args:
            operation: Operation name (load, save, batch_delete, count)
            status: Operation status (success, error)
            duration: Operation duration in seconds
        """
        self.storage_operations_total.labels(
            operation=operation,
            status=status,
        ).inc()
        self.storage_operation_duration_seconds.labels(
            operation=operation,
        ).observe(duration)

    def set_entity_counts(self, issues: int, tags: int) -> None:
        """Publish the current entity counts."""
        self.entity_count.labels(entity="issue").set(issues)
        self.entity_count.labels(entity="tag").set(tags)


@lru_cache
def get_metrics() -> Metrics:
    """Get cached metrics instance."""
    return Metrics()

"""
Prometheus metrics collection.
"""

import logging

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
    start_http_server,
    REGISTRY,
)

from egress_worker.constants import (
    METRIC_QUEUES_JOINED,
    METRIC_QUEUE_JOINS,
    METRIC_QUEUE_LEAVES,
    METRIC_ADDRESS_LOOKUPS,
    METRIC_JOBS_PROCESSED,
    METRIC_JOB_DURATION,
    METRIC_MESSAGES_DROPPED,
    METRIC_JOB_RUNNING,
)

logger = logging.getLogger(__name__)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the worker.

    Collects metrics for:
    - Queue membership changes
    - Address registry lookups
    - Job outcomes and execution duration
    - Dropped (undecodable) messages
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.queues_joined = Gauge(
            METRIC_QUEUES_JOINED,
            "Number of queues the worker is subscribed to",
            registry=self._registry,
        )

        self.queue_joins = Counter(
            METRIC_QUEUE_JOINS,
            "Total number of queue subscriptions made",
            ["queue"],
            registry=self._registry,
        )

        self.queue_leaves = Counter(
            METRIC_QUEUE_LEAVES,
            "Total number of queue subscriptions cancelled",
            ["queue"],
            registry=self._registry,
        )

        # Address lookups by outcome (hit or miss)
        self.address_lookups = Counter(
            METRIC_ADDRESS_LOOKUPS,
            "Total number of address registry lookups",
            ["outcome"],
            registry=self._registry,
        )

        self.jobs_processed = Counter(
            METRIC_JOBS_PROCESSED,
            "Total number of jobs processed",
            ["class_name", "status"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job execution duration in seconds",
            ["class_name", "status"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )

        self.messages_dropped = Counter(
            METRIC_MESSAGES_DROPPED,
            "Total number of delivered messages dropped without dispatch",
            registry=self._registry,
        )

        self.job_running = Gauge(
            METRIC_JOB_RUNNING,
            "1 while a job is executing, 0 otherwise",
            registry=self._registry,
        )

    def record_queue_joined(self, queue: str, total: int) -> None:
        """Record a queue subscription."""
        self.queue_joins.labels(queue=queue).inc()
        self.queues_joined.set(total)

    def record_queue_left(self, queue: str, total: int) -> None:
        """Record a cancelled subscription."""
        self.queue_leaves.labels(queue=queue).inc()
        self.queues_joined.set(total)

    def record_address_lookup(self, found: bool) -> None:
        self.address_lookups.labels(outcome="hit" if found else "miss").inc()

    def record_job_completed(
        self,
        class_name: str,
        status: str,
        duration_seconds: float,
    ) -> None:
        """Record a job completion."""
        self.jobs_processed.labels(class_name=class_name, status=status).inc()
        self.job_duration.labels(class_name=class_name, status=status).observe(
            duration_seconds
        )

    def record_message_dropped(self) -> None:
        self.messages_dropped.inc()

    def set_job_running(self, running: bool) -> None:
        self.job_running.set(1 if running else 0)


def setup_metrics(port: int | None = None) -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Args:
        port: If given and non-zero, expose metrics over HTTP on this port.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    if port:
        start_http_server(port, registry=_metrics._registry)
        logger.info(f"Metrics endpoint listening on port {port}")
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics

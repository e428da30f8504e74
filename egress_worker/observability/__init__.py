"""
Observability module.
Contains logging, metrics, tracing, error tracking and process labelling.
"""

from egress_worker.observability.errors import ErrorReporter, setup_error_tracking
from egress_worker.observability.logging import (
    bind_context,
    setup_logging,
    unbind_context,
)
from egress_worker.observability.metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
)
from egress_worker.observability.proctitle import ProcessLabel
from egress_worker.observability.tracing import get_tracer, setup_tracing

__all__ = [
    "setup_logging",
    "bind_context",
    "unbind_context",
    "setup_metrics",
    "get_metrics",
    "MetricsCollector",
    "setup_tracing",
    "get_tracer",
    "setup_error_tracking",
    "ErrorReporter",
    "ProcessLabel",
]

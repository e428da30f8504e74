"""
Worker constants.
Centralized location for all constant values used across the worker.
"""

from enum import StrEnum


class WorkerPhase(StrEnum):
    """
    Shutdown lifecycle states.

    State transitions:
    - RUNNING -> TERMINATED (exit requested while idle)
    - RUNNING -> SHUTDOWN_REQUESTED (exit signal received)
    - SHUTDOWN_REQUESTED -> TERMINATED (no job running on next tick)
    - SHUTDOWN_REQUESTED -> SHUTDOWN_WAITING (job still running)
    - SHUTDOWN_WAITING -> TERMINATED (job acknowledged or wait limit reached)
    """

    RUNNING = "running"
    SHUTDOWN_REQUESTED = "shutdown_requested"
    SHUTDOWN_WAITING = "shutdown_waiting"
    TERMINATED = "terminated"


class ShutdownAction(StrEnum):
    """What the tick loop should do after evaluating shutdown state."""

    CONTINUE = "continue"
    WAIT = "wait"
    EXIT = "exit"


# Queue naming
OUTGOING_QUEUE_PREFIX = "outgoing-"

# Default values
DEFAULT_MESSAGE_TTL_MS = 60000
DEFAULT_PREFETCH_COUNT = 1
DEFAULT_TICK_INTERVAL_SECONDS = 1.0
DEFAULT_SHUTDOWN_WAIT_INTERVAL_SECONDS = 60.0
DEFAULT_SHUTDOWN_MAX_WAIT_CHECKS = 60

# Metrics names
METRIC_QUEUES_JOINED = "worker_queues_joined"
METRIC_QUEUE_JOINS = "worker_queue_joins_total"
METRIC_QUEUE_LEAVES = "worker_queue_leaves_total"
METRIC_ADDRESS_LOOKUPS = "worker_address_lookups_total"
METRIC_JOBS_PROCESSED = "worker_jobs_processed_total"
METRIC_JOB_DURATION = "worker_job_duration_seconds"
METRIC_MESSAGES_DROPPED = "worker_messages_dropped_total"
METRIC_JOB_RUNNING = "worker_job_running"

# Trace span names
SPAN_EXECUTE_JOB = "execute_job"

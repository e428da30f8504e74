"""
Worker state shared between the tick loop and message delivery, and the
state machine that decides when the process exits.
"""

import asyncio
import logging
import threading

from egress_worker.constants import (
    DEFAULT_SHUTDOWN_MAX_WAIT_CHECKS,
    DEFAULT_SHUTDOWN_WAIT_INTERVAL_SECONDS,
    ShutdownAction,
    WorkerPhase,
)

logger = logging.getLogger(__name__)


class WorkerState:
    """
    Flags read by the tick loop and written by delivery and signal handling.

    running_job is a single boolean because the prefetch ceiling allows at
    most one unacknowledged delivery per process.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._running_job = False
        self._exit_requested = False
        self._exit_wait_ticks = 0

    @property
    def running_job(self) -> bool:
        with self._lock:
            return self._running_job

    @property
    def exit_requested(self) -> bool:
        with self._lock:
            return self._exit_requested

    @property
    def exit_wait_ticks(self) -> int:
        with self._lock:
            return self._exit_wait_ticks

    def request_exit(self) -> None:
        # Single store, no lock: must stay safe to call from a signal handler.
        self._exit_requested = True

    def start_job(self) -> None:
        with self._lock:
            self._running_job = True

    def finish_job(self) -> bool:
        """Clear running_job and return whether an exit has been requested."""
        with self._lock:
            self._running_job = False
            return self._exit_requested

    def record_wait(self) -> int:
        with self._lock:
            self._exit_wait_ticks += 1
            return self._exit_wait_ticks


class ShutdownCoordinator:
    """
    Decides, once per tick, whether the worker keeps going, waits for a
    running job, or exits.

    Termination can also be triggered directly with terminate(), which the
    consumer does after acknowledging the last job of a shutting-down worker.
    Any sleep() in progress wakes up immediately when that happens.
    """

    def __init__(
        self,
        state: WorkerState,
        wait_interval: float = DEFAULT_SHUTDOWN_WAIT_INTERVAL_SECONDS,
        max_wait_checks: int = DEFAULT_SHUTDOWN_MAX_WAIT_CHECKS,
    ):
        self.state = state
        self.wait_interval = wait_interval
        self.max_wait_checks = max_wait_checks
        self.phase = WorkerPhase.RUNNING
        self._terminated = asyncio.Event()

    @property
    def terminated(self) -> bool:
        return self._terminated.is_set()

    def request_exit(self) -> None:
        """Signal handler target. Only writes the exit flag."""
        self.state.request_exit()

    def evaluate(self) -> ShutdownAction:
        """
        Advance the state machine for one tick.

        Returns:
            CONTINUE for normal work, WAIT to sleep wait_interval, EXIT to stop.
        """
        if self.terminated:
            return ShutdownAction.EXIT

        if not self.state.exit_requested:
            return ShutdownAction.CONTINUE

        if self.phase == WorkerPhase.RUNNING:
            self.phase = WorkerPhase.SHUTDOWN_REQUESTED

        if not self.state.running_job:
            self.terminate("Exiting immediately because no job running")
            return ShutdownAction.EXIT

        waited = self.state.exit_wait_ticks
        if waited >= self.max_wait_checks:
            self.terminate("Job did not finish in a timely manner. Exiting")
            return ShutdownAction.EXIT

        if waited == 0:
            logger.info("Exit requested but job is running. Waiting for job to finish.")

        self.phase = WorkerPhase.SHUTDOWN_WAITING
        self.state.record_wait()
        return ShutdownAction.WAIT

    def terminate(self, reason: str) -> None:
        if self.terminated:
            return
        self.phase = WorkerPhase.TERMINATED
        logger.info(reason, extra={"exit_wait_ticks": self.state.exit_wait_ticks})
        self._terminated.set()

    async def sleep(self, seconds: float) -> bool:
        """
        Sleep for up to seconds, returning early on termination.

        Returns:
            True if the worker has terminated.
        """
        try:
            await asyncio.wait_for(self._terminated.wait(), timeout=seconds)
        except TimeoutError:
            pass
        return self.terminated

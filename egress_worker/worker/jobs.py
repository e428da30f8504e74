"""
Job registry and built-in jobs.

A job type is a Job subclass registered under the class_name that producers
put in the message envelope. Lookup is an explicit table, populated at import
time, never reflection on the name.
"""

import asyncio
import contextvars
import inspect
import logging
import threading
from collections.abc import Callable
from typing import Any

from egress_worker.types.job import JobContext

logger = logging.getLogger(__name__)


class UnknownJobError(LookupError):
    """Raised when an envelope names a job type that is not registered."""

    def __init__(self, class_name: str):
        super().__init__(f"No job registered for class name: {class_name}")
        self.class_name = class_name


class Job:
    """
    Base class for jobs.

    Subclasses implement perform(), either as a coroutine or as a plain
    method. Plain methods run in a daemon thread so they do not stall the
    event loop that drives queue membership and shutdown.
    """

    def __init__(self, job_id: str | None, params: Any = None):
        self.id = job_id
        self.params = params if params is not None else {}

    def perform(self) -> Any:
        raise NotImplementedError

    async def run(self) -> Any:
        if inspect.iscoroutinefunction(self.perform):
            return await self.perform()
        return await run_in_daemon_thread(self.perform)


async def run_in_daemon_thread(func: Callable[[], Any]) -> Any:
    """
    Run a blocking callable on a daemon thread and await its result.

    Unlike asyncio.to_thread, the thread is not joined at interpreter exit, so
    a job that never returns cannot keep the process alive once the shutdown
    wait limit has been reached. Context variables are copied into the thread
    so the job's log lines keep their job_id.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[Any] = loop.create_future()
    context = contextvars.copy_context()

    def settle(result: Any, error: BaseException | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def target() -> None:
        try:
            outcome = (context.run(func), None)
        except BaseException as e:
            outcome = (None, e)
        try:
            loop.call_soon_threadsafe(settle, *outcome)
        except RuntimeError:
            # Event loop already closed; the worker has exited without this job
            logger.debug("Job thread finished after the event loop closed")

    threading.Thread(target=target, name="job-runner", daemon=True).start()
    return await future


JobFactory = Callable[[str | None, Any], Job]


class JobRegistry:
    """Maps envelope class names to job factories."""

    def __init__(self) -> None:
        self._jobs: dict[str, JobFactory] = {}

    def register(self, class_name: str) -> Callable[[JobFactory], JobFactory]:
        """
        Decorator to register a job type.

        Args:
            class_name: The class_name producers use for this job.

        Example:
            @default_registry.register("SendMessageJob")
            class SendMessageJob(Job):
                async def perform(self):
                    ...
        """
        def decorator(factory: JobFactory) -> JobFactory:
            self._jobs[class_name] = factory
            logger.debug(f"Registered job type: {class_name}")
            return factory
        return decorator

    def get(self, class_name: str) -> JobFactory | None:
        return self._jobs.get(class_name)

    def names(self) -> list[str]:
        """List all registered class names."""
        return list(self._jobs.keys())

    def build(self, context: JobContext) -> Job:
        """
        Construct the job for a context.

        Raises:
            UnknownJobError: If context.class_name is not registered.
        """
        factory = self.get(context.class_name)
        if factory is None:
            raise UnknownJobError(context.class_name)
        return factory(context.job_id, context.params)


default_registry = JobRegistry()


# ============================================================================
# Built-in jobs
# ============================================================================


@default_registry.register("NoopJob")
class NoopJob(Job):
    """Does nothing. Useful for checking that a queue is being consumed."""

    async def perform(self) -> None:
        logger.info("Noop job executing")


@default_registry.register("SleepJob")
class SleepJob(Job):
    """
    Sleeps for params["duration_seconds"] (default 1).

    Handy for exercising graceful shutdown while a job is in flight.
    """

    async def perform(self) -> None:
        duration = float(self.params.get("duration_seconds", 1))
        logger.info("Sleep job starting", extra={"duration": duration})
        await asyncio.sleep(duration)

"""
Worker process.

The worker ticks once per second: it reconciles its queue membership with the
addresses bound to the host and evaluates shutdown state. Jobs arrive on the
broker's delivery tasks, one at a time, and are acknowledged when they finish.
"""

import asyncio
import logging
import signal
from collections.abc import Callable, Iterable

from egress_worker.config import get_settings
from egress_worker.constants import DEFAULT_TICK_INTERVAL_SECONDS, ShutdownAction
from egress_worker.db import close_db, init_db
from egress_worker.observability.errors import ErrorReporter, setup_error_tracking
from egress_worker.observability.logging import setup_logging
from egress_worker.observability.metrics import setup_metrics
from egress_worker.observability.proctitle import ProcessLabel
from egress_worker.observability.tracing import setup_tracing
from egress_worker.worker.broker import Broker
from egress_worker.worker.consumer import JobConsumer
from egress_worker.worker.dispatcher import JobDispatcher
from egress_worker.worker.membership import QueueMembershipManager
from egress_worker.worker.resolver import AddressResolver, local_ip_addresses
from egress_worker.worker.shutdown import ShutdownCoordinator, WorkerState

logger = logging.getLogger(__name__)


class WorkerLoop:
    """
    Top-level driver composing membership, consumption and shutdown.

    Features:
    - Joins configured initial queues at start
    - Reconciles outgoing-<id> queues with local addresses every tick
    - Graceful shutdown on SIGTERM/SIGINT with a bounded wait for a running job
    """

    def __init__(
        self,
        consumer: JobConsumer,
        membership: QueueMembershipManager,
        shutdown: ShutdownCoordinator,
        initial_queues: Iterable[str] = (),
        tick_interval: float = DEFAULT_TICK_INTERVAL_SECONDS,
        address_source: Callable[[], set[str]] = local_ip_addresses,
    ):
        self.consumer = consumer
        self.membership = membership
        self.shutdown = shutdown
        self.initial_queues = list(initial_queues)
        self.tick_interval = tick_interval
        self.address_source = address_source

    async def start(self) -> None:
        """Join the initial queues."""
        for queue_name in self.initial_queues:
            await self.consumer.join(queue_name)

    async def tick(self) -> ShutdownAction:
        """
        Run one iteration of the loop.

        Returns:
            The shutdown action taken this tick.
        """
        action = self.shutdown.evaluate()
        if action == ShutdownAction.CONTINUE:
            try:
                await self.membership.reconcile(self.address_source())
            except Exception as e:
                logger.exception(f"Error reconciling queue membership: {e}")
        return action

    async def run(self) -> None:
        """Run until the shutdown coordinator terminates the worker."""
        await self.start()
        logger.info("Worker started", extra={"initial_queues": self.initial_queues})

        while True:
            action = await self.tick()
            if action == ShutdownAction.EXIT:
                break
            if action == ShutdownAction.WAIT:
                interval = self.shutdown.wait_interval
            else:
                interval = self.tick_interval
            if await self.shutdown.sleep(interval):
                break

        logger.info("Worker stopped", extra={"phase": str(self.shutdown.phase)})


def build_worker(broker: Broker) -> WorkerLoop:
    """Wire a WorkerLoop from settings around a connected broker."""
    settings = get_settings()

    state = WorkerState()
    shutdown = ShutdownCoordinator(
        state,
        wait_interval=settings.worker_shutdown_wait_interval_seconds,
        max_wait_checks=settings.worker_shutdown_max_wait_checks,
    )
    dispatcher = JobDispatcher(
        error_reporter=ErrorReporter(),
        label=ProcessLabel(settings.worker_process_name),
    )
    consumer = JobConsumer(broker, dispatcher, state, on_exit=shutdown.terminate)
    membership = QueueMembershipManager(consumer, AddressResolver())

    return WorkerLoop(
        consumer=consumer,
        membership=membership,
        shutdown=shutdown,
        initial_queues=settings.worker_initial_queues,
        tick_interval=settings.worker_tick_interval_seconds,
    )


async def run_async() -> None:
    """Run the worker asynchronously."""
    settings = get_settings()

    setup_logging()
    setup_tracing()
    setup_error_tracking()
    setup_metrics(settings.prometheus_port)
    await init_db()

    broker = Broker(
        settings.rabbitmq_url,
        prefetch_count=settings.worker_prefetch_count,
        message_ttl_ms=settings.queue_message_ttl_ms,
    )

    try:
        await broker.connect()
        worker = build_worker(broker)

        # Handlers only set the exit flag; the tick loop acts on it
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, worker.shutdown.request_exit)

        await worker.run()
    finally:
        # A job cut off by the wait limit stays unacknowledged and is redelivered
        await broker.close()
        await close_db()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()

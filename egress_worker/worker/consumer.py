"""
Queue subscriptions and message receipt.
"""

import asyncio
import logging
from collections.abc import Callable

from aio_pika.abc import AbstractIncomingMessage

from egress_worker.observability.metrics import get_metrics
from egress_worker.types.job import JobEnvelope
from egress_worker.worker.broker import Broker, Subscription
from egress_worker.worker.dispatcher import JobDispatcher
from egress_worker.worker.shutdown import WorkerState

logger = logging.getLogger(__name__)


class JobConsumer:
    """
    Owns the worker's queue subscriptions and handles each delivery.

    Every delivery is acknowledged exactly once, after dispatch has finished,
    whatever the outcome. If an exit was requested while the job ran, on_exit
    is called straight after the acknowledgement.
    """

    def __init__(
        self,
        broker: Broker,
        dispatcher: JobDispatcher,
        state: WorkerState,
        on_exit: Callable[[str], None],
    ):
        self.broker = broker
        self.dispatcher = dispatcher
        self.state = state
        self.on_exit = on_exit

        self._subscriptions: dict[str, Subscription] = {}
        self._job_lock = asyncio.Lock()
        self._metrics = get_metrics()

    @property
    def active_queues(self) -> list[str]:
        return list(self._subscriptions.keys())

    def is_joined(self, queue_name: str) -> bool:
        return queue_name in self._subscriptions

    async def join(self, queue_name: str) -> None:
        if queue_name in self._subscriptions:
            logger.info(f"Attempted to join queue {queue_name} but already joined.")
            return

        self._subscriptions[queue_name] = await self.broker.subscribe(queue_name, self.receive)
        self._metrics.record_queue_joined(queue_name, len(self._subscriptions))
        logger.info(f"Joined {queue_name} queue", extra={"queue": queue_name})

    async def leave(self, queue_name: str) -> None:
        subscription = self._subscriptions.get(queue_name)
        if subscription is None:
            logger.info(f"Not joined {queue_name} so cannot leave")
            return

        await self.broker.cancel(subscription)
        del self._subscriptions[queue_name]
        self._metrics.record_queue_left(queue_name, len(self._subscriptions))
        logger.info(f"Left {queue_name} queue", extra={"queue": queue_name})

    async def receive(self, message: AbstractIncomingMessage) -> None:
        """
        Handle one delivery: decode, dispatch, acknowledge.

        Bodies that are not a valid envelope are dropped without dispatch or
        error report, but are still acknowledged.
        """
        async with self._job_lock:
            self.state.start_job()
            self._metrics.set_job_running(True)
            try:
                envelope = JobEnvelope.decode(message.body)
                if envelope is None:
                    self._metrics.record_message_dropped()
                    logger.debug(
                        "Dropping message without a job envelope",
                        extra={"delivery_tag": message.delivery_tag},
                    )
                else:
                    await self.dispatcher.dispatch(envelope)
            finally:
                try:
                    await message.ack()
                finally:
                    exit_requested = self.state.finish_job()
                    self._metrics.set_job_running(False)
                    if exit_requested:
                        self.on_exit("Exiting because a job has ended.")

"""
RabbitMQ adapter built on aio-pika.

One robust connection and one channel per worker process. The channel's QoS
is global, so the prefetch ceiling applies across every subscribed queue.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import aio_pika
from aio_pika.abc import (
    AbstractChannel,
    AbstractIncomingMessage,
    AbstractQueue,
    AbstractRobustConnection,
)

from egress_worker.constants import DEFAULT_MESSAGE_TTL_MS, DEFAULT_PREFETCH_COUNT

logger = logging.getLogger(__name__)

MessageCallback = Callable[[AbstractIncomingMessage], Awaitable[None]]


@dataclass
class Subscription:
    """Handle for an active consumer on a queue."""

    queue: AbstractQueue
    consumer_tag: str


class Broker:
    """Connection, channel and queue declarations for the job queues."""

    def __init__(
        self,
        url: str,
        prefetch_count: int = DEFAULT_PREFETCH_COUNT,
        message_ttl_ms: int = DEFAULT_MESSAGE_TTL_MS,
    ):
        self.url = url
        self.prefetch_count = prefetch_count
        self.message_ttl_ms = message_ttl_ms

        self._connection: AbstractRobustConnection | None = None
        self._channel: AbstractChannel | None = None
        self._queues: dict[str, AbstractQueue] = {}

    async def connect(self) -> None:
        """Open the connection and channel and apply the prefetch ceiling."""
        self._connection = await aio_pika.connect_robust(self.url)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=self.prefetch_count, global_=True)
        logger.info(
            "Connected to broker",
            extra={"prefetch_count": self.prefetch_count},
        )

    async def close(self) -> None:
        """Close the connection. Unacknowledged deliveries return to their queues."""
        if self._connection is not None and not self._connection.is_closed:
            await self._connection.close()
            logger.info("Broker connection closed")
        self._connection = None
        self._channel = None
        self._queues.clear()

    @property
    def channel(self) -> AbstractChannel:
        if self._channel is None:
            raise RuntimeError("Broker not connected. Call connect() first.")
        return self._channel

    async def queue(self, name: str) -> AbstractQueue:
        """Declare (once per process) and return a durable job queue."""
        if name not in self._queues:
            self._queues[name] = await self.channel.declare_queue(
                name,
                durable=True,
                arguments={"x-message-ttl": self.message_ttl_ms},
            )
        return self._queues[name]

    async def subscribe(self, name: str, callback: MessageCallback) -> Subscription:
        """Start consuming name with manual acknowledgement."""
        queue = await self.queue(name)
        consumer_tag = await queue.consume(callback, no_ack=False)
        return Subscription(queue=queue, consumer_tag=consumer_tag)

    async def cancel(self, subscription: Subscription) -> None:
        await subscription.queue.cancel(subscription.consumer_tag)

"""
Pytest configuration and shared fixtures.
"""

import json
import os
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from egress_worker.config import Settings
from egress_worker.observability.proctitle import ProcessLabel
from egress_worker.types.address import AddressRecord
from egress_worker.worker.broker import Subscription
from egress_worker.worker.consumer import JobConsumer
from egress_worker.worker.dispatcher import JobDispatcher
from egress_worker.worker.jobs import Job, JobRegistry
from egress_worker.worker.membership import QueueMembershipManager
from egress_worker.worker.shutdown import ShutdownCoordinator, WorkerState

# Database tests only run against a real PostgreSQL
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")


class FakeMessage:
    """Stands in for an aio-pika incoming message."""

    _next_tag = 1

    def __init__(self, body: bytes | str | dict[str, Any]):
        if isinstance(body, dict):
            body = json.dumps(body)
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.body = body
        self.delivery_tag = FakeMessage._next_tag
        FakeMessage._next_tag += 1
        self.ack_count = 0

    async def ack(self) -> None:
        self.ack_count += 1


class FakeQueue:
    def __init__(self, name: str):
        self.name = name


class FakeBroker:
    """Records subscriptions instead of talking to RabbitMQ."""

    def __init__(self) -> None:
        self.subscribed: list[str] = []
        self.cancelled: list[str] = []
        self.callbacks: dict[str, Any] = {}

    async def subscribe(self, name: str, callback: Any) -> Subscription:
        self.subscribed.append(name)
        self.callbacks[name] = callback
        return Subscription(queue=FakeQueue(name), consumer_tag=f"ctag-{name}")

    async def cancel(self, subscription: Subscription) -> None:
        self.cancelled.append(subscription.queue.name)
        self.callbacks.pop(subscription.queue.name, None)


class FakeResolver:
    """In-memory address registry."""

    def __init__(self, records: list[AddressRecord] | None = None):
        self.records: list[AddressRecord] = list(records or [])
        self.lookups: list[str] = []

    async def lookup(self, ip: str) -> AddressRecord | None:
        self.lookups.append(ip)
        for record in self.records:
            if ip in (record.ipv4, record.ipv6):
                return record
        return None


class FakeErrorReporter:
    def __init__(self) -> None:
        self.reports: list[tuple[BaseException, str | None]] = []

    def report(self, error: BaseException, job_id: str | None = None) -> None:
        self.reports.append((error, job_id))


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        log_level="DEBUG",
        log_format="console",
        worker_tick_interval_seconds=0.01,
        worker_shutdown_wait_interval_seconds=0.01,
        worker_shutdown_max_wait_checks=3,
        prometheus_port=0,
    )


@pytest.fixture
def registry() -> JobRegistry:
    """A registry with a handful of test jobs."""
    registry = JobRegistry()

    @registry.register("RecordingJob")
    class RecordingJob(Job):
        performed: list[tuple[str | None, Any]] = []

        async def perform(self) -> None:
            RecordingJob.performed.append((self.id, self.params))

    @registry.register("ExplodingJob")
    class ExplodingJob(Job):
        async def perform(self) -> None:
            raise RuntimeError("boom")

    @registry.register("BlockingJob")
    class BlockingJob(Job):
        def perform(self) -> str:
            return "done"

    RecordingJob.performed = []
    return registry


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def error_reporter() -> FakeErrorReporter:
    return FakeErrorReporter()


@pytest.fixture
def state() -> WorkerState:
    return WorkerState()


@pytest.fixture
def shutdown(state: WorkerState) -> ShutdownCoordinator:
    return ShutdownCoordinator(state, wait_interval=0.01, max_wait_checks=3)


@pytest.fixture
def dispatcher(registry: JobRegistry, error_reporter: FakeErrorReporter) -> JobDispatcher:
    return JobDispatcher(
        registry=registry,
        error_reporter=error_reporter,
        label=ProcessLabel("egress-worker-test"),
    )


@pytest.fixture
def consumer(
    broker: FakeBroker,
    dispatcher: JobDispatcher,
    state: WorkerState,
    shutdown: ShutdownCoordinator,
) -> JobConsumer:
    return JobConsumer(broker, dispatcher, state, on_exit=shutdown.terminate)


@pytest.fixture
def membership(consumer: JobConsumer, resolver: FakeResolver) -> QueueMembershipManager:
    return QueueMembershipManager(consumer, resolver)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession]:
    """Create a database session against TEST_DATABASE_URL with a fresh schema."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
    from sqlalchemy.pool import NullPool

    from egress_worker.db.models import Base

    engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest.fixture
def make_message() -> type[FakeMessage]:
    """Factory for fake deliveries: make_message(body)."""
    return FakeMessage


@pytest.fixture
def make_record() -> type[AddressRecord]:
    return AddressRecord

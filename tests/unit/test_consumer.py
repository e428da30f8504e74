"""
Unit tests for queue subscriptions and message receipt.
"""

import asyncio
import logging

import pytest

from egress_worker.constants import WorkerPhase
from egress_worker.types.job import JobEnvelope
from egress_worker.worker.consumer import JobConsumer
from egress_worker.worker.dispatcher import JobDispatcher
from egress_worker.worker.jobs import Job


class TestJoinLeave:
    """Tests for join and leave."""

    async def test_join_subscribes(self, consumer: JobConsumer, broker):
        await consumer.join("outgoing-1")

        assert broker.subscribed == ["outgoing-1"]
        assert consumer.is_joined("outgoing-1")
        assert consumer.active_queues == ["outgoing-1"]

    async def test_join_twice_is_noop(self, consumer: JobConsumer, broker, caplog):
        """Test joining an already-joined queue logs and does not resubscribe."""
        await consumer.join("outgoing-1")

        with caplog.at_level(logging.INFO, logger="egress_worker.worker.consumer"):
            await consumer.join("outgoing-1")

        assert broker.subscribed == ["outgoing-1"]
        assert "already joined" in caplog.text

    async def test_leave_cancels(self, consumer: JobConsumer, broker):
        await consumer.join("outgoing-1")
        await consumer.leave("outgoing-1")

        assert broker.cancelled == ["outgoing-1"]
        assert not consumer.is_joined("outgoing-1")

    async def test_leave_not_joined_is_noop(self, consumer: JobConsumer, broker, caplog):
        """Test leaving a never-joined queue logs and cancels nothing."""
        with caplog.at_level(logging.INFO, logger="egress_worker.worker.consumer"):
            await consumer.leave("outgoing-9")

        assert broker.cancelled == []
        assert "Not joined outgoing-9 so cannot leave" in caplog.text

    async def test_rejoin_after_leave(self, consumer: JobConsumer, broker):
        await consumer.join("outgoing-1")
        await consumer.leave("outgoing-1")
        await consumer.join("outgoing-1")

        assert broker.subscribed == ["outgoing-1", "outgoing-1"]
        assert consumer.is_joined("outgoing-1")

    async def test_join_registers_receive_callback(self, consumer: JobConsumer, broker):
        await consumer.join("outgoing-1")

        assert broker.callbacks["outgoing-1"] == consumer.receive


class TestReceive:
    """Tests for message receipt."""

    async def test_valid_message_dispatched_and_acked(
        self,
        consumer: JobConsumer,
        registry,
        make_message,
        state,
    ):
        message = make_message({"id": "j-1", "class_name": "RecordingJob", "params": {"x": 1}})

        await consumer.receive(message)

        assert registry.get("RecordingJob").performed == [("j-1", {"x": 1})]
        assert message.ack_count == 1
        assert state.running_job is False

    async def test_undecodable_message_acked_not_dispatched(
        self,
        consumer: JobConsumer,
        registry,
        error_reporter,
        make_message,
    ):
        """Test a body that is not JSON is dropped but acknowledged once."""
        message = make_message(b"\x00garbage")

        await consumer.receive(message)

        assert message.ack_count == 1
        assert registry.get("RecordingJob").performed == []
        assert error_reporter.reports == []

    async def test_non_string_id_still_dispatched(
        self,
        consumer: JobConsumer,
        registry,
        make_message,
    ):
        """Test an unusual id does not cause an otherwise valid job to be dropped."""
        message = make_message(b'{"id": 12.0, "class_name": "RecordingJob", "params": {"x": 2}}')

        await consumer.receive(message)

        assert registry.get("RecordingJob").performed == [("12.0", {"x": 2})]
        assert message.ack_count == 1

    async def test_missing_class_name_acked_not_dispatched(
        self,
        consumer: JobConsumer,
        error_reporter,
        make_message,
    ):
        message = make_message({"id": "j-2", "params": {}})

        await consumer.receive(message)

        assert message.ack_count == 1
        assert error_reporter.reports == []

    async def test_failing_job_acked_once_and_reported_once(
        self,
        consumer: JobConsumer,
        error_reporter,
        make_message,
        state,
    ):
        message = make_message({"id": "j-3", "class_name": "ExplodingJob"})

        await consumer.receive(message)

        assert message.ack_count == 1
        assert len(error_reporter.reports) == 1
        assert error_reporter.reports[0][1] == "j-3"
        assert state.running_job is False

    async def test_running_job_set_during_dispatch(
        self,
        consumer: JobConsumer,
        registry,
        make_message,
        state,
    ):
        observed: list[bool] = []

        @registry.register("ObserveJob")
        class ObserveJob(Job):
            async def perform(self) -> None:
                observed.append(state.running_job)

        await consumer.receive(make_message({"id": "j-4", "class_name": "ObserveJob"}))

        assert observed == [True]
        assert state.running_job is False

    async def test_ack_follows_dispatch(self, broker, state, shutdown, make_message):
        """Test the message is not acknowledged until dispatch has completed."""
        events: list[str] = []

        class OrderedDispatcher(JobDispatcher):
            async def dispatch(self, envelope: JobEnvelope) -> None:
                events.append("dispatch")

        class OrderedMessage(make_message):
            async def ack(self) -> None:
                events.append("ack")
                await super().ack()

        consumer = JobConsumer(broker, OrderedDispatcher(), state, on_exit=shutdown.terminate)
        await consumer.receive(OrderedMessage({"id": "j-5", "class_name": "Anything"}))

        assert events == ["dispatch", "ack"]

    async def test_exit_after_ack_when_requested(
        self,
        consumer: JobConsumer,
        shutdown,
        state,
        make_message,
    ):
        """Test the worker terminates straight after acking if exit was requested."""
        state.request_exit()
        message = make_message({"id": "j-6", "class_name": "RecordingJob"})

        await consumer.receive(message)

        assert message.ack_count == 1
        assert shutdown.terminated
        assert shutdown.phase == WorkerPhase.TERMINATED

    async def test_no_exit_when_not_requested(self, consumer: JobConsumer, shutdown, make_message):
        await consumer.receive(make_message({"id": "j-7", "class_name": "RecordingJob"}))

        assert not shutdown.terminated

    async def test_one_job_at_a_time(self, consumer: JobConsumer, registry, make_message):
        """Test overlapping deliveries never run two jobs concurrently."""
        running = 0
        peak = 0

        @registry.register("SlowJob")
        class SlowJob(Job):
            async def perform(self) -> None:
                nonlocal running, peak
                running += 1
                peak = max(peak, running)
                await asyncio.sleep(0.01)
                running -= 1

        messages = [make_message({"id": f"s-{i}", "class_name": "SlowJob"}) for i in range(3)]
        await asyncio.gather(*(consumer.receive(m) for m in messages))

        assert peak == 1
        assert [m.ack_count for m in messages] == [1, 1, 1]

    async def test_ack_failure_still_clears_running_job(
        self,
        consumer: JobConsumer,
        make_message,
        state,
    ):
        class BrokenMessage(make_message):
            async def ack(self) -> None:
                raise ConnectionError("channel closed")

        message = BrokenMessage({"id": "j-8", "class_name": "RecordingJob"})

        with pytest.raises(ConnectionError):
            await consumer.receive(message)

        assert state.running_job is False

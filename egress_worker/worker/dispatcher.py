"""
Job dispatch.

Runs a single decoded envelope to completion. Failures are reported and
logged, never raised: the message is acknowledged either way, so a failing
job is never redelivered by the broker.
"""

import logging

from opentelemetry.trace import Tracer

from egress_worker.constants import SPAN_EXECUTE_JOB
from egress_worker.observability.errors import ErrorReporter
from egress_worker.observability.logging import bind_context, unbind_context
from egress_worker.observability.metrics import get_metrics
from egress_worker.observability.proctitle import ProcessLabel
from egress_worker.observability.tracing import get_tracer
from egress_worker.types.job import JobContext, JobEnvelope
from egress_worker.worker.jobs import JobRegistry, default_registry

logger = logging.getLogger(__name__)


class JobDispatcher:
    """Resolves an envelope's class_name and executes the job."""

    def __init__(
        self,
        registry: JobRegistry | None = None,
        error_reporter: ErrorReporter | None = None,
        label: ProcessLabel | None = None,
        tracer: Tracer | None = None,
    ):
        self.registry = registry or default_registry
        self.error_reporter = error_reporter or ErrorReporter()
        self.label = label or ProcessLabel()
        self._tracer = tracer or get_tracer(__name__)
        self._metrics = get_metrics()

    async def dispatch(self, envelope: JobEnvelope) -> None:
        """
        Execute the job described by envelope.

        Never raises: resolution and execution errors are reported to the
        error tracker with the job id and logged with their traceback.
        """
        context = JobContext.from_envelope(envelope)
        status = "succeeded"

        bind_context(job_id=context.job_id)
        try:
            with self.label.running(context.class_name):
                logger.info(
                    f"Started processing {context.class_name} job",
                    extra={"class_name": context.class_name},
                )
                try:
                    with self._tracer.start_as_current_span(SPAN_EXECUTE_JOB) as span:
                        span.set_attribute("job_id", str(context.job_id))
                        span.set_attribute("class_name", context.class_name)

                        job = self.registry.build(context)
                        await job.run()
                except Exception as e:
                    status = "failed"
                    self.error_reporter.report(e, job_id=context.job_id)
                    logger.warning(
                        f"{type(e).__name__}: {e}",
                        exc_info=e,
                        extra={"class_name": context.class_name},
                    )
                finally:
                    duration = context.elapsed_seconds
                    logger.info(
                        f"Finished processing {context.class_name} job in {duration:.3f}s",
                        extra={"class_name": context.class_name, "status": status},
                    )
                    self._metrics.record_job_completed(
                        class_name=context.class_name,
                        status=status,
                        duration_seconds=duration,
                    )
        finally:
            unbind_context("job_id")

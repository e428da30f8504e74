"""
Error tracking via Sentry.
"""

import logging

import sentry_sdk

from egress_worker import __version__
from egress_worker.config import get_settings

logger = logging.getLogger(__name__)


def setup_error_tracking() -> bool:
    """
    Initialise the Sentry SDK if a DSN is configured.

    Returns:
        True if Sentry was initialised.
    """
    settings = get_settings()
    if not settings.sentry_dsn:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
        release=f"egress-worker@{__version__}",
    )
    logger.info("Sentry initialized")
    return True


class ErrorReporter:
    """Reports job failures to Sentry with the job id attached."""

    def report(self, error: BaseException, job_id: str | None = None) -> None:
        with sentry_sdk.new_scope() as scope:
            scope.set_extra("job_id", job_id)
            if job_id is not None:
                scope.set_tag("job_id", job_id)
            sentry_sdk.capture_exception(error)

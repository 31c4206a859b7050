"""
Handler for JobFailedPermanently events.

A permanently failed job is never retried again, so this is where it gets
logged with everything an operator needs to reconcile it by hand.
"""

import logging
from typing import Callable

from core.events import JobFailedPermanently

logger = logging.getLogger(__name__)


def handle_job_failed() -> Callable:
    """
    Factory that returns a JobFailedPermanently handler.

    Returns:
        Handler callable that logs the failed job at error level
    """

    def handler(event: JobFailedPermanently):
        job = event.job
        logger.error(
            f"Job {job.id} ({job.job_type.value}) failed permanently after "
            f"{job.attempts} attempt(s): {event.error_type}: {event.error_message} "
            f"params={job.params} backoff={job.backoff_history}"
        )

    return handler

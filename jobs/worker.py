"""
Worker loop that drains due jobs onto a thread pool.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait

from jobs.models import JobRecord
from jobs.runner import JobRunner

logger = logging.getLogger(__name__)


class JobWorker:
    """
    Polls the schedule and executes due jobs concurrently.

    Usage:
        worker = JobWorker(runner, max_workers=4)
        stop = threading.Event()
        worker.run_forever(stop)  # in a dedicated thread
    """

    def __init__(self, runner: JobRunner, max_workers: int = 4, poll_interval: float = 1.0):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.runner = runner
        self.max_workers = max_workers
        self.poll_interval = poll_interval

    def run_once(self, executor: ThreadPoolExecutor | None = None) -> list[JobRecord]:
        """
        Claim every due job, execute them in parallel, wait for all of them.

        Returns:
            Updated job records, in claim order
        """
        jobs = self.runner.claim_due()
        if not jobs:
            return []

        if executor is None:
            with ThreadPoolExecutor(max_workers=self.max_workers) as own:
                return self._execute_all(own, jobs)
        return self._execute_all(executor, jobs)

    def _execute_all(self, executor: ThreadPoolExecutor, jobs: list[JobRecord]) -> list[JobRecord]:
        futures = [executor.submit(self.runner.execute, job) for job in jobs]
        wait(futures)
        results = []
        for job, future in zip(jobs, futures):
            error = future.exception()
            if error is not None:
                # execute() settles attempt outcomes itself; this is a fault before the attempt
                logger.error(f"Job {job.id} crashed the runner: {error}")
                continue
            results.append(future.result())
        return results

    def run_forever(self, stop_event: threading.Event) -> None:
        """Poll until stop_event is set. Finishes in-flight jobs before returning."""
        logger.info(f"Job worker started ({self.max_workers} threads)")
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            while not stop_event.is_set():
                try:
                    self.run_once(executor)
                except Exception as e:
                    logger.error(f"Job worker poll failed: {e}")
                stop_event.wait(self.poll_interval)
        logger.info("Job worker stopped")

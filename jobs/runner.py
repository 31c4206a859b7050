"""
Retrying job runner.

Executes one attempt of a job at a time and applies the retry decision:
success, reschedule after the policy's backoff, or permanent failure. Callers
that submit jobs never wait for them; a permanent failure surfaces only as a
JobFailedPermanently event on the bus.

Transient ERP errors (AdapterError) are absorbed here and retried. Anything
else stops the job on the first attempt.
"""

import logging
import threading
from typing import Any, Callable
from uuid import uuid4

from core.event_bus import EventBus
from core.events import JobFailedPermanently, JobSucceeded
from erp.exceptions import AttemptsExhausted
from jobs.models import JobRecord, JobState, JobType, WAITING_STATES
from jobs.policy import DEFAULT_POLICIES, Decision, Done, GiveUp, Retry, RetryPolicy, decide
from jobs.queue import JobQueue
from utils.timezone import now_utc, seconds_from

logger = logging.getLogger(__name__)

JobHandler = Callable[[JobRecord], None]


class JobRunner:
    """
    Drives jobs through pending -> running -> {succeeded | retrying | failed_permanently}.

    Usage:
        runner = JobRunner(queue, build_job_handlers(...), event_bus)
        job = runner.submit(JobType.SYNC_CUSTOMER, {"customer_id": "CUST-1"})
        runner.run_due()
    """

    def __init__(
        self,
        queue: JobQueue,
        handlers: dict[JobType, JobHandler],
        event_bus: EventBus,
        policies: dict[JobType, RetryPolicy] | None = None,
        clock: Callable[[], Any] = now_utc,
    ):
        self._queue = queue
        self._handlers = dict(handlers)
        self._event_bus = event_bus
        self._policies = dict(DEFAULT_POLICIES)
        if policies:
            self._policies.update(policies)
        self._clock = clock
        # Serializes state transitions; never held while a unit of work runs
        self._lock = threading.Lock()

    def policy_for(self, job_type: JobType) -> RetryPolicy:
        return self._policies[job_type]

    def submit(self, job_type: JobType, params: dict[str, Any]) -> JobRecord:
        """
        Create a pending job, due immediately.

        Raises:
            ValueError: If no handler is registered for job_type
        """
        if job_type not in self._handlers:
            raise ValueError(f"No handler registered for job type '{job_type.value}'")

        now = self._clock()
        job = JobRecord(
            id=str(uuid4()),
            job_type=job_type,
            params=params,
            state=JobState.PENDING,
            run_at=now,
            created_at=now,
            updated_at=now,
        )
        self._queue.put(job)
        logger.info(f"Job {job.id} ({job_type.value}) queued")
        return job

    def get(self, job_id: str) -> JobRecord | None:
        return self._queue.get(job_id)

    def cancel(self, job_id: str) -> bool:
        """
        Cancel a job between attempts.

        A waiting job is cancelled at once. A running job finishes its current
        attempt and is not retried afterwards. Finished jobs cannot be cancelled.

        Returns:
            True if the cancellation was accepted
        """
        with self._lock:
            job = self._queue.get(job_id)
            if job is None or job.is_terminal:
                return False

            if job.state in WAITING_STATES:
                self._queue.remove(job_id)
                self._queue.save(self._transition(job, JobState.CANCELLED, cancel_requested=True))
                logger.info(f"Job {job_id} cancelled before attempt {job.attempts + 1}")
                return True

            self._queue.save(job.model_copy(update={"cancel_requested": True}))
            logger.info(f"Job {job_id} will stop after its running attempt")
            return True

    def claim_due(self, limit: int | None = None) -> list[JobRecord]:
        """Take due jobs off the schedule for execution."""
        return self._queue.pop_due(self._clock(), limit)

    def run_due(self, limit: int | None = None) -> list[JobRecord]:
        """Execute every job whose deadline has passed. Returns the updated records."""
        return [self.execute(job) for job in self.claim_due(limit)]

    def execute(self, job: JobRecord) -> JobRecord:
        """
        Run one attempt of `job` and apply the retry decision.

        Jobs no longer waiting (cancelled meanwhile, or already finished) are
        returned unchanged.
        """
        with self._lock:
            current = self._queue.get(job.id) or job
            if current.state not in WAITING_STATES:
                logger.info(f"Skipping job {job.id} in state {current.state.value}")
                return current
            running = self._transition(current, JobState.RUNNING, attempts=current.attempts + 1)
            self._queue.save(running)

        error = self._attempt(running)
        decision = decide(self.policy_for(running.job_type), running.attempts, error)

        with self._lock:
            latest = self._queue.get(job.id)
            cancel_requested = latest.cancel_requested if latest else running.cancel_requested
            finished = running.model_copy(update={"cancel_requested": cancel_requested})
            try:
                return self._apply(finished, decision, error)
            except Exception as e:
                return self._recover(finished, decision, e)

    def _attempt(self, job: JobRecord) -> BaseException | None:
        handler = self._handlers.get(job.job_type)
        if handler is None:
            return LookupError(f"No handler registered for job type '{job.job_type.value}'")
        try:
            handler(job)
        except Exception as e:
            return e
        return None

    def _apply(self, job: JobRecord, decision: Decision, error: BaseException | None) -> JobRecord:
        policy = self.policy_for(job.job_type)

        if isinstance(decision, Done):
            done = self._transition(job, JobState.SUCCEEDED, last_error=None, last_error_type=None)
            self._queue.save(done)
            logger.info(f"Job {job.id} ({job.job_type.value}) succeeded on attempt {job.attempts}")
            self._event_bus.publish(JobSucceeded.create(done))
            return done

        error_fields = {"last_error": str(error), "last_error_type": type(error).__name__}

        if isinstance(decision, Retry):
            history = job.backoff_history + [decision.delay_seconds]
            if job.cancel_requested:
                cancelled = self._transition(
                    job, JobState.CANCELLED, backoff_history=history, **error_fields
                )
                self._queue.save(cancelled)
                logger.info(f"Job {job.id} cancelled instead of retrying: {error}")
                return cancelled

            retrying = self._transition(
                job,
                JobState.RETRYING,
                backoff_history=history,
                run_at=seconds_from(self._clock(), decision.delay_seconds),
                **error_fields,
            )
            self._queue.put(retrying)
            logger.warning(
                f"Job {job.id} ({job.job_type.value}) attempt {job.attempts}/{policy.max_attempts} "
                f"failed: {error}. Retrying in {decision.delay_seconds:g}s"
            )
            return retrying

        # GiveUp. The schedule entry of an exhausted last attempt is still recorded.
        history = job.backoff_history
        if isinstance(decision.error, AttemptsExhausted):
            history = history + [policy.delay_for(job.attempts)]
        failed = self._transition(
            job, JobState.FAILED_PERMANENTLY, backoff_history=history, **error_fields
        )
        self._queue.save(failed)
        logger.error(
            f"Job {job.id} ({job.job_type.value}) failed permanently after "
            f"{job.attempts} attempt(s): {decision.reason}"
        )
        self._event_bus.publish(JobFailedPermanently.create(failed, decision.error))
        return failed

    def _recover(self, job: JobRecord, decision: Decision, fault: Exception) -> JobRecord:
        """
        Settle a job whose outcome could not be recorded (queue outage).

        A completed attempt still counts as a success. Otherwise the job is
        failed permanently, so it is reported instead of being left running
        with no schedule entry.
        """
        if isinstance(decision, Done):
            done = self._transition(job, JobState.SUCCEEDED, last_error=None, last_error_type=None)
            logger.error(f"Job {job.id} succeeded but its record could not be saved: {fault}")
            self._save_quietly(done)
            self._event_bus.publish(JobSucceeded.create(done))
            return done

        failed = self._transition(
            job,
            JobState.FAILED_PERMANENTLY,
            last_error=str(fault),
            last_error_type=type(fault).__name__,
        )
        logger.error(
            f"Job {job.id} ({job.job_type.value}) could not be rescheduled after "
            f"attempt {job.attempts}: {fault}"
        )
        self._save_quietly(failed)
        self._event_bus.publish(JobFailedPermanently.create(failed, fault))
        return failed

    def _save_quietly(self, job: JobRecord) -> None:
        try:
            self._queue.save(job)
        except Exception as e:
            logger.error(f"Job {job.id} left unsaved in state {job.state.value}: {e}")

    def _transition(self, job: JobRecord, state: JobState, **changes: Any) -> JobRecord:
        return job.model_copy(update={"state": state, "updated_at": self._clock(), **changes})

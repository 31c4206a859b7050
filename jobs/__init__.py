"""Background jobs: retry policy, delayed queues, runner, dispatcher and worker."""

from jobs.models import JobRecord, JobState, JobType
from jobs.policy import (
    DEFAULT_POLICIES,
    PAYMENT_POLICY,
    SYNC_POLICY,
    Done,
    GiveUp,
    Retry,
    RetryPolicy,
    decide,
)
from jobs.queue import InMemoryJobQueue, JobQueue, ValkeyJobQueue
from jobs.runner import JobRunner

"""
Retry policy and the retry decision.

Each job type has an attempt ceiling and an explicit backoff schedule, one
wait per retry. decide() turns the outcome of one attempt into a tagged
result so the runner never needs exceptions for control flow:

    Done                  the unit of work succeeded
    Retry(delay_seconds)  transient failure, attempts remain
    GiveUp(error)         non-retryable failure, or attempts exhausted
"""

from dataclasses import dataclass
from typing import Sequence

from erp.exceptions import AdapterError, AttemptsExhausted
from jobs.models import JobType


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt ceiling plus backoff schedule.

    The Nth retry waits backoff[N-1]; past the end of the schedule the last
    entry is reused.
    """

    max_attempts: int
    backoff: tuple[float, ...]

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not self.backoff:
            raise ValueError("backoff schedule must not be empty")
        if any(delay < 0 for delay in self.backoff):
            raise ValueError("backoff delays must be non-negative")

    @classmethod
    def of(cls, max_attempts: int, backoff: Sequence[float]) -> "RetryPolicy":
        return cls(max_attempts=max_attempts, backoff=tuple(backoff))

    def delay_for(self, attempt: int) -> float:
        """Wait after failed attempt number `attempt` (1-based)."""
        if attempt < 1:
            raise ValueError("attempt numbers start at 1")
        index = min(attempt, len(self.backoff)) - 1
        return self.backoff[index]


PAYMENT_POLICY = RetryPolicy.of(5, (60, 300, 900, 1800, 3600))
SYNC_POLICY = RetryPolicy.of(3, (60, 300, 900))

DEFAULT_POLICIES: dict[JobType, RetryPolicy] = {
    JobType.PROCESS_PAYMENT: PAYMENT_POLICY,
    JobType.SYNC_CUSTOMER: SYNC_POLICY,
    JobType.SYNC_INVOICES: SYNC_POLICY,
}


@dataclass(frozen=True)
class Done:
    pass


@dataclass(frozen=True)
class Retry:
    delay_seconds: float


@dataclass(frozen=True)
class GiveUp:
    error: BaseException

    @property
    def reason(self) -> str:
        return str(self.error)


Decision = Done | Retry | GiveUp


def is_retryable(error: BaseException) -> bool:
    """Only transient ERP failures are worth another attempt."""
    return isinstance(error, AdapterError)


def decide(policy: RetryPolicy, attempt: int, error: BaseException | None) -> Decision:
    """
    Decide what happens after attempt number `attempt` (1-based).

    Args:
        policy: Policy of the job's type
        attempt: Number of the attempt that just finished
        error: What the attempt raised, None on success
    """
    if error is None:
        return Done()
    if not is_retryable(error):
        return GiveUp(error)
    if attempt >= policy.max_attempts:
        return GiveUp(AttemptsExhausted(attempt, error))
    return Retry(policy.delay_for(attempt))

"""Background job records.

State machine per job:
    pending -> running -> succeeded
                       -> retrying -> running ...
                       -> failed_permanently
    pending/retrying -> cancelled
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class JobType(str, Enum):
    """Units of work the runner knows how to execute."""

    PROCESS_PAYMENT = "process_payment"
    SYNC_CUSTOMER = "sync_customer"
    SYNC_INVOICES = "sync_invoices"


class JobState(str, Enum):
    """Lifecycle state of one job instance."""

    PENDING = "pending"
    RUNNING = "running"
    RETRYING = "retrying"  # Waiting for its next scheduled attempt
    SUCCEEDED = "succeeded"
    FAILED_PERMANENTLY = "failed_permanently"
    CANCELLED = "cancelled"


# States in which a job sits in the schedule and may still be cancelled
WAITING_STATES = frozenset({JobState.PENDING, JobState.RETRYING})
TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED_PERMANENTLY, JobState.CANCELLED})


class JobRecord(BaseModel):
    """
    Persisted state of one job instance.

    `params` must be JSON-compatible; it is stored as-is by the queue and
    handed to the unit of work on every attempt.
    """

    id: str
    job_type: JobType
    params: dict[str, Any] = Field(default_factory=dict)
    state: JobState = JobState.PENDING
    attempts: int = Field(0, ge=0)
    backoff_history: list[float] = Field(default_factory=list)
    last_error: str | None = None
    last_error_type: str | None = None
    cancel_requested: bool = False
    run_at: datetime
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_waiting(self) -> bool:
        return self.state in WAITING_STATES

"""
Domain events for the ERP integration layer.

Immutable event objects describing what happened to background jobs and
payments. The job runner publishes; handlers (observability, reconciliation)
react without the runner knowing who's listening.

Event Categories:
- JobEvent: Job outcomes (succeeded, failed permanently)
- PaymentEvent: Payment lifecycle (submitted to the ERP)

JobFailedPermanently is the only place a permanently failed job surfaces.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class PortalEvent:
    """Base class for all integration events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# JOB EVENTS
# =============================================================================


@dataclass(frozen=True)
class JobEvent(PortalEvent):
    """Events related to background job outcomes."""
    pass


@dataclass(frozen=True)
class JobSucceeded(JobEvent):
    """A job's unit of work completed."""
    job: Any = None  # JobRecord; Any avoids a circular import

    @classmethod
    def create(cls, job: Any) -> "JobSucceeded":
        return cls(job=job)


@dataclass(frozen=True)
class JobFailedPermanently(JobEvent):
    """
    A job stopped for good and needs manual reconciliation.

    error_type is the class name of the terminal error: AttemptsExhausted
    after repeated transient failures, or the non-retryable error itself.
    """
    job: Any = None
    error_type: str = ""
    error_message: str = ""

    @classmethod
    def create(cls, job: Any, error: BaseException) -> "JobFailedPermanently":
        return cls(job=job, error_type=type(error).__name__, error_message=str(error))


# =============================================================================
# PAYMENT EVENTS
# =============================================================================


@dataclass(frozen=True)
class PaymentEvent(PortalEvent):
    """Events related to payment lifecycle."""
    pass


@dataclass(frozen=True)
class PaymentSubmitted(PaymentEvent):
    """The ERP acknowledged a payment."""
    payment: Any = None  # Payment
    job_id: str | None = None

    @classmethod
    def create(cls, payment: Any, job_id: str | None = None) -> "PaymentSubmitted":
        return cls(payment=payment, job_id=job_id)

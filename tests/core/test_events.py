"""Tests for integration event models."""

from dataclasses import FrozenInstanceError
from datetime import date, timezone

import pytest

from core.events import (
    JobEvent,
    JobFailedPermanently,
    JobSucceeded,
    PaymentEvent,
    PaymentSubmitted,
    PortalEvent,
)
from erp.exceptions import AdapterError, AttemptsExhausted
from erp.models import Payment
from jobs.models import JobRecord, JobType
from utils.timezone import now_utc


@pytest.fixture
def _job():
    now = now_utc()
    return JobRecord(
        id="job-1", job_type=JobType.SYNC_CUSTOMER, params={"customer_id": "C1"},
        attempts=3, run_at=now, created_at=now, updated_at=now,
    )


class TestPortalEvent:

    def test_event_ids_are_unique(self, _job):
        assert JobSucceeded.create(_job).event_id != JobSucceeded.create(_job).event_id

    def test_occurred_at_is_utc(self, _job):
        assert JobSucceeded.create(_job).occurred_at.tzinfo == timezone.utc

    def test_frozen(self, _job):
        event = JobSucceeded.create(_job)
        with pytest.raises(FrozenInstanceError):
            event.job = None

    def test_hierarchy(self, _job):
        assert isinstance(JobSucceeded.create(_job), JobEvent)
        assert isinstance(JobSucceeded.create(_job), PortalEvent)
        payment = Payment(customer_id="C1", invoice_id="INV-1", payment_date=date(2025, 1, 5))
        assert isinstance(PaymentSubmitted.create(payment), PaymentEvent)


class TestJobFailedPermanently:

    def test_carries_error_type_and_message(self, _job):
        error = AttemptsExhausted(3, AdapterError("ERP down"))

        event = JobFailedPermanently.create(_job, error)

        assert event.job is _job
        assert event.error_type == "AttemptsExhausted"
        assert event.error_message == "Gave up after 3 attempts: ERP down"


class TestPaymentSubmitted:

    def test_job_id_optional(self):
        payment = Payment(customer_id="C1", invoice_id="INV-1", payment_date=date(2025, 1, 5))
        assert PaymentSubmitted.create(payment).job_id is None
        assert PaymentSubmitted.create(payment, job_id="job-1").job_id == "job-1"

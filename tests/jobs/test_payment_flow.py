"""End-to-end: portal payment through the job runner against the mock ERP."""

import logging
from decimal import Decimal

import pytest

from core.container import build_services
from erp.cache import invoices_key
from erp.exceptions import AdapterError
from jobs.models import JobState


@pytest.fixture
def services(erp_config, registry, cache, job_queue, event_bus):
    return build_services(
        config=erp_config, cache=cache, queue=job_queue, event_bus=event_bus, registry=registry
    )


class TestPaymentFlow:

    def test_payment_succeeds_and_invalidates_invoice_cache(self, services, mock_erp, cache):
        invoices = services["invoice"]

        # Warm the listing cache, then prove it is served without the ERP
        invoices.get_customer_invoices("CUST-1", {})
        invoices.get_customer_invoices("CUST-1", {})
        assert mock_erp.call_count("get_customer_invoices") == 1

        job_id = services["dispatcher"].enqueue_payment_creation(
            "user-1", "CUST-1", "INV-9", Decimal("45.00"), "Card", "PAY-REF-1"
        )
        services["runner"].run_due()

        job = services["runner"].get(job_id)
        assert job.state == JobState.SUCCEEDED
        assert job.attempts == 1
        assert cache.get(invoices_key("CUST-1", {})) is None

        invoices.get_customer_invoices("CUST-1", {})
        assert mock_erp.call_count("get_customer_invoices") == 2

        [payment] = mock_erp.payments
        assert payment.customer_id == "CUST-1"
        assert payment.invoice_id == "INV-9"
        assert payment.amount == Decimal("45.00")
        assert payment.reference == "PAY-REF-1"

    def test_permanent_failure_is_logged_by_handler(self, services, mock_erp, caplog, clock):
        mock_erp.fail_with("create_payment", AdapterError("ERP unreachable"))
        job_id = services["dispatcher"].enqueue_payment_creation(
            "user-1", "CUST-1", "INV-9", "45.00", "Card", "PAY-REF-1"
        )

        runner = services["runner"]
        with caplog.at_level(logging.ERROR, logger="core.handlers.job_failure_handler"):
            for _ in range(5):
                job = runner.get(job_id)
                clock.now = max(clock.now, job.run_at)
                runner.run_due()

        assert runner.get(job_id).state == JobState.FAILED_PERMANENTLY
        assert any(
            job_id in record.getMessage() and "AttemptsExhausted" in record.getMessage()
            for record in caplog.records
            if record.name == "core.handlers.job_failure_handler"
        )

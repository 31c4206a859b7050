"""
Fire-and-forget job submission for the portal.

Each enqueue returns the job id at once; the caller never learns the outcome
directly. Permanent failures surface as JobFailedPermanently events.
"""

import logging
from decimal import Decimal
from typing import Any

from jobs.models import JobType
from jobs.runner import JobRunner

logger = logging.getLogger(__name__)


class JobDispatcher:
    """Translates portal requests into queued jobs."""

    def __init__(self, runner: JobRunner):
        self.runner = runner

    def enqueue_payment_creation(
        self,
        user_id: str | None,
        customer_id: str,
        invoice_id: str,
        amount: Decimal | str | float,
        method: str,
        reference: str,
    ) -> str:
        """
        Queue a payment submission.

        Args:
            user_id: Portal user who initiated the payment (audit only)
            customer_id: ERP customer id
            invoice_id: Invoice the payment settles
            amount: Payment amount
            method: Payment method name
            reference: Idempotency token, reused verbatim by every attempt

        Returns:
            Job id

        Raises:
            ValueError: Missing reference
        """
        if not reference:
            raise ValueError("Payment reference is required")

        job = self.runner.submit(JobType.PROCESS_PAYMENT, {
            "user_id": str(user_id) if user_id is not None else None,
            "customer_id": customer_id,
            "invoice_id": invoice_id,
            "amount": str(amount),
            "method": method,
            "reference": reference,
        })
        logger.info(f"Payment {reference} for invoice {invoice_id} dispatched as job {job.id}")
        return job.id

    def enqueue_customer_sync(self, customer_id: str) -> str:
        return self.runner.submit(JobType.SYNC_CUSTOMER, {"customer_id": customer_id}).id

    def enqueue_invoice_sync(self, customer_id: str, filters: dict[str, Any] | None = None) -> str:
        return self.runner.submit(JobType.SYNC_INVOICES, {
            "customer_id": customer_id,
            "filters": dict(filters or {}),
        }).id

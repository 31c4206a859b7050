"""
Payment service: validates portal payments and hands them to the ERP.

By default payments go through the job runner so a slow or unavailable ERP
never blocks the portal request; the caller gets a job id back.
"""

import logging
from decimal import Decimal
from uuid import uuid4

from core.services.invoice_service import InvoiceService
from erp.models import Payment, PaymentMethod
from erp.registry import ProviderRegistry
from jobs.dispatch import JobDispatcher
from utils.timezone import today_utc

logger = logging.getLogger(__name__)


def generate_reference() -> str:
    """Portal payment reference: SELFCARE-<random hex>, unique per payment."""
    return f"SELFCARE-{uuid4().hex}"


class PaymentService:
    """Service for payment submission and payment reads."""

    def __init__(
        self,
        registry: ProviderRegistry,
        invoice_service: InvoiceService,
        dispatcher: JobDispatcher,
    ):
        self.registry = registry
        self.invoice_service = invoice_service
        self.dispatcher = dispatcher

    def create_payment(
        self,
        user_id: str | None,
        customer_id: str,
        invoice_id: str,
        amount: Decimal | str | float,
        method: str = PaymentMethod.CARD.value,
        reference: str | None = None,
        run_async: bool = True,
    ) -> str | bool:
        """
        Pay (part of) an invoice.

        Args:
            user_id: Portal user paying
            customer_id: ERP customer id
            invoice_id: Invoice being paid
            amount: Amount, must be positive
            method: Payment method name
            reference: Idempotency token; generated when omitted
            run_async: Queue the submission (default) or call the ERP inline

        Returns:
            Job id when queued, ERP acknowledgement when run inline.

        Raises:
            ValueError: Non-positive amount, unknown invoice, or invoice of
                another customer
            AdapterError: ERP unreachable (inline mode, or while validating)
        """
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValueError("Payment amount must be positive")

        invoice = self.invoice_service.get_invoice(invoice_id)
        if invoice is None:
            raise ValueError(f"Invoice {invoice_id} not found")
        if invoice.customer_id != customer_id:
            raise ValueError(f"Invoice {invoice_id} does not belong to customer {customer_id}")

        if amount > invoice.outstanding:
            logger.warning(
                f"Payment of {amount} for invoice {invoice_id} exceeds "
                f"outstanding amount {invoice.outstanding}"
            )

        reference = reference or generate_reference()

        if run_async:
            return self.dispatcher.enqueue_payment_creation(
                user_id, customer_id, invoice_id, amount, method, reference
            )

        payment = Payment(
            customer_id=customer_id,
            invoice_id=invoice_id,
            amount=amount,
            payment_date=today_utc(),
            reference=reference,
            payment_method=method,
            metadata={"user_id": user_id},
        )
        accepted = self.registry.driver().create_payment(payment)
        if accepted:
            try:
                self.invoice_service.refresh_invoice_cache(customer_id)
            except Exception as e:
                logger.error(f"Payment {reference} submitted but invoice cache refresh failed: {e}")
            logger.info(f"Payment {reference} for invoice {invoice_id} submitted inline")
        else:
            logger.error(f"ERP rejected inline payment {reference} for invoice {invoice_id}")
        return accepted

    def get_payment_history(self, customer_id: str) -> list[Payment]:
        """Payments of a customer as the ERP reports them. Never cached."""
        return self.registry.driver().get_payment_history(customer_id)

    def get_payment_status(self, payment_id: str) -> str | None:
        return self.registry.driver().get_payment_status(payment_id)

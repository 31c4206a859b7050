"""
Units of work for background jobs.

Each factory closes over its collaborators and returns a handler taking the
JobRecord. Handlers raise to fail an attempt; the runner decides whether to
retry. Params are plain JSON values so records survive a round trip through
Valkey.
"""

import logging
from decimal import Decimal
from typing import Callable

from core.event_bus import EventBus
from core.events import PaymentSubmitted
from core.services.customer_service import CustomerService
from core.services.invoice_service import InvoiceService
from erp.exceptions import AdapterError
from erp.models import Payment
from erp.registry import ProviderRegistry
from jobs.models import JobRecord, JobType
from utils.timezone import today_utc

logger = logging.getLogger(__name__)


def process_payment(
    registry: ProviderRegistry,
    invoice_service: InvoiceService,
    event_bus: EventBus,
) -> Callable[[JobRecord], None]:
    """
    Factory that returns the payment submission handler.

    Params: customer_id, invoice_id, amount (decimal string), method,
    reference, user_id. The reference is fixed at enqueue time so every
    attempt carries the same idempotency token.
    """

    def handler(job: JobRecord):
        params = job.params
        payment = Payment(
            customer_id=params["customer_id"],
            invoice_id=params["invoice_id"],
            amount=Decimal(str(params["amount"])),
            payment_date=today_utc(),
            reference=params["reference"],
            payment_method=params.get("method") or "Card",
            metadata={"user_id": params.get("user_id")},
        )

        if not registry.driver().create_payment(payment):
            raise AdapterError(f"ERP did not acknowledge payment {payment.reference}")

        try:
            invoice_service.refresh_invoice_cache(payment.customer_id)
        except Exception as e:
            # The ERP holds the payment; stale listings expire with their TTL
            logger.error(
                f"Payment {payment.reference} submitted but invoice cache refresh "
                f"for customer {payment.customer_id} failed: {e}"
            )
        logger.info(
            f"Payment {payment.reference} of {payment.amount} for invoice "
            f"{payment.invoice_id} submitted (job {job.id})"
        )
        event_bus.publish(PaymentSubmitted.create(payment, job_id=job.id))

    return handler


def sync_customer(customer_service: CustomerService) -> Callable[[JobRecord], None]:
    """Factory that returns the customer refresh handler. Params: customer_id."""

    def handler(job: JobRecord):
        customer_id = job.params["customer_id"]
        if customer_service.refresh_customer(customer_id) is None:
            logger.warning(f"Customer {customer_id} not found in ERP, nothing to sync")

    return handler


def sync_invoices(invoice_service: InvoiceService) -> Callable[[JobRecord], None]:
    """Factory that returns the invoice listing refresh handler. Params: customer_id, filters."""

    def handler(job: JobRecord):
        customer_id = job.params["customer_id"]
        invoices = invoice_service.sync_invoices(customer_id, job.params.get("filters") or {})
        logger.info(f"Synced {len(invoices)} invoices for customer {customer_id}")

    return handler


def build_job_handlers(
    registry: ProviderRegistry,
    customer_service: CustomerService,
    invoice_service: InvoiceService,
    event_bus: EventBus,
) -> dict[JobType, Callable[[JobRecord], None]]:
    """Handler table for JobRunner."""
    return {
        JobType.PROCESS_PAYMENT: process_payment(registry, invoice_service, event_bus),
        JobType.SYNC_CUSTOMER: sync_customer(customer_service),
        JobType.SYNC_INVOICES: sync_invoices(invoice_service),
    }

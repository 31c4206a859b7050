"""
Invoice service: cached invoice listings and consumption figures.

Listings are cached per customer and filter set under
invoices:<customer>:<filter digest>; single invoices under invoice:<id>.
A successful payment drops that customer's listings (refresh_invoice_cache).
"""

import logging
from decimal import Decimal
from typing import Any

from erp.cache import (
    DEFAULT_TTL_SECONDS,
    ReadThroughCache,
    invoice_key,
    invoices_key,
    invoices_prefix,
)
from erp.models import Invoice, InvoiceStatus
from erp.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class InvoiceService:
    """Service for invoice reads."""

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: ReadThroughCache,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self.registry = registry
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def get_customer_invoices(
        self, customer_id: str, filters: dict[str, Any] | None = None
    ) -> list[Invoice]:
        """
        Invoices of a customer, newest first, from cache when fresh.

        Args:
            customer_id: ERP customer id
            filters: Optional status / limit filters

        Raises:
            AdapterError: ERP unreachable on a cache miss
        """
        filters = dict(filters or {})
        cached = self.cache.get(invoices_key(customer_id, filters))
        if cached is not None:
            return [Invoice.model_validate(row) for row in cached]
        return self.sync_invoices(customer_id, filters)

    def sync_invoices(self, customer_id: str, filters: dict[str, Any] | None = None) -> list[Invoice]:
        """Fetch the listing from the ERP and overwrite its cache entry."""
        filters = dict(filters or {})
        invoices = self.registry.driver().get_customer_invoices(customer_id, filters)
        self.cache.put(
            invoices_key(customer_id, filters),
            [invoice.model_dump(mode="json") for invoice in invoices],
            self.ttl_seconds,
        )
        return invoices

    def get_invoice(self, invoice_id: str) -> Invoice | None:
        """Single invoice, from cache when fresh. None if the ERP doesn't know it."""

        def load() -> dict | None:
            invoice = self.registry.driver().get_invoice(invoice_id)
            return invoice.model_dump(mode="json") if invoice else None

        cached = self.cache.remember(invoice_key(invoice_id), self.ttl_seconds, load)
        return Invoice.model_validate(cached) if cached is not None else None

    def get_invoice_pdf(self, invoice_id: str) -> bytes | None:
        """Printable invoice straight from the ERP. Never cached."""
        return self.registry.driver().get_invoice_pdf(invoice_id)

    def get_unpaid_invoices(self, customer_id: str) -> list[Invoice]:
        return self.get_customer_invoices(customer_id, {"status": InvoiceStatus.UNPAID.value})

    def get_total_outstanding(self, customer_id: str) -> Decimal:
        """Sum of the ERP-reported outstanding amounts of unpaid invoices."""
        return sum(
            (invoice.outstanding for invoice in self.get_unpaid_invoices(customer_id)),
            Decimal("0"),
        )

    def get_consumption_history(self, customer_id: str, months: int = 12) -> list[dict[str, Any]]:
        """
        Metered consumption of the last `months` readings, oldest first.

        Only invoices with a meter reading date count.
        """
        read = [i for i in self.get_customer_invoices(customer_id) if i.reading_date is not None]
        read.sort(key=lambda invoice: invoice.reading_date, reverse=True)

        history = [
            {
                "month": invoice.reading_date.strftime("%Y-%m"),
                "kwh_consumed": invoice.kwh_consumed,
                "volume_m3": invoice.volume_m3,
                "gcal_equivalent": invoice.gcal_equivalent,
                "amount": invoice.amount,
            }
            for invoice in read[:months]
        ]
        history.reverse()
        return history

    def refresh_invoice_cache(self, customer_id: str) -> int:
        """
        Drop every cached listing of one customer.

        Single-invoice entries and the customer record are left alone.
        Returns the number of entries dropped.
        """
        dropped = self.cache.forget_prefix(invoices_prefix(customer_id))
        logger.info(f"Invoice cache refreshed for customer {customer_id} ({dropped} entries)")
        return dropped

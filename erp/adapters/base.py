"""
ERP adapter contract.

Every backend (live ERP or test double) implements this capability set and
returns normalized records only. Callers never know which variant is active.

Failure contract:
- AdapterError: transient (network, timeout, auth, upstream 5xx), retryable
- MalformedPayload: response has an unexpected shape, not retryable
- RequestRejected: ERP refused the request, not retryable
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any

from erp.models import Customer, Invoice, Payment


class ERPAdapter(ABC):
    """Capability set implemented by each ERP backend."""

    @abstractmethod
    def authenticate(self) -> bool:
        """Verify credentials against the ERP. False when rejected or unreachable."""

    @abstractmethod
    def is_authenticated(self) -> bool:
        """Whether the last authenticate() succeeded."""

    @abstractmethod
    def get_customer(self, customer_id: str) -> Customer | None:
        """Customer by ERP id, None if the ERP does not know it."""

    @abstractmethod
    def get_customer_balance(self, customer_id: str) -> Decimal:
        """Outstanding balance, zero for unknown customers."""

    @abstractmethod
    def search_customers(self, query: str) -> list[Customer]:
        """Customers whose name matches `query`."""

    @abstractmethod
    def get_customer_invoices(
        self, customer_id: str, filters: dict[str, Any] | None = None
    ) -> list[Invoice]:
        """
        Invoices of a customer, newest first.

        Recognized filters: status (canonical status name), limit.
        """

    @abstractmethod
    def get_invoice(self, invoice_id: str) -> Invoice | None:
        """Invoice by ERP id, None if not found."""

    @abstractmethod
    def get_invoice_pdf(self, invoice_id: str) -> bytes | None:
        """Printable invoice, None if not found."""

    @abstractmethod
    def create_payment(self, payment: Payment) -> bool:
        """
        Record a payment in the ERP.

        Returns True once the ERP acknowledges it. The ERP de-duplicates on
        payment.reference, so resubmitting the same payment is safe.
        """

    @abstractmethod
    def get_payment_status(self, payment_id: str) -> str | None:
        """Status of a payment entry, None if not found."""

    @abstractmethod
    def get_payment_history(self, customer_id: str) -> list[Payment]:
        """Payments received from a customer, newest first."""

    @abstractmethod
    def sync_customer_data(self, customer_id: str) -> bool:
        """True if the ERP still knows the customer."""

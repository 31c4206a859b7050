"""
Deterministic in-memory ERP adapter.

Used in tests and in environments without ERP connectivity. Returns fixed
heating-customer fixtures, remembers payments it accepted, and records every
call so tests can assert whether the ERP was actually consulted.
"""

import logging
import threading
from datetime import date
from decimal import Decimal
from typing import Any

from erp.adapters.base import ERPAdapter
from erp.models import Customer, CustomerStatus, Invoice, InvoiceStatus, Payment
from erp.normalizer import map_invoice_status

logger = logging.getLogger(__name__)

MOCK_BALANCE = Decimal("150.50")


def _default_invoices(customer_id: str) -> list[Invoice]:
    return [
        Invoice(
            id="INV-001",
            customer_id=customer_id,
            issue_date=date(2025, 1, 1),
            due_date=date(2025, 1, 15),
            amount=Decimal("75.50"),
            paid=Decimal("0"),
            outstanding=Decimal("75.50"),
            status=InvoiceStatus.UNPAID,
            kwh_consumed=Decimal("450.5"),
            volume_m3=Decimal("15.2"),
            gcal_equivalent=Decimal("0.388"),
            reading_date=date(2024, 12, 31),
        ),
        Invoice(
            id="INV-002",
            customer_id=customer_id,
            issue_date=date(2024, 12, 1),
            due_date=date(2024, 12, 15),
            amount=Decimal("85.00"),
            paid=Decimal("85.00"),
            outstanding=Decimal("0"),
            status=InvoiceStatus.PAID,
            kwh_consumed=Decimal("520.0"),
            volume_m3=Decimal("17.5"),
            gcal_equivalent=Decimal("0.448"),
            reading_date=date(2024, 11, 30),
        ),
    ]


class MockAdapter(ERPAdapter):
    """
    In-memory adapter with the same contract as the live ones.

    Usage:
        erp = MockAdapter()
        erp.fail_with("create_payment", AdapterError("ERP down"))
        erp.calls  # [("create_payment", ("CUST-1",)), ...]
    """

    def __init__(
        self,
        customers: dict[str, Customer] | None = None,
        invoices: dict[str, list[Invoice]] | None = None,
    ):
        """
        Args:
            customers: Fixed customers by id. Unlisted ids get a generated
                "Mock Heat Customer" unless `customers` is given.
            invoices: Fixed invoice lists by customer id. Unlisted customers
                get two default invoices (one unpaid, one paid).
        """
        self._customers = customers
        self._invoices = invoices
        self._payments: list[Payment] = []
        self._failures: dict[str, BaseException] = {}
        self._lock = threading.Lock()
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    # =========================================================================
    # TEST CONTROLS
    # =========================================================================

    def fail_with(self, method: str, error: BaseException) -> None:
        """Make every call to `method` raise `error` until cleared."""
        with self._lock:
            self._failures[method] = error

    def clear_failures(self) -> None:
        with self._lock:
            self._failures.clear()

    def call_count(self, method: str) -> int:
        with self._lock:
            return sum(1 for name, _ in self.calls if name == method)

    @property
    def payments(self) -> list[Payment]:
        """Payments accepted so far."""
        with self._lock:
            return list(self._payments)

    def _record(self, method: str, *args: Any) -> None:
        with self._lock:
            self.calls.append((method, args))
            error = self._failures.get(method)
        if error is not None:
            raise error

    # =========================================================================
    # CONTRACT
    # =========================================================================

    def authenticate(self) -> bool:
        self._record("authenticate")
        return True

    def is_authenticated(self) -> bool:
        return True

    def get_customer(self, customer_id: str) -> Customer | None:
        self._record("get_customer", customer_id)
        return self._lookup_customer(customer_id)

    def _lookup_customer(self, customer_id: str) -> Customer | None:
        if self._customers is not None:
            return self._customers.get(customer_id)
        return Customer(
            id=customer_id,
            name="Mock Heat Customer",
            address="Main St. 42, Pristina",
            heatmeter_id=f"HM-{customer_id[-3:]}",
            balance=MOCK_BALANCE,
            status=CustomerStatus.ACTIVE,
        )

    def get_customer_balance(self, customer_id: str) -> Decimal:
        self._record("get_customer_balance", customer_id)
        customer = self._lookup_customer(customer_id)
        return customer.balance if customer else Decimal("0")

    def search_customers(self, query: str) -> list[Customer]:
        self._record("search_customers", query)
        if self._customers is not None:
            needle = query.lower()
            return [c for c in self._customers.values() if needle in c.name.lower()]
        return [self._lookup_customer("CUST-001"), self._lookup_customer("CUST-002")]

    def get_customer_invoices(
        self, customer_id: str, filters: dict[str, Any] | None = None
    ) -> list[Invoice]:
        self._record("get_customer_invoices", customer_id, dict(filters or {}))
        if self._invoices is not None:
            invoices = list(self._invoices.get(customer_id, []))
        else:
            invoices = _default_invoices(customer_id)

        filters = filters or {}
        if filters.get("status"):
            wanted = map_invoice_status(filters["status"])
            invoices = [i for i in invoices if i.status == wanted]
        if filters.get("limit"):
            invoices = invoices[: int(filters["limit"])]
        return invoices

    def get_invoice(self, invoice_id: str) -> Invoice | None:
        self._record("get_invoice", invoice_id)
        if self._invoices is not None:
            for invoices in self._invoices.values():
                for invoice in invoices:
                    if invoice.id == invoice_id:
                        return invoice
            return None
        return _default_invoices("CUST-001")[0].model_copy(update={"id": invoice_id})

    def get_invoice_pdf(self, invoice_id: str) -> bytes | None:
        self._record("get_invoice_pdf", invoice_id)
        return f"Mock PDF content for {invoice_id}".encode("utf-8")

    def create_payment(self, payment: Payment) -> bool:
        self._record("create_payment", payment.reference)
        with self._lock:
            # Same reference twice is one payment
            if any(p.reference == payment.reference for p in self._payments):
                logger.info(f"Mock ERP ignored duplicate payment reference {payment.reference}")
                return True
            entry_id = f"PAY-{len(self._payments) + 2:03d}"
            self._payments.append(payment.model_copy(update={"id": entry_id}))
        return True

    def get_payment_status(self, payment_id: str) -> str | None:
        self._record("get_payment_status", payment_id)
        return "submitted"

    def get_payment_history(self, customer_id: str) -> list[Payment]:
        self._record("get_payment_history", customer_id)
        history = [
            Payment(
                id="PAY-001",
                customer_id=customer_id,
                invoice_id="INV-002",
                amount=Decimal("85.00"),
                payment_date=date(2024, 12, 15),
                reference="SELFCARE-001",
                payment_method="Card",
            ),
        ]
        with self._lock:
            accepted = [p for p in self._payments if p.customer_id == customer_id]
        return list(reversed(accepted)) + history

    def sync_customer_data(self, customer_id: str) -> bool:
        self._record("sync_customer_data", customer_id)
        return self._lookup_customer(customer_id) is not None

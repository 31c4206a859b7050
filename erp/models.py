"""Provider-agnostic ERP records.

All three records are value objects: built fresh on every ERP round trip or
cache hit and never mutated afterwards. Amounts are Decimal in the portal's
base currency.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class CustomerStatus(str, Enum):
    """Customer account status as reported by the ERP."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class InvoiceStatus(str, Enum):
    """Canonical invoice status. Every provider maps into this set."""

    DRAFT = "draft"
    UNPAID = "unpaid"
    PAID = "paid"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class PaymentMethod(str, Enum):
    """Payment methods the portal offers. The ERP may report others."""

    CARD = "Card"
    BANK_TRANSFER = "Bank Transfer"
    CASH = "Cash"


class Customer(BaseModel):
    """Customer record owned by the ERP."""

    id: str
    name: str = ""
    address: str = ""
    heatmeter_id: str | None = None
    balance: Decimal = Decimal("0")  # Negative only when the ERP reports credit
    status: CustomerStatus = CustomerStatus.ACTIVE
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @property
    def is_active(self) -> bool:
        return self.status == CustomerStatus.ACTIVE


class Invoice(BaseModel):
    """
    Invoice as reported by the ERP.

    `outstanding` is whatever the ERP says. It usually equals amount - paid,
    but credits and write-offs can make it differ, so it is never recomputed.
    """

    id: str
    customer_id: str
    issue_date: date | None = None
    due_date: date | None = None
    amount: Decimal = Decimal("0")
    paid: Decimal = Decimal("0")
    outstanding: Decimal = Decimal("0")
    status: InvoiceStatus = InvoiceStatus.UNKNOWN
    kwh_consumed: Decimal = Decimal("0")
    volume_m3: Decimal = Decimal("0")
    gcal_equivalent: Decimal | None = None
    reading_date: date | None = None
    items: tuple[dict[str, Any], ...] = ()
    raw: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID

    def is_overdue(self, today: date) -> bool:
        """Unpaid with a due date strictly before `today`."""
        if self.status != InvoiceStatus.UNPAID or self.due_date is None:
            return False
        return self.due_date < today

    def to_dict(self) -> dict[str, Any]:
        """Flat portal representation (no line items, no raw payload)."""
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "date": self.issue_date.isoformat() if self.issue_date else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "amount": float(self.amount),
            "paid": float(self.paid),
            "outstanding": float(self.outstanding),
            "status": self.status.value,
            "kwh_consumed": float(self.kwh_consumed),
            "volume_m3": float(self.volume_m3),
            "gcal": float(self.gcal_equivalent) if self.gcal_equivalent is not None else None,
            "reading_date": self.reading_date.isoformat() if self.reading_date else None,
        }


class Payment(BaseModel):
    """
    Payment against one invoice.

    `reference` is the caller's idempotency token; the ERP de-duplicates on it.
    `id` stays None until the ERP acknowledges the payment.
    """

    customer_id: str
    invoice_id: str
    amount: Decimal = Decimal("0")
    payment_date: date
    reference: str = ""
    payment_method: str = PaymentMethod.CARD.value
    id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

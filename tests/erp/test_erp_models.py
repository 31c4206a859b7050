"""Tests for Customer, Invoice and Payment records."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from erp.models import Customer, CustomerStatus, Invoice, InvoiceStatus, Payment


class TestInvoice:

    def _invoice(self, **overrides):
        fields = {
            "id": "INV-1",
            "customer_id": "C1",
            "issue_date": date(2025, 1, 1),
            "due_date": date(2025, 1, 15),
            "amount": Decimal("75.50"),
            "outstanding": Decimal("75.50"),
            "status": InvoiceStatus.UNPAID,
        }
        fields.update(overrides)
        return Invoice(**fields)

    def test_overdue_when_unpaid_past_due(self):
        assert self._invoice().is_overdue(date(2025, 1, 16))

    def test_not_overdue_on_due_date(self):
        assert not self._invoice().is_overdue(date(2025, 1, 15))

    def test_paid_is_never_overdue(self):
        assert not self._invoice(status=InvoiceStatus.PAID).is_overdue(date(2026, 1, 1))

    def test_no_due_date_is_never_overdue(self):
        assert not self._invoice(due_date=None).is_overdue(date(2026, 1, 1))

    def test_is_frozen(self):
        invoice = self._invoice()
        with pytest.raises(ValidationError):
            invoice.amount = Decimal("1")

    def test_to_dict_is_flat(self):
        data = self._invoice(gcal_equivalent=Decimal("0.388")).to_dict()

        assert data["date"] == "2025-01-01"
        assert data["amount"] == 75.5
        assert data["status"] == "unpaid"
        assert data["gcal"] == 0.388
        assert "raw" not in data
        assert "items" not in data

    def test_survives_json_round_trip(self):
        """Cached entries are JSON dumps rebuilt with model_validate."""
        invoice = self._invoice(items=({"item_code": "HEAT"},), reading_date=date(2024, 12, 31))
        assert Invoice.model_validate(invoice.model_dump(mode="json")) == invoice


class TestCustomer:

    def test_inactive(self):
        customer = Customer(id="C1", status=CustomerStatus.INACTIVE)
        assert not customer.is_active

    def test_defaults(self):
        customer = Customer(id="C1")
        assert customer.balance == Decimal("0")
        assert customer.is_active


class TestPayment:

    def test_unacknowledged_has_no_id(self):
        payment = Payment(customer_id="C1", invoice_id="INV-1", payment_date=date(2025, 1, 5))
        assert payment.id is None
        assert payment.payment_method == "Card"

    def test_payment_date_required(self):
        with pytest.raises(ValidationError):
            Payment(customer_id="C1", invoice_id="INV-1")

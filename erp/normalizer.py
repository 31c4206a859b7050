"""
Normalization of raw ERP payloads into Customer, Invoice and Payment records.

Pure functions, no I/O. Each PayloadFormat declares, per canonical field, the
source keys to try in order; the first present, non-null key wins. Missing
optional fields fall back to defaults (zero for numbers). MalformedPayload is
raised only for a missing required identifier or a present value that cannot
be parsed.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping

from erp.exceptions import MalformedPayload
from erp.models import Customer, CustomerStatus, Invoice, InvoiceStatus, Payment, PaymentMethod
from utils.timezone import parse_erp_date, today_utc


class PayloadFormat(str, Enum):
    """Wire shapes the normalizer understands."""

    PORTAL = "portal"  # Generic maps built by the portal itself
    ERPNEXT = "erpnext"  # Frappe REST rows


# Single source of truth for invoice status semantics across providers.
# New providers map into this table; they never add statuses.
INVOICE_STATUS_MAP: dict[str, InvoiceStatus] = {
    "draft": InvoiceStatus.DRAFT,
    "unpaid": InvoiceStatus.UNPAID,
    "overdue": InvoiceStatus.UNPAID,
    "partly paid": InvoiceStatus.UNPAID,
    "paid": InvoiceStatus.PAID,
    "cancelled": InvoiceStatus.CANCELLED,
    "canceled": InvoiceStatus.CANCELLED,
}


_CUSTOMER_FIELDS: dict[PayloadFormat, dict[str, tuple[str, ...]]] = {
    PayloadFormat.PORTAL: {
        "id": ("id",),
        "name": ("name",),
        "address": ("address",),
        "heatmeter_id": ("heatmeter_id", "heatmeterId"),
        "balance": ("balance",),
        "status": ("status",),
    },
    PayloadFormat.ERPNEXT: {
        "id": ("name",),
        "name": ("customer_name",),
        "address": ("primary_address", "customer_primary_address"),
        "heatmeter_id": ("custom_heatmeter_id",),
        "balance": ("outstanding_amount",),
        "disabled": ("disabled",),
    },
}

_INVOICE_FIELDS: dict[PayloadFormat, dict[str, tuple[str, ...]]] = {
    PayloadFormat.PORTAL: {
        "id": ("id",),
        "customer_id": ("customer_id",),
        "issue_date": ("date", "issue_date"),
        "due_date": ("due_date",),
        "amount": ("amount",),
        "paid": ("paid",),
        "outstanding": ("outstanding",),
        "status": ("status",),
        "kwh_consumed": ("kwh_consumed",),
        "volume_m3": ("volume_m3",),
        "gcal_equivalent": ("gcal", "gcal_equivalent"),
        "reading_date": ("reading_date",),
        "items": ("items",),
    },
    PayloadFormat.ERPNEXT: {
        "id": ("name",),
        "customer_id": ("customer",),
        "issue_date": ("posting_date", "due_date"),
        "due_date": ("due_date",),
        "amount": ("grand_total",),
        "paid": ("paid_amount",),
        "outstanding": ("outstanding_amount",),
        "status": ("status",),
        "kwh_consumed": ("custom_kwh_consumed",),
        "volume_m3": ("custom_volume_m3",),
        "gcal_equivalent": ("custom_gcal",),
        "reading_date": ("custom_reading_date",),
        "items": ("items",),
    },
}

_PAYMENT_FIELDS: dict[PayloadFormat, dict[str, tuple[str, ...]]] = {
    PayloadFormat.PORTAL: {
        "id": ("id",),
        "customer_id": ("customer_id",),
        "invoice_id": ("invoice_id",),
        "amount": ("amount",),
        "payment_date": ("payment_date",),
        "reference": ("reference",),
        "payment_method": ("payment_method",),
    },
    PayloadFormat.ERPNEXT: {
        "id": ("name",),
        "customer_id": ("party",),
        "amount": ("paid_amount", "received_amount"),
        "payment_date": ("posting_date", "reference_date"),
        "reference": ("reference_no",),
        "payment_method": ("mode_of_payment",),
    },
}


def map_invoice_status(value: Any) -> InvoiceStatus:
    """Map a provider status string to the canonical set (case-insensitive)."""
    if value is None:
        return InvoiceStatus.UNKNOWN
    return INVOICE_STATUS_MAP.get(str(value).strip().lower(), InvoiceStatus.UNKNOWN)


def normalize_customer(raw: Mapping[str, Any], fmt: PayloadFormat = PayloadFormat.PORTAL) -> Customer:
    """
    Build a Customer from a raw payload.

    Raises:
        MalformedPayload: payload is not a mapping, the customer id is missing,
            or the balance is not a number.
    """
    _require_mapping(raw, "customer")
    fields = _CUSTOMER_FIELDS[fmt]

    if fmt == PayloadFormat.ERPNEXT:
        disabled = _pick(raw, fields["disabled"])
        status = CustomerStatus.INACTIVE if _is_truthy_flag(disabled) else CustomerStatus.ACTIVE
    else:
        raw_status = _pick(raw, fields["status"])
        status = (
            CustomerStatus.INACTIVE
            if raw_status is not None and str(raw_status).strip().lower() == "inactive"
            else CustomerStatus.ACTIVE
        )

    heatmeter_id = _pick(raw, fields["heatmeter_id"])

    return Customer(
        id=_require_id(raw, fields["id"], "customer"),
        name=_text(_pick(raw, fields["name"])),
        address=_text(_pick(raw, fields["address"])),
        heatmeter_id=str(heatmeter_id) if heatmeter_id is not None else None,
        balance=_decimal(raw, fields["balance"]),
        status=status,
        metadata=dict(raw),
    )


def normalize_invoice(raw: Mapping[str, Any], fmt: PayloadFormat = PayloadFormat.PORTAL) -> Invoice:
    """
    Build an Invoice from a raw payload.

    Outstanding is taken verbatim from the payload (zero when absent), never
    derived from amount and paid.

    Raises:
        MalformedPayload: payload is not a mapping, invoice id or customer id
            is missing, or a present number/date cannot be parsed.
    """
    _require_mapping(raw, "invoice")
    fields = _INVOICE_FIELDS[fmt]

    items = _pick(raw, fields["items"]) or []
    if not isinstance(items, (list, tuple)):
        raise MalformedPayload(f"invoice items must be a list, got {type(items).__name__}")
    if not all(isinstance(item, Mapping) for item in items):
        raise MalformedPayload("invoice items must be records")

    gcal = _pick(raw, fields["gcal_equivalent"])

    return Invoice(
        id=_require_id(raw, fields["id"], "invoice"),
        customer_id=_require_id(raw, fields["customer_id"], "invoice customer"),
        issue_date=_date(raw, fields["issue_date"]),
        due_date=_date(raw, fields["due_date"]),
        amount=_decimal(raw, fields["amount"]),
        paid=_decimal(raw, fields["paid"]),
        outstanding=_decimal(raw, fields["outstanding"]),
        status=map_invoice_status(_pick(raw, fields["status"])),
        kwh_consumed=_decimal(raw, fields["kwh_consumed"]),
        volume_m3=_decimal(raw, fields["volume_m3"]),
        gcal_equivalent=_decimal(raw, fields["gcal_equivalent"]) if gcal is not None else None,
        reading_date=_date(raw, fields["reading_date"]),
        items=tuple(dict(item) for item in items),
        raw=dict(raw),
    )


def normalize_payment(
    raw: Mapping[str, Any],
    fmt: PayloadFormat = PayloadFormat.PORTAL,
    customer_id: str | None = None,
) -> Payment:
    """
    Build a Payment from a raw payload.

    Args:
        raw: Raw payload
        fmt: Wire shape of the payload
        customer_id: Fallback owner when the payload has no party
            (ERPNext history rows fetched per customer)

    Raises:
        MalformedPayload: payload is not a mapping, a required identifier is
            missing, or a present amount/date cannot be parsed.
    """
    _require_mapping(raw, "payment")
    fields = _PAYMENT_FIELDS[fmt]

    if fmt == PayloadFormat.ERPNEXT:
        payment_id = _require_id(raw, fields["id"], "payment entry")
        owner = _pick(raw, fields["customer_id"]) or customer_id
        if not owner:
            raise MalformedPayload(f"payment entry {payment_id} has no party")
        invoice_id = _first_allocation(raw)
    else:
        picked_id = _pick(raw, fields["id"])
        payment_id = str(picked_id) if picked_id is not None else None
        owner = _require_id(raw, fields["customer_id"], "payment customer")
        invoice_id = _require_id(raw, fields["invoice_id"], "payment invoice")

    method = _pick(raw, fields["payment_method"])

    return Payment(
        id=payment_id,
        customer_id=str(owner),
        invoice_id=invoice_id,
        amount=_decimal(raw, fields["amount"]),
        payment_date=_date(raw, fields["payment_date"]) or today_utc(),
        reference=_text(_pick(raw, fields["reference"])),
        payment_method=str(method) if method else PaymentMethod.CARD.value,
        metadata=dict(raw),
    )


# =============================================================================
# FIELD HELPERS
# =============================================================================


def _require_mapping(raw: Any, what: str) -> None:
    if not isinstance(raw, Mapping):
        raise MalformedPayload(f"{what} payload must be a mapping, got {type(raw).__name__}")


def _pick(raw: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    """First present, non-null value among `keys`."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _require_id(raw: Mapping[str, Any], keys: tuple[str, ...], what: str) -> str:
    value = _pick(raw, keys)
    if value is None or str(value).strip() == "":
        raise MalformedPayload(f"{what} payload is missing '{keys[0]}'")
    return str(value)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _is_truthy_flag(value: Any) -> bool:
    if value is None:
        return False
    try:
        return int(value) == 1
    except (TypeError, ValueError):
        return str(value).strip().lower() in ("true", "yes")


def _decimal(raw: Mapping[str, Any], keys: tuple[str, ...]) -> Decimal:
    value = _pick(raw, keys)
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        raise MalformedPayload(f"'{keys[0]}' must be numeric, got a boolean")
    try:
        # str() first so floats keep their printed value (75.5, not 75.4999...)
        return Decimal(str(value))
    except InvalidOperation:
        raise MalformedPayload(f"'{keys[0]}' must be numeric, got {value!r}")


def _date(raw: Mapping[str, Any], keys: tuple[str, ...]) -> date | None:
    value = _pick(raw, keys)
    if value is None or value == "":
        return None
    try:
        return parse_erp_date(value)
    except (TypeError, ValueError):
        raise MalformedPayload(f"'{keys[0]}' must be an ISO date, got {value!r}")


def _first_allocation(raw: Mapping[str, Any]) -> str:
    """Invoice name of the first allocation; list rows carry none."""
    references = raw.get("references") or []
    for reference in references:
        if isinstance(reference, Mapping) and reference.get("reference_name"):
            return str(reference["reference_name"])
    return ""

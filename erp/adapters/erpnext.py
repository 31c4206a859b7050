"""
ERPNext adapter over the Frappe REST API.

Token authentication (`Authorization: token <key>:<secret>`). Every call
carries the configured timeout. Transport failures, auth failures and upstream
5xx raise AdapterError; other 4xx raise RequestRejected; unreadable bodies
raise MalformedPayload. 404 on single-document reads returns None.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Mapping
from urllib.parse import quote

import requests

from erp.adapters.base import ERPAdapter
from erp.exceptions import AdapterError, MalformedPayload, RequestRejected
from erp.models import Customer, Invoice, InvoiceStatus, Payment
from erp.normalizer import (
    INVOICE_STATUS_MAP,
    PayloadFormat,
    map_invoice_status,
    normalize_customer,
    normalize_invoice,
    normalize_payment,
)

logger = logging.getLogger(__name__)

_SEARCH_PAGE_LENGTH = 20
_DEFAULT_INVOICE_LIMIT = 100

_CUSTOMER_LIST_FIELDS = [
    "name", "customer_name", "outstanding_amount",
    "customer_primary_address", "custom_heatmeter_id", "disabled",
]

# Frappe docstatus -> payment entry status
_DOCSTATUS = {0: "draft", 1: "submitted", 2: "cancelled"}


def _status_filter(value: Any) -> list[Any]:
    """ERPNext filter on every title-cased ERPNext status that maps to canonical `value`."""
    known = {name.title(): status for name, status in INVOICE_STATUS_MAP.items()}
    wanted = map_invoice_status(value)
    if wanted == InvoiceStatus.UNKNOWN:
        return ["status", "not in", sorted(known)]
    return ["status", "in", sorted(name for name, status in known.items() if status == wanted)]


class ERPNextAdapter(ERPAdapter):
    """Live adapter for an ERPNext site."""

    def __init__(
        self,
        url: str,
        api_key: str,
        api_secret: str,
        timeout_seconds: float = 30,
        session: requests.Session | None = None,
    ):
        """
        Initialize with site credentials.

        Args:
            url: Base URL of the ERPNext site
            api_key: API key of the integration user
            api_secret: API secret of the integration user
            timeout_seconds: Upper bound on every request
            session: Optional pre-built session (connection pooling, tests)

        Raises:
            ValueError: If any credential is empty
        """
        if not url:
            raise ValueError("url is required")
        if not api_key:
            raise ValueError("api_key is required")
        if not api_secret:
            raise ValueError("api_secret is required")

        self.base_url = url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._authenticated = False

        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"token {api_key}:{api_secret}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        allow_not_found: bool = False,
    ) -> requests.Response | None:
        """
        Send one request and classify the outcome.

        Returns None only for 404 when `allow_not_found` is set.

        Raises:
            AdapterError: timeout, connection failure, 401/403, 429, 5xx
            RequestRejected: any other 4xx
        """
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"ERPNext {method} {path} timed out after {self.timeout_seconds}s")
            raise AdapterError(f"Timed out after {self.timeout_seconds}s: {method} {path}") from e
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"ERPNext {method} {path} connection failed: {e}")
            raise AdapterError(f"Connection failed: {e}") from e

        status = response.status_code
        if status == 404 and allow_not_found:
            return None
        if status in (401, 403):
            self._authenticated = False
            logger.error(f"ERPNext rejected credentials ({status}) for {method} {path}")
            raise AdapterError(f"Authentication failed ({status})", status_code=status)
        if status == 429 or status >= 500:
            logger.error(f"ERPNext {method} {path} failed with {status}")
            raise AdapterError(f"Upstream error {status}: {_error_message(response)}", status_code=status)
        if status >= 400:
            logger.error(f"ERPNext rejected {method} {path} ({status}): {_error_message(response)}")
            raise RequestRejected(f"Rejected ({status}): {_error_message(response)}", status_code=status)

        return response

    def _data(self, response: requests.Response, what: str) -> Any:
        """Unwrap the Frappe `data` envelope."""
        try:
            body = response.json()
        except ValueError as e:
            raise MalformedPayload(f"ERPNext returned invalid JSON for {what}") from e

        if isinstance(body, dict) and "data" in body:
            return body["data"]
        if isinstance(body, dict):
            return body
        raise MalformedPayload(f"ERPNext returned {type(body).__name__} for {what}, expected an object")

    def _list(self, response: requests.Response, what: str) -> list[dict[str, Any]]:
        rows = self._data(response, what)
        if not isinstance(rows, list):
            raise MalformedPayload(f"ERPNext returned {type(rows).__name__} for {what}, expected a list")
        return rows

    # =========================================================================
    # AUTHENTICATION
    # =========================================================================

    def authenticate(self) -> bool:
        try:
            self._request("GET", "/api/method/frappe.auth.get_logged_user")
        except (AdapterError, RequestRejected) as e:
            logger.error(f"ERPNext authentication failed: {e}")
            self._authenticated = False
            return False

        self._authenticated = True
        return True

    def is_authenticated(self) -> bool:
        return self._authenticated

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    def get_customer(self, customer_id: str) -> Customer | None:
        response = self._request(
            "GET", f"/api/resource/Customer/{_segment(customer_id)}", allow_not_found=True
        )
        if response is None:
            return None
        return normalize_customer(self._data(response, f"customer {customer_id}"), PayloadFormat.ERPNEXT)

    def get_customer_balance(self, customer_id: str) -> Decimal:
        customer = self.get_customer(customer_id)
        return customer.balance if customer else Decimal("0")

    def search_customers(self, query: str) -> list[Customer]:
        response = self._request(
            "GET",
            "/api/resource/Customer",
            params={
                "fields": json.dumps(_CUSTOMER_LIST_FIELDS),
                "filters": json.dumps([["customer_name", "like", f"%{query}%"]]),
                "limit_page_length": _SEARCH_PAGE_LENGTH,
            },
        )
        rows = self._list(response, "customer search")
        return [normalize_customer(row, PayloadFormat.ERPNEXT) for row in rows]

    def sync_customer_data(self, customer_id: str) -> bool:
        return self.get_customer(customer_id) is not None

    # =========================================================================
    # INVOICES
    # =========================================================================

    def get_customer_invoices(
        self, customer_id: str, filters: dict[str, Any] | None = None
    ) -> list[Invoice]:
        filters = filters or {}
        erp_filters: list[list[Any]] = [["customer", "=", customer_id]]
        if filters.get("status"):
            erp_filters.append(_status_filter(filters["status"]))

        response = self._request(
            "GET",
            f"/api/resource/{_segment('Sales Invoice')}",
            params={
                "fields": json.dumps(["*"]),
                "filters": json.dumps(erp_filters),
                "limit_page_length": filters.get("limit", _DEFAULT_INVOICE_LIMIT),
                "order_by": "posting_date desc",
            },
        )
        rows = self._list(response, f"invoices of {customer_id}")
        return [normalize_invoice(row, PayloadFormat.ERPNEXT) for row in rows]

    def get_invoice(self, invoice_id: str) -> Invoice | None:
        response = self._request(
            "GET",
            f"/api/resource/{_segment('Sales Invoice')}/{_segment(invoice_id)}",
            allow_not_found=True,
        )
        if response is None:
            return None
        return normalize_invoice(self._data(response, f"invoice {invoice_id}"), PayloadFormat.ERPNEXT)

    def get_invoice_pdf(self, invoice_id: str) -> bytes | None:
        response = self._request(
            "GET",
            "/api/method/frappe.utils.print_format.download_pdf",
            params={"doctype": "Sales Invoice", "name": invoice_id, "format": "Standard"},
            allow_not_found=True,
        )
        if response is None:
            return None
        return response.content

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    def create_payment(self, payment: Payment) -> bool:
        posting_date = payment.payment_date.isoformat()
        amount = float(payment.amount)

        response = self._request(
            "POST",
            f"/api/resource/{_segment('Payment Entry')}",
            json_body={
                "payment_type": "Receive",
                "party_type": "Customer",
                "party": payment.customer_id,
                "paid_amount": amount,
                "received_amount": amount,
                "posting_date": posting_date,
                "reference_no": payment.reference,
                "reference_date": posting_date,
                "mode_of_payment": payment.payment_method,
                "references": [
                    {
                        "reference_doctype": "Sales Invoice",
                        "reference_name": payment.invoice_id,
                        "allocated_amount": amount,
                    },
                ],
            },
        )
        return response.status_code in (200, 201)

    def get_payment_status(self, payment_id: str) -> str | None:
        response = self._request(
            "GET",
            f"/api/resource/{_segment('Payment Entry')}/{_segment(payment_id)}",
            allow_not_found=True,
        )
        if response is None:
            return None

        entry = self._data(response, f"payment entry {payment_id}")
        if not isinstance(entry, Mapping):
            raise MalformedPayload(
                f"ERPNext returned {type(entry).__name__} for payment entry {payment_id}, expected an object"
            )
        docstatus = entry.get("docstatus")
        if docstatus is None:
            return None
        try:
            return _DOCSTATUS[int(docstatus)]
        except (KeyError, TypeError, ValueError):
            raise MalformedPayload(f"payment entry {payment_id} has unexpected docstatus {docstatus!r}")

    def get_payment_history(self, customer_id: str) -> list[Payment]:
        response = self._request(
            "GET",
            f"/api/resource/{_segment('Payment Entry')}",
            params={
                "fields": json.dumps(["*"]),
                "filters": json.dumps([
                    ["party", "=", customer_id],
                    ["payment_type", "=", "Receive"],
                ]),
                "order_by": "posting_date desc",
            },
        )
        rows = self._list(response, f"payment history of {customer_id}")
        return [
            normalize_payment(row, PayloadFormat.ERPNEXT, customer_id=customer_id)
            for row in rows
        ]


def _segment(value: str) -> str:
    """Percent-encode one URL path segment (doctype names contain spaces)."""
    return quote(str(value), safe="")


def _error_message(response: requests.Response) -> str:
    """Best-effort error text from a Frappe error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("exception") or body.get("exc_type") or body)[:200]
    return str(body)[:200]

"""ERP integration layer: records, normalization, adapters, registry and cache."""

from erp.exceptions import (
    ERPError,
    AdapterError,
    RequestRejected,
    MalformedPayload,
    UnknownProvider,
    AttemptsExhausted,
)
from erp.models import (
    Customer,
    CustomerStatus,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
)
from erp.normalizer import (
    PayloadFormat,
    map_invoice_status,
    normalize_customer,
    normalize_invoice,
    normalize_payment,
)
from erp.provider import Provider
from erp.config import ERPConfig, ERPNextSettings
from erp.adapters import ERPAdapter, ERPNextAdapter, MockAdapter
from erp.registry import ProviderRegistry
from erp.cache import (
    ReadThroughCache,
    MemoryCache,
    ValkeyCache,
    customer_key,
    invoice_key,
    invoices_key,
    invoices_prefix,
    filters_hash,
)

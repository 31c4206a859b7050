"""ERP adapter variants."""

from erp.adapters.base import ERPAdapter
from erp.adapters.erpnext import ERPNextAdapter
from erp.adapters.mock import MockAdapter

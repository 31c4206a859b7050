"""
Customer service: cached reads of ERP customer records.

Customer lookups go through the read-through cache under customer:<id>.
The ERP stays authoritative; the cache only saves round trips.
"""

import logging
from decimal import Decimal

from erp.cache import DEFAULT_TTL_SECONDS, ReadThroughCache, customer_key
from erp.models import Customer
from erp.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class CustomerService:
    """Service for customer reads."""

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: ReadThroughCache,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self.registry = registry
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def get_customer(self, customer_id: str) -> Customer | None:
        """
        Get customer by ERP id, from cache when fresh.

        Args:
            customer_id: ERP customer id

        Returns:
            Customer if the ERP knows it, None otherwise.

        Raises:
            AdapterError: ERP unreachable on a cache miss
        """
        cached = self.cache.remember(
            customer_key(customer_id),
            self.ttl_seconds,
            lambda: self._fetch(customer_id),
        )
        if cached is None:
            return None
        return Customer.model_validate(cached)

    def get_customer_balance(self, customer_id: str) -> Decimal:
        """Outstanding balance; zero for customers the ERP doesn't know."""
        customer = self.get_customer(customer_id)
        return customer.balance if customer else Decimal("0")

    def search_customers(self, query: str) -> list[Customer]:
        """Search the ERP by customer name. Never cached."""
        return self.registry.driver().search_customers(query)

    def refresh_customer(self, customer_id: str) -> Customer | None:
        """
        Fetch the customer from the ERP and overwrite the cache entry.

        A customer the ERP no longer knows is dropped from the cache.
        """
        data = self._fetch(customer_id)
        if data is None:
            logger.warning(f"Customer {customer_id} not found during refresh")
            self.cache.forget(customer_key(customer_id))
            return None

        self.cache.put(customer_key(customer_id), data, self.ttl_seconds)
        return Customer.model_validate(data)

    def forget_customer(self, customer_id: str) -> None:
        """Drop the cached customer so the next read hits the ERP."""
        self.cache.forget(customer_key(customer_id))

    def _fetch(self, customer_id: str) -> dict | None:
        customer = self.registry.driver().get_customer(customer_id)
        if customer is None:
            return None
        return customer.model_dump(mode="json")

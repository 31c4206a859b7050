"""
Provider registry: resolves a provider to one adapter instance.

Build one registry at startup and pass it to services and the job runner.
Adapters are constructed lazily, once per provider, for the registry's
lifetime. The factory table decides what each provider builds, so tests
inject doubles instead of patching globals.
"""

import logging
import threading
from typing import Callable

from erp.adapters.base import ERPAdapter
from erp.adapters.erpnext import ERPNextAdapter
from erp.adapters.mock import MockAdapter
from erp.config import ERPConfig
from erp.provider import Provider

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[ERPConfig], ERPAdapter]


def build_erpnext_adapter(config: ERPConfig) -> ERPNextAdapter:
    """
    Construct the live ERPNext adapter.

    URL, credentials and timeout are read once here. Credentials missing from
    configuration are fetched from Vault.

    Raises:
        ValueError: If the URL is not configured
    """
    settings = config.erpnext
    if not settings.url:
        raise ValueError("ERPNEXT_URL is required for the erpnext provider")

    api_key, api_secret = settings.api_key, settings.api_secret
    if not api_key or not api_secret:
        from clients.vault_client import get_erp_credentials

        credentials = get_erp_credentials()
        api_key = api_key or credentials["api_key"]
        api_secret = api_secret or credentials["api_secret"]

    return ERPNextAdapter(
        url=settings.url,
        api_key=api_key,
        api_secret=api_secret,
        timeout_seconds=settings.timeout_seconds,
    )


def build_mock_adapter(config: ERPConfig) -> MockAdapter:
    return MockAdapter()


DEFAULT_FACTORIES: dict[Provider, AdapterFactory] = {
    Provider.ERPNEXT: build_erpnext_adapter,
    Provider.MOCK: build_mock_adapter,
}


class ProviderRegistry:
    """
    Lazily constructed, cached adapters keyed by provider.

    Usage:
        registry = ProviderRegistry(ERPConfig.from_env())
        erp = registry.driver()          # configured default
        mock = registry.driver("mock")   # explicit provider
    """

    def __init__(
        self,
        config: ERPConfig,
        factories: dict[Provider, AdapterFactory] | None = None,
    ):
        self._config = config
        self._factories = dict(DEFAULT_FACTORIES)
        if factories:
            self._factories.update(factories)
        self._adapters: dict[Provider, ERPAdapter] = {}
        self._lock = threading.Lock()

    @property
    def default_provider(self) -> Provider:
        return self._config.provider

    def driver(self, name: str | Provider | None = None) -> ERPAdapter:
        """
        Adapter for `name`, or the configured default.

        Raises:
            UnknownProvider: name matches no provider (before any construction)
        """
        provider = Provider.parse(name) if name is not None else self._config.provider

        adapter = self._adapters.get(provider)
        if adapter is not None:
            return adapter

        with self._lock:
            # Another thread may have built it while we waited
            adapter = self._adapters.get(provider)
            if adapter is None:
                adapter = self._factories[provider](self._config)
                self._adapters[provider] = adapter
                logger.info(f"ERP adapter constructed: {provider.value}")
        return adapter

    def reset(self, name: str | Provider | None = None) -> None:
        """
        Drop cached adapters so the next driver() call rebuilds them.

        Use after credential rotation. With no name, drops all.
        """
        with self._lock:
            if name is None:
                self._adapters.clear()
            else:
                self._adapters.pop(Provider.parse(name), None)

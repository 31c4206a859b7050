"""Tests for ProviderRegistry."""

import threading
from unittest.mock import patch

import pytest
import responses

from erp.adapters.erpnext import ERPNextAdapter
from erp.adapters.mock import MockAdapter
from erp.config import ERPConfig, ERPNextSettings
from erp.exceptions import UnknownProvider
from erp.provider import Provider
from erp.registry import ProviderRegistry, build_erpnext_adapter


class TestProviderParse:

    def test_case_insensitive(self):
        assert Provider.parse("ERPNext") == Provider.ERPNEXT
        assert Provider.parse(" mock ") == Provider.MOCK

    def test_passes_enum_through(self):
        assert Provider.parse(Provider.MOCK) is Provider.MOCK

    def test_unknown_raises(self):
        with pytest.raises(UnknownProvider) as exc_info:
            Provider.parse("sap")
        assert exc_info.value.name == "sap"


class TestDriver:

    def test_same_instance_twice(self):
        registry = ProviderRegistry(ERPConfig())
        assert registry.driver("mock") is registry.driver("mock")

    def test_default_provider(self):
        registry = ProviderRegistry(ERPConfig(provider=Provider.MOCK))
        assert isinstance(registry.driver(), MockAdapter)
        assert registry.driver() is registry.driver("mock")

    @responses.activate
    def test_unknown_provider_fails_without_network(self):
        registry = ProviderRegistry(ERPConfig())

        with pytest.raises(UnknownProvider):
            registry.driver("unknown")

        assert len(responses.calls) == 0

    def test_unknown_provider_constructs_nothing(self):
        built = []
        registry = ProviderRegistry(
            ERPConfig(), factories={Provider.MOCK: lambda config: built.append(1) or MockAdapter()}
        )

        with pytest.raises(UnknownProvider):
            registry.driver("unknown")

        assert built == []

    def test_injected_factory(self):
        double = MockAdapter()
        registry = ProviderRegistry(ERPConfig(), factories={Provider.MOCK: lambda config: double})
        assert registry.driver() is double

    def test_concurrent_first_calls_build_once(self):
        built = []
        barrier = threading.Barrier(8)

        def factory(config):
            built.append(1)
            return MockAdapter()

        registry = ProviderRegistry(ERPConfig(), factories={Provider.MOCK: factory})
        results = []

        def resolve():
            barrier.wait()
            results.append(registry.driver("mock"))

        threads = [threading.Thread(target=resolve) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(built) == 1
        assert all(adapter is results[0] for adapter in results)

    def test_reset_rebuilds(self):
        registry = ProviderRegistry(ERPConfig())
        first = registry.driver("mock")

        registry.reset("mock")

        assert registry.driver("mock") is not first

    def test_reset_all(self):
        registry = ProviderRegistry(ERPConfig())
        first = registry.driver()

        registry.reset()

        assert registry.driver() is not first


class TestBuildERPNextAdapter:

    def test_uses_configured_credentials(self):
        config = ERPConfig(
            provider=Provider.ERPNEXT,
            erpnext=ERPNextSettings(
                url="https://erp.example.com", api_key="k", api_secret="s", timeout_seconds=12
            ),
        )

        adapter = build_erpnext_adapter(config)

        assert isinstance(adapter, ERPNextAdapter)
        assert adapter.base_url == "https://erp.example.com"
        assert adapter.timeout_seconds == 12

    def test_missing_url_raises(self):
        with pytest.raises(ValueError, match="ERPNEXT_URL"):
            build_erpnext_adapter(ERPConfig(provider=Provider.ERPNEXT))

    def test_missing_credentials_come_from_vault(self):
        config = ERPConfig(
            provider=Provider.ERPNEXT,
            erpnext=ERPNextSettings(url="https://erp.example.com"),
        )

        with patch(
            "clients.vault_client.get_erp_credentials",
            return_value={"api_key": "vk", "api_secret": "vs"},
        ) as credentials:
            adapter = build_erpnext_adapter(config)

        credentials.assert_called_once()
        assert adapter._session.headers["Authorization"] == "token vk:vs"

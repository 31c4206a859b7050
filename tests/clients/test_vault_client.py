"""Tests for VaultClient - HashiCorp Vault secrets management.

hvac.Client is patched; no Vault server is needed.
"""

from unittest.mock import MagicMock, patch

import pytest
from hvac.exceptions import Forbidden, InvalidPath

from clients.vault_client import VaultClient, get_erp_credentials, get_valkey_url


@pytest.fixture
def vault_env(monkeypatch):
    monkeypatch.setenv("VAULT_ADDR", "https://vault.example.com")
    monkeypatch.setenv("VAULT_ROLE_ID", "role")
    monkeypatch.setenv("VAULT_SECRET_ID", "secret")
    monkeypatch.delenv("VAULT_NAMESPACE", raising=False)
    return monkeypatch


@pytest.fixture
def hvac_client(vault_env):
    """Patched hvac.Client that authenticates and serves portal/* secrets."""
    secrets = {
        "portal/erp": {"api_key": "vault-key", "api_secret": "vault-secret"},
        "portal/valkey": {"url": "redis://valkey:6379/0"},
    }

    def read_secret_version(path, raise_on_deleted_version=True):
        if path not in secrets:
            raise InvalidPath()
        return {"data": {"data": secrets[path]}}

    client = MagicMock()
    client.auth.approle.login.return_value = {"auth": {"client_token": "token"}}
    client.is_authenticated.return_value = True
    client.secrets.kv.v2.read_secret_version.side_effect = read_secret_version

    with patch("clients.vault_client.hvac.Client", return_value=client) as factory:
        factory.instance = client
        yield factory


class TestVaultClientInit:
    """Initialization and authentication."""

    def test_missing_vault_addr_raises(self, monkeypatch):
        """VAULT_ADDR required."""
        monkeypatch.delenv("VAULT_ADDR", raising=False)
        with pytest.raises(ValueError, match="VAULT_ADDR"):
            VaultClient()

    def test_missing_approle_credentials_raises(self, vault_env):
        """VAULT_ROLE_ID and VAULT_SECRET_ID required."""
        vault_env.delenv("VAULT_SECRET_ID")
        with pytest.raises(ValueError, match="VAULT_ROLE_ID"):
            VaultClient()

    def test_invalid_approle_raises_permission_error(self, hvac_client):
        """Invalid AppRole credentials fail authentication."""
        hvac_client.instance.auth.approle.login.side_effect = Forbidden("denied")
        with pytest.raises(PermissionError, match="authentication"):
            VaultClient()

    def test_valid_approle_authenticates(self, hvac_client):
        client = VaultClient()

        hvac_client.assert_called_once_with(url="https://vault.example.com")
        hvac_client.instance.auth.approle.login.assert_called_once_with(
            role_id="role", secret_id="secret"
        )
        assert client.client.token == "token"

    def test_namespace_passed_through(self, hvac_client, vault_env):
        vault_env.setenv("VAULT_NAMESPACE", "heating")
        VaultClient()
        hvac_client.assert_called_once_with(url="https://vault.example.com", namespace="heating")


class TestGetSecret:
    """Secret retrieval - paths automatically scoped to portal/."""

    def test_returns_field_value(self, hvac_client):
        assert VaultClient().get_secret("erp", "api_key") == "vault-key"

    def test_missing_path_raises(self, hvac_client):
        with pytest.raises(PermissionError, match="portal/nonexistent"):
            VaultClient().get_secret("nonexistent", "field")

    def test_missing_field_raises_keyerror(self, hvac_client):
        with pytest.raises(KeyError, match="not found"):
            VaultClient().get_secret("erp", "nonexistent_field")


class TestConvenienceFunctions:
    """Module-level convenience functions."""

    def test_get_erp_credentials(self, hvac_client):
        assert get_erp_credentials() == {"api_key": "vault-key", "api_secret": "vault-secret"}

    def test_get_valkey_url_returns_redis(self, hvac_client):
        assert get_valkey_url().startswith("redis://")

    def test_secrets_are_cached(self, hvac_client):
        get_valkey_url()
        get_valkey_url()

        assert hvac_client.instance.secrets.kv.v2.read_secret_version.call_count == 1

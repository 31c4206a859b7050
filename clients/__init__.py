# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    get_valkey_url,
    get_erp_credentials,
)
from clients.valkey_client import ValkeyClient

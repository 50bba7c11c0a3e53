"""Tests for VaultClient - HashiCorp Vault secrets management (hvac patched)."""

from unittest.mock import patch

import pytest
from hvac.exceptions import Forbidden, InvalidPath

import clients.vault_client as vault_module
from clients.vault_client import VaultClient, get_twilio_config


@pytest.fixture
def vault_env(monkeypatch):
    monkeypatch.setenv("VAULT_ADDR", "https://vault.example.com")
    monkeypatch.setenv("VAULT_ROLE_ID", "role")
    monkeypatch.setenv("VAULT_SECRET_ID", "secret")
    monkeypatch.delenv("VAULT_NAMESPACE", raising=False)


@pytest.fixture
def hvac_client(vault_env):
    with patch("clients.vault_client.hvac.Client") as client_cls:
        client = client_cls.return_value
        client.auth.approle.login.return_value = {"auth": {"client_token": "tok"}}
        client.is_authenticated.return_value = True
        yield client


@pytest.fixture(autouse=True)
def reset_singleton():
    vault_module._vault_client_instance = None
    vault_module._secret_cache.clear()
    yield
    vault_module._vault_client_instance = None
    vault_module._secret_cache.clear()


class TestVaultClientInit:
    """Initialization and authentication."""

    def test_missing_vault_addr_raises(self, monkeypatch):
        """VAULT_ADDR required."""
        monkeypatch.delenv("VAULT_ADDR", raising=False)
        with pytest.raises(ValueError, match="VAULT_ADDR"):
            VaultClient()

    def test_missing_approle_credentials_raises(self, vault_env, monkeypatch):
        """VAULT_ROLE_ID and VAULT_SECRET_ID required."""
        monkeypatch.delenv("VAULT_ROLE_ID")
        with pytest.raises(ValueError, match="VAULT_ROLE_ID"):
            VaultClient()

    def test_login_failure_raises_permission_error(self, hvac_client):
        hvac_client.auth.approle.login.side_effect = Exception("invalid role_id")
        with pytest.raises(PermissionError, match="AppRole"):
            VaultClient()

    def test_authenticates(self, hvac_client):
        VaultClient()
        assert hvac_client.token == "tok"


class TestGetSecret:

    def test_path_is_scoped(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.return_value = {"data": {"data": {"url": "postgres://x"}}}

        assert VaultClient().get_secret("database", "url") == "postgres://x"
        assert hvac_client.secrets.kv.v2.read_secret_version.call_args.kwargs["path"] == "billing/database"

    def test_missing_field_raises_key_error(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.return_value = {"data": {"data": {"url": "x"}}}
        with pytest.raises(KeyError, match="password"):
            VaultClient().get_secret("database", "password")

    def test_missing_path_raises_permission_error(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.side_effect = InvalidPath()
        with pytest.raises(PermissionError, match="not found"):
            VaultClient().get_secret("nope", "url")

    def test_forbidden_raises_permission_error(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.side_effect = Forbidden()
        with pytest.raises(PermissionError, match="Access denied"):
            VaultClient().get_secret("stripe", "secret_key")


class TestConvenienceFunctions:

    def test_config_is_cached(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.return_value = {
            "data": {"data": {"account_sid": "AC1", "auth_token": "t", "from_number": "+15550001111"}}
        }

        first = get_twilio_config()
        second = get_twilio_config()

        assert first == second == {"account_sid": "AC1", "auth_token": "t", "from_number": "+15550001111"}
        assert hvac_client.secrets.kv.v2.read_secret_version.call_count == 3

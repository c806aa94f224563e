"""
Unit tests for vault_client module.
"""

import pytest
from unittest.mock import MagicMock, patch
from hvac.exceptions import InvalidPath, VaultError

from sync_audit.utils.vault_client import (
    PRIMARY_STORE_CREDENTIALS_PATH,
    SEARCH_CREDENTIALS_PATH,
    VaultClient,
)


def secret_response(data):
    return {"data": {"data": data}}


class TestVaultClient:
    """Test suite for VaultClient class."""

    @pytest.fixture
    def mock_hvac_client(self):
        """Mock hvac.Client for testing."""
        with patch('sync_audit.utils.vault_client.hvac.Client') as mock:
            client_instance = MagicMock()
            client_instance.is_authenticated.return_value = True
            mock.return_value = client_instance
            yield mock

    @pytest.fixture
    def client(self, mock_hvac_client):
        return VaultClient(vault_url="http://test:8200", vault_token="test-token")

    def test_init_with_parameters(self, mock_hvac_client):
        """Test VaultClient initialization with explicit parameters."""
        client = VaultClient(vault_url="http://test-vault:8200", vault_token="test-token", verify_ssl=False)

        assert client.vault_url == "http://test-vault:8200"
        assert client.mount_point == "secret"
        mock_hvac_client.assert_called_once_with(
            url="http://test-vault:8200", token="test-token", verify=False
        )

    def test_init_with_env_vars(self, mock_hvac_client, monkeypatch):
        """Test VaultClient initialization with environment variables."""
        monkeypatch.setenv("VAULT_ADDR", "http://env-vault:8200")
        monkeypatch.setenv("VAULT_TOKEN", "env-token")

        client = VaultClient()

        assert client.vault_url == "http://env-vault:8200"
        assert client.vault_token == "env-token"

    def test_init_missing_url_raises_error(self, monkeypatch):
        """Test that missing Vault URL raises ValueError."""
        monkeypatch.delenv("VAULT_ADDR", raising=False)
        with pytest.raises(ValueError, match="Vault URL must be provided"):
            VaultClient(vault_token="test-token")

    def test_init_missing_token_raises_error(self, monkeypatch):
        """Test that missing Vault token raises ValueError."""
        monkeypatch.delenv("VAULT_TOKEN", raising=False)
        with pytest.raises(ValueError, match="Vault token must be provided"):
            VaultClient(vault_url="http://test:8200")

    def test_init_authentication_failure(self, mock_hvac_client):
        """Test that authentication failure raises VaultError."""
        mock_hvac_client.return_value.is_authenticated.return_value = False

        with pytest.raises(VaultError, match="Failed to authenticate"):
            VaultClient(vault_url="http://test:8200", vault_token="bad-token")

    def test_get_secret_not_found(self, mock_hvac_client, client):
        """Test secret retrieval with invalid path."""
        mock_hvac_client.return_value.secrets.kv.v2.read_secret_version.side_effect = InvalidPath("Not found")

        with pytest.raises(InvalidPath):
            client.get_secret("nonexistent")

    def test_get_secret_empty_response(self, mock_hvac_client, client):
        """Test secret retrieval with empty response."""
        mock_hvac_client.return_value.secrets.kv.v2.read_secret_version.return_value = {}

        with pytest.raises(InvalidPath, match="No data found"):
            client.get_secret("empty-secret")

    def test_get_secret_unexpected_error_wrapped(self, mock_hvac_client, client):
        """Test that transport errors surface as VaultError."""
        mock_hvac_client.return_value.secrets.kv.v2.read_secret_version.side_effect = ConnectionError("refused")

        with pytest.raises(VaultError, match="Secret retrieval failed"):
            client.get_secret("search-credentials")

    def test_get_search_credentials(self, mock_hvac_client, client):
        """Test retrieving search index credentials."""
        read = mock_hvac_client.return_value.secrets.kv.v2.read_secret_version
        read.return_value = secret_response({"username": "elastic", "password": "changeme"})

        creds = client.get_search_credentials()

        assert creds == {"username": "elastic", "password": "changeme"}
        read.assert_called_once_with(path=SEARCH_CREDENTIALS_PATH, mount_point="secret")

    def test_get_primary_store_credentials(self, mock_hvac_client, client):
        """Test retrieving primary database credentials."""
        read = mock_hvac_client.return_value.secrets.kv.v2.read_secret_version
        read.return_value = secret_response({"host": "db", "user": "wp", "password": "pw"})

        creds = client.get_primary_store_credentials()

        assert creds["user"] == "wp"
        read.assert_called_once_with(path=PRIMARY_STORE_CREDENTIALS_PATH, mount_point="secret")

    def test_health_check_healthy(self, mock_hvac_client, client):
        """Test health check of an unsealed, authenticated Vault."""
        mock_hvac_client.return_value.sys.read_health_status.return_value = {"sealed": False}

        status = client.health_check()

        assert status
        assert status.authenticated is True
        assert status.error is None

    def test_health_check_sealed(self, mock_hvac_client, client):
        """Test health check of a sealed Vault."""
        mock_hvac_client.return_value.sys.read_health_status.return_value = {"sealed": True}

        status = client.health_check()

        assert not status
        assert status.error == "Vault is sealed"

    def test_health_check_exception(self, mock_hvac_client, client):
        """Test health check when Vault is unreachable."""
        mock_hvac_client.return_value.sys.read_health_status.side_effect = Exception("Connection failed")

        status = client.health_check()

        assert status.healthy is False
        assert "Connection failed" in status.error

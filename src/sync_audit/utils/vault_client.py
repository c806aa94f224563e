"""
Vault Client for Sync Auditing

Reads search index and primary database credentials from HashiCorp Vault
(KV v2) so they never have to live in environment variables.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import hvac
from hvac.exceptions import InvalidPath, VaultError

logger = logging.getLogger(__name__)

SEARCH_CREDENTIALS_PATH = "search-credentials"
PRIMARY_STORE_CREDENTIALS_PATH = "primary-db-credentials"


@dataclass
class HealthStatus:
    healthy: bool
    authenticated: bool
    sealed: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.healthy


class VaultClient:
    """Thin wrapper over ``hvac.Client`` for the secrets this tool needs."""

    def __init__(
        self,
        vault_url: Optional[str] = None,
        vault_token: Optional[str] = None,
        verify_ssl: bool = True,
        mount_point: str = "secret"
    ):
        """
        Connect and authenticate.

        Args:
            vault_url: Vault server URL (defaults to VAULT_ADDR)
            vault_token: Vault token (defaults to VAULT_TOKEN)
            verify_ssl: Whether to verify TLS certificates
            mount_point: KV v2 mount point

        Raises:
            ValueError: If the URL or token is missing
            VaultError: If the client cannot authenticate
        """
        self.vault_url = vault_url or os.getenv("VAULT_ADDR")
        self.vault_token = vault_token or os.getenv("VAULT_TOKEN")
        self.mount_point = mount_point

        if not self.vault_url:
            raise ValueError("Vault URL must be provided via parameter or VAULT_ADDR environment variable")
        if not self.vault_token:
            raise ValueError("Vault token must be provided via parameter or VAULT_TOKEN environment variable")

        self.client = hvac.Client(url=self.vault_url, token=self.vault_token, verify=verify_ssl)
        if not self.client.is_authenticated():
            raise VaultError(f"Failed to authenticate with Vault at {self.vault_url}")

        logger.info(f"Connected to Vault at {self.vault_url}")

    def get_secret(self, path: str) -> Dict[str, Any]:
        """
        Read the latest version of a secret.

        Raises:
            InvalidPath: If nothing is stored at the path
            VaultError: If the read fails
        """
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=path,
                mount_point=self.mount_point
            )
        except InvalidPath:
            logger.error(f"Secret not found at path: {path}")
            raise
        except VaultError:
            raise
        except Exception as e:
            raise VaultError(f"Secret retrieval failed for {path}: {e}")

        if not response or "data" not in response:
            raise InvalidPath(f"No data found at path: {path}")

        logger.debug(f"Retrieved secret from {path}")
        return response["data"].get("data", {})

    def get_search_credentials(self) -> Dict[str, Any]:
        """Credentials for the search index (``username``/``password`` or ``api_key``)."""
        return self.get_secret(SEARCH_CREDENTIALS_PATH)

    def get_primary_store_credentials(self) -> Dict[str, Any]:
        """Connection parameters for the primary database (``user``, ``password``, ...)."""
        return self.get_secret(PRIMARY_STORE_CREDENTIALS_PATH)

    def health_check(self) -> HealthStatus:
        try:
            if not self.client.is_authenticated():
                return HealthStatus(healthy=False, authenticated=False, sealed=True, error="Not authenticated")

            sealed = self.client.sys.read_health_status(method="GET").get("sealed", True)
        except Exception as e:
            logger.error(f"Vault health check failed: {e}")
            return HealthStatus(healthy=False, authenticated=False, sealed=True, error=str(e))

        return HealthStatus(
            healthy=not sealed,
            authenticated=True,
            sealed=sealed,
            error="Vault is sealed" if sealed else None
        )

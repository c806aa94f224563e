"""
Settings for sync audit runs, read from the environment.

Credentials may instead be read from Vault when ``USE_VAULT=true``; see
``sync_audit.utils.vault_client``.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from sync_audit.reconciliation.dispatcher import DEFAULT_REPAIR_CHUNK_SIZE, FAST_SYNC_SETTINGS
from sync_audit.reconciliation.orchestrator import DEFAULT_BATCH_SIZE


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    return env.get(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class AuditSettings:
    search_url: str = "http://localhost:9200"
    search_index: str = "posts"
    search_timeout: float = 30.0
    search_username: Optional[str] = None
    search_password: Optional[str] = None
    search_index_pattern: Optional[str] = None

    primary_db_host: str = "localhost"
    primary_db_port: int = 5432
    primary_db_name: str = "wordpress"
    primary_db_user: str = "postgres"
    primary_db_password: str = "postgres"
    table_prefix: str = "wp_"
    public_post_types: List[str] = field(default_factory=lambda: ["post", "page"])

    batch_size: int = DEFAULT_BATCH_SIZE
    repair_chunk_size: int = DEFAULT_REPAIR_CHUNK_SIZE
    replication_override: Dict[str, Any] = field(default_factory=lambda: dict(FAST_SYNC_SETTINGS))

    log_level: str = "INFO"
    json_logging: bool = False
    use_vault: bool = False

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError("AUDIT_BATCH_SIZE must be positive")
        if self.repair_chunk_size < 1:
            raise ValueError("REPAIR_CHUNK_SIZE must be positive")
        if self.search_timeout <= 0:
            raise ValueError("SEARCH_TIMEOUT must be positive")
        if not self.public_post_types:
            raise ValueError("PUBLIC_POST_TYPES must name at least one type")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AuditSettings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read instead of ``os.environ``

        Raises:
            ValueError: If a value is malformed or out of range
        """
        env = os.environ if env is None else env

        types = [t.strip() for t in env.get("PUBLIC_POST_TYPES", "post,page").split(",") if t.strip()]
        try:
            timeout = float(env.get("SEARCH_TIMEOUT", "30"))
        except ValueError:
            raise ValueError(f"SEARCH_TIMEOUT must be a number, got {env.get('SEARCH_TIMEOUT')!r}")

        return cls(
            search_url=env.get("SEARCH_URL", "http://localhost:9200"),
            search_index=env.get("SEARCH_INDEX", "posts"),
            search_timeout=timeout,
            search_username=env.get("SEARCH_USERNAME"),
            search_password=env.get("SEARCH_PASSWORD"),
            search_index_pattern=env.get("SEARCH_INDEX_PATTERN") or None,
            primary_db_host=env.get("PRIMARY_DB_HOST", "localhost"),
            primary_db_port=_env_int(env, "PRIMARY_DB_PORT", 5432),
            primary_db_name=env.get("PRIMARY_DB_NAME", "wordpress"),
            primary_db_user=env.get("PRIMARY_DB_USER", "postgres"),
            primary_db_password=env.get("PRIMARY_DB_PASSWORD", "postgres"),
            table_prefix=env.get("PRIMARY_TABLE_PREFIX", "wp_"),
            public_post_types=types,
            batch_size=_env_int(env, "AUDIT_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            repair_chunk_size=_env_int(env, "REPAIR_CHUNK_SIZE", DEFAULT_REPAIR_CHUNK_SIZE),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            json_logging=_env_bool(env, "JSON_LOGGING"),
            use_vault=_env_bool(env, "USE_VAULT"),
        )

    def with_vault_credentials(self, vault) -> "AuditSettings":
        """
        Overlay credentials read from Vault.

        Args:
            vault: A connected ``VaultClient``
        """
        search = vault.get_search_credentials()
        primary = vault.get_primary_store_credentials()

        self.search_username = search.get("username", self.search_username)
        self.search_password = search.get("password", self.search_password)
        self.primary_db_host = primary.get("host", self.primary_db_host)
        self.primary_db_port = int(primary.get("port", self.primary_db_port))
        self.primary_db_name = primary.get("database", self.primary_db_name)
        self.primary_db_user = primary.get("user", self.primary_db_user)
        self.primary_db_password = primary.get("password", self.primary_db_password)
        return self

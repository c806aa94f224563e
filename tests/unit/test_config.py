"""
Unit tests for settings.
"""

from unittest.mock import Mock

import pytest

from sync_audit.config import AuditSettings
from sync_audit.reconciliation.dispatcher import FAST_SYNC_SETTINGS


class TestAuditSettings:
    """Test settings construction and validation."""

    def test_defaults(self):
        settings = AuditSettings.from_env({})

        assert settings.search_url == "http://localhost:9200"
        assert settings.public_post_types == ["post", "page"]
        assert settings.batch_size == 100
        assert settings.repair_chunk_size == 100
        assert settings.replication_override == FAST_SYNC_SETTINGS
        assert settings.use_vault is False

    def test_from_env(self):
        settings = AuditSettings.from_env({
            "SEARCH_URL": "https://search:9200",
            "SEARCH_INDEX": "site-posts",
            "SEARCH_INDEX_PATTERN": "site-{tenant_id}-posts",
            "SEARCH_TIMEOUT": "5",
            "PRIMARY_DB_PORT": "6432",
            "PUBLIC_POST_TYPES": "post, product ,",
            "AUDIT_BATCH_SIZE": "250",
            "LOG_LEVEL": "debug",
            "JSON_LOGGING": "true",
            "USE_VAULT": "1",
        })

        assert settings.search_index == "site-posts"
        assert settings.search_index_pattern == "site-{tenant_id}-posts"
        assert settings.search_timeout == 5.0
        assert settings.primary_db_port == 6432
        assert settings.public_post_types == ["post", "product"]
        assert settings.batch_size == 250
        assert settings.log_level == "DEBUG"
        assert settings.json_logging is True
        assert settings.use_vault is True

    def test_malformed_int(self):
        with pytest.raises(ValueError, match="AUDIT_BATCH_SIZE must be an integer"):
            AuditSettings.from_env({"AUDIT_BATCH_SIZE": "lots"})

    def test_malformed_timeout(self):
        with pytest.raises(ValueError, match="SEARCH_TIMEOUT"):
            AuditSettings.from_env({"SEARCH_TIMEOUT": "soon"})

    @pytest.mark.parametrize("env", [
        {"AUDIT_BATCH_SIZE": "0"},
        {"REPAIR_CHUNK_SIZE": "-1"},
        {"SEARCH_TIMEOUT": "0"},
        {"PUBLIC_POST_TYPES": " , "},
    ])
    def test_out_of_range(self, env):
        with pytest.raises(ValueError):
            AuditSettings.from_env(env)

    def test_with_vault_credentials(self):
        vault = Mock()
        vault.get_search_credentials.return_value = {"username": "elastic", "password": "s3cret"}
        vault.get_primary_store_credentials.return_value = {"host": "db.internal", "port": "5433", "user": "wp"}

        settings = AuditSettings.from_env({}).with_vault_credentials(vault)

        assert settings.search_username == "elastic"
        assert settings.search_password == "s3cret"
        assert settings.primary_db_host == "db.internal"
        assert settings.primary_db_port == 5433
        assert settings.primary_db_user == "wp"
        assert settings.primary_db_password == "postgres"

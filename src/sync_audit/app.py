"""
Audit tool assembly.

Builds the audit components from ``AuditSettings``: Vault credentials when
``USE_VAULT`` is set, logging, the search and primary store adapters, and
the dispatcher with the configured replication override.

Usage:
    tool = AuditTool.from_env(pipeline=replication_pipeline)
    report, repairs = tool.audit(fix=True)
    tool.close()
"""

import logging
from typing import Callable, List, Mapping, Optional, Tuple

from sync_audit.backends.postgres_store import PostgresPrimaryStore, PrefixTenantSwitcher
from sync_audit.backends.search_http import HttpSearchBackend
from sync_audit.config import AuditSettings
from sync_audit.monitoring.metrics import AuditMetrics
from sync_audit.reconciliation.auditor import Auditor
from sync_audit.reconciliation.dispatcher import RepairDispatcher
from sync_audit.reconciliation.fleet import FleetRunner
from sync_audit.reconciliation.interfaces import (
    PrimaryStore,
    ReplicationPipeline,
    SearchBackend,
    TenantSwitcher,
)
from sync_audit.reconciliation.models import AuditReport, FleetSummary, RecordFilter, RepairResult, TenantContext
from sync_audit.reconciliation.orchestrator import AuditOrchestrator
from sync_audit.reconciliation.service import SyncStatusService
from sync_audit.reconciliation.store_client import RecordStoreClient
from sync_audit.utils.logging_config import configure_logging
from sync_audit.utils.vault_client import VaultClient

logger = logging.getLogger(__name__)


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    vault_factory: Callable[[], VaultClient] = VaultClient
) -> AuditSettings:
    """
    Read settings from the environment and overlay Vault credentials if enabled.

    Raises:
        ValueError: If a setting is malformed
        VaultError: If Vault is enabled but unreachable
    """
    settings = AuditSettings.from_env(env)
    if settings.use_vault:
        logger.info("Loading credentials from Vault")
        settings.with_vault_credentials(vault_factory())
    return settings


class AuditTool:
    """Wires the audit core to concrete stores according to settings."""

    def __init__(
        self,
        settings: AuditSettings,
        pipeline: Optional[ReplicationPipeline] = None,
        primary_store: Optional[PrimaryStore] = None,
        search_backend: Optional[SearchBackend] = None,
        switcher: Optional[TenantSwitcher] = None,
        metrics: Optional[AuditMetrics] = None
    ):
        """
        Initialize the tool.

        Args:
            settings: Audit settings
            pipeline: Replication pipeline; repairs are disabled without one
            primary_store: Primary store (PostgreSQL from settings if not provided)
            search_backend: Search backend (HTTP from settings if not provided)
            switcher: Tenant switcher; a table-prefix switcher is built for
                the PostgreSQL store if not provided
            metrics: Metrics sink (a fresh AuditMetrics if not provided)
        """
        self.settings = settings
        self.metrics = metrics or AuditMetrics()

        self.search_backend = search_backend or HttpSearchBackend.from_settings(settings)
        self.primary_store = primary_store or PostgresPrimaryStore.from_settings(settings)

        if switcher is None and isinstance(self.primary_store, PostgresPrimaryStore):
            switcher = PrefixTenantSwitcher(
                self.primary_store,
                table_prefix=settings.table_prefix,
                search_backend=self.search_backend,
                index_pattern=settings.search_index_pattern
            )
        self.switcher = switcher

        self.store_client = RecordStoreClient(self.search_backend)
        self.auditor = Auditor(self.store_client)

        self.dispatcher = None
        if pipeline is not None:
            self.dispatcher = RepairDispatcher(
                pipeline,
                settings_override=settings.replication_override,
                metrics=self.metrics
            )

        self.orchestrator = AuditOrchestrator(
            self.primary_store,
            self.auditor,
            dispatcher=self.dispatcher,
            batch_size=settings.batch_size,
            metrics=self.metrics
        )
        self.fleet = FleetRunner(self.orchestrator, self.switcher) if self.switcher else None
        self.service = SyncStatusService(self.primary_store, self.store_client, self.auditor, self.dispatcher)

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        vault_factory: Callable[[], VaultClient] = VaultClient,
        **components
    ) -> "AuditTool":
        """Load settings (and Vault secrets), configure logging and build the tool."""
        settings = load_settings(env, vault_factory)
        configure_logging(settings.log_level, settings.json_logging)
        return cls(settings, **components)

    def audit(
        self,
        record_filter: Optional[RecordFilter] = None,
        tenant: Optional[TenantContext] = None,
        fix: bool = False
    ) -> Tuple[AuditReport, List[RepairResult]]:
        """
        Audit one tenant and optionally repair what failed.

        Repairs run in chunks of ``repair_chunk_size``.

        Raises:
            ValueError: If fix is requested without a replication pipeline
        """
        report = self.orchestrator.run(record_filter, tenant=tenant)

        repairs: List[RepairResult] = []
        if fix and report.failures:
            repairs = self.orchestrator.repair_failures(report, chunk_size=self.settings.repair_chunk_size)

        return report, repairs

    def audit_fleet(self, tenants=None, record_filter: Optional[RecordFilter] = None) -> FleetSummary:
        """
        Audit every tenant.

        Raises:
            ValueError: If no tenant switcher is available
        """
        if self.fleet is None:
            raise ValueError("Fleet audits need a tenant switcher")
        return self.fleet.run_fleet(tenants, record_filter)

    def close(self) -> None:
        for component in (self.search_backend, self.primary_store):
            close = getattr(component, "close", None)
            if close:
                close()
        logger.info("Audit tool closed")

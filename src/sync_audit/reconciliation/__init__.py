"""
Reconciliation core for search index sync auditing.

This package compares posts in the primary store with their copies in the
search index, reports drift, and repairs it by forcing re-synchronization
through the replication pipeline.

Main components:
- store_client: Search index queries (documents and counts)
- primary_counter: Primary store counts by type and status
- auditor: Per-record and bulk audits with a pluggable stage chain
- dispatcher: Full-sync drive with drain loop and settings override
- orchestrator: Batched audit of a tenant's records
- fleet: Audit across every tenant
- service: Payload-returning entry points for HTTP/CLI layers

Usage:
    from sync_audit.reconciliation import Auditor, AuditOrchestrator, RecordStoreClient

    client = RecordStoreClient(search_backend)
    auditor = Auditor(client)
    report = AuditOrchestrator(primary_store, auditor).run()
"""

from sync_audit.reconciliation.auditor import Auditor, match_fields, match_status, match_type
from sync_audit.reconciliation.dispatcher import RepairDispatcher, ReplicationSettingsOverride
from sync_audit.reconciliation.errors import (
    AlreadyRunning,
    DrainError,
    StoreUnavailable,
    SyncAuditError,
    SyncUnavailable,
    ValidationInputError,
)
from sync_audit.reconciliation.fleet import FleetRunner, TenantScope
from sync_audit.reconciliation.models import (
    AuditReport,
    AuditResult,
    FleetSummary,
    Record,
    RecordFilter,
    SendResult,
    TenantContext,
)
from sync_audit.reconciliation.orchestrator import AuditOrchestrator
from sync_audit.reconciliation.primary_counter import PrimaryStoreCounter
from sync_audit.reconciliation.service import SyncStatusService
from sync_audit.reconciliation.store_client import RecordStoreClient

__all__ = [
    "Auditor",
    "match_fields",
    "match_status",
    "match_type",
    "RepairDispatcher",
    "ReplicationSettingsOverride",
    "AlreadyRunning",
    "DrainError",
    "StoreUnavailable",
    "SyncAuditError",
    "SyncUnavailable",
    "ValidationInputError",
    "FleetRunner",
    "TenantScope",
    "AuditReport",
    "AuditResult",
    "FleetSummary",
    "Record",
    "RecordFilter",
    "SendResult",
    "TenantContext",
    "AuditOrchestrator",
    "PrimaryStoreCounter",
    "SyncStatusService",
    "RecordStoreClient",
]

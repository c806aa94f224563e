"""
Audit Orchestrator

Streams records from the primary store, audits them in fixed-size batches
and folds the results into one AuditReport. Failing ids can then be handed
to the RepairDispatcher.

The stream is a fresh traversal per run with no snapshot isolation:
records created or deleted while a run is in progress may or may not be
audited.
"""

import logging
import time
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from sync_audit.reconciliation.auditor import Auditor
from sync_audit.reconciliation.dispatcher import DEFAULT_REPAIR_CHUNK_SIZE, RepairDispatcher
from sync_audit.reconciliation.interfaces import PrimaryStore
from sync_audit.reconciliation.models import (
    AuditReport,
    FailureEntry,
    Record,
    RecordFilter,
    RepairResult,
    TenantContext,
)
from sync_audit.utils.run_context import RunContext

if TYPE_CHECKING:
    from sync_audit.monitoring.metrics import AuditMetrics

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class AuditOrchestrator:
    """Runs a full audit of one tenant's records in batches."""

    def __init__(
        self,
        primary_store: PrimaryStore,
        auditor: Auditor,
        dispatcher: Optional[RepairDispatcher] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        metrics: Optional["AuditMetrics"] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            primary_store: Source of records to audit
            auditor: Auditor used for each batch
            dispatcher: Repair dispatcher, required for repair_failures()
            batch_size: Records per bulk audit call
            metrics: Optional metrics sink
        """
        if batch_size < 1:
            raise ValueError("batch_size must be positive")

        self.primary_store = primary_store
        self.auditor = auditor
        self.dispatcher = dispatcher
        self.batch_size = batch_size
        self.metrics = metrics

    def run(
        self,
        record_filter: Optional[RecordFilter] = None,
        tenant: Optional[TenantContext] = None
    ) -> AuditReport:
        """
        Audit every record matching the filter.

        Args:
            record_filter: Types and statuses to audit; all public types
                with status "publish" if not provided
            tenant: Tenant being audited, recorded on the report

        Returns:
            AuditReport with failures in the order they were found

        Raises:
            ValidationInputError: If the store yields something that is not a Record
            StoreUnavailable: If the search index fails a bulk query
        """
        record_filter = record_filter or RecordFilter()
        if record_filter.types is None:
            record_filter = RecordFilter(
                types=list(self.primary_store.public_types()),
                statuses=record_filter.statuses
            )

        tenant_id = tenant.tenant_id if tenant else None
        label = str(tenant_id) if tenant_id is not None else ""

        passed = 0
        failures: List[FailureEntry] = []
        batch: List[Record] = []
        batches = 0

        def flush() -> None:
            nonlocal passed, batches
            batch_failures = self._audit_batch(list(batch), label)
            # audit_many collapses repeated ids
            passed += len({record.id for record in batch} - set(batch_failures))
            failures.extend(FailureEntry(record_id, reason) for record_id, reason in batch_failures.items())
            batches += 1
            batch.clear()

        with RunContext(tenant_id=tenant_id):
            logger.info(
                f"Auditing {', '.join(record_filter.statuses)} records of types "
                f"{', '.join(record_filter.types)}" + (f" for {tenant}" if tenant else "")
            )

            for record in self.primary_store.stream(record_filter):
                batch.append(record)
                if len(batch) >= self.batch_size:
                    flush()

            if batch:
                flush()

            report = AuditReport(passed=passed, failures=tuple(failures), tenant_id=tenant_id)

            if self.metrics:
                self.metrics.record_run(label, report.failed)

            logger.info(
                f"Audit finished: {report.passed} confirmed, {report.failed} failed "
                f"in {batches} batches"
            )

        return report

    def repair_failures(
        self,
        report: AuditReport,
        chunk_size: int = DEFAULT_REPAIR_CHUNK_SIZE,
        between_chunks: Optional[Callable[[List[int]], None]] = None
    ) -> List[RepairResult]:
        """
        Push every failing record in a report back through replication.

        Returns:
            One RepairResult per chunk; empty if the report has no failures

        Raises:
            ValueError: If the orchestrator has no dispatcher
        """
        if self.dispatcher is None:
            raise ValueError("No repair dispatcher configured")

        ids = report.failed_ids
        if not ids:
            return []

        logger.info(f"Attempting to push {len(ids)} records to the search index")
        return self.dispatcher.repair_in_chunks(
            ids,
            chunk_size=chunk_size,
            tenant=report.tenant_id,
            between_chunks=between_chunks
        )

    def _audit_batch(self, batch: List[Record], label: str) -> Dict[int, str]:
        start_time = time.monotonic()
        try:
            batch_failures = self.auditor.audit_many(batch)
        except Exception as e:
            logger.error(f"Audit batch of {len(batch)} records failed: {e}")
            raise

        duration = time.monotonic() - start_time
        if self.metrics:
            self.metrics.record_batch(label, len({record.id for record in batch}), batch_failures, duration)

        logger.debug(
            f"Audited batch of {len(batch)} records in {duration:.3f}s, "
            f"{len(batch_failures)} failed"
        )
        return batch_failures

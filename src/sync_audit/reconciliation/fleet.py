"""
Fleet Runner

Runs the audit orchestrator for every tenant (site) in a multi-tenant
deployment and consolidates the results.
"""

import logging
from typing import List, Optional, Sequence

from sync_audit.reconciliation.interfaces import TenantSwitcher
from sync_audit.reconciliation.models import (
    FleetFailure,
    FleetSummary,
    RecordFilter,
    TenantContext,
    TenantSummary,
)
from sync_audit.reconciliation.orchestrator import AuditOrchestrator
from sync_audit.utils.run_context import RunContext

logger = logging.getLogger(__name__)


class TenantScope:
    """
    Context manager that switches to a tenant and switches back on exit.

    The tenant active on entry is restored on every exit path, including
    exceptions raised by the body.
    """

    def __init__(self, switcher: TenantSwitcher, tenant_id: Optional[int] = None):
        """
        Args:
            switcher: Tenant switcher
            tenant_id: Tenant to switch to; None only guards the current tenant
        """
        self.switcher = switcher
        self.tenant_id = tenant_id
        self.previous_id: Optional[int] = None

    def __enter__(self) -> Optional[int]:
        self.previous_id = self.switcher.current_tenant()
        if self.tenant_id is not None and self.tenant_id != self.previous_id:
            self.switcher.switch_to(self.tenant_id)
        return self.previous_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.switcher.current_tenant() != self.previous_id:
            self.switcher.switch_to(self.previous_id)
            logger.debug(f"Restored tenant {self.previous_id}")


class FleetRunner:
    """Audits many tenants one after another."""

    def __init__(self, orchestrator: AuditOrchestrator, switcher: TenantSwitcher):
        self.orchestrator = orchestrator
        self.switcher = switcher

    def run_fleet(
        self,
        tenants: Optional[Sequence[int]] = None,
        record_filter: Optional[RecordFilter] = None
    ) -> FleetSummary:
        """
        Audit every tenant and build a cross-tenant summary.

        Args:
            tenants: Tenant ids in the order to audit them; every live
                tenant from the switcher if not provided
            record_filter: Filter applied to each tenant's audit

        Returns:
            FleetSummary with one row per tenant and every failure tagged
            with its tenant id

        Raises:
            Any batch-level audit error; the starting tenant is restored first
        """
        rows: List[TenantSummary] = []
        errors: List[FleetFailure] = []

        with RunContext() as run_id, TenantScope(self.switcher) as starting_tenant:
            if tenants is None:
                tenants = list(self.switcher.list_tenants())

            logger.info(f"Starting fleet audit {run_id} of {len(tenants)} sites from site {starting_tenant}")

            for tenant_id in tenants:
                context = TenantContext(tenant_id)

                with TenantScope(self.switcher, tenant_id):
                    logger.info(f"Starting {context}")
                    report = self.orchestrator.run(record_filter, tenant=context)

                errors.extend(
                    FleetFailure(tenant_id, entry.record_id, entry.reason)
                    for entry in report.failures
                )
                rows.append(TenantSummary(tenant_id, report.passed, report.failed))
                logger.info(f"Completed {context}")

        summary = FleetSummary(rows=tuple(rows), errors=tuple(errors))
        logger.info(
            f"Fleet audit finished: {summary.total_passed} confirmed, "
            f"{summary.total_failed} failed across {len(rows)} sites"
        )
        return summary

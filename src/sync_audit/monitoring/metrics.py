"""
Prometheus Metrics for Sync Auditing

Tracks audit throughput, failures found, batch latency and repair drives.
Every component takes an optional ``AuditMetrics``; pass a dedicated
``CollectorRegistry`` to keep instances independent (e.g. in tests).
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, push_to_gateway

from sync_audit.reconciliation.models import MISSING_REASON

logger = logging.getLogger(__name__)

NAMESPACE = "sync_audit"


def failure_kind(reason: str) -> str:
    """Collapse a free-form failure reason into a low-cardinality label."""
    return "missing" if reason == MISSING_REASON else "mismatch"


class AuditMetrics:
    """Prometheus metrics for audit and repair operations."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize audit metrics.

        Args:
            registry: Prometheus registry (a fresh one if not provided)
        """
        self.registry = registry or CollectorRegistry()

        self.records_audited_total = Counter(
            f"{NAMESPACE}_records_audited_total",
            "Total records audited against the search index",
            ["tenant", "result"],
            registry=self.registry
        )

        self.audit_failures_total = Counter(
            f"{NAMESPACE}_audit_failures_total",
            "Audit failures by kind",
            ["tenant", "kind"],
            registry=self.registry
        )

        self.batch_duration_seconds = Histogram(
            f"{NAMESPACE}_batch_duration_seconds",
            "Duration of one bulk audit batch in seconds",
            ["tenant"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self.registry
        )

        self.last_run_failures = Gauge(
            f"{NAMESPACE}_last_run_failures",
            "Failures found by the most recent audit run",
            ["tenant"],
            registry=self.registry
        )

        self.repair_runs_total = Counter(
            f"{NAMESPACE}_repair_runs_total",
            "Repair drives by final status",
            ["status"],
            registry=self.registry
        )

        self.drain_steps_total = Counter(
            f"{NAMESPACE}_drain_steps_total",
            "Replication send steps issued while draining",
            registry=self.registry
        )

        logger.debug("AuditMetrics initialized")

    def record_batch(self, tenant: str, submitted: int, failures: dict, duration_seconds: float) -> None:
        """
        Record one audited batch.

        Args:
            tenant: Tenant label ("" for single-tenant runs)
            submitted: Number of records submitted
            failures: Mapping of record id to failure reason
            duration_seconds: Wall time of the bulk audit call
        """
        self.batch_duration_seconds.labels(tenant=tenant).observe(duration_seconds)
        self.records_audited_total.labels(tenant=tenant, result="pass").inc(submitted - len(failures))
        self.records_audited_total.labels(tenant=tenant, result="fail").inc(len(failures))

        for reason in failures.values():
            self.audit_failures_total.labels(tenant=tenant, kind=failure_kind(reason)).inc()

    def record_run(self, tenant: str, failed: int) -> None:
        self.last_run_failures.labels(tenant=tenant).set(failed)

    def record_repair(self, status: str, steps: int) -> None:
        self.repair_runs_total.labels(status=status).inc()
        if steps:
            self.drain_steps_total.inc(steps)

    def push(self, gateway_url: str, job_name: str = "sync_audit") -> None:
        """
        Push metrics to a Prometheus Pushgateway.

        Audit runs are batch jobs, so there is nothing long-lived to scrape.

        Raises:
            Exception: If push fails
        """
        try:
            push_to_gateway(gateway_url, job=job_name, registry=self.registry)
            logger.info(f"Pushed metrics to gateway: {gateway_url}")
        except Exception as e:
            logger.error(f"Failed to push metrics to gateway: {e}")
            raise

"""
Monitoring for sync audit runs.

Usage:
    from sync_audit.monitoring import AuditMetrics

    metrics = AuditMetrics()
    orchestrator = AuditOrchestrator(store, auditor, metrics=metrics)
    orchestrator.run()
    metrics.push("pushgateway:9091")
"""

from sync_audit.monitoring.metrics import AuditMetrics

__all__ = [
    "AuditMetrics",
]

"""
Narrow interfaces to the collaborators the audit core consumes.

The primary store, search index, replication pipeline and tenant registry
are owned elsewhere. Concrete adapters live in ``sync_audit.backends``.
"""

from typing import Any, Dict, Iterator, Mapping, Optional, Protocol, Sequence

from sync_audit.reconciliation.models import Record, RecordFilter, SendResult


class PrimaryStore(Protocol):
    """The CMS database of record."""

    def lookup(self, record_id: int) -> Optional[Record]:
        ...

    def stream(self, record_filter: RecordFilter) -> Iterator[Record]:
        """
        Lazily yield every record matching the filter.

        Each call starts a fresh traversal. Records written while the
        traversal is running may or may not be observed.
        """
        ...

    def public_types(self) -> Sequence[str]:
        ...

    def count_by(self, record_type: str) -> Mapping[str, int]:
        """Return ``{status: count}`` for one record type."""
        ...


class SearchBackend(Protocol):
    """The search index holding denormalized copies of records."""

    def search(self, dsl: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run a query and return ``{"results": {"hits": [...], ...}}``.

        Raises:
            StoreUnavailable: If the index reports an error
        """
        ...


class ReplicationPipeline(Protocol):
    """The process-wide queue that pushes records to the search index."""

    def is_sync_allowed(self) -> bool:
        ...

    def is_full_sync_active(self) -> bool:
        ...

    def is_full_sync_finished(self) -> bool:
        ...

    def start_full_sync(self, scope: Dict[str, Any]) -> bool:
        ...

    def enqueue_record(self, record_id: int) -> None:
        """Queue one record for the next incremental send."""
        ...

    def send_next_batch(self) -> SendResult:
        ...

    def get_settings(self) -> Dict[str, Any]:
        ...

    def set_settings(self, settings: Mapping[str, Any]) -> None:
        ...


class TenantSwitcher(Protocol):
    """Switches the active tenant for the primary store and search index."""

    def current_tenant(self) -> int:
        ...

    def switch_to(self, tenant_id: int) -> None:
        ...

    def list_tenants(self) -> Sequence[int]:
        ...

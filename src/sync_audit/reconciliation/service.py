"""
Sync status service.

Entry points for thin HTTP or CLI layers. Each returns a structured
``{"success": bool, "data": ...}`` payload ready for serialization;
errors from the core are caught here and reported in the payload.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sync_audit.reconciliation.auditor import Auditor
from sync_audit.reconciliation.dispatcher import RepairDispatcher
from sync_audit.reconciliation.interfaces import PrimaryStore
from sync_audit.reconciliation.models import INVALID_RECORD_REASON
from sync_audit.reconciliation.primary_counter import PrimaryStoreCounter, diff_counts
from sync_audit.reconciliation.store_client import RecordStoreClient

logger = logging.getLogger(__name__)


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


def success(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data}


def error(data: Any) -> Dict[str, Any]:
    return {"success": False, "data": data}


class SyncStatusService:
    """Audit, sync and status summary operations for a single tenant."""

    def __init__(
        self,
        primary_store: PrimaryStore,
        store_client: RecordStoreClient,
        auditor: Auditor,
        dispatcher: Optional[RepairDispatcher] = None
    ):
        self.primary_store = primary_store
        self.store_client = store_client
        self.auditor = auditor
        self.dispatcher = dispatcher
        self.primary_counter = PrimaryStoreCounter(primary_store)

    def audit(self, record_ids: Sequence[int]) -> Dict[str, Any]:
        """
        Audit specific records.

        Returns:
            Success with a confirmation message, or an error whose data is
            one ``"<id>: <reason>"`` line per failing record
        """
        if not record_ids:
            return error("Invalid request")

        failures: Dict[int, str] = {}
        records = []
        try:
            for record_id in record_ids:
                record = self.primary_store.lookup(record_id)
                if record is None:
                    failures[record_id] = INVALID_RECORD_REASON
                else:
                    records.append(record)

            failures.update(self.auditor.audit_many(records))
        except Exception as e:
            logger.error(f"Audit of {len(record_ids)} records failed: {e}")
            return error(str(e))

        if failures:
            lines: List[str] = [
                f"{record_id}: {failures[record_id]}"
                for record_id in dict.fromkeys(record_ids)
                if record_id in failures
            ]
            return error("\n".join(lines))

        count = len(record_ids)
        return success(f"Successfully confirmed {count} {_plural(count, 'item', 'items')}")

    def sync(self, record_ids: Sequence[int]) -> Dict[str, Any]:
        """
        Force re-sync of specific records.

        Returns:
            Success with a "sent" message, or an error with the failure text
        """
        if not record_ids:
            return error("Invalid request")
        if self.dispatcher is None:
            return error("Sync is not configured")

        try:
            self.dispatcher.repair(record_ids)
        except Exception as e:
            logger.error(f"Sync of {len(record_ids)} records failed: {e}")
            return error(str(e))

        count = len(record_ids)
        if count == 1:
            message = (
                "Successfully sent 1 post to the search index. "
                "It might take a minute or two until it is updated."
            )
        else:
            message = (
                f"Successfully sent {count} posts to the search index. "
                "It might take a minute or two until they are updated."
            )
        return success(message)

    def audit_report_summary(self) -> Dict[str, Any]:
        """
        Compare record counts by type and status between the two stores.

        Returns:
            Success with per-type ``primary`` and ``index`` status counts,
            the drift list, and whether the index answered
        """
        try:
            primary_counts = self.primary_counter.aggregate_counts_by()
            index_counts = self.store_client.aggregate_counts_by()
        except Exception as e:
            logger.error(f"Count summary failed: {e}")
            return error(str(e))

        types = {
            record_type: {
                "primary": primary_counts.get(record_type, {}),
                "index": index_counts.get(record_type, {}),
            }
            for record_type in self.primary_store.public_types()
        }

        return success({
            "types": types,
            "drift": [drift.to_dict() for drift in diff_counts(primary_counts, index_counts)],
            "index_available": self.store_client.store_available,
        })

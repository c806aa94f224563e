"""
Primary Store Counter

Counts primary-store records by type and status as the baseline the
search index counts are compared against.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping

from sync_audit.reconciliation.interfaces import PrimaryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CountDrift:
    """A (type, status) pair whose counts differ between the two stores."""

    record_type: str
    status: str
    primary_count: int
    index_count: int

    @property
    def difference(self) -> int:
        return self.primary_count - self.index_count

    def to_dict(self) -> Dict[str, object]:
        return {
            "post_type": self.record_type,
            "post_status": self.status,
            "primary": self.primary_count,
            "index": self.index_count,
            "difference": self.difference,
        }


class PrimaryStoreCounter:
    """Aggregates primary-store counts for public record types only."""

    def __init__(self, primary_store: PrimaryStore):
        self.primary_store = primary_store

    def aggregate_counts_by(self) -> Dict[str, Dict[str, int]]:
        """
        Count records grouped by type, then status.

        Zero counts are dropped so the shape matches what the search
        index aggregation returns.

        Returns:
            ``{type: {status: count}}`` for every public type
        """
        counts = {}
        for record_type in self.primary_store.public_types():
            by_status = self.primary_store.count_by(record_type)
            counts[record_type] = {status: count for status, count in by_status.items() if count}

        logger.debug(f"Counted primary store records for {len(counts)} types")
        return counts


def diff_counts(
    primary: Mapping[str, Mapping[str, int]],
    index: Mapping[str, Mapping[str, int]]
) -> List[CountDrift]:
    """
    List every (type, status) whose primary and index counts differ.

    Only types present in ``primary`` are considered, since the index may
    hold types the primary store does not treat as public.
    """
    drift = []
    for record_type in sorted(primary):
        primary_statuses = primary[record_type]
        index_statuses = index.get(record_type, {})

        for status in sorted(set(primary_statuses) | set(index_statuses)):
            primary_count = primary_statuses.get(status, 0)
            index_count = index_statuses.get(status, 0)
            if primary_count != index_count:
                drift.append(CountDrift(record_type, status, primary_count, index_count))

    return drift

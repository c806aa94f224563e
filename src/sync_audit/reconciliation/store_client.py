"""
Record Store Client

Reads indexed documents and aggregate counts from the search index.

Read paths degrade to empty results when the index errors so that
counting and reporting survive transient outages. Callers that need to
tell "zero matches" from "index down" check ``store_available`` or
``last_error`` after the call.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from sync_audit.reconciliation.errors import StoreUnavailable
from sync_audit.reconciliation.interfaces import SearchBackend

logger = logging.getLogger(__name__)

ID_FIELD = "post_id"
TYPE_FIELD = "post_type"
STATUS_FIELD = "post_status"


def document_id(document: Dict[str, Any], id_field: str = ID_FIELD) -> Optional[int]:
    """Return a document's record id as an int, or None if unusable."""
    try:
        return int(document[id_field])
    except (KeyError, TypeError, ValueError):
        return None


class RecordStoreClient:
    """
    Query client for the search index.

    Attributes:
        last_error: Error from the most recent query, None if it succeeded
    """

    def __init__(
        self,
        backend: SearchBackend,
        id_field: str = ID_FIELD,
        type_field: str = TYPE_FIELD,
        status_field: str = STATUS_FIELD,
        bucket_size: int = 100
    ):
        """
        Initialize the client.

        Args:
            backend: Search backend that executes DSL queries
            id_field: Document field holding the record id
            type_field: Document field holding the record type
            status_field: Document field holding the record status
            bucket_size: Max terms buckets per aggregation level
        """
        self.backend = backend
        self.id_field = id_field
        self.type_field = type_field
        self.status_field = status_field
        self.bucket_size = bucket_size
        self.last_error: Optional[Exception] = None

    @property
    def store_available(self) -> bool:
        return self.last_error is None

    def query(self, dsl: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run a DSL query.

        Args:
            dsl: Elasticsearch query DSL

        Returns:
            The result envelope, or an empty dict if the index errored
        """
        try:
            result = self.backend.search(dsl)
        except StoreUnavailable as e:
            self.last_error = e
            logger.warning(f"Search query failed, treating as no results: {e}")
            return {}

        self.last_error = None
        return result if isinstance(result, dict) else {}

    def ids_query(self, record_ids: Iterable[int]) -> Dict[str, Any]:
        """Build the bulk lookup DSL for an exact id set."""
        ids = list(record_ids)
        return {
            "query": {"terms": {self.id_field: ids}},
            "_source": True,
            "size": len(ids),
        }

    def fetch_by_id(self, record_id: int) -> Optional[Dict[str, Any]]:
        """
        Fetch the indexed document for one record.

        Returns:
            The document's ``_source``, or None if absent or the index errored
        """
        result = self.query({
            "query": {"term": {self.id_field: record_id}},
            "_source": True,
        })

        hits = (result.get("results") or {}).get("hits") or []
        if not isinstance(hits, list) or not hits or not isinstance(hits[0], dict):
            return None
        source = hits[0].get("_source")
        return source if isinstance(source, dict) and source else None

    def fetch_by_ids(self, record_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        """
        Fetch indexed documents for many records in one round trip.

        Returns:
            Mapping of record id to ``_source``; ids with no document are absent
        """
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return {}

        result = self.query(self.ids_query(ids))

        documents = {}
        for hit in (result.get("results") or {}).get("hits") or []:
            source = hit.get("_source") if isinstance(hit, dict) else None
            if not isinstance(source, dict):
                continue
            doc_id = document_id(source, self.id_field)
            if doc_id is not None and doc_id not in documents:
                documents[doc_id] = source

        logger.debug(f"Fetched {len(documents)} of {len(ids)} documents from the search index")
        return documents

    def aggregate_counts_by(self) -> Dict[str, Dict[str, int]]:
        """
        Count indexed documents grouped by type, then status.

        Returns:
            ``{type: {status: count}}``; empty if the index errored
        """
        result = self.query({
            "size": 0,
            "query": {"match_all": {}},
            "aggregations": {
                self.type_field: {
                    "terms": {"field": self.type_field, "size": self.bucket_size},
                    "aggregations": {
                        self.status_field: {
                            "terms": {"field": self.status_field, "size": self.bucket_size},
                        },
                    },
                },
            },
        })

        aggregations = (result.get("results") or {}).get("aggregations") or result.get("aggregations") or {}
        type_buckets = (aggregations.get(self.type_field) or {}).get("buckets") or []

        counts: Dict[str, Dict[str, int]] = {}
        for bucket in type_buckets:
            if bucket.get("key") is None:
                continue
            status_buckets = (bucket.get(self.status_field) or {}).get("buckets") or []
            counts[bucket["key"]] = {
                status_bucket["key"]: status_bucket.get("doc_count", 0)
                for status_bucket in status_buckets
                if status_bucket.get("key") is not None
            }

        return counts

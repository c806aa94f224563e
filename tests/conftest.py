"""
Pytest configuration and shared in-memory fakes.

The fakes stand in for the primary store, the search index, the
replication pipeline and the tenant registry so the audit core can be
exercised without external services.
"""

from collections import Counter
from typing import Any, Dict, List, Optional

import pytest

from sync_audit.reconciliation.models import Record, RecordFilter, SendResult


def make_record(record_id: int, record_type: str = "post", status: str = "publish", **fields) -> Record:
    return Record(id=record_id, type=record_type, status=status, fields=fields)


def document_for(record: Record, **overrides) -> Dict[str, Any]:
    """Build the indexed document a healthy sync would have produced."""
    document = {
        "post_id": record.id,
        "post_type": record.type,
        "post_status": record.status,
    }
    document.update(record.fields)
    document.update(overrides)
    return document


class FakePrimaryStore:
    def __init__(self, records: Optional[List[Record]] = None, public_types=("post", "page")):
        self.records = list(records or [])
        self._public_types = list(public_types)
        self.stream_calls = 0

    def lookup(self, record_id):
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    def stream(self, record_filter: RecordFilter):
        self.stream_calls += 1
        types = record_filter.types if record_filter.types is not None else self._public_types
        for record in list(self.records):
            if record.type in types and record.status in record_filter.statuses:
                yield record

    def public_types(self):
        return list(self._public_types)

    def count_by(self, record_type):
        counts = Counter(r.status for r in self.records if r.type == record_type)
        return dict(counts)


class FakeSearchBackend:
    """
    Answers ``term``/``terms``/``match_all`` queries and the type/status
    aggregation from an in-memory document map.
    """

    def __init__(self, documents: Optional[List[Dict[str, Any]]] = None):
        self.documents: Dict[int, Dict[str, Any]] = {}
        for document in documents or []:
            self.documents[document["post_id"]] = document
        self.queries: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None
        self.envelope: Optional[Dict[str, Any]] = None

    def index(self, record: Record, **overrides) -> None:
        self.documents[record.id] = document_for(record, **overrides)

    def search(self, dsl):
        self.queries.append(dsl)
        if self.error is not None:
            raise self.error
        if self.envelope is not None:
            return self.envelope

        query = dsl.get("query", {})
        if "terms" in query:
            ids = query["terms"]["post_id"]
            hits = [{"_source": self.documents[i]} for i in ids if i in self.documents]
        elif "term" in query:
            record_id = query["term"]["post_id"]
            hits = [{"_source": self.documents[record_id]}] if record_id in self.documents else []
        else:
            hits = [{"_source": d} for d in self.documents.values()]

        results: Dict[str, Any] = {"hits": hits}
        if "aggregations" in dsl:
            results["aggregations"] = self._aggregate()
        return {"results": results}

    def _aggregate(self):
        by_type: Dict[str, Counter] = {}
        for document in self.documents.values():
            by_type.setdefault(document["post_type"], Counter())[document["post_status"]] += 1

        return {
            "post_type": {
                "buckets": [
                    {
                        "key": record_type,
                        "doc_count": sum(statuses.values()),
                        "post_status": {
                            "buckets": [
                                {"key": status, "doc_count": count}
                                for status, count in statuses.items()
                            ]
                        },
                    }
                    for record_type, statuses in by_type.items()
                ]
            }
        }


ORIGINAL_SETTINGS = {
    "sync_wait_time": 10,
    "enqueue_wait_time": 1,
    "queue_max_writes_sec": 100,
    "max_queue_size_full_sync": 1000,
    "render_filtered_content": 1,
}


class FakePipeline:
    """
    Replication pipeline whose drains report progress ``batches_per_sync``
    times and then a benign empty queue, unless ``script`` supplies the
    send results explicitly.
    """

    def __init__(self, settings: Optional[Dict[str, Any]] = None):
        self.settings = dict(settings if settings is not None else ORIGINAL_SETTINGS)
        self.allowed = True
        self.active = False
        self.finished = True
        self.start_result = True
        self.batches_per_sync = 1
        self.script: Optional[List[SendResult]] = None
        self.started_scopes: List[Dict[str, Any]] = []
        self.enqueued: List[int] = []
        self.settings_history: List[Dict[str, Any]] = []
        self.settings_during_start: Optional[Dict[str, Any]] = None
        self._sent = 0

    def is_sync_allowed(self):
        return self.allowed

    def is_full_sync_active(self):
        return self.active

    def is_full_sync_finished(self):
        return self.finished

    def start_full_sync(self, scope):
        self.started_scopes.append(scope)
        self.settings_during_start = dict(self.settings)
        self._sent = 0
        return self.start_result

    def enqueue_record(self, record_id):
        self.enqueued.append(record_id)

    def send_next_batch(self):
        if self.script is not None:
            return self.script.pop(0)
        self._sent += 1
        if self._sent <= self.batches_per_sync:
            return SendResult.progress()
        return SendResult.empty()

    def get_settings(self):
        return dict(self.settings)

    def set_settings(self, settings):
        self.settings_history.append(dict(settings))
        self.settings = dict(settings)


class FakeSwitcher:
    """Tenant switcher that swaps store and index contents per tenant."""

    def __init__(self, store: FakePrimaryStore, backend: FakeSearchBackend, datasets: Dict[int, tuple], current: int = 1):
        self.store = store
        self.backend = backend
        self.datasets = datasets
        self.switches: List[int] = []
        self._current = None
        self._load(current)

    def _load(self, tenant_id):
        records, documents = self.datasets[tenant_id]
        self.store.records = list(records)
        self.backend.documents = {d["post_id"]: d for d in documents}
        self._current = tenant_id

    def current_tenant(self):
        return self._current

    def switch_to(self, tenant_id):
        self.switches.append(tenant_id)
        self._load(tenant_id)

    def list_tenants(self):
        return sorted(self.datasets)


@pytest.fixture
def primary_store():
    return FakePrimaryStore()


@pytest.fixture
def search_backend():
    return FakeSearchBackend()


@pytest.fixture
def pipeline():
    return FakePipeline()

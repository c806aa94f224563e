"""
Unit tests for the sync status service payloads.
"""

from unittest.mock import Mock

import pytest

from sync_audit.reconciliation.auditor import Auditor
from sync_audit.reconciliation.dispatcher import RepairDispatcher
from sync_audit.reconciliation.errors import StoreUnavailable
from sync_audit.reconciliation.service import SyncStatusService
from sync_audit.reconciliation.store_client import RecordStoreClient
from tests.conftest import ORIGINAL_SETTINGS, FakePipeline, FakePrimaryStore, FakeSearchBackend, make_record


@pytest.fixture
def store():
    return FakePrimaryStore([
        make_record(1),
        make_record(2),
        make_record(3, "page"),
        make_record(4, status="draft"),
    ])


@pytest.fixture
def backend(store):
    backend = FakeSearchBackend()
    for record in store.records:
        backend.index(record)
    return backend


@pytest.fixture
def pipeline():
    return FakePipeline()


@pytest.fixture
def service(store, backend, pipeline):
    client = RecordStoreClient(backend)
    return SyncStatusService(store, client, Auditor(client), RepairDispatcher(pipeline))


class TestAudit:
    """Test the audit payload."""

    def test_confirmed(self, service):
        assert service.audit([1, 2, 3]) == {"success": True, "data": "Successfully confirmed 3 items"}

    def test_confirmed_singular(self, service):
        assert service.audit([1])["data"] == "Successfully confirmed 1 item"

    def test_empty_request(self, service):
        assert service.audit([]) == {"success": False, "data": "Invalid request"}

    def test_failures_listed_in_request_order(self, service, backend):
        del backend.documents[2]
        backend.documents[3]["post_status"] = "trash"

        result = service.audit([3, 99, 2, 1])

        assert result["success"] is False
        lines = result["data"].split("\n")
        assert lines[0].startswith("3: Status mismatch")
        assert lines[1:] == ["99: Invalid record", "2: Missing"]

    def test_index_error_reported(self, service, backend):
        backend.error = StoreUnavailable("down")

        result = service.audit([1])

        assert result["success"] is False
        assert "Invalid response from search index" in result["data"]

    def test_lookup_exception_reported(self, service, store):
        """Test that a primary store failure comes back as an error payload."""
        store.lookup = Mock(side_effect=RuntimeError("server closed the connection"))

        assert service.audit([1]) == {"success": False, "data": "server closed the connection"}


class TestSync:
    """Test the sync payload."""

    def test_single(self, service, pipeline):
        result = service.sync([1])

        assert result == {
            "success": True,
            "data": "Successfully sent 1 post to the search index. "
                    "It might take a minute or two until it is updated.",
        }
        assert pipeline.started_scopes == [{"posts": [1]}]

    def test_many(self, service):
        result = service.sync([1, 2])

        assert result["success"] is True
        assert result["data"].startswith("Successfully sent 2 posts")
        assert result["data"].endswith("until they are updated.")

    def test_empty_request(self, service, pipeline):
        assert service.sync([]) == {"success": False, "data": "Invalid request"}
        assert pipeline.started_scopes == []

    def test_drain_error(self, service, pipeline):
        pipeline.batches_per_sync = 0

        result = service.sync([1])

        assert result == {"success": False, "data": "Sync errored with code: empty_queue_full_sync"}
        assert pipeline.settings == ORIGINAL_SETTINGS

    def test_already_running(self, service, pipeline):
        pipeline.active = True
        pipeline.finished = False

        assert service.sync([1]) == {"success": False, "data": "A full sync is already running"}

    def test_malformed_id_reported(self, service, pipeline):
        """Test that an id that is not an integer comes back as an error payload."""
        result = service.sync(["abc"])

        assert result["success"] is False
        assert "invalid literal" in result["data"]
        assert pipeline.started_scopes == []

    def test_pipeline_exception_reported(self, service, pipeline):
        """Test that an unexpected pipeline error is reported and settings restored."""
        pipeline.send_next_batch = Mock(side_effect=RuntimeError("connection reset"))

        result = service.sync([1])

        assert result == {"success": False, "data": "connection reset"}
        assert pipeline.settings == ORIGINAL_SETTINGS

    def test_not_configured(self, store, backend):
        client = RecordStoreClient(backend)
        service = SyncStatusService(store, client, Auditor(client))

        assert service.sync([1]) == {"success": False, "data": "Sync is not configured"}


class TestAuditReportSummary:
    """Test the count summary payload."""

    def test_in_sync(self, service):
        result = service.audit_report_summary()

        assert result["success"] is True
        data = result["data"]
        assert data["types"]["post"] == {
            "primary": {"publish": 2, "draft": 1},
            "index": {"publish": 2, "draft": 1},
        }
        assert data["drift"] == []
        assert data["index_available"] is True

    def test_drift(self, service, backend):
        del backend.documents[3]

        data = service.audit_report_summary()["data"]

        assert data["types"]["page"] == {"primary": {"publish": 1}, "index": {}}
        assert data["drift"] == [
            {"post_type": "page", "post_status": "publish", "primary": 1, "index": 0, "difference": 1}
        ]

    def test_index_down(self, service, backend):
        backend.error = StoreUnavailable("down")

        data = service.audit_report_summary()["data"]

        assert data["index_available"] is False
        assert data["types"]["post"]["index"] == {}

    def test_primary_count_error_reported(self, service, store):
        store.count_by = Mock(side_effect=RuntimeError("relation does not exist"))

        assert service.audit_report_summary() == {"success": False, "data": "relation does not exist"}

"""
Repair Dispatcher

Forces re-synchronization of a set of records by driving the replication
pipeline's full-sync module until its outbound queue drains.

Only one drive may run at a time per tenant: the pipeline is a
process-wide singleton with one outbound queue. For the duration of a
drive the pipeline's pacing settings are swapped for a minimum-latency
profile and restored afterwards on every exit path.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Hashable, List, Mapping, Optional, Sequence

from sync_audit.reconciliation.errors import (
    AlreadyRunning,
    DrainError,
    SyncUnavailable,
    ValidationInputError,
)
from sync_audit.reconciliation.interfaces import ReplicationPipeline
from sync_audit.reconciliation.models import DispatchState, RepairResult, StepStatus

if TYPE_CHECKING:
    from sync_audit.monitoring.metrics import AuditMetrics

logger = logging.getLogger(__name__)

FAST_SYNC_SETTINGS: Dict[str, Any] = {
    "sync_wait_time": 0,
    "enqueue_wait_time": 0,
    "queue_max_writes_sec": 10000,
    "max_queue_size_full_sync": 100000,
}

DEFAULT_REPAIR_CHUNK_SIZE = 100

START_FAILED_CODE = "full_sync_not_started"

_ACTIVE_STATES = (DispatchState.PRIMING, DispatchState.DRAINING)


class ReplicationSettingsOverride:
    """
    Context manager that swaps replication settings and always restores them.

    The original settings are captured on entry, before anything is
    written, and pushed back on exit whether or not the body raised.
    """

    def __init__(self, pipeline: ReplicationPipeline, overrides: Mapping[str, Any]):
        self.pipeline = pipeline
        self.overrides = dict(overrides)
        self.original: Optional[Dict[str, Any]] = None

    def __enter__(self) -> Dict[str, Any]:
        self.original = dict(self.pipeline.get_settings())
        self.pipeline.set_settings(self.overrides)
        logger.debug(f"Applied replication settings override: {self.overrides}")
        return self.original

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.pipeline.set_settings(self.original)
        logger.debug("Restored original replication settings")


class RepairDispatcher:
    """
    Drives bulk re-synchronization through the replication pipeline.

    Per tenant the dispatcher moves IDLE -> PRIMING -> DRAINING and ends in
    COMPLETED or STALLED.
    """

    def __init__(
        self,
        pipeline: ReplicationPipeline,
        settings_override: Optional[Mapping[str, Any]] = None,
        scope_key: str = "posts",
        metrics: Optional["AuditMetrics"] = None
    ):
        """
        Initialize the dispatcher.

        Args:
            pipeline: Replication pipeline to drive
            settings_override: Settings applied during a drive
                (FAST_SYNC_SETTINGS if not provided)
            scope_key: Full-sync module the record ids are passed to
            metrics: Optional metrics sink
        """
        self.pipeline = pipeline
        self.settings_override = dict(FAST_SYNC_SETTINGS if settings_override is None else settings_override)
        self.scope_key = scope_key
        self.metrics = metrics
        self._states: Dict[Hashable, DispatchState] = {}

    def state(self, tenant: Hashable = None) -> DispatchState:
        return self._states.get(tenant, DispatchState.IDLE)

    def is_running(self, tenant: Hashable = None) -> bool:
        """True if a drive is in flight here or the pipeline has an unfinished full sync."""
        if self.state(tenant) in _ACTIVE_STATES:
            return True
        return self.pipeline.is_full_sync_active() and not self.pipeline.is_full_sync_finished()

    def sync_one(self, record_id: int) -> None:
        """Queue a single record for the pipeline's next incremental send."""
        record_id = int(record_id)
        if not self.pipeline.is_sync_allowed():
            raise SyncUnavailable("Replication sync is not allowed")

        self.pipeline.enqueue_record(record_id)
        logger.debug(f"Queued record {record_id} for sync")

    def enqueue(self, record_ids: Sequence[int], tenant: Hashable = None) -> bool:
        """
        Start a full sync of the given records without waiting for it.

        The pipeline drains the queue on its own schedule with its normal
        settings.

        Returns:
            True if the pipeline accepted the full sync

        Raises:
            ValidationInputError: If no ids were given
            SyncUnavailable: If the pipeline does not allow syncing
            AlreadyRunning: If a full sync is already in flight for the tenant
        """
        ids = [int(record_id) for record_id in record_ids]
        if not ids:
            raise ValidationInputError("No record ids given to enqueue")

        if not self.pipeline.is_sync_allowed():
            raise SyncUnavailable("Replication sync is not allowed")

        if self.is_running(tenant):
            raise AlreadyRunning("A full sync is already running")

        started = bool(self.pipeline.start_full_sync({self.scope_key: ids}))
        if started:
            logger.info(f"Enqueued full sync of {len(ids)} records")
        else:
            logger.warning(f"Pipeline refused a full sync of {len(ids)} records")
        return started

    def repair(
        self,
        record_ids: Sequence[int],
        tenant: Hashable = None,
        between_steps: Optional[Callable[[int], None]] = None
    ) -> RepairResult:
        """
        Re-sync exactly the given records and wait for the queue to drain.

        Args:
            record_ids: Record ids to push to the search index
            tenant: Tenant the drive belongs to
            between_steps: Called with the step number after each send
                step, e.g. to reset caches during long drains

        Returns:
            RepairResult in the COMPLETED state

        Raises:
            ValidationInputError: If no ids were given
            SyncUnavailable: If the pipeline does not allow syncing
            AlreadyRunning: If a drive is already active for the tenant
            DrainError: If the drive fails to start or a send step errors
        """
        ids = [int(record_id) for record_id in record_ids]
        if not ids:
            raise ValidationInputError("No record ids given to repair")

        if not self.pipeline.is_sync_allowed():
            raise SyncUnavailable("Replication sync is not allowed")

        if self.is_running(tenant):
            raise AlreadyRunning("A full sync is already running")

        result = RepairResult(record_ids=ids)
        self._transition(tenant, result, DispatchState.PRIMING)

        try:
            with ReplicationSettingsOverride(self.pipeline, self.settings_override):
                if not self.pipeline.start_full_sync({self.scope_key: ids}):
                    raise DrainError(START_FAILED_CODE, "Could not start a new full sync")

                result.log.append("Initialized sync")
                self._transition(tenant, result, DispatchState.DRAINING)
                self._drain(result, between_steps)

        except Exception as e:
            result.log.append(str(e))
            self._transition(tenant, result, DispatchState.STALLED)
            logger.error(f"Repair of {len(ids)} records failed after {result.steps} steps: {e}")
            self._record(result)
            raise

        finally:
            self._states.pop(tenant, None)

        result.state = DispatchState.COMPLETED
        self._record(result)
        logger.info(f"Sent {len(ids)} records for re-sync in {result.steps} steps")
        return result

    def repair_in_chunks(
        self,
        record_ids: Sequence[int],
        chunk_size: int = DEFAULT_REPAIR_CHUNK_SIZE,
        tenant: Hashable = None,
        between_chunks: Optional[Callable[[List[int]], None]] = None
    ) -> List[RepairResult]:
        """
        Repair a large id set one chunk at a time.

        Stops at the first failing chunk and re-raises its error.

        Args:
            record_ids: Record ids to repair
            chunk_size: Ids per drive
            tenant: Tenant the drives belong to
            between_chunks: Called with each finished chunk
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")

        ids = list(record_ids)
        results = []
        for start in range(0, len(ids), chunk_size):
            chunk = ids[start:start + chunk_size]
            results.append(self.repair(chunk, tenant=tenant))
            if between_chunks:
                between_chunks(chunk)

        return results

    def _drain(self, result: RepairResult, between_steps: Optional[Callable[[int], None]]) -> None:
        while True:
            result.steps += 1
            result.log.append(f"Starting batch {result.steps}")

            outcome = self.pipeline.send_next_batch()

            if outcome.status is StepStatus.ERROR:
                raise DrainError(outcome.code or "unknown")

            if outcome.status is StepStatus.EMPTY:
                if result.steps == 1:
                    # Nothing was ever queued.
                    raise DrainError(outcome.code or "empty_queue_full_sync")
                return

            if between_steps:
                between_steps(result.steps)

    def _transition(self, tenant: Hashable, result: RepairResult, state: DispatchState) -> None:
        self._states[tenant] = state
        result.state = state
        logger.debug(f"Repair dispatcher for tenant {tenant}: {state.value}")

    def _record(self, result: RepairResult) -> None:
        if self.metrics:
            self.metrics.record_repair(result.state.value, result.steps)

"""
Value types for sync auditing.

Records come from the primary store and are never mutated here. Indexed
documents are plain ``_source`` dictionaries from the search index.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

MISSING_REASON = "Missing"
INVALID_RECORD_REASON = "Invalid record"

DEFAULT_STATUSES = ("publish",)


@dataclass(frozen=True)
class Record:
    """A primary-store entity (a post)."""

    id: int
    type: str
    status: str
    fields: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class AuditResult:
    """
    Outcome of auditing one record.

    Attributes:
        passed: True if the indexed document exists and every stage accepted it
        reason: Failure reason, None when passed
    """

    passed: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "AuditResult":
        return cls(passed=True)

    @classmethod
    def fail(cls, reason: str) -> "AuditResult":
        return cls(passed=False, reason=reason)

    def __bool__(self) -> bool:
        return self.passed


PASS = AuditResult.ok()


@dataclass(frozen=True)
class FailureEntry:
    record_id: int
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"post_id": self.record_id, "reason": self.reason}


@dataclass(frozen=True)
class AuditReport:
    """
    Aggregate result of an audit run or batch.

    Attributes:
        passed: Number of records that passed
        failures: Ordered failure entries
        tenant_id: Tenant the report belongs to, if any
    """

    passed: int = 0
    failures: Tuple[FailureEntry, ...] = ()
    tenant_id: Optional[int] = None

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def total(self) -> int:
        return self.passed + self.failed

    @property
    def failed_ids(self) -> List[int]:
        return [entry.record_id for entry in self.failures]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "confirmed": self.passed,
            "errors": [entry.to_dict() for entry in self.failures],
        }


@dataclass(frozen=True)
class RecordFilter:
    """
    Selects the records an audit run streams.

    ``types=None`` means every public record type.
    """

    types: Optional[Sequence[str]] = None
    statuses: Sequence[str] = DEFAULT_STATUSES


@dataclass(frozen=True)
class TenantContext:
    """One isolated data partition (site) in a multi-tenant deployment."""

    tenant_id: int
    label: Optional[str] = None

    def __str__(self) -> str:
        if self.label:
            return f"{self.label} (site {self.tenant_id})"
        return f"site {self.tenant_id}"


@dataclass(frozen=True)
class TenantSummary:
    tenant_id: int
    passed: int
    failed: int

    def to_dict(self) -> Dict[str, int]:
        return {"site_id": self.tenant_id, "confirmed": self.passed, "errors": self.failed}


@dataclass(frozen=True)
class FleetFailure:
    tenant_id: int
    record_id: int
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"site_id": self.tenant_id, "post_id": self.record_id, "reason": self.reason}


@dataclass(frozen=True)
class FleetSummary:
    """Cross-tenant audit summary plus the consolidated error report."""

    rows: Tuple[TenantSummary, ...] = ()
    errors: Tuple[FleetFailure, ...] = ()

    @property
    def total_passed(self) -> int:
        return sum(row.passed for row in self.rows)

    @property
    def total_failed(self) -> int:
        return sum(row.failed for row in self.rows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": [row.to_dict() for row in self.rows],
            "errors": [error.to_dict() for error in self.errors],
        }


class StepStatus(Enum):
    """Outcome of one replication send step."""
    PROGRESS = "progress"
    EMPTY = "empty"
    ERROR = "error"


@dataclass(frozen=True)
class SendResult:
    """
    Result of ``ReplicationPipeline.send_next_batch``.

    Attributes:
        status: Progress, benign empty queue, or hard error
        code: Pipeline error code for EMPTY/ERROR outcomes
    """

    status: StepStatus
    code: Optional[str] = None

    @classmethod
    def progress(cls) -> "SendResult":
        return cls(StepStatus.PROGRESS)

    @classmethod
    def empty(cls, code: str = "empty_queue_full_sync") -> "SendResult":
        return cls(StepStatus.EMPTY, code)

    @classmethod
    def error(cls, code: str) -> "SendResult":
        return cls(StepStatus.ERROR, code)


class DispatchState(Enum):
    IDLE = "idle"
    PRIMING = "priming"
    DRAINING = "draining"
    COMPLETED = "completed"
    STALLED = "stalled"


@dataclass
class RepairResult:
    """Outcome of one repair drive."""

    record_ids: List[int]
    steps: int = 0
    state: DispatchState = DispatchState.IDLE
    log: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state is DispatchState.COMPLETED

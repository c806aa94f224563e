"""
Auditor

Checks primary-store records against their indexed documents.

A record passes when its document exists and every registered validation
stage accepts it. Stages are plain callables run in registration order::

    def stage(verdict: AuditResult, record: Record, document: dict) -> AuditResult | str

Returning the verdict unchanged (or True) passes the record on to the next
stage; returning a string fails it with that string as the reason and
stops the chain.
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from sync_audit.reconciliation.errors import StoreUnavailable, ValidationInputError
from sync_audit.reconciliation.models import MISSING_REASON, PASS, AuditResult, Record
from sync_audit.reconciliation.store_client import (
    STATUS_FIELD,
    TYPE_FIELD,
    RecordStoreClient,
    document_id,
)

logger = logging.getLogger(__name__)

Verdict = Union[AuditResult, bool, str, None]
ValidationStage = Callable[[AuditResult, Record, Dict[str, Any]], Verdict]

FLOAT_TOLERANCE = 0.0001


def match_type(verdict: AuditResult, record: Record, document: Dict[str, Any]) -> Verdict:
    """Fail when the indexed type differs from the record's type."""
    indexed = document.get(TYPE_FIELD)
    if indexed != record.type:
        return f"Type mismatch: expected {record.type}, indexed {indexed}"
    return verdict


def match_status(verdict: AuditResult, record: Record, document: Dict[str, Any]) -> Verdict:
    """Fail when the indexed status differs from the record's status."""
    indexed = document.get(STATUS_FIELD)
    if indexed != record.status:
        return f"Status mismatch: expected {record.status}, indexed {indexed}"
    return verdict


def _normalize(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    return value


def values_equal(primary_value: Any, indexed_value: Any) -> bool:
    """
    Compare a primary-store value to its indexed copy.

    Datetimes compare as naive UTC ``YYYY-MM-DD HH:MM:SS`` strings, which
    is how the index stores them; numbers compare with a small tolerance.
    """
    left = _normalize(primary_value)
    right = _normalize(indexed_value)

    if isinstance(left, (int, float)) and isinstance(right, (int, float)) \
            and not isinstance(left, bool) and not isinstance(right, bool):
        return abs(left - right) < FLOAT_TOLERANCE

    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(values_equal(a, b) for a, b in zip(left, right))

    return left == right


def match_fields(*field_names: str) -> ValidationStage:
    """
    Build a stage comparing named record fields with the indexed document.

    Fields missing from the record are skipped; fields missing from the
    document compare as None.
    """
    def stage(verdict: AuditResult, record: Record, document: Dict[str, Any]) -> Verdict:
        for name in field_names:
            if name not in record.fields:
                continue
            if not values_equal(record.fields[name], document.get(name)):
                return f"Field mismatch: {name}"
        return verdict

    stage.__name__ = f"match_fields({', '.join(field_names)})"
    return stage


DEFAULT_STAGES = (match_type, match_status)


def _well_formed(hits: Any) -> bool:
    """True if hits is a list of dicts whose ``_source`` (when present) is a dict."""
    if not isinstance(hits, list):
        return False
    return all(
        isinstance(hit, dict) and isinstance(hit.get("_source") or {}, dict)
        for hit in hits
    )


def _describe(value: Any) -> str:
    if isinstance(value, (str, int, float, bool)):
        return f": {value}"
    return f": Type {type(value).__name__}"


class Auditor:
    """
    Audits records against the search index.

    Attributes:
        stages: Ordered validation stages
    """

    def __init__(
        self,
        store_client: RecordStoreClient,
        stages: Optional[Iterable[ValidationStage]] = None
    ):
        """
        Initialize the auditor.

        Args:
            store_client: Client for the search index
            stages: Validation stages; the built-in type and status checks
                if not provided. Pass an empty list for existence-only audits.
        """
        self.store_client = store_client
        self.stages: List[ValidationStage] = list(DEFAULT_STAGES if stages is None else stages)

    def register_stage(self, stage: ValidationStage) -> None:
        """Append a validation stage to the end of the chain."""
        self.stages.append(stage)
        logger.debug(f"Registered validation stage {getattr(stage, '__name__', stage)!r}")

    def validate(self, record: Record, document: Dict[str, Any]) -> AuditResult:
        """Run the stage chain, stopping at the first failure."""
        verdict = PASS
        for stage in self.stages:
            outcome = stage(verdict, record, document)

            if isinstance(outcome, AuditResult):
                verdict = outcome
            elif isinstance(outcome, str):
                verdict = AuditResult.fail(outcome)
            elif outcome is True:
                verdict = PASS
            else:
                verdict = AuditResult.fail(f"Rejected by {getattr(stage, '__name__', 'stage')}")

            if not verdict.passed:
                return verdict

        return verdict

    def audit_one(self, record: Record) -> AuditResult:
        """
        Audit a single record.

        A search index error reads as an absent document, so the record
        fails as missing.
        """
        if not isinstance(record, Record):
            raise ValidationInputError(f"Invalid record{_describe(record)}")

        document = self.store_client.fetch_by_id(record.id)
        if not document:
            return AuditResult.fail(MISSING_REASON)

        return self.validate(record, document)

    def audit_many(self, records: Sequence[Record]) -> Dict[int, str]:
        """
        Audit many records with a single search query.

        Args:
            records: Records to audit. Duplicate ids are collapsed, the
                last occurrence winning.

        Returns:
            Mapping of record id to failure reason, in input order. An
            empty mapping means every record passed.

        Raises:
            ValidationInputError: If any entry is not a Record
            StoreUnavailable: If the index does not return a result envelope
        """
        pending: Dict[int, Record] = {}
        for position, record in enumerate(records):
            if not isinstance(record, Record):
                raise ValidationInputError(f"Invalid record at index {position}{_describe(record)}")
            pending[record.id] = record

        if not pending:
            return {}

        order = list(pending)
        envelope = self.store_client.query(self.store_client.ids_query(order))

        results = envelope.get("results")
        hits = results.get("hits") if isinstance(results, dict) else None
        if not _well_formed(hits):
            raise StoreUnavailable(
                f"Invalid response from search index: {json.dumps(envelope, default=str)}"
            )

        failures: Dict[int, str] = {}
        for hit in hits:
            source = hit.get("_source") or {}
            record = pending.pop(document_id(source, self.store_client.id_field), None)
            if record is None:
                logger.debug(f"Ignoring unrequested or duplicate hit: {source.get(self.store_client.id_field)}")
                continue

            result = self.validate(record, source)
            if not result.passed:
                failures[record.id] = result.reason

        for record_id in pending:
            failures[record_id] = MISSING_REASON

        logger.debug(f"Audited {len(order)} records, {len(failures)} failed")
        return {record_id: failures[record_id] for record_id in order if record_id in failures}

"""
Run Context for Sync Auditing

Keeps the current audit run id and tenant id in context variables so log
records emitted anywhere below an audit or repair can be tied back to it.
"""

import contextvars
import logging
import uuid
from typing import Optional

logger = logging.getLogger(__name__)

_run_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("run_id", default=None)
_tenant_id: contextvars.ContextVar[Optional[int]] = contextvars.ContextVar("tenant_id", default=None)


def generate_run_id() -> str:
    return str(uuid.uuid4())


def get_run_id() -> Optional[str]:
    return _run_id.get()


def get_tenant_id() -> Optional[int]:
    return _tenant_id.get()


class RunContext:
    """
    Context manager that scopes a run id and, optionally, a tenant id.

    Nested contexts inherit the outer run id unless one is given, so a
    fleet run and its per-tenant audits share one id. Previous values are
    restored on exit.
    """

    def __init__(self, run_id: Optional[str] = None, tenant_id: Optional[int] = None):
        self.run_id = run_id
        self.tenant_id = tenant_id
        self._run_token = None
        self._tenant_token = None

    def __enter__(self) -> str:
        if not self.run_id:
            self.run_id = get_run_id() or generate_run_id()

        self._run_token = _run_id.set(self.run_id)
        if self.tenant_id is not None:
            self._tenant_token = _tenant_id.set(self.tenant_id)

        logger.debug(f"Entered run context: {self.run_id}")
        return self.run_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._tenant_token is not None:
            _tenant_id.reset(self._tenant_token)
            self._tenant_token = None
        _run_id.reset(self._run_token)
        self._run_token = None


def run_context_filter(record: logging.LogRecord) -> bool:
    """
    Logging filter stamping ``run_id`` and ``tenant_id`` on records.

    Always returns True.
    """
    record.run_id = get_run_id() or "N/A"
    tenant_id = get_tenant_id()
    record.tenant_id = tenant_id if tenant_id is not None else "N/A"
    return True

"""
Logging setup for sync audit runs.

Console output is human readable by default; set ``JSON_LOGGING=true`` to
emit one JSON object per line for log shippers.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional, Union

from sync_audit.utils.run_context import run_context_filter

CONSOLE_FORMAT = "[%(asctime)s] %(levelname)s [run=%(run_id)s site=%(tenant_id)s] - %(message)s"
CONSOLE_DATEFMT = "%Y-%m-%d %H:%M:%S"

_EXTRA_FIELDS = ("record_id", "batch_size", "step", "duration", "failures")


class StructuredJSONFormatter(logging.Formatter):
    """JSON formatter carrying run and tenant ids."""

    def format(self, record):
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", None),
            "tenant_id": getattr(record, "tenant_id", None),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    json_logging: Optional[bool] = None,
    logger_name: str = "sync_audit"
) -> logging.Logger:
    """
    Attach a single stream handler to the package logger.

    Args:
        level: Log level
        json_logging: Emit JSON lines; defaults to the JSON_LOGGING env var
        logger_name: Logger to configure

    Returns:
        The configured logger
    """
    if json_logging is None:
        json_logging = os.getenv("JSON_LOGGING", "false").lower() == "true"

    handler = logging.StreamHandler()
    handler.addFilter(run_context_filter)
    if json_logging:
        handler.setFormatter(StructuredJSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT))

    target = logging.getLogger(logger_name)
    for existing in list(target.handlers):
        target.removeHandler(existing)
    target.addHandler(handler)
    target.setLevel(level)
    target.propagate = False

    return target

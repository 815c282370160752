"""
azmonitor Centralized Logging.

Every module logs through get_logger(__name__), which places it under the
"azmonitor" logger. Records of one gather cycle share a correlation id so a
cycle's queries, warnings and failures can be grepped together.

Environment:
    AZMONITOR_LOG_LEVEL   DEBUG / INFO / WARNING / ERROR (default INFO)
    AZMONITOR_LOG_FORMAT  "json" (default) or "text"
"""

import json
import logging
import os
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

ROOT_LOGGER = "azmonitor"

# Structured extras a record may carry via `extra={...}`.
RECORD_EXTRAS = ("resource_id", "target_count", "metric_count", "duration_ms", "error_type")

# Loggers of the Azure SDK stack; they log each HTTP exchange at INFO.
SDK_LOGGERS = ("azure", "azure.core.pipeline.policies.http_logging_policy", "msal", "urllib3", "httpx")


# ─────────────────────────────────────────────────────────────
# Correlation ID Context
# ─────────────────────────────────────────────────────────────

_correlation_id: ContextVar[Optional[str]] = ContextVar("azmonitor_correlation_id", default=None)


def set_correlation_id(cid: Optional[str] = None) -> str:
    """Bind `cid` (or a fresh 12 hex char id) to the current context."""
    if not cid:
        cid = uuid.uuid4().hex[:12]
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


class CorrelationFilter(logging.Filter):
    """Stamps the context's correlation id on records that don't carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = get_correlation_id() or "-"
        return True


# ─────────────────────────────────────────────────────────────
# Formatters
# ─────────────────────────────────────────────────────────────

class StructuredJSONFormatter(logging.Formatter):
    """One JSON object per line, with the structured extras as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cid = getattr(record, "correlation_id", None) or get_correlation_id()
        if cid and cid != "-":
            entry["correlation_id"] = cid

        entry.update({
            key: getattr(record, key)
            for key in RECORD_EXTRAS
            if getattr(record, key, None) is not None
        })

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(correlation_id)s] %(message)s"


# ─────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────

def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None, stream=None) -> None:
    """
    Attach the azmonitor handler. Only the first call has an effect; later
    calls (including the implicit one in get_logger) return immediately.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if any(getattr(h, "_azmonitor", False) for h in root.handlers):
        return

    level = (level or os.environ.get("AZMONITOR_LOG_LEVEL", "INFO")).upper()
    fmt = (fmt or os.environ.get("AZMONITOR_LOG_FORMAT", "json")).lower()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler._azmonitor = True
    handler.addFilter(CorrelationFilter())
    if fmt == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    else:
        handler.setFormatter(StructuredJSONFormatter())

    root.addHandler(handler)
    root.setLevel(getattr(logging, level, logging.INFO))

    for name in SDK_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Logger under the azmonitor hierarchy.

        get_logger(__name__)       # 'azmonitor.targets.resolver'
        get_logger("collectors")   # 'azmonitor.collectors'
    """
    configure_logging()
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


# ─────────────────────────────────────────────────────────────
# Timing
# ─────────────────────────────────────────────────────────────

class TimedOperation:
    """
    Logs how long a setup or gather stage took.

        with TimedOperation(logger, "gather", target_count=12) as timer:
            ...
        timer.duration_ms

    An exception leaving the block is logged with its type and re-raised.
    """

    def __init__(self, logger: logging.Logger, operation: str, **extra):
        self.logger = logger
        self.operation = operation
        self.extra = extra
        self.duration_ms: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "TimedOperation":
        self.logger.debug(f"{self.operation} started", extra=self.extra)
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.duration_ms = round((time.perf_counter() - self._started) * 1000, 2)
        extra = dict(self.extra, duration_ms=self.duration_ms)
        if exc_type is None:
            self.logger.info(f"{self.operation} finished in {self.duration_ms}ms", extra=extra)
        else:
            extra["error_type"] = exc_type.__name__
            self.logger.error(
                f"{self.operation} failed after {self.duration_ms}ms: {exc_val}",
                extra=extra,
            )
        return False

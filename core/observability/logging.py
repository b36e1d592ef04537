"""
Structured Logging with Correlation IDs

Provides logging utilities that automatically include:
- sync_run_id: Links logs to one single/bulk/full synchronization run
- invoice_id: Links logs to the invoice being reconciled
- company_id: Links logs to the owning company
- operation: Which entry point is running (sync_one, sync_many, ...)

Usage:
    from core.observability.logging import get_logger, with_correlation

    logger = get_logger(__name__)

    with with_correlation(sync_run_id="run-001", invoice_id="INV-42"):
        logger.info("Materializing movement")  # Includes correlation IDs
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Dict, Any


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass
class CorrelationContext:
    """Context for correlating logs across one synchronization run."""
    sync_run_id: Optional[str] = None
    invoice_id: Optional[str] = None
    company_id: Optional[str] = None
    operation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs) -> "CorrelationContext":
        """Create a new context with merged values."""
        data = self.to_dict()
        data.update({k: v for k, v in kwargs.items() if v is not None})
        return CorrelationContext(**data)


_correlation_context: ContextVar[CorrelationContext] = ContextVar(
    "correlation_context",
    default=CorrelationContext()
)


def get_correlation_context() -> CorrelationContext:
    """Get the current correlation context."""
    return _correlation_context.get()


@contextmanager
def with_correlation(**kwargs):
    """
    Context manager to set correlation IDs for logging.

    Usage:
        with with_correlation(sync_run_id="run-001"):
            logger.info("Processing")  # Will include sync_run_id
    """
    new_ctx = get_correlation_context().merge(**kwargs)
    token = _correlation_context.set(new_ctx)
    try:
        yield new_ctx
    finally:
        _correlation_context.reset(token)



# =============================================================================
# Formatters
# =============================================================================

def _record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Per-call fields attached by CorrelatedLogger (empty for foreign loggers)."""
    return getattr(record, "extra_fields", None) or {}


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line: level, logger, message, then the current
    correlation IDs, then the per-call fields.

    {"timestamp": "2025-03-01T12:00:00Z", "level": "INFO",
     "logger": "reconciliation.engine", "message": "Created income movement ...",
     "sync_run_id": "1f0c...", "invoice_id": "INV-42", "movement_id": "mov-7"}
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat(timespec="seconds") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **get_correlation_context().to_dict(),
            **_record_fields(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Console format:

    2025-03-01 12:00:00 [INFO ] reconciliation.engine [1f0c.../inv:INV-42]: Created ... amount=10.00
    """

    @staticmethod
    def _correlation_label() -> str:
        ctx = get_correlation_context()
        parts = []
        if ctx.sync_run_id:
            parts.append(ctx.sync_run_id[:12])
        if ctx.invoice_id:
            parts.append(f"inv:{ctx.invoice_id}")
        return "/".join(parts) or "-"

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")
        line = f"{stamp} [{record.levelname:5}] {record.name} [{self._correlation_label()}]: {record.getMessage()}"

        fields = _record_fields(record)
        if fields:
            line += " " + " ".join(f"{key}={value}" for key, value in fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# =============================================================================
# Logger
# =============================================================================

class CorrelatedLogger(logging.LoggerAdapter):
    """
    Adapter accepting structured fields on each call:

        logger.info("Created movement", extra_fields={"movement_id": "mov-7"})

    Correlation IDs are not copied onto the record; the formatters read the
    context variable when they run.
    """

    def __init__(self, logger: logging.Logger):
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra["extra_fields"] = kwargs.pop("extra_fields", None) or {}
        kwargs["extra"] = extra
        return msg, kwargs


_loggers: Dict[str, CorrelatedLogger] = {}
_handler: Optional[logging.Handler] = None

_PROJECT_LOGGERS = ("api", "core", "reconciliation", "storage")


def configure_logging(level: int = logging.INFO, json_format: bool = False) -> None:
    """
    Install a stdout handler on the root logger. Only the first call has an
    effect, so the API lifespan and the scripts can both call it.

    Args:
        level: Logging level for the project loggers
        json_format: JSON lines instead of the console format
    """
    global _handler

    if _handler is not None:
        return

    _handler = logging.StreamHandler(sys.stdout)
    _handler.setLevel(level)
    _handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(_handler)

    for name in _PROJECT_LOGGERS:
        logging.getLogger(name).setLevel(level)

    # Quiet third-party chatter
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> CorrelatedLogger:
    """Correlated logger for a module name; one instance per name."""
    if name not in _loggers:
        _loggers[name] = CorrelatedLogger(logging.getLogger(name))
    return _loggers[name]

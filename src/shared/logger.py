"""
Structured JSON Logging Configuration

Structured logging shared by the product reconciler and the envelope publisher.

Every record is one JSON object per line so that outcome facts (applied, skipped,
failed, decode failures, commit failures) can be filtered by field in a log
aggregator instead of by regex.

EXAMPLE OUTPUT:
{
  "timestamp": "2025-01-10T14:30:00.123Z",
  "level": "INFO",
  "service": "product-reconciler",
  "logger": "src.reconciler.consumer",
  "correlation_id": "milk",
  "message": "Envelope applied",
  "extra": {"operation": "UPDATE", "effect": "updated", "partition": 2, "offset": 41}
}

The correlation_id is the product's natural key (its name), so all log lines for
one product can be followed from publisher to store.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# LogRecord attributes that are not user-supplied extras
STANDARD_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "taskName", "exc_info", "exc_text", "stack_info",
        "correlation_id",
    }
)


# ==============================================================================
# JSON FORMATTER
# ==============================================================================


class JSONFormatter(logging.Formatter):
    """
    Log formatter that outputs one JSON object per record.

    Fields:
    - timestamp: ISO 8601, UTC
    - level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    - service: service name (reconciler or publisher)
    - logger: dotted logger name
    - message: rendered log message
    - correlation_id: product natural key, when known
    - exception: formatted traceback, when present
    - extra: any additional context passed with ``extra=``
    """

    def __init__(self, service_name: str = "product-sync", include_extra: bool = True):
        super().__init__()
        self.service_name = service_name
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "correlation_id"):
            log_data["correlation_id"] = record.correlation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            extra_fields = {
                k: v
                for k, v in record.__dict__.items()
                if k not in STANDARD_ATTRS and not k.startswith("_")
            }
            if extra_fields:
                log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)

    @staticmethod
    def _format_timestamp(created: float) -> str:
        """Format a record timestamp as ISO 8601 UTC with millisecond precision."""
        dt = datetime.fromtimestamp(created, tz=timezone.utc)
        return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


# ==============================================================================
# PLAIN TEXT FORMATTER (for development)
# ==============================================================================


class PlainTextFormatter(logging.Formatter):
    """
    Human-readable log formatter for local development.

    Format: [2025-01-10 14:30:00] INFO [product-reconciler] Envelope applied
    """

    def __init__(self, service_name: str = "product-sync"):
        super().__init__(
            fmt=f"[%(asctime)s] %(levelname)s [{service_name}] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


# ==============================================================================
# LOGGER SETUP
# ==============================================================================


def setup_logger(
    name: str,
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Set up a structured logger.

    Entry points pass ``name="src"`` so every module logger created with
    ``logging.getLogger(__name__)`` inherits the handlers configured here.

    Args:
        name: Logger name
        service_name: Service identifier (e.g., "product-reconciler")
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: "json" or "text"
        log_file: Optional path; records are written there as well as to stdout

    Returns:
        Configured logging.Logger instance

    Example:
        >>> logger = setup_logger("src", "product-reconciler", log_format="text")
        >>> logger.info("Reconciler started", extra={"topic": "products"})
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Already configured (e.g. setup_logger called twice in tests)
    if logger.handlers:
        return logger

    if log_format.lower() == "json":
        formatter: logging.Formatter = JSONFormatter(service_name=service_name)
    else:
        formatter = PlainTextFormatter(service_name=service_name)

    handlers: list = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(logger.level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


# ==============================================================================
# CORRELATION ID ADAPTER
# ==============================================================================


class CorrelationAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds correlation_id to every record.

    Example:
        >>> base_logger = logging.getLogger("src.reconciler.engine")
        >>> logger = CorrelationAdapter(base_logger, {"correlation_id": "milk"})
        >>> logger.info("Document replaced")  # correlation_id included
    """

    def process(self, msg: str, kwargs: dict) -> tuple:
        extra = dict(kwargs.get("extra") or {})

        if "correlation_id" in self.extra:
            extra["correlation_id"] = self.extra["correlation_id"]

        kwargs["extra"] = extra
        return msg, kwargs

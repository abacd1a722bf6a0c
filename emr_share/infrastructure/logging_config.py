"""Structured logging configuration.

Transaction logs are emitted by the domain with an ``extra`` context naming
the record and the caller's role. The JSON formatter lifts that context
into top-level keys; the text formatter appends it to the message.

Security Impact:
    - Only record ids and roles are attached as context, never caller ids
      or diagnosis text
    - Authorization denials are logged at WARNING for monitoring
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

# Attributes the domain attaches through ``extra=``
CONTEXT_FIELDS = ("emr_id", "caller_role", "target_role")


def log_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Return the transaction context attached to ``record``."""
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, with transaction context as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(log_context(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry)


class ContextTextFormatter(logging.Formatter):
    """Human-readable lines with the transaction context in brackets."""

    def __init__(self):
        super().__init__('%(asctime)s - %(name)s - %(levelname)s - %(message)s', datefmt='%Y-%m-%d %H:%M:%S')

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = log_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        head, sep, tail = line.partition("\n")
        return f"{head} [{pairs}]{sep}{tail}"


def setup_logging(use_json: bool = False, log_level: str = "INFO") -> None:
    """Setup application logging.

    Log output goes to stderr so command output on stdout stays parseable.

    Parameters:
        use_json: Use JSON formatting (for production)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if use_json else ContextTextFormatter())
    root_logger.addHandler(handler)

    logging.getLogger("duckdb").setLevel(logging.WARNING)

"""JSON logging for the curio feed engine.

Every component logs through an ``ExecutionLogger`` under the ``curio_feed``
namespace, so one CLI invocation can be followed by its execution ID.
"""

import json
import logging
import sys
import time
from datetime import UTC, datetime
from typing import Any

LOGGER_NAMESPACE = "curio_feed"

# Extra attributes lifted from a LogRecord into the JSON entry
CONTEXT_FIELDS = (
    "execution_id",
    "component",
    "feed_url",
    "feed_version",
    "items_count",
    "item_id",
    "action",
    "success",
    "duration_seconds",
    "command",
    "error",
    "metrics",
)


def new_execution_id(prefix: str = "exec") -> str:
    return f"{prefix}_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"


class StructuredFormatter(logging.Formatter):
    """Render each record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(
            (name, getattr(record, name)) for name in CONTEXT_FIELDS if hasattr(record, name)
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ExecutionLogger:
    """Component logger that stamps every entry with its execution context."""

    def __init__(self, execution_id: str, component: str):
        self.execution_id = execution_id
        self.component = component
        self.logger = logging.getLogger(f"{LOGGER_NAMESPACE}.{component}")
        self._started: float | None = None

    def log(self, level: int, message: str, **fields) -> None:
        fields.update(execution_id=self.execution_id, component=self.component)
        self.logger.log(level, message, extra=fields)

    def debug(self, message: str, **fields) -> None:
        self.log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields) -> None:
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields) -> None:
        self.log(logging.WARNING, message, **fields)

    def error(self, message: str, **fields) -> None:
        self.log(logging.ERROR, message, **fields)

    def log_execution_start(self, **fields) -> None:
        self._started = time.monotonic()
        self.info(f"Starting {self.component} execution", **fields)

    def log_execution_end(self, success: bool = True, **fields) -> None:
        duration = None
        if self._started is not None:
            duration = round(time.monotonic() - self._started, 3)
        self.info(
            f"Completed {self.component} execution",
            success=success,
            duration_seconds=duration,
            **fields,
        )

    def log_feed_fetched(self, feed_url: str, feed_version: str, items_count: int) -> None:
        self.info(
            f"Fetched feed: {items_count} items found",
            feed_url=feed_url,
            feed_version=feed_version,
            items_count=items_count,
        )

    def log_item_action(self, item_id: str, action: str, success: bool = True) -> None:
        """Record a favourite toggle or viewed mark; failures log at ERROR."""
        self.log(
            logging.INFO if success else logging.ERROR,
            f"Item {action}: {item_id}",
            item_id=item_id,
            action=action,
            success=success,
        )

    def log_metrics(self, metrics: dict[str, Any]) -> None:
        self.info("Execution metrics", metrics=metrics)


def setup_structured_logging(log_level: str = "INFO") -> None:
    """Send JSON log lines to stderr at ``log_level``.

    stdout is left to the CLI, which prints its result there.
    """
    level = getattr(logging, log_level.upper())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root_logger = logging.getLogger()
    for old_handler in root_logger.handlers[:]:
        root_logger.removeHandler(old_handler)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    logging.getLogger(LOGGER_NAMESPACE).setLevel(level)


def create_execution_logger(component: str, execution_id: str | None = None) -> ExecutionLogger:
    return ExecutionLogger(execution_id or new_execution_id(), component)

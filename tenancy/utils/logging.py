"""
Structured logging for the command-line tools

Every line emitted during one CLI invocation carries the same run id so
the output of a codemod pass or a migration can be grepped as a unit.
JSON output is suitable for log aggregation (ELK Stack, Loki, CloudWatch).
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

# Context variable for the current run id
run_id_var: ContextVar[str] = ContextVar("run_id", default="")

EXTRA_FIELDS = ("path", "table", "step", "status", "rows", "revision")


class RunIdFilter(logging.Filter):
    """Logging filter to add the run id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_var.get("")
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", ""),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def new_run_id() -> str:
    run_id = uuid.uuid4().hex[:12]
    run_id_var.set(run_id)
    return run_id


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure the root logger for a CLI run."""
    handler = logging.StreamHandler()
    handler.addFilter(RunIdFilter())
    if json_output:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - [%(run_id)s] %(name)s - %(message)s"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

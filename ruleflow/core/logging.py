"""Structured logging configuration for application and audit events."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from ruleflow.core.config_file import get_settings

settings = get_settings()


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "logger": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
        }
        extra_fields = getattr(record, "fields", None)
        if extra_fields:
            entry.update(extra_fields)
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


# Create logger for audit events (rule changes, execution outcomes)
audit_logger = logging.getLogger("ruleflow.audit")

# Create logger for application events
app_logger = logging.getLogger("ruleflow")

_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
app_logger.setLevel(_level)

# Create console handler with structured format
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(_level)

if settings.LOG_FORMAT == "json":
    formatter: logging.Formatter = JSONFormatter()
else:
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
console_handler.setFormatter(formatter)

# Audit records propagate to the "ruleflow" logger, so only it gets the handler
if not app_logger.handlers:
    app_logger.addHandler(console_handler)


def log_rule_change(
    action: str,
    rule_id: str,
    tenant_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """
    Log a change to an automation rule.

    Args:
        action: Action performed (created, updated, deleted, activated, deactivated).
        rule_id: Rule UUID.
        tenant_id: Owning tenant UUID (None for global rules).
        details: Additional details (optional).
    """
    fields: dict[str, Any] = {"event": "rule_change", "action": action, "rule_id": rule_id}
    message = f"Rule {action} - rule_id={rule_id}"
    if tenant_id:
        fields["tenant_id"] = tenant_id
        message += f", tenant_id={tenant_id}"
    if details:
        fields["details"] = details
        message += f", details={details}"

    audit_logger.info(message, extra={"fields": fields})


def log_execution_finished(
    execution_id: str,
    rule_id: str,
    event_id: str,
    outcome: str,
    duration_ms: int | None = None,
) -> None:
    """
    Log the final outcome of a rule execution.

    Args:
        execution_id: Execution UUID.
        rule_id: Rule UUID.
        event_id: Triggering event identifier.
        outcome: Final execution status.
        duration_ms: Wall-clock duration of the chain (optional).
    """
    fields: dict[str, Any] = {
        "event": "execution_finished",
        "execution_id": execution_id,
        "rule_id": rule_id,
        "event_id": event_id,
        "outcome": outcome,
    }
    if duration_ms is not None:
        fields["duration_ms"] = duration_ms

    log = audit_logger.info if outcome == "SUCCESS" else audit_logger.warning
    log(
        f"Execution finished - execution_id={execution_id}, rule_id={rule_id}, "
        f"event_id={event_id}, outcome={outcome}"
        + (f", duration_ms={duration_ms}" if duration_ms is not None else ""),
        extra={"fields": fields},
    )

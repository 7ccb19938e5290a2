# ABOUTME: Structured logging with correlation IDs for the ArgoCD repository provider
# ABOUTME: Configures structlog and records an audit trail of reconciliation results

"""
Structured logging with correlation IDs and audit trails.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

1. STRUCTURED LOGGING: every log line is an event name plus key/value fields,
   rendered as colored console text or as JSON.

2. CORRELATION IDs: one short ID per reconciliation operation. A Create that
   runs a Read afterwards logs both under the same ID, so a single apply of a
   single resource can be followed through the log.

3. AUDIT LOGGING: one entry per create/update/delete/import with its result
   ("success", "not_found", "error").

=============================================================================
WHY CONTEXTVARS?
=============================================================================

The outer tool reconciles many resources in parallel threads. A ContextVar
holds a separate value per thread (and per asyncio task), so one operation's
correlation ID never leaks into another operation's log lines.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from pathlib import Path

# =============================================================================
# CORRELATION ID MANAGEMENT
# =============================================================================

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """
    Get current correlation ID or generate new one.

    Returns:
        8-character correlation ID string (first 8 chars of a UUID4)
    """
    cid = correlation_id.get()
    if not cid:
        cid = str(uuid.uuid4())[:8]
        correlation_id.set(cid)
    return cid


def set_correlation_id(cid: str) -> None:
    """
    Set correlation ID for current context.

    Passing "" makes the next get_correlation_id() generate a fresh ID.
    """
    correlation_id.set(cid)


def add_correlation_id(
    logger: structlog.types.WrappedLogger,  # noqa: ARG001 - Required by structlog Processor API
    method_name: str,  # noqa: ARG001 - Required by structlog Processor API
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor adding "correlation_id" to every event."""
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging.

    Processor pipeline:
    1. merge_contextvars: fields bound with structlog.contextvars
    2. add_log_level: "level" field
    3. TimeStamper: ISO-format "timestamp" field
    4. add_correlation_id: "correlation_id" field
    5. Renderer: JSON or colored console text

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_output: Render JSON lines instead of console text
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# =============================================================================
# AUDIT LOGGING
# =============================================================================


class AuditLogger:
    """
    Audit logger for reconciliation results.

    EXAMPLE AUDIT LOG ENTRIES:
    --------------------------
    {"timestamp": "2024-01-15T10:30:00+00:00", "correlation_id": "abc12345",
     "action": "create_repository", "target": "https://git.example.com/repo.git",
     "result": "success"}

    {"timestamp": "2024-01-15T10:31:00+00:00", "correlation_id": "def67890",
     "action": "read_repository", "target": "https://git.example.com/repo.git",
     "result": "not_found", "details": {"reason": "deleted out of band"}}

    With a log_path, entries are appended to the file as JSON lines;
    otherwise they go through structlog under the "audit" logger.
    """

    def __init__(self, log_path: Path | None = None) -> None:
        """
        Initialize audit logger.

        Args:
            log_path: Path to audit log file, or None for structlog output.
                      The file is created if missing and always appended to.
        """
        self._log_path = log_path
        self._logger = structlog.get_logger("audit")
        self._file_lock = threading.Lock()

    def log(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Log an auditable action.

        Args:
            action: Operation, e.g. "create_repository", "delete_repository_credentials"
            target: Resource key, e.g. the repository URL
            result: "success", "not_found" or "error"
            details: Additional context, e.g. {"error": "..."}
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "correlation_id": get_correlation_id(),
            "action": action,
            "target": target,
            "result": result,
        }

        if details:
            entry["details"] = details

        if self._log_path:
            # Parallel reconciliations share one file
            with self._file_lock, self._log_path.open("a") as f:
                f.write(json.dumps(entry) + "\n")
        else:
            self._logger.info(
                "audit",
                action=action,
                target=target,
                result=result,
                details=details,
            )

    def log_success(self, action: str, target: str) -> None:
        self.log(action, target, "success")

    def log_not_found(self, action: str, target: str) -> None:
        """Log that the resource had disappeared and the identifier was cleared."""
        self.log(action, target, "not_found", {"reason": "deleted out of band"})

    def log_error(
        self,
        action: str,
        target: str,
        error: str,
    ) -> None:
        """Log an operation that ended with a fatal diagnostic."""
        self.log(action, target, "error", {"error": error})

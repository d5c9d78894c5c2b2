"""Error reporting to the structured error log.

Reports are classified by ``error_classifier`` and written to the
``ottowrite.errors`` logger with the classification as extra fields, so a
log shipper can route on ``error_priority`` without parsing messages.
"""

import logging
from typing import Any, Dict, Optional

from .config import settings
from .error_classifier import ErrorEvent, ErrorPriority, before_send

logger = logging.getLogger("ottowrite.errors")

_LEVELS = {
    ErrorPriority.CRITICAL: logging.ERROR,
    ErrorPriority.HIGH: logging.ERROR,
    ErrorPriority.MEDIUM: logging.WARNING,
    ErrorPriority.LOW: logging.INFO,
}


def report_event(event: ErrorEvent) -> Optional[ErrorEvent]:
    """Classify and log *event*. Returns the annotated event, or None if dropped."""
    if not settings.error_reporting_enabled:
        return None

    processed = before_send(event)
    if processed is None:
        logger.debug(
            "Dropped noise error",
            extra={"exception_type": event.exception_type, "operation": event.operation},
        )
        return None

    priority = ErrorPriority(processed.tags["error_priority"])
    logger.log(
        _LEVELS[priority],
        f"{processed.exception_type}: {processed.exception_value}",
        extra={
            "error_priority": priority.value,
            "error_category": processed.tags["error_category"],
            "alert_rule": processed.tags["alert_rule"],
            "fingerprint": processed.fingerprint,
            "tags": {k: v for k, v in processed.tags.items() if not k.startswith(("error_", "alert_"))},
            "contexts": {k: v for k, v in processed.contexts.items() if k != "classification"},
            "request": processed.request,
        },
    )
    return processed


def report_error(
    exc: BaseException,
    operation: Optional[str] = None,
    status_code: Optional[int] = None,
    contexts: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, Any]] = None,
    request: Optional[Dict[str, Any]] = None,
) -> Optional[ErrorEvent]:
    """Report an exception with optional operation tag, HTTP status and contexts."""
    event = ErrorEvent.from_exception(
        exc,
        operation=operation,
        status_code=status_code,
        contexts=contexts,
        tags=tags,
        request=request,
    )
    return report_event(event)


def report_api_error(
    exc: BaseException,
    method: str,
    path: str,
    status_code: int,
    headers: Optional[Dict[str, Any]] = None,
    query_string: str = "",
) -> Optional[ErrorEvent]:
    """Report a failure while handling an HTTP request."""
    return report_error(
        exc,
        operation=f"api:{method.upper()} {path}",
        status_code=status_code,
        contexts={"http_request": {"method": method.upper(), "path": path}},
        request={"headers": dict(headers or {}), "query_string": query_string, "url": path},
    )


def report_autosave_error(
    exc: BaseException,
    document_id: str,
    failure_type: str,
    retry_count: int = 0,
    client_hash: Optional[str] = None,
    server_hash: Optional[str] = None,
) -> Optional[ErrorEvent]:
    """Report an autosave failure (always at least high priority)."""
    return report_error(
        exc,
        operation="autosave",
        contexts={
            "autosave": {
                "document_id": document_id,
                "failure_type": failure_type,
                "retry_count": retry_count,
                "client_hash": client_hash,
                "server_hash": server_hash,
            },
        },
        tags={"autosave_failure_type": failure_type},
    )


def report_database_error(
    exc: BaseException,
    table: Optional[str] = None,
    statement: Optional[str] = None,
) -> Optional[ErrorEvent]:
    """Report a database failure; only the statement verb is kept, never its text."""
    verb = statement.strip().split(None, 1)[0].upper() if statement and statement.strip() else None
    return report_error(
        exc,
        operation=f"database:{table or 'unknown'}",
        contexts={"database": {"table": table, "query_type": verb}},
    )

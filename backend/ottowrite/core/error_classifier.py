"""Error classification for alert routing.

Every reported error is turned into an ``ErrorEvent`` and run through the
ordered ``ALERT_RULES``; the first matching rule decides its priority,
category and grouping fingerprint. ``before_send`` is the single entry
point the reporter uses: it drops noise, annotates the event and scrubs
credentials before anything is written out.

Priorities map to response expectations:
    critical  page someone now (app is down or losing data/money)
    high      needs attention within hours
    medium    needs attention within days
    low       monitor only
    noise     dropped
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode


class ErrorPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NOISE = "noise"


class ErrorCategory(str, Enum):
    # Infrastructure
    DATABASE = "database"
    API = "api"
    NETWORK = "network"
    AUTHENTICATION = "authentication"

    # Features
    AI = "ai"
    AUTOSAVE = "autosave"
    PAYMENT = "payment"
    EXPORT = "export"

    # Client-side, for events forwarded by the editor
    UI = "ui"
    BROWSER = "browser"

    # System
    PERFORMANCE = "performance"
    SECURITY = "security"
    UNKNOWN = "unknown"


@dataclass
class ErrorEvent:
    """Everything the classifier looks at for one error."""

    exception_type: str = ""
    exception_value: str = ""
    module: Optional[str] = None
    tags: Dict[str, Any] = field(default_factory=dict)
    contexts: Dict[str, Any] = field(default_factory=dict)
    request: Optional[Dict[str, Any]] = None
    fingerprint: List[str] = field(default_factory=list)

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        contexts: Optional[Dict[str, Any]] = None,
        tags: Optional[Dict[str, Any]] = None,
        request: Optional[Dict[str, Any]] = None,
    ) -> "ErrorEvent":
        event_tags = dict(tags or {})
        if operation:
            event_tags["operation"] = operation
        event_contexts = dict(contexts or {})
        if status_code is not None:
            event_contexts["http_response"] = {"status": status_code}
        return cls(
            exception_type=type(exc).__name__,
            exception_value=str(exc),
            module=type(exc).__module__,
            tags=event_tags,
            contexts=event_contexts,
            request=request,
        )

    @property
    def operation(self) -> str:
        op = self.tags.get("operation")
        return op if isinstance(op, str) else ""

    @property
    def status(self) -> Optional[int]:
        return (self.contexts.get("http_response") or {}).get("status")


@dataclass(frozen=True)
class AlertRule:
    name: str
    category: ErrorCategory
    priority: ErrorPriority
    matcher: Callable[[ErrorEvent], bool]
    fingerprint: List[str]
    description: str


@dataclass(frozen=True)
class Classification:
    priority: ErrorPriority
    category: ErrorCategory
    rule_name: str
    description: str


def _value_contains(event: ErrorEvent, *needles: str) -> bool:
    return any(n in event.exception_value for n in needles)


ALERT_RULES: List[AlertRule] = [
    AlertRule(
        name="Database Connection Failure",
        category=ErrorCategory.DATABASE,
        priority=ErrorPriority.CRITICAL,
        matcher=lambda e: _value_contains(
            e,
            "ECONNREFUSED",
            "connection refused",
            "Connection refused",
            "database is down",
            "too many connections",
            "53300",
        ),
        fingerprint=["database", "connection", "failure"],
        description="Database connection failures - app likely down",
    ),
    AlertRule(
        name="Payment Processing Failure",
        category=ErrorCategory.PAYMENT,
        priority=ErrorPriority.CRITICAL,
        matcher=lambda e: "payment" in e.operation or _value_contains(e, "stripe", "payment failed"),
        fingerprint=["payment", "processing", "failure"],
        description="Payment failures - potential revenue loss",
    ),
    AlertRule(
        name="Authentication System Failure",
        category=ErrorCategory.AUTHENTICATION,
        priority=ErrorPriority.CRITICAL,
        matcher=lambda e: (
            _value_contains(e, "AuthApiError", "auth provider unavailable")
            or ("auth" in e.operation and e.status == 500)
        ),
        fingerprint=["auth", "system", "failure"],
        description="Auth system failures - users cannot log in",
    ),
    AlertRule(
        name="AI Generation Failure",
        category=ErrorCategory.AI,
        priority=ErrorPriority.HIGH,
        matcher=lambda e: "ai:" in e.operation or "ai_model" in e.tags,
        fingerprint=["ai", "generation", "failure"],
        description="AI generation failures - core feature degraded",
    ),
    AlertRule(
        name="Autosave Failure",
        category=ErrorCategory.AUTOSAVE,
        priority=ErrorPriority.HIGH,
        matcher=lambda e: e.operation == "autosave" or "autosave" in e.contexts,
        fingerprint=["autosave", "failure"],
        description="Autosave failures - potential data loss",
    ),
    AlertRule(
        name="Rate Limit Abuse",
        category=ErrorCategory.SECURITY,
        priority=ErrorPriority.HIGH,
        matcher=lambda e: e.status == 429 and "rate limit" in e.exception_value.lower(),
        fingerprint=["security", "rate_limit", "abuse"],
        description="Rate limit exceeded - potential abuse",
    ),
    AlertRule(
        name="Database Query Error",
        category=ErrorCategory.DATABASE,
        priority=ErrorPriority.MEDIUM,
        matcher=lambda e: (
            e.exception_type in ("OperationalError", "IntegrityError", "ProgrammingError", "DatabaseError")
            or "database:" in e.operation
            or "database" in e.contexts
        ),
        fingerprint=["database", "query", "error"],
        description="Database query failures",
    ),
    AlertRule(
        name="External API Failure",
        category=ErrorCategory.API,
        priority=ErrorPriority.MEDIUM,
        matcher=lambda e: (
            _value_contains(e, "fetch failed", "API error")
            or ("http_request" in e.contexts and e.status == 500)
        ),
        fingerprint=["api", "external", "failure"],
        description="External API integration failures",
    ),
    AlertRule(
        name="Export Failure",
        category=ErrorCategory.EXPORT,
        priority=ErrorPriority.MEDIUM,
        matcher=lambda e: "export" in e.operation or _value_contains(e, "export"),
        fingerprint=["export", "failure"],
        description="Document export failures",
    ),
    AlertRule(
        name="Network Timeout",
        category=ErrorCategory.NETWORK,
        priority=ErrorPriority.LOW,
        matcher=lambda e: (
            _value_contains(e, "ETIMEDOUT", "timeout", "timed out")
            or e.exception_type in ("TimeoutError", "TimeoutException")
        ),
        fingerprint=["network", "timeout"],
        description="Network timeouts - usually transient",
    ),
    AlertRule(
        name="UI Render Error",
        category=ErrorCategory.UI,
        priority=ErrorPriority.LOW,
        matcher=lambda e: _value_contains(e, "React", "render") or e.exception_type == "UnhandledRejection",
        fingerprint=["ui", "render", "error"],
        description="UI rendering errors",
    ),
    AlertRule(
        name="404 Not Found",
        category=ErrorCategory.API,
        priority=ErrorPriority.NOISE,
        matcher=lambda e: e.status == 404,
        fingerprint=["404"],
        description="404 errors - expected user behavior",
    ),
    AlertRule(
        name="Browser Extension",
        category=ErrorCategory.BROWSER,
        priority=ErrorPriority.NOISE,
        matcher=lambda e: _value_contains(e, "chrome-extension://", "moz-extension://", "safari-extension://"),
        fingerprint=["browser", "extension"],
        description="Browser extension interference - not our bug",
    ),
    AlertRule(
        name="User Cancelled",
        category=ErrorCategory.UI,
        priority=ErrorPriority.NOISE,
        matcher=lambda e: (
            _value_contains(e, "AbortError", "user aborted")
            or e.exception_type in ("AbortError", "CancelledError")
        ),
        fingerprint=["user", "cancelled"],
        description="User-initiated cancellations",
    ),
]

_DEFAULT = Classification(
    priority=ErrorPriority.MEDIUM,
    category=ErrorCategory.UNKNOWN,
    rule_name="Unknown Error",
    description="Uncategorized error",
)


def _matching_rule(event: ErrorEvent) -> Optional[AlertRule]:
    for rule in ALERT_RULES:
        if rule.matcher(event):
            return rule
    return None


def classify_error(event: ErrorEvent) -> Classification:
    """Priority and category of *event*: first matching rule wins."""
    rule = _matching_rule(event)
    if rule is None:
        return _DEFAULT
    return Classification(
        priority=rule.priority,
        category=rule.category,
        rule_name=rule.name,
        description=rule.description,
    )


def generate_fingerprint(event: ErrorEvent) -> List[str]:
    """Grouping key for *event*.

    A matching rule's fingerprint, else one built from the exception type,
    operation, HTTP status and module, else ``["{{ default }}"]``.
    """
    rule = _matching_rule(event)
    if rule is not None:
        return list(rule.fingerprint)

    fingerprint: List[str] = []
    if event.exception_type:
        fingerprint.append(event.exception_type)
    if event.operation:
        fingerprint.append(event.operation)
    if event.status:
        fingerprint.append(f"status-{event.status}")
    if event.module:
        fingerprint.append(event.module)
    return fingerprint or ["{{ default }}"]


SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "x-supabase-auth", "x-api-key"})
SENSITIVE_PARAMS = frozenset({"token", "key", "secret", "password", "api_key", "apikey"})


def scrub_headers(headers: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in headers.items() if k.lower() not in SENSITIVE_HEADERS}


def scrub_query_string(query: str) -> str:
    pairs = parse_qsl(query, keep_blank_values=True)
    return urlencode([
        (k, "[REDACTED]" if k.lower() in SENSITIVE_PARAMS else v) for k, v in pairs
    ])


def before_send(event: ErrorEvent) -> Optional[ErrorEvent]:
    """Classify, annotate and scrub *event*; ``None`` means drop it."""
    classification = classify_error(event)
    if classification.priority == ErrorPriority.NOISE:
        return None

    event = copy.deepcopy(event)
    event.tags.update({
        "error_priority": classification.priority.value,
        "error_category": classification.category.value,
        "alert_rule": classification.rule_name,
    })
    event.contexts["classification"] = {
        "priority": classification.priority.value,
        "category": classification.category.value,
        "rule": classification.rule_name,
        "description": classification.description,
    }
    event.fingerprint = generate_fingerprint(event)

    if event.request:
        if event.request.get("headers"):
            event.request["headers"] = scrub_headers(event.request["headers"])
        if event.request.get("query_string"):
            event.request["query_string"] = scrub_query_string(event.request["query_string"])
        event.request.pop("cookies", None)

    return event

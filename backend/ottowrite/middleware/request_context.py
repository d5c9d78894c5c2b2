"""Request context middleware: one pass for observability and rate limiting.

Responsibilities:
- Generate or propagate ``X-Request-ID``
- Measure request duration (``X-Response-Time``)
- Log every request/response as a structured record
- Enforce per-client token-bucket rate limits, with a separate policy for
  autosave and merge traffic

The limiter itself is the pure function ``check_rate_limit``.
"""

import logging
import re
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..core.auth import subject_from_authorization
from ..core.config import settings
from ..core.error_reporter import report_error
from ..core.logging_config import request_id_var
from ..exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rate limiting: pure function + in-memory buckets
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RateLimitPolicy:
    """Token bucket shape: ``max_requests`` per ``window_seconds`` plus ``burst``."""
    name: str
    max_requests: int
    window_seconds: float = 60.0
    burst: int = 0
    cost: float = 1.0
    message: str = "Too many requests"

    @property
    def capacity(self) -> float:
        return float(self.max_requests + self.burst)

    @property
    def refill_rate(self) -> float:
        """Tokens per second."""
        return self.max_requests / self.window_seconds


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: float = 0.0
    used_burst: bool = False


# Bucket state: {"<policy>:<client>": (available_tokens, last_refill_timestamp)}
_rate_buckets: dict[str, tuple[float, float]] = {}
_rate_lock = threading.Lock()

_rate_call_count = 0
_EVICT_EVERY = 100       # sweep every N calls
_EVICT_AGE = 300.0       # drop buckets idle this long


def check_rate_limit(
    bucket: dict[str, tuple[float, float]],
    key: str,
    policy: RateLimitPolicy,
    now: Optional[float] = None,
) -> RateLimitDecision:
    """Spend ``policy.cost`` tokens from *key*'s bucket if it has them.

    A bucket starts full at ``max_requests + burst`` tokens and refills
    continuously at the sustained rate. A request is flagged ``used_burst``
    when it leaves fewer than ``burst`` tokens, i.e. the client is running
    above its sustained rate.

    Args:
        bucket: Mutable dict holding per-key state. Modified in place.
        key: Client identifier, already namespaced by policy.
        policy: Bucket shape.
        now: Current timestamp (injectable for testing). Defaults to ``time.monotonic()``.
    """
    global _rate_call_count

    if policy.max_requests <= 0:
        return RateLimitDecision(allowed=True, remaining=0)

    if now is None:
        now = time.monotonic()

    _rate_call_count += 1
    if _rate_call_count % _EVICT_EVERY == 0:
        cutoff = now - _EVICT_AGE
        stale = [k for k, (_, ts) in bucket.items() if ts < cutoff]
        for k in stale:
            del bucket[k]

    if key in bucket:
        tokens, last_refill = bucket[key]
        tokens = min(policy.capacity, tokens + (now - last_refill) * policy.refill_rate)
    else:
        tokens = policy.capacity

    if tokens >= policy.cost:
        tokens -= policy.cost
        bucket[key] = (tokens, now)
        return RateLimitDecision(
            allowed=True,
            remaining=int(tokens),
            used_burst=tokens < policy.burst,
        )

    retry_after = (policy.cost - tokens) / policy.refill_rate
    bucket[key] = (tokens, now)
    return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)


_AUTOSAVE_PATH = re.compile(r"^/api/documents/[^/]+/autosave(/.*)?$")


def policy_for_request(method: str, path: str) -> RateLimitPolicy:
    """Pick the bucket policy for a request from the current settings."""
    if method == "POST" and _AUTOSAVE_PATH.match(path):
        return RateLimitPolicy(
            name="document_save",
            max_requests=settings.rate_limit_save_per_minute,
            burst=settings.rate_limit_save_burst,
            message="Autosave rate limit exceeded. Your changes are kept locally.",
        )
    if method == "POST" and path == "/api/branches/merge":
        return RateLimitPolicy(
            name="branch_merge",
            max_requests=settings.rate_limit_merge_per_minute,
            burst=settings.rate_limit_merge_burst,
            cost=2.0,
            message="Merge rate limit exceeded. Please wait before trying again.",
        )
    return RateLimitPolicy(
        name="api_general",
        max_requests=settings.rate_limit_per_minute,
        burst=settings.rate_limit_burst,
        message="API rate limit exceeded. Please try again later.",
    )


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

_EXEMPT_PATHS = frozenset({"/", "/health", "/docs", "/redoc", "/openapi.json"})


def client_key(request: Request) -> str:
    """Rate-limit identity: the token subject when valid, else the client IP.

    Proxy headers are checked in order ``CF-Connecting-IP``, ``X-Real-IP``,
    first hop of ``X-Forwarded-For``.
    """
    subject = subject_from_authorization(request.headers.get("authorization"))
    if subject:
        return f"user:{subject}"

    for header in ("cf-connecting-ip", "x-real-ip"):
        value = request.headers.get(header)
        if value:
            return f"ip:{value.strip()}"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    if request.client:
        return f"ip:{request.client.host}"
    return "ip:unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Single middleware handling request-id, timing, logging, and rate limiting."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request_id_var.set(rid)

        path = request.url.path
        decision: Optional[RateLimitDecision] = None
        policy: Optional[RateLimitPolicy] = None

        if settings.rate_limit_enabled and path not in _EXEMPT_PATHS:
            key = client_key(request)
            policy = policy_for_request(request.method, path)
            with _rate_lock:
                decision = check_rate_limit(_rate_buckets, f"{policy.name}:{key}", policy)

            if not decision.allowed:
                exc = RateLimitExceededError(policy.message, decision.retry_after, policy.max_requests)
                logger.warning(
                    "Rate limit exceeded",
                    extra={
                        "client": key,
                        "path": path,
                        "policy": policy.name,
                        "retry_after": round(decision.retry_after, 1),
                    },
                )
                report_error(
                    exc,
                    operation=f"rate_limit:{policy.name}",
                    status_code=429,
                    tags={"client": key},
                )
                return JSONResponse(
                    status_code=429,
                    content=exc.to_dict(),
                    headers={
                        "Retry-After": str(int(decision.retry_after) + 1),
                        "X-RateLimit-Limit": str(policy.max_requests),
                        "X-RateLimit-Remaining": "0",
                        "X-Request-ID": rid,
                    },
                )

            if decision.used_burst:
                logger.debug("Request served from burst capacity", extra={"client": key, "policy": policy.name})

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        response.headers["X-Request-ID"] = rid
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        if decision is not None and policy is not None:
            response.headers["X-RateLimit-Limit"] = str(policy.max_requests)
            response.headers["X-RateLimit-Remaining"] = str(decision.remaining)

        logger.info(
            f"{request.method} {path} {response.status_code}",
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        return response

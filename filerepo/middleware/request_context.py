"""Request context middleware — single deep middleware for observability and request guards.

Responsibilities (all handled in one pass, not separate middlewares):
- Generate or propagate ``X-Request-ID`` header
- Measure request duration
- Log every request/response as structured JSON
- Enforce per-client rate limiting via token bucket
- Refuse uploads whose declared ``Content-Length`` is already over the limit

The rate limiter is a pure function ``check_rate_limit`` that can be tested independently.
"""

import logging
import threading
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..core.config import settings
from ..core.logging_config import request_id_var
from ..exceptions import ErrorCode, FileTooLargeError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rate limiting: pure function + in-memory bucket
# ---------------------------------------------------------------------------

# Bucket state: {client_key: (available_tokens, last_refill_timestamp)}
_rate_buckets: dict[str, tuple[float, float]] = {}
_rate_lock = threading.Lock()

# Periodic eviction to prevent unbounded memory growth from rotating IPs.
_rate_call_count = 0
_EVICT_EVERY = 100       # sweep every N calls
_EVICT_AGE = 120.0       # remove entries older than 2 minutes


def check_rate_limit(
    bucket: dict[str, tuple[float, float]],
    key: str,
    max_per_minute: int,
    now: Optional[float] = None,
) -> tuple[bool, float]:
    """Check whether a request from *key* is allowed under the token bucket.

    Args:
        bucket: Mutable dict holding per-key state. Modified in place.
        key: Client identifier (IP address).
        max_per_minute: Sustained rate cap.
        now: Current timestamp (injectable for testing). Defaults to ``time.monotonic()``.

    Returns:
        ``(allowed, retry_after)`` — *retry_after* is 0.0 when allowed, otherwise
        the number of seconds until the next token becomes available.
    """
    global _rate_call_count

    if max_per_minute <= 0:
        return True, 0.0

    if now is None:
        now = time.monotonic()

    # Periodic eviction of stale entries to bound memory usage.
    _rate_call_count += 1
    if _rate_call_count % _EVICT_EVERY == 0:
        cutoff = now - _EVICT_AGE
        stale = [k for k, (_, ts) in bucket.items() if ts < cutoff]
        for k in stale:
            del bucket[k]

    refill_rate = max_per_minute / 60.0  # tokens per second

    if key in bucket:
        tokens, last_refill = bucket[key]
        elapsed = now - last_refill
        tokens = min(max_per_minute, tokens + elapsed * refill_rate)
    else:
        tokens = float(max_per_minute)
        last_refill = now

    if tokens >= 1.0:
        bucket[key] = (tokens - 1.0, now)
        return True, 0.0

    retry_after = (1.0 - tokens) / refill_rate
    bucket[key] = (tokens, now)
    return False, retry_after


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

# Paths that bypass rate limiting (health probes should never be throttled).
_EXEMPT_PATHS = frozenset({"/", "/health", "/docs", "/redoc", "/openapi.json"})

# Public file locators are fetched in bursts by previews and galleries.
_EXEMPT_PREFIXES = ("/storage/",)


def _is_exempt(path: str) -> bool:
    return path in _EXEMPT_PATHS or path.startswith(_EXEMPT_PREFIXES)


# Upload endpoint and the slack allowed for multipart boundaries and headers.
_UPLOAD_PATH = "/api/files"
_MULTIPART_OVERHEAD = 64 * 1024


def _declared_upload_too_large(request: Request) -> bool:
    """True if an upload announces a body that cannot fit under the size limit.

    Only a cheap early rejection; the storage layer enforces the real limit
    while streaming, so chunked bodies without a length still get checked.
    """
    if request.method != "POST" or request.url.path.rstrip("/") != _UPLOAD_PATH:
        return False
    try:
        declared = int(request.headers.get("content-length", ""))
    except ValueError:
        return False
    return declared > settings.max_upload_bytes + _MULTIPART_OVERHEAD


def _client_key(request: Request) -> str:
    """Derive a rate-limit key from the request.

    Uses the ``X-Forwarded-For`` header when behind a proxy, otherwise the
    direct client IP.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Single middleware handling request-id, timing, logging, and rate limiting."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # --- Request ID ---
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request_id_var.set(rid)

        # --- Rate limiting ---
        if not _is_exempt(request.url.path):
            key = _client_key(request)
            with _rate_lock:
                allowed, retry_after = check_rate_limit(
                    _rate_buckets, key, settings.rate_limit_per_minute
                )
            if not allowed:
                logger.warning(
                    "Rate limit exceeded",
                    extra={"client": key, "path": request.url.path, "retry_after": round(retry_after, 1)},
                )
                return JSONResponse(
                    status_code=429,
                    content={
                        "error": ErrorCode.RATE_LIMITED.value,
                        "message": "Too many requests",
                        "details": {"retry_after": round(retry_after, 1)},
                    },
                    headers={
                        "Retry-After": str(int(retry_after) + 1),
                        "X-Request-ID": rid,
                    },
                )

        # --- Upload size guard ---
        if _declared_upload_too_large(request):
            exc = FileTooLargeError(settings.max_upload_bytes)
            logger.warning(
                "Upload rejected by declared length",
                extra={"path": request.url.path, "content_length": request.headers.get("content-length")},
            )
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_dict(),
                headers={"X-Request-ID": rid},
            )

        # --- Timing ---
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        # --- Response headers ---
        response.headers["X-Request-ID"] = rid
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        # --- Structured request log ---
        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        return response

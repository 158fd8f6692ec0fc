"""API authentication, caller identity, rate limiting, and request tracing.

Provides:
- Bearer token authentication of the calling service via ``MENTORTRUST_API_KEY``
- Caller identity from the upstream-resolved user header (``X-User-ID``)
- Sliding-window rate limits keyed on the validated caller
- ``X-Request-ID`` response header and request logging with hashed client IP

Every rejection raised here uses the same ``{"code", "reason"}`` detail body
as the verification errors.
"""

import hashlib
import logging
import re
import threading
import time
import uuid
from collections import deque

from fastapi import Depends, HTTPException, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from mentortrust.config import get_config
from mentortrust.errors import ErrorKind

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

# HTTP-layer codes with no counterpart in the verification core
RATE_LIMITED = "rate_limited"
MISCONFIGURED = "server_misconfigured"


def api_error(status_code: int, code: str, reason: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "reason": reason})


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------

_USER_ID_RE = re.compile(r"^[A-Za-z0-9|_.:@\-]{1,128}$")


def validate_user_id(user_id: str) -> str:
    """Validate a user identifier: 1-128 chars, no whitespace or slashes."""
    if not _USER_ID_RE.match(user_id):
        raise api_error(400, ErrorKind.INVALID_INPUT.value, "Invalid user id.")
    return user_id


def require_api_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> str:
    """Authenticate the calling service. Skipped when ``demo_mode`` is on."""
    cfg = get_config()
    if cfg.demo_mode:
        return "demo"

    if not cfg.api_key:
        logger.error("Rejecting request: MENTORTRUST_API_KEY is not set")
        raise api_error(500, MISCONFIGURED, "MENTORTRUST_API_KEY is not set.")

    if credentials is None or credentials.credentials != cfg.api_key:
        raise api_error(
            401,
            ErrorKind.NOT_AUTHENTICATED.value,
            "Invalid or missing API key. Provide 'Authorization: Bearer <key>' header.",
        )
    return credentials.credentials


def require_caller(request: Request) -> str:
    """Return the caller's user id, resolved upstream by the identity provider."""
    header = get_config().user_header
    user_id = (request.headers.get(header) or "").strip()
    if not user_id:
        raise api_error(401, ErrorKind.NOT_AUTHENTICATED.value, f"Missing caller identity header '{header}'.")
    return validate_user_id(user_id)


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

class SlidingWindowLimiter:
    """In-process sliding-window counter per key.

    A bucket is dropped as soon as it holds no live timestamps, and idle
    buckets are swept at most once per window, so memory is bounded by the
    keys seen in the last window.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._buckets: dict[str, deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, key: str) -> bool:
        return key in self._buckets

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()

    def hit(self, key: str, max_requests: int, window_seconds: float = 60) -> None:
        """Count one request for ``key``; raise 429 when over the limit."""
        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= window_seconds:
                self._sweep(now, window_seconds)

            bucket = self._buckets.get(key)
            if bucket is not None:
                while bucket and now - bucket[0] >= window_seconds:
                    bucket.popleft()
            if not bucket:
                bucket = self._buckets[key] = deque()

            if len(bucket) >= max_requests:
                raise api_error(
                    429, RATE_LIMITED, f"Rate limit exceeded. Max {max_requests} requests per {window_seconds:g}s."
                )
            bucket.append(now)

    def _sweep(self, now: float, window_seconds: float) -> None:
        stale = [key for key, bucket in self._buckets.items() if not bucket or now - bucket[-1] >= window_seconds]
        for key in stale:
            del self._buckets[key]
        self._last_sweep = now


_limiter = SlidingWindowLimiter()


def _key_digest(api_key: str) -> str:
    return hashlib.sha256(api_key.encode()).hexdigest()[:12]


def rate_limit_verify(
    api_key: str = Depends(require_api_key),
    caller: str = Depends(require_caller),
) -> None:
    """Verification writes: 10 requests per minute per calling service and user."""
    _limiter.hit(f"verify:{_key_digest(api_key)}:{caller}", max_requests=10)


def rate_limit_default(api_key: str = Depends(require_api_key)) -> None:
    """Read endpoints: 60 requests per minute per calling service."""
    _limiter.hit(f"default:{_key_digest(api_key)}", max_requests=60)


# ---------------------------------------------------------------------------
# Request tracing
# ---------------------------------------------------------------------------

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9\-]{8,64}$")


def _hash_ip(ip: str | None) -> str:
    """One-way hash of the client IP for logging."""
    if not ip:
        return "unknown"
    return hashlib.sha256(ip.encode()).hexdigest()[:12]


async def request_logging_middleware(request: Request, call_next):
    """Propagate or assign X-Request-ID and log the request with its timing."""
    incoming = request.headers.get("X-Request-ID", "")
    request_id = incoming if _REQUEST_ID_RE.match(incoming) else str(uuid.uuid4())
    started = time.monotonic()

    response: Response = await call_next(request)

    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request_id=%s ip=%s method=%s path=%s status=%d duration_ms=%d",
        request_id,
        _hash_ip(request.client.host if request.client else None),
        request.method,
        request.url.path,
        response.status_code,
        int((time.monotonic() - started) * 1000),
    )
    return response

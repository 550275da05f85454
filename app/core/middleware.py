"""HTTP middleware and per-route rate limiting.

Rate limits protect the booking API from abusive clients only. Booking
correctness never depends on them, so every limiter fails open when Redis is
unreachable.
"""

import logging
import time

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

import redis.asyncio as redis

from app.config import settings
from app.core.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60

# Processor callbacks and health checks are never throttled.
UNLIMITED_PATHS = ("/health", "/docs", "/redoc", "/openapi.json")
UNLIMITED_PREFIXES = (f"{settings.api_prefix}/webhooks/",)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
HSTS_HEADER = "max-age=31536000; includeSubDomains"

SLOW_REQUEST_SECONDS = 1.0

_redis_client: redis.Redis | None = None


def get_rate_limit_redis() -> redis.Redis:
    """Shared Redis client for all limiters (created lazily)."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    return _redis_client


def client_ip(request: Request) -> str:
    """Caller address, honouring the proxy headers set by the load balancer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or (request.client.host if request.client else "unknown")


async def _sliding_window_count(redis_client: redis.Redis, key: str, now: int) -> int:
    """Record a hit and return how many hits the key already had in the window."""
    async with redis_client.pipeline(transaction=True) as pipe:
        await pipe.zremrangebyscore(key, 0, now - WINDOW_SECONDS)
        await pipe.zcard(key)
        await pipe.zadd(key, {str(time.time_ns()): now})
        await pipe.expire(key, WINDOW_SECONDS)
        results = await pipe.execute()
    return results[1]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Global per-IP limit using a Redis sliding window."""

    def __init__(self, app, requests_per_minute: int = 100):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute

    def _limit_headers(self, remaining: int, now: int) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.requests_per_minute),
            "X-RateLimit-Remaining": str(max(0, remaining)),
            "X-RateLimit-Reset": str(now + WINDOW_SECONDS),
        }

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path in UNLIMITED_PATHS or path.startswith(UNLIMITED_PREFIXES):
            return await call_next(request)

        now = int(time.time())
        try:
            count = await _sliding_window_count(
                get_rate_limit_redis(), f"rate_limit:{client_ip(request)}", now
            )
        except redis.RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")
            return await call_next(request)

        if count >= self.requests_per_minute:
            error = RateLimitExceeded()
            return JSONResponse(
                status_code=error.status_code,
                content={"detail": error.detail, "code": error.code},
                headers={"Retry-After": str(WINDOW_SECONDS), **self._limit_headers(0, now)},
            )

        response = await call_next(request)
        response.headers.update(self._limit_headers(self.requests_per_minute - count - 1, now))
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with its status and duration."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(time.time_ns())
        request.state.request_id = request_id

        response = await call_next(request)

        elapsed = time.perf_counter() - started
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed:.3f}s"

        message = f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.3f}s [{request_id}]"
        if elapsed > SLOW_REQUEST_SECONDS:
            logger.warning(f"SLOW REQUEST: {message}")
        else:
            logger.info(message)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        if not settings.debug:
            response.headers["Strict-Transport-Security"] = HSTS_HEADER
        return response


class RateLimiter:
    """Tighter per-route limit, used as a route dependency.

    Raises:
        RateLimitExceeded: once the caller used up its window
    """

    def __init__(self, requests_per_minute: int = 10, key_prefix: str = "api"):
        self.requests_per_minute = requests_per_minute
        self.key_prefix = key_prefix

    async def __call__(self, request: Request) -> None:
        key = f"rate:{self.key_prefix}:{client_ip(request)}"
        try:
            count = await _sliding_window_count(get_rate_limit_redis(), key, int(time.time()))
        except redis.RedisError as e:
            logger.warning(f"Rate limiter '{self.key_prefix}' unavailable: {e}")
            return

        if count >= self.requests_per_minute:
            logger.info(f"Rate limit '{self.key_prefix}' hit by {client_ip(request)}")
            raise RateLimitExceeded()


# Booking creation is the expensive, contended path
booking_limiter = RateLimiter(requests_per_minute=10, key_prefix="booking")
availability_limiter = RateLimiter(requests_per_minute=60, key_prefix="availability")

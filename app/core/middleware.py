"""Custom middleware for the application."""

import logging
import time

import redis.asyncio as redis
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.config import settings
from app.core.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60


def _client_ip(request: Request) -> str:
    """Client IP, honouring proxy headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


async def _hit_window(redis_client: redis.Redis, key: str) -> int:
    """Record a hit in a sliding window and return the count before it."""
    now = time.time()
    async with redis_client.pipeline(transaction=True) as pipe:
        await pipe.zremrangebyscore(key, 0, now - WINDOW_SECONDS)
        await pipe.zcard(key)
        await pipe.zadd(key, {str(time.time_ns()): now})
        await pipe.expire(key, WINDOW_SECONDS)
        results = await pipe.execute()
    return results[1]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Global per-IP rate limit using a Redis sliding window."""

    def __init__(
        self,
        app,
        requests_per_minute: int = 100,
        redis_url: str | None = None,
    ):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.redis_url = redis_url or settings.redis_url
        self._redis: redis.Redis | None = None

    async def get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request with rate limiting.

        Args:
            request: Incoming request
            call_next: Next middleware/route handler

        Returns:
            Response: Route response or rate limit error
        """
        if request.url.path in ("/health", "/docs", "/redoc", "/openapi.json"):
            return await call_next(request)

        # Stripe retries webhooks itself
        if request.url.path.startswith(f"{settings.api_prefix}/webhooks"):
            return await call_next(request)

        if settings.debug:
            return await call_next(request)

        client_ip = _client_ip(request)
        try:
            request_count = await _hit_window(await self.get_redis(), f"rate_limit:{client_ip}")
        except redis.RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")
            return await call_next(request)

        reset_at = str(int(time.time()) + WINDOW_SECONDS)
        if request_count >= self.requests_per_minute:
            logger.info(f"Rate limit hit for {client_ip} on {request.url.path}")
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Too many requests. Please try again later.",
                    "code": "RATE_LIMITED",
                    "success": False,
                    "retry_after": WINDOW_SECONDS,
                },
                headers={
                    "Retry-After": str(WINDOW_SECONDS),
                    "X-RateLimit-Limit": str(self.requests_per_minute),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": reset_at,
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(
            max(0, self.requests_per_minute - request_count - 1)
        )
        response.headers["X-RateLimit-Reset"] = reset_at
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Adds request id and timing headers; logs slow requests."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start_time = time.time()

        request_id = request.headers.get("X-Request-ID") or str(time.time_ns())
        request.state.request_id = request_id

        response = await call_next(request)
        duration = time.time() - start_time

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

        if duration > 1.0:
            logger.warning(
                f"Slow request {request_id}: {request.method} {request.url.path} took {duration:.3f}s"
            )
        else:
            logger.debug(
                f"{request.method} {request.url.path} -> {response.status_code} ({duration:.3f}s)"
            )

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to responses."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if not settings.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


class RateLimiter:
    """Per-endpoint rate limit used as a FastAPI dependency."""

    def __init__(
        self,
        requests_per_minute: int = 10,
        key_prefix: str = "api",
    ):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Max requests allowed
            key_prefix: Redis key prefix
        """
        self.requests_per_minute = requests_per_minute
        self.key_prefix = key_prefix
        self._redis: redis.Redis | None = None

    async def get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def __call__(self, request: Request) -> None:
        """Check rate limit for request.

        Raises:
            RateLimitExceeded: If rate limit exceeded
        """
        if settings.debug:
            return

        key = f"rate:{self.key_prefix}:{_client_ip(request)}"
        try:
            count = await _hit_window(await self.get_redis(), key)
        except redis.RedisError as e:
            logger.warning(f"Rate limiter '{self.key_prefix}' unavailable: {e}")
            return

        if count >= self.requests_per_minute:
            raise RateLimitExceeded()


login_limiter = RateLimiter(requests_per_minute=5, key_prefix="login")
register_limiter = RateLimiter(requests_per_minute=3, key_prefix="register")
booking_limiter = RateLimiter(requests_per_minute=10, key_prefix="booking")
payment_limiter = RateLimiter(requests_per_minute=10, key_prefix="payment")

"""
Rate Limiting Middleware

Per-identity rate limiting using Redis.

ARCHITECTURE: We use token bucket algorithm with Redis.
Each caller has their own bucket, keyed by the bearer token's subject
(user id) when a valid token is present, otherwise by client IP.

The middleware runs before tenant resolution, so it never touches the
database and never stores anything on request.state.

PRODUCTION NOTES:
- Redis is single point of failure (use Redis Cluster/Sentinel)
- get-then-set is not atomic; two concurrent requests can both take the
  last token. A Lua script would close that gap.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from typing import Optional, Tuple
import redis
import time
import logging
from tenantcore.config import get_settings
from tenantcore.core.security import token_subject
from tenantcore.utils.logging import log_security_event

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Token bucket rate limiter per user (or per IP for anonymous calls).

    Uses Redis for distributed rate limiting.
    """

    def __init__(self, app, redis_client=None, rate_per_minute: Optional[int] = None, burst: Optional[int] = None):
        super().__init__(app)
        settings = get_settings()

        self.rate_per_minute = rate_per_minute or settings.RATE_LIMIT_PER_MINUTE
        self.burst = burst or settings.RATE_LIMIT_BURST

        if redis_client is not None:
            self.redis_client = redis_client
            self.redis_available = True
        else:
            try:
                self.redis_client = redis.from_url(
                    settings.REDIS_URL,
                    decode_responses=True,
                    socket_connect_timeout=5
                )
                # Test connection
                self.redis_client.ping()
                self.redis_available = True
                logger.info("Redis connection established for rate limiting")
            except (redis.ConnectionError, redis.TimeoutError) as e:
                logger.error(f"Redis connection failed: {e}")
                self.redis_available = False
                # FALLBACK: Disable rate limiting if Redis is down

        self.excluded_paths = [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
        ]

    async def dispatch(self, request: Request, call_next):
        """Apply rate limiting per caller."""

        # Skip rate limiting for excluded paths
        if any(request.url.path.startswith(path) for path in self.excluded_paths):
            return await call_next(request)

        # TRADEOFF: We choose availability over strict rate limiting
        if not self.redis_available:
            return await call_next(request)

        identifier = self._get_client_identifier(request)
        allowed, retry_after = self._check_rate_limit(identifier)

        if not allowed:
            log_security_event(
                "rate_limit_exceeded",
                {"identifier": identifier, "path": request.url.path},
                logger
            )
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Rate limit exceeded",
                    "retry_after": retry_after
                },
                headers={"Retry-After": str(retry_after)}
            )

        response = await call_next(request)
        return response

    def _check_rate_limit(self, identifier: str, now: Optional[float] = None) -> Tuple[bool, int]:
        """
        Check if request is allowed under rate limit.

        Returns: (allowed: bool, retry_after: int)

        Uses token bucket algorithm:
        - Bucket holds max tokens (burst capacity)
        - Tokens added at fixed rate
        - Each request consumes one token
        """
        key = f"rate_limit:{identifier}"
        key_timestamp = f"{key}:timestamp"
        per_second = self.rate_per_minute / 60.0

        try:
            current_tokens = self.redis_client.get(key)
            last_update = self.redis_client.get(key_timestamp)

            now = time.time() if now is None else now

            if current_tokens is None:
                # First request - initialize bucket
                self.redis_client.setex(key, 60, self.burst - 1)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            current_tokens = float(current_tokens)
            last_update = float(last_update) if last_update else now

            # Calculate tokens to add based on elapsed time
            elapsed = max(0.0, now - last_update)
            new_tokens = min(self.burst, current_tokens + elapsed * per_second)

            if new_tokens >= 1:
                new_tokens -= 1
                self.redis_client.setex(key, 60, new_tokens)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            tokens_needed = 1 - new_tokens
            retry_after = int((tokens_needed / per_second) + 1)
            return False, retry_after

        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            # Graceful degradation - allow request if Redis fails
            return True, 0

    def _get_client_identifier(self, request: Request) -> str:
        """User id from a valid bearer token, else client IP."""
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            user_id = token_subject(auth_header[len("Bearer "):])
            if user_id:
                return f"user:{user_id}"

        client_host = request.client.host if request.client else "unknown"
        return f"ip:{client_host}"

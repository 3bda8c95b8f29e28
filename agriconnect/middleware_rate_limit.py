"""Per-client request throttling.

Clients are keyed by bearer token when present, otherwise by address. Both
backends share the exemption and limit rules below and differ only in how
they count hits.
"""
import os
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional

import redis
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse


WINDOW_SECONDS = 60
AUTH_PATH_CAP = 20

_EXEMPT_PATHS = frozenset({"/health", "/metrics"})
_OTP_PATHS = frozenset({"/auth/request_otp", "/auth/verify_otp"})


def is_exempt(request: Request) -> bool:
    path = request.url.path
    if path in _EXEMPT_PATHS:
        return True
    if path in _OTP_PATHS:
        # Dev logins are unthrottled unless RL_EXEMPT_OTP=false
        return os.getenv("ENV", "dev").lower() == "dev" and os.getenv("RL_EXEMPT_OTP", "true").lower() == "true"
    return False


def limit_for(request: Request, per_minute: int, auth_boost: int) -> int:
    override = os.getenv("RL_LIMIT_PER_MINUTE_OVERRIDE")
    if override and override.isdigit():
        per_minute = int(override)
    if request.url.path.startswith("/auth/"):
        return min(per_minute, AUTH_PATH_CAP)
    if request.headers.get("authorization"):
        return per_minute * auth_boost
    return per_minute


def client_key(request: Request) -> str:
    token = request.headers.get("authorization")
    if token:
        return "tok:" + token[-24:]
    return "ip:" + (request.client.host if request.client else "unknown")


class _Limiter(BaseHTTPMiddleware):
    def __init__(self, app, limit_per_minute: int = 60, auth_boost: int = 2):
        super().__init__(app)
        self.limit_per_minute = limit_per_minute
        self.auth_boost = auth_boost

    def hit(self, key: str, limit: int) -> Optional[int]:
        """Record one request; return seconds to wait when over ``limit``, else None."""
        raise NotImplementedError

    async def dispatch(self, request: Request, call_next):
        if is_exempt(request):
            return await call_next(request)
        retry_after = self.hit(client_key(request), limit_for(request, self.limit_per_minute, self.auth_boost))
        if retry_after is None:
            return await call_next(request)
        return JSONResponse(
            status_code=429,
            content={"detail": "rate_limited", "retry_after": retry_after},
            headers={"Retry-After": str(retry_after)},
        )


class SlidingWindowLimiter(_Limiter):
    """In-process sliding window; counts are per worker."""

    def __init__(self, app, limit_per_minute: int = 60, auth_boost: int = 2):
        super().__init__(app, limit_per_minute, auth_boost)
        self.hits: Dict[str, Deque[float]] = defaultdict(deque)

    def hit(self, key: str, limit: int) -> Optional[int]:
        now = time.monotonic()
        window = self.hits[key]
        while window and now - window[0] >= WINDOW_SECONDS:
            window.popleft()
        if len(window) >= limit:
            return max(1, int(WINDOW_SECONDS - (now - window[0])))
        window.append(now)
        return None


class RedisRateLimiter(_Limiter):
    """Fixed one-minute buckets shared through Redis. Lets traffic through when Redis is down."""

    def __init__(self, app, redis_url: str, limit_per_minute: int = 60, auth_boost: int = 2, prefix: str = "rl_agriconnect"):
        super().__init__(app, limit_per_minute, auth_boost)
        self.redis = redis.from_url(redis_url, decode_responses=True)
        self.prefix = prefix

    def hit(self, key: str, limit: int) -> Optional[int]:
        now = int(time.time())
        bucket = f"{self.prefix}:{key}:{now // WINDOW_SECONDS}"
        try:
            pipe = self.redis.pipeline()
            pipe.incr(bucket)
            pipe.expire(bucket, WINDOW_SECONDS + 10)
            count, _ = pipe.execute()
        except redis.RedisError:
            return None
        if count > limit:
            return WINDOW_SECONDS - (now % WINDOW_SECONDS)
        return None

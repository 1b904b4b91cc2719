from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from lobohub.core.config import settings

logger = logging.getLogger("lobohub.api.rate_limit")

EXEMPT_PATHS = frozenset({"/health"})


@dataclass(frozen=True)
class RateLimitRule:
    name: str
    limit: int
    window_seconds: int
    path: str | None = None
    method: str | None = None

    def applies_to(self, request: Request) -> bool:
        if self.path is not None and request.url.path != self.path:
            return False
        return self.method is None or request.method.upper() == self.method

    def key(self, client: str) -> str:
        return f"lobohub:rate:{self.name}:{client}"


RULES: tuple[RateLimitRule, ...] = (
    RateLimitRule(name="global", limit=settings.rate_limit_per_minute, window_seconds=60),
    RateLimitRule(
        name="login",
        limit=settings.login_rate_limit,
        window_seconds=300,
        path="/api/auth/login",
        method="POST",
    ),
)


def client_address(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def hit(redis: Redis, rule: RateLimitRule, client: str) -> bool:
    """Count one request in the rule's fixed window; False once over the limit."""
    key = rule.key(client)
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, rule.window_seconds)
    return int(count) <= rule.limit


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        redis: Redis | None = getattr(request.app.state, "redis", None)
        if redis is None or request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client = client_address(request)
        try:
            for rule in RULES:
                if rule.applies_to(request) and not await hit(redis, rule, client):
                    logger.warning(
                        "rate_limit.exceeded",
                        extra={"route": request.url.path, "method": request.method},
                    )
                    return JSONResponse(
                        status_code=429,
                        content={"code": "RATE_LIMIT", "message": "Too many requests"},
                        headers={"Retry-After": str(rule.window_seconds)},
                    )
        except RedisError:
            # Fail open.
            logger.warning("rate_limit.redis_unavailable", extra={"route": request.url.path})

        return await call_next(request)

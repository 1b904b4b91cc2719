from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis
from redis.exceptions import RedisError

from lobohub import models  # noqa: F401
from lobohub.api.routes import achievements, auth, budget, families, lists, tasks
from lobohub.core.config import settings
from lobohub.core.exceptions import register_exception_handlers
from lobohub.core.logging import setup_json_logging
from lobohub.core.rate_limit import RateLimitMiddleware
from lobohub.core.request_logging import REQUEST_ID_HEADER, RequestLoggingMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.redis = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    try:
        yield
    finally:
        await app.state.redis.aclose()


def create_app() -> FastAPI:
    setup_json_logging()
    app = FastAPI(title="lobohub api", lifespan=lifespan)
    register_exception_handlers(app)

    # Starlette runs the last added middleware first.
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
    )

    for module in (auth, families, tasks, lists, budget, achievements):
        app.include_router(module.router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, str]:
        redis_status = "ok"
        try:
            await request.app.state.redis.ping()
        except RedisError:
            redis_status = "unavailable"
        return {"status": "ok", "env": settings.app_env, "redis": redis_status}

    return app


app = create_app()

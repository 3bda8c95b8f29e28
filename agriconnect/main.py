import time

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from sqlalchemy import text

from . import __version__, errors
from .config import settings
from .database import engine
from .middleware_rate_limit import RedisRateLimiter, SlidingWindowLimiter
from .middleware_request_id import RequestIDMiddleware
from .models import Base
from .routers import auth as auth_router
from .routers import messages as messages_router
from .routers import orders as orders_router
from .routers import products as products_router
from .routers import profiles as profiles_router


# Module level so repeated create_app() calls share one set of collectors
REQ = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"])
REQ_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)


def _install_middleware(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)
    limits = {"limit_per_minute": settings.RATE_LIMIT_PER_MINUTE, "auth_boost": settings.RATE_LIMIT_AUTH_BOOST}
    if settings.RATE_LIMIT_BACKEND.lower() == "redis":
        app.add_middleware(RedisRateLimiter, redis_url=settings.REDIS_URL, prefix=settings.RATE_LIMIT_REDIS_PREFIX, **limits)
    else:
        app.add_middleware(SlidingWindowLimiter, **limits)


def _install_metrics(app: FastAPI) -> None:
    @app.middleware("http")
    async def _observe(request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        # Label by route template, not raw path, to keep ids out of label values
        route = getattr(request.scope.get("route"), "path", None) or request.url.path
        REQ.labels(request.method, route, str(response.status_code)).inc()
        REQ_DURATION.labels(request.method, route).observe(time.perf_counter() - started)
        return response

    @app.get("/metrics", include_in_schema=False)
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def create_app() -> FastAPI:
    app = FastAPI(title="AgriConnect API", version=__version__, docs_url="/docs")
    _install_middleware(app)
    _install_metrics(app)

    if settings.AUTO_CREATE_SCHEMA:
        Base.metadata.create_all(bind=engine)

    @app.get("/health")
    def health():
        with engine.connect() as conn:
            conn.execute(text("select 1"))
        return {"status": "ok", "env": settings.ENV, "version": __version__}

    for module in (auth_router, profiles_router, products_router, orders_router, messages_router):
        app.include_router(module.router)
    errors.install(app)
    return app


app = create_app()
